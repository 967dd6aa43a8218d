"""
Import-boundary enforcement for the stock_ledger package.

1. Domain purity      -- stock_ledger/domain/** may not import the ORM, the
                         database layer, models, services or selectors at
                         module level.  TYPE_CHECKING imports are allowed.
2. Model direction    -- stock_ledger/models/** may not import services or
                         selectors.
3. Read side          -- stock_ledger/selectors/** may not import services or
                         the unit of work.
4. Clock and config   -- only domain/clock.py reads the wall clock and only
                         config.py reads the environment.

All scanning is done via AST; these tests are read-only.
"""

import ast
import glob
from pathlib import Path

PACKAGE = Path(__file__).resolve().parents[2] / "stock_ledger"


def _python_files(subdir: str) -> list[Path]:
    """Return all .py files under stock_ledger/<subdir>, sorted."""
    return sorted(Path(p) for p in glob.glob(f"{PACKAGE / subdir}/**/*.py", recursive=True))


def _module_level_imports(filepath: Path) -> list[tuple[int, str]]:
    """(line_number, module) for imports in the module body, excluding TYPE_CHECKING blocks."""
    tree = ast.parse(filepath.read_text(), filename=str(filepath))
    results: list[tuple[int, str]] = []
    for node in tree.body:
        if isinstance(node, ast.Import):
            results.extend((node.lineno, alias.name) for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _attribute_references(filepath: Path) -> list[tuple[int, str]]:
    """(line_number, 'receiver.attr') for two-level attribute references."""
    tree = ast.parse(filepath.read_text(), filename=str(filepath))
    return [
        (node.lineno, f"{node.value.id}.{node.attr}")
        for node in ast.walk(tree)
        if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name)
    ]


def _matches_any(module: str, prefixes: tuple[str, ...]) -> bool:
    return any(module == prefix or module.startswith(f"{prefix}.") for prefix in prefixes)


def _violations(subdir: str, forbidden: tuple[str, ...]) -> list[str]:
    return [
        f"  {filepath.relative_to(PACKAGE.parent)}:{lineno} imports '{module}'"
        for filepath in _python_files(subdir)
        for lineno, module in _module_level_imports(filepath)
        if _matches_any(module, forbidden)
    ]


class TestDomainPurity:

    FORBIDDEN_PREFIXES = (
        "sqlalchemy",
        "stock_ledger.db",
        "stock_ledger.models",
        "stock_ledger.services",
        "stock_ledger.selectors",
        "stock_ledger.ledger",
    )

    def test_domain_files_have_no_forbidden_imports(self):
        violations = _violations("domain", self.FORBIDDEN_PREFIXES)
        assert not violations, "Domain purity violation:\n" + "\n".join(violations)


class TestModelDirection:

    def test_models_do_not_import_upward(self):
        violations = _violations(
            "models", ("stock_ledger.services", "stock_ledger.selectors", "stock_ledger.ledger")
        )
        assert not violations, "Model layer imports upward:\n" + "\n".join(violations)


class TestReadSide:

    def test_selectors_do_not_import_services(self):
        violations = _violations(
            "selectors",
            ("stock_ledger.services", "stock_ledger.db.unit_of_work", "stock_ledger.ledger"),
        )
        assert not violations, "Selectors must stay read-only:\n" + "\n".join(violations)


class TestImpureCalls:

    def test_only_the_clock_reads_wall_time(self):
        offenders = [
            f"  {path.relative_to(PACKAGE.parent)}:{lineno} uses {ref}"
            for path in _python_files("")
            if path.name != "clock.py"
            for lineno, ref in _attribute_references(path)
            if ref in ("datetime.now", "datetime.utcnow", "date.today", "time.time")
        ]
        assert not offenders, "Wall-clock access outside domain/clock.py:\n" + "\n".join(offenders)

    def test_only_config_reads_the_environment(self):
        offenders = [
            f"  {path.relative_to(PACKAGE.parent)}:{lineno} uses {ref}"
            for path in _python_files("")
            if path.name != "config.py"
            for lineno, ref in _attribute_references(path)
            if ref in ("os.environ", "os.getenv")
        ]
        assert not offenders, "Environment access outside config.py:\n" + "\n".join(offenders)
