"""
Configuration loading (``stock_ledger.config``).

Responsibility
--------------
Loads runtime settings for the ledger from an optional YAML file and the
process environment into a frozen ``LedgerSettings`` dataclass.  This is the
only place that reads configuration files or environment variables;
services receive the values they need through their constructors.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or a non-mapping document  -> ``ValueError``.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

ENV_DATABASE_URL = "STOCK_LEDGER_DATABASE_URL"
ENV_LOG_LEVEL = "STOCK_LEDGER_LOG_LEVEL"
ENV_CONFIG_PATH = "STOCK_LEDGER_CONFIG"

# Same alphabet the reference parser accepts; also keeps LIKE wildcards out.
_PREFIX_RE = re.compile(r"[A-Z0-9]+")


@dataclass(frozen=True)
class LedgerSettings:
    """Runtime settings for a ledger deployment."""

    database_url: str = "sqlite:///stock_ledger.db"
    echo_sql: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    log_level: str = "INFO"
    receipt_prefix: str = "RCP"
    delivery_prefix: str = "DLV"
    recent_movement_limit: int = 10
    default_page_size: int = 100

    def __post_init__(self) -> None:
        if not self.receipt_prefix or not self.delivery_prefix:
            raise ValueError("Reference prefixes must be non-empty")
        for name in ("receipt_prefix", "delivery_prefix"):
            value = getattr(self, name)
            if not _PREFIX_RE.fullmatch(value):
                raise ValueError(
                    f"{name} must be upper-case letters and digits only, got {value!r}"
                )
        if self.receipt_prefix == self.delivery_prefix:
            raise ValueError(
                "Receipt and delivery prefixes must differ: "
                f"{self.receipt_prefix!r}"
            )
        if self.default_page_size <= 0:
            raise ValueError("default_page_size must be positive")
        if self.recent_movement_limit < 0:
            raise ValueError("recent_movement_limit cannot be negative")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping in {path}, got {type(data).__name__}")
    return data


def settings_from_dict(data: Mapping[str, Any]) -> LedgerSettings:
    """Build settings from a plain mapping, rejecting unknown keys."""
    known = {f.name for f in fields(LedgerSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown ledger settings: {', '.join(unknown)}")
    return LedgerSettings(**dict(data))


def load_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """
    Resolve settings from YAML and environment.

    Precedence (highest first): environment variables, the YAML file, the
    dataclass defaults.  When ``path`` is None the ``STOCK_LEDGER_CONFIG``
    variable may name the file.
    """
    env = os.environ if environ is None else environ

    if path is None:
        path = env.get(ENV_CONFIG_PATH)

    settings = LedgerSettings()
    if path is not None:
        settings = settings_from_dict(load_yaml_file(Path(path)))

    overrides: dict[str, Any] = {}
    if env.get(ENV_DATABASE_URL):
        overrides["database_url"] = env[ENV_DATABASE_URL]
    if env.get(ENV_LOG_LEVEL):
        overrides["log_level"] = env[ENV_LOG_LEVEL].upper()

    return replace(settings, **overrides) if overrides else settings
