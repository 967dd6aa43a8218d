"""
Unit tests for settings loading.

Verifies:
- Defaults when no file or environment is given
- YAML values override defaults, environment overrides YAML
- Unknown keys and invalid prefixes are rejected
"""

import pytest
import yaml

from stock_ledger.config import (
    ENV_CONFIG_PATH,
    ENV_DATABASE_URL,
    ENV_LOG_LEVEL,
    LedgerSettings,
    load_settings,
    load_yaml_file,
    settings_from_dict,
)


@pytest.fixture
def config_file(tmp_path):
    def _write(data) -> str:
        path = tmp_path / "ledger.yaml"
        path.write_text(yaml.safe_dump(data))
        return str(path)

    return _write


class TestDefaults:

    def test_no_file_no_environment(self):
        settings = load_settings(environ={})
        assert settings == LedgerSettings()
        assert settings.receipt_prefix == "RCP"
        assert settings.delivery_prefix == "DLV"
        assert settings.recent_movement_limit == 10
        assert settings.default_page_size == 100

    def test_settings_are_frozen(self):
        settings = LedgerSettings()
        with pytest.raises(AttributeError):
            settings.pool_size = 1


class TestYamlLoading:

    def test_file_values_override_defaults(self, config_file):
        path = config_file({"database_url": "sqlite:///warehouse.db", "receipt_prefix": "IN", "pool_size": 5})
        settings = load_settings(path, environ={})

        assert settings.database_url == "sqlite:///warehouse.db"
        assert settings.receipt_prefix == "IN"
        assert settings.pool_size == 5
        assert settings.delivery_prefix == "DLV"

    def test_config_path_from_environment(self, config_file):
        path = config_file({"delivery_prefix": "OUT"})
        settings = load_settings(environ={ENV_CONFIG_PATH: path})
        assert settings.delivery_prefix == "OUT"

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml_file(path) == {}
        assert load_settings(path, environ={}) == LedgerSettings()

    def test_non_mapping_rejected(self, config_file):
        with pytest.raises(ValueError, match="Expected a mapping"):
            load_settings(config_file(["not", "a", "mapping"]), environ={})

    def test_missing_file_propagates(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "absent.yaml", environ={})

    def test_unknown_key_rejected(self, config_file):
        with pytest.raises(ValueError, match="Unknown ledger settings: colour"):
            load_settings(config_file({"colour": "blue"}), environ={})


class TestEnvironmentOverrides:

    def test_environment_beats_file(self, config_file):
        path = config_file({"database_url": "sqlite:///from_file.db", "log_level": "WARNING"})
        settings = load_settings(
            path,
            environ={ENV_DATABASE_URL: "sqlite:///from_env.db", ENV_LOG_LEVEL: "debug"},
        )

        assert settings.database_url == "sqlite:///from_env.db"
        assert settings.log_level == "DEBUG"

    def test_empty_environment_values_ignored(self):
        settings = load_settings(environ={ENV_DATABASE_URL: "", ENV_LOG_LEVEL: ""})
        assert settings == LedgerSettings()


class TestValidation:

    def test_prefixes_must_differ(self):
        with pytest.raises(ValueError, match="must differ"):
            settings_from_dict({"receipt_prefix": "DOC", "delivery_prefix": "DOC"})

    def test_prefixes_must_be_non_empty(self):
        with pytest.raises(ValueError, match="non-empty"):
            LedgerSettings(receipt_prefix="")

    @pytest.mark.parametrize("prefix", ["rcp", "REC-IN", "R_P", "RCP%", "IN "])
    def test_prefixes_must_be_upper_case_alphanumeric(self, prefix):
        with pytest.raises(ValueError, match="receipt_prefix"):
            LedgerSettings(receipt_prefix=prefix)

    def test_prefix_from_yaml_is_validated(self, config_file):
        path = config_file({"delivery_prefix": "out"})
        with pytest.raises(ValueError, match="delivery_prefix"):
            load_settings(path, environ={})

    def test_page_size_must_be_positive(self):
        with pytest.raises(ValueError, match="default_page_size"):
            LedgerSettings(default_page_size=0)

    def test_recent_limit_cannot_be_negative(self):
        with pytest.raises(ValueError, match="recent_movement_limit"):
            LedgerSettings(recent_movement_limit=-1)
