"""
Configuration tests: defaults, YAML loading, env precedence, schema.

Copyright (c) 2026 Momentum. All rights reserved.
"""

import pytest
import yaml

from dauth.config import (
    ConfigError,
    ConfigManager,
    DAuthConfig,
    ValidationError,
    create_store,
    get_config,
    get_config_manager,
)
from dauth.storage import InMemoryStore, SqliteStore


class TestDefaults:
    """Out-of-the-box values."""

    def test_default_values(self):
        config = DAuthConfig()

        assert config.contract.account.get() == "dauth"
        assert config.storage.backend.get() == "memory"
        assert config.security.strict_account_names.get() is False
        assert config.audit.enabled.get() is True
        assert config.observability.log_format.get() == "json"

    def test_singleton(self):
        assert ConfigManager() is get_config_manager()
        assert get_config() is get_config_manager().config

    def test_to_yaml_round_trips(self):
        data = yaml.safe_load(DAuthConfig().to_yaml())

        assert data["storage"]["backend"] == "memory"
        assert data["audit"]["max_events"] == 10000


class TestConfigValue:
    """Set, coerce, validate."""

    def test_invalid_backend_rejected(self):
        config = DAuthConfig()

        with pytest.raises(ValidationError):
            config.storage.backend.set("postgres")

    def test_string_coercion(self):
        config = DAuthConfig()

        config.audit.max_events.set("25")
        config.security.strict_account_names.set("yes")

        assert config.audit.max_events.get() == 25
        assert config.security.strict_account_names.get() is True

    def test_uncoercible_string(self):
        with pytest.raises(ValidationError):
            DAuthConfig().audit.max_events.set("many")

    def test_contract_account_must_be_ledger_name(self):
        with pytest.raises(ValidationError):
            DAuthConfig().contract.account.set("Not Valid")

    def test_change_callback(self):
        config = DAuthConfig()
        seen = []
        config.observability.log_level.on_change(lambda old, new: seen.append((old, new)))

        config.observability.log_level.set("debug")

        assert seen == [(None, "debug")]

    def test_reset(self):
        config = DAuthConfig()
        config.storage.backend.set("sqlite")
        config.storage.backend.reset()

        assert config.storage.backend.get() == "memory"


class TestConfigManager:
    """File loading and dotted access."""

    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "dauth.yaml"
        path.write_text("storage:\n  backend: sqlite\n  sqlite_path: /tmp/x.db\naudit:\n  max_events: 50\n")

        manager = get_config_manager()
        manager.load_from_file(path)

        assert manager.get("storage.backend") == "sqlite"
        assert manager.get("audit.max_events") == 50

    def test_unknown_key_rejected(self, tmp_path):
        path = tmp_path / "dauth.yaml"
        path.write_text("storage:\n  engine: rocks\n")

        with pytest.raises(ConfigError, match="Unknown config key: storage.engine"):
            get_config_manager().load_from_file(path)

    def test_non_mapping_root_rejected(self, tmp_path):
        path = tmp_path / "dauth.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigError, match="must be a mapping"):
            get_config_manager().load_from_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            get_config_manager().load_from_file(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "dauth.yaml"
        path.write_text("storage: [unclosed\n")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            get_config_manager().load_from_file(path)

    def test_empty_file_is_noop(self, tmp_path):
        path = tmp_path / "dauth.yaml"
        path.write_text("")

        get_config_manager().load_from_file(path)

        assert get_config_manager().get("storage.backend") == "memory"

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        path = tmp_path / "dauth.yaml"
        path.write_text("observability:\n  log_level: warning\n")
        manager = get_config_manager()
        manager.load_from_file(path)

        monkeypatch.setenv("DAUTH_LOG_LEVEL", "debug")

        assert manager.get("observability.log_level") == "debug"

    def test_env_value_is_validated(self, monkeypatch):
        monkeypatch.setenv("DAUTH_AUDIT_MAX_EVENTS", "0")

        with pytest.raises(ValidationError, match="DAUTH_AUDIT_MAX_EVENTS"):
            get_config().audit.max_events.get()
        assert get_config_manager().validate() == [
            "audit.max_events: Invalid value for DAUTH_AUDIT_MAX_EVENTS: 0"
        ]

    def test_load_defaults_prefers_local_file(self, tmp_path, monkeypatch):
        home = tmp_path / "home"
        (home / ".dauth").mkdir(parents=True)
        (home / ".dauth" / "config.yaml").write_text("contract:\n  account: homeacct\naudit:\n  max_events: 7\n")
        work = tmp_path / "work"
        work.mkdir()
        (work / "dauth.yaml").write_text("contract:\n  account: localacct\n")
        monkeypatch.setenv("HOME", str(home))
        monkeypatch.chdir(work)

        manager = get_config_manager()
        manager.load_defaults()

        assert manager.get("contract.account") == "localacct"
        assert manager.get("audit.max_events") == 7

    def test_env_coerced(self, monkeypatch):
        monkeypatch.setenv("DAUTH_AUDIT_ENABLED", "false")
        monkeypatch.setenv("DAUTH_MAX_PAYLOAD_LENGTH", "128")

        assert get_config().audit.enabled.get() is False
        assert get_config().security.max_payload_length.get() == 128

    def test_dotted_set_and_invalid_path(self):
        manager = get_config_manager()
        manager.set("contract.account", "authority")

        assert manager.get("contract.account") == "authority"
        with pytest.raises(ConfigError):
            manager.get("contract")
        with pytest.raises(ConfigError):
            manager.set("contract.owner", "x")

    def test_validate_reports_bad_env(self, monkeypatch):
        monkeypatch.setenv("DAUTH_STORAGE_BACKEND", "postgres")

        errors = get_config_manager().validate()

        assert len(errors) == 1
        assert errors[0].startswith("storage.backend")

    def test_export_schema(self):
        schema = get_config_manager().export_schema()

        backend = schema["properties"]["storage"]["backend"]
        assert backend["env_var"] == "DAUTH_STORAGE_BACKEND"
        assert backend["default"] == "memory"


class TestCreateStore:
    """Backend factory."""

    def test_memory(self):
        assert isinstance(create_store(DAuthConfig()), InMemoryStore)

    def test_sqlite(self, tmp_path):
        config = DAuthConfig()
        config.storage.backend.set("sqlite")
        config.storage.sqlite_path.set(str(tmp_path / "dauth.db"))

        store = create_store(config)

        assert isinstance(store, SqliteStore)
        store.close()

    def test_unknown_backend_from_env(self, monkeypatch):
        monkeypatch.setenv("DAUTH_STORAGE_BACKEND", "postgres")

        with pytest.raises(ValidationError, match="Invalid value for DAUTH_STORAGE_BACKEND"):
            create_store(DAuthConfig())
