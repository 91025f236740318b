"""Tests for ledger settings: defaults, YAML loading, environment layering."""
from __future__ import annotations

import pytest
import yaml

from inventory_config import get_active_settings, load_settings
from inventory_config.loader import compute_checksum, parse_settings
from inventory_config.schema import DEFAULT_DATABASE_URL, LedgerSettings


@pytest.fixture
def clean_env(monkeypatch):
    monkeypatch.delenv("INVENTORY_LEDGER_CONFIG", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    return monkeypatch


@pytest.fixture
def write_yaml(tmp_path):
    def _write(data: dict, name: str = "ledger.yaml"):
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data))
        return path

    return _write


class TestDefaults:

    def test_defaults(self):
        settings = LedgerSettings()
        assert settings.database_url == DEFAULT_DATABASE_URL
        assert settings.lock_timeout_ms == 5000
        assert settings.instant_payment_methods == frozenset({"cash"})
        assert settings.invoice_prefix == "INV"
        assert settings.batch_prefix == "BATCH"
        assert settings.default_low_stock_threshold == 10

    def test_instant_payment_is_case_insensitive(self):
        settings = LedgerSettings(instant_payment_methods=frozenset({"Cash", "POS"}))
        assert settings.instant_payment_methods == frozenset({"cash", "pos"})
        assert settings.is_instant_payment("CASH")
        assert settings.is_instant_payment("pos")
        assert not settings.is_instant_payment("transfer")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"lock_timeout_ms": 0},
            {"pool_size": 0},
            {"max_overflow": -1},
            {"default_low_stock_threshold": -1},
            {"database_url": ""},
            {"invoice_prefix": ""},
            {"batch_prefix": ""},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            LedgerSettings(**kwargs)


class TestYamlLoading:

    def test_load_full_document(self, write_yaml):
        path = write_yaml(
            {
                "database": {
                    "url": "postgresql://inventory@localhost/inventory",
                    "lock_timeout_ms": 3000,
                    "pool_size": 5,
                    "max_overflow": 2,
                    "echo": True,
                },
                "sales": {"instant_payment_methods": ["cash", "pos"], "invoice_prefix": "SALE"},
                "stock": {"batch_prefix": "LOT", "default_low_stock_threshold": 4},
            }
        )

        settings = load_settings(path)

        assert settings.database_url == "postgresql://inventory@localhost/inventory"
        assert settings.lock_timeout_ms == 3000
        assert settings.pool_size == 5
        assert settings.max_overflow == 2
        assert settings.echo_sql is True
        assert settings.instant_payment_methods == frozenset({"cash", "pos"})
        assert settings.invoice_prefix == "SALE"
        assert settings.batch_prefix == "LOT"
        assert settings.default_low_stock_threshold == 4

    def test_partial_document_keeps_defaults(self, write_yaml):
        settings = load_settings(write_yaml({"database": {"lock_timeout_ms": 750}}))
        assert settings.lock_timeout_ms == 750
        assert settings.database_url == DEFAULT_DATABASE_URL

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_settings(path) == LedgerSettings()

    def test_unknown_section_rejected(self):
        with pytest.raises(ValueError, match="Unknown settings section"):
            parse_settings({"metrics": {"enabled": True}})

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="Unknown setting database.host"):
            parse_settings({"database": {"host": "localhost"}})

    def test_section_must_be_mapping(self):
        with pytest.raises(ValueError, match="must be a mapping"):
            parse_settings({"database": "sqlite:///x.db"})

    def test_invalid_value_in_file_rejected(self, write_yaml):
        with pytest.raises(ValueError, match="lock_timeout_ms"):
            load_settings(write_yaml({"database": {"lock_timeout_ms": -5}}))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "absent.yaml")

    def test_checksum_is_key_order_independent(self):
        a = {"database": {"pool_size": 5, "max_overflow": 2}}
        b = {"database": {"max_overflow": 2, "pool_size": 5}}
        assert compute_checksum(a) == compute_checksum(b)
        assert compute_checksum(a) != compute_checksum({"database": {"pool_size": 6}})


class TestActiveSettings:

    def test_no_file_no_env_gives_defaults(self, clean_env):
        assert get_active_settings() == LedgerSettings()

    def test_explicit_path(self, clean_env, write_yaml):
        path = write_yaml({"sales": {"invoice_prefix": "POOL"}})
        assert get_active_settings(path).invoice_prefix == "POOL"

    def test_config_env_var(self, clean_env, write_yaml):
        path = write_yaml({"stock": {"batch_prefix": "LOT"}})
        clean_env.setenv("INVENTORY_LEDGER_CONFIG", str(path))
        assert get_active_settings().batch_prefix == "LOT"

    def test_explicit_path_beats_env_var(self, clean_env, write_yaml):
        env_path = write_yaml({"stock": {"batch_prefix": "ENV"}}, name="env.yaml")
        arg_path = write_yaml({"stock": {"batch_prefix": "ARG"}}, name="arg.yaml")
        clean_env.setenv("INVENTORY_LEDGER_CONFIG", str(env_path))
        assert get_active_settings(arg_path).batch_prefix == "ARG"

    def test_database_url_env_overrides_file(self, clean_env, write_yaml):
        path = write_yaml({"database": {"url": "sqlite:///from-file.db", "pool_size": 3}})
        clean_env.setenv("DATABASE_URL", "postgresql://ci@db/inventory")

        settings = get_active_settings(path)

        assert settings.database_url == "postgresql://ci@db/inventory"
        assert settings.pool_size == 3

    def test_trace_logged_without_credentials(self, clean_env, write_yaml, captured_logs):
        path = write_yaml({"database": {"lock_timeout_ms": 1200}})
        clean_env.setenv("DATABASE_URL", "postgresql://user:secret@db/inventory")

        get_active_settings(path)

        traces = [r for r in captured_logs() if r["message"] == "INVENTORY_CONFIG_TRACE"]
        assert len(traces) == 1
        trace = traces[0]
        assert trace["source"] == str(path)
        assert trace["dialect"] == "postgresql"
        assert trace["database_url_from_env"] is True
        assert trace["lock_timeout_ms"] == 1200
        assert trace["checksum"] == compute_checksum({"database": {"lock_timeout_ms": 1200}})
        assert "secret" not in str(trace)
