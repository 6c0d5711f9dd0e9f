"""Tests for opbroker.config — environment configuration."""

import pytest
from pydantic import SecretStr

from opbroker.config import BrokerConfig, get_config, reset_config


class TestBrokerConfig:
    def test_defaults(self):
        cfg = BrokerConfig()
        assert cfg.op_binary == "op"
        assert cfg.cli_timeout == 30.0
        assert cfg.enabled_toolgroups == ""
        assert cfg.skip_health_checks is False
        assert cfg.has_token is False

    def test_frozen(self):
        cfg = BrokerConfig()
        with pytest.raises(AttributeError):
            cfg.op_binary = "other"  # type: ignore[misc]

    def test_token_masked_in_repr(self):
        cfg = BrokerConfig(service_account_token=SecretStr("ops_supersecret"))
        assert "ops_supersecret" not in repr(cfg)
        assert cfg.has_token is True

    def test_missing_required(self):
        missing = BrokerConfig().missing_required()
        assert [v.name for v in missing] == ["OP_SERVICE_ACCOUNT_TOKEN"]

    def test_nothing_missing_with_token(self):
        cfg = BrokerConfig(service_account_token=SecretStr("ops_x"))
        assert cfg.missing_required() == []


class TestGetConfig:
    def test_defaults_from_empty_env(self, clean_env):
        cfg = get_config()
        assert cfg.op_binary == "op"
        assert cfg.has_token is False
        assert cfg.log_level == "WARNING"

    def test_reads_env(self, clean_env, monkeypatch):
        monkeypatch.setenv("OP_SERVICE_ACCOUNT_TOKEN", "ops_abc")
        monkeypatch.setenv("OP_CLI_PATH", "/usr/local/bin/op")
        monkeypatch.setenv("OPBROKER_CLI_TIMEOUT", "5")
        monkeypatch.setenv("ENABLED_TOOLGROUPS", "readonly")
        monkeypatch.setenv("SKIP_HEALTH_CHECKS", "true")
        monkeypatch.setenv("OPBROKER_LOG_LEVEL", "debug")
        cfg = get_config()
        assert cfg.service_account_token.get_secret_value() == "ops_abc"
        assert cfg.op_binary == "/usr/local/bin/op"
        assert cfg.cli_timeout == 5.0
        assert cfg.enabled_toolgroups == "readonly"
        assert cfg.skip_health_checks is True
        assert cfg.log_level == "DEBUG"

    def test_singleton(self, clean_env):
        assert get_config() is get_config()

    def test_reset(self, clean_env, monkeypatch):
        first = get_config()
        monkeypatch.setenv("OP_CLI_PATH", "/opt/op")
        assert get_config() is first
        reset_config()
        assert get_config().op_binary == "/opt/op"

    @pytest.mark.parametrize("value", ["thirty", "", "0", "-5", "nan"])
    def test_bad_timeout_falls_back(self, clean_env, monkeypatch, value):
        monkeypatch.setenv("OPBROKER_CLI_TIMEOUT", value)
        cfg = get_config()
        assert cfg.cli_timeout == 30.0
        assert cfg.invalid_env == ("OPBROKER_CLI_TIMEOUT",)

    def test_valid_timeout_not_flagged(self, clean_env, monkeypatch):
        monkeypatch.setenv("OPBROKER_CLI_TIMEOUT", "2.5")
        cfg = get_config()
        assert cfg.cli_timeout == 2.5
        assert cfg.invalid_env == ()
