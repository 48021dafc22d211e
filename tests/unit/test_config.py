"""Tests for sform.config.SFConfig."""

import os
from unittest.mock import patch

import pytest

from sform.config import SFConfig
from sform.exceptions import ConfigError, MissingCredentialsError

_SF_VARS = (
    "SF_USERNAME",
    "SF_PASSWORD",
    "SF_SECURITY_TOKEN",
    "SF_LOGIN_URL",
    "SF_API_VERSION",
    "SFORM_RENEWAL_MINUTES",
)


@pytest.fixture
def clean_env(monkeypatch):
    for var in _SF_VARS:
        monkeypatch.delenv(var, raising=False)


class TestSFConfig:
    def test_default_values(self):
        cfg = SFConfig()

        assert cfg.login_url == "https://login.salesforce.com"
        assert cfg.api_version == "60.0"
        assert cfg.username is None
        assert cfg.security_token == ""
        assert cfg.renewal_minutes == 100
        assert cfg.renewal_seconds == 6000

    def test_from_env(self):
        env = {
            "SF_USERNAME": "user@example.com",
            "SF_PASSWORD": "pw",
            "SF_SECURITY_TOKEN": "tok",
            "SF_LOGIN_URL": "https://test.salesforce.com/",
            "SF_API_VERSION": "v59.0",
            "SFORM_RENEWAL_MINUTES": "45",
        }

        with patch.dict(os.environ, env, clear=False):
            cfg = SFConfig.from_env()

        assert cfg.username == "user@example.com"
        assert cfg.password == "pw"
        assert cfg.security_token == "tok"
        assert cfg.login_url == "https://test.salesforce.com"
        assert cfg.api_version == "59.0"
        assert cfg.renewal_minutes == 45

    def test_from_env_defaults(self, clean_env):
        cfg = SFConfig.from_env()

        assert cfg.login_url == "https://login.salesforce.com"
        assert cfg.username is None
        assert cfg.password is None
        assert cfg.renewal_minutes == 100

    def test_bad_renewal_minutes(self, clean_env, monkeypatch):
        monkeypatch.setenv("SFORM_RENEWAL_MINUTES", "soon")
        with pytest.raises(ConfigError, match="SFORM_RENEWAL_MINUTES"):
            SFConfig.from_env()

    @pytest.mark.parametrize("minutes", [0, 120, 180])
    def test_renewal_must_stay_inside_session_lifetime(self, minutes):
        with pytest.raises(ConfigError):
            SFConfig(renewal_minutes=minutes)


class TestRequireCredentials:
    def test_lists_missing_variables(self):
        with pytest.raises(MissingCredentialsError) as exc_info:
            SFConfig().require_credentials()

        assert exc_info.value.missing == ["SF_USERNAME", "SF_PASSWORD"]
        assert "SF_USERNAME" in str(exc_info.value)

    def test_security_token_is_optional(self):
        SFConfig(username="u", password="p").require_credentials()
