from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

from .exceptions import ConfigError, MissingCredentialsError

# Salesforce drops an idle session after 120 minutes; we renew well before.
SESSION_LIFETIME_MINUTES = 120
DEFAULT_RENEWAL_MINUTES = 100

DEFAULT_LOGIN_URL = "https://login.salesforce.com"
DEFAULT_API_VERSION = "60.0"


def _normalize_api_version(value: str) -> str:
    # Accept the REST style "v60.0" as well
    value = value.strip()
    return value[1:] if value[:1] in ("v", "V") else value


def _parse_minutes(raw: Optional[str]) -> float:
    if raw is None or raw == "":
        return float(DEFAULT_RENEWAL_MINUTES)
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"SFORM_RENEWAL_MINUTES must be a number, got {raw!r}") from e


# ----------------------------------------------------------------------
# Configuration dataclass
# ----------------------------------------------------------------------
@dataclass
class SFConfig:
    """Configuration for the Salesforce SOAP login."""

    username: Optional[str] = None
    password: Optional[str] = None
    # Appended to the password; empty when the org trusts the caller's IP range
    security_token: str = ""

    # Base login URL (not the instance URL); use test.salesforce.com for sandboxes
    login_url: str = DEFAULT_LOGIN_URL
    api_version: str = DEFAULT_API_VERSION

    # How long a session is reused before we proactively log in again
    renewal_minutes: float = DEFAULT_RENEWAL_MINUTES

    def __post_init__(self) -> None:
        self.api_version = _normalize_api_version(self.api_version)
        self.login_url = self.login_url.rstrip("/")
        if not 0 < self.renewal_minutes < SESSION_LIFETIME_MINUTES:
            raise ConfigError(
                f"renewal_minutes must be between 0 and {SESSION_LIFETIME_MINUTES} "
                f"(exclusive), got {self.renewal_minutes}"
            )

    @classmethod
    def from_env(cls) -> SFConfig:
        """Load configuration from environment variables."""
        return cls(
            username=os.getenv("SF_USERNAME"),
            password=os.getenv("SF_PASSWORD"),
            security_token=os.getenv("SF_SECURITY_TOKEN", ""),
            login_url=os.getenv("SF_LOGIN_URL") or DEFAULT_LOGIN_URL,
            api_version=os.getenv("SF_API_VERSION") or DEFAULT_API_VERSION,
            renewal_minutes=_parse_minutes(os.getenv("SFORM_RENEWAL_MINUTES")),
        )

    @property
    def renewal_seconds(self) -> float:
        return self.renewal_minutes * 60

    def require_credentials(self) -> None:
        """Raise MissingCredentialsError unless username and password are set."""
        missing: List[str] = [
            k
            for k, v in {
                "SF_USERNAME": self.username,
                "SF_PASSWORD": self.password,
            }.items()
            if not v
        ]
        if missing:
            raise MissingCredentialsError(missing)
