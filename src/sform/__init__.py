from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("sform")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

from .config import SFConfig
from .exceptions import (
    AuthError,
    ConfigError,
    IncompleteResult,
    MalformedResponse,
    MissingCredentialsError,
    PreconditionError,
    SaveError,
    SformError,
    SoapFaultError,
    TransportError,
    UnknownModel,
)
from .models import ModelDescriptor, ModelRegistry
from .orm import SalesforceORM
from .query import QueryOrchestrator, QueryResult
from .record import RecordEntity
from .session import SessionManager
from .soap import SoapClient, SoapTransport

# Keep library modules quiet unless the app configures logging:
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AuthError",
    "ConfigError",
    "IncompleteResult",
    "MalformedResponse",
    "MissingCredentialsError",
    "ModelDescriptor",
    "ModelRegistry",
    "PreconditionError",
    "QueryOrchestrator",
    "QueryResult",
    "RecordEntity",
    "SFConfig",
    "SalesforceORM",
    "SaveError",
    "SessionManager",
    "SformError",
    "SoapClient",
    "SoapFaultError",
    "SoapTransport",
    "TransportError",
    "UnknownModel",
    "__version__",
]
