from __future__ import annotations

from typing import Any, Optional


class SformError(RuntimeError):
    """Base class for every error raised by sform."""


class ConfigError(SformError):
    """Raised when the library is configured with unusable values."""


class MissingCredentialsError(ConfigError):
    """Raised when the required Salesforce env vars are not present."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__("Missing required environment variables: " + ", ".join(missing))


class AuthError(SformError):
    """Login failed; no session could be established."""


class UnknownModel(SformError, LookupError):
    """A model name was requested that was never registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown model: {name!r}")


class MalformedResponse(SformError):
    """The remote service returned a shape the mapping code cannot interpret."""


class IncompleteResult(SformError):
    """A bulk query reported done != true; continuation is not supported."""


class SaveError(SformError):
    """The remote service answered a create/update with success=false."""

    def __init__(self, operation: str, errors: Any):
        self.operation = operation
        self.errors = errors
        super().__init__(f"{operation} rejected by Salesforce: {errors}")


class PreconditionError(SformError):
    """An operation was attempted on a record that is not in the right state."""


class TransportError(SformError):
    """Opaque failure raised by the SOAP transport."""


class SoapFaultError(TransportError):
    """The SOAP endpoint answered with a <soapenv:Fault>."""

    def __init__(self, fault_code: str, fault_string: str, status_code: Optional[int] = None):
        self.fault_code = fault_code
        self.fault_string = fault_string
        self.status_code = status_code
        super().__init__(f"{fault_code}: {fault_string}")
