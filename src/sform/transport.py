# src/sform/transport.py
from __future__ import annotations

from typing import Any, Dict, Mapping, Protocol, Sequence


class SoapClient(Protocol):
    """
    Session handle returned by a successful login.
    Calls are blocking; the ORM runs them in a worker thread.
    Every response is wrapped the way the Partner API wraps it: {"result": ...}.
    """

    def query_all(self, statement: str) -> Dict[str, Any]: ...
    def create(self, records: Sequence[Mapping[str, Any]]) -> Dict[str, Any]: ...
    def update(self, records: Sequence[Mapping[str, Any]]) -> Dict[str, Any]: ...
    def delete(self, ids: Sequence[str]) -> Dict[str, Any]: ...


class Transport(Protocol):
    """Minimal transport protocol used by SessionManager, RecordEntity and QueryOrchestrator."""

    def login(self) -> SoapClient:
        """Authenticate with stored credentials; raise AuthError when rejected."""
        ...

    # Pre-processing ----------------------------------------------------------

    def format_query(self, statement: str) -> str: ...
    def format_object(self, fields: Mapping[str, Any], model_name: str) -> Dict[str, Any]: ...
    def escape(self, text: str) -> str: ...


# Response keys the ORM depends on
RESULT_KEY = "result"
RECORDS_KEY = "records"
DONE_KEY = "done"
METADATA_KEY = "attributes"
ID_FIELD = "Id"

