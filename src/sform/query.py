from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from .exceptions import IncompleteResult, TransportError, UnknownModel
from .models import ModelDescriptor, ModelRegistry
from .record import RecordEntity, unwrap_query_result
from .session import SessionManager

_logger = logging.getLogger(__name__)


@dataclass
class QueryResult:
    """Outcome of a raw query: the transport error (if any) and the raw response."""

    error: Optional[TransportError]
    result: Optional[Any]

    @property
    def ok(self) -> bool:
        return self.error is None


def build_search_statement(
    model: ModelDescriptor,
    where: str,
    extra_fields: Sequence[str] = (),
) -> str:
    """
    SELECT <model fields> <extra fields> FROM <model> WHERE <where>.

    Each group is comma-joined and a comma bridges the two groups when both
    are present. ``where`` is passed through untouched.
    """
    declared = ", ".join(model.fields)
    extra = ", ".join(extra_fields)
    if declared and extra:
        declared += ","
    return f"SELECT {declared} {extra} FROM {model.name} WHERE {where}"


class QueryOrchestrator:
    """Runs raw SOQL and model-driven searches against one shared session."""

    def __init__(self, session: SessionManager, registry: ModelRegistry) -> None:
        self.session = session
        self.registry = registry

    async def query(self, statement: str) -> QueryResult:
        """
        Run a caller-supplied statement as-is.

        Transport failures are returned in ``QueryResult.error`` rather than
        raised; a failed login still raises AuthError.
        """
        formatted = self.session.transport.format_query(statement)
        try:
            response = await self.session.execute("query_all", formatted)
        except TransportError as e:
            return QueryResult(error=e, result=None)
        return QueryResult(error=None, result=response)

    async def search(
        self,
        model_name: str,
        where: str,
        extra_fields: Sequence[str] = (),
    ) -> List[RecordEntity]:
        """Return every record of ``model_name`` matching ``where``, in remote order."""
        model = self.registry.resolve(model_name)
        if model is None:
            raise UnknownModel(model_name)

        statement = build_search_statement(model, where, extra_fields)
        _logger.debug("search %s: %s", model_name, statement)
        response = await self.session.execute(
            "query_all", self.session.transport.format_query(statement)
        )

        done, rows = unwrap_query_result(response)
        if done is not True:
            raise IncompleteResult(
                f"Query on {model_name} did not complete in one batch; pagination is not supported"
            )

        records = [
            RecordEntity.from_row(model, self.session, row, extra_fields=extra_fields)
            for row in rows
        ]
        _logger.debug("search %s returned %d records", model_name, len(records))
        return records
