from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from .config import SFConfig
from .exceptions import UnknownModel
from .models import ModelDescriptor, ModelRegistry
from .query import QueryOrchestrator, QueryResult
from .record import RecordEntity
from .session import SessionManager
from .soap import SoapTransport
from .transport import Transport

_logger = logging.getLogger(__name__)

ModelSpec = Union[ModelDescriptor, Mapping[str, Any]]


class SalesforceORM:
    """Entry point: one transport, one session, one model registry.

    Example::

        orm = SalesforceORM.from_config(SFConfig.from_env())
        orm.add_model({"name": "Account", "fields": ["Name", "Industry"]})
        accounts = await orm.search("Account", "Industry = 'Tech'")
    """

    def __init__(
        self,
        transport: Transport,
        *,
        session: Optional[SessionManager] = None,
        models: Optional[Iterable[ModelSpec]] = None,
    ) -> None:
        self.transport = transport
        self.session = session or SessionManager(transport)
        self.registry = ModelRegistry()
        self.queries = QueryOrchestrator(self.session, self.registry)
        for m in models or ():
            self.add_model(m)

    @classmethod
    def from_config(cls, cfg: Optional[SFConfig] = None, **kwargs: Any) -> SalesforceORM:
        """Build an ORM talking SOAP with credentials from ``cfg`` (or the environment)."""
        cfg = cfg or SFConfig.from_env()
        transport = SoapTransport.from_config(cfg)
        _logger.debug("Using SOAP endpoint %s as %s", transport.endpoint, cfg.username)
        return cls(transport, session=SessionManager.from_config(transport, cfg), **kwargs)

    # --------------------------- Models -------------------------------

    def add_model(self, model: ModelSpec) -> bool:
        """Register a model; False when the name is already taken."""
        if not isinstance(model, ModelDescriptor):
            model = ModelDescriptor.from_dict(model)
        return self.registry.register(model)

    def get_model(self, name: str) -> Optional[ModelDescriptor]:
        return self.registry.resolve(name)

    def _require_model(self, name: str) -> ModelDescriptor:
        model = self.registry.resolve(name)
        if model is None:
            raise UnknownModel(name)
        return model

    # --------------------------- Records ------------------------------

    def new_record(self, model_name: str, **values: Any) -> RecordEntity:
        """A fresh, unsaved record of ``model_name``."""
        return RecordEntity(self._require_model(model_name), self.session, values)

    def record_from_row(self, model_name: str, row: Mapping[str, Any]) -> RecordEntity:
        """Wrap an already-fetched row (e.g. from :meth:`query`) in a record."""
        return RecordEntity.from_row(self._require_model(model_name), self.session, row)

    async def get(self, model_name: str, record_id: str) -> RecordEntity:
        record = self.new_record(model_name)
        record.Id = record_id
        return await record.get()

    # --------------------------- Queries ------------------------------

    async def query(self, statement: str) -> QueryResult:
        return await self.queries.query(statement)

    async def search(
        self,
        model_name: str,
        where: str,
        extra_fields: Sequence[str] = (),
    ) -> List[RecordEntity]:
        return await self.queries.search(model_name, where, extra_fields)

    def escape(self, text: str) -> str:
        """Escape text for a SOQL string literal (delegates to the transport)."""
        return self.transport.escape(text)
