from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .exceptions import MalformedResponse, PreconditionError, SaveError
from .models import ModelDescriptor
from .session import SessionManager
from .transport import DONE_KEY, ID_FIELD, METADATA_KEY, RECORDS_KEY, RESULT_KEY

_logger = logging.getLogger(__name__)

# Attributes that live on the instance itself rather than in ``values``
_OWN_ATTRS = frozenset({"model", "session", "values", "Id"})


def _top_level(field_name: str) -> str:
    # Relationship paths ("Owner.Name") come back nested under "Owner"
    return field_name.split(".", 1)[0]


def unwrap_query_result(response: Any) -> Tuple[Any, List[Any]]:
    """Return (done, records) from a query_all response; raise on unexpected shapes."""
    try:
        result = response[RESULT_KEY]
        done = result[DONE_KEY]
        records = result.get(RECORDS_KEY)
    except (KeyError, TypeError, AttributeError) as e:
        raise MalformedResponse(f"Unexpected query response: {response!r}") from e

    if records is None:
        return done, []
    if isinstance(records, Mapping):
        # A lone row is not always wrapped in a list
        return done, [records]
    return done, list(records)


def first_save_result(response: Any, operation: str) -> str:
    """Return the id of the first entry of a create/update batch response."""
    try:
        results = response[RESULT_KEY]
        if isinstance(results, Mapping):
            results = [results]
        first = results[0]
    except (KeyError, IndexError, TypeError) as e:
        raise MalformedResponse(f"{operation} returned no batch result: {response!r}") from e

    if not isinstance(first, Mapping):
        raise MalformedResponse(f"{operation} returned a malformed batch result: {first!r}")
    if first.get("success") is False:
        raise SaveError(operation, first.get("errors"))

    new_id = first.get("id")
    if not new_id:
        raise MalformedResponse(f"{operation} result carries no id: {first!r}")
    return new_id


class RecordEntity:
    """One Salesforce record bound to a registered model.

    Field values are reachable as ``record["Name"]`` or ``record.Name``;
    only the model's declared fields (plus ``Id``) can be set.
    """

    def __init__(
        self,
        model: ModelDescriptor,
        session: SessionManager,
        values: Optional[Mapping[str, Any]] = None,
        *,
        extra_fields: Iterable[str] = (),
    ) -> None:
        self.model = model
        self.session = session
        self.values: Dict[str, Any] = {}
        self.Id: Optional[str] = None
        self._allowed = frozenset(model.fields) | {_top_level(f) for f in extra_fields}
        for key, value in (values or {}).items():
            self[key] = value

    @classmethod
    def from_row(
        cls,
        model: ModelDescriptor,
        session: SessionManager,
        row: Any,
        *,
        extra_fields: Iterable[str] = (),
    ) -> RecordEntity:
        """Build a persisted record from a query row."""
        record = cls(model, session, extra_fields=extra_fields)
        record._hydrate(row)
        return record

    # --------------------------- Field access -------------------------

    def __getitem__(self, key: str) -> Any:
        if key == ID_FIELD:
            return self.Id
        if key not in self._allowed:
            raise KeyError(key)
        return self.values.get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        if key == ID_FIELD:
            self.Id = value
            return
        if key not in self._allowed:
            raise KeyError(f"{key!r} is not a field of {self.model.name}")
        self.values[key] = value

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup fails, i.e. for field names
        allowed = self.__dict__.get("_allowed", ())
        if name in allowed:
            return self.__dict__["values"].get(name)
        raise AttributeError(f"{type(self).__name__} has no field {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _OWN_ATTRS or name.startswith("_"):
            object.__setattr__(self, name, value)
        else:
            self[name] = value

    def __contains__(self, key: object) -> bool:
        return key in self.values or (key == ID_FIELD and self.Id is not None)

    def __repr__(self) -> str:
        return f"<{self.model.name} Id={self.Id!r} {self.values!r}>"

    def object_values(self) -> Dict[str, Any]:
        """Declared fields with their current values; unset fields map to None."""
        return {f: self.values.get(f) for f in self.model.fields}

    def assigned_values(self) -> Dict[str, Any]:
        """Declared fields that were set or loaded, in declaration order.

        This is what create/update send: a field that was never assigned is
        left out, while one explicitly set to None is sent as None so the
        transport can clear it remotely.
        """
        return {f: self.values[f] for f in self.model.fields if f in self.values}

    def to_dict(self) -> Dict[str, Any]:
        return {ID_FIELD: self.Id, **self.values}

    # --------------------------- Remote operations --------------------

    def select_statement(self) -> str:
        fields = ", ".join(self.model.fields) or ID_FIELD
        record_id = self.session.transport.escape(str(self.Id))
        return (
            f"SELECT {fields} FROM {self.model.name} "
            f"WHERE Id = '{record_id}' AND IsDeleted = FALSE"
        )

    async def get(self) -> RecordEntity:
        """Refresh field values from Salesforce."""
        self._require_id("get")
        statement = self.session.transport.format_query(self.select_statement())
        response = await self.session.execute("query_all", statement)

        _, records = unwrap_query_result(response)
        if len(records) != 1:
            raise MalformedResponse(
                f"Expected exactly one {self.model.name} row for Id {self.Id}, got {len(records)}"
            )
        self._hydrate(records[0])
        return self

    async def create(self) -> str:
        """Insert this record; stores and returns the new Id."""
        obj = self.session.transport.format_object(self.assigned_values(), self.model.name)
        response = await self.session.execute("create", [obj])
        self.Id = first_save_result(response, "create")
        _logger.debug("Created %s %s", self.model.name, self.Id)
        return self.Id

    async def update(self) -> str:
        """Push the assigned fields to the existing record."""
        self._require_id("update")
        payload = dict(self.assigned_values(), Id=self.Id)
        obj = self.session.transport.format_object(payload, self.model.name)
        response = await self.session.execute("update", [obj])
        self.Id = first_save_result(response, "update")
        return self.Id

    async def delete(self) -> None:
        """Delete the remote record. The Id is cleared whatever the response says."""
        self._require_id("delete")
        await self.session.execute("delete", [self.Id])
        _logger.debug("Deleted %s %s", self.model.name, self.Id)
        self.Id = None

    # --------------------------- Internal helpers --------------------

    def _require_id(self, operation: str) -> None:
        if not self.Id:
            raise PreconditionError(f"Cannot {operation} a {self.model.name} without an Id")

    def _hydrate(self, row: Any) -> None:
        if not isinstance(row, Mapping):
            raise MalformedResponse(f"Expected a {self.model.name} row, got {row!r}")
        for key, value in row.items():
            if key == METADATA_KEY:
                continue
            if key == ID_FIELD:
                self.Id = value
            elif key in self._allowed:
                self.values[key] = value
            else:
                _logger.debug("Ignoring unexpected key %r on %s row", key, self.model.name)
