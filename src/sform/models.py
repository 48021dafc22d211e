from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Tuple

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelDescriptor:
    """A named sObject type and the ordered fields the ORM reads and writes."""

    name: str
    fields: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Model name must not be empty")
        # Accept any iterable (lists from JSON, generators) but store a tuple
        object.__setattr__(self, "fields", tuple(self.fields))

    @classmethod
    def from_dict(cls, description: Mapping[str, Any]) -> ModelDescriptor:
        """Build from {"name": "Account", "fields": ["Name", ...]}."""
        return cls(name=description["name"], fields=tuple(description.get("fields") or ()))


class ModelRegistry:
    """In-memory catalog of model descriptors, in registration order."""

    def __init__(self, models: Optional[Iterable[ModelDescriptor]] = None) -> None:
        self._models: List[ModelDescriptor] = []
        for m in models or ():
            self.register(m)

    def register(self, descriptor: ModelDescriptor) -> bool:
        """Add a descriptor; False (and no change) if the name is already taken."""
        if self.resolve(descriptor.name) is not None:
            _logger.debug("Model %s already registered; ignoring", descriptor.name)
            return False
        self._models.append(descriptor)
        _logger.debug("Registered model %s with %d fields", descriptor.name, len(descriptor.fields))
        return True

    def resolve(self, name: str) -> Optional[ModelDescriptor]:
        for model in self._models:
            if model.name == name:
                return model
        return None

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.resolve(name) is not None

    def __iter__(self) -> Iterator[ModelDescriptor]:
        return iter(self._models)

    def __len__(self) -> int:
        return len(self._models)
