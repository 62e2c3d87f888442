"""
Base Entity
Common entity type and document conversion helpers.
"""
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, TypeVar
from uuid import UUID, uuid4


# Type aliases
EntityId = UUID


def to_document_value(value: Any) -> Any:
    """Convert a field value into a JSON-compatible document value"""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_document_value(v) for v in value]
    if isinstance(value, dict):
        return {k: to_document_value(v) for k, v in value.items()}
    return value


def parse_uuid(value: Any) -> Optional[UUID]:
    if value is None or isinstance(value, UUID):
        return value
    return UUID(str(value))


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class Entity:
    """Base entity identified by a UUID"""
    id: EntityId = field(default_factory=uuid4)

    def to_dict(self) -> Dict[str, Any]:
        """Convert entity to a JSON-compatible document"""
        return {f.name: to_document_value(getattr(self, f.name)) for f in fields(self)}


T = TypeVar('T', bound=Entity)
