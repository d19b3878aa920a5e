"""
JSON serialization utilities for storage backends.

Handles datetime, Enum, Decimal, set and dataclass-like values the same
way in every backend.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from ordersaga.core.exceptions import SerializationError


class StorageEncoder(json.JSONEncoder):
    """
    JSON encoder for storage data.

    Handles:
    - datetime -> tagged ISO format string
    - Enum -> value
    - Decimal -> tagged string (preserves precision)
    - set/frozenset -> list
    - objects with to_dict() -> that dict
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return {"__type__": "datetime", "value": obj.isoformat()}
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, Decimal):
            return {"__type__": "decimal", "value": str(obj)}
        if isinstance(obj, (set, frozenset)):
            return sorted(obj, key=str)
        if hasattr(obj, "to_dict"):
            return obj.to_dict()

        return super().default(obj)


def storage_decoder(obj: dict[str, Any]) -> Any:
    """Reverses StorageEncoder's tagged values."""
    if "__type__" not in obj or "value" not in obj:
        return obj

    type_name = obj["__type__"]
    value = obj["value"]

    if type_name == "datetime":
        return datetime.fromisoformat(value)
    if type_name == "decimal":
        return Decimal(value)

    return obj


def serialize(data: Any) -> str:
    """
    Serialize data to JSON string.

    Raises:
        SerializationError: If serialization fails
    """
    try:
        return json.dumps(data, cls=StorageEncoder, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(
            f"Failed to serialize data: {e}",
            operation="serialize",
            data_type=type(data).__name__,
        ) from e


def deserialize(data: str | bytes | None) -> Any:
    """
    Deserialize JSON string to data.

    Raises:
        SerializationError: If deserialization fails
    """
    if data is None:
        return None
    try:
        return json.loads(data, object_hook=storage_decoder)
    except (TypeError, ValueError) as e:
        raise SerializationError(
            f"Failed to deserialize data: {e}",
            operation="deserialize",
            data_type=type(data).__name__,
        ) from e
