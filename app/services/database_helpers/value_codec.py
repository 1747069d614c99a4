# /app/services/database_helpers/value_codec.py

"""
Converts document bodies to and from their stored JSON form.

JSON has no timestamp type, so `datetime` and `date` values are written as a
tagged object (`{"__timestamp__": "<ISO-8601>"}`) and turned back into
timezone-aware `datetime` objects on every read. The conversion walks nested
objects and arrays, so callers never see the stored representation.
"""

from datetime import datetime, date, time, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel

TIMESTAMP_KEY = "__timestamp__"


class _DeleteField:
    """Sentinel that removes a field when passed as a value to an update."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DELETE_FIELD"


DELETE_FIELD = _DeleteField()


def _as_aware(value: datetime) -> datetime:
    # Naive datetimes are treated as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def encode_value(value: Any) -> Any:
    """Recursively converts a Python value into its JSON-storable form."""
    if value is DELETE_FIELD:
        raise ValueError("DELETE_FIELD can only be used as a top-level update value.")
    if isinstance(value, datetime):
        return {TIMESTAMP_KEY: _as_aware(value).isoformat()}
    if isinstance(value, date):
        return {TIMESTAMP_KEY: datetime.combine(value, time.min, tzinfo=timezone.utc).isoformat()}
    if isinstance(value, BaseModel):
        return encode_value(value.model_dump(exclude_none=True))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [encode_value(v) for v in value]
    return value


def decode_value(value: Any) -> Any:
    """Recursively converts stored JSON back into Python values."""
    if isinstance(value, dict):
        if len(value) == 1 and TIMESTAMP_KEY in value:
            return _as_aware(datetime.fromisoformat(value[TIMESTAMP_KEY]))
        return {k: decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    return value
