"""
Deterministic hashing utilities.

Snapshot content hashes must be reproducible across processes and
databases, so every hash goes through the same canonical JSON form.
"""

import hashlib
import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable
from uuid import UUID


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    """
    Convert data to a canonical JSON string.

    - Keys are sorted alphabetically
    - No whitespace
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: Any) -> str:
    """Hex-encoded SHA-256 of the canonical JSON form of ``payload``."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_rows(rows: Iterable[dict[str, Any]], key: str = "slug") -> str:
    """
    Order-independent hash over a collection of row dicts.

    Rows are sorted by ``key`` before hashing so that two row sets with
    the same content produce the same digest regardless of insert order.
    """
    ordered = sorted(rows, key=lambda row: str(row.get(key, "")))
    return hash_payload(ordered)
