# src/quarry/core/canonical.py
"""
Canonical JSON for cache signatures.

A request payload is first normalized to plain JSON types (numpy scalars,
enums, timestamps and containers are converted here), then serialized with
RFC 8785 / JCS by the rfc8785 package. Payloads that normalize to the same
structure get the same signature whatever their dict insertion order.

Non-finite floats are rejected with ValueError. A payload carrying NaN has
no stable identity; None is the only missing marker a signature accepts.
"""

import hashlib
import math
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

import numpy as np
import pandas as pd
import rfc8785


def _scalar(obj: Any) -> Any:
    """JSON-safe form of one scalar.

    Raises:
        ValueError: If obj is a NaN or infinite float
    """
    if isinstance(obj, (float, np.floating)):
        value = float(obj)
        if not math.isfinite(value):
            raise ValueError(f"Cannot canonicalize non-finite float {value!r}; use None")
        return value

    # (str, Enum) members are also str, so enums go first
    if isinstance(obj, Enum):
        return _scalar(obj.value)
    if obj is None or isinstance(obj, (str, bool, int)):
        return obj
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.integer):
        return int(obj)

    if obj is pd.NaT:
        return None
    # Naive timestamps are read as UTC
    if isinstance(obj, pd.Timestamp):
        ts = obj.tz_localize("UTC") if obj.tz is None else obj.tz_convert("UTC")
        return ts.isoformat()
    if isinstance(obj, datetime):
        aware = obj.replace(tzinfo=timezone.utc) if obj.tzinfo is None else obj
        return aware.astimezone(timezone.utc).isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    return obj


def normalize_value(obj: Any) -> Any:
    """Recursively normalize containers and scalars for canonical JSON.

    Tuples and numpy arrays become lists; dict keys become strings.
    """
    if isinstance(obj, dict):
        return {str(k): normalize_value(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [normalize_value(v) for v in obj]
    if isinstance(obj, np.ndarray):
        return [normalize_value(v) for v in obj.tolist()]
    return _scalar(obj)


def canonical_json(obj: Any) -> str:
    """Serialize to canonical JSON (RFC 8785).

    Raises:
        ValueError: If obj contains NaN or Infinity
        TypeError: If obj contains a type with no canonical form
    """
    return rfc8785.dumps(normalize_value(obj)).decode("utf-8")


def stable_hash(obj: Any) -> str:
    """SHA-256 hex digest of the canonical JSON form of obj."""
    return hashlib.sha256(canonical_json(obj).encode("utf-8")).hexdigest()
