from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

import orjson as _orjson


def _default(o: Any):
    # Normalize common non-JSON-native types; Decimals stay exact as strings
    if isinstance(o, Decimal):
        return str(o)
    if isinstance(o, (datetime, date)):
        return o.isoformat()
    raise TypeError(f"Type is not JSON serializable: {type(o).__name__}")


def dumps_bytes(obj: Any) -> bytes:
    # Allow non-string dict keys and coerce Decimals/datetimes
    return _orjson.dumps(obj, option=_orjson.OPT_NON_STR_KEYS, default=_default)


def dumps(obj: Any) -> str:
    """Serialize obj to a compact JSON string (UTF‑8)."""
    return dumps_bytes(obj).decode("utf-8")
