"""JSON serialization utilities."""

from __future__ import annotations

import base64
import datetime
import decimal
import json
from collections.abc import Mapping
from itertools import islice

_MAX_ITERABLE_ITEMS = 10_000


def json_default(obj: object) -> object:
    """JSON serializer for objects not serializable by default json code."""
    if isinstance(obj, (datetime.date, datetime.datetime)):
        return obj.isoformat()
    if isinstance(obj, decimal.Decimal):
        if obj == obj.to_integral_value():
            return int(obj)
        return float(obj)
    if isinstance(obj, bytes):
        try:
            return obj.decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(obj).decode("utf-8")
    if isinstance(obj, Mapping):
        return dict(obj)

    # pydantic models (supabase responses, trace events)
    model_dump = getattr(obj, "model_dump", None)
    if callable(model_dump):
        try:
            return model_dump(mode="json")
        except (TypeError, ValueError):
            pass

    # Bounded via islice to prevent OOM on infinite/huge iterables.
    if hasattr(obj, "__iter__") and not isinstance(obj, (str, bytes, dict, list)):
        try:
            return list(islice(obj, _MAX_ITERABLE_ITEMS))
        except (TypeError, StopIteration):
            pass

    return str(obj)


def to_jsonable(value: object) -> object:
    """Round-trip ``value`` through JSON so it only contains plain JSON types."""
    return json.loads(json.dumps(value, default=json_default))


def dumps_pretty(value: object) -> str:
    return json.dumps(value, indent=2, default=json_default)
