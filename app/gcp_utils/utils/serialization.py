"""JSON rendering of arbitrary values for log and error payloads."""

import base64
import dataclasses
import json
from datetime import date, datetime, time
from enum import Enum
from typing import Any


def _default(o: Any) -> Any:
    if dataclasses.is_dataclass(o) and not isinstance(o, type):
        return dataclasses.asdict(o)
    if isinstance(o, (datetime, date, time)):
        return o.isoformat()
    if isinstance(o, (set, frozenset)):
        return sorted(o, key=str)
    if isinstance(o, Enum):
        return o.value
    if isinstance(o, bytes):
        return base64.b64encode(o).decode("ascii")
    return str(o)


def stringify(value: Any) -> str:
    """Render a value as compact JSON.

    Never raises for unsupported types: dataclasses, datetimes, sets, enums and
    bytes get a JSON form, anything else falls back to ``str()``.

    Example:
        stringify({0: [RowError(index=0, reason="invalid")]})
        # '{"0":[{"index":0,"reason":"invalid","message":"","location":null}]}'
    """
    return json.dumps(value, default=_default, separators=(",", ":"))
