"""Time helpers."""

from __future__ import annotations

import time
from datetime import datetime, timezone


def epoch_ms() -> int:
    return int(time.time() * 1000)


def iso_from_ms(timestamp: int) -> str:
    """Render an epoch-milliseconds timestamp as ISO 8601 UTC with a ``Z`` suffix."""
    moment = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
