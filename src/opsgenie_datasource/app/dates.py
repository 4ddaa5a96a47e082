from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Any

# ASP.NET AJAX dates, e.g. "/Date(1609459200000)/" or "/Date(1609459200000+0100)/".
_MS_AJAX_DATE = re.compile(r"^/Date\((-?\d+)(?:[+-]\d+)?\)[/\\]$")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse ISO-8601 strings, MS-AJAX dates, epoch milliseconds, or datetimes into UTC.

    Raises ValueError for anything else, including out-of-range epoch values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        return _from_epoch_ms(value)
    else:
        text = str(value).strip()
        match = _MS_AJAX_DATE.match(text)
        if match:
            return _from_epoch_ms(int(match.group(1)))
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def to_epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def _from_epoch_ms(value: float) -> datetime:
    try:
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    except (OverflowError, OSError) as exc:
        raise ValueError(f"epoch milliseconds out of range: {value}") from exc
