from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from .models import QueryRequest, Target, Window


def get_window(body: QueryRequest) -> Window:
    time_range = body.range
    return Window(
        now=datetime.now(tz=UTC),
        from_=time_range.from_ if time_range else None,
        to=time_range.to if time_range else None,
        interval_ms=body.interval_ms,
        max_data_points=body.max_data_points,
    )


def get_request_id(body: QueryRequest) -> str | None:
    """Dashboard request id (for example "Q123"), used only for log correlation."""
    return body.request_id


def get_request_detail(target: Target) -> Any:
    """Return the user's request object for a target.

    Grafana moved the query editor payload from `target.data` to
    `target.payload` around v8, and `data` stopped arriving as a JSON object.
    `payload` wins when both keys are present.
    """
    fields_set = target.model_fields_set
    if "payload" in fields_set:
        detail = target.payload
    elif "data" in fields_set:
        detail = target.data
    else:
        return None

    if isinstance(detail, str):
        try:
            decoded = json.loads(detail)
        except json.JSONDecodeError:
            return detail
        if isinstance(decoded, dict):
            return decoded
    return detail


def get_request_property(
    target: Target,
    property_name: str,
    default: Any = None,
    transform: Callable[[Any], Any] | None = None,
) -> Any:
    """Read one property from the target's request detail.

    `transform` is applied only to values that are present; a missing property
    returns `default` as-is.
    """
    detail = get_request_detail(target)
    if not isinstance(detail, Mapping) or property_name not in detail:
        return default
    value = detail[property_name]
    return transform(value) if transform is not None else value

