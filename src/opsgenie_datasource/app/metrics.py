from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from .correlator import Correlation, IncidentSource, correlate_incidents
from .dates import to_epoch_ms
from .models import IncidentTiming, QueryRequest, Target, TimeSeries, Window
from .request_adapter import get_request_id, get_window

logger = logging.getLogger(__name__)


class Metric(str, Enum):
    """Metrics this datasource can serve; values are the names shown in /search."""

    MTTA = "MTTA"


@dataclass(frozen=True)
class MetricContext:
    request_id: str | None
    window: Window
    target: Target
    source: IncidentSource


MetricHandler = Callable[[MetricContext], Awaitable[list[TimeSeries]]]


async def compute_mtta(context: MetricContext) -> list[TimeSeries]:
    """Mean time to acknowledge: first associated alert to first client notification.

    Incident starts are resolved from OpsGenie alerts. OpsGenie exposes no
    first-notification time to pair them with, so every datapoint carries a
    null value at the incident start time rather than a guessed duration.
    """
    correlation = await correlate_incidents(context.source)
    if not correlation.complete:
        logger.warning(
            "mtta event=partial_correlation request_id=%s ref_id=%s errors=%s",
            context.request_id,
            context.target.ref_id,
            correlation.errors,
        )

    timings = build_incident_timings(correlation)
    for timing in timings:
        logger.debug(
            "mtta event=incident_timing request_id=%s incident_id=%s started_at=%s "
            "start_alert_id=%s acknowledged_at=%s",
            context.request_id,
            timing.incident_id,
            timing.started_at,
            timing.start_alert_id,
            timing.acknowledged_at,
        )

    started = sorted(
        (timing for timing in timings if timing.started_at is not None),
        key=lambda timing: timing.started_at,
    )
    datapoints = [(timing.time_to_acknowledge_ms, to_epoch_ms(timing.started_at)) for timing in started]
    return [TimeSeries(target=context.target.target or Metric.MTTA.value, datapoints=datapoints)]


def build_incident_timings(correlation: Correlation) -> list[IncidentTiming]:
    timings: list[IncidentTiming] = []
    for item in correlation.incidents:
        start_alert = correlation.start_alerts.get(item.incident.id)
        timings.append(
            IncidentTiming(
                incident_id=item.incident.id,
                started_at=start_alert.created_at if start_alert else None,
                start_alert_id=start_alert.id if start_alert else None,
            )
        )
    return timings


METRIC_HANDLERS: dict[Metric, MetricHandler] = {
    Metric.MTTA: compute_mtta,
}


def supported_metrics() -> list[str]:
    return [metric.value for metric in METRIC_HANDLERS]


def resolve_metric(name: str | None) -> MetricHandler | None:
    """Handler for an exact metric name match, or None for unsupported names."""
    try:
        metric = Metric(name)
    except ValueError:
        return None
    return METRIC_HANDLERS.get(metric)


async def run_query(body: QueryRequest, source: IncidentSource) -> list[TimeSeries]:
    """Compute every supported target of a query concurrently, keeping target order."""
    window = get_window(body)
    request_id = get_request_id(body)

    pending: list[Awaitable[list[TimeSeries]]] = []
    for target in body.targets:
        handler = resolve_metric(target.target)
        if handler is None:
            logger.debug(
                "query event=unsupported_metric request_id=%s target=%s",
                request_id,
                target.target,
            )
            continue
        pending.append(
            handler(
                MetricContext(request_id=request_id, window=window, target=target, source=source)
            )
        )

    results = await asyncio.gather(*pending)
    return [series for group in results for series in group]
