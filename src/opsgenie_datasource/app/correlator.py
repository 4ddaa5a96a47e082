"""Join OpsGenie incidents with the alerts OpsGenie associates with them.

The flow is: page through every incident, look up each incident's associated
alert ids concurrently, then read all of those alerts back with a single
OR-filtered alert search and index them by id. Remote failures and malformed
provider records never raise out of here; they are collected on the returned `Correlation` so callers can
tell a partial join from a complete one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

from pydantic import ValidationError

from .models import Alert, Incident, IncidentAlerts, ProviderRecord
from .paging import PageFetcher, PagedResult, fetch_all_pages

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=ProviderRecord)


class IncidentSource(Protocol):
    """The slice of the OpsGenie client the correlator needs."""

    list_incidents_page: PageFetcher
    list_alerts_page: PageFetcher

    async def get_associated_alert_ids(self, incident_id: str) -> list[str]: ...


@dataclass(frozen=True)
class Correlation:
    incidents: list[IncidentAlerts] = field(default_factory=list)
    alerts_by_id: dict[str, Alert] = field(default_factory=dict)
    # Earliest associated alert per incident id; None when none was fetched.
    start_alerts: dict[str, Alert | None] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.errors


async def correlate_incidents(source: IncidentSource) -> Correlation:
    errors: list[str] = []

    incident_page = await fetch_all_pages(
        source.list_incidents_page,
        query="",
        sort="insertedAt",
        order="desc",
    )
    _collect_error(errors, "incidents", incident_page)
    incidents = _validate_records(Incident, incident_page.items, "incident", errors)

    # All lookups must finish before the alert search is built.
    paired = list(
        await asyncio.gather(*(_lookup_associated_alerts(source, incident) for incident in incidents))
    )
    errors.extend(
        f"associated alerts for incident {item.incident.id}: {item.error}"
        for item in paired
        if item.error is not None
    )

    alert_ids = _union_alert_ids(item.alert_ids for item in paired)
    alerts: list[Alert] = []
    if alert_ids:
        alert_page = await fetch_all_pages(
            source.list_alerts_page,
            query=build_alert_query(alert_ids),
            sort="createdAt",
            order="desc",
        )
        _collect_error(errors, "alerts", alert_page)
        alerts = _validate_records(Alert, alert_page.items, "alert", errors)

    alerts_by_id = build_alert_lookup(alerts)
    start_alerts = {item.incident.id: find_incident_start(item.alert_ids, alerts) for item in paired}

    logger.info(
        "correlate event=completed incidents=%s alert_ids=%s alerts=%s complete=%s",
        len(paired),
        len(alert_ids),
        len(alerts_by_id),
        not errors,
    )
    return Correlation(
        incidents=paired,
        alerts_by_id=alerts_by_id,
        start_alerts=start_alerts,
        errors=errors,
    )


def build_alert_query(alert_ids: Iterable[str]) -> str:
    """OpsGenie search filter matching any of the given alert ids."""
    return "alertId: (" + " OR ".join(alert_ids) + ")"


def build_alert_lookup(alerts: Iterable[Alert]) -> dict[str, Alert]:
    return {alert.id: alert for alert in alerts}


def find_incident_start(alert_ids: Sequence[str], alerts: Iterable[Alert]) -> Alert | None:
    """Earliest-created alert among `alerts` whose id is in `alert_ids`."""
    wanted = set(alert_ids)
    candidates = [
        alert for alert in alerts if alert.id in wanted and alert.created_at is not None
    ]
    if not candidates:
        return None
    candidates.sort(key=lambda alert: alert.created_at)
    return candidates[0]


async def _lookup_associated_alerts(source: IncidentSource, incident: Incident) -> IncidentAlerts:
    try:
        alert_ids = await source.get_associated_alert_ids(incident.id)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "correlate event=associated_alerts_failed incident_id=%s error=%s",
            incident.id,
            exc,
        )
        return IncidentAlerts(incident=incident, error=str(exc))
    return IncidentAlerts(incident=incident, alert_ids=tuple(alert_ids))


def _union_alert_ids(groups: Iterable[Sequence[str]]) -> list[str]:
    seen: dict[str, None] = {}
    for group in groups:
        for alert_id in group:
            seen.setdefault(alert_id, None)
    return list(seen)


def _validate_records(
    model: type[RecordT], items: Iterable[Any], label: str, errors: list[str]
) -> list[RecordT]:
    """Validate provider records one by one; malformed ones are skipped and recorded."""
    records: list[RecordT] = []
    for position, raw in enumerate(items):
        try:
            records.append(model.model_validate(raw))
        except ValidationError as exc:
            record_id = raw.get("id") if isinstance(raw, dict) else None
            logger.warning(
                "correlate event=invalid_record kind=%s position=%s id=%s error_count=%s",
                label,
                position,
                record_id,
                exc.error_count(),
            )
            errors.append(f"invalid {label} record at position {position} (id={record_id}): {exc}")
    return records


def _collect_error(errors: list[str], label: str, result: PagedResult) -> None:
    if result.error is not None:
        errors.append(f"{label} page {result.pages_requested}: {result.error}")
