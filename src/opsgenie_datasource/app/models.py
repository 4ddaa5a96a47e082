"""Pydantic models shared across the HTTP routes, OpsGenie client, and metrics.

Beginner terms used in this file:
- Alias: the JSON key name (camelCase on the wire) for a snake_case field.
- populate_by_name: lets code build models with either the field or alias name.
- frozen: instances are read-only once built, so records can be shared safely.
- extra="allow": provider fields we do not model are kept on the record.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .dates import parse_timestamp


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ProviderRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)


class TimeRange(WireModel):
    """Dashboard time range (`range` in the query body)."""

    from_: datetime | None = Field(default=None, alias="from")
    to: datetime | None = None
    # Relative expressions such as {"from": "now-6h", "to": "now"}.
    raw: dict[str, Any] | None = None

    @field_validator("from_", "to", mode="before")
    @classmethod
    def parse_bounds(cls, value: Any) -> datetime | None:
        # Bounds Grafana sends as relative text ("now-6h") are left unset.
        try:
            return parse_timestamp(value)
        except ValueError:
            return None


class Target(WireModel):
    """One requested series inside a query.

    The user's request detail arrives under `payload` (Grafana 8+) or `data`
    (older releases). Both stay optional; presence is checked through
    `model_fields_set` so an explicit null still counts as present.
    """

    target: str | None = None
    ref_id: str | None = Field(default=None, alias="refId")
    type: str | None = None
    payload: Any = None
    data: Any = None


class QueryRequest(WireModel):
    """Request body for POST /query."""

    request_id: str | None = Field(default=None, alias="requestId")
    range: TimeRange | None = None
    interval_ms: int | None = Field(default=None, alias="intervalMs")
    max_data_points: int | None = Field(default=None, alias="maxDataPoints")
    targets: list[Target] = Field(default_factory=list)


class Window(BaseModel):
    """Time window one query returns data in."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    now: datetime
    from_: datetime | None = Field(default=None, alias="from")
    to: datetime | None = None
    interval_ms: int | None = Field(default=None, alias="intervalMs")
    max_data_points: int | None = Field(default=None, alias="maxDataPoints")


class Incident(ProviderRecord):
    id: str
    inserted_at: datetime | None = Field(default=None, alias="insertedAt")

    @field_validator("inserted_at", mode="before")
    @classmethod
    def parse_inserted_at(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)


class Alert(ProviderRecord):
    id: str
    created_at: datetime | None = Field(default=None, alias="createdAt")

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_created_at(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)


class IncidentAlerts(BaseModel):
    """An incident paired with the alert ids OpsGenie associates with it."""

    model_config = ConfigDict(frozen=True)

    incident: Incident
    alert_ids: tuple[str, ...] = ()
    # Set when the associated-alert lookup failed; alert_ids is then empty.
    error: str | None = None


class IncidentTiming(BaseModel):
    """MTTA building blocks for a single incident."""

    model_config = ConfigDict(frozen=True)

    incident_id: str
    started_at: datetime | None = None
    start_alert_id: str | None = None
    # First client notification time; OpsGenie exposes no source for it yet.
    acknowledged_at: datetime | None = None
    time_to_acknowledge_ms: int | None = None


class TimeSeries(BaseModel):
    """SimpleJSON timeserie response element: datapoints are [value, epoch_ms]."""

    target: str
    datapoints: list[tuple[float | None, int]] = Field(default_factory=list)
