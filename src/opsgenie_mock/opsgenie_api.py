from __future__ import annotations

import json
import re
from datetime import UTC, datetime
from pathlib import Path as FilePath
from typing import Any, Literal

from fastapi import Depends, FastAPI, Header, HTTPException, Path, Query

SEED_PATH = FilePath(__file__).resolve().parent / "data" / "opsgenie_seed.json"

SortOrder = Literal["asc", "desc"]

# Only the id filter form the datasource sends is understood, e.g. "alertId: (a OR b)".
_ALERT_ID_QUERY = re.compile(r"^\s*alertId\s*:\s*\((?P<ids>[^)]*)\)\s*$")


class OpsGenieStore:
    def __init__(self, seed: dict[str, Any] | None = None) -> None:
        data = seed if seed is not None else json.loads(SEED_PATH.read_text(encoding="utf-8"))
        self._incidents: dict[str, dict[str, Any]] = {
            incident["id"]: incident for incident in data.get("incidents", [])
        }
        self._alerts: dict[str, dict[str, Any]] = {alert["id"]: alert for alert in data.get("alerts", [])}

    def list_incidents(self, sort: str, order: SortOrder) -> list[dict[str, Any]]:
        results = _sorted_by_timestamp(list(self._incidents.values()), sort, order)
        return [{k: v for k, v in i.items() if k != "associatedAlertIds"} for i in results]

    def associated_alert_ids(self, incident_id: str) -> list[str]:
        incident = self._incidents.get(incident_id)
        if incident is None:
            raise KeyError(incident_id)
        return list(incident.get("associatedAlertIds", []))

    def list_alerts(self, query: str, sort: str, order: SortOrder) -> list[dict[str, Any]]:
        results = list(self._alerts.values())
        match = _ALERT_ID_QUERY.match(query or "")
        if match:
            wanted = {part.strip() for part in match.group("ids").split(" OR ") if part.strip()}
            results = [a for a in results if a["id"] in wanted]
        return _sorted_by_timestamp(results, sort, order)


def _sorted_by_timestamp(records: list[dict[str, Any]], sort: str, order: SortOrder) -> list[dict[str, Any]]:
    with_field = [r for r in records if r.get(sort)]
    without_field = [r for r in records if not r.get(sort)]
    with_field.sort(key=lambda r: _timestamp(r[sort]), reverse=order == "desc")
    return with_field + without_field


def _timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _page(records: list[dict[str, Any]], offset: int, limit: int) -> dict[str, Any]:
    return {"data": records[offset : offset + limit], "took": 0.001, "requestId": "mock-request"}


def require_genie_key(authorization: str | None = Header(default=None)) -> str:
    if not authorization or not authorization.startswith("GenieKey ") or not authorization[9:].strip():
        raise HTTPException(status_code=401, detail="Could not authenticate")
    return authorization[9:].strip()


def build_app(store: OpsGenieStore | None = None) -> FastAPI:
    store = store or OpsGenieStore()
    app = FastAPI(
        title="OpsGenie Mock API",
        version="1.0.0",
        description="Deterministic OpsGenie-like incident/alert API backed by seeded JSON data.",
        dependencies=[Depends(require_genie_key)],
    )
    app.state.store = store

    # Incident search queries are not modelled; every incident matches.
    @app.get("/v1/incidents")
    def list_incidents(
        sort: str = Query("insertedAt"),
        order: SortOrder = Query("desc"),
        offset: int = Query(0, ge=0),
        limit: int = Query(20, ge=1, le=100),
    ) -> dict[str, Any]:
        return _page(store.list_incidents(sort, order), offset, limit)

    @app.get("/v1/incidents/{identifier}/associated-alert-ids")
    def associated_alert_ids(
        identifier: str = Path(..., description="Incident id"),
        identifierType: str = Query("id"),  # noqa: N803
    ) -> dict[str, Any]:
        if identifierType != "id":
            raise HTTPException(status_code=422, detail="only identifierType=id is supported")
        try:
            alert_ids = store.associated_alert_ids(identifier)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="incident not found") from exc
        return {"data": alert_ids, "took": 0.001, "requestId": "mock-request"}

    @app.get("/v2/alerts")
    def list_alerts(
        query: str = Query(""),
        sort: str = Query("createdAt"),
        order: SortOrder = Query("desc"),
        offset: int = Query(0, ge=0),
        limit: int = Query(20, ge=1, le=100),
    ) -> dict[str, Any]:
        return _page(store.list_alerts(query, sort, order), offset, limit)

    return app


app = build_app()
