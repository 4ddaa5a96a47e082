from __future__ import annotations

import json
import logging
from typing import Any
from urllib import parse

import httpx

from ..config.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.opsgenie.com"


class OpsGenieError(RuntimeError):
    """Raised when an OpsGenie call fails or returns an unusable body."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OpsGenieClient:
    """Async client for the OpsGenie incident and alert REST endpoints."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"GenieKey {api_key}",
                "Accept": "application/json",
            },
            timeout=timeout_s,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> OpsGenieClient:
        if not settings.opsgenie_api_key:
            logger.warning("opsgenie event=missing_api_key base_url=%s", settings.opsgenie_base_url)
        return cls(
            api_key=settings.opsgenie_api_key,
            base_url=settings.opsgenie_base_url,
            timeout_s=settings.opsgenie_timeout_s,
        )

    async def list_incidents_page(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        return _data_list(await self._get_json("/v1/incidents", params=params))

    async def list_alerts_page(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        return _data_list(await self._get_json("/v2/alerts", params=params))

    async def get_associated_alert_ids(self, incident_id: str) -> list[str]:
        path = f"/v1/incidents/{parse.quote(incident_id, safe='')}/associated-alert-ids"
        raw = await self._get_json(path, params={"identifierType": "id", "order": "desc"})
        alert_ids: list[str] = []
        for item in _data_list(raw):
            # Some accounts return {"id": ...} objects instead of bare ids.
            if isinstance(item, dict):
                item = item.get("id")
            if item:
                alert_ids.append(str(item))
        return alert_ids

    async def ping(self) -> None:
        await self.list_incidents_page({"query": "", "offset": 0, "limit": 1})

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _get_json(self, path: str, *, params: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            response = await self._http.get(
                path,
                params={key: value for key, value in (params or {}).items() if value is not None},
            )
        except httpx.HTTPError as exc:
            raise OpsGenieError(f"OpsGenie request {path} failed: {exc}") from exc

        if response.status_code >= 400:
            raise OpsGenieError(
                f"OpsGenie request {path} failed with status {response.status_code}: "
                f"{response.text[:300]}",
                status_code=response.status_code,
            )
        if not response.content:
            return {}
        try:
            parsed = response.json()
        except json.JSONDecodeError as exc:
            raise OpsGenieError(f"OpsGenie request {path} returned non-JSON response.") from exc
        if isinstance(parsed, dict):
            return parsed
        raise OpsGenieError(
            f"OpsGenie request {path} returned unsupported JSON shape: {type(parsed)!r}"
        )


def _data_list(raw: dict[str, Any]) -> list[Any]:
    data = raw.get("data", [])
    if isinstance(data, list):
        return data
    raise OpsGenieError(f"OpsGenie response data is not a list: {type(data)!r}")
