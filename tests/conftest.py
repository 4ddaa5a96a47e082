from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from opsgenie_datasource.app.opsgenie import OpsGenieClient
from opsgenie_datasource.config.settings import Settings
from opsgenie_datasource.main import create_app
from opsgenie_mock.opsgenie_api import OpsGenieStore, build_app

MOCK_BASE_URL = "http://opsgenie.mock"


class FakeIncidentSource:
    """Test-only stand-in for OpsGenieClient backed by in-memory lists.

    Records every page request and lookup so tests can assert on call order.
    """

    def __init__(
        self,
        *,
        incidents: list[dict[str, Any]] | None = None,
        alerts: list[dict[str, Any]] | None = None,
        associated: dict[str, list[str]] | None = None,
        failing_lookups: set[str] | None = None,
    ) -> None:
        self.incidents = incidents or []
        self.alerts = alerts or []
        self.associated = associated or {}
        self.failing_lookups = failing_lookups or set()
        self.incident_requests: list[dict[str, Any]] = []
        self.alert_requests: list[dict[str, Any]] = []
        self.lookups: list[str] = []

    async def list_incidents_page(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        self.incident_requests.append(dict(params))
        return self.incidents[params["offset"] : params["offset"] + params["limit"]]

    async def list_alerts_page(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        self.alert_requests.append(dict(params))
        return self.alerts[params["offset"] : params["offset"] + params["limit"]]

    async def get_associated_alert_ids(self, incident_id: str) -> list[str]:
        self.lookups.append(incident_id)
        if incident_id in self.failing_lookups:
            raise RuntimeError(f"lookup failed for {incident_id}")
        return list(self.associated.get(incident_id, []))


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "opsgenie_api_key": "test-key",
        "opsgenie_base_url": MOCK_BASE_URL,
        "http_user": "",
        "http_pass": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_mock_client(store: OpsGenieStore | None = None, *, api_key: str = "test-key") -> OpsGenieClient:
    return OpsGenieClient(
        api_key=api_key,
        base_url=MOCK_BASE_URL,
        transport=httpx.ASGITransport(app=build_app(store)),
    )


@pytest.fixture
def fake_source_factory() -> type[FakeIncidentSource]:
    return FakeIncidentSource


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    return make_settings


@pytest.fixture
def mock_client_factory() -> Callable[..., OpsGenieClient]:
    return make_mock_client


@pytest.fixture
def client() -> Iterator[TestClient]:
    app = create_app(settings_override=make_settings(), opsgenie_client=make_mock_client())
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def basic_auth_client() -> Iterator[TestClient]:
    settings = make_settings(http_user="grafana", http_pass="s3cret")
    app = create_app(settings_override=settings, opsgenie_client=make_mock_client())
    with TestClient(app) as test_client:
        yield test_client
