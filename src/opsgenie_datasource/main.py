"""FastAPI application wiring for the OpsGenie SimpleJSON datasource.

Beginner terms used in this file:
- SimpleJSON datasource: the Grafana plugin protocol this service speaks
  (`/` health, `/search` metric names, `/query` series).
- Lifespan: startup/shutdown hook; used here to close the OpsGenie HTTP pool.
- app.state: a place to store shared runtime objects (settings, OpsGenie client).
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse

from .app.auth import build_auth_dependency
from .app.metrics import run_query, supported_metrics
from .app.models import QueryRequest, TimeSeries
from .app.opsgenie import OpsGenieClient, OpsGenieError
from .config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def create_app(
    *,
    settings_override: Settings | None = None,
    opsgenie_client: OpsGenieClient | None = None,
) -> FastAPI:
    """Application factory.

    Tests pass their own settings and an OpsGenie client wired to the mock API.
    """
    settings = settings_override or get_settings()
    # Caller-supplied clients are left open on shutdown.
    owns_client = opsgenie_client is None
    client = opsgenie_client or OpsGenieClient.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "startup event=ready auth_strategy=%s opsgenie_base_url=%s",
            settings.auth_strategy,
            client.base_url,
        )
        yield
        if owns_client:
            await client.aclose()

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        lifespan=lifespan,
        # Every route sits behind the same gate, including the health probe.
        dependencies=[Depends(build_auth_dependency(settings))],
    )
    app.state.settings = settings
    app.state.opsgenie = client

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "http_request method=%s path=%s status=%s duration_ms=%.1f client=%s",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
            request.client.host if request.client else "-",
        )
        return response

    # "Test connection" on the Grafana datasource config page expects a 200.
    @app.get("/", response_class=PlainTextResponse)
    def health() -> str:
        return f"{datetime.now(tz=UTC).isoformat()}: OK"

    @app.get("/test-opsgenie")
    async def test_opsgenie() -> dict[str, str]:
        try:
            await app.state.opsgenie.ping()
        except OpsGenieError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {"status": "ok"}

    # Feeds the metric picker on the panel query tab.
    @app.api_route("/search", methods=["GET", "POST"])
    def search() -> list[str]:
        return supported_metrics()

    @app.post("/query", response_model=list[TimeSeries])
    async def query(payload: QueryRequest) -> list[TimeSeries]:
        logger.info(
            "query event=start request_id=%s targets=%s",
            payload.request_id,
            [target.target for target in payload.targets],
        )
        result = await run_query(payload, app.state.opsgenie)
        logger.info(
            "query event=completed request_id=%s series=%s",
            payload.request_id,
            len(result),
        )
        return result

    return app


def run() -> None:
    """Console entry point: serve the module-level app with uvicorn."""
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run(app, host=settings.app_host, port=settings.app_port)


# Module-level app for `uvicorn opsgenie_datasource.main:app`.
app = create_app()
