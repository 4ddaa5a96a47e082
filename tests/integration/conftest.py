from __future__ import annotations

import json
import os
import socket
import subprocess
import sys
import time
from collections.abc import Iterator
from pathlib import Path
from urllib import error, request

import pytest

SRC_DIR = Path(__file__).resolve().parents[2] / "src"


def _pick_free_port() -> int:
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            return int(sock.getsockname()[1])
    except PermissionError:
        pytest.skip("Socket operations are blocked in this environment.")


def _wait_for_ok(url: str, headers: dict[str, str] | None = None, timeout_s: float = 20.0) -> None:
    deadline = time.time() + timeout_s
    while time.time() < deadline:
        try:
            req = request.Request(url=url, headers=headers or {})
            with request.urlopen(req, timeout=1.0) as response:
                if response.status == 200:
                    return
        except Exception:  # noqa: BLE001
            time.sleep(0.2)
    raise TimeoutError(f"Server at {url} did not become ready within {timeout_s:.1f}s")


def _start_server(app_path: str, port: int, env: dict[str, str]) -> subprocess.Popen[str]:
    cmd = [sys.executable, "-m", "uvicorn", app_path, "--host", "127.0.0.1", "--port", str(port)]
    return subprocess.Popen(  # noqa: S603
        cmd,
        env=env,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        text=True,
    )


def _stop_server(server: subprocess.Popen[str]) -> None:
    server.terminate()
    try:
        server.wait(timeout=5)
    except subprocess.TimeoutExpired:
        server.kill()
        server.wait(timeout=5)


@pytest.fixture
def datasource_base_url() -> Iterator[str]:
    if os.getenv("RUN_INTEGRATION_TESTS") != "1":
        pytest.skip("Set RUN_INTEGRATION_TESTS=1 to run uvicorn-backed integration tests.")

    env = os.environ.copy()
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(SRC_DIR), env.get("PYTHONPATH")]))

    mock_port = _pick_free_port()
    mock_url = f"http://127.0.0.1:{mock_port}"
    mock_server = _start_server("opsgenie_mock.opsgenie_api:app", mock_port, env)
    try:
        _wait_for_ok(f"{mock_url}/v1/incidents", headers={"Authorization": "GenieKey integration"})

        port = _pick_free_port()
        base_url = f"http://127.0.0.1:{port}"
        env["OPSGENIE_API_KEY"] = "integration"
        env["OPSGENIE_BASE_URL"] = mock_url
        env["HTTP_USER"] = ""
        server = _start_server("opsgenie_datasource.main:app", port, env)
        try:
            _wait_for_ok(f"{base_url}/")
            yield base_url
        finally:
            _stop_server(server)
    finally:
        _stop_server(mock_server)


def http_post_json(base_url: str, path: str, payload: dict[str, object] | None) -> tuple[int, object]:
    raw_payload = json.dumps(payload).encode("utf-8") if payload is not None else b""
    req = request.Request(
        url=f"{base_url}{path}",
        method="POST",
        data=raw_payload,
        headers={"Content-Type": "application/json"},
    )
    try:
        with request.urlopen(req, timeout=20.0) as response:
            return response.status, json.loads(response.read().decode("utf-8"))
    except error.HTTPError as exc:
        body = exc.read().decode("utf-8")
        return exc.code, json.loads(body)


@pytest.fixture
def post_json():
    return http_post_json
