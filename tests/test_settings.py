from __future__ import annotations

import pytest

from opsgenie_datasource.config.settings import Settings


def test_settings_read_plain_environment_names(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPSGENIE_API_KEY", "key-from-env")
    monkeypatch.setenv("OPSGENIE_BASE_URL", "https://api.eu.opsgenie.com")
    monkeypatch.setenv("HTTP_USER", "grafana")
    monkeypatch.setenv("HTTP_PASS", "s3cret")
    monkeypatch.setenv("APP_PORT", "8080")

    settings = Settings(_env_file=None)

    assert settings.opsgenie_api_key == "key-from-env"
    assert settings.opsgenie_base_url == "https://api.eu.opsgenie.com"
    assert settings.http_pass == "s3cret"
    assert settings.app_port == 8080
    assert settings.auth_strategy == "basic"


def test_anonymous_access_without_http_user(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HTTP_USER", raising=False)
    monkeypatch.delenv("APP_PORT", raising=False)

    settings = Settings(_env_file=None)

    assert settings.auth_strategy == "anonymous"
    assert settings.app_port == 3030
