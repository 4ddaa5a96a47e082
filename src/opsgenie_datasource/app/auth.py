from __future__ import annotations

import logging
import secrets
from collections.abc import Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from ..config.settings import Settings

logger = logging.getLogger(__name__)

_basic = HTTPBasic(auto_error=False)


def build_auth_dependency(settings: Settings) -> Callable[..., str | None]:
    """Pick the request gate: anonymous access, or one fixed Basic credential."""
    if settings.auth_strategy == "anonymous":

        def allow_anonymous() -> None:
            return None

        return allow_anonymous

    expected_user = settings.http_user.encode("utf-8")
    expected_pass = settings.http_pass.encode("utf-8")

    def require_basic(credentials: HTTPBasicCredentials | None = Depends(_basic)) -> str:
        if credentials is not None:
            user_ok = secrets.compare_digest(credentials.username.encode("utf-8"), expected_user)
            pass_ok = secrets.compare_digest(credentials.password.encode("utf-8"), expected_pass)
            if user_ok and pass_ok:
                return credentials.username
        logger.info(
            "auth event=rejected username=%s",
            credentials.username if credentials else None,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )

    return require_basic
