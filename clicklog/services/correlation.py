"""Correlation tokens binding a browser report to its click record."""

import secrets
from typing import Annotated

from fastapi import Depends
from starlette.requests import Request
from starlette.responses import Response

from clicklog.core.config import Settings, get_settings

CLICK_ID_BYTES = 16


def generate_click_id() -> str:
    """Generate a new click identifier (32 hex characters)."""
    return secrets.token_hex(CLICK_ID_BYTES)


def issue_correlation_cookie(response: Response, click_id: str, settings: Settings) -> None:
    """Hand the click identifier to the browser as a short-lived cookie.

    The cookie is HTTP-only and same-site, so page scripts cannot read it
    and cross-site requests do not carry it.
    """
    response.set_cookie(
        key=settings.correlation_cookie_name,
        value=click_id,
        max_age=settings.correlation_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )


async def get_correlation_token(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> str | None:
    """Read the correlation token back from the request cookie.

    An empty cookie counts as missing.
    """
    return request.cookies.get(settings.correlation_cookie_name) or None
