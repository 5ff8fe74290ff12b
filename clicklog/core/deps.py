"""Dependency injection utilities for FastAPI routes."""

import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Query, Request, status

from clicklog.core.config import Settings, get_settings
from clicklog.core.observability import record_enrichment
from clicklog.services.click_store import ClickStore
from clicklog.services.correlation import get_correlation_token
from clicklog.services.geoip import ApproximateLocator


def get_click_store(request: Request) -> ClickStore:
    """Click store built during application startup."""
    return request.app.state.click_store


def get_locator(request: Request) -> ApproximateLocator:
    """Approximate locator built during application startup."""
    return request.app.state.locator


async def require_admin_key(
    settings: Annotated[Settings, Depends(get_settings)],
    key: Annotated[str | None, Query()] = None,
) -> None:
    """Reject requests without the shared admin key.

    Raises HTTPException 401 on a missing or wrong key.
    """
    if not key or not secrets.compare_digest(key.encode(), settings.admin_key.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


async def require_correlation_token(
    token: Annotated[str | None, Depends(get_correlation_token)],
) -> str:
    """Correlation token for an enrichment report.

    Raises HTTPException 400 when the cookie is missing; this is a client
    error, not a server fault.
    """
    if token is None:
        record_enrichment("missing_token")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing correlation id",
        )
    return token


# Type aliases for dependency injection
ClickStoreDep = Annotated[ClickStore, Depends(get_click_store)]
LocatorDep = Annotated[ApproximateLocator, Depends(get_locator)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
CorrelationToken = Annotated[str, Depends(require_correlation_token)]
AdminKey = Depends(require_admin_key)
