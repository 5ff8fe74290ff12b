"""Read-only click reporting endpoints (admin key required)."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Query
from fastapi.responses import HTMLResponse

from clicklog.core.deps import AdminKey, ClickStoreDep
from clicklog.schemas import ClickLogResponse, LatestResponse
from clicklog.services.admin import render_admin_page
from clicklog.services.reporting import ADMIN_PAGE_SIZE, get_latest, get_log_page

logger = structlog.get_logger()

router = APIRouter(tags=["reports"], dependencies=[AdminKey])


@router.get("/api/last", response_model=LatestResponse)
async def latest_click(store: ClickStoreDep) -> LatestResponse:
    """Latest click with its best available coordinates."""
    return await get_latest(store)


@router.get("/api/logs", response_model=ClickLogResponse)
async def click_log(
    store: ClickStoreDep,
    limit: Annotated[str | None, Query(description="Page size (default 100, max 1000)")] = None,
    offset: Annotated[str | None, Query(description="Rows to skip (default 0)")] = None,
) -> ClickLogResponse:
    """Recent clicks, newest first.

    Out-of-range or non-numeric paging values are corrected rather than
    rejected.
    """
    page = await get_log_page(store, limit, offset)
    logger.debug("Click log fetched", limit=page.limit, offset=page.offset, rows=len(page.data))
    return page


@router.get("/admin", response_class=HTMLResponse)
async def admin_page(store: ClickStoreDep) -> HTMLResponse:
    """HTML table of the most recent clicks."""
    clicks = await store.recent(ADMIN_PAGE_SIZE)
    return HTMLResponse(render_admin_page(clicks))
