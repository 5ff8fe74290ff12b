"""Read-only reporting over stored clicks."""

import math

from clicklog.models.click import Click
from clicklog.schemas.click import (
    ApproxCoords,
    BrowserCoords,
    ClickLogEntry,
    ClickLogResponse,
    IpCoords,
    LatestClick,
    LatestResponse,
    PreciseCoords,
)
from clicklog.services.click_store import ClickStore

DEFAULT_LIMIT = 100
MAX_LIMIT = 1000
ADMIN_PAGE_SIZE = 200
# Largest offset SQLite accepts (signed 64-bit)
MAX_OFFSET = 2**63 - 1


def _parse_number(raw: str | None) -> float | None:
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def clamp_page(limit_raw: str | None, offset_raw: str | None) -> tuple[int, int]:
    """Turn raw query values into a usable (limit, offset).

    Missing, non-numeric or non-positive limits become DEFAULT_LIMIT and
    anything above MAX_LIMIT is capped; bad or negative offsets become 0 and huge ones are capped at
    MAX_OFFSET.
    """
    limit = _parse_number(limit_raw)
    if limit is None or limit <= 0:
        limit = DEFAULT_LIMIT
    limit = min(int(limit), MAX_LIMIT) or DEFAULT_LIMIT

    offset = _parse_number(offset_raw)
    if offset is None or offset < 0:
        offset = 0

    return limit, min(int(offset), MAX_OFFSET)


def best_coords(click: Click) -> BrowserCoords | IpCoords:
    """Browser coordinates when both are present, else the IP lookup's."""
    if click.has_precise_location:
        return BrowserCoords(
            lat=click.precise_lat,
            lon=click.precise_lon,
            accuracy_m=click.precise_accuracy_m,
        )
    return IpCoords(
        lat=click.approx_lat,
        lon=click.approx_lon,
        accuracy_km=click.approx_accuracy_km,
    )


def to_log_entry(click: Click) -> ClickLogEntry:
    return ClickLogEntry(
        id=click.id,
        created_at=click.created_at,
        ip=click.ip,
        ip_chain=click.ip_chain,
        best_coords=best_coords(click),
        approx=ApproxCoords(
            lat=click.approx_lat,
            lon=click.approx_lon,
            accuracy_km=click.approx_accuracy_km,
        ),
        precise=PreciseCoords(
            lat=click.precise_lat,
            lon=click.precise_lon,
            accuracy_m=click.precise_accuracy_m,
        ),
        consented=bool(click.consented),
    )


async def get_latest(store: ClickStore) -> LatestResponse:
    click = await store.latest()
    if click is None:
        return LatestResponse(data=None)
    return LatestResponse(data=LatestClick(
        id=click.id,
        created_at=click.created_at,
        ip=click.ip,
        ip_chain=click.ip_chain,
        coords=best_coords(click),
    ))


async def get_log_page(
    store: ClickStore,
    limit_raw: str | None = None,
    offset_raw: str | None = None,
) -> ClickLogResponse:
    limit, offset = clamp_page(limit_raw, offset_raw)
    clicks = await store.recent(limit, offset)
    return ClickLogResponse(
        data=[to_log_entry(click) for click in clicks],
        limit=limit,
        offset=offset,
    )
