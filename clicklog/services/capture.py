"""Click capture flow: record a click, then redirect or show the bait page."""

from dataclasses import dataclass
from enum import Enum

import structlog
from fastapi import status
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.requests import Request
from starlette.responses import Response

from clicklog.core.config import Settings
from clicklog.core.observability import record_click_captured, record_storage_failure
from clicklog.models.click import Click
from clicklog.schemas.click import utc_now_iso
from clicklog.services.bait import render_bait_page
from clicklog.services.click_store import ClickStore
from clicklog.services.correlation import generate_click_id, issue_correlation_cookie
from clicklog.services.destination import safe_redirect_url
from clicklog.services.geoip import ApproximateLocator

logger = structlog.get_logger()


class CaptureStage(str, Enum):
    """Furthest step a click capture reached."""

    RECEIVED = "received"
    VALIDATED = "validated"
    GEOLOCATED = "geolocated"
    PERSISTED = "persisted"
    PRESENTED = "presented"


@dataclass
class ClickContext:
    """Server-observable facts about an inbound click."""

    raw_destination: str | None
    ip_chain: str = ""
    peer_ip: str | None = None
    user_agent: str = ""
    accept_language: str = ""
    referrer: str = ""

    @classmethod
    def from_request(cls, request: Request) -> "ClickContext":
        destinations = request.query_params.getlist("u")
        return cls(
            raw_destination=destinations[0] if destinations else None,
            ip_chain=request.headers.get("X-Forwarded-For", ""),
            peer_ip=request.client.host if request.client else None,
            user_agent=request.headers.get("User-Agent", ""),
            accept_language=request.headers.get("Accept-Language", ""),
            referrer=request.headers.get("Referer", ""),
        )

    @property
    def client_ip(self) -> str:
        """First X-Forwarded-For hop, else the transport peer address."""
        if self.ip_chain:
            first = self.ip_chain.split(",")[0].strip()
            if first:
                return first
        return self.peer_ip or ""


@dataclass
class CaptureResult:
    click_id: str
    dest_url: str
    bait: bool
    persisted: bool
    stage: CaptureStage


async def capture_click(
    context: ClickContext,
    store: ClickStore,
    locator: ApproximateLocator,
    settings: Settings,
) -> CaptureResult:
    """Record a click.

    Flow:
    1. Pick bait mode or validate the destination
    2. Look up the approximate location of the client IP
    3. Insert the click record (failures are logged and counted, not raised)

    The caller presents the result with ``present()``; that step never
    depends on whether the record was stored.
    """
    stage = CaptureStage.RECEIVED

    bait = context.raw_destination == settings.bait_sentinel
    if bait:
        dest_url = settings.bait_sentinel
    else:
        dest_url = safe_redirect_url(context.raw_destination, settings.redirect_default)
    stage = CaptureStage.VALIDATED

    client_ip = context.client_ip
    location = await locator.lookup(client_ip)
    stage = CaptureStage.GEOLOCATED

    click = Click(
        id=generate_click_id(),
        created_at=utc_now_iso(),
        ip=client_ip,
        ip_chain=context.ip_chain,
        user_agent=context.user_agent,
        accept_language=context.accept_language,
        referrer=context.referrer,
        dest_url=dest_url,
    )
    if location:
        click.approx_country = location.country
        click.approx_region = location.region
        click.approx_city = location.city
        click.approx_lat = location.latitude
        click.approx_lon = location.longitude
        click.approx_accuracy_km = location.accuracy_km

    persisted = False
    try:
        await store.add(click)
        persisted = True
        stage = CaptureStage.PERSISTED
    except SQLAlchemyError as e:
        # Never let storage break the redirect
        logger.error("Failed to store click", click_id=click.id, error=str(e))
        record_storage_failure("insert")

    record_click_captured("bait" if bait else "redirect")
    logger.info(
        "Click captured",
        click_id=click.id,
        bait=bait,
        persisted=persisted,
        approx_country=click.approx_country,
    )

    return CaptureResult(
        click_id=click.id,
        dest_url=dest_url,
        bait=bait,
        persisted=persisted,
        stage=stage,
    )


def present(result: CaptureResult, settings: Settings) -> Response:
    """Build the user-facing response for a captured click.

    Bait clicks get the interactive page plus the correlation cookie;
    everything else is a 302 to the validated destination.
    """
    if result.bait:
        response = render_bait_page()
        issue_correlation_cookie(response, result.click_id, settings)
    else:
        response = RedirectResponse(url=result.dest_url, status_code=status.HTTP_302_FOUND)

    result.stage = CaptureStage.PRESENTED
    return response
