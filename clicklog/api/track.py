"""Tracking endpoints: click capture and the bait page image."""

from fastapi import APIRouter, Request
from starlette.responses import Response

from clicklog.core.deps import ClickStoreDep, LocatorDep, SettingsDep
from clicklog.core.rate_limit import RATE_LIMIT_TRACK, limiter
from clicklog.services.bait import random_image_response
from clicklog.services.capture import ClickContext, capture_click, present

router = APIRouter(tags=["tracking"])


@router.get("/track")
@limiter.limit(RATE_LIMIT_TRACK)
async def track_click(
    request: Request,
    store: ClickStoreDep,
    locator: LocatorDep,
    settings: SettingsDep,
) -> Response:
    """Record a click and send the visitor on.

    ``u`` is the destination. When it equals the bait sentinel the visitor
    gets the interactive page and a correlation cookie instead of a redirect.
    """
    result = await capture_click(ClickContext.from_request(request), store, locator, settings)
    return present(result, settings)


@router.get("/image/random")
async def random_image(settings: SettingsDep) -> Response:
    """Random image for the bait page. Not logged as a click."""
    return random_image_response(settings.images_dir)
