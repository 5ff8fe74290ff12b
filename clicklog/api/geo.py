"""Browser enrichment report endpoint."""

from fastapi import APIRouter, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError

from clicklog.core.deps import ClickStoreDep, CorrelationToken, SettingsDep
from clicklog.core.observability import record_enrichment
from clicklog.core.rate_limit import RATE_LIMIT_REPORT, limiter
from clicklog.schemas import ReportAck
from clicklog.services.enrichment import apply_report, parse_report

router = APIRouter(prefix="/api", tags=["enrichment"])


def _reject_oversized() -> HTTPException:
    record_enrichment("too_large")
    return HTTPException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        detail="Report too large",
    )


@router.post("/geo", response_model=ReportAck)
@limiter.limit(RATE_LIMIT_REPORT)
async def report_geo(
    request: Request,
    click_id: CorrelationToken,
    store: ClickStoreDep,
    settings: SettingsDep,
) -> ReportAck:
    """Receive precise location and device details for a click.

    The response is the same whether or not the click exists.
    """
    # Refuse before buffering when the client announces an oversized body
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > settings.max_report_bytes:
        raise _reject_oversized()

    body = await request.body()
    if len(body) > settings.max_report_bytes:
        raise _reject_oversized()

    report = parse_report(body)

    try:
        await apply_report(store, click_id, report)
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store report",
        )

    return ReportAck()
