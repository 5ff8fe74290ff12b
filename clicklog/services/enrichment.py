"""Enrichment flow: apply a browser report to its click record."""

import json
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError

from clicklog.core.observability import record_enrichment, record_storage_failure
from clicklog.schemas.click import GeoReport
from clicklog.services.click_store import ClickStore

logger = structlog.get_logger()


def parse_report(body: bytes) -> GeoReport:
    """Parse a raw report body.

    A body that is not a JSON object is treated as an empty report.
    """
    try:
        payload: Any = json.loads(body) if body else {}
    except (ValueError, UnicodeDecodeError):
        payload = {}
    if not isinstance(payload, dict):
        payload = {}
    return GeoReport.model_validate(payload)


async def apply_report(store: ClickStore, click_id: str, report: GeoReport) -> int:
    """Write a report onto the click record identified by ``click_id``.

    An unknown id updates nothing and is not an error. A repeated report for
    the same click replaces the previous one.

    Returns:
        Number of rows updated.

    Raises:
        SQLAlchemyError: if the update could not be written.
    """
    try:
        updated = await store.enrich(click_id, report.to_columns())
    except SQLAlchemyError as e:
        logger.error("Failed to store enrichment", click_id=click_id, error=str(e))
        record_storage_failure("enrich")
        record_enrichment("failed")
        raise

    record_enrichment("updated" if updated else "unknown_id")
    logger.info(
        "Enrichment applied",
        click_id=click_id,
        rows=updated,
        consented=report.consented,
    )
    return updated
