"""Pydantic schemas for the tracking API."""

from clicklog.schemas.click import (
    ApproxCoords,
    BrowserCoords,
    ClickLogEntry,
    ClickLogResponse,
    GeoReport,
    IpCoords,
    LatestClick,
    LatestResponse,
    PreciseCoords,
    ReportAck,
)

__all__ = [
    "GeoReport",
    "ReportAck",
    "BrowserCoords",
    "IpCoords",
    "ApproxCoords",
    "PreciseCoords",
    "LatestClick",
    "LatestResponse",
    "ClickLogEntry",
    "ClickLogResponse",
]
