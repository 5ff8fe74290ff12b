"""Pydantic schemas for click reports and read responses."""

import math
from datetime import datetime, timezone
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# JSON numbers beyond this are kept as floats, as a browser would see them
_MAX_SQL_INT = 2**63 - 1


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def coerce_number(value: Any) -> int | float | None:
    """Finite JSON number, else None. Booleans are not numbers."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, int) and abs(value) > _MAX_SQL_INT:
        return float(value)
    return value


def coerce_text(value: Any) -> str | None:
    """Non-empty string (numbers are stringified), else None."""
    if isinstance(value, str):
        return value or None
    if coerce_number(value) is not None:
        return str(value)
    return None


class GeoReport(BaseModel):
    """Enrichment report posted by the bait page.

    Each field is checked on its own; a value of the wrong type becomes
    None (or False for the flags) instead of failing the whole report.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    lat: float | None = None
    lon: float | None = None
    accuracy: int | float | None = None
    timestamp: str = Field(default_factory=utc_now_iso)
    consented: bool = False

    platform: str | None = None
    vendor: str | None = None
    language: str | None = None
    languages: str | None = None
    timezone: str | None = None
    hardware_concurrency: int | float | None = Field(default=None, alias="hardwareConcurrency")
    device_memory: int | float | None = Field(default=None, alias="deviceMemory")
    screen_w: int | float | None = Field(default=None, alias="screenW")
    screen_h: int | float | None = Field(default=None, alias="screenH")
    color_depth: int | float | None = Field(default=None, alias="colorDepth")
    do_not_track: bool = Field(default=False, alias="doNotTrack")

    @field_validator(
        "lat",
        "lon",
        "accuracy",
        "hardware_concurrency",
        "device_memory",
        "screen_w",
        "screen_h",
        "color_depth",
        mode="before",
    )
    @classmethod
    def _number(cls, v: Any) -> int | float | None:
        return coerce_number(v)

    @field_validator("platform", "vendor", "language", "timezone", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str | None:
        return coerce_text(v)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, v: Any) -> str:
        # Missing or unusable client time falls back to receipt time
        return coerce_text(v) or utc_now_iso()

    @field_validator("consented", "do_not_track", mode="before")
    @classmethod
    def _flag(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("languages", mode="before")
    @classmethod
    def _languages(cls, v: Any) -> str | None:
        if not isinstance(v, list):
            return None
        return ",".join("" if item is None else str(item) for item in v)

    def to_columns(self) -> dict[str, Any]:
        """Map the report onto the click table's enrichment columns."""
        return {
            "precise_lat": self.lat,
            "precise_lon": self.lon,
            "precise_accuracy_m": self.accuracy,
            "precise_timestamp": self.timestamp,
            "consented": self.consented,
            "device_platform": self.platform,
            "device_vendor": self.vendor,
            "device_language": self.language,
            "device_languages": self.languages,
            "device_timezone": self.timezone,
            "device_hardware_concurrency": self.hardware_concurrency,
            "device_memory_gb": self.device_memory,
            "device_screen_w": self.screen_w,
            "device_screen_h": self.screen_h,
            "device_color_depth": self.color_depth,
            "do_not_track": self.do_not_track,
        }


class ReportAck(BaseModel):
    """Response to an enrichment report."""

    ok: bool = True


class BrowserCoords(BaseModel):
    """Coordinates reported by the browser."""

    lat: float
    lon: float
    accuracy_m: float | None = None
    source: Literal["browser"] = "browser"


class IpCoords(BaseModel):
    """Coordinates from the IP lookup; both may be null."""

    lat: float | None = None
    lon: float | None = None
    accuracy_km: int | None = None
    source: Literal["ip"] = "ip"


BestCoords = Annotated[BrowserCoords | IpCoords, Field(discriminator="source")]


class ApproxCoords(BaseModel):
    lat: float | None = None
    lon: float | None = None
    accuracy_km: int | None = None


class PreciseCoords(BaseModel):
    lat: float | None = None
    lon: float | None = None
    accuracy_m: float | None = None


class LatestClick(BaseModel):
    """The most recent click with its best coordinates."""

    id: str
    created_at: str
    ip: str | None
    ip_chain: str | None
    coords: BestCoords


class LatestResponse(BaseModel):
    ok: bool = True
    data: LatestClick | None = None


class ClickLogEntry(BaseModel):
    """One row of the click log."""

    id: str
    created_at: str
    ip: str | None
    ip_chain: str | None
    best_coords: BestCoords
    approx: ApproxCoords
    precise: PreciseCoords
    consented: bool


class ClickLogResponse(BaseModel):
    """A page of the click log, newest first."""

    ok: bool = True
    data: list[ClickLogEntry]
    limit: int = Field(description="Page size actually applied")
    offset: int = Field(description="Offset actually applied")
