"""Click tracking business logic services."""

from clicklog.services.capture import (
    CaptureResult,
    CaptureStage,
    ClickContext,
    capture_click,
    present,
)
from clicklog.services.click_store import ClickStore
from clicklog.services.correlation import (
    generate_click_id,
    get_correlation_token,
    issue_correlation_cookie,
)
from clicklog.services.destination import safe_redirect_url
from clicklog.services.enrichment import apply_report, parse_report
from clicklog.services.geoip import (
    ApproximateLocation,
    ApproximateLocator,
    normalize_lookup,
)

__all__ = [
    # Capture
    "CaptureResult",
    "CaptureStage",
    "ClickContext",
    "capture_click",
    "present",
    # Store
    "ClickStore",
    # Correlation
    "generate_click_id",
    "get_correlation_token",
    "issue_correlation_cookie",
    # Destination
    "safe_redirect_url",
    # Enrichment
    "apply_report",
    "parse_report",
    # GeoIP
    "ApproximateLocation",
    "ApproximateLocator",
    "normalize_lookup",
]
