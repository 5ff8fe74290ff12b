"""Security response headers."""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Always overwritten
FIXED_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

# Only applied when the route left them unset
DEFAULT_CSP = "default-src 'self'; frame-ancestors 'self'; form-action 'self'"
DENIED_FEATURES = (
    "accelerometer",
    "camera",
    "geolocation",
    "gyroscope",
    "magnetometer",
    "microphone",
    "payment",
    "usb",
)
DEFAULT_PERMISSIONS_POLICY = ", ".join(f"{feature}=()" for feature in DENIED_FEATURES)

ONE_YEAR = 365 * 24 * 60 * 60


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to every response.

    Content-Security-Policy and Permissions-Policy are defaults only: the
    bait page ships its own nonce-based CSP and enables geolocation for its
    own origin, and those must reach the browser untouched. Everything else
    (redirects, JSON, the admin page) gets the locked-down defaults.
    """

    def __init__(self, app: object, enable_hsts: bool = False, hsts_max_age: int = ONE_YEAR) -> None:
        super().__init__(app)
        self.hsts = f"max-age={hsts_max_age}; includeSubDomains" if enable_hsts else None

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        headers = response.headers

        headers.update(FIXED_HEADERS)
        headers.setdefault("Content-Security-Policy", DEFAULT_CSP)
        headers.setdefault("Permissions-Policy", DEFAULT_PERMISSIONS_POLICY)
        if self.hsts:
            headers["Strict-Transport-Security"] = self.hsts

        return response
