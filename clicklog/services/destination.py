"""Destination URL validation for redirects."""

from pydantic import AnyUrl, TypeAdapter, ValidationError

MAX_URL_LENGTH = 2048
ALLOWED_SCHEMES = ("http", "https")

_url_adapter = TypeAdapter(AnyUrl)


def _utf16_length(value: str) -> int:
    # Browsers measure URL length in UTF-16 code units
    return len(value.encode("utf-16-le", "surrogatepass")) // 2


def safe_redirect_url(value: object, fallback: str) -> str:
    """Return a destination that is safe to put in a Location header.

    Anything that is not a string, is longer than MAX_URL_LENGTH UTF-16
    code units, does not parse as an absolute URL, or uses a scheme other
    than http/https yields ``fallback``. Otherwise the canonical
    serialization of the parsed URL is returned.
    """
    if not value or not isinstance(value, str):
        return fallback
    if _utf16_length(value) > MAX_URL_LENGTH:
        return fallback

    try:
        url = _url_adapter.validate_python(value)
    except ValidationError:
        return fallback

    if url.scheme not in ALLOWED_SCHEMES:
        return fallback

    return str(url)
