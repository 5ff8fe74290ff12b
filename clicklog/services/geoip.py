"""Approximate location lookup from IP addresses."""

import ipaddress
import math
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import geoip2.database
import geoip2.errors
import httpx
import structlog

from clicklog.core.observability import record_geo_lookup

logger = structlog.get_logger()


@dataclass(frozen=True)
class ApproximateLocation:
    """Coarse location derived from an IP address.

    Any field the lookup did not provide is None, never 0 or "".
    """

    country: str | None = None  # ISO 3166-1 alpha-2 country code
    region: str | None = None  # comma-joined when the source gives several
    city: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    accuracy_km: int | None = None


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def normalize_lookup(raw: Mapping[str, Any] | None) -> ApproximateLocation | None:
    """Normalize a raw lookup hit into an ApproximateLocation.

    ``raw`` has the shape ``{country, region, city, ll, accuracy}`` where
    ``region`` is a string or a list of strings and ``ll`` is a
    ``[lat, lon]`` pair. A falsy ``raw`` is a miss.
    """
    if not raw:
        return None

    region = raw.get("region")
    if isinstance(region, (list, tuple)):
        region = ",".join(str(part) for part in region) or None
    elif region:
        region = str(region)
    else:
        region = None

    latitude = longitude = None
    ll = raw.get("ll")
    if isinstance(ll, (list, tuple)) and len(ll) == 2:
        latitude, longitude = _number(ll[0]), _number(ll[1])

    accuracy = _number(raw.get("accuracy"))

    return ApproximateLocation(
        country=raw.get("country") or None,
        region=region,
        city=raw.get("city") or None,
        latitude=latitude,
        longitude=longitude,
        accuracy_km=int(accuracy) if accuracy is not None else None,
    )


class ApproximateLocator:
    """Looks up coarse location for client IP addresses.

    Supports two backends:
    1. GeoIP2 city database (MaxMind) - for production use
    2. IP-API.com - optional free API fallback for development

    Lookups never raise: bad input, private addresses, misses and backend
    errors all come back as None.

    Usage:
        locator = ApproximateLocator("/data/GeoLite2-City.mmdb")
        location = await locator.lookup("8.8.8.8")
    """

    def __init__(
        self,
        geoip_database_path: str | None = None,
        ip_api_fallback: bool = False,
    ):
        self._geoip_reader: geoip2.database.Reader | None = None
        self._ip_api_fallback = ip_api_fallback

        if geoip_database_path:
            self._init_geoip2(geoip_database_path)

    def _init_geoip2(self, database_path: str) -> None:
        """Initialize GeoIP2 database reader."""
        path = Path(database_path)
        if not path.exists():
            logger.warning("GeoIP2 database not found", path=str(path))
            return
        try:
            self._geoip_reader = geoip2.database.Reader(str(path))
            logger.info("GeoIP2 database loaded", path=str(path))
        except (OSError, ValueError) as e:
            logger.error("Failed to load GeoIP2 database", error=str(e))

    async def lookup(self, ip_address: str | None) -> ApproximateLocation | None:
        """Look up the approximate location of an IP address."""
        if not ip_address:
            return None

        try:
            parsed = ipaddress.ip_address(ip_address)
        except ValueError:
            record_geo_lookup("miss")
            return None

        if not parsed.is_global:
            record_geo_lookup("miss")
            return None

        try:
            if self._geoip_reader:
                raw = self._lookup_geoip2(str(parsed))
            elif self._ip_api_fallback:
                raw = await self._lookup_ip_api(str(parsed))
            else:
                raw = None
            location = normalize_lookup(raw)
        except Exception as e:
            logger.debug("GeoIP lookup failed", ip=ip_address, error=str(e))
            record_geo_lookup("error")
            return None

        record_geo_lookup("hit" if location else "miss")
        return location

    def _lookup_geoip2(self, ip_address: str) -> dict[str, Any] | None:
        """Look up location using GeoIP2 database."""
        try:
            response = self._geoip_reader.city(ip_address)
        except geoip2.errors.AddressNotFoundError:
            return None

        ll = None
        if response.location.latitude is not None and response.location.longitude is not None:
            ll = [response.location.latitude, response.location.longitude]

        return {
            "country": response.country.iso_code,
            "region": [s.iso_code for s in response.subdivisions if s.iso_code],
            "city": response.city.name,
            "ll": ll,
            "accuracy": response.location.accuracy_radius,
        }

    async def _lookup_ip_api(self, ip_address: str) -> dict[str, Any] | None:
        """Look up location using IP-API.com (free tier).

        Note: IP-API has rate limits (45 requests/minute for free tier).
        Use GeoIP2 database for production.
        """
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"http://ip-api.com/json/{ip_address}",
                params={"fields": "status,countryCode,region,city,lat,lon"},
                timeout=2.0,
            )
        if response.status_code != 200:
            return None

        data = response.json()
        if data.get("status") != "success":
            return None

        return {
            "country": data.get("countryCode"),
            "region": data.get("region"),
            "city": data.get("city"),
            "ll": [data.get("lat"), data.get("lon")],
        }

    def close(self) -> None:
        """Close the GeoIP2 database reader."""
        if self._geoip_reader:
            self._geoip_reader.close()
            self._geoip_reader = None
