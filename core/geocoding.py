"""
Airport geocoding through the OpenStreetMap Nominatim search API.
"""
from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Callable, List

import httpx

from core.db.flights import airports_missing_coordinates, update_airport_coordinates
from core.geo import is_valid_coordinate

log = logging.getLogger("site.geocoding")

NOMINATIM_URL = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org/search")
USER_AGENT = "PersonalSite-FlightTracker/1.0 (airport geocoding)"
MAX_RETRIES = 3
RATE_LIMIT_DELAY = 1.0
BATCH_SIZE = 10


@dataclass
class GeoResult:
    latitude: float
    longitude: float
    country_code: str = "XX"


@dataclass
class GeocodeReport:
    total: int = 0
    processed: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


class NominatimGeocoder:
    def __init__(
        self,
        client: httpx.Client | None = None,
        base_url: str = NOMINATIM_URL,
        user_agent: str = USER_AGENT,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RATE_LIMIT_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client or httpx.Client(timeout=10.0)
        self.base_url = base_url
        self.user_agent = user_agent
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.sleep = sleep

    def _query_once(self, query: str) -> GeoResult:
        response = self.client.get(
            self.base_url,
            params={"q": query, "format": "json", "limit": 1, "addressdetails": 1},
            headers={"User-Agent": self.user_agent},
        )
        response.raise_for_status()
        data = response.json()
        if not data:
            raise LookupError("No results found")
        first = data[0]
        try:
            latitude, longitude = float(first["lat"]), float(first["lon"])
        except (KeyError, TypeError, ValueError):
            raise LookupError("Invalid coordinates returned from geocoding service") from None
        if latitude != latitude or longitude != longitude:  # NaN
            raise LookupError("Invalid coordinates returned from geocoding service")
        country_code = ((first.get("address") or {}).get("country_code") or "xx").upper()
        return GeoResult(latitude, longitude, country_code)

    def geocode(self, name: str, city: str | None = None) -> GeoResult | None:
        query = f"{name} {city or ''} airport".replace("  ", " ").strip()
        for attempt in range(self.max_retries + 1):
            try:
                result = self._query_once(query)
                log.debug("Geocoded %r -> %s, %s", query, result.latitude, result.longitude)
                return result
            except (httpx.HTTPError, LookupError, ValueError) as exc:
                log.warning("Geocoding attempt %s for %r failed: %s", attempt + 1, query, exc)
                if attempt < self.max_retries:
                    self.sleep(self.retry_delay * (2 ** attempt))
        log.error("Failed to geocode %r after %s attempts", query, self.max_retries + 1)
        return None

    def close(self) -> None:
        self.client.close()


def geocode_missing_airports(
    geocoder: NominatimGeocoder,
    dry_run: bool = False,
    batch_size: int = BATCH_SIZE,
    delay: float = RATE_LIMIT_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> GeocodeReport:
    """Geocode every airport with missing or (0, 0) coordinates."""
    airports = airports_missing_coordinates()
    report = GeocodeReport(total=len(airports))
    log.info("Found %s airport(s) needing coordinates", report.total)

    for start in range(0, len(airports), batch_size):
        batch = airports[start:start + batch_size]
        log.info("Batch %s: %s airport(s)", start // batch_size + 1, len(batch))
        for airport in batch:
            if not airport.get("name"):
                report.skipped += 1
                continue
            report.processed += 1
            result = geocoder.geocode(airport["name"], airport.get("city"))
            if result is None or not is_valid_coordinate(result.latitude, result.longitude):
                report.failed += 1
                report.errors.append(f"{airport['iata_code']}: no coordinates found")
            else:
                report.successful += 1
                if dry_run:
                    log.info("[dry-run] would set %s to [%s, %s]", airport["iata_code"], result.longitude, result.latitude)
                else:
                    update_airport_coordinates(airport["id"], result.latitude, result.longitude, result.country_code)
            if delay:
                sleep(delay)
    return report


__all__ = [
    "GeoResult",
    "GeocodeReport",
    "NominatimGeocoder",
    "geocode_missing_airports",
    "MAX_RETRIES",
    "RATE_LIMIT_DELAY",
    "BATCH_SIZE",
]
