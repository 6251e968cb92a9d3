"""
Airport storage: lookups, visit tracking and coordinate maintenance.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Tuple

from core.db.base import fetch_all, fetch_one, get_conn, utcnow_iso

log = logging.getLogger("site.flights")

_IATA_RE = re.compile(r"^[A-Z]{3}$")

_AIRPORT_COLUMNS = """
    id, iata_code, icao_code, name, city, country, country_code, latitude, longitude,
    timezone, is_active, has_visited, visit_count, first_visit_date, last_visit_date,
    created_at, updated_at
"""


def _normalize(row: Dict | None) -> Dict | None:
    if row is None:
        return None
    row["is_active"] = bool(row.get("is_active"))
    row["has_visited"] = bool(row.get("has_visited"))
    row["coordinates"] = [row.get("longitude"), row.get("latitude")]
    return row


def normalize_iata(code: str) -> str:
    code = (code or "").strip().upper()
    if not _IATA_RE.match(code):
        raise ValueError(f"Invalid IATA code '{code}'")
    return code


def create_airport(data: Dict) -> Dict:
    iata = normalize_iata(data.get("iata_code"))
    name = (data.get("name") or "").strip()
    if not name:
        raise ValueError("name is required")
    if get_airport_by_iata(iata):
        raise ValueError(f"Airport {iata} already exists")
    now = utcnow_iso()

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO airports (iata_code, icao_code, name, city, country, country_code, latitude,
                              longitude, timezone, is_active, has_visited, visit_count,
                              created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 1, 0, 0, ?, ?)
        RETURNING id
        """,
        (
            iata,
            (data.get("icao_code") or "").strip().upper() or None,
            name,
            (data.get("city") or "Unknown").strip(),
            (data.get("country") or "Unknown").strip(),
            (data.get("country_code") or "XX").strip().upper(),
            data.get("latitude"),
            data.get("longitude"),
            data.get("timezone"),
            now,
            now,
        ),
    )
    airport_id = cur.fetchone()["id"]
    conn.commit()
    conn.close()
    log.info("Created airport %s (%s)", airport_id, iata)
    return get_airport(airport_id)


def get_airport(airport_id: int) -> Optional[Dict]:
    return _normalize(fetch_one(f"SELECT {_AIRPORT_COLUMNS} FROM airports WHERE id = ?", (airport_id,)))


def get_airport_by_iata(code: str) -> Optional[Dict]:
    return _normalize(
        fetch_one(f"SELECT {_AIRPORT_COLUMNS} FROM airports WHERE iata_code = ?", ((code or "").strip().upper(),))
    )


def search_airports(query: str | None = None, limit: int = 100) -> List[Dict]:
    limit = max(1, min(int(limit), 500))
    sql = f"SELECT {_AIRPORT_COLUMNS} FROM airports WHERE is_active = 1"
    params: List = []
    q = (query or "").strip().lower()
    if q:
        pattern = f"%{q}%"
        sql += """
            AND (LOWER(name) LIKE ? OR LOWER(city) LIKE ? OR LOWER(iata_code) LIKE ?
                 OR LOWER(country) LIKE ?)
        """
        params.extend([pattern, pattern, pattern, pattern])
    sql += " ORDER BY has_visited DESC, visit_count DESC, name ASC LIMIT ?"
    params.append(limit)
    return [_normalize(r) for r in fetch_all(sql, params)]


def record_visit(airport_id: int, when: str, cur=None) -> None:
    """Mark an airport visited and widen its first/last visit window to include `when`."""
    sql = """
        UPDATE airports
        SET has_visited = 1,
            visit_count = visit_count + 1,
            first_visit_date = CASE
                WHEN first_visit_date IS NULL OR first_visit_date > ? THEN ? ELSE first_visit_date END,
            last_visit_date = CASE
                WHEN last_visit_date IS NULL OR last_visit_date < ? THEN ? ELSE last_visit_date END,
            updated_at = ?
        WHERE id = ?
    """
    params = (when, when, when, when, utcnow_iso(), airport_id)
    if cur is not None:
        cur.execute(sql, params)
        return
    conn = get_conn()
    c = conn.cursor()
    c.execute(sql, params)
    conn.commit()
    conn.close()


def airports_with_trips() -> List[Dict]:
    """Airports touched by at least one flight, with how many flights used them."""
    rows = fetch_all(
        f"""
        SELECT {", ".join("a." + c.strip() for c in _AIRPORT_COLUMNS.split(","))},
            (SELECT COUNT(*) FROM flights f
             WHERE f.departure_airport_id = a.id OR f.arrival_airport_id = a.id) AS flight_count
        FROM airports a
        WHERE EXISTS (
            SELECT 1 FROM flights f WHERE f.departure_airport_id = a.id OR f.arrival_airport_id = a.id
        )
        ORDER BY a.name
        """
    )
    return [_normalize(r) for r in rows]


def airports_missing_coordinates() -> List[Dict]:
    rows = fetch_all(
        f"""
        SELECT {_AIRPORT_COLUMNS} FROM airports
        WHERE latitude IS NULL OR longitude IS NULL OR (latitude = 0 AND longitude = 0)
        ORDER BY iata_code
        """
    )
    return [_normalize(r) for r in rows]


def update_airport_coordinates(airport_id: int, latitude: float, longitude: float, country_code: str | None = None) -> None:
    conn = get_conn()
    cur = conn.cursor()
    if country_code:
        cur.execute(
            "UPDATE airports SET latitude = ?, longitude = ?, country_code = ?, updated_at = ? WHERE id = ?",
            (latitude, longitude, country_code.upper(), utcnow_iso(), airport_id),
        )
    else:
        cur.execute(
            "UPDATE airports SET latitude = ?, longitude = ?, updated_at = ? WHERE id = ?",
            (latitude, longitude, utcnow_iso(), airport_id),
        )
    conn.commit()
    conn.close()


def lookup_or_create_airport(
    iata_code: str,
    name: str,
    city: str | None = None,
    country: str | None = None,
    geocoder=None,
) -> Tuple[Dict, bool]:
    """
    Return (airport, created). Existing airports are matched by IATA code; new ones
    are geocoded, falling back to (0, 0, 'XX') when the geocoder has nothing.
    """
    iata = normalize_iata(iata_code)
    name = (name or "").strip()
    if not name:
        raise ValueError("IATA code and name are required")

    existing = get_airport_by_iata(iata)
    if existing:
        return existing, False

    airport_city = (city or "").strip()
    if not airport_city:
        airport_city = name.split(",")[0].strip() if "," in name else "Unknown"
    airport_country = (country or "").strip() or "Unknown"

    latitude, longitude, country_code = 0.0, 0.0, "XX"
    if geocoder is not None:
        try:
            result = geocoder.geocode(name, airport_city)
        except Exception:
            log.warning("Geocoding failed for %s - %s", iata, name, exc_info=True)
            result = None
        if result is not None:
            latitude, longitude = result.latitude, result.longitude
            country_code = result.country_code or "XX"

    airport = create_airport(
        {
            "iata_code": iata,
            "name": name,
            "city": airport_city,
            "country": airport_country,
            "country_code": country_code,
            "latitude": latitude,
            "longitude": longitude,
        }
    )
    return airport, True


__all__ = [
    "normalize_iata",
    "create_airport",
    "get_airport",
    "get_airport_by_iata",
    "search_airports",
    "record_visit",
    "airports_with_trips",
    "airports_missing_coordinates",
    "update_airport_coordinates",
    "lookup_or_create_airport",
]
