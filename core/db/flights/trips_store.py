"""
Trips: named groups of flights, optionally linked to a blog post.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Dict, List, Optional

from core.db.base import fetch_all, fetch_one, get_conn, placeholders, utcnow_iso
from core.db.flights.flights_store import insert_flight, optional_id
from core.geo import parse_timestamp

log = logging.getLogger("site.flights")

TRIP_FLIGHT_FIELDS = ("flight_number", "departure_airport_id", "arrival_airport_id", "departure_time", "arrival_time")


class TripValidationError(ValueError):
    """Raised when a trip payload is rejected; the message is safe to show."""


def _parse_date(value, label: str) -> str:
    try:
        return date.fromisoformat(str(value)[:10]).isoformat()
    except (TypeError, ValueError):
        raise TripValidationError(f"Invalid {label}") from None


def _linked_post_id(cur, value) -> int | None:
    """Normalize an optional blog post id and make sure the post exists."""
    try:
        post_id = optional_id(value, "blog post")
    except ValueError as exc:
        raise TripValidationError(str(exc)) from None
    if post_id is not None:
        cur.execute("SELECT id FROM blog_posts WHERE id = ?", (post_id,))
        if cur.fetchone() is None:
            raise TripValidationError(f"Unknown blog post id {post_id}")
    return post_id


def validate_trip_flights(flights) -> None:
    if not isinstance(flights, list) or not flights:
        raise TripValidationError(
            "Missing required fields. Trip name, dates, and at least one flight are required."
        )
    for index, flight in enumerate(flights, start=1):
        if not isinstance(flight, dict):
            raise TripValidationError(f"Flight {index} is not an object")
        missing = [f for f in TRIP_FLIGHT_FIELDS if not flight.get(f)]
        if missing:
            raise TripValidationError(f"Flight {index} is missing required fields: {', '.join(missing)}")
        for key in ("departure_airport_id", "arrival_airport_id"):
            value = flight[key]
            if isinstance(value, bool) or not isinstance(value, int):
                raise TripValidationError(f"Flight {index} has invalid airport IDs")
        try:
            dep = parse_timestamp(flight["departure_time"])
            arr = parse_timestamp(flight["arrival_time"])
        except ValueError:
            raise TripValidationError(f"Flight {index} has invalid departure or arrival time") from None
        if (dep.tzinfo is None) != (arr.tzinfo is None):
            dep, arr = dep.replace(tzinfo=None), arr.replace(tzinfo=None)
        if dep >= arr:
            raise TripValidationError(f"Flight {index} departure time must be before arrival time")


def _trip_flights(trip_ids: List[int]) -> Dict[int, List[Dict]]:
    grouped: Dict[int, List[Dict]] = {tid: [] for tid in trip_ids}
    if not trip_ids:
        return grouped
    rows = fetch_all(
        f"""
        SELECT f.id, f.trip_id, f.flight_number, f.airline_code, f.airline_name, f.departure_time,
            f.arrival_time, f.flight_duration, f.distance_km, f.flight_status,
            f.departure_airport_id, f.arrival_airport_id,
            da.iata_code AS departure_iata, aa.iata_code AS arrival_iata
        FROM flights f
        JOIN airports da ON da.id = f.departure_airport_id
        JOIN airports aa ON aa.id = f.arrival_airport_id
        WHERE f.trip_id IN ({placeholders(trip_ids)})
        ORDER BY f.departure_time
        """,
        trip_ids,
    )
    for row in rows:
        grouped[row["trip_id"]].append(row)
    return grouped


def _shape(trips: List[Dict]) -> List[Dict]:
    flights = _trip_flights([t["id"] for t in trips])
    for trip in trips:
        trip["is_active"] = bool(trip.get("is_active"))
        trip["flights"] = flights.get(trip["id"], [])
        trip["flight_count"] = len(trip["flights"])
        title = trip.pop("blog_post_title", None)
        slug = trip.pop("blog_post_slug", None)
        trip["blog_post"] = (
            {"id": trip["blog_post_id"], "title": title, "slug": slug} if trip.get("blog_post_id") else None
        )
    return trips


_TRIP_SELECT = """
    SELECT t.id, t.name, t.start_date, t.end_date, t.blog_post_id, t.is_active,
        t.created_at, t.updated_at, bp.title AS blog_post_title, bp.slug AS blog_post_slug
    FROM trips t
    LEFT JOIN blog_posts bp ON bp.id = t.blog_post_id
"""


def create_trip(name: str, start_date, end_date, flights, blog_post_id: int | None = None) -> Dict:
    name = (name or "").strip()
    if not name or not start_date or not end_date:
        raise TripValidationError(
            "Missing required fields. Trip name, dates, and at least one flight are required."
        )
    start, end = _parse_date(start_date, "start_date"), _parse_date(end_date, "end_date")
    if end < start:
        raise TripValidationError("end_date must not be before start_date")
    validate_trip_flights(flights)

    now = utcnow_iso()
    with get_conn() as conn:
        cur = conn.cursor()
        blog_post_id = _linked_post_id(cur, blog_post_id)
        cur.execute(
            """
            INSERT INTO trips (name, start_date, end_date, blog_post_id, is_active, created_at, updated_at)
            VALUES (?, ?, ?, ?, 1, ?, ?)
            RETURNING id
            """,
            (name, start, end, blog_post_id, now, now),
        )
        trip_id = cur.fetchone()["id"]
        for flight in flights:
            insert_flight(cur, {**flight, "flight_status": flight.get("flight_status") or "completed"}, trip_id=trip_id)

    log.info("Created trip %s (%s) with %s flight(s)", trip_id, name, len(flights))
    return get_trip(trip_id)


def list_trips() -> List[Dict]:
    rows = fetch_all(_TRIP_SELECT + " WHERE t.is_active = 1 ORDER BY t.start_date DESC, t.id DESC")
    return _shape(rows)


def get_trip(trip_id: int) -> Optional[Dict]:
    row = fetch_one(_TRIP_SELECT + " WHERE t.id = ? AND t.is_active = 1", (trip_id,))
    if not row:
        return None
    return _shape([row])[0]


def update_trip(trip_id: int, changes: Dict) -> Optional[Dict]:
    existing = fetch_one("SELECT * FROM trips WHERE id = ? AND is_active = 1", (trip_id,))
    if not existing:
        return None

    sets: Dict[str, object] = {}
    if "name" in changes:
        name = (changes["name"] or "").strip()
        if not name:
            raise TripValidationError("name must not be empty")
        sets["name"] = name
    if "start_date" in changes:
        sets["start_date"] = _parse_date(changes["start_date"], "start_date")
    if "end_date" in changes:
        sets["end_date"] = _parse_date(changes["end_date"], "end_date")
    if sets.get("end_date", existing["end_date"]) < sets.get("start_date", existing["start_date"]):
        raise TripValidationError("end_date must not be before start_date")

    with get_conn() as conn:
        cur = conn.cursor()
        if "blog_post_id" in changes:
            sets["blog_post_id"] = _linked_post_id(cur, changes["blog_post_id"])
        sets["updated_at"] = utcnow_iso()
        cur.execute(
            f"UPDATE trips SET {', '.join(f'{k} = ?' for k in sets)} WHERE id = ?",
            list(sets.values()) + [trip_id],
        )
    return get_trip(trip_id)


def delete_trip(trip_id: int) -> bool:
    """Soft delete: the trip is hidden and its flights are detached, not removed."""
    with get_conn() as conn:
        cur = conn.cursor()
        cur.execute(
            "UPDATE trips SET is_active = 0, updated_at = ? WHERE id = ? AND is_active = 1",
            (utcnow_iso(), trip_id),
        )
        deleted = cur.rowcount > 0
        if deleted:
            cur.execute("UPDATE flights SET trip_id = NULL WHERE trip_id = ?", (trip_id,))
    if deleted:
        log.info("Deactivated trip %s", trip_id)
    return deleted


__all__ = [
    "TripValidationError",
    "TRIP_FLIGHT_FIELDS",
    "validate_trip_flights",
    "create_trip",
    "list_trips",
    "get_trip",
    "update_trip",
    "delete_trip",
]
