"""
Flight storage: CRUD, listing, statistics and route aggregation.
"""
from __future__ import annotations

import json
import logging
from typing import Dict, List, Optional, Tuple

from core.db.base import check_ids_exist, fetch_all, fetch_count, fetch_one, get_conn, utcnow_iso
from core.db.flights.airports_store import record_visit
from core.db.pagination import clamp_page_args, offset_for, paginate
from core.geo import flight_duration_minutes, haversine_km, is_valid_coordinate

log = logging.getLogger("site.flights")

FLIGHT_STATUSES = ("booked", "completed", "cancelled", "delayed")
FLIGHT_CLASSES = ("economy", "premium_economy", "business", "first")

_UPDATABLE = (
    "flight_number",
    "airline_code",
    "airline_name",
    "aircraft_type",
    "departure_airport_id",
    "arrival_airport_id",
    "departure_time",
    "arrival_time",
    "seat_number",
    "class",
    "notes",
    "trip_purpose",
    "is_favorite",
    "flight_status",
    "blog_post_id",
    "trip_id",
)

_FLIGHT_SELECT = """
    SELECT f.*,
        da.iata_code AS departure_iata, da.name AS departure_airport_name,
        da.city AS departure_city, da.country AS departure_country,
        da.latitude AS departure_lat, da.longitude AS departure_lng,
        aa.iata_code AS arrival_iata, aa.name AS arrival_airport_name,
        aa.city AS arrival_city, aa.country AS arrival_country,
        aa.latitude AS arrival_lat, aa.longitude AS arrival_lng,
        bp.title AS blog_post_title, bp.slug AS blog_post_slug
    FROM flights f
    JOIN airports da ON da.id = f.departure_airport_id
    JOIN airports aa ON aa.id = f.arrival_airport_id
    LEFT JOIN blog_posts bp ON bp.id = f.blog_post_id
"""


def _normalize(row: Dict | None) -> Dict | None:
    if row is None:
        return None
    row["is_favorite"] = bool(row.get("is_favorite"))
    try:
        row["photos"] = json.loads(row["photos"]) if row.get("photos") else []
    except (TypeError, ValueError):
        row["photos"] = []
    if "departure_iata" in row:
        row["origin"] = {
            "id": row["departure_airport_id"],
            "iata_code": row["departure_iata"],
            "name": row["departure_airport_name"],
            "city": row["departure_city"],
            "country": row["departure_country"],
            "coordinates": [row["departure_lng"], row["departure_lat"]],
        }
        row["destination"] = {
            "id": row["arrival_airport_id"],
            "iata_code": row["arrival_iata"],
            "name": row["arrival_airport_name"],
            "city": row["arrival_city"],
            "country": row["arrival_country"],
            "coordinates": [row["arrival_lng"], row["arrival_lat"]],
        }
    return row


def _airport_coords(cur, airport_id: int) -> Dict:
    cur.execute("SELECT id, latitude, longitude FROM airports WHERE id = ?", (airport_id,))
    row = cur.fetchone()
    if not row:
        raise ValueError(f"Unknown airport id {airport_id}")
    return row


def optional_id(value, label: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {label} id {value!r}") from None


def _check_links(cur, blog_post_id: int | None, trip_id: int | None) -> None:
    if blog_post_id is not None:
        check_ids_exist(cur, "blog_posts", [blog_post_id], "blog post")
    if trip_id is not None:
        check_ids_exist(cur, "trips", [trip_id], "trip")


def _derive(cur, dep_id: int, arr_id: int, departure_time: str, arrival_time: str) -> Tuple[int, float | None]:
    """Validate the airports and times; return (duration minutes, distance km or None)."""
    dep = _airport_coords(cur, dep_id)
    arr = _airport_coords(cur, arr_id)
    try:
        duration = flight_duration_minutes(departure_time, arrival_time)
    except ValueError as exc:
        raise ValueError(f"Invalid flight times: {exc}") from exc
    if duration == 0:
        raise ValueError("arrival must be after departure")
    distance = None
    if is_valid_coordinate(dep["latitude"], dep["longitude"]) and is_valid_coordinate(arr["latitude"], arr["longitude"]):
        distance = round(haversine_km(dep["latitude"], dep["longitude"], arr["latitude"], arr["longitude"]), 1)
    return duration, distance


def insert_flight(cur, data: Dict, trip_id: int | None = None) -> int:
    """Insert one flight on an open cursor (used directly by trip creation)."""
    status = data.get("flight_status") or "completed"
    if status not in FLIGHT_STATUSES:
        raise ValueError(f"Invalid flight_status '{status}'")
    seat_class = data.get("class") or None
    if seat_class is not None and seat_class not in FLIGHT_CLASSES:
        raise ValueError(f"Invalid class '{seat_class}'")
    for key in ("departure_airport_id", "arrival_airport_id", "departure_time", "arrival_time"):
        if not data.get(key):
            raise ValueError(f"{key} is required")

    dep_id, arr_id = int(data["departure_airport_id"]), int(data["arrival_airport_id"])
    duration, distance = _derive(cur, dep_id, arr_id, data["departure_time"], data["arrival_time"])
    blog_post_id = optional_id(data.get("blog_post_id"), "blog post")
    if trip_id is None:
        trip_id = optional_id(data.get("trip_id"), "trip")
        _check_links(cur, blog_post_id, trip_id)
    else:
        # trip row was inserted by the caller on this cursor
        _check_links(cur, blog_post_id, None)
    now = utcnow_iso()

    cur.execute(
        """
        INSERT INTO flights (
            flight_number, airline_code, airline_name, aircraft_type, departure_airport_id,
            arrival_airport_id, departure_time, arrival_time, flight_duration, distance_km,
            seat_number, class, notes, photos, trip_purpose, is_favorite, flight_status,
            blog_post_id, trip_id, created_at, updated_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        RETURNING id
        """,
        (
            data.get("flight_number"),
            data.get("airline_code"),
            data.get("airline_name"),
            data.get("aircraft_type"),
            dep_id,
            arr_id,
            data["departure_time"],
            data["arrival_time"],
            duration,
            distance,
            data.get("seat_number"),
            seat_class,
            data.get("notes"),
            json.dumps(data.get("photos") or []),
            data.get("trip_purpose"),
            1 if data.get("is_favorite") else 0,
            status,
            blog_post_id,
            trip_id,
            now,
            now,
        ),
    )
    flight_id = cur.fetchone()["id"]
    if status == "completed":
        record_visit(dep_id, str(data["departure_time"])[:10], cur=cur)
        record_visit(arr_id, str(data["arrival_time"])[:10], cur=cur)
    return flight_id


def create_flight(data: Dict) -> Dict:
    with get_conn() as conn:
        flight_id = insert_flight(conn.cursor(), data)
    log.info("Created flight %s (%s)", flight_id, data.get("flight_number") or "no number")
    return get_flight(flight_id)


def get_flight(flight_id: int) -> Optional[Dict]:
    return _normalize(fetch_one(_FLIGHT_SELECT + " WHERE f.id = ?", (flight_id,)))


def list_flights(
    page=1,
    limit=20,
    airline: str | None = None,
    year: int | str | None = None,
    status: str | None = None,
    search: str | None = None,
    trip_id: int | None = None,
) -> Tuple[List[Dict], Dict]:
    page, limit = clamp_page_args(page, limit, default=20, maximum=100)
    where, params = [], []
    if airline:
        where.append("(LOWER(COALESCE(f.airline_name, '')) LIKE ? OR UPPER(COALESCE(f.airline_code, '')) = ?)")
        params.extend([f"%{airline.lower()}%", airline.upper()])
    if year:
        where.append("substr(f.departure_time, 1, 4) = ?")
        params.append(str(int(year)))
    if status:
        where.append("f.flight_status = ?")
        params.append(status)
    if trip_id is not None:
        where.append("f.trip_id = ?")
        params.append(int(trip_id))
    if search:
        pattern = f"%{search.strip().lower()}%"
        where.append(
            """(
                LOWER(COALESCE(f.flight_number, '')) LIKE ?
                OR LOWER(COALESCE(f.airline_name, '')) LIKE ?
                OR LOWER(da.iata_code) LIKE ? OR LOWER(da.name) LIKE ? OR LOWER(da.city) LIKE ?
                OR LOWER(aa.iata_code) LIKE ? OR LOWER(aa.name) LIKE ? OR LOWER(aa.city) LIKE ?
            )"""
        )
        params.extend([pattern] * 8)
    where_sql = (" WHERE " + " AND ".join(where)) if where else ""

    total = fetch_count(
        f"""
        SELECT COUNT(*) AS count FROM flights f
        JOIN airports da ON da.id = f.departure_airport_id
        JOIN airports aa ON aa.id = f.arrival_airport_id
        {where_sql}
        """,
        params,
    )
    rows = fetch_all(
        _FLIGHT_SELECT + where_sql + " ORDER BY f.departure_time DESC, f.id DESC LIMIT ? OFFSET ?",
        params + [limit, offset_for(page, limit)],
    )
    return [_normalize(r) for r in rows], paginate(page, limit, total)


def update_flight(flight_id: int, changes: Dict) -> Optional[Dict]:
    existing = fetch_one("SELECT * FROM flights WHERE id = ?", (flight_id,))
    if not existing:
        return None

    sets = {k: changes[k] for k in _UPDATABLE if k in changes}
    if "flight_status" in sets and sets["flight_status"] not in FLIGHT_STATUSES:
        raise ValueError(f"Invalid flight_status '{sets['flight_status']}'")
    if sets.get("class") is not None and sets["class"] not in FLIGHT_CLASSES:
        raise ValueError(f"Invalid class '{sets['class']}'")
    if "is_favorite" in sets:
        sets["is_favorite"] = 1 if sets["is_favorite"] else 0
    if "photos" in changes:
        sets["photos"] = json.dumps(changes["photos"] or [])
    if "blog_post_id" in sets:
        sets["blog_post_id"] = optional_id(sets["blog_post_id"], "blog post")
    if "trip_id" in sets:
        sets["trip_id"] = optional_id(sets["trip_id"], "trip")

    merged = {**existing, **sets}
    with get_conn() as conn:
        cur = conn.cursor()
        _check_links(cur, sets.get("blog_post_id"), sets.get("trip_id"))
        if {"departure_airport_id", "arrival_airport_id", "departure_time", "arrival_time"} & set(sets):
            duration, distance = _derive(
                cur,
                int(merged["departure_airport_id"]),
                int(merged["arrival_airport_id"]),
                merged["departure_time"],
                merged["arrival_time"],
            )
            sets["flight_duration"] = duration
            sets["distance_km"] = distance
        sets["updated_at"] = utcnow_iso()
        cur.execute(
            f"UPDATE flights SET {', '.join(f'{k} = ?' for k in sets)} WHERE id = ?",
            list(sets.values()) + [flight_id],
        )
        if merged["flight_status"] == "completed" and existing["flight_status"] != "completed":
            record_visit(int(merged["departure_airport_id"]), str(merged["departure_time"])[:10], cur=cur)
            record_visit(int(merged["arrival_airport_id"]), str(merged["arrival_time"])[:10], cur=cur)

    log.info("Updated flight %s", flight_id)
    return get_flight(flight_id)


def delete_flight(flight_id: int) -> bool:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("DELETE FROM flights WHERE id = ?", (flight_id,))
    deleted = cur.rowcount > 0
    conn.commit()
    conn.close()
    return deleted


def get_flight_statistics() -> Dict:
    totals = fetch_one(
        """
        SELECT COUNT(*) AS total_flights,
            COALESCE(SUM(distance_km), 0) AS total_distance,
            COALESCE(SUM(flight_duration), 0) AS total_flight_time
        FROM flights
        WHERE flight_status = 'completed'
        """
    ) or {}
    unique_airports = fetch_count(
        """
        SELECT COUNT(DISTINCT airport_id) AS count FROM (
            SELECT departure_airport_id AS airport_id FROM flights WHERE flight_status = 'completed'
            UNION
            SELECT arrival_airport_id AS airport_id FROM flights WHERE flight_status = 'completed'
        ) visited
        """
    )
    unique_countries = fetch_count(
        """
        SELECT COUNT(DISTINCT a.country) AS count
        FROM (
            SELECT departure_airport_id AS airport_id FROM flights WHERE flight_status = 'completed'
            UNION
            SELECT arrival_airport_id AS airport_id FROM flights WHERE flight_status = 'completed'
        ) visited
        JOIN airports a ON a.id = visited.airport_id
        """
    )
    unique_airlines = fetch_count(
        """
        SELECT COUNT(DISTINCT airline_name) AS count
        FROM flights
        WHERE flight_status = 'completed' AND airline_name IS NOT NULL
        """
    )
    favorite = fetch_one(
        """
        SELECT airline_name, COUNT(*) AS flight_count
        FROM flights
        WHERE flight_status = 'completed' AND airline_name IS NOT NULL
        GROUP BY airline_name
        ORDER BY flight_count DESC, airline_name
        LIMIT 1
        """
    )
    longest = fetch_one(
        _FLIGHT_SELECT
        + " WHERE f.flight_status = 'completed' AND f.distance_km IS NOT NULL ORDER BY f.distance_km DESC LIMIT 1"
    )
    most_visited = fetch_one(
        """
        SELECT a.name, a.iata_code, COUNT(*) AS visit_count
        FROM (
            SELECT departure_airport_id AS airport_id FROM flights WHERE flight_status = 'completed'
            UNION ALL
            SELECT arrival_airport_id AS airport_id FROM flights WHERE flight_status = 'completed'
        ) legs
        JOIN airports a ON a.id = legs.airport_id
        GROUP BY a.id, a.name, a.iata_code
        ORDER BY visit_count DESC, a.name
        LIMIT 1
        """
    )
    return {
        "totalFlights": int(totals.get("total_flights") or 0),
        "totalDistance": float(totals.get("total_distance") or 0),
        "totalFlightTime": int(totals.get("total_flight_time") or 0),
        "uniqueAirports": unique_airports,
        "uniqueCountries": unique_countries,
        "uniqueAirlines": unique_airlines,
        "favoriteAirline": favorite["airline_name"] if favorite else "N/A",
        "longestFlight": _normalize(longest),
        "mostVisitedAirport": f"{most_visited['name']} ({most_visited['iata_code']})" if most_visited else "N/A",
    }


def get_routes() -> List[Dict]:
    rows = fetch_all(
        """
        SELECT f.departure_airport_id, f.arrival_airport_id,
            COUNT(*) AS flight_count, MAX(f.distance_km) AS distance_km,
            da.iata_code AS departure_iata, da.name AS departure_airport_name,
            da.latitude AS departure_lat, da.longitude AS departure_lng,
            aa.iata_code AS arrival_iata, aa.name AS arrival_airport_name,
            aa.latitude AS arrival_lat, aa.longitude AS arrival_lng
        FROM flights f
        JOIN airports da ON da.id = f.departure_airport_id
        JOIN airports aa ON aa.id = f.arrival_airport_id
        WHERE f.flight_status != 'cancelled'
        GROUP BY f.departure_airport_id, f.arrival_airport_id,
            da.iata_code, da.name, da.latitude, da.longitude,
            aa.iata_code, aa.name, aa.latitude, aa.longitude
        ORDER BY flight_count DESC, departure_iata, arrival_iata
        """
    )
    for row in rows:
        row["flight_count"] = int(row["flight_count"])
        row["departure_coordinates"] = [row["departure_lng"], row["departure_lat"]]
        row["arrival_coordinates"] = [row["arrival_lng"], row["arrival_lat"]]
    return rows


def find_flight_reference_problems() -> Dict[str, List[Dict]]:
    """
    Integrity report: flights pointing at airports that no longer exist, and
    airports used by flights whose coordinates are missing or (0, 0).
    """
    missing = fetch_all(
        """
        SELECT f.id, f.flight_number, f.departure_airport_id, f.arrival_airport_id,
            da.id AS dep_found, aa.id AS arr_found
        FROM flights f
        LEFT JOIN airports da ON da.id = f.departure_airport_id
        LEFT JOIN airports aa ON aa.id = f.arrival_airport_id
        WHERE da.id IS NULL OR aa.id IS NULL
        ORDER BY f.id
        """
    )
    for row in missing:
        row["missing"] = [
            key for key, found in (("departure", row.pop("dep_found")), ("arrival", row.pop("arr_found"))) if found is None
        ]
    used = fetch_all(
        """
        SELECT a.id, a.iata_code, a.name, a.latitude, a.longitude
        FROM airports a
        WHERE EXISTS (
            SELECT 1 FROM flights f WHERE f.departure_airport_id = a.id OR f.arrival_airport_id = a.id
        )
        ORDER BY a.iata_code
        """
    )
    bad_coords = [a for a in used if not is_valid_coordinate(a["latitude"], a["longitude"])]
    return {"missing_airports": missing, "invalid_coordinates": bad_coords}


__all__ = [
    "FLIGHT_STATUSES",
    "FLIGHT_CLASSES",
    "insert_flight",
    "create_flight",
    "get_flight",
    "list_flights",
    "update_flight",
    "delete_flight",
    "get_flight_statistics",
    "get_routes",
    "find_flight_reference_problems",
]
