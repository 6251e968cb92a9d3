import logging
from typing import Optional

from fastapi import APIRouter, Request

from app.auth_utils import require_admin
from app.responses import error, not_found, ok, read_json
from core.database import (
    TripValidationError,
    airports_with_trips,
    create_airport,
    create_flight,
    create_trip,
    delete_flight,
    delete_trip,
    get_airport,
    get_flight,
    get_flight_statistics,
    get_routes,
    get_trip,
    list_flights,
    list_trips,
    lookup_or_create_airport,
    search_airports,
    update_flight,
    update_trip,
)
from core.geocoding import NominatimGeocoder

log = logging.getLogger("site.flights")

router = APIRouter(prefix="/api/flights")
airports_router = APIRouter(prefix="/api/airports")

_geocoder: Optional[NominatimGeocoder] = None


def get_geocoder() -> NominatimGeocoder:
    global _geocoder
    if _geocoder is None:
        _geocoder = NominatimGeocoder()
    return _geocoder


# -------- flights (public) --------


@router.get("")
def flights_index(
    request: Request,
    page: int = 1,
    limit: int = 20,
    airline: Optional[str] = None,
    year: Optional[int] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
):
    flights, pagination = list_flights(page=page, limit=limit, airline=airline, year=year, status=status, search=search)
    return ok(flights, request, pagination=pagination)


@router.get("/statistics")
def flights_statistics(request: Request):
    return ok(get_flight_statistics(), request)


@router.get("/routes")
def flights_routes(request: Request):
    return ok(get_routes(), request)


@router.get("/trips")
def trips_index(request: Request):
    return ok(list_trips(), request)


@router.get("/trips/{trip_id}")
def trip_detail(trip_id: int, request: Request):
    trip = get_trip(trip_id)
    if not trip:
        return not_found("Trip")
    return ok(trip, request)


@router.get("/{flight_id}")
def flight_detail(flight_id: int, request: Request):
    flight = get_flight(flight_id)
    if not flight:
        return not_found("Flight")
    return ok(flight, request)


# -------- flights (admin) --------


@router.post("")
async def flight_create(request: Request):
    user, denied = require_admin(request)
    if denied:
        return denied
    body = await read_json(request)
    if body is None:
        return error(400, "Invalid JSON body")
    try:
        flight = create_flight(body)
    except ValueError as exc:
        return error(400, str(exc))
    log.info("Admin %s created flight %s", user["id"], flight["id"])
    return ok(flight, status_code=201, cache=False)


@router.post("/trips")
async def trip_create(request: Request):
    _, denied = require_admin(request)
    if denied:
        return denied
    body = await read_json(request)
    if body is None:
        return error(400, "Invalid JSON body")
    try:
        trip = create_trip(
            body.get("name"),
            body.get("start_date"),
            body.get("end_date"),
            body.get("flights"),
            blog_post_id=body.get("blog_post_id"),
        )
    except TripValidationError as exc:
        return error(400, str(exc))
    except ValueError as exc:
        return error(400, "Invalid flight data", str(exc))
    return ok(trip, status_code=201, cache=False, message=f"Trip created with {trip['flight_count']} flight(s)")


@router.put("/trips/{trip_id}")
async def trip_update(trip_id: int, request: Request):
    _, denied = require_admin(request)
    if denied:
        return denied
    body = await read_json(request)
    if body is None:
        return error(400, "Invalid JSON body")
    try:
        trip = update_trip(trip_id, body)
    except ValueError as exc:
        return error(400, str(exc))
    if not trip:
        return not_found("Trip")
    return ok(trip, cache=False)


@router.delete("/trips/{trip_id}")
def trip_delete(trip_id: int, request: Request):
    _, denied = require_admin(request)
    if denied:
        return denied
    if not delete_trip(trip_id):
        return not_found("Trip")
    return ok({"id": trip_id, "deleted": True}, cache=False)


@router.put("/{flight_id}")
async def flight_update(flight_id: int, request: Request):
    _, denied = require_admin(request)
    if denied:
        return denied
    body = await read_json(request)
    if body is None:
        return error(400, "Invalid JSON body")
    try:
        flight = update_flight(flight_id, body)
    except ValueError as exc:
        return error(400, str(exc))
    if not flight:
        return not_found("Flight")
    return ok(flight, cache=False)


@router.delete("/{flight_id}")
def flight_delete(flight_id: int, request: Request):
    _, denied = require_admin(request)
    if denied:
        return denied
    if not delete_flight(flight_id):
        return not_found("Flight")
    return ok({"id": flight_id, "deleted": True}, cache=False)


# -------- airports --------


@airports_router.get("")
def airports_index(request: Request, q: Optional[str] = None, limit: int = 100):
    return ok(search_airports(q, limit=limit), request)


@airports_router.get("/with-trips")
def airports_visited(request: Request):
    return ok(airports_with_trips(), request)


@airports_router.get("/{airport_id}")
def airport_detail(airport_id: int, request: Request):
    airport = get_airport(airport_id)
    if not airport:
        return not_found("Airport")
    return ok(airport, request)


@airports_router.post("")
async def airport_create(request: Request):
    _, denied = require_admin(request)
    if denied:
        return denied
    body = await read_json(request)
    if body is None:
        return error(400, "Invalid JSON body")
    try:
        airport = create_airport(body)
    except ValueError as exc:
        return error(400, str(exc))
    return ok(airport, status_code=201, cache=False)


@airports_router.post("/lookup")
async def airport_lookup(request: Request):
    """Find an airport by IATA code, creating (and geocoding) it when unknown."""
    _, denied = require_admin(request)
    if denied:
        return denied
    body = await read_json(request)
    if body is None:
        return error(400, "Invalid JSON body")
    if not body.get("iata_code") or not body.get("name"):
        return error(400, "IATA code and name are required")
    try:
        airport, created = lookup_or_create_airport(
            body["iata_code"],
            body["name"],
            city=body.get("city"),
            country=body.get("country"),
            geocoder=get_geocoder(),
        )
    except ValueError as exc:
        return error(400, str(exc))
    return ok(airport, status_code=201 if created else 200, cache=False, created=created)
