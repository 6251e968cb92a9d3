"""
Flight tracking storage helpers: airports, flights and trips.
"""
from core.db.flights.airports_store import (
    airports_missing_coordinates,
    airports_with_trips,
    create_airport,
    get_airport,
    get_airport_by_iata,
    lookup_or_create_airport,
    normalize_iata,
    record_visit,
    search_airports,
    update_airport_coordinates,
)
from core.db.flights.flights_store import (
    FLIGHT_CLASSES,
    FLIGHT_STATUSES,
    create_flight,
    delete_flight,
    find_flight_reference_problems,
    get_flight,
    get_flight_statistics,
    get_routes,
    list_flights,
    update_flight,
)
from core.db.flights.trips_store import (
    TripValidationError,
    create_trip,
    delete_trip,
    get_trip,
    list_trips,
    update_trip,
    validate_trip_flights,
)

__all__ = [
    "airports_missing_coordinates",
    "airports_with_trips",
    "create_airport",
    "get_airport",
    "get_airport_by_iata",
    "lookup_or_create_airport",
    "normalize_iata",
    "record_visit",
    "search_airports",
    "update_airport_coordinates",
    "FLIGHT_CLASSES",
    "FLIGHT_STATUSES",
    "create_flight",
    "delete_flight",
    "find_flight_reference_problems",
    "get_flight",
    "get_flight_statistics",
    "get_routes",
    "list_flights",
    "update_flight",
    "TripValidationError",
    "create_trip",
    "delete_trip",
    "get_trip",
    "list_trips",
    "update_trip",
    "validate_trip_flights",
]
