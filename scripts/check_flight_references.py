"""
Report flights that reference missing airports and airports without usable coordinates.

Exits 1 when any problem is found so it can run in CI.
"""
from __future__ import annotations

import sys

from core.database import find_flight_reference_problems, init_db


def main() -> int:
    init_db()
    problems = find_flight_reference_problems()

    missing = problems["missing_airports"]
    print(f"Flights with missing airports: {len(missing)}")
    for flight in missing:
        print(
            f"  - flight {flight['id']} ({flight.get('flight_number') or 'no number'}): "
            f"missing {', '.join(flight['missing'])} airport"
        )

    invalid = problems["invalid_coordinates"]
    print(f"Airports with invalid coordinates: {len(invalid)}")
    for airport in invalid:
        print(f"  - {airport['iata_code']} {airport['name']}: [{airport['longitude']}, {airport['latitude']}]")
    if invalid:
        print("Run `python -m scripts.geocode_airports` to fill in coordinates.")

    return 1 if missing or invalid else 0


if __name__ == "__main__":
    sys.exit(main())
