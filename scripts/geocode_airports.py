"""
Fill in coordinates for airports stored without them, via Nominatim.

Usage:
  python -m scripts.geocode_airports [--dry-run] [--debug]
"""
from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

from core.database import init_db
from core.geocoding import BATCH_SIZE, NominatimGeocoder, geocode_missing_airports


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Geocode airports with missing coordinates.")
    parser.add_argument("--dry-run", action="store_true", help="Look up coordinates but do not save them")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    parser.add_argument("--batch-size", type=int, default=BATCH_SIZE)
    args = parser.parse_args(argv)

    load_dotenv(override=True)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    init_db()
    geocoder = NominatimGeocoder()
    try:
        report = geocode_missing_airports(geocoder, dry_run=args.dry_run, batch_size=args.batch_size)
    finally:
        geocoder.close()

    print("\nGeocoding summary")
    print(f"  total:      {report.total}")
    print(f"  processed:  {report.processed}")
    print(f"  successful: {report.successful}")
    print(f"  failed:     {report.failed}")
    print(f"  skipped:    {report.skipped}")
    for line in report.errors:
        print(f"  - {line}")
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
