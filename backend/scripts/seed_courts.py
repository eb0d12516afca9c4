#!/usr/bin/env python3
"""
Script to import seed courts into the database.

Usage:
    python scripts/seed_courts.py --file data/seed_courts.csv
    python scripts/seed_courts.py --file data/seed_courts.csv --geocode   # Geocode rows without coordinates (slow)
"""

import sys
import argparse
import logging
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from courtguardian.core.database import Base, get_engine, get_session_local
from courtguardian import models  # noqa: F401
from courtguardian.services.court_store import CourtStore
from courtguardian.services.geocoding import GeocodingService
from courtguardian.services.seed_import import import_seed_csv

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)


def main():
    parser = argparse.ArgumentParser(description="Import seed court data")
    parser.add_argument("--file", type=str, required=True, help="Path to seed CSV file")
    parser.add_argument("--geocode", action="store_true", help="Geocode addresses without coordinates (slow)")

    args = parser.parse_args()

    csv_path = Path(args.file)
    if not csv_path.exists():
        print(f"Error: File not found: {csv_path}")
        sys.exit(1)

    Base.metadata.create_all(bind=get_engine())
    store = CourtStore(get_session_local())
    geocoder = GeocodingService() if args.geocode else None

    print(f"Importing seed courts from {csv_path}...")
    stats = import_seed_csv(store, csv_path, geocoder=geocoder)

    print("\n=== Import Summary ===")
    print(f"  {stats['imported']} imported, {stats['duplicates']} duplicates, "
          f"{stats['skipped']} skipped, {stats['errors']} errors ({stats['geocoded']} geocoded)")


if __name__ == "__main__":
    main()
