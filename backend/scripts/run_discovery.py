#!/usr/bin/env python3
"""
Run one discovery job from the shell and print its outcome.

Usage:
    python scripts/run_discovery.py --lat 33.749 --lng -84.388 --sport tennis
    python scripts/run_discovery.py --address "Atlanta, GA" --sport pickleball --radius 5000
"""

import sys
import json
import argparse
import logging
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from courtguardian.core.config import settings
from courtguardian.core.database import Base, get_engine, get_session_local
from courtguardian import models  # noqa: F401
from courtguardian.services.court_store import CourtStore
from courtguardian.services.discovery_cache import DiscoveryCache
from courtguardian.services.discovery_jobs import DiscoveryOrchestrator
from courtguardian.services.geocoding import GeocodingService
from courtguardian.services.places import GooglePlacesClient

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)


def main():
    parser = argparse.ArgumentParser(description="Run a single court discovery job")
    parser.add_argument("--lat", type=float, help="Latitude of the search center")
    parser.add_argument("--lng", type=float, help="Longitude of the search center")
    parser.add_argument("--address", type=str, help="Geocode this address instead of --lat/--lng")
    parser.add_argument("--radius", type=int, default=settings.DEFAULT_RADIUS_METERS, help="Search radius in meters")
    parser.add_argument("--sport", type=str, required=True, help=f"One of: {', '.join(settings.ALLOWED_SPORTS)}")
    parser.add_argument("--timeout", type=float, default=600, help="Seconds to wait for the job")

    args = parser.parse_args()

    if args.address:
        coordinate = GeocodingService().forward(args.address)
        lat, lng = coordinate.latitude, coordinate.longitude
        print(f"Geocoded '{args.address}' to {lat}, {lng}")
    elif args.lat is not None and args.lng is not None:
        lat, lng = args.lat, args.lng
    else:
        parser.error("either --address or both --lat and --lng are required")

    Base.metadata.create_all(bind=get_engine())
    store = CourtStore(get_session_local())
    orchestrator = DiscoveryOrchestrator(store, GooglePlacesClient(), DiscoveryCache(), workers=1)

    job_id = orchestrator.enqueue(lat, lng, args.radius, args.sport, trigger="cli")
    orchestrator.start_workers()
    orchestrator.start()
    try:
        job = orchestrator.wait_for_job(job_id, timeout=args.timeout)
    finally:
        orchestrator.stop()
        orchestrator.shutdown()

    print(json.dumps(job, indent=2, default=str))
    if job["status"] != "completed":
        sys.exit(1)


if __name__ == "__main__":
    main()
