import csv
import logging
from pathlib import Path
from typing import Optional

from courtguardian.core.errors import ConflictError, CourtGuardianError
from courtguardian.models.candidate import CandidateRecord
from courtguardian.models.court import Provenance
from courtguardian.services.court_store import CourtStore
from courtguardian.services.geocoding import GeocodingService

logger = logging.getLogger(__name__)


def _split_sports(raw: str) -> list[str]:
    return [s.strip().lower() for s in raw.replace(";", ",").split(",") if s.strip()]


def row_to_candidate(row: dict) -> CandidateRecord:
    """Build a seed candidate from one CSV row; blank cells mean unknown."""
    def cell(key):
        value = (row.get(key) or "").strip()
        return value or None

    latitude, longitude = cell("latitude"), cell("longitude")
    return CandidateRecord(
        name=cell("name"),
        address=cell("address"),
        latitude=float(latitude) if latitude else None,
        longitude=float(longitude) if longitude else None,
        sport_types=_split_sports(row.get("sport_types") or row.get("sport_type") or ""),
        surface_type=cell("surface_type"),
        court_count=cell("court_count"),
        lighting=cell("lighting"),
        phone=cell("phone"),
        website=cell("website"),
        provenance=Provenance.SEED,
    )


def import_seed_csv(
    store: CourtStore,
    csv_path: Path,
    geocoder: Optional[GeocodingService] = None,
) -> dict:
    """
    Import seed courts from a CSV file through the guarded insert.

    Columns: name, address, latitude, longitude, sport_types (comma or
    semicolon separated), surface_type, court_count, lighting, phone, website.
    Rows without coordinates are geocoded from the address when a geocoder is
    given, otherwise skipped. Rows matching a stored court are skipped.

    Returns:
        Dict with import statistics
    """
    stats = {"imported": 0, "duplicates": 0, "skipped": 0, "errors": 0, "geocoded": 0}

    if not csv_path.exists():
        logger.error(f"CSV file not found: {csv_path}")
        return stats

    with open(csv_path, "r", encoding="utf-8") as f:
        reader = csv.DictReader(f)

        for row in reader:
            try:
                candidate = row_to_candidate(row)
                if candidate.latitude is None and geocoder and candidate.address:
                    coordinate = geocoder.forward(candidate.address)
                    candidate.latitude, candidate.longitude = coordinate.latitude, coordinate.longitude
                    stats["geocoded"] += 1

                if not candidate.is_well_formed:
                    stats["skipped"] += 1
                    continue

                store.insert(candidate)
                stats["imported"] += 1
            except ConflictError:
                stats["duplicates"] += 1
            except (CourtGuardianError, ValueError) as e:
                detail = e.detail if isinstance(e, CourtGuardianError) else str(e)
                logger.error(f"Error importing row: {row}, error: {detail}")
                stats["errors"] += 1

    logger.info(f"Seed import complete for {csv_path.name}: {stats}")
    return stats
