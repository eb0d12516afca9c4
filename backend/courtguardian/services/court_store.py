"""
Canonical court store.

Thin layer over the `courts` table offering the operations the discovery
pipeline relies on. Every write to a court row goes through `write_lock`, so
a promotion's duplicate re-check and its insert happen as one step with
respect to other promotions, and field writes never interleave.
"""
import logging
import threading
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from courtguardian.core.config import settings
from courtguardian.core.errors import ConflictError, NotFoundError, ValidationError
from courtguardian.models.candidate import CandidateRecord
from courtguardian.models.court import Court, VerificationStatus, PROPOSABLE_FIELDS, normalize_unknown
from courtguardian.services.matcher import find_duplicate
from courtguardian.utils.geo import bounding_box, haversine_km, is_valid_coordinate, longitude_ranges

logger = logging.getLogger(__name__)


def courts_near(db: Session, latitude: float, longitude: float, radius_m: float, sport: Optional[str] = None) -> list[tuple[Court, float]]:
    """(court, distance_km) pairs within `radius_m`, nearest first."""
    radius_km = radius_m / 1000.0
    min_lat, max_lat, min_lng, max_lng = bounding_box(latitude, longitude, radius_km)
    lng_filter = or_(*[
        and_(Court.longitude >= low, Court.longitude <= high)
        for low, high in longitude_ranges(min_lng, max_lng)
    ])
    rows = db.query(Court).filter(
        Court.latitude >= min_lat,
        Court.latitude <= max_lat,
        lng_filter,
    ).all()

    results = []
    for court in rows:
        if sport and sport.lower() not in (court.sport_types or []):
            continue
        distance = haversine_km(longitude, latitude, court.longitude, court.latitude)
        if distance <= radius_km:
            results.append((court, distance))
    results.sort(key=lambda pair: pair[1])
    return results


class CourtStore:
    def __init__(self, session_factory, max_distance_m: Optional[float] = None, min_similarity: Optional[float] = None):
        self._session_factory = session_factory
        self.max_distance_m = max_distance_m if max_distance_m is not None else settings.DUPLICATE_DISTANCE_METERS
        self.min_similarity = min_similarity if min_similarity is not None else settings.NAME_SIMILARITY_THRESHOLD
        self.write_lock = threading.RLock()

    def session(self) -> Session:
        return self._session_factory()

    def find_near(self, latitude: float, longitude: float, radius_m: float, sport: Optional[str] = None) -> list[Court]:
        with self.session() as db:
            return [court for court, _ in courts_near(db, latitude, longitude, radius_m, sport)]

    def get(self, court_id: int) -> Court:
        with self.session() as db:
            court = db.get(Court, court_id)
            if court is None:
                raise NotFoundError(f"Court {court_id} not found")
            return court

    def insert(self, candidate: CandidateRecord) -> Court:
        """
        Promote a candidate into a new canonical court.

        Re-checks for a duplicate against the current table contents right
        before inserting; raises ConflictError (with `existing_id`) instead of
        creating a second record for the same court.
        """
        if not candidate.is_well_formed:
            raise ValidationError("A court needs a name and valid coordinates")

        with self.write_lock, self.session() as db:
            if candidate.google_place_id:
                existing = db.query(Court).filter(Court.google_place_id == candidate.google_place_id).first()
                if existing is not None:
                    raise ConflictError(
                        f"Place {candidate.google_place_id} already stored as court {existing.id}",
                        existing_id=existing.id,
                    )

            nearby = [court for court, _ in courts_near(db, candidate.latitude, candidate.longitude, self.max_distance_m)]
            match = find_duplicate(candidate, nearby, self.max_distance_m, self.min_similarity)
            if match is not None:
                raise ConflictError(f"'{candidate.name}' duplicates court {match.id}", existing_id=match.id)

            court = Court(
                name=candidate.name.strip(),
                address=candidate.address,
                latitude=candidate.latitude,
                longitude=candidate.longitude,
                sport_types=list(candidate.sport_types),
                verification_status=VerificationStatus.UNVERIFIED.value,
                provenance=candidate.provenance.value,
                google_place_id=candidate.google_place_id,
                google_rating=candidate.google_rating,
                google_total_ratings=candidate.google_total_ratings,
                **candidate.known_descriptive_values(),
            )
            db.add(court)
            db.commit()
            db.refresh(court)
            logger.info(f"Inserted court {court.id} '{court.name}' ({court.provenance})")
            return court

    def update_field(self, court_id: int, field: str, value) -> Court:
        if field not in PROPOSABLE_FIELDS:
            raise ValidationError(f"Field '{field}' cannot be updated")
        with self.write_lock, self.session() as db:
            court = db.get(Court, court_id)
            if court is None:
                raise NotFoundError(f"Court {court_id} not found")
            setattr(court, field, normalize_unknown(value))
            db.commit()
            db.refresh(court)
            return court

    def fill_missing_fields(self, court_id: int, values: dict, sport_types: Optional[list] = None, metadata: Optional[dict] = None) -> list[str]:
        """
        Write `values` only into fields that are currently unknown.

        Used when a re-discovered court supplies data the stored record lacks;
        known values are never overwritten. New sport types are unioned in.
        Returns the names of the fields that were filled.
        """
        filled = []
        with self.write_lock, self.session() as db:
            court = db.get(Court, court_id)
            if court is None:
                raise NotFoundError(f"Court {court_id} not found")

            for field, value in values.items():
                value = normalize_unknown(value)
                if value is None:
                    continue
                if normalize_unknown(getattr(court, field)) is None:
                    setattr(court, field, value)
                    filled.append(field)

            if sport_types:
                merged = list(court.sport_types or [])
                for sport in sport_types:
                    if sport not in merged:
                        merged.append(sport)
                if merged != (court.sport_types or []):
                    court.sport_types = merged
                    filled.append("sport_types")

            for key, value in (metadata or {}).items():
                if value is None or getattr(court, key) is not None:
                    continue
                if key == "google_place_id" and db.query(Court.id).filter(Court.google_place_id == value).first():
                    continue
                setattr(court, key, value)

            if filled or metadata:
                db.commit()
        if filled:
            logger.debug(f"Filled {filled} on court {court_id}")
        return filled

    def count(self) -> int:
        with self.session() as db:
            return db.query(Court).count()


def validate_coordinate(latitude, longitude) -> None:
    if not is_valid_coordinate(latitude, longitude):
        raise ValidationError("Coordinates out of range")
