"""
Deduplication engine.

Reconciles the candidates of one discovery run against the canonical store:
each candidate is either a duplicate of a stored court (and may silently fill
that court's unknown fields) or new (and is promoted to a canonical court).

Classification is done against courts within `query radius + D_max` of the
query point, so a court just outside the search circle still catches a
duplicate candidate just inside it. Promotion re-checks every new record at
insert time (see CourtStore.insert); a last-moment collision downgrades the
candidate to a duplicate.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from courtguardian.core.errors import ConflictError
from courtguardian.models.candidate import CandidateRecord
from courtguardian.models.court import DESCRIPTIVE_FIELDS
from courtguardian.services.court_store import CourtStore
from courtguardian.services.matcher import find_duplicate

logger = logging.getLogger(__name__)


@dataclass
class FieldFill:
    """Values a re-discovered court can contribute to the stored record."""
    court_id: int
    values: dict
    sport_types: list = field(default_factory=list)
    metadata: dict = field(default_factory=dict)


@dataclass
class DeduplicationResult:
    new_records: list = field(default_factory=list)
    duplicate_count: int = 0
    malformed_count: int = 0
    field_fills: list = field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return len(self.new_records) + self.duplicate_count


@dataclass
class PromotionResult:
    created: list = field(default_factory=list)
    conflicts: int = 0
    fields_filled: int = 0


def _field_fill_for(candidate: CandidateRecord, court_id: int) -> Optional[FieldFill]:
    values = candidate.known_descriptive_values()
    metadata = {
        "google_place_id": candidate.google_place_id,
        "google_rating": candidate.google_rating,
        "google_total_ratings": candidate.google_total_ratings,
    }
    metadata = {k: v for k, v in metadata.items() if v is not None}
    if not values and not candidate.sport_types and not metadata:
        return None
    return FieldFill(court_id=court_id, values=values, sport_types=list(candidate.sport_types), metadata=metadata)


def _merge_into_staged(staged: CandidateRecord, candidate: CandidateRecord) -> None:
    """Fill a staged new record's unknown fields from a same-batch duplicate."""
    for name, value in candidate.known_descriptive_values().items():
        if getattr(staged, name) is None:
            setattr(staged, name, value)
    for sport in candidate.sport_types:
        if sport not in staged.sport_types:
            staged.sport_types.append(sport)


def classify_candidates(
    candidates: list,
    existing: list,
    max_distance_m: Optional[float] = None,
    min_similarity: Optional[float] = None,
) -> DeduplicationResult:
    """
    Classify candidates against already-loaded existing courts.

    Pure: nothing is written. Each candidate classified as new joins the
    comparison set, so the same court listed twice in one batch is only
    staged once.
    """
    result = DeduplicationResult()

    for candidate in candidates:
        if not candidate.is_well_formed:
            result.malformed_count += 1
            logger.debug(f"Dropping malformed candidate: {candidate.name!r}")
            continue

        match = find_duplicate(candidate, existing, max_distance_m, min_similarity)
        if match is None:
            match = find_duplicate(candidate, result.new_records, max_distance_m, min_similarity)
            if match is not None:
                result.duplicate_count += 1
                _merge_into_staged(match, candidate)
                continue
            result.new_records.append(candidate)
            continue

        result.duplicate_count += 1
        fill = _field_fill_for(candidate, match.id)
        if fill is not None:
            result.field_fills.append(fill)

    return result


def reconcile(
    store: CourtStore,
    candidates: list,
    latitude: float,
    longitude: float,
    radius_m: float,
) -> DeduplicationResult:
    """Load the comparison set for a query area and classify candidates against it."""
    existing = store.find_near(latitude, longitude, radius_m + store.max_distance_m)
    result = classify_candidates(candidates, existing, store.max_distance_m, store.min_similarity)
    logger.info(
        f"Classified {result.total_processed} candidates against {len(existing)} stored courts: "
        f"{len(result.new_records)} new, {result.duplicate_count} duplicates, {result.malformed_count} malformed"
    )
    return result


def promote(store: CourtStore, result: DeduplicationResult) -> PromotionResult:
    """
    Persist a classification: insert new records, apply silent field fills.

    A new record that collides at insert time is counted as a duplicate of
    the court it collided with; `result` is updated in place so its counts
    reflect what was actually stored.
    """
    outcome = PromotionResult()
    still_new = []

    for candidate in result.new_records:
        try:
            court = store.insert(candidate)
        except ConflictError as e:
            logger.info(f"Promotion conflict, treating as duplicate: {e.detail}")
            outcome.conflicts += 1
            result.duplicate_count += 1
            if e.existing_id is not None:
                fill = _field_fill_for(candidate, e.existing_id)
                if fill is not None:
                    result.field_fills.append(fill)
            continue
        outcome.created.append(court)
        still_new.append(candidate)

    result.new_records = still_new

    for fill in result.field_fills:
        filled = store.fill_missing_fields(fill.court_id, fill.values, fill.sport_types, fill.metadata)
        outcome.fields_filled += len([f for f in filled if f in DESCRIPTIVE_FIELDS])

    return outcome


def run_discovery_batch(
    store: CourtStore,
    candidates: list,
    latitude: float,
    longitude: float,
    radius_m: float,
) -> dict:
    """Classify and persist one batch; returns the job completion stats."""
    result = reconcile(store, candidates, latitude, longitude, radius_m)
    outcome = promote(store, result)
    return {
        "courts_processed": result.total_processed,
        "new_courts": len(outcome.created),
        "duplicates": result.duplicate_count,
        "malformed": result.malformed_count,
        "fields_filled": outcome.fields_filled,
        "new_court_ids": [court.id for court in outcome.created],
    }
