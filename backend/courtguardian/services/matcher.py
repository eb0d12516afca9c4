"""
Duplicate classification for court records.

A candidate duplicates an existing court only when BOTH signals agree:
it lies within `max_distance_m` of the court, and its normalized name is
similar enough. Neither signal alone is sufficient - two distinct courts at
the same complex share a location, and chains share names across a city.

Pure functions; thresholds are passed in (defaults come from settings).
"""

import re
from difflib import SequenceMatcher
from typing import Optional

from courtguardian.core.config import settings
from courtguardian.utils.geo import distance_km

_PUNCTUATION = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: Optional[str]) -> str:
    """Lower-case, strip punctuation, collapse whitespace."""
    if not name:
        return ""
    cleaned = _PUNCTUATION.sub(" ", name.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def name_similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    Similarity in [0, 1] between two names after normalization.

    Takes the better of a straight character ratio and a token-sorted ratio so
    that both small spelling differences ("Court" vs "Courts") and word-order
    differences ("Park Tennis Center" vs "Tennis Center Park") score high.
    """
    na, nb = normalize_name(a), normalize_name(b)
    if not na or not nb:
        return 0.0
    if na == nb:
        return 1.0
    direct = SequenceMatcher(None, na, nb).ratio()
    sorted_a = " ".join(sorted(na.split()))
    sorted_b = " ".join(sorted(nb.split()))
    token_sorted = SequenceMatcher(None, sorted_a, sorted_b).ratio()
    return max(direct, token_sorted)


def is_duplicate(
    candidate,
    existing,
    max_distance_m: Optional[float] = None,
    min_similarity: Optional[float] = None,
) -> bool:
    """
    True when `candidate` and `existing` describe the same physical court.

    Both arguments expose `name`, `latitude` and `longitude`.
    """
    if max_distance_m is None:
        max_distance_m = settings.DUPLICATE_DISTANCE_METERS
    if min_similarity is None:
        min_similarity = settings.NAME_SIMILARITY_THRESHOLD

    if distance_km(candidate, existing) * 1000.0 > max_distance_m:
        return False
    return name_similarity(candidate.name, existing.name) > min_similarity


def find_duplicate(candidate, existing_records, max_distance_m=None, min_similarity=None):
    """Closest record in `existing_records` that `candidate` duplicates, or None."""
    matches = [
        record for record in existing_records
        if is_duplicate(candidate, record, max_distance_m, min_similarity)
    ]
    if not matches:
        return None
    return min(matches, key=lambda record: distance_km(candidate, record))
