"""
Ephemeral court descriptions produced by discovery runs and suggestions.

A candidate is never persisted directly: it is merged into an existing court,
discarded as a duplicate, or promoted into a new court.
"""
from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator

from courtguardian.models.court import DESCRIPTIVE_FIELDS, Provenance, normalize_unknown
from courtguardian.utils.geo import is_valid_coordinate


class Coordinate(BaseModel):
    latitude: float
    longitude: float


class CandidateRecord(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    sport_types: list[str] = Field(default_factory=list)

    surface_type: Optional[str] = None
    court_count: Optional[int] = None
    lighting: Optional[bool] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    opening_hours: Optional[Any] = None

    provenance: Provenance = Provenance.PLACE_SEARCH

    google_place_id: Optional[str] = None
    google_rating: Optional[float] = None
    google_total_ratings: Optional[int] = None

    @field_validator(
        "surface_type", "court_count", "lighting", "phone", "website", "opening_hours", "address",
        mode="before",
    )
    @classmethod
    def _unknown_to_none(cls, value):
        return normalize_unknown(value)

    @field_validator("sport_types", mode="before")
    @classmethod
    def _lower_sports(cls, value):
        return [s.strip().lower() for s in (value or []) if s and s.strip()]

    @property
    def is_well_formed(self) -> bool:
        """A candidate needs a name and a valid coordinate to be classified."""
        return bool(self.name and self.name.strip()) and is_valid_coordinate(self.latitude, self.longitude)

    def known_descriptive_values(self) -> dict:
        """Descriptive fields this candidate actually supplies."""
        values = {}
        for field in DESCRIPTIVE_FIELDS:
            value = normalize_unknown(getattr(self, field))
            if value is not None:
                values[field] = value
        return values
