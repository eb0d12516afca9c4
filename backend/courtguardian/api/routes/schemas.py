"""Response schemas shared across routers."""
from datetime import datetime
from typing import Any, Optional, List

from pydantic import BaseModel


class CourtResponse(BaseModel):
    id: int
    name: str
    address: Optional[str]
    latitude: float
    longitude: float
    sport_types: List[str]
    surface_type: Optional[str]
    court_count: Optional[int]
    lighting: Optional[bool]
    phone: Optional[str]
    website: Optional[str]
    opening_hours: Optional[Any]
    verification_status: str
    verification_count: int
    last_verified_at: Optional[datetime]
    provenance: str
    google_rating: Optional[float]
    google_total_ratings: Optional[int]
    missing_fields: List[str]
    needs_verification: bool
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class CourtWithDistance(CourtResponse):
    distance_km: float
