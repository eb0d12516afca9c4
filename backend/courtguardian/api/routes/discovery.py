"""
Discovery read endpoints: geocoding helpers and area queries over the
canonical court store.
"""
import logging
from typing import Optional, List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from courtguardian.api.deps import get_geocoder, get_store
from courtguardian.api.routes.schemas import CourtResponse, CourtWithDistance
from courtguardian.core.config import settings
from courtguardian.core.errors import ValidationError
from courtguardian.models.candidate import Coordinate
from courtguardian.models.court import Provenance, VerificationStatus
from courtguardian.services.court_store import CourtStore, courts_near, validate_coordinate
from courtguardian.services.geocoding import GeocodingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/discovery", tags=["discovery"])


class GeocodeResponse(BaseModel):
    address: str
    latitude: float
    longitude: float


class AreaCourtsResponse(BaseModel):
    total: int
    courts: List[CourtWithDistance]


class SportStats(BaseModel):
    sport: str
    total: int
    verified: int
    discovered: int


class AreaStatsResponse(BaseModel):
    total_courts: int
    by_sport: List[SportStats]


def _check_radius(radius: int) -> None:
    if radius <= 0 or radius > settings.MAX_RADIUS_METERS:
        raise ValidationError(f"Radius must be between 1 and {settings.MAX_RADIUS_METERS} meters")


@router.get("/geocode", response_model=GeocodeResponse)
def geocode_address(
    address: str = Query(..., min_length=1),
    geocoder: GeocodingService = Depends(get_geocoder),
):
    coordinate = geocoder.forward(address)
    return GeocodeResponse(address=address, latitude=coordinate.latitude, longitude=coordinate.longitude)


@router.get("/reverse-geocode", response_model=GeocodeResponse)
def reverse_geocode(
    lat: float = Query(...),
    lng: float = Query(...),
    geocoder: GeocodingService = Depends(get_geocoder),
):
    validate_coordinate(lat, lng)
    address = geocoder.reverse(Coordinate(latitude=lat, longitude=lng))
    return GeocodeResponse(address=address, latitude=lat, longitude=lng)


@router.get("/courts", response_model=AreaCourtsResponse)
def get_courts_in_area(
    lat: float = Query(...),
    lng: float = Query(...),
    radius: int = Query(settings.DEFAULT_RADIUS_METERS),
    sport: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    store: CourtStore = Depends(get_store),
):
    """Courts within `radius` meters, nearest first."""
    validate_coordinate(lat, lng)
    _check_radius(radius)

    with store.session() as db:
        pairs = courts_near(db, lat, lng, radius, sport)

    courts = [
        CourtWithDistance(**CourtResponse.model_validate(court).model_dump(), distance_km=round(distance, 3))
        for court, distance in pairs[:limit]
    ]
    return AreaCourtsResponse(total=len(pairs), courts=courts)


@router.get("/stats", response_model=AreaStatsResponse)
def get_area_stats(
    lat: float = Query(...),
    lng: float = Query(...),
    radius: int = Query(settings.DEFAULT_RADIUS_METERS),
    store: CourtStore = Depends(get_store),
):
    """Per-sport counts for the area: all courts, verified, and found by discovery."""
    validate_coordinate(lat, lng)
    _check_radius(radius)

    with store.session() as db:
        pairs = courts_near(db, lat, lng, radius)

    by_sport: dict[str, dict] = {}
    for court, _ in pairs:
        for sport in court.sport_types or []:
            bucket = by_sport.setdefault(sport, {"sport": sport, "total": 0, "verified": 0, "discovered": 0})
            bucket["total"] += 1
            if court.verification_status == VerificationStatus.VERIFIED.value:
                bucket["verified"] += 1
            if court.provenance == Provenance.PLACE_SEARCH.value:
                bucket["discovered"] += 1

    return AreaStatsResponse(
        total_courts=len(pairs),
        by_sport=sorted(by_sport.values(), key=lambda s: s["total"], reverse=True),
    )
