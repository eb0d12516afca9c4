"""
Court lookup and crowdsourced court suggestions.
"""
import logging
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from courtguardian.api.deps import get_store, get_suggestion_service
from courtguardian.api.routes.schemas import CourtResponse
from courtguardian.core.security import Caller, get_caller, get_moderator
from courtguardian.services.court_store import CourtStore
from courtguardian.services.suggestions import SuggestionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/courts", tags=["courts"])


class SuggestionCreate(BaseModel):
    name: str
    address: str
    sport_type: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    note: Optional[str] = None


class SuggestionReview(BaseModel):
    status: str
    admin_notes: Optional[str] = None
    create_court: bool = False


class SuggestionResponse(BaseModel):
    id: int
    name: str
    address: Optional[str]
    sport_type: str
    latitude: float
    longitude: float
    note: Optional[str]
    suggested_by: str
    status: str
    reviewed_by: Optional[str]
    admin_notes: Optional[str]
    court_id: Optional[int]
    created_at: Optional[datetime]
    reviewed_at: Optional[datetime]

    class Config:
        from_attributes = True


class SuggestionListResponse(BaseModel):
    total: int
    suggestions: List[SuggestionResponse]


class SuggestionReviewResponse(BaseModel):
    suggestion: SuggestionResponse
    court_id: Optional[int]
    court_created: bool


@router.post("/suggestions", response_model=SuggestionResponse, status_code=201)
def suggest_court(
    suggestion: SuggestionCreate,
    caller: Caller = Depends(get_caller),
    service: SuggestionService = Depends(get_suggestion_service),
):
    return service.submit(
        caller,
        name=suggestion.name,
        address=suggestion.address,
        sport_type=suggestion.sport_type,
        latitude=suggestion.latitude,
        longitude=suggestion.longitude,
        note=suggestion.note,
    )


@router.get("/suggestions", response_model=SuggestionListResponse)
def list_suggestions(
    status: str = Query("pending"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    caller: Caller = Depends(get_moderator),
    service: SuggestionService = Depends(get_suggestion_service),
):
    items, total = service.list(caller, status=status, limit=limit, offset=offset)
    return SuggestionListResponse(
        total=total,
        suggestions=[SuggestionResponse.model_validate(s) for s in items],
    )


@router.patch("/suggestions/{suggestion_id}", response_model=SuggestionReviewResponse)
def review_suggestion(
    suggestion_id: int,
    review: SuggestionReview,
    caller: Caller = Depends(get_moderator),
    service: SuggestionService = Depends(get_suggestion_service),
):
    return service.review(
        caller,
        suggestion_id,
        status=review.status,
        admin_notes=review.admin_notes,
        create_court=review.create_court,
    )


@router.get("/{court_id}", response_model=CourtResponse)
def get_court(court_id: int, store: CourtStore = Depends(get_store)):
    return store.get(court_id)
