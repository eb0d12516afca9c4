"""
Verification API routes.

Users submit field-level proposals for a court; moderators list and resolve
them.
"""
import logging
from datetime import datetime
from typing import Any, Optional, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from courtguardian.api.deps import get_verification_service
from courtguardian.api.routes.schemas import CourtResponse
from courtguardian.core.security import Caller, get_caller, get_moderator
from courtguardian.services.verification import VerificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/verifications", tags=["verifications"])


# =============================================================================
# Request / Response Schemas
# =============================================================================

class ProposalCreate(BaseModel):
    court_id: int
    field_name: str
    old_value: Optional[Any] = None
    new_value: Any
    kind: str
    note: Optional[str] = None


class ProposalCreated(BaseModel):
    proposal_id: int
    message: str


class ProposalReview(BaseModel):
    decision: str
    note: Optional[str] = None


class ProposalResponse(BaseModel):
    id: int
    court_id: int
    field_name: str
    old_value: Optional[Any]
    new_value: Any
    kind: str
    note: Optional[str]
    status: str
    submitted_by: str
    reviewed_by: Optional[str]
    review_note: Optional[str]
    created_at: Optional[datetime]
    reviewed_at: Optional[datetime]


class PendingProposal(ProposalResponse):
    court_name: str
    court_address: Optional[str]


class CourtVerificationResponse(BaseModel):
    court: CourtResponse
    recent_verifications: List[ProposalResponse]
    missing_fields: List[str]
    needs_verification: bool


class VerificationStatsResponse(BaseModel):
    total_verifications: int
    pending_count: int
    approved_count: int
    rejected_count: int
    courts_with_verifications: int
    contributing_users: int
    courts_needing_verification: int


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/court/{court_id}", response_model=CourtVerificationResponse)
def get_court_verifications(
    court_id: int,
    service: VerificationService = Depends(get_verification_service),
):
    """Court summary, its unknown fields, and the latest proposals against it."""
    return service.court_view(court_id)


@router.post("/submit", response_model=ProposalCreated, status_code=201)
def submit_proposal(
    proposal: ProposalCreate,
    caller: Caller = Depends(get_caller),
    service: VerificationService = Depends(get_verification_service),
):
    created = service.submit(
        caller,
        court_id=proposal.court_id,
        field_name=proposal.field_name,
        new_value=proposal.new_value,
        kind=proposal.kind,
        note=proposal.note,
        old_value=proposal.old_value,
    )
    return ProposalCreated(proposal_id=created.id, message="Verification submitted for review")


@router.get("/admin/pending", response_model=List[PendingProposal])
def get_pending_proposals(
    caller: Caller = Depends(get_moderator),
    service: VerificationService = Depends(get_verification_service),
):
    return service.pending(caller)


@router.patch("/admin/{proposal_id}", response_model=CourtResponse)
def review_proposal(
    proposal_id: int,
    review: ProposalReview,
    caller: Caller = Depends(get_moderator),
    service: VerificationService = Depends(get_verification_service),
):
    """Approve or reject a proposal; responds with the court as it now stands."""
    return service.review(caller, proposal_id, review.decision, review.note)


@router.get("/stats", response_model=VerificationStatsResponse)
def get_verification_stats(
    service: VerificationService = Depends(get_verification_service),
):
    return service.stats()
