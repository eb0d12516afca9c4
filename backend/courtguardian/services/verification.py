"""
Crowdsourced verification workflow.

Users propose an addition (field currently unknown), a correction or a
confirmation (field currently known) for one field of one court. Moderators
approve or reject each proposal independently; a resolved proposal never
changes again. Approving writes the proposed value into the court regardless
of other pending proposals on the same field (last approval wins).
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from courtguardian.core.errors import (
    ConflictError,
    InvalidProposalKindError,
    NotFoundError,
    ValidationError,
)
from courtguardian.core.security import Caller, require_moderator
from courtguardian.models.court import (
    Court,
    VerificationStatus,
    PROPOSABLE_FIELDS,
    normalize_unknown,
)
from courtguardian.models.verification import ProposalKind, ProposalStatus, VerificationProposal
from courtguardian.services.court_store import CourtStore

logger = logging.getLogger(__name__)

TRUE_VALUES = {"true", "yes", "1", "y"}
FALSE_VALUES = {"false", "no", "0", "n"}


def _coerce_count(value) -> int:
    if isinstance(value, bool):
        raise ValueError("not a number")
    count = int(str(value).strip()) if not isinstance(value, int) else value
    if count <= 0:
        raise ValueError("must be positive")
    return count


def _coerce_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ValueError("expected true/false")


def _coerce_hours(value):
    if isinstance(value, (dict, list)):
        return value
    text = str(value).strip()
    if text.startswith("{") or text.startswith("["):
        return json.loads(text)
    return {"weekday_text": [line.strip() for line in text.splitlines() if line.strip()]}


def _coerce_text(value) -> str:
    if isinstance(value, (dict, list)):
        raise ValueError("expected text")
    return str(value).strip()


FIELD_COERCERS = {
    "court_count": _coerce_count,
    "lighting": _coerce_bool,
    "opening_hours": _coerce_hours,
}


def coerce_field_value(field_name: str, value: Any):
    """Convert a submitted value to the stored type of `field_name`."""
    value = normalize_unknown(value)
    if value is None:
        raise ValidationError("A proposed value is required")
    coercer = FIELD_COERCERS.get(field_name, _coerce_text)
    try:
        return coercer(value)
    except (ValueError, TypeError) as e:
        raise ValidationError(f"Invalid value for {field_name}: {e}")


def proposal_to_dict(proposal: VerificationProposal) -> dict:
    return {
        "id": proposal.id,
        "court_id": proposal.court_id,
        "field_name": proposal.field_name,
        "old_value": proposal.old_value,
        "new_value": proposal.proposed_value,
        "kind": proposal.kind,
        "note": proposal.note,
        "status": proposal.status,
        "submitted_by": proposal.submitted_by,
        "reviewed_by": proposal.reviewed_by,
        "review_note": proposal.review_note,
        "created_at": proposal.created_at,
        "reviewed_at": proposal.reviewed_at,
    }


class VerificationService:
    def __init__(self, store: CourtStore):
        self.store = store

    def submit(
        self,
        caller: Caller,
        court_id: int,
        field_name: str,
        new_value: Any,
        kind: str,
        note: Optional[str] = None,
        old_value: Any = None,
    ) -> VerificationProposal:
        """
        Record a pending proposal.

        The kind must agree with the field's current state: `addition` only
        for an unknown field, `correction`/`confirmation` only for a known one.
        `old_value` from the client is informational; the stored snapshot is
        the court's actual value at submission time.
        """
        if field_name not in PROPOSABLE_FIELDS:
            raise ValidationError(f"Invalid field name. Valid fields: {', '.join(PROPOSABLE_FIELDS)}")
        try:
            kind = ProposalKind(kind)
        except ValueError:
            raise ValidationError("Invalid verification type. Must be: correction, confirmation, or addition")
        value = coerce_field_value(field_name, new_value)

        with self.store.session() as db:
            court = db.get(Court, court_id)
            if court is None:
                raise NotFoundError(f"Court {court_id} not found")

            current = normalize_unknown(getattr(court, field_name))
            if kind == ProposalKind.ADDITION and current is not None:
                raise InvalidProposalKindError(f"{field_name} already has a value; submit a correction or confirmation")
            if kind != ProposalKind.ADDITION and current is None:
                raise InvalidProposalKindError(f"{field_name} is unknown; submit an addition")

            if old_value is not None and normalize_unknown(old_value) != current:
                logger.debug(f"Client old value for {field_name} on court {court_id} is stale")

            proposal = VerificationProposal(
                court_id=court_id,
                field_name=field_name,
                old_value=current,
                proposed_value=value,
                kind=kind.value,
                submitted_by=caller.user_id,
                note=note,
                status=ProposalStatus.PENDING.value,
            )
            db.add(proposal)
            db.commit()
            db.refresh(proposal)

        logger.info(f"Proposal {proposal.id}: {kind.value} of {field_name} on court {court_id} by {caller.user_id}")
        return proposal

    def review(self, caller: Caller, proposal_id: int, decision: str, note: Optional[str] = None) -> Court:
        """
        Approve or reject a pending proposal; returns the (possibly updated) court.

        The proposal read, court update and proposal resolution happen under
        the store's write lock in one transaction, so concurrent approvals on
        the same field serialize.
        """
        require_moderator(caller)
        if decision not in ("approve", "reject"):
            raise ValidationError('Decision must be "approve" or "reject"')

        with self.store.write_lock, self.store.session() as db:
            proposal = (
                db.query(VerificationProposal)
                .filter(VerificationProposal.id == proposal_id)
                .with_for_update()
                .first()
            )
            if proposal is None:
                raise NotFoundError(f"Proposal {proposal_id} not found")
            if proposal.is_resolved:
                raise ConflictError(f"Proposal {proposal_id} was already {proposal.status}")

            court = db.query(Court).filter(Court.id == proposal.court_id).with_for_update().first()
            if court is None:
                raise NotFoundError(f"Court {proposal.court_id} not found")

            now = datetime.now(timezone.utc)
            proposal.reviewed_by = caller.user_id
            proposal.review_note = note
            proposal.reviewed_at = now

            if decision == "reject":
                proposal.status = ProposalStatus.REJECTED.value
            else:
                proposal.status = ProposalStatus.APPROVED.value
                setattr(court, proposal.field_name, proposal.proposed_value)
                court.verification_count = (court.verification_count or 0) + 1
                court.last_verified_at = now
                court.verification_status = self._recompute_status(db, court, proposal).value

            db.commit()
            db.refresh(court)

        logger.info(f"Proposal {proposal_id} {proposal.status} by {caller.user_id} (court {court.id} now {court.verification_status})")
        return court

    def _recompute_status(self, db, court: Court, approved: VerificationProposal) -> VerificationStatus:
        """
        verified: no descriptive field is unknown and at least one correction
        or confirmation has been approved. Otherwise partially_verified.
        """
        confirming = (ProposalKind.CORRECTION.value, ProposalKind.CONFIRMATION.value)
        has_confirmation = approved.kind in confirming or db.query(VerificationProposal.id).filter(
            VerificationProposal.court_id == court.id,
            VerificationProposal.status == ProposalStatus.APPROVED.value,
            VerificationProposal.kind.in_(confirming),
        ).first() is not None

        if not court.missing_fields and has_confirmation:
            return VerificationStatus.VERIFIED
        return VerificationStatus.PARTIALLY_VERIFIED

    def get_proposal(self, proposal_id: int) -> VerificationProposal:
        with self.store.session() as db:
            proposal = db.get(VerificationProposal, proposal_id)
            if proposal is None:
                raise NotFoundError(f"Proposal {proposal_id} not found")
            return proposal

    def pending(self, caller: Caller) -> list[dict]:
        """Pending proposals, oldest first, with the court name attached."""
        require_moderator(caller)
        with self.store.session() as db:
            rows = (
                db.query(VerificationProposal, Court.name, Court.address)
                .join(Court, Court.id == VerificationProposal.court_id)
                .filter(VerificationProposal.status == ProposalStatus.PENDING.value)
                .order_by(VerificationProposal.created_at.asc(), VerificationProposal.id.asc())
                .all()
            )
        results = []
        for proposal, court_name, court_address in rows:
            item = proposal_to_dict(proposal)
            item["court_name"] = court_name
            item["court_address"] = court_address
            results.append(item)
        return results

    def court_view(self, court_id: int, recent_limit: int = 10) -> dict:
        """Court, its unknown fields, and its most recent proposals."""
        with self.store.session() as db:
            court = db.get(Court, court_id)
            if court is None:
                raise NotFoundError(f"Court {court_id} not found")
            recent = (
                db.query(VerificationProposal)
                .filter(VerificationProposal.court_id == court_id)
                .order_by(VerificationProposal.created_at.desc(), VerificationProposal.id.desc())
                .limit(recent_limit)
                .all()
            )
        return {
            "court": court,
            "recent_verifications": [proposal_to_dict(p) for p in recent],
            "missing_fields": court.missing_fields,
            "needs_verification": court.needs_verification,
        }

    def stats(self) -> dict:
        with self.store.session() as db:
            proposals = db.query(VerificationProposal.status, VerificationProposal.court_id, VerificationProposal.submitted_by).all()
            courts = db.query(Court).all()
        return {
            "total_verifications": len(proposals),
            "pending_count": sum(1 for p in proposals if p.status == ProposalStatus.PENDING.value),
            "approved_count": sum(1 for p in proposals if p.status == ProposalStatus.APPROVED.value),
            "rejected_count": sum(1 for p in proposals if p.status == ProposalStatus.REJECTED.value),
            "courts_with_verifications": len({p.court_id for p in proposals}),
            "contributing_users": len({p.submitted_by for p in proposals}),
            "courts_needing_verification": sum(1 for c in courts if c.needs_verification),
        }
