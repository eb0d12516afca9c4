"""
User-submitted court suggestions.

Anyone can suggest a court by name and address (coordinates optional, the
address is geocoded when they are missing). Moderators review suggestions
and may promote an approved one into a canonical court. Promotion goes
through the same duplicate check as discovery; a suggestion that collides
with an existing court is linked to it instead of creating a second record.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from courtguardian.core.config import settings
from courtguardian.core.errors import ConflictError, CourtGuardianError, NotFoundError, ValidationError
from courtguardian.core.security import Caller, require_moderator
from courtguardian.models.candidate import CandidateRecord
from courtguardian.models.court import Provenance
from courtguardian.models.suggestion import CourtSuggestion
from courtguardian.services.court_store import CourtStore, validate_coordinate
from courtguardian.services.geocoding import GeocodingService

logger = logging.getLogger(__name__)

SUGGESTION_STATUSES = ("pending", "approved", "rejected")


class SuggestionService:
    def __init__(self, store: CourtStore, geocoder: GeocodingService, allowed_sports: Optional[list] = None):
        self.store = store
        self.geocoder = geocoder
        self.allowed_sports = [s.lower() for s in (allowed_sports or settings.ALLOWED_SPORTS)]

    def submit(
        self,
        caller: Caller,
        name: str,
        address: str,
        sport_type: str,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        note: Optional[str] = None,
    ) -> CourtSuggestion:
        name = (name or "").strip()
        address = (address or "").strip()
        if not name or not address:
            raise ValidationError("Name and address are required")

        sport = (sport_type or "").strip().lower()
        if sport not in self.allowed_sports:
            raise ValidationError(f"Sport type must be one of: {', '.join(self.allowed_sports)}")

        if latitude is None or longitude is None:
            try:
                coordinate = self.geocoder.forward(address)
            except CourtGuardianError as e:
                logger.warning(f"Suggestion geocoding failed for '{address}': {e.detail}")
                raise ValidationError("Could not find coordinates for the provided address")
            latitude, longitude = coordinate.latitude, coordinate.longitude
        validate_coordinate(latitude, longitude)

        with self.store.session() as db:
            suggestion = CourtSuggestion(
                name=name,
                address=address,
                sport_type=sport,
                latitude=latitude,
                longitude=longitude,
                note=note,
                suggested_by=caller.user_id,
                status="pending",
            )
            db.add(suggestion)
            db.commit()
            db.refresh(suggestion)

        logger.info(f"Court suggestion {suggestion.id} '{name}' submitted by {caller.user_id}")
        return suggestion

    def list(self, caller: Caller, status: str = "pending", limit: int = 50, offset: int = 0) -> tuple[list[CourtSuggestion], int]:
        require_moderator(caller)
        with self.store.session() as db:
            query = db.query(CourtSuggestion)
            if status and status != "all":
                if status not in SUGGESTION_STATUSES:
                    raise ValidationError(f"Unknown suggestion status: {status}")
                query = query.filter(CourtSuggestion.status == status)
            total = query.count()
            items = query.order_by(CourtSuggestion.created_at.desc(), CourtSuggestion.id.desc()).offset(offset).limit(limit).all()
        return items, total

    def review(
        self,
        caller: Caller,
        suggestion_id: int,
        status: str,
        admin_notes: Optional[str] = None,
        create_court: bool = False,
    ) -> dict:
        """
        Approve or reject a pending suggestion.

        With `create_court`, an approval also promotes the suggestion. Returns
        the suggestion plus the linked court id and whether it was newly
        created. The pending check, promotion and status write run under the
        store's write lock, so concurrent reviews resolve a suggestion once.
        """
        require_moderator(caller)
        if status not in ("approved", "rejected"):
            raise ValidationError('Status must be "approved" or "rejected"')

        court_id, court_created = None, False
        with self.store.write_lock, self.store.session() as db:
            suggestion = (
                db.query(CourtSuggestion)
                .filter(CourtSuggestion.id == suggestion_id)
                .with_for_update()
                .first()
            )
            if suggestion is None:
                raise NotFoundError(f"Suggestion {suggestion_id} not found")
            if suggestion.status != "pending":
                raise ConflictError(f"Suggestion {suggestion_id} was already {suggestion.status}")

            if status == "approved" and create_court:
                court_id, court_created = self._promote(suggestion)

            suggestion.status = status
            suggestion.reviewed_by = caller.user_id
            suggestion.admin_notes = admin_notes
            suggestion.reviewed_at = datetime.now(timezone.utc)
            if court_id is not None:
                suggestion.court_id = court_id
            db.commit()
            db.refresh(suggestion)

        logger.info(f"Suggestion {suggestion_id} {status} by {caller.user_id}")
        return {"suggestion": suggestion, "court_id": court_id, "court_created": court_created}

    def _promote(self, suggestion: CourtSuggestion) -> tuple[int, bool]:
        candidate = CandidateRecord(
            name=suggestion.name,
            address=suggestion.address,
            latitude=suggestion.latitude,
            longitude=suggestion.longitude,
            sport_types=[suggestion.sport_type],
            provenance=Provenance.USER_SUGGESTED,
        )
        try:
            court = self.store.insert(candidate)
            return court.id, True
        except ConflictError as e:
            logger.info(f"Suggestion {suggestion.id} matches existing court {e.existing_id}")
            self.store.fill_missing_fields(e.existing_id, {"address": suggestion.address}, sport_types=[suggestion.sport_type])
            return e.existing_id, False
