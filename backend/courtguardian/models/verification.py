"""
Verification proposal model.

A crowdsourced request to fill in, correct or confirm one field of one court.
Resolved proposals are never modified again.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, ForeignKey, Index
from sqlalchemy.sql import func
from enum import Enum
from courtguardian.core.database import Base


class ProposalKind(str, Enum):
    ADDITION = "addition"
    CORRECTION = "correction"
    CONFIRMATION = "confirmation"


class ProposalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class VerificationProposal(Base):
    __tablename__ = "verification_proposals"

    id = Column(Integer, primary_key=True, index=True)
    court_id = Column(Integer, ForeignKey("courts.id", ondelete="CASCADE"), nullable=False, index=True)
    field_name = Column(String(50), nullable=False)

    # Snapshot of the field when the proposal was submitted
    old_value = Column(JSON)
    proposed_value = Column(JSON, nullable=False)
    kind = Column(String(20), nullable=False)

    submitted_by = Column(String(255), nullable=False, index=True)
    note = Column(Text)

    status = Column(String(20), nullable=False, default=ProposalStatus.PENDING.value, index=True)
    reviewed_by = Column(String(255))
    review_note = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    reviewed_at = Column(DateTime(timezone=True))

    __table_args__ = (
        Index('idx_proposals_court_field', 'court_id', 'field_name'),
    )

    def __repr__(self):
        return f"<VerificationProposal(id={self.id}, court={self.court_id}, field={self.field_name}, status={self.status})>"

    @property
    def is_resolved(self) -> bool:
        return self.status != ProposalStatus.PENDING.value
