from sqlalchemy import Column, Integer, String, Float, DateTime, Text, ForeignKey
from sqlalchemy.sql import func
from courtguardian.core.database import Base


class CourtSuggestion(Base):
    """A court submitted by a user, awaiting moderator review."""

    __tablename__ = "court_suggestions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(500))
    sport_type = Column(String(50), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    note = Column(Text)

    suggested_by = Column(String(255), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending", index=True)  # pending, approved, rejected
    reviewed_by = Column(String(255))
    admin_notes = Column(Text)

    # Court the suggestion was promoted into, or matched as a duplicate of
    court_id = Column(Integer, ForeignKey("courts.id", ondelete="SET NULL"))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    reviewed_at = Column(DateTime(timezone=True))

    def __repr__(self):
        return f"<CourtSuggestion(id={self.id}, name={self.name!r}, status={self.status})>"
