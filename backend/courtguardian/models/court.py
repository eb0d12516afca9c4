from sqlalchemy import Column, Integer, String, Float, DateTime, Boolean, JSON, Index
from sqlalchemy.sql import func
from courtguardian.core.database import Base
import enum


class VerificationStatus(str, enum.Enum):
    UNVERIFIED = "unverified"
    PARTIALLY_VERIFIED = "partially_verified"
    VERIFIED = "verified"


class Provenance(str, enum.Enum):
    """Where a canonical court record came from."""
    USER_SUGGESTED = "user_suggested"
    PLACE_SEARCH = "place_search"
    SEED = "seed"


# Fields a court "needs verification" for while they are unknown
DESCRIPTIVE_FIELDS = (
    "surface_type",
    "court_count",
    "lighting",
    "phone",
    "website",
    "opening_hours",
)

# Fields a verification proposal may target
PROPOSABLE_FIELDS = DESCRIPTIVE_FIELDS + ("address", "name")

UNKNOWN_MARKERS = {"", "?", "unknown", "n/a"}


def normalize_unknown(value):
    """Collapse the loose "unknown" encodings (empty, '?', 'unknown') to None."""
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lower() in UNKNOWN_MARKERS:
            return None
        return stripped
    if isinstance(value, (dict, list)) and not value:
        return None
    return value


class Court(Base):
    """Canonical court record."""

    __tablename__ = "courts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(500))

    # Coordinates are required for a canonical record
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    sport_types = Column(JSON, nullable=False, default=list)

    # Descriptive fields; None means unknown
    surface_type = Column(String(50))
    court_count = Column(Integer)
    lighting = Column(Boolean)
    phone = Column(String(50))
    website = Column(String(500))
    opening_hours = Column(JSON)

    verification_status = Column(String(30), nullable=False, default=VerificationStatus.UNVERIFIED.value, index=True)
    verification_count = Column(Integer, nullable=False, default=0)
    last_verified_at = Column(DateTime(timezone=True))
    provenance = Column(String(30), nullable=False, default=Provenance.PLACE_SEARCH.value)

    # Place-search metadata
    google_place_id = Column(String(255), unique=True, index=True)
    google_rating = Column(Float)
    google_total_ratings = Column(Integer)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_courts_lat_lng', 'latitude', 'longitude'),
    )

    def __repr__(self):
        return f"<Court(id={self.id}, name={self.name!r}, status={self.verification_status})>"

    @property
    def missing_fields(self) -> list[str]:
        return [f for f in DESCRIPTIVE_FIELDS if normalize_unknown(getattr(self, f)) is None]

    @property
    def needs_verification(self) -> bool:
        """Computed on read so it always reflects current field state."""
        return bool(self.missing_fields) or self.verification_status != VerificationStatus.VERIFIED.value
