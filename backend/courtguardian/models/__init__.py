from courtguardian.models.court import Court, VerificationStatus, Provenance, DESCRIPTIVE_FIELDS, PROPOSABLE_FIELDS
from courtguardian.models.verification import VerificationProposal, ProposalKind, ProposalStatus
from courtguardian.models.suggestion import CourtSuggestion
from courtguardian.models.candidate import CandidateRecord, Coordinate

__all__ = [
    "Court",
    "VerificationStatus",
    "Provenance",
    "DESCRIPTIVE_FIELDS",
    "PROPOSABLE_FIELDS",
    "VerificationProposal",
    "ProposalKind",
    "ProposalStatus",
    "CourtSuggestion",
    "CandidateRecord",
    "Coordinate",
]
