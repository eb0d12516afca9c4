"""
Error taxonomy for the discovery and verification pipeline.

Services raise these; the API layer maps them to HTTP responses through a
single exception handler registered in main.py.
"""
from typing import Optional


class CourtGuardianError(Exception):
    """Base class. `status_code` is the HTTP status the API layer responds with."""
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(CourtGuardianError):
    """Bad request shape or range. Raised before any state change."""
    status_code = 400


class ConflictError(CourtGuardianError):
    """Duplicate detected at insert time, or a request that contradicts current state."""
    status_code = 409

    def __init__(self, detail: str, existing_id: Optional[int] = None):
        super().__init__(detail)
        self.existing_id = existing_id


class InvalidProposalKindError(ValidationError, ConflictError):
    """Proposal kind does not match the nullness of the target field."""
    status_code = 409

    def __init__(self, detail: str):
        ConflictError.__init__(self, detail)


class UpstreamError(CourtGuardianError):
    """Place-search or geocoding provider failure or timeout."""
    status_code = 502


class AuthorizationError(CourtGuardianError):
    """Caller lacks the role required for the operation."""
    status_code = 403


class AuthenticationError(CourtGuardianError):
    """No caller identity on a route that needs one."""
    status_code = 401


class NotFoundError(CourtGuardianError):
    """Unknown job, court, proposal or suggestion id."""
    status_code = 404
