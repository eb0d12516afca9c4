from courtguardian.services.court_store import CourtStore
from courtguardian.services.discovery_cache import DiscoveryCache
from courtguardian.services.discovery_jobs import DiscoveryOrchestrator, JobState
from courtguardian.services.geocoding import GeocodingService
from courtguardian.services.places import GooglePlacesClient
from courtguardian.services.scheduler import SweepScheduler
from courtguardian.services.suggestions import SuggestionService
from courtguardian.services.verification import VerificationService

__all__ = [
    "CourtStore",
    "DiscoveryCache",
    "DiscoveryOrchestrator",
    "JobState",
    "GeocodingService",
    "GooglePlacesClient",
    "SweepScheduler",
    "SuggestionService",
    "VerificationService",
]
