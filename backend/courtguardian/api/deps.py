"""
Dependencies that hand route handlers the long-lived services built in the
application lifespan.
"""
from fastapi import Request

from courtguardian.services.court_store import CourtStore
from courtguardian.services.discovery_cache import DiscoveryCache
from courtguardian.services.discovery_jobs import DiscoveryOrchestrator
from courtguardian.services.geocoding import GeocodingService
from courtguardian.services.scheduler import SweepScheduler
from courtguardian.services.suggestions import SuggestionService
from courtguardian.services.verification import VerificationService


def get_store(request: Request) -> CourtStore:
    return request.app.state.store


def get_cache(request: Request) -> DiscoveryCache:
    return request.app.state.cache


def get_orchestrator(request: Request) -> DiscoveryOrchestrator:
    return request.app.state.orchestrator


def get_sweeper(request: Request) -> SweepScheduler:
    return request.app.state.sweeper


def get_geocoder(request: Request) -> GeocodingService:
    return request.app.state.geocoder


def get_verification_service(request: Request) -> VerificationService:
    return request.app.state.verification


def get_suggestion_service(request: Request) -> SuggestionService:
    return request.app.state.suggestions
