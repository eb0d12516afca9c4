from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
import logging

from courtguardian.core.config import settings
from courtguardian.core.database import Base, check_database_connection, get_engine, get_session_local
from courtguardian.core.errors import CourtGuardianError
from courtguardian.api import api_router
from courtguardian import models  # noqa: F401  (registers tables on Base)
from courtguardian.services.court_store import CourtStore
from courtguardian.services.discovery_cache import DiscoveryCache
from courtguardian.services.discovery_jobs import DiscoveryOrchestrator
from courtguardian.services.geocoding import GeocodingService
from courtguardian.services.places import GooglePlacesClient
from courtguardian.services.scheduler import SweepScheduler
from courtguardian.services.suggestions import SuggestionService
from courtguardian.services.verification import VerificationService


class HTTPSRedirectMiddleware(BaseHTTPMiddleware):
    """Middleware to ensure redirects use HTTPS when behind a proxy."""
    async def dispatch(self, request: Request, call_next):
        forwarded_proto = request.headers.get("x-forwarded-proto", "http")
        if forwarded_proto == "https":
            request.scope["scheme"] = "https"
        return await call_next(request)

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.DEBUG else logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def build_services(app: FastAPI, session_factory, provider=None, geocoder=None) -> None:
    """Wire the discovery pipeline onto app.state."""
    store = CourtStore(session_factory)
    cache = DiscoveryCache()
    orchestrator = DiscoveryOrchestrator(store, provider or GooglePlacesClient(), cache)
    geocoder = geocoder or GeocodingService()

    app.state.store = store
    app.state.cache = cache
    app.state.orchestrator = orchestrator
    app.state.sweeper = SweepScheduler(orchestrator)
    app.state.geocoder = geocoder
    app.state.verification = VerificationService(store)
    app.state.suggestions = SuggestionService(store, geocoder)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle manager."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    # Create database tables (in production, use migrations)
    Base.metadata.create_all(bind=get_engine())
    logger.info("Database tables created/verified")

    if not hasattr(app.state, "orchestrator"):
        build_services(app, get_session_local())

    orchestrator = app.state.orchestrator
    orchestrator.start_workers()
    if settings.SCHEDULER_AUTOSTART:
        orchestrator.start()
        app.state.sweeper.start()

    yield

    # Shutdown
    logger.info("Shutting down...")
    app.state.sweeper.shutdown()
    orchestrator.stop()
    orchestrator.shutdown()


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Court discovery, deduplication and crowdsourced verification",
    lifespan=lifespan,
)


@app.exception_handler(CourtGuardianError)
async def courtguardian_error_handler(request: Request, exc: CourtGuardianError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.detail}")
    body = {"detail": exc.detail}
    existing_id = getattr(exc, "existing_id", None)
    if existing_id is not None:
        body["existing_id"] = existing_id
    return JSONResponse(status_code=exc.status_code, content=body)


# Add HTTPS redirect middleware (must be added before CORS)
app.add_middleware(HTTPSRedirectMiddleware)

logger.info(f"CORS origins configured: {settings.CORS_ORIGINS}")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def root():
    """Health check endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "healthy"
    }


@app.get("/health")
def health_check():
    """Detailed health check."""
    database_ok = check_database_connection()
    return {
        "status": "healthy" if database_ok else "degraded",
        "database": "connected" if database_ok else "unreachable",
        "scheduler_running": app.state.orchestrator.is_running if hasattr(app.state, "orchestrator") else False,
        "version": settings.APP_VERSION
    }
