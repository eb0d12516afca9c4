import time
import logging
import threading
from typing import Optional
from geopy.geocoders import Nominatim
from geopy.exc import GeocoderTimedOut, GeocoderServiceError
from courtguardian.core.config import settings
from courtguardian.core.errors import NotFoundError, UpstreamError, ValidationError
from courtguardian.models.candidate import Coordinate

logger = logging.getLogger(__name__)


class GeocodingService:
    """Service for geocoding addresses to lat/lng coordinates and back."""

    def __init__(self, geolocator=None, rate_limit: float = 1.0, timeout: Optional[float] = None):
        self.geolocator = geolocator or Nominatim(user_agent=settings.GEOCODING_USER_AGENT)
        self.rate_limit = rate_limit
        self.timeout = timeout if timeout is not None else settings.GEOCODING_TIMEOUT_SECONDS
        self.last_request_time = 0
        self._lock = threading.Lock()

    def _rate_limit(self):
        """Enforce rate limiting between requests."""
        with self._lock:
            elapsed = time.time() - self.last_request_time
            if elapsed < self.rate_limit:
                time.sleep(self.rate_limit - elapsed)
            self.last_request_time = time.time()

    def forward(self, address: str) -> Coordinate:
        """
        Geocode free-text address to a coordinate.

        Raises ValidationError for a blank address, NotFoundError if the
        provider has no match, UpstreamError if the provider fails or times
        out. Not retried.
        """
        address = (address or "").strip()
        if not address:
            raise ValidationError("Address is required")

        self._rate_limit()
        try:
            location = self.geolocator.geocode(address, timeout=self.timeout)
        except GeocoderTimedOut:
            logger.warning(f"Geocoding timeout for '{address}'")
            raise UpstreamError(f"Geocoding timed out for '{address}'")
        except GeocoderServiceError as e:
            logger.error(f"Geocoding service error: {e}")
            raise UpstreamError(f"Geocoding service error: {e}")

        if not location:
            logger.warning(f"Could not geocode: {address}")
            raise NotFoundError(f"Could not geocode '{address}'")

        logger.debug(f"Geocoded '{address}' -> ({location.latitude}, {location.longitude})")
        return Coordinate(latitude=location.latitude, longitude=location.longitude)

    def reverse(self, coordinate: Coordinate) -> str:
        """Resolve a coordinate to a formatted address."""
        self._rate_limit()
        query = f"{coordinate.latitude}, {coordinate.longitude}"
        try:
            location = self.geolocator.reverse(query, timeout=self.timeout)
        except GeocoderTimedOut:
            logger.warning(f"Reverse geocoding timeout for {query}")
            raise UpstreamError(f"Reverse geocoding timed out for {query}")
        except GeocoderServiceError as e:
            logger.error(f"Reverse geocoding service error: {e}")
            raise UpstreamError(f"Reverse geocoding service error: {e}")

        if not location:
            raise NotFoundError(f"No address found for {query}")
        return location.address
