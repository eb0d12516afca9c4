"""
Google Places client for court discovery.

Runs a Text Search per sport-specific search term around a point, drops
repeated place ids, looks up Place Details for each hit, filters out places
that are clearly not courts, and returns CandidateRecords.
"""
import time
import logging
from typing import Optional, Protocol

import httpx

from courtguardian.core.config import settings
from courtguardian.core.errors import UpstreamError
from courtguardian.models.candidate import CandidateRecord
from courtguardian.models.court import Provenance

logger = logging.getLogger(__name__)

BASE_URL = "https://maps.googleapis.com/maps/api/place"

# Sport type mapping to Google Places search terms
SPORT_SEARCH_TERMS = {
    "tennis": ["tennis court", "tennis club", "tennis center"],
    "pickleball": ["pickleball court", "pickleball club", "pickleball center"],
    "basketball": ["basketball court", "basketball gym", "sports complex"],
    "volleyball": ["volleyball court", "volleyball club", "beach volleyball"],
    "badminton": ["badminton court", "badminton club", "badminton center"],
    "padel": ["padel court", "padel club", "padel center"],
}

DETAIL_FIELDS = (
    "place_id,name,formatted_address,geometry,rating,user_ratings_total,"
    "formatted_phone_number,website,opening_hours,types,business_status"
)

# Names/addresses containing these are shops, vendors, schools or services
BLACKLIST_TERMS = [
    # Retail
    "supply", "store", "shop", "retail", "equipment", "gear", "apparel", "clothing",
    "outlet", "warehouse", "depot", "mart",
    # Companies
    "llc", "inc", "corp", "company", "corporation", "enterprises", "ltd",
    # Online
    ".com", ".net", ".org", "website", "online", "digital",
    # Manufacturing/Distribution
    "manufacturer", "distributor", "wholesale", "manufacturing", "factory",
    # Education
    "academy", "school", "university", "college", "institute",
    # Services
    "repair", "service", "maintenance", "consulting", "stringing",
    # Real Estate
    "real estate", "property", "development", "construction",
]

EXCLUDED_TYPES = {
    "clothing_store", "sporting_goods_store", "store", "shoe_store",
    "electronics_store", "shopping_mall", "department_store",
    "insurance_agency", "finance", "real_estate_agency",
}

SPORT_KEYWORDS = [
    "tennis", "pickleball", "basketball", "volleyball", "badminton", "padel",
    "court", "courts", "club", "center", "centre", "complex", "facility", "park",
    "recreation", "rec", "sports", "athletic", "racquet", "racket",
]

RELEVANT_TYPES = {
    "park", "gym", "sports_complex", "stadium", "recreation", "tourist_attraction",
}


class PlaceSearchProvider(Protocol):
    def search(self, latitude: float, longitude: float, radius_m: int, sport: str) -> list[CandidateRecord]:
        ...


def search_terms_for(sport: str) -> list[str]:
    return SPORT_SEARCH_TERMS.get(sport.lower(), [f"{sport.lower()} court"])


def is_valid_court(details: dict) -> bool:
    """Heuristic relevance check on a Place Details payload."""
    if details.get("business_status") == "CLOSED_PERMANENTLY":
        return False

    name = (details.get("name") or "").lower()
    address = (details.get("formatted_address") or "").lower()
    combined = f"{name} {address}"
    if any(term in combined for term in BLACKLIST_TERMS):
        return False

    types = set(details.get("types") or [])
    if types & EXCLUDED_TYPES:
        return False

    has_relevant_name = any(keyword in name for keyword in SPORT_KEYWORDS)
    has_relevant_type = bool(types & RELEVANT_TYPES)
    return has_relevant_name or has_relevant_type


def to_candidate(details: dict, sport: str) -> CandidateRecord:
    location = (details.get("geometry") or {}).get("location") or {}
    hours = details.get("opening_hours")
    if hours:
        hours = {
            "periods": hours.get("periods"),
            "weekday_text": hours.get("weekday_text"),
        }
    return CandidateRecord(
        name=details.get("name"),
        address=details.get("formatted_address"),
        latitude=location.get("lat"),
        longitude=location.get("lng"),
        sport_types=[sport],
        phone=details.get("formatted_phone_number"),
        website=details.get("website"),
        opening_hours=hours,
        provenance=Provenance.PLACE_SEARCH,
        google_place_id=details.get("place_id"),
        google_rating=details.get("rating"),
        google_total_ratings=details.get("user_ratings_total"),
    )


class GooglePlacesClient:
    """Place-search provider backed by the Google Places web service."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        request_delay: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key or settings.GOOGLE_PLACES_API_KEY
        self.timeout = timeout if timeout is not None else settings.PLACES_TIMEOUT_SECONDS
        self.request_delay = request_delay if request_delay is not None else settings.PLACES_REQUEST_DELAY_SECONDS
        self._transport = transport
        if not self.api_key:
            logger.warning("Google Places API key not configured - discovery jobs will fail")

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=BASE_URL, timeout=self.timeout, transport=self._transport)

    def _get(self, client: httpx.Client, path: str, params: dict) -> dict:
        params = {**params, "key": self.api_key}
        try:
            response = client.get(path, params=params)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise UpstreamError(f"Google Places request timed out: {e}")
        except httpx.HTTPError as e:
            raise UpstreamError(f"Google Places request failed: {e}")
        return response.json()

    def text_search(self, client: httpx.Client, query: str, latitude: float, longitude: float, radius_m: int) -> list[dict]:
        data = self._get(client, "/textsearch/json", {
            "query": query,
            "location": f"{latitude},{longitude}",
            "radius": radius_m,
            "type": "establishment",
        })
        status = data.get("status")
        if status not in ("OK", "ZERO_RESULTS"):
            raise UpstreamError(f"Google Places API error: {status}")
        return data.get("results", [])

    def place_details(self, client: httpx.Client, place_id: str) -> dict:
        data = self._get(client, "/details/json", {"place_id": place_id, "fields": DETAIL_FIELDS})
        status = data.get("status")
        if status != "OK":
            raise UpstreamError(f"Google Places details error for {place_id}: {status}")
        return data.get("result", {})

    def search(self, latitude: float, longitude: float, radius_m: int, sport: str) -> list[CandidateRecord]:
        """
        Search for courts of one sport near a point.

        Raises UpstreamError if the search itself fails. A failed details
        lookup only drops that one place.
        """
        if not self.api_key:
            raise UpstreamError("Google Places API key not configured")

        candidates: list[CandidateRecord] = []
        seen_place_ids: set[str] = set()

        with self._client() as client:
            hits = []
            for term in search_terms_for(sport):
                hits.extend(self.text_search(client, term, latitude, longitude, radius_m))

            for hit in hits:
                place_id = hit.get("place_id")
                if not place_id or place_id in seen_place_ids:
                    continue
                seen_place_ids.add(place_id)

                try:
                    details = self.place_details(client, place_id)
                except UpstreamError as e:
                    logger.warning(f"Skipping place {place_id}: {e.detail}")
                    continue

                if not is_valid_court(details):
                    logger.debug(f"Filtered out non-court place: {details.get('name')}")
                    continue

                candidates.append(to_candidate(details, sport))
                if self.request_delay:
                    time.sleep(self.request_delay)

        logger.info(
            f"Google Places returned {len(seen_place_ids)} unique places, "
            f"{len(candidates)} courts for {sport} at {latitude}, {longitude}"
        )
        return candidates
