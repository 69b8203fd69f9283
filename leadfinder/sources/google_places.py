from typing import Any, Dict, List, Optional

import requests

from ..errors import (
    AuthorizationError,
    EnrichmentError,
    InvalidRequestError,
    QuotaOrDeniedError,
    SourceError,
)
from ..logger import get_logger
from ..models import Candidate
from ..retry import RetryError, exponential_backoff, should_retry_http_status
from .base import BusinessSource, city_from_address

logger = get_logger()

TEXT_SEARCH_ENDPOINT = "https://maps.googleapis.com/maps/api/place/textsearch/json"
DETAILS_ENDPOINT = "https://maps.googleapis.com/maps/api/place/details/json"
PROVIDER = "google_places"

REQUEST_DENIED_HINTS = [
    "Google Places API access denied. Please check:",
    "  1. Places API is enabled in Google Cloud Console",
    "  2. Billing is set up on your Google Cloud project",
    "  3. API key has no IP/referrer restrictions blocking this server",
]
QUOTA_HINTS = [
    "Google Places API quota exceeded. Please check:",
    "  1. Daily quota and per-minute limits in Google Cloud Console",
    "  2. Billing is set up on your Google Cloud project",
]
AUTH_HINTS = [
    "Google Places API rejected the API key. Please check:",
    "  1. GOOGLE_PLACES_API_KEY is a valid, unrevoked key",
    "  2. API key restrictions allow the Places API and this server",
    "  3. Places API is enabled for the key's Google Cloud project",
]


def _log_retry(attempt: int, error: Exception, delay: float) -> None:
    logger.warning(
        "Retrying Google Places request",
        provider=PROVIDER,
        attempt=attempt,
        delay=delay,
        error=str(error),
    )


@exponential_backoff(
    max_retries=2,
    base_delay=1.0,
    exceptions=(
        requests.exceptions.Timeout,
        requests.exceptions.ConnectionError,
        requests.exceptions.HTTPError,
    ),
    on_retry=_log_retry,
)
def _get_with_retry(url: str, params: Dict[str, Any], timeout: float):
    """GET with automatic retry on transient network errors and 429/5xx."""
    resp = requests.get(url, params=params, timeout=timeout)
    if should_retry_http_status(resp.status_code):
        resp.raise_for_status()
    return resp


class GooglePlacesSource(BusinessSource):
    """Business search backed by the Google Places web service."""

    name = PROVIDER
    requires_credential = True

    def __init__(self, api_key: str, timeout: float = 15.0):
        self.api_key = api_key
        self.timeout = timeout

    def search(self, query: str, location: str, radius: int = 5000) -> List[Candidate]:
        params = {
            "query": f"{query} in {location}",
            "radius": str(radius),
            "key": self.api_key,
        }
        data = self._request(TEXT_SEARCH_ENDPOINT, params)
        self._check_status(data)

        return [self._to_candidate(place) for place in data.get("results") or []]

    def fetch_details(self, source_id: str) -> Dict[str, Optional[str]]:
        params = {
            "place_id": source_id,
            "fields": "formatted_phone_number,website",
            "key": self.api_key,
        }
        try:
            logger.record_api_call()
            resp = requests.get(DETAILS_ENDPOINT, params=params, timeout=self.timeout)
            resp.raise_for_status()
            result = resp.json().get("result") or {}
        except (requests.exceptions.RequestException, ValueError) as e:
            raise EnrichmentError(f"Place details lookup failed for {source_id}: {e}") from e

        return {
            "phone": result.get("formatted_phone_number"),
            "website": result.get("website"),
        }

    def _request(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        logger.record_api_call()
        try:
            resp = _get_with_retry(url, params, self.timeout)
        except RetryError as e:
            raise SourceError(
                f"Google Places API unreachable: {e.__cause__ or e}",
                provider=PROVIDER,
            ) from e
        except requests.exceptions.RequestException as e:
            raise SourceError(f"Google Places API request error: {e}", provider=PROVIDER) from e

        if resp.status_code in (401, 403):
            raise AuthorizationError(
                f"Google Places API rejected the credential ({resp.status_code})",
                provider=PROVIDER,
                status=str(resp.status_code),
                remediation=AUTH_HINTS,
            )
        if not resp.ok:
            raise SourceError(
                f"Google Places API error: {resp.status_code} {resp.reason}",
                provider=PROVIDER,
                status=str(resp.status_code),
            )
        try:
            return resp.json()
        except ValueError as e:
            raise SourceError("Google Places API returned invalid JSON", provider=PROVIDER) from e

    def _check_status(self, data: Dict[str, Any]) -> None:
        status = data.get("status", "UNKNOWN")
        detail = data.get("error_message") or "No additional details provided"

        if status in ("OK", "ZERO_RESULTS"):
            return
        if status == "REQUEST_DENIED":
            raise QuotaOrDeniedError(
                f"Google Places API REQUEST_DENIED: {detail}",
                provider=PROVIDER,
                status=status,
                remediation=REQUEST_DENIED_HINTS,
            )
        if status == "OVER_QUERY_LIMIT":
            raise QuotaOrDeniedError(
                f"Google Places API OVER_QUERY_LIMIT: {detail}",
                provider=PROVIDER,
                status=status,
                remediation=QUOTA_HINTS,
            )
        if status == "INVALID_REQUEST":
            raise InvalidRequestError(
                "Invalid request to Google Places API. Check your query parameters.",
                provider=PROVIDER,
                status=status,
            )
        raise SourceError(f"Google Places API error: {status} - {detail}", provider=PROVIDER, status=status)

    @staticmethod
    def _to_candidate(place: Dict[str, Any]) -> Candidate:
        location = (place.get("geometry") or {}).get("location") or {}
        types = place.get("types") or []
        address = place.get("formatted_address")
        return Candidate(
            name=place.get("name") or "",
            category=types[0] if types else "business",
            address=address,
            city=city_from_address(address),
            source=PROVIDER,
            source_id=place.get("place_id"),
            rating=place.get("rating"),
            review_count=place.get("user_ratings_total"),
            latitude=location.get("lat"),
            longitude=location.get("lng"),
        )
