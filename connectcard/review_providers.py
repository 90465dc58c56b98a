# connectcard/review_providers.py
"""Clients for the Google Places and Yelp Fusion review endpoints."""
from typing import Any, Dict, List, Optional

import requests

from connectcard.errors import (
    CredentialMissing,
    MalformedProviderResponse,
    ProviderRejected,
    ProviderUnavailable,
)

GOOGLE_PLACES_BASE_URL = "https://maps.googleapis.com/maps/api/place"
YELP_BASE_URL = "https://api.yelp.com/v3"

PLACE_DETAILS_FIELDS = (
    "name,formatted_address,international_phone_number,website,geometry,photos,"
    "rating,user_ratings_total,url,opening_hours,types,address_components"
)


def _read_json(response: requests.Response, provider: str) -> Dict[str, Any]:
    try:
        payload = response.json()
    except ValueError as e:
        raise MalformedProviderResponse(f"{provider} returned a non-JSON body (HTTP {response.status_code})") from e
    if not isinstance(payload, dict):
        raise MalformedProviderResponse(f"{provider} returned {type(payload).__name__} instead of an object")
    return payload


class GoogleReviewsClient:
    """
    Google Places API client. Reviews come from the Place Details endpoint,
    which returns at most five of them.
    """

    def __init__(self, api_key: Optional[str], session: Optional[requests.Session] = None, timeout: float = 10):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def _place_details(self, place_id: str, fields: str) -> Dict[str, Any]:
        if not self.api_key:
            raise CredentialMissing("GOOGLE_PLACES_API_KEY not configured")

        params = {"place_id": place_id, "fields": fields, "key": self.api_key}
        try:
            response = self.session.get(f"{GOOGLE_PLACES_BASE_URL}/details/json", params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise ProviderUnavailable(f"Google Places request failed: {e.__class__.__name__}") from e

        payload = _read_json(response, "Google")
        status = payload.get("status")
        if status != "OK":
            raise ProviderRejected(
                f"Google API error: {status} - {payload.get('error_message') or 'Unknown error'}",
                status=status,
            )
        result = payload.get("result") or {}
        if not isinstance(result, dict):
            raise MalformedProviderResponse("Google 'result' is not an object")
        return result

    def fetch_reviews(self, place_id: str) -> List[Dict[str, Any]]:
        result = self._place_details(place_id, "reviews")
        reviews = result.get("reviews") or []
        if not isinstance(reviews, list):
            raise MalformedProviderResponse("Google 'reviews' is not a list")
        return reviews

    def fetch_place_details(self, place_id: str) -> Dict[str, Any]:
        return self._place_details(place_id, PLACE_DETAILS_FIELDS)

    def photo_url(self, photo_reference: str, max_width: int = 800) -> str:
        return (
            f"{GOOGLE_PLACES_BASE_URL}/photo?maxwidth={max_width}"
            f"&photoreference={photo_reference}&key={self.api_key}"
        )


class YelpReviewsClient:
    """Yelp Fusion API client, authenticated with a bearer API key."""

    def __init__(self, api_key: Optional[str], session: Optional[requests.Session] = None, timeout: float = 10):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch_reviews(self, business_id: str) -> List[Dict[str, Any]]:
        if not self.api_key:
            raise CredentialMissing("YELP_API_KEY not configured")

        url = f"{YELP_BASE_URL}/businesses/{business_id}/reviews"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise ProviderUnavailable(f"Yelp request failed: {e.__class__.__name__}") from e

        if response.status_code != 200:
            try:
                error = response.json().get("error") or {}
            except (ValueError, AttributeError):
                error = {}
            description = error.get("description") if isinstance(error, dict) else None
            raise ProviderRejected(
                f"Yelp API error: {response.status_code} - {description or 'Unknown error'}",
                status=response.status_code,
            )

        payload = _read_json(response, "Yelp")
        reviews = payload.get("reviews") or []
        if not isinstance(reviews, list):
            raise MalformedProviderResponse("Yelp 'reviews' is not a list")
        return reviews
