# connectcard/place_import.py
"""Maps Google place details to a BusinessCard draft an owner can review and save."""
from typing import Any, Dict, List, Optional

from pydantic import Field

from connectcard.models import BusinessHours, CamelModel, GeoLocation
from connectcard.review_providers import GoogleReviewsClient

MAX_PHOTOS = 5
CITY_COMPONENT_TYPES = ("locality", "administrative_area_level_2", "administrative_area_level_1")


class BusinessDraft(CamelModel):
    business_name: str
    phone: str = ""
    website: str = ""
    address: str = ""
    city: str = ""
    country: str = ""
    location: GeoLocation
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = None
    photos: List[str] = Field(default_factory=list)
    google_place_id: str
    google_maps_url: Optional[str] = None
    hours: BusinessHours
    category: str


def find_address_component(components: List[Dict[str, Any]], component_type: str) -> str:
    for component in components or []:
        if component_type in component.get("types", []):
            return component.get("long_name", "")
    return ""


def category_from_types(types: Optional[List[str]]) -> str:
    """'home_goods_store' -> 'Home goods store'."""
    first = types[0] if types else "Business"
    return first[:1].upper() + first[1:].replace("_", " ")


def build_business_draft(place: Dict[str, Any], place_id: str, client: GoogleReviewsClient) -> BusinessDraft:
    components = place.get("address_components") or []
    city = next(
        (value for value in (find_address_component(components, t) for t in CITY_COMPONENT_TYPES) if value),
        "",
    )
    geometry_location = (place.get("geometry") or {}).get("location") or {}
    opening_hours = place.get("opening_hours") or {}

    return BusinessDraft(
        business_name=place.get("name") or "",
        phone=place.get("international_phone_number") or "",
        website=place.get("website") or "",
        address=place.get("formatted_address") or "",
        city=city,
        country=find_address_component(components, "country"),
        location=GeoLocation(
            lat=geometry_location.get("lat") or 0,
            lng=geometry_location.get("lng") or 0,
        ),
        rating=place.get("rating"),
        user_ratings_total=place.get("user_ratings_total"),
        # The client should proxy or download these; Google photo links expire.
        photos=[
            client.photo_url(photo["photo_reference"])
            for photo in (place.get("photos") or [])[:MAX_PHOTOS]
            if photo.get("photo_reference")
        ],
        google_place_id=place_id,
        google_maps_url=place.get("url"),
        hours=BusinessHours(weekday_text=opening_hours.get("weekday_text") or []),
        category=category_from_types(place.get("types")),
    )
