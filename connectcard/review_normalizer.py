# connectcard/review_normalizer.py
"""
Provider review payloads and their conversion to the internal Review shape.

Raw payloads are parsed into the RawReview tagged union, then a single
normalize_review() turns either variant into a Review.
"""
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from connectcard.errors import MalformedProviderResponse
from connectcard.models import ImportTarget, Review, ReviewSource, utc_now_iso


class GoogleRawReview(BaseModel):
    provider: Literal["GOOGLE"] = "GOOGLE"
    author_name: str
    rating: int = Field(ge=1, le=5)
    text: Optional[str] = ""
    time: int  # unix seconds
    author_url: Optional[str] = None
    profile_photo_url: Optional[str] = None
    relative_time_description: Optional[str] = None


class YelpUser(BaseModel):
    name: str
    image_url: Optional[str] = None
    profile_url: Optional[str] = None


class YelpRawReview(BaseModel):
    provider: Literal["YELP"] = "YELP"
    id: str = Field(min_length=1)
    rating: int = Field(ge=1, le=5)
    text: Optional[str] = ""
    time_created: str
    url: str = ""
    user: YelpUser


RawReview = Annotated[Union[GoogleRawReview, YelpRawReview], Field(discriminator="provider")]

_RAW_REVIEWS = TypeAdapter(List[RawReview])


def parse_raw_reviews(payloads: List[Dict[str, Any]], provider: Literal["GOOGLE", "YELP"]) -> List[Union[GoogleRawReview, YelpRawReview]]:
    """Tags each provider payload and validates the whole list."""
    tagged = []
    for payload in payloads:
        if not isinstance(payload, dict):
            raise MalformedProviderResponse(f"{provider} review entry is {type(payload).__name__}, expected an object")
        tagged.append({**payload, "provider": provider})
    try:
        return _RAW_REVIEWS.validate_python(tagged)
    except ValidationError as e:
        raise MalformedProviderResponse(
            f"{provider} reviews failed validation ({e.error_count()} error(s)): {e.errors()[0]['msg']}"
        ) from e


def google_external_id(target: ImportTarget, review_time: int) -> str:
    """
    Google reviews carry no stable id, so one is derived from the business
    key and the review timestamp. Two reviews of one business with the same
    timestamp collide; the importer reports that case.
    """
    return f"google_{target.business_id}_{review_time}"


def normalize_review(
    raw: Union[GoogleRawReview, YelpRawReview],
    target: ImportTarget,
    system_user_id: str,
    synced_at: Optional[str] = None,
) -> Review:
    synced_at = synced_at or utc_now_iso()

    if isinstance(raw, GoogleRawReview):
        return Review(
            business_pk=target.business_pk,
            business_sk=target.business_sk,
            user_id=system_user_id,
            rating=raw.rating,
            comment=raw.text or "",
            source=ReviewSource.GOOGLE,
            external_id=google_external_id(target, raw.time),
            external_url=raw.author_url or "",
            author_name=raw.author_name,
            author_photo_url=raw.profile_photo_url or "",
            review_date=datetime.fromtimestamp(raw.time, tz=timezone.utc).isoformat(),
            last_synced_at=synced_at,
        )

    if isinstance(raw, YelpRawReview):
        return Review(
            business_pk=target.business_pk,
            business_sk=target.business_sk,
            user_id=system_user_id,
            rating=raw.rating,
            comment=raw.text or "",
            source=ReviewSource.YELP,
            external_id=raw.id,
            external_url=raw.url,
            author_name=raw.user.name,
            author_photo_url=raw.user.image_url or "",
            review_date=raw.time_created,
            last_synced_at=synced_at,
        )

    raise TypeError(f"Unsupported raw review type: {type(raw).__name__}")
