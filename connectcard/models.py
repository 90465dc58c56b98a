# connectcard/models.py
"""
Pydantic models for the directory records, the public snapshot and the job summaries.

Stored items and JSON payloads use camelCase keys; the models use snake_case
attributes with camelCase aliases so both spellings are accepted on input.
"""
import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Enums

class CountryCode(str, Enum):
    IN = "IN"
    US = "US"
    UK = "UK"
    AE = "AE"


class CurrencyCode(str, Enum):
    INR = "INR"
    USD = "USD"
    GBP = "GBP"
    AED = "AED"


class SubscriptionTier(str, Enum):
    STARTER = "STARTER"
    PROFESSIONAL = "PROFESSIONAL"
    ENTERPRISE = "ENTERPRISE"


class ReviewSource(str, Enum):
    CONNECTCARD = "CONNECTCARD"
    GOOGLE = "GOOGLE"
    YELP = "YELP"


# Counters that may only change through DirectoryStore.increment_counter.
COUNTER_FIELDS = ("viewCount", "saveCount", "catalogueViewCount")

HOURS_SCHEMA_VERSION = 1
WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class GeoLocation(CamelModel):
    lat: Optional[float] = None
    lng: Optional[float] = None


class BusinessHours(CamelModel):
    """
    Opening hours of a business.

    Schema version 1:
      days         -- {"mon": "9-5", ...}, keys limited to WEEKDAYS
      weekday_text -- provider formatted lines, e.g. Google's
                      ["Monday: 9:00 AM - 5:00 PM", ...]
    """
    schema_version: int = HOURS_SCHEMA_VERSION
    days: Dict[str, str] = Field(default_factory=dict)
    weekday_text: List[str] = Field(default_factory=list)

    @field_validator('days')
    @classmethod
    def _known_days(cls, value: Dict[str, str]) -> Dict[str, str]:
        normalized = {day.lower(): text for day, text in value.items()}
        unknown = set(normalized) - set(WEEKDAYS)
        if unknown:
            raise ValueError(f"Unknown weekday keys: {sorted(unknown)}")
        return normalized

    @classmethod
    def from_raw(cls, value) -> Optional["BusinessHours"]:
        """Builds hours from any of the shapes stored before the schema was versioned."""
        if value is None or isinstance(value, BusinessHours):
            return value
        if isinstance(value, str):
            # AWSJSON attributes come back from DynamoDB as strings
            value = json.loads(value)
        if isinstance(value, dict):
            if 'schemaVersion' in value or 'schema_version' in value:
                return cls.model_validate(value)
            return cls(days=value)
        if isinstance(value, list):
            return cls(weekday_text=value)
        raise ValueError(f"Unsupported hours value of type {type(value).__name__}")


class BusinessCard(CamelModel):
    """A public directory entry, keyed by (pk, sk) and looked up by slug."""
    pk: str
    sk: str
    slug: str
    business_name: str
    tagline: Optional[str] = None

    phone: str
    email: Optional[str] = None
    website: Optional[str] = None
    whatsapp: Optional[str] = None

    category: str
    address: Optional[str] = None
    city: Optional[str] = None
    location: Optional[GeoLocation] = None
    service_area_radius: Optional[int] = None

    country: Optional[CountryCode] = None
    currency: Optional[CurrencyCode] = None
    tier: Optional[SubscriptionTier] = None

    # S3 keys
    logo_url: Optional[str] = None
    cover_photo_url: Optional[str] = None
    gallery_urls: List[str] = Field(default_factory=list)

    hours: Optional[BusinessHours] = None
    is_verified: bool = False

    view_count: int = 0
    save_count: int = 0
    catalogue_view_count: int = 0

    google_place_id: Optional[str] = None
    yelp_business_id: Optional[str] = None

    @field_validator('hours', mode='before')
    @classmethod
    def _parse_hours(cls, value):
        return BusinessHours.from_raw(value)


class Review(CamelModel):
    business_pk: str
    business_sk: str
    user_id: str
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None
    photo_url: Optional[str] = None
    source: ReviewSource = ReviewSource.CONNECTCARD
    external_id: Optional[str] = None
    external_url: str = ""
    author_name: Optional[str] = None
    author_photo_url: str = ""
    review_date: Optional[str] = None
    last_synced_at: Optional[str] = None
    is_verified: bool = False

    @property
    def business_id(self) -> str:
        return business_key(self.business_pk, self.business_sk)

    def to_item(self, now: Optional[str] = None) -> dict:
        """
        Builds the DynamoDB item. Imported reviews use their externalId as the
        primary key so a conditional put enforces one item per externalId.
        """
        now = now or utc_now_iso()
        item = self.model_dump(by_alias=True, mode='json', exclude_none=True)
        item['id'] = self.external_id or str(uuid.uuid4())
        item['businessId'] = self.business_id
        item['createdAt'] = self.review_date or now
        item['updatedAt'] = now
        return item


class SavedContact(CamelModel):
    """A user's address-book entry for a business, looked up by userId."""
    id: str
    user_id: str
    business_id: str
    custom_name: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    personal_notes: Optional[str] = None
    reminder_date: Optional[str] = None
    reminder_label: Optional[str] = None
    last_synced_at: Optional[str] = None


def business_key(business_pk: str, business_sk: str) -> str:
    return f"{business_pk}#{business_sk}"


# Snapshot

# Attributes read from the directory table for the public snapshot.
SNAPSHOT_FIELDS = (
    "slug", "businessName", "category", "phone", "city", "location",
    "logoUrl", "tier", "country", "currency", "hours",
)


class SnapshotEntry(CamelModel):
    """Reduced, public projection of a BusinessCard."""
    slug: str
    business_name: Optional[str] = None
    category: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    location: Optional[GeoLocation] = None
    logo_url: Optional[str] = None
    tier: Optional[SubscriptionTier] = None
    country: Optional[CountryCode] = None
    currency: Optional[CurrencyCode] = None
    hours: Optional[BusinessHours] = None

    @field_validator('hours', mode='before')
    @classmethod
    def _parse_hours(cls, value):
        return BusinessHours.from_raw(value)

    @classmethod
    def from_item(cls, item: dict) -> Tuple["SnapshotEntry", List[str]]:
        """
        Projects a stored item, dropping optional attributes that fail to parse.
        Returns the entry and the names of the dropped attributes.

        Raises:
            ValidationError: If the item has no usable slug.
        """
        try:
            return cls.model_validate(item), []
        except ValidationError as e:
            invalid = sorted({str(err['loc'][0]) for err in e.errors() if err['loc']})
            if 'slug' in invalid:
                raise
        cleaned = {k: v for k, v in item.items() if k not in invalid}
        return cls.model_validate(cleaned), invalid


class SnapshotMeta(CamelModel):
    generated_at: str
    count: int
    version: str


class SnapshotDocument(CamelModel):
    meta: SnapshotMeta
    data: List[SnapshotEntry]

    @classmethod
    def build(cls, entries: List[SnapshotEntry], generated_at: datetime, version: str) -> "SnapshotDocument":
        meta = SnapshotMeta(generated_at=generated_at.isoformat(), count=len(entries), version=version)
        return cls(meta=meta, data=list(entries))


# Job summaries and requests

class ExportSummary(CamelModel):
    bucket: str
    key: str
    count: int
    skipped: int = 0
    generated_at: str
    version: str


class ImportTarget(CamelModel):
    business_pk: str = Field(min_length=1)
    business_sk: str = Field(min_length=1)

    @property
    def business_id(self) -> str:
        return business_key(self.business_pk, self.business_sk)


class ImportSources(CamelModel):
    google_place_id: Optional[str] = None
    yelp_business_id: Optional[str] = None


class ImportReviewsRequest(ImportTarget, ImportSources):
    """The import-reviews Lambda event."""

    @property
    def target(self) -> ImportTarget:
        return ImportTarget(business_pk=self.business_pk, business_sk=self.business_sk)

    @property
    def sources(self) -> ImportSources:
        return ImportSources(google_place_id=self.google_place_id, yelp_business_id=self.yelp_business_id)


class ImportSummary(CamelModel):
    google_reviews: int = 0
    yelp_reviews: int = 0
    errors: List[str] = Field(default_factory=list)
