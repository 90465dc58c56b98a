# connectcard/settings.py
"""
Environment-driven settings shared by every ConnectCard Lambda.
"""
from functools import lru_cache
from typing import Optional

from botocore.config import Config
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Manages env vars using Pydantic BaseSettings.
    A local .env file is read too, which is handy for run_live.py.
    """
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    aws_region: str = Field("us-east-1", alias='AWS_REGION')
    business_card_table_name: str = Field("BusinessCard", alias='BUSINESS_CARD_TABLE_NAME')
    review_table_name: str = Field("Review", alias='REVIEW_TABLE_NAME')
    saved_contact_table_name: str = Field("SavedContact", alias='SAVED_CONTACT_TABLE_NAME')
    storage_bucket_name: str = Field("connectcard-storage", alias='STORAGE_BUCKET_NAME')

    # Secondary indexes
    slug_index_name: str = Field("bySlug", alias='SLUG_INDEX_NAME')
    external_id_index_name: str = Field("externalId", alias='EXTERNAL_ID_INDEX_NAME')
    business_reviews_index_name: str = Field("businessId", alias='BUSINESS_REVIEWS_INDEX_NAME')
    saved_contacts_index_name: str = Field("userId", alias='SAVED_CONTACTS_INDEX_NAME')

    # Snapshot publishing
    snapshot_key: str = Field("public/businesses.json", alias='SNAPSHOT_KEY')
    snapshot_cache_control: str = Field("max-age=3600", alias='SNAPSHOT_CACHE_CONTROL')
    snapshot_version: str = Field("1.0", alias='SNAPSHOT_VERSION')
    snapshot_page_size: Optional[int] = Field(None, alias='SNAPSHOT_PAGE_SIZE')

    # Review providers
    google_places_api_key: Optional[str] = Field(None, alias='GOOGLE_PLACES_API_KEY')
    yelp_api_key: Optional[str] = Field(None, alias='YELP_API_KEY')
    http_timeout_seconds: float = Field(10.0, alias='HTTP_TIMEOUT_SECONDS')

    aws_connect_timeout_seconds: int = Field(5, alias='AWS_CONNECT_TIMEOUT_SECONDS')
    aws_read_timeout_seconds: int = Field(30, alias='AWS_READ_TIMEOUT_SECONDS')

    system_user_id: str = Field("SYSTEM", alias='SYSTEM_USER_ID')

    @field_validator('google_places_api_key', 'yelp_api_key', 'snapshot_page_size', mode='before')
    @classmethod
    def _blank_is_unset(cls, value):
        # The deployment passes "" when a key is not configured.
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def boto_config(self) -> Config:
        """botocore config putting an upper bound on every AWS call."""
        return Config(
            region_name=self.aws_region,
            connect_timeout=self.aws_connect_timeout_seconds,
            read_timeout=self.aws_read_timeout_seconds,
        )


@lru_cache
def get_settings() -> AppSettings:
    return AppSettings()
