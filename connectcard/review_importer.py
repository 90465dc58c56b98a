# connectcard/review_importer.py
"""
Imports third-party reviews for one business.

Each configured source is fetched, normalized, checked against the externalId
index and inserted when new. A failing source is reported in the summary and
never stops the other one.
"""
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

import requests

from connectcard.directory_store import DirectoryStore
from connectcard.errors import ConnectCardError
from connectcard.models import ImportSources, ImportSummary, ImportTarget, Review, ReviewSource
from connectcard.review_normalizer import normalize_review, parse_raw_reviews
from connectcard.review_providers import GoogleReviewsClient, YelpReviewsClient
from connectcard.settings import AppSettings, get_settings

SOURCE_LABELS = {ReviewSource.GOOGLE: "Google", ReviewSource.YELP: "Yelp"}


class ReviewImporter:

    def __init__(
        self,
        store: DirectoryStore,
        google_client: GoogleReviewsClient,
        yelp_client: YelpReviewsClient,
        settings: Optional[AppSettings] = None,
    ):
        self.store = store
        self.google_client = google_client
        self.yelp_client = yelp_client
        self.settings = settings or get_settings()

    @classmethod
    def from_settings(cls, settings: Optional[AppSettings] = None, store: Optional[DirectoryStore] = None) -> "ReviewImporter":
        settings = settings or get_settings()
        session = requests.Session()
        return cls(
            store or DirectoryStore.from_settings(settings),
            GoogleReviewsClient(settings.google_places_api_key, session=session, timeout=settings.http_timeout_seconds),
            YelpReviewsClient(settings.yelp_api_key, session=session, timeout=settings.http_timeout_seconds),
            settings,
        )

    def import_reviews(
        self,
        target: ImportTarget,
        sources: ImportSources,
        now: Optional[datetime] = None,
    ) -> ImportSummary:
        synced_at = (now or datetime.now(timezone.utc)).isoformat()
        summary = ImportSummary()

        if sources.google_place_id:
            summary.google_reviews = self._import_source(
                ReviewSource.GOOGLE,
                lambda: self.google_client.fetch_reviews(sources.google_place_id),
                target, synced_at, summary.errors,
            )
        if sources.yelp_business_id:
            summary.yelp_reviews = self._import_source(
                ReviewSource.YELP,
                lambda: self.yelp_client.fetch_reviews(sources.yelp_business_id),
                target, synced_at, summary.errors,
            )
        if not (sources.google_place_id or sources.yelp_business_id):
            print(f" -> No review sources configured for {target.business_id}. Nothing to import.")

        return summary

    def _import_source(
        self,
        source: ReviewSource,
        fetch: Callable[[], List[dict]],
        target: ImportTarget,
        synced_at: str,
        errors: List[str],
    ) -> int:
        """Runs fetch -> normalize -> dedupe -> persist for one source and returns the number of new reviews."""
        label = SOURCE_LABELS[source]
        imported = 0
        try:
            payloads = fetch()
            print(f" -> {label} returned {len(payloads)} review(s) for {target.business_id}.")
            raw_reviews = parse_raw_reviews(payloads, source.value)
            reviews = [
                normalize_review(raw, target, self.settings.system_user_id, synced_at=synced_at)
                for raw in raw_reviews
            ]
            for review in self._drop_colliding(reviews, label, errors):
                if self._save_if_new(review, synced_at, label, errors):
                    imported += 1
        except ConnectCardError as e:
            error_msg = f"{label} import failed: {e.message}"
            print(f"ERROR: {error_msg}")
            errors.append(error_msg)

        print(f" -> Imported {imported} new {label} review(s).")
        return imported

    @staticmethod
    def _collision_message(label: str, review: Review, kept_author: str) -> str:
        return (
            f"{label} import skipped review by '{review.author_name}': "
            f"externalId {review.external_id} collides with review by '{kept_author}'"
        )

    def _drop_colliding(self, reviews: List[Review], label: str, errors: List[str]) -> List[Review]:
        """
        Keeps the first review per externalId. Different authors sharing a
        derived id is reported, since only one of them can be stored.
        """
        first_seen: Dict[str, Review] = {}
        unique = []
        for review in reviews:
            first = first_seen.get(review.external_id)
            if first is None:
                first_seen[review.external_id] = review
                unique.append(review)
                continue
            if first.author_name != review.author_name:
                error_msg = self._collision_message(label, review, first.author_name)
                print(f"WARNING: {error_msg}")
                errors.append(error_msg)
        return unique

    def _save_if_new(self, review: Review, now: str, label: str, errors: List[str]) -> bool:
        existing = self.store.find_review_by_external_id(review.external_id)
        if existing:
            stored_author = existing.get('authorName')
            if review.source == ReviewSource.GOOGLE and stored_author != review.author_name:
                # Google ids are derived, so an earlier run may have stored another author under this one.
                error_msg = self._collision_message(label, review, stored_author)
                print(f"WARNING: {error_msg}")
                errors.append(error_msg)
            else:
                print(f" -> Review already exists: {review.external_id}")
            return False
        if not self.store.put_review_if_absent(review, now=now):
            print(f" -> Review stored concurrently, skipping: {review.external_id}")
            return False
        print(f" -> Saved {review.source.value} review: {review.external_id}")
        return True
