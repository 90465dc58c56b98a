# connectcard/snapshot_exporter.py
"""
Publishes the public directory snapshot (public/businesses.json) to S3.

The snapshot is built fully in memory and written with a single PutObject,
so a failed run leaves the previous snapshot in place.
"""
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from connectcard.directory_store import DirectoryStore
from connectcard.errors import PublishFailure, SnapshotSerializationFailure
from connectcard.models import SNAPSHOT_FIELDS, ExportSummary, SnapshotDocument, SnapshotEntry
from connectcard.settings import AppSettings, get_settings


class SnapshotExporter:

    def __init__(self, store: DirectoryStore, s3_client, settings: Optional[AppSettings] = None):
        self.store = store
        self.s3_client = s3_client
        self.settings = settings or get_settings()

    @classmethod
    def from_settings(cls, settings: Optional[AppSettings] = None) -> "SnapshotExporter":
        settings = settings or get_settings()
        return cls(
            DirectoryStore.from_settings(settings),
            boto3.client('s3', config=settings.boto_config()),
            settings,
        )

    def collect_entries(self) -> Tuple[List[SnapshotEntry], int]:
        """
        Scans the directory table and projects every record. Unparseable
        optional attributes are dropped from the entry; records without a
        usable slug are skipped and counted.
        """
        entries: List[SnapshotEntry] = []
        skipped = 0
        for item in self.store.scan_projection(SNAPSHOT_FIELDS, page_size=self.settings.snapshot_page_size):
            try:
                entry, dropped = SnapshotEntry.from_item(item)
            except (ValidationError, ValueError) as e:
                skipped += 1
                print(f"WARNING: Skipping record '{item.get('slug', '<no slug>')}' from snapshot: {e}")
                continue
            if dropped:
                print(f"WARNING: Record '{entry.slug}' published without invalid attribute(s): {', '.join(dropped)}")
            entries.append(entry)
        return entries, skipped

    @staticmethod
    def serialize(document: SnapshotDocument) -> bytes:
        try:
            return document.model_dump_json(by_alias=True).encode('utf-8')
        except (ValueError, TypeError) as e:
            raise SnapshotSerializationFailure(f"Could not serialize snapshot: {e}") from e

    def publish(self, body: bytes) -> None:
        try:
            self.s3_client.put_object(
                Bucket=self.settings.storage_bucket_name,
                Key=self.settings.snapshot_key,
                Body=body,
                ContentType='application/json',
                CacheControl=self.settings.snapshot_cache_control,
                ACL='public-read',
            )
        except (BotoCoreError, ClientError) as e:
            raise PublishFailure(
                f"Could not upload s3://{self.settings.storage_bucket_name}/{self.settings.snapshot_key}: {e}"
            ) from e

    def run(self, now: Optional[datetime] = None) -> ExportSummary:
        """Scan -> project -> serialize -> publish. Raises ExportError or StoreTraversalFailure on failure."""
        generated_at = now or datetime.now(timezone.utc)

        # Step 1: read the directory
        entries, skipped = self.collect_entries()
        print(f"Fetched {len(entries)} businesses ({skipped} skipped).")

        # Step 2: wrap and serialize
        document = SnapshotDocument.build(entries, generated_at, self.settings.snapshot_version)
        body = self.serialize(document)

        # Step 3: publish, overwriting the previous snapshot
        self.publish(body)
        print(f"Successfully uploaded {self.settings.snapshot_key} ({len(body)} bytes).")

        return ExportSummary(
            bucket=self.settings.storage_bucket_name,
            key=self.settings.snapshot_key,
            count=document.meta.count,
            skipped=skipped,
            generated_at=document.meta.generated_at,
            version=document.meta.version,
        )
