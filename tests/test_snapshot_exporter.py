# tests/test_snapshot_exporter.py
import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from connectcard.errors import PublishFailure, SnapshotSerializationFailure, StoreTraversalFailure
from connectcard.models import SNAPSHOT_FIELDS
from connectcard.snapshot_exporter import SnapshotExporter

from conftest import client_error, make_business

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def s3_client():
    return MagicMock()


@pytest.fixture
def exporter(store, s3_client, settings):
    return SnapshotExporter(store, s3_client, settings)


def published_document(s3_client) -> dict:
    return json.loads(s3_client.put_object.call_args.kwargs['Body'])


def test_run_publishes_projected_snapshot(exporter, business_table, s3_client):
    business_table.add(make_business("rk-plumbing"), make_business("sharma-electricals"))

    summary = exporter.run(now=NOW)

    s3_client.put_object.assert_called_once()
    kwargs = s3_client.put_object.call_args.kwargs
    assert kwargs['Bucket'] == "connectcard-test-bucket"
    assert kwargs['Key'] == "public/businesses.json"
    assert kwargs['ContentType'] == "application/json"
    assert kwargs['CacheControl'] == "max-age=3600"
    assert kwargs['ACL'] == "public-read"

    document = published_document(s3_client)
    assert document['meta'] == {'generatedAt': "2024-06-01T12:00:00+00:00", 'count': 2, 'version': "1.0"}
    assert document['meta']['count'] == len(document['data'])
    entry = next(e for e in document['data'] if e['slug'] == "rk-plumbing")
    assert set(entry) == set(SNAPSHOT_FIELDS)
    assert entry['location'] == {'lat': 12.9716, 'lng': 77.5946}
    assert entry['hours']['days'] == {'mon': "9-5", 'tue': "9-5"}
    # Fields outside the projection never reach the public file.
    assert 'email' not in entry and 'viewCount' not in entry

    assert summary.count == 2
    assert summary.skipped == 0
    assert summary.key == "public/businesses.json"


def test_scan_requests_only_snapshot_fields(exporter, business_table):
    exporter.run(now=NOW)
    names = business_table.calls['scan'][0]['ExpressionAttributeNames']
    assert sorted(names.values()) == sorted(SNAPSHOT_FIELDS)


def test_empty_store_publishes_empty_snapshot(exporter, s3_client):
    summary = exporter.run(now=NOW)

    document = published_document(s3_client)
    assert document['meta']['count'] == 0
    assert document['data'] == []
    assert summary.count == 0


def test_invalid_optional_attributes_are_dropped_not_the_record(exporter, business_table, s3_client):
    business_table.add(
        make_business("rk-plumbing"),
        make_business("legacy-hours", hours="Mon-Sat 9-5"),
        make_business("bad-tier", tier="PLATINUM", location={'lat': "north"}),
    )

    summary = exporter.run(now=NOW)

    document = published_document(s3_client)
    by_slug = {e['slug']: e for e in document['data']}
    assert set(by_slug) == {"rk-plumbing", "legacy-hours", "bad-tier"}
    assert document['meta']['count'] == 3
    assert by_slug["legacy-hours"]['hours'] is None
    assert by_slug["legacy-hours"]['businessName'] == "Legacy Hours"
    assert by_slug["bad-tier"]['tier'] is None
    assert by_slug["bad-tier"]['location'] is None
    assert by_slug["bad-tier"]['currency'] == "INR"
    assert summary.skipped == 0


def test_records_without_slug_are_skipped(exporter, business_table, s3_client):
    orphan = make_business("orphan")
    del orphan['slug']
    business_table.add(make_business("rk-plumbing"), orphan)

    summary = exporter.run(now=NOW)

    document = published_document(s3_client)
    assert [e['slug'] for e in document['data']] == ["rk-plumbing"]
    assert document['meta']['count'] == 1
    assert summary.skipped == 1


def test_large_directory_is_read_across_pages(exporter, business_table, s3_client, settings):
    settings.snapshot_page_size = 10
    business_table.add(*[make_business(f"biz-{i:03d}") for i in range(35)])

    summary = exporter.run(now=NOW)

    assert summary.count == 35
    assert len(business_table.calls['scan']) == 4
    assert len(published_document(s3_client)['data']) == 35


def test_traversal_failure_publishes_nothing(exporter, business_table, s3_client):
    business_table.failures['scan'] = client_error('ProvisionedThroughputExceededException', 'Rate exceeded')

    with pytest.raises(StoreTraversalFailure):
        exporter.run(now=NOW)
    s3_client.put_object.assert_not_called()


def test_publish_failure_is_reported(exporter, s3_client):
    s3_client.put_object.side_effect = client_error('AccessDenied', 'Access Denied', 'PutObject')

    with pytest.raises(PublishFailure) as excinfo:
        exporter.run(now=NOW)
    assert excinfo.value.kind == "PublishFailure"


def test_serialization_failure_publishes_nothing(exporter, s3_client, monkeypatch):
    def broken_serialize(document):
        raise SnapshotSerializationFailure("Could not serialize snapshot: boom")

    monkeypatch.setattr(SnapshotExporter, "serialize", staticmethod(broken_serialize))

    with pytest.raises(SnapshotSerializationFailure):
        exporter.run(now=NOW)
    s3_client.put_object.assert_not_called()


@pytest.mark.parametrize("error", [
    TypeError("Object of type datetime is not JSON serializable"),
    ValueError("Circular reference detected"),
])
def test_serialize_wraps_dump_errors(error):
    document = MagicMock()
    document.model_dump_json.side_effect = error

    with pytest.raises(SnapshotSerializationFailure) as excinfo:
        SnapshotExporter.serialize(document)

    assert excinfo.value.kind == "SnapshotSerializationFailure"
    assert str(error) in excinfo.value.message
    document.model_dump_json.assert_called_once_with(by_alias=True)
