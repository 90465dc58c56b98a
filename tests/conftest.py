# tests/conftest.py
import copy
import operator
import os
from collections import defaultdict
from decimal import Decimal
from pathlib import Path

import pytest
import yaml
from botocore.exceptions import ClientError

# Handlers read their settings at import time.
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("BUSINESS_CARD_TABLE_NAME", "BusinessCard-test")
os.environ.setdefault("REVIEW_TABLE_NAME", "Review-test")
os.environ.setdefault("SAVED_CONTACT_TABLE_NAME", "SavedContact-test")
os.environ.setdefault("STORAGE_BUCKET_NAME", "connectcard-test-bucket")

from connectcard.directory_store import DirectoryStore
from connectcard.settings import AppSettings

FIXTURES_DIR = Path(__file__).parent / "fixtures"

_COMPARATORS = {
    '=': operator.eq,
    '<': operator.lt,
    '<=': operator.le,
    '>': operator.gt,
    '>=': operator.ge,
    'begins_with': lambda actual, prefix: str(actual).startswith(prefix),
}


def evaluate_condition(condition, item: dict) -> bool:
    """Evaluates a boto3.dynamodb.conditions expression against a plain item."""
    expression = condition.get_expression()
    op = expression['operator']
    values = expression['values']
    if op == 'AND':
        return all(evaluate_condition(v, item) for v in values)
    name = values[0].name
    if op == 'attribute_not_exists':
        return name not in item
    if op == 'attribute_exists':
        return name in item
    if name not in item:
        return False
    return _COMPARATORS[op](item[name], values[1])


def client_error(code: str, message: str = "boom", operation: str = "Operation") -> ClientError:
    return ClientError({'Error': {'Code': code, 'Message': message}}, operation)


class FakeTable:
    """
    In-memory stand-in for a boto3 DynamoDB Table resource. Pagination keys
    are opaque offsets; `failures` maps a method name to the error it raises.
    """

    def __init__(self, key_names, indexes=None, page_size=None):
        self.key_names = tuple(key_names)
        self.indexes = indexes or {}
        self.page_size = page_size
        self.items = {}
        self.calls = defaultdict(list)
        self.failures = {}

    def _check_failure(self, method):
        if method in self.failures:
            raise self.failures[method]

    def _key(self, item):
        return tuple(item[k] for k in self.key_names)

    def add(self, *items):
        for item in items:
            self.items[self._key(item)] = copy.deepcopy(item)

    def get_item(self, Key):
        self.calls['get_item'].append(Key)
        self._check_failure('get_item')
        item = self.items.get(self._key(Key))
        return {'Item': copy.deepcopy(item)} if item else {}

    def put_item(self, Item, ConditionExpression=None):
        self.calls['put_item'].append(Item)
        self._check_failure('put_item')
        existing = self.items.get(self._key(Item))
        if ConditionExpression is not None and not evaluate_condition(ConditionExpression, existing or {}):
            raise client_error('ConditionalCheckFailedException', 'The conditional request failed', 'PutItem')
        self.items[self._key(Item)] = copy.deepcopy(Item)
        return {}

    def update_item(self, Key, UpdateExpression, ExpressionAttributeNames, ExpressionAttributeValues,
                    ConditionExpression=None, ReturnValues=None):
        self.calls['update_item'].append(Key)
        self._check_failure('update_item')
        existing = self.items.get(self._key(Key))
        if ConditionExpression is not None and not evaluate_condition(ConditionExpression, existing or {}):
            raise client_error('ConditionalCheckFailedException', 'The conditional request failed', 'UpdateItem')
        action, name_ref, value_ref = UpdateExpression.split()
        assert action == 'ADD'
        attribute = ExpressionAttributeNames[name_ref]
        existing[attribute] = Decimal(existing.get(attribute, 0)) + ExpressionAttributeValues[value_ref]
        return {'Attributes': {attribute: existing[attribute]}}

    def _page(self, candidates, limit, start_key):
        offset = start_key['_offset'] if start_key else 0
        limit = limit or self.page_size
        page = candidates[offset:offset + limit] if limit else candidates[offset:]
        response = {'Items': copy.deepcopy(page), 'Count': len(page)}
        if limit and offset + limit < len(candidates):
            response['LastEvaluatedKey'] = {'_offset': offset + limit}
        return response

    def query(self, KeyConditionExpression, ScanIndexForward=True, IndexName=None, Limit=None,
              ExclusiveStartKey=None):
        self.calls['query'].append({'IndexName': IndexName, 'Limit': Limit})
        self._check_failure('query')
        candidates = [item for item in self.items.values() if evaluate_condition(KeyConditionExpression, item)]
        if IndexName:
            range_key = self.indexes[IndexName][1] if len(self.indexes[IndexName]) > 1 else None
        else:
            range_key = self.key_names[1] if len(self.key_names) > 1 else None
        if range_key:
            candidates.sort(key=lambda item: item.get(range_key), reverse=not ScanIndexForward)
        return self._page(candidates, Limit, ExclusiveStartKey)

    def scan(self, ProjectionExpression=None, ExpressionAttributeNames=None, Limit=None,
             ExclusiveStartKey=None):
        self.calls['scan'].append({'Limit': Limit, 'ExclusiveStartKey': ExclusiveStartKey,
                                   'ExpressionAttributeNames': ExpressionAttributeNames})
        self._check_failure('scan')
        items = list(self.items.values())
        if ProjectionExpression:
            wanted = [ExpressionAttributeNames.get(ref.strip(), ref.strip()) for ref in ProjectionExpression.split(",")]
            items = [{k: v for k, v in item.items() if k in wanted} for item in items]
        return self._page(items, Limit, ExclusiveStartKey)


class DummyResponse:
    def __init__(self, status_code=200, payload=None, body_is_json=True):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}
        self._body_is_json = body_is_json

    def json(self):
        if not self._body_is_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class DummySession:
    """Records GET calls and answers with `response` (or raises `error`)."""

    def __init__(self, response=None, error=None):
        self.calls = []
        self.response = response
        self.error = error

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({'url': url, 'params': params, 'headers': headers, 'timeout': timeout})
        if self.error:
            raise self.error
        return self.response


@pytest.fixture(scope="session")
def provider_payloads() -> dict:
    with open(FIXTURES_DIR / "provider_payloads.yml", 'r') as f:
        return yaml.safe_load(f)


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        BUSINESS_CARD_TABLE_NAME="BusinessCard-test",
        REVIEW_TABLE_NAME="Review-test",
        SAVED_CONTACT_TABLE_NAME="SavedContact-test",
        STORAGE_BUCKET_NAME="connectcard-test-bucket",
        GOOGLE_PLACES_API_KEY="google-key",
        YELP_API_KEY="yelp-key",
    )


@pytest.fixture
def business_table() -> FakeTable:
    return FakeTable(('pk', 'sk'), indexes={'bySlug': ('slug',)})


@pytest.fixture
def review_table() -> FakeTable:
    return FakeTable(('id',), indexes={'externalId': ('externalId',), 'businessId': ('businessId', 'rating')})


@pytest.fixture
def saved_contact_table() -> FakeTable:
    return FakeTable(('id',), indexes={'userId': ('userId', 'businessId')})


@pytest.fixture
def store(business_table, review_table, settings, saved_contact_table) -> DirectoryStore:
    return DirectoryStore(business_table, review_table, settings, saved_contact_table=saved_contact_table)


def make_business(slug: str, pk: str = "IN#KA#BLR", **overrides) -> dict:
    item = {
        'pk': pk,
        'sk': f"BIZ#{slug}",
        'slug': slug,
        'businessName': slug.replace("-", " ").title(),
        'phone': "+91 98450 00000",
        'category': "Plumber",
        'city': "Bengaluru",
        'location': {'lat': Decimal("12.9716"), 'lng': Decimal("77.5946")},
        'logoUrl': f"public/logos/{slug}.png",
        'tier': "STARTER",
        'country': "IN",
        'currency': "INR",
        'hours': {'mon': "9-5", 'tue': "9-5"},
        'email': f"owner@{slug}.example",
        'viewCount': Decimal(3),
        'saveCount': Decimal(1),
    }
    item.update(overrides)
    return item
