# connectcard/directory_store.py
"""
Access to the ConnectCard DynamoDB tables.

The store wraps boto3 Table resources and converts botocore errors into
StoreTraversalFailure (reads) or StorePersistFailure (writes).
"""
from typing import Any, Dict, Iterator, List, Optional, Sequence

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from connectcard.errors import StorePersistFailure, StoreTraversalFailure
from connectcard.models import COUNTER_FIELDS, BusinessCard, Review, SavedContact, business_key, utc_now_iso
from connectcard.settings import AppSettings, get_settings

# Sort key conditions supported by query_partition.
SORT_CONDITIONS = ("eq", "lt", "lte", "gt", "gte", "begins_with")


def _error_message(e: Exception) -> str:
    if isinstance(e, ClientError):
        return e.response.get('Error', {}).get('Message', str(e))
    return str(e)


class DirectoryStore:
    """
    Point lookups, partition queries, projection scans and guarded writes
    against the BusinessCard, Review and SavedContact tables.
    """

    def __init__(self, business_table, review_table, settings: Optional[AppSettings] = None, saved_contact_table=None):
        self.business_table = business_table
        self.review_table = review_table
        self.saved_contact_table = saved_contact_table
        self.settings = settings or get_settings()

    @classmethod
    def from_settings(cls, settings: Optional[AppSettings] = None) -> "DirectoryStore":
        settings = settings or get_settings()
        dynamodb = boto3.resource('dynamodb', config=settings.boto_config())
        return cls(
            dynamodb.Table(settings.business_card_table_name),
            dynamodb.Table(settings.review_table_name),
            settings,
            saved_contact_table=dynamodb.Table(settings.saved_contact_table_name),
        )

    # Business cards

    def get_business(self, pk: str, sk: str) -> Optional[BusinessCard]:
        try:
            response = self.business_table.get_item(Key={'pk': pk, 'sk': sk})
        except (BotoCoreError, ClientError) as e:
            raise StoreTraversalFailure(f"get_item failed for {pk}/{sk}: {_error_message(e)}") from e
        item = response.get('Item')
        return BusinessCard.model_validate(item) if item else None

    def get_business_by_slug(self, slug: str) -> Optional[BusinessCard]:
        items = self.query_partition(
            self.business_table, 'slug', slug,
            index_name=self.settings.slug_index_name,
            limit=1,
        )
        return BusinessCard.model_validate(items[0]) if items else None

    def query_businesses(self, pk: str, sk_prefix: str = "BIZ#") -> List[BusinessCard]:
        """All businesses in one geographic partition, e.g. 'IN#KA#BLR'."""
        items = self.query_partition(
            self.business_table, 'pk', pk,
            sort_key='sk', sort_condition='begins_with', sort_value=sk_prefix,
        )
        return [BusinessCard.model_validate(item) for item in items]

    def increment_counter(self, pk: str, sk: str, counter: str, amount: int = 1) -> int:
        """
        Atomically adds `amount` to one of the BusinessCard counters and
        returns the new value.
        """
        if counter not in COUNTER_FIELDS:
            raise ValueError(f"Unknown counter '{counter}', expected one of {COUNTER_FIELDS}")
        try:
            response = self.business_table.update_item(
                Key={'pk': pk, 'sk': sk},
                UpdateExpression='ADD #counter :amount',
                ConditionExpression=Attr('pk').exists(),
                ExpressionAttributeNames={'#counter': counter},
                ExpressionAttributeValues={':amount': amount},
                ReturnValues='UPDATED_NEW',
            )
        except (BotoCoreError, ClientError) as e:
            raise StorePersistFailure(f"Could not increment {counter} on {pk}/{sk}: {_error_message(e)}") from e
        return int(response['Attributes'][counter])

    # Reviews

    def query_reviews_for_business(
        self,
        business_pk: str,
        business_sk: str,
        min_rating: Optional[int] = None,
        descending: bool = True,
    ) -> List[dict]:
        """Reviews for a business ordered by rating, best first by default."""
        return self.query_partition(
            self.review_table, 'businessId', business_key(business_pk, business_sk),
            index_name=self.settings.business_reviews_index_name,
            sort_key='rating' if min_rating is not None else None,
            sort_condition='gte' if min_rating is not None else None,
            sort_value=min_rating,
            descending=descending,
        )

    def find_review_by_external_id(self, external_id: str) -> Optional[dict]:
        items = self.query_partition(
            self.review_table, 'externalId', external_id,
            index_name=self.settings.external_id_index_name,
            limit=1,
        )
        return items[0] if items else None

    def put_review_if_absent(self, review: Review, now: Optional[str] = None) -> bool:
        """
        Inserts the review unless an item with the same id already exists.
        Returns False when the condition fails, i.e. another import stored it first.
        """
        item = review.to_item(now=now or utc_now_iso())
        try:
            self.review_table.put_item(
                Item=item,
                ConditionExpression=Attr('id').not_exists(),
            )
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'ConditionalCheckFailedException':
                return False
            raise StorePersistFailure(f"Could not save review {item['id']}: {_error_message(e)}") from e
        except BotoCoreError as e:
            raise StorePersistFailure(f"Could not save review {item['id']}: {_error_message(e)}") from e
        return True

    # Saved contacts

    def query_saved_contacts(self, user_id: str) -> List[SavedContact]:
        """A user's saved contacts ordered by businessId."""
        if self.saved_contact_table is None:
            raise ValueError("No SavedContact table configured for this store.")
        items = self.query_partition(
            self.saved_contact_table, 'userId', user_id,
            index_name=self.settings.saved_contacts_index_name,
        )
        return [SavedContact.model_validate(item) for item in items]

    # Generic access

    def query_partition(
        self,
        table,
        key_name: str,
        key_value: Any,
        sort_key: Optional[str] = None,
        sort_condition: Optional[str] = None,
        sort_value: Any = None,
        index_name: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[dict]:
        """
        Queries one partition of a table or index, with an optional sort key
        condition, following LastEvaluatedKey until `limit` items are found.
        """
        condition = Key(key_name).eq(key_value)
        if sort_key and sort_condition:
            if sort_condition not in SORT_CONDITIONS:
                raise ValueError(f"Unsupported sort condition '{sort_condition}'")
            condition = condition & getattr(Key(sort_key), sort_condition)(sort_value)

        kwargs: Dict[str, Any] = {
            'KeyConditionExpression': condition,
            'ScanIndexForward': not descending,
        }
        if index_name:
            kwargs['IndexName'] = index_name
        if limit:
            kwargs['Limit'] = limit

        items: List[dict] = []
        try:
            while True:
                response = table.query(**kwargs)
                items.extend(response.get('Items', []))
                last_key = response.get('LastEvaluatedKey')
                if not last_key or (limit and len(items) >= limit):
                    break
                kwargs['ExclusiveStartKey'] = last_key
        except (BotoCoreError, ClientError) as e:
            raise StoreTraversalFailure(f"Query on {key_name}={key_value} failed: {_error_message(e)}") from e
        return items[:limit] if limit else items

    def scan_projection(
        self,
        fields: Sequence[str],
        page_size: Optional[int] = None,
        start_key: Optional[dict] = None,
    ) -> Iterator[dict]:
        """
        Yields every business item restricted to `fields`, one scan page at a
        time, resuming from `start_key` when given.
        """
        names = {f"#f{i}": field for i, field in enumerate(fields)}
        kwargs: Dict[str, Any] = {
            'ProjectionExpression': ", ".join(names),
            'ExpressionAttributeNames': names,
        }
        if page_size:
            kwargs['Limit'] = page_size
        if start_key:
            kwargs['ExclusiveStartKey'] = start_key

        page = 0
        while True:
            try:
                response = self.business_table.scan(**kwargs)
            except (BotoCoreError, ClientError) as e:
                raise StoreTraversalFailure(f"Scan failed on page {page + 1}: {_error_message(e)}") from e
            page += 1
            yield from response.get('Items', [])
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                break
            kwargs['ExclusiveStartKey'] = last_key
        print(f" -> Scanned {page} page(s) of {self.settings.business_card_table_name}.")
