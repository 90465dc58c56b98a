# run_live.py
import argparse
import json

import boto3
from botocore.exceptions import ClientError

from connectcard.settings import AppSettings, get_settings


def _gsi(index_name: str, hash_key: str, range_key: str = None) -> dict:
    key_schema = [{'AttributeName': hash_key, 'KeyType': 'HASH'}]
    if range_key:
        key_schema.append({'AttributeName': range_key, 'KeyType': 'RANGE'})
    return {'IndexName': index_name, 'KeySchema': key_schema, 'Projection': {'ProjectionType': 'ALL'}}


def ensure_table(dynamodb, table_name: str, key_schema: list, attribute_definitions: list, indexes: list) -> bool:
    """Creates the table when it does not exist. Returns True if it was created."""
    try:
        dynamodb.meta.client.describe_table(TableName=table_name)
        print(f"DynamoDB table '{table_name}' already exists.")
        return False
    except ClientError as e:
        if e.response['Error']['Code'] != 'ResourceNotFoundException':
            raise e

    print(f"DynamoDB table '{table_name}' not found. Creating it now...")
    dynamodb.create_table(
        TableName=table_name,
        KeySchema=key_schema,
        AttributeDefinitions=attribute_definitions,
        GlobalSecondaryIndexes=indexes,
        BillingMode='PAY_PER_REQUEST',
    )
    dynamodb.Table(table_name).wait_until_exists()
    print(f"Table '{table_name}' created successfully.")
    return True


def setup_directory_tables(dynamodb, settings: AppSettings) -> None:
    """Checks for and creates the BusinessCard, Review and SavedContact tables with their indexes."""
    ensure_table(
        dynamodb,
        settings.business_card_table_name,
        key_schema=[
            {'AttributeName': 'pk', 'KeyType': 'HASH'},
            {'AttributeName': 'sk', 'KeyType': 'RANGE'},
        ],
        attribute_definitions=[
            {'AttributeName': 'pk', 'AttributeType': 'S'},
            {'AttributeName': 'sk', 'AttributeType': 'S'},
            {'AttributeName': 'slug', 'AttributeType': 'S'},
        ],
        indexes=[_gsi(settings.slug_index_name, 'slug')],
    )
    ensure_table(
        dynamodb,
        settings.review_table_name,
        key_schema=[{'AttributeName': 'id', 'KeyType': 'HASH'}],
        attribute_definitions=[
            {'AttributeName': 'id', 'AttributeType': 'S'},
            {'AttributeName': 'externalId', 'AttributeType': 'S'},
            {'AttributeName': 'businessId', 'AttributeType': 'S'},
            {'AttributeName': 'rating', 'AttributeType': 'N'},
        ],
        indexes=[
            _gsi(settings.external_id_index_name, 'externalId'),
            _gsi(settings.business_reviews_index_name, 'businessId', 'rating'),
        ],
    )
    ensure_table(
        dynamodb,
        settings.saved_contact_table_name,
        key_schema=[{'AttributeName': 'id', 'KeyType': 'HASH'}],
        attribute_definitions=[
            {'AttributeName': 'id', 'AttributeType': 'S'},
            {'AttributeName': 'userId', 'AttributeType': 'S'},
            {'AttributeName': 'businessId', 'AttributeType': 'S'},
        ],
        indexes=[_gsi(settings.saved_contacts_index_name, 'userId', 'businessId')],
    )


def run_live(job: str, event: dict):
    """Executes one of the Lambda handlers using your live AWS credentials."""
    print(f"--- Starting LIVE Run of {job} Lambda ---")
    settings = get_settings()

    try:
        setup_directory_tables(boto3.resource('dynamodb', region_name=settings.aws_region), settings)
    except Exception as e:
        print(f"Could not complete setup. Aborting run. Error: {e}")
        return

    # Handlers are imported late: they create their AWS clients at import time.
    if job == "generate_static_json":
        from lambdas.generate_static_json.app import handler
    else:
        from lambdas.import_reviews.app import handler

    print("\n--- Invoking Lambda handler (this will call DynamoDB, S3 and the review providers) ---")
    result = handler(event, {})
    print("--- Lambda handler execution finished ---")
    print(f"Status: {result['statusCode']}")
    print(json.dumps(json.loads(result['body']), indent=2))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run a ConnectCard job against live AWS resources.")
    parser.add_argument("job", choices=["generate_static_json", "import_reviews"])
    parser.add_argument("--event", default="{}", help="JSON event passed to the handler")
    args = parser.parse_args()
    run_live(args.job, json.loads(args.event))
