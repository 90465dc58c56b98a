# cli/invoke_import.py
import argparse
import json
import os

import boto3
from botocore.exceptions import ClientError
from dotenv import load_dotenv

# Load environment variables from a .env file for local use
load_dotenv()

# Name of the deployed import-reviews function (stack output ImportReviewsFunctionName)
FUNCTION_NAME = os.environ.get("IMPORT_REVIEWS_FUNCTION")


def build_import_payload(business_pk: str, business_sk: str, google_place_id: str = None, yelp_business_id: str = None) -> dict:
    """
    Builds the import-reviews event. Sources that are not given are left out
    so the importer skips them.
    """
    if not (business_pk and business_sk):
        raise ValueError("business_pk and business_sk are required.")

    payload = {"businessPk": business_pk, "businessSk": business_sk}
    if google_place_id:
        payload["googlePlaceId"] = google_place_id
    if yelp_business_id:
        payload["yelpBusinessId"] = yelp_business_id
    return payload


def invoke_import(payload: dict, function_name: str = None, lambda_client=None) -> dict:
    """Invokes the import-reviews function synchronously and returns the decoded summary."""
    function_name = function_name or FUNCTION_NAME
    if not function_name:
        raise ValueError("IMPORT_REVIEWS_FUNCTION environment variable not set. Please create a .env file.")

    lambda_client = lambda_client or boto3.client("lambda")
    response = lambda_client.invoke(
        FunctionName=function_name,
        InvocationType="RequestResponse",
        Payload=json.dumps(payload).encode("utf-8"),
    )
    result = json.loads(response["Payload"].read())
    return json.loads(result.get("body") or "{}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Import Google/Yelp reviews for one business.")
    parser.add_argument("business_pk", help="e.g. IN#KA#BLR")
    parser.add_argument("business_sk", help="e.g. BIZ#rk-plumbing")
    parser.add_argument("--google-place-id")
    parser.add_argument("--yelp-business-id")
    args = parser.parse_args()

    print("--- Review Import CLI ---")
    payload = build_import_payload(args.business_pk, args.business_sk, args.google_place_id, args.yelp_business_id)
    try:
        summary = invoke_import(payload)
    except (ValueError, ClientError) as e:
        print("❌ Failed to invoke the importer.")
        print(f"Error: {e}")
    else:
        print(json.dumps(summary, indent=4))
        if summary.get("errors"):
            print(f"⚠️ {len(summary['errors'])} source error(s) reported.")
        else:
            print("✅ Import finished without errors.")
