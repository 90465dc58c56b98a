# lambdas/import_from_google/app.py
import json

import requests
from pydantic import ValidationError

from connectcard.errors import CredentialMissing, MalformedProviderResponse, ProviderRejected, ProviderUnavailable
from connectcard.place_import import build_business_draft
from connectcard.responses import build_response
from connectcard.review_providers import GoogleReviewsClient
from connectcard.settings import get_settings

try:
    SETTINGS = get_settings()
    GOOGLE_CLIENT = GoogleReviewsClient(
        SETTINGS.google_places_api_key,
        session=requests.Session(),
        timeout=SETTINGS.http_timeout_seconds,
    )
except ValidationError as e:
    print(f"FATAL: Invalid configuration: {e}")
    raise e


def handler(event, context):
    """
    Fetches a Google place and returns a BusinessCard draft for the owner
    to confirm before it is saved.
    """
    print(f"Import Google Event: {json.dumps(event, default=str)}")

    place_id = (event or {}).get('placeId')
    if not place_id:
        return build_response(400, {'error': 'Missing placeId'})

    try:
        place = GOOGLE_CLIENT.fetch_place_details(place_id)
        draft = build_business_draft(place, place_id, GOOGLE_CLIENT)
    except CredentialMissing:
        return build_response(500, {'error': 'Server misconfiguration: Missing Google API Key'})
    except (ProviderRejected, MalformedProviderResponse) as e:
        print(f"Google API Error: {e.message}")
        return build_response(400, {'error': e.message})
    except (ProviderUnavailable, ValidationError) as e:
        print(f"Import Error: {e}")
        return build_response(500, {'error': 'Failed to fetch from Google'})

    return build_response(200, draft.model_dump(by_alias=True))
