# lambdas/import_reviews/app.py
import json

from pydantic import ValidationError

from connectcard.errors import InvalidRequestError
from connectcard.models import ImportReviewsRequest
from connectcard.responses import build_response
from connectcard.review_importer import ReviewImporter

try:
    IMPORTER = ReviewImporter.from_settings()
except ValidationError as e:
    print(f"FATAL: Invalid configuration: {e}")
    raise e


def parse_request(event: dict) -> ImportReviewsRequest:
    """
    Accepts either a direct invocation payload or an API Gateway event whose
    body carries the same JSON.

    Raises:
        InvalidRequestError: If businessPk/businessSk are missing or the body is not JSON.
    """
    if not isinstance(event, dict):
        raise InvalidRequestError('Event must be a JSON object.')

    payload = event
    if isinstance(event.get('body'), str):
        try:
            payload = json.loads(event['body'])
        except json.JSONDecodeError:
            raise InvalidRequestError('Request body must be valid JSON.')
    if not isinstance(payload, dict):
        raise InvalidRequestError('Request must be a JSON object.')

    try:
        return ImportReviewsRequest.model_validate(payload)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err['loc']) for err in e.errors())
        raise InvalidRequestError(f'Missing or invalid fields: {fields}')


def handler(event, context):
    """
    Imports Google and Yelp reviews for one business. Per-source failures are
    returned in the summary's errors list with a 200 status.
    """
    print(f"Import Reviews Event: {json.dumps(event, default=str)}")

    try:
        request = parse_request(event)
    except InvalidRequestError as e:
        print(f"Validation Error: {e}")
        return build_response(400, {'message': str(e)})

    try:
        summary = IMPORTER.import_reviews(request.target, request.sources)
    except Exception as e:
        print(f"Import Reviews Error: {e}")
        return build_response(500, {'error': 'Failed to import reviews'})

    if summary.errors:
        print(f"WARNING: Import finished with {len(summary.errors)} error(s).")
    return build_response(200, summary.model_dump(by_alias=True))
