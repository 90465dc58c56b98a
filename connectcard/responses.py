# connectcard/responses.py
import json
import os

ALLOWED_ORIGIN = os.environ.get("ALLOWED_ORIGIN", "*")


def build_response(status_code: int, body: dict) -> dict:
    """Helper function to build the Lambda proxy response."""
    return {
        'statusCode': status_code,
        'headers': {
            'Content-Type': 'application/json',
            'Access-Control-Allow-Origin': ALLOWED_ORIGIN
        },
        'body': json.dumps(body, default=str)
    }
