# lambdas/generate_static_json/app.py
import json

from pydantic import ValidationError

from connectcard.errors import ExportError, StoreTraversalFailure
from connectcard.responses import build_response
from connectcard.snapshot_exporter import SnapshotExporter

# Initialize clients outside of the handler so warm invocations reuse them.
try:
    EXPORTER = SnapshotExporter.from_settings()
except ValidationError as e:
    # This will cause a Lambda init failure, which is appropriate for bad config.
    print(f"FATAL: Invalid configuration: {e}")
    raise e


def handler(event, context):
    """
    Triggered hourly by EventBridge. Dumps all public BusinessCards to
    public/businesses.json for the mobile apps to download.
    """
    print("--- Generate Static JSON Lambda Triggered ---")
    print(f"Received event: {json.dumps(event, default=str)}")

    try:
        summary = EXPORTER.run()
    except (ExportError, StoreTraversalFailure) as e:
        # The previous snapshot stays published; the next scheduled run retries.
        print(f"ERROR: Snapshot generation failed ({e.kind}): {e.message}")
        return build_response(500, {'error': e.kind, 'message': e.message})

    return build_response(200, summary.model_dump(by_alias=True))
