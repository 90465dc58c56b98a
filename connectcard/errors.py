# connectcard/errors.py
"""
Exceptions raised by the directory jobs.

Failures local to one review source or one record are caught by the jobs and
reported in their summaries; the rest propagate to the Lambda handlers.
"""


class ConnectCardError(Exception):
    """Base class for every error raised by this package."""

    # Short machine-readable name used in handler responses.
    kind = "ConnectCardError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(ValueError):
    """Custom exception for validation errors."""
    pass


# Review providers

class ProviderError(ConnectCardError):
    kind = "ProviderError"


class CredentialMissing(ProviderError):
    """A required provider credential is not configured."""
    kind = "CredentialMissing"


class ProviderUnavailable(ProviderError):
    """Network or transport failure talking to a review provider."""
    kind = "ProviderUnavailable"


class ProviderRejected(ProviderError):
    """The provider answered with a non-success status."""
    kind = "ProviderRejected"

    def __init__(self, message: str, status=None):
        super().__init__(message)
        self.status = status


class MalformedProviderResponse(ProviderError):
    kind = "MalformedProviderResponse"


# Directory store

class StoreError(ConnectCardError):
    kind = "StoreError"


class StoreTraversalFailure(StoreError):
    """Reading from DynamoDB failed."""
    kind = "StoreTraversalFailure"


class StorePersistFailure(StoreError):
    """Writing to DynamoDB failed."""
    kind = "StorePersistFailure"


# Snapshot

class ExportError(ConnectCardError):
    kind = "ExportError"


class SnapshotSerializationFailure(ExportError):
    kind = "SnapshotSerializationFailure"


class PublishFailure(ExportError):
    """Writing the snapshot object to S3 failed."""
    kind = "PublishFailure"
