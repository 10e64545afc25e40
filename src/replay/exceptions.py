"""Custom exceptions for the candle replay service and chart engine.

Backend and client-side exceptions live here to avoid circular imports
between the API, storage, sync and overlay modules.
"""


class ReplayError(Exception):
    """Base exception for all replay errors."""


class AnnotationValidationError(ReplayError):
    """Raised when an annotation's type, points or patch set is malformed."""


class AnnotationNotFound(ReplayError):
    """Raised when an annotation id does not exist."""

    def __init__(self, annotation_id: int) -> None:
        super().__init__(f"Drawing {annotation_id} not found")
        self.annotation_id = annotation_id


class UpstreamError(ReplayError):
    """Raised when the market-data source times out or fails."""


class PersistenceError(ReplayError):
    """Raised when a database write fails and its transaction was rolled back."""


class BackendRequestError(ReplayError):
    """Raised client-side when the backend answers with a non-success status.

    ``payload`` is the backend's JSON error body, passed through as-is.
    """

    def __init__(self, status_code: int, payload: object) -> None:
        super().__init__(f"Backend returned {status_code}: {payload}")
        self.status_code = status_code
        self.payload = payload
