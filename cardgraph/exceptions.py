"""
Error taxonomy for graph building and edge labeling.

Only InvalidInputError escapes to callers. The remote labeling errors are
raised inside the label request queue and converted to an empty result at
the submission boundary, so callers fall back to default labels.
"""

from __future__ import annotations


class CardGraphError(Exception):
    """Base class for cardgraph errors."""
    pass


class InvalidInputError(CardGraphError, ValueError):
    """Raised for an empty id set, a non-positive K, or mismatched vectors."""
    pass


class RemoteLabelingError(CardGraphError):
    """Base class for failures talking to the labeling endpoint."""
    pass


class TransientRemoteError(RemoteLabelingError):
    """429 or 5xx. Retried with backoff."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PermanentRemoteError(RemoteLabelingError):
    """Any other non-2xx status, or a transport failure. Not retried."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(RemoteLabelingError):
    """Response body is not JSON or lacks the expected label array."""
    pass
