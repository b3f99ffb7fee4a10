"""Error taxonomy shared by the service layer and the API boundary.

Every error here is recoverable: the exception handler installed in
``backend.app.main`` turns it into a JSON notification for the client.
"""

from __future__ import annotations

from fastapi import status


class KasirError(Exception):
    """Base class for all user-facing service errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(KasirError, ValueError):
    """Invalid user input; the operation is aborted and state is unchanged."""

    status_code = status.HTTP_400_BAD_REQUEST


class NoDataError(ValidationError):
    """An export was requested for an empty result set."""

    status_code = status.HTTP_404_NOT_FOUND


class FetchError(KasirError):
    """A database read failed (permission, missing index, network)."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class WriteError(KasirError):
    """A database write failed; dependent in-memory state must be kept."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class ExportError(KasirError):
    """Rendering a PDF or spreadsheet failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
