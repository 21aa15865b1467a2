# fin_compete/errors.py
"""
Exception hierarchy for FinCompete.

Every error carries a ``user_message`` that is safe to show in the UI.
Technical detail stays in the exception chain and the log.
"""

from __future__ import annotations

from typing import Optional

GENERIC_UNAVAILABLE = (
    "Unable to retrieve financial data. The server is busy or the query is "
    "too complex. Please try again."
)
GENERIC_PARSE_FAILURE = "Failed to parse financial data from API response."


class FinCompeteError(Exception):
    """Base class for all FinCompete errors."""

    default_message = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def user_message(self) -> str:
        return self.default_message


class MissingConfigurationError(FinCompeteError):
    """The AI service API key is not configured."""

    default_message = GENERIC_UNAVAILABLE


class TransientServiceError(FinCompeteError):
    """Service failure that is likely to succeed on retry (5xx / 'Internal error')."""

    default_message = GENERIC_UNAVAILABLE

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class QueryError(FinCompeteError):
    """A query to the AI service failed and will not be retried."""

    default_message = GENERIC_UNAVAILABLE


class ServiceUnavailableError(QueryError):
    """Transient failures persisted through every retry attempt."""


class MalformedResponseError(QueryError):
    """The AI reply did not contain a decodable JSON array of companies."""

    default_message = GENERIC_PARSE_FAILURE


class PDFUnavailableError(FinCompeteError):
    """The PDF renderer could not be loaded."""

    default_message = (
        "PDF generation library is loading. Please try again in a moment."
    )
