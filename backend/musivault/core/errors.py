"""Exception types shared by the import pipeline."""

from __future__ import annotations


class ParseError(ValueError):
    """The uploaded file cannot be turned into rows; the job never starts."""


class RowValidationError(ValueError):
    """A single row is malformed (missing field, unknown format...). Never retried."""


class MatchNotFoundError(Exception):
    """Discogs has no record for the row."""


class CatalogLookupError(Exception):
    """Discogs could not be queried (transport error, 5xx, unexpected payload)."""


class RateLimitExceededError(CatalogLookupError):
    """Discogs kept answering 429 after the configured retries."""

    def __init__(self, attempts: int, retry_after: float | None = None):
        self.attempts = attempts
        self.retry_after = retry_after
        super().__init__(
            f"Discogs rate limit still exceeded after {attempts} attempt(s)"
        )
