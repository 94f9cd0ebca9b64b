"""Discogs client dependency for request-time lookups."""

from collections.abc import Generator

from musivault.services.discogs_client import DiscogsClient
from musivault.services.rate_limiter import get_shared_rate_limiter
from musivault.services.row_matcher import RowMatcher


def get_row_matcher() -> Generator[RowMatcher, None, None]:
    """Yield a matcher sharing the worker's Discogs rate limit; the client is closed afterwards."""
    with DiscogsClient.from_settings(get_shared_rate_limiter()) as client:
        yield RowMatcher(client)
