"""Tests for musivault.services.discogs_client."""

from __future__ import annotations

import httpx
import pytest

from musivault.core.errors import (
    CatalogLookupError,
    MatchNotFoundError,
    RateLimitExceededError,
)
from musivault.services.discogs_client import (
    DiscogsClient,
    clean_artist_name,
    parse_release,
    split_search_title,
)
from musivault.services.rate_limiter import LocalRateLimiter

from conftest import release_payload, search_item


class _CountingLimiter:
    def __init__(self):
        self.calls = 0

    def acquire(self) -> float:
        self.calls += 1
        return 0.0


def _client(handler, **kwargs) -> DiscogsClient:
    options = {
        "rate_limiter": LocalRateLimiter(0.0),
        "transport": httpx.MockTransport(handler),
        "sleep": lambda seconds: None,
        "retry_wait": 10.0,
        "max_retries": 3,
    }
    options.update(kwargs)
    return DiscogsClient("k", "s", **options)


class TestHelpers:
    def test_clean_artist_name(self):
        assert clean_artist_name("Nirvana (2)") == "Nirvana"
        assert clean_artist_name("  Air ") == "Air"
        assert clean_artist_name("Sunn O)))") == "Sunn O)))"

    def test_split_search_title(self):
        assert split_search_title("Daft Punk - Discovery") == ("Daft Punk", "Discovery")
        assert split_search_title("Nirvana (2) - Nevermind - Remastered") == (
            "Nirvana",
            "Nevermind - Remastered",
        )
        assert split_search_title("Untitled") == ("", "Untitled")

    def test_parse_release_prefers_primary_image(self):
        release = parse_release(release_payload(7))
        assert release.cover_image == "https://img.example/7.jpg"
        assert release.artist == "Daft Punk"
        assert release.year == "2001"
        assert release.formats[0].descriptions == ["LP", "Album"]
        assert release.labels[0].catno == "V2940"

    def test_parse_release_joins_artists_and_drops_zero_year(self):
        payload = release_payload(8, year=0)
        payload["artists"] = [{"name": "Miles Davis (3)"}, {"name": "John Coltrane"}]
        release = parse_release(payload)
        assert release.artist == "Miles Davis, John Coltrane"
        assert release.year is None


class TestDiscogsClient:
    def test_sends_credentials_and_user_agent(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=release_payload(1))

        with _client(handler, user_agent="Musivault-tests/1.0") as client:
            client.get_release(1)

        assert seen[0].headers["Authorization"] == "Discogs key=k, secret=s"
        assert seen[0].headers["User-Agent"] == "Musivault-tests/1.0"
        assert seen[0].url.path == "/releases/1"

    def test_search_params(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(
                200, json={"results": [search_item(5, "Air - Moon Safari", "1998")]}
            )

        with _client(handler) as client:
            results = client.search("Air Moon Safari")

        params = seen[0].url.params
        assert params["q"] == "Air Moon Safari"
        assert params["type"] == "release"
        assert results[0].id == 5
        assert results[0].artist_name == "Air"
        assert results[0].album_title == "Moon Safari"

    def test_every_request_takes_a_rate_limit_slot(self):
        limiter = _CountingLimiter()
        with _client(lambda r: httpx.Response(200, json={"results": []}), rate_limiter=limiter) as client:
            client.search("a")
            client.search("b")
        assert limiter.calls == 2

    def test_retries_429_a_bounded_number_of_times(self):
        sleeps = []
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429)

        with _client(handler, sleep=sleeps.append, max_retries=3, retry_wait=10.0) as client:
            with pytest.raises(RateLimitExceededError) as excinfo:
                client.get_release(1)

        assert len(calls) == 4
        assert excinfo.value.attempts == 4
        assert sleeps == [10.0, 10.0, 10.0]

    def test_recovers_after_429(self):
        responses = iter([httpx.Response(429, headers={"Retry-After": "2"}), httpx.Response(200, json=release_payload(3))])
        sleeps = []

        with _client(lambda r: next(responses), sleep=sleeps.append) as client:
            release = client.get_release(3)

        assert release.id == 3
        assert sleeps == [2.0]

    def test_retry_after_is_capped_by_configured_wait(self):
        responses = iter([httpx.Response(429, headers={"Retry-After": "120"}), httpx.Response(200, json=release_payload(3))])
        sleeps = []

        with _client(lambda r: next(responses), sleep=sleeps.append, retry_wait=5.0) as client:
            client.get_release(3)

        assert sleeps == [5.0]

    def test_not_found(self):
        with _client(lambda r: httpx.Response(404)) as client:
            with pytest.raises(MatchNotFoundError):
                client.get_release(404)

    def test_server_error(self):
        with _client(lambda r: httpx.Response(502)) as client:
            with pytest.raises(CatalogLookupError, match="HTTP 502"):
                client.search("anything")

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with _client(handler) as client:
            with pytest.raises(CatalogLookupError, match="request failed"):
                client.get_release(1)

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with _client(handler) as client:
            with pytest.raises(CatalogLookupError, match="timed out"):
                client.get_release(1)

    def test_missing_credentials_never_hits_the_network(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        client = DiscogsClient(
            None,
            None,
            rate_limiter=LocalRateLimiter(0.0),
            transport=httpx.MockTransport(handler),
        )
        with client:
            with pytest.raises(CatalogLookupError, match="credentials"):
                client.get_release(1)
        assert calls == []
