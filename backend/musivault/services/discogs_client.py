"""Thin Discogs API client: authentication, pacing and bounded 429 retries."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from typing import Any

import httpx
from pydantic import BaseModel, Field

from musivault.core.config import Settings, get_settings
from musivault.core.errors import (
    CatalogLookupError,
    MatchNotFoundError,
    RateLimitExceededError,
)
from musivault.services.rate_limiter import LocalRateLimiter, RedisRateLimiter

logger = logging.getLogger(__name__)

_DISAMBIGUATION = re.compile(r"\s*\(\d+\)$")


def clean_artist_name(name: str) -> str:
    """Drop Discogs' numeric disambiguation suffix: 'Nirvana (2)' -> 'Nirvana'."""
    return _DISAMBIGUATION.sub("", (name or "").strip())


def split_search_title(title: str) -> tuple[str, str]:
    """Search results are titled 'Artist - Album'; return (artist, album)."""
    separator = " - "
    index = (title or "").find(separator)
    if index == -1:
        return "", (title or "").strip()
    return clean_artist_name(title[:index]), title[index + len(separator):].strip()


class DiscogsSearchResult(BaseModel):
    id: int
    title: str = ""
    year: str | None = None
    thumb: str = ""
    cover_image: str = ""
    formats: list[str] = Field(default_factory=list)
    catno: str | None = None

    @property
    def artist_name(self) -> str:
        return split_search_title(self.title)[0]

    @property
    def album_title(self) -> str:
        return split_search_title(self.title)[1]


class DiscogsFormat(BaseModel):
    name: str
    text: str = ""
    descriptions: list[str] = Field(default_factory=list)


class DiscogsTrack(BaseModel):
    position: str = ""
    title: str = ""
    duration: str = ""
    artist: str = ""


class DiscogsLabel(BaseModel):
    name: str
    catno: str = ""


class DiscogsRelease(BaseModel):
    id: int
    title: str
    artist: str
    year: str | None = None
    thumb: str = ""
    cover_image: str = ""
    styles: list[str] = Field(default_factory=list)
    formats: list[DiscogsFormat] = Field(default_factory=list)
    tracklist: list[DiscogsTrack] = Field(default_factory=list)
    labels: list[DiscogsLabel] = Field(default_factory=list)


def _year_or_none(value: Any) -> str | None:
    if value in (None, "", 0, "0"):
        return None
    return str(value)


def parse_search_result(item: dict[str, Any]) -> DiscogsSearchResult:
    return DiscogsSearchResult(
        id=int(item["id"]),
        title=item.get("title") or "",
        year=_year_or_none(item.get("year")),
        thumb=item.get("thumb") or "",
        cover_image=item.get("cover_image") or item.get("thumb") or "",
        formats=list(item.get("format") or []),
        catno=item.get("catno"),
    )


def parse_release(data: dict[str, Any]) -> DiscogsRelease:
    artists = [clean_artist_name(a.get("name", "")) for a in data.get("artists") or []]
    images = data.get("images") or []
    primary = next((img for img in images if img.get("type") == "primary"), None)
    cover = (primary or (images[0] if images else {})).get("uri") or data.get("thumb") or ""
    return DiscogsRelease(
        id=int(data["id"]),
        title=(data.get("title") or "").strip(),
        artist=", ".join(a for a in artists if a) or "Unknown Artist",
        year=_year_or_none(data.get("year")),
        thumb=data.get("thumb") or "",
        cover_image=cover,
        styles=list(data.get("styles") or []),
        formats=[
            DiscogsFormat(
                name=f.get("name") or "",
                text=f.get("text") or "",
                descriptions=list(f.get("descriptions") or []),
            )
            for f in data.get("formats") or []
        ],
        tracklist=[
            DiscogsTrack(
                position=t.get("position") or "",
                title=t.get("title") or "",
                duration=t.get("duration") or "",
                artist=", ".join(
                    clean_artist_name(a.get("name", "")) for a in t.get("artists") or []
                ),
            )
            for t in data.get("tracklist") or []
        ],
        labels=[
            DiscogsLabel(name=l.get("name") or "", catno=l.get("catno") or "")
            for l in data.get("labels") or []
        ],
    )


def _parse_retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        logger.warning(f"Invalid Retry-After header: {value}")
        return None


class DiscogsClient:
    """Blocking client; every request first takes a slot from the rate limiter."""

    def __init__(
        self,
        key: str | None,
        secret: str | None,
        *,
        rate_limiter: LocalRateLimiter | RedisRateLimiter,
        base_url: str = "https://api.discogs.com",
        user_agent: str = "Musivault/1.0",
        max_retries: int = 3,
        retry_wait: float = 10.0,
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.key = key
        self.secret = secret
        self.rate_limiter = rate_limiter
        self.max_retries = max_retries
        self.retry_wait = retry_wait
        self._sleep = sleep
        headers = {"User-Agent": user_agent, "Accept": "application/json"}
        if key and secret:
            headers["Authorization"] = f"Discogs key={key}, secret={secret}"
        self._http = httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self.request_count = 0

    @classmethod
    def from_settings(
        cls,
        rate_limiter: LocalRateLimiter | RedisRateLimiter,
        settings: Settings | None = None,
        **kwargs: Any,
    ) -> "DiscogsClient":
        settings = settings or get_settings()
        return cls(
            settings.discogs_key,
            settings.discogs_secret,
            rate_limiter=rate_limiter,
            base_url=settings.discogs_base_url,
            user_agent=settings.discogs_user_agent,
            max_retries=settings.discogs_max_retries,
            retry_wait=settings.discogs_retry_wait_seconds,
            timeout=settings.discogs_timeout_seconds,
            **kwargs,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "DiscogsClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        if not (self.key and self.secret):
            raise CatalogLookupError("Discogs API credentials not configured")

        attempts = 0
        while True:
            self.rate_limiter.acquire()
            attempts += 1
            self.request_count += 1
            try:
                response = self._http.get(path, params=params)
            except httpx.TimeoutException as e:
                raise CatalogLookupError(f"Discogs request timed out ({path})") from e
            except httpx.HTTPError as e:
                raise CatalogLookupError(f"Discogs request failed ({path}): {e}") from e

            if response.status_code == 429:
                retry_after = _parse_retry_after(response)
                if attempts > self.max_retries:
                    raise RateLimitExceededError(attempts, retry_after)
                wait = self.retry_wait if retry_after is None else min(retry_after, self.retry_wait)
                logger.warning(
                    f"Discogs rate limit hit on {path} "
                    f"(attempt {attempts}/{self.max_retries + 1}), waiting {wait}s"
                )
                self._sleep(wait)
                continue

            if response.status_code == 404:
                raise MatchNotFoundError(f"Discogs resource not found: {path}")
            if response.status_code >= 400:
                raise CatalogLookupError(
                    f"Discogs returned HTTP {response.status_code} for {path}"
                )
            try:
                return response.json()
            except ValueError as e:
                raise CatalogLookupError(f"Discogs returned invalid JSON for {path}") from e

    def search(
        self,
        query: str | None = None,
        *,
        artist: str | None = None,
        catno: str | None = None,
        result_type: str = "release",
        per_page: int = 25,
    ) -> list[DiscogsSearchResult]:
        params: dict[str, Any] = {"type": result_type, "per_page": per_page}
        if query:
            params["q"] = query
        if artist:
            params["artist"] = artist
        if catno:
            params["catno"] = catno
        payload = self._get("/database/search", params)
        try:
            return [parse_search_result(item) for item in payload.get("results") or []]
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogLookupError(f"Unexpected Discogs search payload: {e}") from e

    def get_release(self, release_id: int) -> DiscogsRelease:
        payload = self._get(f"/releases/{release_id}")
        try:
            return parse_release(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogLookupError(
                f"Unexpected Discogs release payload for {release_id}: {e}"
            ) from e
