"""Shared fixtures: in-memory database, fake Redis and a fake Discogs API."""

from __future__ import annotations

import json
import os
import re

# Must be set before any musivault module reads the settings
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["REDIS_URL"] = "redis://localhost:6399/15"
os.environ["DISCOGS_KEY"] = "test-key"
os.environ["DISCOGS_SECRET"] = "test-secret"
os.environ["DISCOGS_RATE_LIMIT_SCOPE"] = "local"
os.environ["SECRET_KEY"] = "test-secret-key"

import httpx
import pytest
from fastapi.testclient import TestClient

from musivault.api.routers import imports as imports_router
from musivault.core.config import get_settings
from musivault.core.security import create_access_token, hash_password
from musivault.db import models  # noqa: F401
from musivault.db.base import Base
from musivault.db.models.user import User
from musivault.db.session import SessionLocal, engine
from musivault.main import app
from musivault.services import progress_tracker
from musivault.services.discogs_client import DiscogsClient
from musivault.services.rate_limiter import LocalRateLimiter
from musivault.services.row_matcher import RowMatcher


class FakeRedis:
    """The handful of commands used by progress snapshots and the rate limiter."""

    def __init__(self, clock=None):
        self.data: dict[str, str] = {}
        self.expiry_ms: dict[str, int] = {}
        self.clock = clock

    def _now_ms(self) -> int:
        return int(self.clock() * 1000) if self.clock else 0

    def _expire_stale(self, key: str) -> None:
        deadline = self.expiry_ms.get(key)
        if deadline is not None and self.clock and self._now_ms() >= deadline:
            self.data.pop(key, None)
            self.expiry_ms.pop(key, None)

    def set(self, key, value, ex=None, px=None, nx=False):
        self._expire_stale(key)
        if nx and key in self.data:
            return None
        self.data[key] = value
        if px is not None:
            self.expiry_ms[key] = self._now_ms() + px
        elif ex is not None:
            self.expiry_ms[key] = self._now_ms() + ex * 1000
        else:
            self.expiry_ms.pop(key, None)
        return True

    def get(self, key):
        self._expire_stale(key)
        return self.data.get(key)

    def pttl(self, key):
        self._expire_stale(key)
        if key not in self.data:
            return -2
        deadline = self.expiry_ms.get(key)
        if deadline is None:
            return -1
        return max(0, deadline - self._now_ms())

    def pexpire(self, key, ms):
        if key not in self.data:
            return False
        self.expiry_ms[key] = self._now_ms() + ms
        return True


def release_payload(
    release_id: int,
    artist: str = "Daft Punk",
    title: str = "Discovery",
    year: int | None = 2001,
    format_name: str = "Vinyl",
) -> dict:
    return {
        "id": release_id,
        "title": title,
        "artists": [{"name": artist}],
        "year": year,
        "thumb": f"https://img.example/{release_id}-thumb.jpg",
        "images": [
            {"type": "secondary", "uri": f"https://img.example/{release_id}-back.jpg"},
            {"type": "primary", "uri": f"https://img.example/{release_id}.jpg"},
        ],
        "styles": ["House"],
        "formats": [{"name": format_name, "qty": "2", "text": "Gatefold", "descriptions": ["LP", "Album"]}],
        "tracklist": [{"position": "A1", "title": "One More Time", "duration": "5:20"}],
        "labels": [{"name": "Virgin", "catno": "V2940"}],
    }


def search_item(release_id: int, title: str, year: str | None = None) -> dict:
    return {
        "id": release_id,
        "title": title,
        "year": year,
        "thumb": "",
        "cover_image": "",
        "format": ["Vinyl", "LP"],
        "catno": "",
    }


class FakeDiscogs:
    """Routes requests to canned releases and search results, recording every call."""

    def __init__(self):
        self.releases: dict[int, dict] = {}
        self.searches: dict[str, list[dict]] = {}
        self.catno_searches: dict[str, list[dict]] = {}
        self.rate_limited = False
        self.rate_limited_releases: set[int] = set()
        self.requests: list[httpx.Request] = []

    def add_release(self, release_id: int, **kwargs) -> dict:
        payload = release_payload(release_id, **kwargs)
        self.releases[release_id] = payload
        return payload

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        match = re.fullmatch(r"/releases/(\d+)", request.url.path)
        if self.rate_limited or (match and int(match.group(1)) in self.rate_limited_releases):
            return httpx.Response(429, json={"message": "You are making requests too quickly."})

        if match:
            payload = self.releases.get(int(match.group(1)))
            if payload is None:
                return httpx.Response(404, json={"message": "Release not found."})
            return httpx.Response(200, content=json.dumps(payload))

        if request.url.path == "/database/search":
            params = request.url.params
            if params.get("catno"):
                results = self.catno_searches.get(params["catno"], [])
            else:
                results = self.searches.get(params.get("q", ""), [])
            return httpx.Response(200, json={"results": results})

        return httpx.Response(500, json={"message": "unexpected path"})

    def client(self, **kwargs) -> DiscogsClient:
        options = {
            "rate_limiter": LocalRateLimiter(0.0),
            "transport": httpx.MockTransport(self.handler),
            "sleep": lambda seconds: None,
            "retry_wait": 0.01,
            "max_retries": 3,
        }
        options.update(kwargs)
        return DiscogsClient("test-key", "test-secret", **options)


@pytest.fixture(autouse=True)
def database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(progress_tracker, "redis_client", fake)
    return fake


@pytest.fixture
def db(database):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def make_user(db, username: str, password: str = "secret123", **kwargs) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash=hash_password(password),
        **kwargs,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def user(db):
    return make_user(db, "alice")


@pytest.fixture
def other_user(db):
    return make_user(db, "bob")


@pytest.fixture
def discogs():
    return FakeDiscogs()


@pytest.fixture
def matcher(discogs):
    with discogs.client() as client:
        yield RowMatcher(client)


class RecordingTask:
    def __init__(self):
        self.calls: list[dict] = []

    def apply_async(self, args=(), kwargs=None, **options):
        self.calls.append({"args": args, "kwargs": kwargs, "options": options})


@pytest.fixture
def queued(monkeypatch):
    task = RecordingTask()
    monkeypatch.setattr(imports_router, "import_collection_task", task)
    return task


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def auth_client(client, user):
    client.cookies.set(get_settings().auth_cookie_name, create_access_token(user.id))
    return client
