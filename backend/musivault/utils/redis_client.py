"""Redis client factory shared by progress snapshots, the rate limiter and health checks."""

from __future__ import annotations

import ssl
from typing import Any

from redis import Redis


def create_redis_client(url: str, **kwargs: Any) -> Redis:
    """Create a Redis client, relaxing certificate checks for TLS endpoints.

    Managed providers such as Upstash hand out ``redis://`` URLs that only
    accept TLS; those are upgraded to ``rediss://``.

    Args:
        url: Redis connection URL (redis:// or rediss://)
        **kwargs: Passed to ``Redis.from_url`` (decode_responses, socket_connect_timeout, ...)
    """
    if ".upstash.io" in url and url.startswith("redis://"):
        url = url.replace("redis://", "rediss://", 1)

    client = Redis.from_url(url, **kwargs)

    if url.startswith("rediss://"):
        pool_kwargs = getattr(client.connection_pool, "connection_kwargs", None)
        if pool_kwargs is not None:
            pool_kwargs["ssl_cert_reqs"] = ssl.CERT_NONE

    return client
