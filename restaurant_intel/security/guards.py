"""Request guards for endpoints that trigger expensive Toast traffic."""

from __future__ import annotations

import os
import threading
import time
from collections import defaultdict, deque
from typing import Deque, DefaultDict

from fastapi import HTTPException, Request

SYNC_RATE_LIMIT = int(os.getenv("SYNC_RATE_LIMIT", "6"))
SYNC_RATE_WINDOW_SECONDS = 60
# only honour X-Forwarded-For behind a proxy that overwrites it
TRUST_PROXY_HEADERS = os.getenv("TRUST_PROXY_HEADERS", "false").lower() in {"1", "true", "yes"}

_RATE_LOCK = threading.Lock()
_RATE_BUCKETS: DefaultDict[str, Deque[float]] = defaultdict(deque)


def get_client_ip(request: Request) -> str:
    """Best effort extraction of the requester IP address."""

    if TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            candidate = forwarded.split(",")[0].strip()
            if candidate:
                return candidate
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit_request(
    request: Request,
    *,
    scope: str,
    limit: int,
    window_seconds: int,
) -> None:
    """Apply an in-memory sliding window per client IP and scope."""

    identifier = f"{scope}:{get_client_ip(request)}"
    now = time.monotonic()
    with _RATE_LOCK:
        _drop_idle_buckets(scope, now, window_seconds)
        bucket = _RATE_BUCKETS[identifier]
        while bucket and now - bucket[0] > window_seconds:
            bucket.popleft()
        if len(bucket) >= limit:
            raise HTTPException(status_code=429, detail="Too many sync requests. Try again later.")
        bucket.append(now)


def _drop_idle_buckets(scope: str, now: float, window_seconds: int) -> None:
    prefix = f"{scope}:"
    idle = [
        key
        for key, bucket in _RATE_BUCKETS.items()
        if key.startswith(prefix) and (not bucket or now - bucket[-1] > window_seconds)
    ]
    for key in idle:
        del _RATE_BUCKETS[key]


def reset_rate_limits() -> None:
    with _RATE_LOCK:
        _RATE_BUCKETS.clear()


__all__ = [
    "SYNC_RATE_LIMIT",
    "SYNC_RATE_WINDOW_SECONDS",
    "TRUST_PROXY_HEADERS",
    "get_client_ip",
    "rate_limit_request",
    "reset_rate_limits",
]
