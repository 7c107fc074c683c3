"""
Rate limiting. In-memory sliding window per key (route bucket + client IP).
Applied to POST /auth/authorize and POST /auth/token to slow password guessing
and code probing.
"""
import math
import threading
import time

from fastapi import HTTPException, Request

_store: dict[str, list[float]] = {}
_lock = threading.Lock()
_WINDOW_SECONDS = 60


def check_and_consume(
    key: str,
    limit: int,
    window_seconds: int = _WINDOW_SECONDS,
) -> tuple[bool, int | None]:
    """
    Record a request for key if it is under limit within the window.
    Returns (allowed, retry_after_seconds); retry_after is None when allowed.
    """
    if limit <= 0:
        return True, None
    now = time.monotonic()
    with _lock:
        timestamps = _store.setdefault(key, [])
        cutoff = now - window_seconds
        timestamps[:] = [t for t in timestamps if t > cutoff]
        if len(timestamps) >= limit:
            retry_after = max(1, math.ceil(window_seconds - (now - timestamps[0])))
            return False, retry_after
        timestamps.append(now)
        return True, None


def enforce(request: Request, bucket: str, limit: int) -> None:
    """Raise 429 with Retry-After when the caller's IP is over limit for bucket."""
    host = request.client.host if request.client else "unknown"
    allowed, retry_after = check_and_consume(f"{bucket}:{host}", limit)
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail={"error": "rate_limited", "error_description": "Too many requests"},
            headers={"Retry-After": str(retry_after)},
        )


def reset() -> None:
    with _lock:
        _store.clear()
