"""Guards for best-effort discount discovery.

- ``best_effort``: a failing lookup degrades to an empty result and is logged.
- ``Generation``: tokens that let a caller drop a result computed for stale input.
- ``SignatureCache``: per-session cache of a value derived from the cart signature.
"""
from __future__ import annotations

import functools
import itertools
import logging
import threading
from typing import Any, Callable

log = logging.getLogger(__name__)


def best_effort(default_factory: Callable[[], Any]):
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except Exception:
                log.exception("[offers] %s failed, continuing without it", fn.__name__)
                return default_factory()

        return wrapper

    return decorator


class Generation:
    """Monotonic token per input key; only the latest token for a key may commit."""

    def __init__(self):
        self._counter = itertools.count(1)
        self._current: dict[str, int] = {}
        self._lock = threading.Lock()

    def begin(self, key: str) -> int:
        with self._lock:
            token = next(self._counter)
            self._current[key] = token
            return token

    def is_current(self, key: str, token: int) -> bool:
        with self._lock:
            return self._current.get(key) == token

    def cancel(self, key: str) -> None:
        with self._lock:
            self._current.pop(key, None)

    def run(self, key: str, fn: Callable[[], Any], default: Any = None) -> Any:
        """Compute ``fn`` under a fresh token; a result overtaken by a newer run is discarded."""
        token = self.begin(key)
        result = fn()
        if not self.is_current(key, token):
            log.info("[offers] discarding stale result for %s", key)
            return default
        return result


class SignatureCache:
    """Value cached in the session next to the signature it was computed for.

    A ``None`` result marks a failed computation and is not stored.
    """

    def __init__(self, session, key: str):
        self.session = session
        self.key = key

    def get_or_compute(self, signature: str, compute: Callable[[], Any]) -> Any:
        entry = self.session.get(self.key)
        if isinstance(entry, dict) and entry.get("signature") == signature:
            return entry.get("value")
        value = compute()
        if value is None:
            return None
        self.session[self.key] = {"signature": signature, "value": value}
        self.session.modified = True
        return value

    def invalidate(self) -> None:
        if self.key in self.session:
            del self.session[self.key]
            self.session.modified = True
