from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from django.core.cache import caches


cache = caches["default"]

_MISSING = object()


@dataclass
class Coalesced:
    value: Any
    fresh: bool


def _key(namespace: str, ident: str) -> str:
    return f"co:{namespace}:{ident}"


def coalesce(namespace: str, ident: str, window_ms: int, producer: Callable[[], Any]) -> Coalesced:
    """Run ``producer`` at most once per window for the same ident.

    Calls landing inside the window reuse the value of the first one (``fresh=False``),
    which is how per-keystroke lookups are debounced server side.
    """
    key = _key(namespace, ident)
    cached = cache.get(key, _MISSING)
    if cached is not _MISSING:
        return Coalesced(cached, False)
    value = producer()
    if window_ms > 0:
        cache.set(key, value, timeout=window_ms / 1000)
    return Coalesced(value, True)


def forget(namespace: str, ident: str) -> None:
    cache.delete(_key(namespace, ident))
