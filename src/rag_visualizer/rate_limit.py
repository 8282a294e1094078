from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from time import monotonic


def monotonic_ms() -> float:
    return monotonic() * 1000


@dataclass
class WindowState:
    request_count: int = 0
    last_request_ms: float = 0.0


class SlidingWindowCounter:
    """Counts hits per window; the window restarts once ``window_ms`` passes without an accepted hit."""

    def __init__(self, *, limit: int, window_ms: int) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_ms < 1:
            raise ValueError("window_ms must be >= 1")
        self.limit = limit
        self.window_ms = window_ms

    def hit(self, state: WindowState, now_ms: float) -> bool:
        if now_ms - state.last_request_ms > self.window_ms:
            state.request_count = 0

        state.request_count += 1
        if state.request_count > self.limit:
            return False

        state.last_request_ms = now_ms
        return True


class ClientRateLimiter:
    """Per-client-address limiter for the HTTP API."""

    def __init__(
        self,
        *,
        limit: int,
        window_ms: int,
        clock: Callable[[], float] = monotonic_ms,
    ) -> None:
        self._counter = SlidingWindowCounter(limit=limit, window_ms=window_ms)
        self._clock = clock
        self._clients: dict[str, WindowState] = {}
        self._last_sweep_ms = clock()

    @property
    def window_ms(self) -> int:
        return self._counter.window_ms

    @property
    def tracked_clients(self) -> int:
        return len(self._clients)

    def _evict_stale(self, now: float) -> None:
        # Entries idle longer than one window carry no state.
        if now - self._last_sweep_ms <= self._counter.window_ms:
            return
        self._last_sweep_ms = now
        stale = [
            key
            for key, state in self._clients.items()
            if now - state.last_request_ms > self._counter.window_ms
        ]
        for key in stale:
            del self._clients[key]

    def allow(self, client_key: str) -> bool:
        now = self._clock()
        self._evict_stale(now)
        state = self._clients.get(client_key)
        if state is None:
            state = self._clients[client_key] = WindowState(last_request_ms=now)
        return self._counter.hit(state, now)
