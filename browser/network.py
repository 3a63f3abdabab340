"""
Network Correlator

Passive observer on the page's network events. It answers two questions:

1. Did a UI action actually reach the backend? (an outbound request to the
   job-creation namespace, followed by its response)
2. Is the backend rate-limiting us? (a generation response with a
   rate-limit status sets the shared backoff window)

Listeners are attached once per page for the process lifetime. The Playwright
event callbacks run interleaved with the admission loop on the same event
loop; the only shared write is BackoffState.backoff_until.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, List, Optional, Tuple

from core.state import BackoffState, Clock, monotonic_clock

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUSES: FrozenSet[int] = frozenset({429})


class GenerationUrlMatcher:
    """
    Predicate deciding whether a URL belongs to the generation backend.

    Default rule: the URL contains every ``required`` fragment and at least
    one ``markers`` fragment. A regex pattern, when given, replaces the
    default rule entirely.
    """

    DEFAULT_REQUIRED: Tuple[str, ...] = ("backend/",)
    DEFAULT_MARKERS: Tuple[str, ...] = ("video_gen", "image_gen", "gen")

    def __init__(
        self,
        pattern: Optional[str] = None,
        required: Tuple[str, ...] = DEFAULT_REQUIRED,
        markers: Tuple[str, ...] = DEFAULT_MARKERS,
    ):
        self.pattern = re.compile(pattern) if pattern else None
        self.required = tuple(required)
        self.markers = tuple(markers)

    def __call__(self, url: str) -> bool:
        if not url:
            return False
        if self.pattern is not None:
            return self.pattern.search(url) is not None
        if not all(fragment in url for fragment in self.required):
            return False
        return any(marker in url for marker in self.markers)

    def __repr__(self) -> str:
        if self.pattern is not None:
            return f"GenerationUrlMatcher(pattern={self.pattern.pattern!r})"
        return f"GenerationUrlMatcher(required={self.required}, markers={self.markers})"


@dataclass
class ExchangeWatch:
    """One pending request/response correlation, opened before the action it verifies."""
    request_future: asyncio.Future
    response_future: asyncio.Future
    request: Optional[Any] = None
    opened_at: float = 0.0
    notes: List[str] = field(default_factory=list)


class NetworkCorrelator:
    """
    Matches generation requests/responses and records rate-limit backoff.

    Example:
        correlator = NetworkCorrelator(backoff, backoff_seconds=60)
        correlator.attach(page)

        watch = correlator.watch()
        try:
            await page.click("button")
            request = await correlator.wait_for_request(watch, 20000)
            response = await correlator.wait_for_response(watch, 20000)
        finally:
            correlator.release(watch)
    """

    def __init__(
        self,
        backoff: BackoffState,
        backoff_seconds: float,
        matcher: Optional[Callable[[str], bool]] = None,
        clock: Clock = monotonic_clock,
        rate_limit_statuses: FrozenSet[int] = RATE_LIMIT_STATUSES,
    ):
        self.backoff = backoff
        self.backoff_seconds = backoff_seconds
        self.matcher = matcher or GenerationUrlMatcher()
        self.clock = clock
        self.rate_limit_statuses = frozenset(rate_limit_statuses)
        self.rate_limit_hits = 0
        self._watches: List[ExchangeWatch] = []
        self._pages: List[Any] = []

    def is_generation_url(self, url: str) -> bool:
        return self.matcher(url)

    def attach(self, page: Any):
        """Subscribe to the page's network events (idempotent per page)."""
        if any(p is page for p in self._pages):
            return
        page.on("request", self._on_request)
        page.on("response", self._on_response)
        page.on("requestfailed", self._on_request_failed)
        self._pages.append(page)
        logger.debug(f"Network correlator attached ({self.matcher!r})")

    # --- watches ---

    def watch(self) -> ExchangeWatch:
        """Open a correlation window; must be called before the triggering action."""
        loop = asyncio.get_running_loop()
        watch = ExchangeWatch(
            request_future=loop.create_future(),
            response_future=loop.create_future(),
            opened_at=self.clock(),
        )
        self._watches.append(watch)
        return watch

    def release(self, watch: ExchangeWatch):
        if watch in self._watches:
            self._watches.remove(watch)
        for fut in (watch.request_future, watch.response_future):
            if not fut.done():
                fut.cancel()

    async def wait_for_request(self, watch: ExchangeWatch, timeout_ms: float) -> Optional[Any]:
        """Wait for the first generation request seen since the watch opened; None on timeout."""
        return await self._wait(watch.request_future, timeout_ms)

    async def wait_for_response(self, watch: ExchangeWatch, timeout_ms: float) -> Optional[Any]:
        """Wait for the response to the correlated request; None on timeout or network failure."""
        if watch.request is None:
            return None
        return await self._wait(watch.response_future, timeout_ms)

    @staticmethod
    async def _wait(fut: asyncio.Future, timeout_ms: float) -> Optional[Any]:
        if fut.cancelled():
            return None
        try:
            return await asyncio.wait_for(asyncio.shield(fut), timeout=max(timeout_ms, 0) / 1000.0)
        except asyncio.TimeoutError:
            return None

    # --- event handlers ---

    def _on_request(self, request: Any):
        url = request.url
        if not self.is_generation_url(url):
            return
        for watch in self._watches:
            if not watch.request_future.done():
                watch.request = request
                watch.request_future.set_result(request)
                logger.debug(f"Gen request matched {self.clock() - watch.opened_at:.2f}s after watch opened")

    def _on_response(self, response: Any):
        try:
            url = response.url
            if not self.is_generation_url(url):
                return
            status = response.status
            if status in self.rate_limit_statuses:
                self.rate_limit_hits += 1
                self.backoff.trigger(self.clock(), self.backoff_seconds)
                logger.warning(f"Received {status} from {url}. Backing off for {self.backoff_seconds:g}s")
            for watch in self._watches:
                if watch.request is None or watch.response_future.done():
                    continue
                if response.request is watch.request or url == watch.request.url:
                    watch.response_future.set_result(response)
        except Exception as e:
            logger.error(f"Response handler error: {e}")

    def _on_request_failed(self, request: Any):
        for watch in self._watches:
            if watch.request is request and not watch.response_future.done():
                watch.notes.append(f"request failed: {request.failure}")
                watch.response_future.set_result(None)
