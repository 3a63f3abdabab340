"""
Capacity Estimation

Answers "how many generation jobs are in flight right now?" from what the
page shows. There is no API for this: the number is inferred from the DOM.

Two interchangeable strategies, chosen once at startup:

- ActivityCounterEstimator: reads a textual counter ("2/3"); with no counter
  but a loading overlay on screen, capacity is treated as fully used.
- DraftsSpinnerEstimator: counts spinner overlays on the most recent tiles of
  the drafts view, adds a safety margin and caps at the concurrency limit.

Every read returns an int in [0, max_concurrent] and never raises: a failing
read reports the estimate as saturated so the loop can never over-submit on a
transient failure.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from .selectors import UiSelectors

logger = logging.getLogger(__name__)

PageOpener = Callable[[], Awaitable[Any]]

_INT_RE = re.compile(r"\d+")


def parse_counter_text(text: str) -> Optional[int]:
    """First integer in the indicator text: "2/3" -> 2, "In progress: 1" -> 1."""
    match = _INT_RE.search(text or "")
    return int(match.group(0)) if match else None


class CapacityEstimator(ABC):
    """Base class: clamping and fail-safe handling around a raw DOM read."""

    mode: str = ""

    def __init__(self, max_concurrent: int):
        self.max_concurrent = max_concurrent
        self.last_raw: Optional[int] = None

    def clamp(self, value: int) -> int:
        return max(0, min(self.max_concurrent, int(value)))

    async def read(self) -> int:
        try:
            raw = await self._read_raw()
        except Exception as e:
            logger.warning(f"In-progress read failed ({self.mode}): {e}; assuming saturated")
            self.last_raw = None
            return self.max_concurrent
        self.last_raw = raw
        return self.clamp(raw)

    @abstractmethod
    async def _read_raw(self) -> int:
        ...


class ActivityCounterEstimator(CapacityEstimator):
    """Reads the in-progress counter shown on the generation page."""

    mode = "activity"

    def __init__(
        self,
        page: Any,
        selectors: UiSelectors,
        max_concurrent: int,
        missing_policy: str = "zero",
    ):
        super().__init__(max_concurrent)
        self.page = page
        self.selectors = selectors
        self.missing_policy = missing_policy

    async def _read_raw(self) -> int:
        # Several nodes can match (stale/duplicate renders); take the max.
        if self.selectors.in_progress_count:
            elements = await self.page.query_selector_all(self.selectors.in_progress_count)
            numbers = []
            for el in elements:
                try:
                    value = parse_counter_text((await el.inner_text()).strip())
                except Exception as e:
                    logger.debug(f"Counter node unreadable: {e}")
                    continue
                if value is not None:
                    numbers.append(value)
            if numbers:
                return max(numbers)

        if self.selectors.loading_overlay:
            overlay = await self.page.query_selector(self.selectors.loading_overlay)
            if overlay:
                return self.max_concurrent

        # The UI hides the counter at zero; treating absence as saturated
        # would stall an idle account indefinitely.
        if self.missing_policy == "saturated":
            return self.max_concurrent
        return 0


class ReopeningPage:
    """Holds a secondary page and reopens it when it was closed."""

    def __init__(self, opener: PageOpener, page: Any = None):
        self.opener = opener
        self._page = page

    async def get(self) -> Any:
        page = self._page
        try:
            closed = page is None or page.is_closed()
        except Exception:
            closed = True
        if closed:
            logger.info("Drafts page closed; reopening")
            self._page = await self.opener()
        return self._page


class DraftsSpinnerEstimator(CapacityEstimator):
    """Counts in-progress spinners on the most recent drafts tiles."""

    mode = "drafts"

    def __init__(
        self,
        page_handle: ReopeningPage,
        selectors: UiSelectors,
        max_concurrent: int,
        recent_check_count: int,
        safety_margin: int = 1,
    ):
        super().__init__(max_concurrent)
        self.page_handle = page_handle
        self.selectors = selectors
        self.recent_check_count = recent_check_count
        self.safety_margin = safety_margin

    async def _read_raw(self) -> int:
        spinner = self.selectors.drafts_in_progress_spinner
        if not spinner:
            return 0
        page = await self.page_handle.get()

        grid = page.locator(self.selectors.drafts_grid).first
        if await grid.count() > 0:
            tiles = grid.locator(self.selectors.drafts_tile)
            to_check = min(self.recent_check_count, await tiles.count())
            in_progress = 0
            for i in range(to_check):
                if await tiles.nth(i).locator(spinner).count() > 0:
                    in_progress += 1
            return in_progress + self.safety_margin

        # No grid: count every spinner on the page (less precise).
        count = await page.locator(spinner).count()
        return max(0, count) + self.safety_margin


async def detect_capacity_estimator(
    page: Any,
    selectors: UiSelectors,
    max_concurrent: int,
    open_drafts_page: PageOpener,
    mode: str = "auto",
    missing_policy: str = "zero",
    recent_check_count: Optional[int] = None,
    safety_margin: int = 1,
) -> CapacityEstimator:
    """
    Pick the capacity strategy once at startup.

    In auto mode the activity counter wins when its selector matches on the
    generation page; otherwise the drafts view is opened and spinners are
    counted there.
    """
    def activity() -> ActivityCounterEstimator:
        return ActivityCounterEstimator(page, selectors, max_concurrent, missing_policy)

    if mode == "activity":
        logger.info("In-progress strategy: activity counter (configured)")
        return activity()

    if mode == "auto" and selectors.in_progress_count:
        try:
            if await page.locator(selectors.in_progress_count).count() > 0:
                logger.info("Detected in-progress strategy: activity counter")
                return activity()
        except Exception as e:
            logger.debug(f"Activity counter probe failed: {e}")

    drafts_page = await open_drafts_page()
    logger.info(
        "Detected in-progress strategy: drafts spinner"
        if mode == "auto"
        else "In-progress strategy: drafts spinner (configured)"
    )
    return DraftsSpinnerEstimator(
        ReopeningPage(open_drafts_page, drafts_page),
        selectors,
        max_concurrent,
        recent_check_count if recent_check_count is not None else max_concurrent,
        safety_margin,
    )
