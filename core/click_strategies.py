"""
Trigger Click Strategies

Ordered escalation for activating the submit control:

    direct click -> forced click (skips actionability checks) -> synthetic
    mousedown/mouseup/click dispatch

Each strategy either completes or raises; the first one that completes wins.
Only when every selector candidate and every strategy failed is the attempt
a hard failure (SubmitTriggerError).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from .errors import SubmitTriggerError

logger = logging.getLogger(__name__)

DISPATCH_CLICK_JS = """
(el) => {
  el.scrollIntoView({ behavior: 'instant', block: 'center' });
  for (const type of ['mousedown', 'mouseup', 'click']) {
    el.dispatchEvent(new MouseEvent(type, { bubbles: true, cancelable: true }));
  }
}
"""

FOCUS_JS = "() => { window.focus(); document.body.focus(); }"


async def focus_page(page: Any):
    """Bring the tab to the foreground and focus the document (best-effort)."""
    try:
        await page.bring_to_front()
    except Exception as e:
        logger.debug(f"bring_to_front failed: {e}")
    try:
        await page.evaluate(FOCUS_JS)
    except Exception as e:
        logger.debug(f"Window focus failed: {e}")


class ClickStrategy(ABC):
    name: str = ""

    @abstractmethod
    async def click(self, page: Any, locator: Any, timeout_ms: int):
        """Activate the element or raise."""


class DirectClick(ClickStrategy):
    name = "click"

    async def click(self, page: Any, locator: Any, timeout_ms: int):
        await locator.click(timeout=timeout_ms)


class ForceClick(ClickStrategy):
    name = "force-click"

    async def click(self, page: Any, locator: Any, timeout_ms: int):
        await locator.click(timeout=timeout_ms, force=True)


class DispatchEventsClick(ClickStrategy):
    name = "js-dispatch"

    async def click(self, page: Any, locator: Any, timeout_ms: int):
        handle = await locator.element_handle(timeout=timeout_ms)
        if handle is None:
            raise RuntimeError("element handle unavailable")
        await page.evaluate(DISPATCH_CLICK_JS, handle)


DEFAULT_STRATEGIES: Tuple[ClickStrategy, ...] = (DirectClick(), ForceClick(), DispatchEventsClick())


@dataclass
class ClickResult:
    selector: str
    strategy: str


class TriggerEscalation:
    """
    Tries every selector candidate with every strategy, in order.

    Args:
        strategies: Ordered click strategies
        click_timeout_ms: Timeout for each click strategy
        visible_timeout_ms: How long to wait for a candidate to become visible
        is_enabled: Optional readiness check run before clicking a candidate
    """

    def __init__(
        self,
        strategies: Sequence[ClickStrategy] = DEFAULT_STRATEGIES,
        click_timeout_ms: int = 10000,
        visible_timeout_ms: int = 5000,
        is_enabled: Optional[Callable[[Any], Awaitable[bool]]] = None,
    ):
        self.strategies = list(strategies)
        self.click_timeout_ms = click_timeout_ms
        self.visible_timeout_ms = visible_timeout_ms
        self.is_enabled = is_enabled

    async def activate(self, page: Any, candidates: Sequence[str]) -> ClickResult:
        failures: List[Tuple[str, str, str]] = []
        for selector in candidates:
            locator = page.locator(selector).first
            try:
                await locator.wait_for(state="visible", timeout=self.visible_timeout_ms)
            except Exception as e:
                logger.info(f"Selector {selector} not found or error: {e}")
                failures.append((selector, "visible", str(e)))
                continue

            if self.is_enabled is not None and not await self.is_enabled(page):
                logger.info(f"Submit button disabled, selector: {selector}")
                failures.append((selector, "enabled", "disabled"))
                continue

            await focus_page(page)
            try:
                await page.wait_for_timeout(200)
            except Exception as e:
                logger.debug(f"Pre-click settle failed: {e}")

            for strategy in self.strategies:
                try:
                    await strategy.click(page, locator, self.click_timeout_ms)
                except Exception as e:
                    logger.info(f"{strategy.name} failed for {selector}, escalating...")
                    failures.append((selector, strategy.name, str(e)))
                    continue
                logger.info(f"Clicked submit ({strategy.name}) with selector: {selector}")
                return ClickResult(selector=selector, strategy=strategy.name)

        raise SubmitTriggerError(failures)
