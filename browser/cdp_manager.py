#!/usr/bin/env python3
"""
CDP Browser Manager

Attaches to an already-running Chromium-family browser (Chrome, Arc, Edge)
through its remote debugging endpoint, finds the tab to drive and manages
the secondary drafts tab used for capacity estimation.

Features:
- Unbounded connection retry with capped exponential backoff + jitter
- Target page lookup by URL hint
- Drafts page reuse / reopen
- Bounded close so shutdown never hangs

Launch the browser with e.g.:
    /Applications/Arc.app/Contents/MacOS/Arc --remote-debugging-port=9222
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from playwright.async_api import Browser, Page, async_playwright

logger = logging.getLogger(__name__)


@dataclass
class ConnectRetryConfig:
    """Backoff for the initial attachment."""
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    jitter_ratio: float = 0.1

    def delay_for(self, attempt_number: int) -> float:
        exp = min(self.max_delay_seconds, self.base_delay_seconds * (2 ** max(0, attempt_number - 1)))
        jitter = random.uniform(0, exp * self.jitter_ratio)
        return float(min(self.max_delay_seconds, exp + jitter))


class CdpBrowserManager:
    """
    Owns the Playwright driver and the CDP connection.

    Example:
        manager = CdpBrowserManager("http://localhost:9222")
        await manager.connect()

        page = manager.find_target_page("sora")
        ...
        await manager.close()
    """

    def __init__(
        self,
        endpoint: str,
        retry: Optional[ConnectRetryConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        playwright_factory: Callable[[], Any] = async_playwright,
    ):
        self.endpoint = endpoint
        self.retry = retry or ConnectRetryConfig()
        self._sleep = sleep
        self._playwright_factory = playwright_factory
        self.playwright = None
        self.browser: Optional[Browser] = None
        self.connect_attempts = 0

    async def connect(self) -> Browser:
        """
        Connect over CDP, retrying until it succeeds.

        This is the only unbounded retry in the system: without a browser
        there is nothing to drive.
        """
        if self.playwright is None:
            self.playwright = await self._playwright_factory().start()

        while True:
            self.connect_attempts += 1
            try:
                logger.info(f"Connecting to browser via CDP: {self.endpoint} (attempt {self.connect_attempts})")
                self.browser = await self.playwright.chromium.connect_over_cdp(self.endpoint)
                logger.info(f"✅ Connected to browser ({len(self.browser.contexts)} context(s))")
                return self.browser
            except Exception as e:
                delay = self.retry.delay_for(self.connect_attempts)
                logger.warning(f"CDP connection failed: {e}. Retrying in {delay:.1f}s")
                await self._sleep(delay)

    def find_target_page(self, hint: str) -> Optional[Page]:
        """First page whose URL contains the hint, else the first page of the first context."""
        if not self.browser:
            return None
        contexts = self.browser.contexts
        needle = (hint or "").lower()
        for ctx in contexts:
            for page in ctx.pages:
                if needle and needle in (page.url or "").lower():
                    return page
        if contexts and contexts[0].pages:
            page = contexts[0].pages[0]
            logger.warning(f"No page URL contains '{hint}'; falling back to {page.url}")
            return page
        return None

    async def get_or_create_page(self, anchor: Page, url_fragment: str, url: str) -> Page:
        """
        Reuse a tab in the anchor's context whose URL contains ``url_fragment``,
        otherwise open ``url`` in a new tab. Navigation failures are logged
        and the (possibly blank) page is still returned.
        """
        ctx = anchor.context
        for page in ctx.pages:
            if url_fragment.lower() in (page.url or "").lower() and not page.is_closed():
                return page

        page = await ctx.new_page()
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=30000)
            logger.info(f"Opened {url}")
        except Exception as e:
            logger.warning(f"Navigation to {url} did not complete: {e}")
        return page

    async def close(self, timeout_seconds: float = 2.0):
        """Disconnect from the browser and stop the driver, bounded by a timeout."""
        try:
            if self.browser:
                await asyncio.wait_for(self.browser.close(), timeout=timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("Browser close timed out; continuing shutdown")
        except Exception as e:
            logger.debug(f"Browser close failed: {e}")
        finally:
            self.browser = None

        try:
            if self.playwright:
                await asyncio.wait_for(self.playwright.stop(), timeout=timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("Playwright stop timed out; continuing shutdown")
        except Exception as e:
            logger.debug(f"Playwright stop failed: {e}")
        finally:
            self.playwright = None
