"""
CDP Browser Manager Tests
Connection retry, target page lookup, drafts page reuse, bounded close.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from browser.cdp_manager import CdpBrowserManager, ConnectRetryConfig
from tests.utils.fake_page import FakeContext, FakePage


def _manager_with(connect_side_effect, sleep=None):
    playwright = MagicMock()
    playwright.chromium.connect_over_cdp = AsyncMock(side_effect=connect_side_effect)
    playwright.stop = AsyncMock()
    factory = MagicMock()
    factory.return_value.start = AsyncMock(return_value=playwright)
    manager = CdpBrowserManager(
        "http://localhost:9222",
        retry=ConnectRetryConfig(base_delay_seconds=1.0, max_delay_seconds=4.0, jitter_ratio=0.0),
        sleep=sleep or AsyncMock(),
        playwright_factory=factory,
    )
    return manager, playwright


def _browser(*contexts):
    browser = MagicMock()
    browser.contexts = list(contexts)
    browser.close = AsyncMock()
    return browser


class TestRetryConfig:
    def test_exponential_capped(self):
        retry = ConnectRetryConfig(base_delay_seconds=1.0, max_delay_seconds=4.0, jitter_ratio=0.0)
        assert [retry.delay_for(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 4.0, 4.0]

    def test_jitter_stays_under_cap(self):
        retry = ConnectRetryConfig(base_delay_seconds=10.0, max_delay_seconds=10.0, jitter_ratio=0.5)
        assert all(retry.delay_for(n) <= 10.0 for n in range(1, 10))


@pytest.mark.browser
class TestConnect:
    """Attachment retries until the browser answers."""

    @pytest.mark.asyncio
    async def test_retries_then_connects(self):
        browser = _browser(FakeContext([FakePage()]))
        sleep = AsyncMock()
        manager, playwright = _manager_with(
            [ConnectionRefusedError("refused"), ConnectionRefusedError("refused"), browser], sleep=sleep
        )
        assert await manager.connect() is browser
        assert manager.connect_attempts == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_close_is_bounded(self):
        browser = _browser()

        async def hang():
            await asyncio.sleep(10)

        browser.close = hang
        manager, playwright = _manager_with([browser])
        await manager.connect()
        await manager.close(timeout_seconds=0.01)
        assert manager.browser is None
        assert manager.playwright is None
        playwright.stop.assert_awaited_once()


@pytest.mark.browser
class TestPageLookup:
    """Target tab and secondary drafts tab."""

    @pytest.mark.asyncio
    async def test_find_by_hint_across_contexts(self):
        other = FakePage("https://example.com")
        sora = FakePage("https://sora.chatgpt.com/explore")
        manager, _ = _manager_with([_browser(FakeContext([other]), FakeContext([sora]))])
        await manager.connect()
        assert manager.find_target_page("sora") is sora

    @pytest.mark.asyncio
    async def test_falls_back_to_first_page(self):
        first = FakePage("https://example.com")
        manager, _ = _manager_with([_browser(FakeContext([first]))])
        await manager.connect()
        assert manager.find_target_page("sora") is first

    @pytest.mark.asyncio
    async def test_no_pages_is_none(self):
        manager, _ = _manager_with([_browser(FakeContext([]))])
        await manager.connect()
        assert manager.find_target_page("sora") is None

    def test_not_connected_is_none(self):
        manager, _ = _manager_with([])
        assert manager.find_target_page("sora") is None

    @pytest.mark.asyncio
    async def test_reuses_open_drafts_tab(self):
        anchor = FakePage()
        drafts = FakePage("https://sora.chatgpt.com/drafts")
        ctx = FakeContext([anchor, drafts])
        manager, _ = _manager_with([])
        page = await manager.get_or_create_page(anchor, "/drafts", "https://sora.chatgpt.com/drafts")
        assert page is drafts
        assert ctx.opened == []

    @pytest.mark.asyncio
    async def test_opens_drafts_tab_and_ignores_navigation_error(self):
        anchor = FakePage()
        ctx = FakeContext([anchor])
        manager, _ = _manager_with([])
        original_new_page = ctx.new_page

        async def new_page():
            page = await original_new_page()
            page.goto_error = RuntimeError("net::ERR_TIMED_OUT")
            return page

        ctx.new_page = new_page
        page = await manager.get_or_create_page(anchor, "/drafts", "https://sora.chatgpt.com/drafts")
        assert ctx.opened == [page]
        assert page.gotos == ["https://sora.chatgpt.com/drafts"]
