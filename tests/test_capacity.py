"""
Capacity Estimator Tests
Both strategies, the clamp invariant and fail-safe reads.
"""

from unittest.mock import AsyncMock

import pytest

from core.capacity import (
    ActivityCounterEstimator,
    DraftsSpinnerEstimator,
    ReopeningPage,
    detect_capacity_estimator,
    parse_counter_text,
)
from tests.utils.fake_page import FakeElement, FakePage


class TestCounterParsing:
    @pytest.mark.parametrize("text,expected", [
        ("2/3", 2),
        ("In progress: 1", 1),
        ("3", 3),
        ("", None),
        ("none", None),
    ])
    def test_first_integer(self, text, expected):
        assert parse_counter_text(text) == expected


@pytest.mark.browser
class TestActivityCounter:
    """Counter text, overlay fallback, missing-counter policy."""

    @pytest.mark.asyncio
    async def test_max_across_duplicate_nodes(self, page, selectors):
        page.add(".in-progress", FakeElement("1/3"), FakeElement("2/3"))
        est = ActivityCounterEstimator(page, selectors, 3)
        assert await est.read() == 2

    @pytest.mark.asyncio
    async def test_overlay_means_saturated(self, page, selectors):
        page.add(".loading", FakeElement())
        est = ActivityCounterEstimator(page, selectors, 3)
        assert await est.read() == 3

    @pytest.mark.asyncio
    async def test_nothing_on_screen_is_zero(self, page, selectors):
        assert await ActivityCounterEstimator(page, selectors, 3).read() == 0

    @pytest.mark.asyncio
    async def test_saturated_policy(self, page, selectors):
        est = ActivityCounterEstimator(page, selectors, 2, missing_policy="saturated")
        assert await est.read() == 2

    @pytest.mark.asyncio
    async def test_clamped_to_cap(self, page, selectors):
        page.add(".in-progress", FakeElement("7"))
        est = ActivityCounterEstimator(page, selectors, 3)
        assert await est.read() == 3
        assert est.last_raw == 7

    @pytest.mark.asyncio
    async def test_read_failure_is_saturated(self, selectors):
        page = FakePage()
        page.query_selector_all = AsyncMock(side_effect=RuntimeError("Target closed"))
        est = ActivityCounterEstimator(page, selectors, 3)
        assert await est.read() == 3
        assert est.last_raw is None


def _drafts_page(spinners_per_tile):
    page = FakePage(url="https://sora.chatgpt.com/drafts")
    tiles = [
        FakeElement(children={".spinner": [FakeElement()] if spinning else []})
        for spinning in spinners_per_tile
    ]
    page.add(".grid", FakeElement(children={".tile": tiles}))
    return page


@pytest.mark.browser
class TestDraftsSpinner:
    """Recent tiles only, margin, clamp, reopen and fail-safe."""

    @pytest.mark.asyncio
    async def test_counts_recent_tiles_plus_margin(self, selectors):
        page = _drafts_page([True, False, False, True])
        est = DraftsSpinnerEstimator(ReopeningPage(AsyncMock(), page), selectors, 3, recent_check_count=3)
        # The fourth tile is outside the checked window.
        assert await est.read() == 2

    @pytest.mark.asyncio
    async def test_margin_never_exceeds_cap(self, selectors):
        page = _drafts_page([True, True, True])
        est = DraftsSpinnerEstimator(ReopeningPage(AsyncMock(), page), selectors, 3, recent_check_count=3)
        assert await est.read() == 3
        assert est.last_raw == 4

    @pytest.mark.asyncio
    async def test_page_wide_fallback_without_grid(self, selectors):
        page = FakePage()
        page.add(".spinner", FakeElement())
        est = DraftsSpinnerEstimator(
            ReopeningPage(AsyncMock(), page), selectors, 3, recent_check_count=3, safety_margin=0
        )
        assert await est.read() == 1

    @pytest.mark.asyncio
    async def test_closed_page_is_reopened(self, selectors):
        closed = _drafts_page([True])
        closed.closed = True
        fresh = _drafts_page([False])
        opener = AsyncMock(return_value=fresh)
        est = DraftsSpinnerEstimator(ReopeningPage(opener, closed), selectors, 3, recent_check_count=3)
        assert await est.read() == 1
        opener.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unreachable_surface_is_saturated(self, selectors):
        opener = AsyncMock(side_effect=RuntimeError("browser gone"))
        est = DraftsSpinnerEstimator(ReopeningPage(opener, None), selectors, 3, recent_check_count=3)
        assert await est.read() == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("spinners", [0, 1, 5, 20])
    async def test_clamp_invariant(self, selectors, spinners):
        page = FakePage()
        page.add(".spinner", *[FakeElement() for _ in range(spinners)])
        est = DraftsSpinnerEstimator(ReopeningPage(AsyncMock(), page), selectors, 3, recent_check_count=3)
        value = await est.read()
        assert 0 <= value <= 3


@pytest.mark.browser
class TestDetection:
    """Strategy is chosen once at startup."""

    @pytest.mark.asyncio
    async def test_auto_prefers_counter(self, page, selectors):
        page.add(".in-progress", FakeElement("1/3"))
        opener = AsyncMock()
        est = await detect_capacity_estimator(page, selectors, 3, opener)
        assert est.mode == "activity"
        opener.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_auto_falls_back_to_drafts(self, page, selectors):
        drafts = _drafts_page([])
        est = await detect_capacity_estimator(page, selectors, 2, AsyncMock(return_value=drafts))
        assert est.mode == "drafts"
        assert est.recent_check_count == 2

    @pytest.mark.asyncio
    async def test_configured_activity(self, page, selectors):
        est = await detect_capacity_estimator(page, selectors, 3, AsyncMock(), mode="activity")
        assert est.mode == "activity"

    @pytest.mark.asyncio
    async def test_configured_drafts_skips_probe(self, page, selectors):
        page.add(".in-progress", FakeElement("1/3"))
        est = await detect_capacity_estimator(
            page, selectors, 3, AsyncMock(return_value=_drafts_page([])), mode="drafts", safety_margin=0
        )
        assert est.mode == "drafts"
        assert est.safety_margin == 0
