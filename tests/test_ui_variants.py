"""
UI Variant Tests
Toolbar and settings-menu configuration, variant detection, UiProfile.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from core.selectors import UiSelectors
from core.ui_variants import (
    SettingsMenuConfigurator,
    ToolbarConfigurator,
    UiProfile,
    detect_configurator,
    infer_orientation,
    map_duration_label,
)
from tests.utils.fake_page import FakeElement, FakePage

ROWS = SettingsMenuConfigurator.ROW_ITEMS
RADIOS = SettingsMenuConfigurator.RADIO_ITEMS


class TestLabelHelpers:
    @pytest.mark.parametrize("raw,label", [
        ("10s", "10 seconds"),
        ("15 sec", "15 seconds"),
        ("20 seconds", "20 seconds"),
        ("", ""),
        (None, ""),
    ])
    def test_duration(self, raw, label):
        assert map_duration_label(raw) == label

    def test_orientation_inference(self):
        assert infer_orientation("Square", "16:9") == "Square"
        assert infer_orientation("", "9:16") == "Portrait"
        assert infer_orientation(None, "Landscape 16:9") == "Landscape"
        assert infer_orientation(None, "1:1") == ""


@pytest.mark.browser
class TestToolbar:
    """Legacy quick-picks are verified, variations are selected."""

    @pytest.mark.asyncio
    async def test_visible_choice_is_skipped(self):
        page = FakePage()
        page.add('button:has-text("16:9")', FakeElement("16:9"))
        cfg = ToolbarConfigurator(UiSelectors(aspect_choice="16:9", duration_choice="10s"))
        report = await cfg.configure(page)
        assert report.skipped == ["aspect"]
        assert report.failed == ["duration"]

    @pytest.mark.asyncio
    async def test_variations_dropdown(self):
        page = FakePage()
        page.add(".variations", FakeElement())
        option = FakeElement("2 videos")
        page.add("[role='option']", option)
        cfg = ToolbarConfigurator(UiSelectors(
            variations_choice="2 videos",
            variations_button=".variations",
            variations_option="[role='option']",
        ))
        report = await cfg.configure(page)
        assert report.applied == ["variations"]
        assert option.clicks == ["force-click"]

    @pytest.mark.asyncio
    async def test_variations_keyboard_fallback(self):
        page = FakePage()
        page.add(".variations", FakeElement())
        cfg = ToolbarConfigurator(UiSelectors(variations_choice="4", variations_button=".variations"))
        report = await cfg.configure(page)
        assert report.applied == ["variations"]
        assert page.keyboard.inserted == ["4"]
        assert "Enter" in page.keyboard.pressed

    @pytest.mark.asyncio
    async def test_nothing_configured_is_noop(self):
        report = await ToolbarConfigurator(UiSelectors()).configure(FakePage())
        assert (report.applied, report.skipped, report.failed) == ([], [], [])


def _menu_page(orientation_row="Orientation Landscape", duration_row="Duration 5 seconds"):
    page = FakePage()
    rows = [FakeElement(orientation_row), FakeElement(duration_row)]
    page.add(".menu", FakeElement(children={ROWS: rows}))
    page.add(RADIOS, FakeElement("Portrait"), FakeElement("Landscape"), FakeElement("10 seconds"))
    return page


@pytest.mark.browser
class TestSettingsMenu:
    """New interface: Orientation / Duration rows."""

    @pytest.mark.asyncio
    async def test_applies_and_skips(self, selectors):
        selectors.aspect_choice = "16:9"
        selectors.duration_choice = "10s"
        page = _menu_page()
        report = await SettingsMenuConfigurator(selectors).configure(page)
        assert report.skipped == ["orientation"]
        assert report.applied == ["duration"]
        assert page.elements[RADIOS][2].clicks == ["force-click"]
        assert "Escape" in page.keyboard.pressed

    @pytest.mark.asyncio
    async def test_missing_option_is_logged_not_raised(self, selectors):
        selectors.orientation_choice = "Square"
        page = _menu_page()
        report = await SettingsMenuConfigurator(selectors).configure(page)
        assert report.failed == ["orientation"]

    @pytest.mark.asyncio
    async def test_falls_back_to_toolbar_when_menu_unavailable(self, selectors):
        page = FakePage()
        fallback = MagicMock()
        fallback.configure = AsyncMock(return_value="toolbar-report")
        cfg = SettingsMenuConfigurator(selectors, fallback=fallback)
        assert await cfg.configure(page) == "toolbar-report"

    @pytest.mark.asyncio
    async def test_configured_trigger_opens_menu(self, selectors):
        page = FakePage()
        menu = FakeElement(visible=False, children={ROWS: [FakeElement("Duration 10 seconds")]})
        page.add(".menu", menu)

        def open_menu(p):
            menu.visible = True

        page.add("button.settings", FakeElement(on_click=open_menu))
        selectors.settings_trigger = "button.settings"
        selectors.duration_choice = "10s"
        report = await SettingsMenuConfigurator(selectors).configure(page)
        assert report.skipped == ["duration"]


@pytest.mark.browser
class TestDetection:
    @pytest.mark.asyncio
    async def test_forced_modes(self, selectors):
        page = FakePage()
        assert (await detect_configurator(page, selectors, "toolbar")).mode == "toolbar"
        menu = await detect_configurator(page, selectors, "menu")
        assert menu.mode == "menu"
        assert isinstance(menu.fallback, ToolbarConfigurator)

    @pytest.mark.asyncio
    async def test_auto_detects_menu(self, selectors):
        page = FakePage()
        selectors.settings_trigger = "button.settings"
        page.add("button.settings", FakeElement())
        assert (await detect_configurator(page, selectors)).mode == "menu"

    @pytest.mark.asyncio
    async def test_auto_defaults_to_toolbar(self, selectors):
        assert (await detect_configurator(FakePage(), selectors)).mode == "toolbar"


class TestUiProfile:
    @pytest.mark.asyncio
    async def test_delegates(self):
        capacity = MagicMock(mode="activity")
        capacity.read = AsyncMock(return_value=2)
        configurator = MagicMock(mode="menu")
        configurator.configure = AsyncMock(return_value="report")
        profile = UiProfile(capacity=capacity, configurator=configurator)
        assert profile.mode == "activity/menu"
        assert await profile.read() == 2
        assert await profile.configure("page") == "report"
