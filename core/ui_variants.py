"""
UI Variants

The generation page ships in two shapes:

- the new interface, where orientation and duration live in a radix settings
  menu opened from the composer;
- the legacy interface, with quick-pick buttons in a toolbar (mode, aspect,
  resolution, duration, variations).

A configurator for one of them is chosen once at startup and bundled with
the capacity estimator into a UiProfile. The executor and the admission loop
only ever talk to the UiProfile, never to the variant tag.

Every parameter is best-effort: a control already showing the desired value
is left alone (reopening a menu can intercept the next click), and a control
that cannot be found or clicked is logged and skipped. The service applies
its own defaults, so configuration never aborts a submission.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .capacity import CapacityEstimator
from .selectors import COMPOSER_ANCESTOR_XPATH, UiSelectors

logger = logging.getLogger(__name__)

MAX_AUTO_TRIGGER_CANDIDATES = 8

_DURATION_ALIASES = {
    "10 seconds": ("10s", "10 sec", "10secs", "10 seconds"),
    "15 seconds": ("15s", "15 sec", "15secs", "15 seconds"),
}


def map_duration_label(raw: Optional[str]) -> str:
    """Normalize duration shorthand to the menu label ("10s" -> "10 seconds")."""
    if not raw:
        return ""
    s = str(raw).strip().lower()
    for label, aliases in _DURATION_ALIASES.items():
        if s in aliases:
            return label
    return str(raw)


def infer_orientation(explicit: Optional[str], aspect: Optional[str]) -> str:
    """Explicit orientation wins; otherwise 9:16 -> Portrait, 16:9 -> Landscape."""
    if explicit:
        return explicit
    a = (aspect or "").lower()
    if "9:16" in a or "portrait" in a:
        return "Portrait"
    if "16:9" in a or "landscape" in a:
        return "Landscape"
    return ""


async def is_control_disabled(handle: Any) -> bool:
    return (
        await handle.get_attribute("disabled") is not None
        or await handle.get_attribute("data-disabled") == "true"
    )


@dataclass
class ConfigureReport:
    """What a configure pass did, for logging and the attempt record."""
    variant: str
    applied: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"{self.variant}: applied={self.applied or '-'} "
            f"already_set={self.skipped or '-'} failed={self.failed or '-'}"
        )


class UiConfigurator(ABC):
    mode: str = ""

    def __init__(self, selectors: UiSelectors, click_timeout_ms: int = 10000, visible_timeout_ms: int = 5000):
        self.selectors = selectors
        self.click_timeout_ms = click_timeout_ms
        self.visible_timeout_ms = visible_timeout_ms

    @abstractmethod
    async def configure(self, page: Any) -> ConfigureReport:
        ...


class ToolbarConfigurator(UiConfigurator):
    """Legacy toolbar quick-picks."""

    mode = "toolbar"

    async def configure(self, page: Any) -> ConfigureReport:
        report = ConfigureReport(variant=self.mode)
        s = self.selectors
        for name, label in (
            ("mode", s.mode_choice),
            ("aspect", s.aspect_choice),
            ("resolution", s.resolution_choice),
            ("duration", s.duration_choice),
        ):
            if not label:
                continue
            await self._apply_choice(page, name, label, report)
            await page.wait_for_timeout(300)

        if s.variations_choice:
            await self._apply_variations(page, s.variations_choice, report)
            await page.wait_for_timeout(500)
        return report

    async def _apply_choice(self, page: Any, name: str, label: str, report: ConfigureReport):
        # Clicking a visible choice usually opens a dropdown that blocks the
        # submit button, so a label that is already shown counts as set.
        try:
            already = await page.locator(f'button:has-text("{label}")').count()
        except Exception as e:
            logger.info(f"Choice {name}={label!r} could not be checked: {e}")
            report.failed.append(name)
            return
        if already > 0:
            report.skipped.append(name)
            return
        logger.info(f'Choice "{label}" not found in toolbar; skipping auto-select.')
        report.failed.append(name)

    async def _apply_variations(self, page: Any, label: str, report: ConfigureReport):
        try:
            if await page.locator(f'button:has-text("{label}")').count() > 0:
                report.skipped.append("variations")
                return
        except Exception as e:
            logger.debug(f"Variations check failed: {e}")

        button_selector = self.selectors.variations_button or f'button:has-text("{label}")'
        try:
            await page.locator(button_selector).first.click(timeout=self.visible_timeout_ms, force=True)
        except Exception as e:
            logger.info(f"Variations button not clickable ({button_selector}): {e}")
            report.failed.append("variations")
            return

        option_selector = self.selectors.variations_option or f'[role="option"]:has-text("{label}")'
        try:
            option = page.locator(option_selector).filter(has_text=label).first
            await option.click(timeout=self.visible_timeout_ms, force=True)
            report.applied.append("variations")
            return
        except Exception as e:
            logger.info(f"Variations option not clickable ({option_selector}): {e}")

        # Last resort: type the label into the open listbox.
        try:
            await page.keyboard.insert_text(label)
            await page.keyboard.press("Enter")
            report.applied.append("variations")
        except Exception as e:
            logger.info(f"Variations keyboard selection failed: {e}")
            report.failed.append("variations")


class SettingsMenuConfigurator(UiConfigurator):
    """New interface: Orientation / Duration rows inside the settings menu."""

    mode = "menu"

    ROW_ITEMS = "[role='menuitem'], [role='menuitemradio']"
    RADIO_ITEMS = "[role='menuitemradio']"
    TRIGGER_CANDIDATES = "button[aria-haspopup='menu'], button[aria-expanded]"

    def __init__(
        self,
        selectors: UiSelectors,
        click_timeout_ms: int = 10000,
        visible_timeout_ms: int = 5000,
        fallback: Optional[UiConfigurator] = None,
    ):
        super().__init__(selectors, click_timeout_ms, visible_timeout_ms)
        self.fallback = fallback

    def _composer_triggers(self, page: Any) -> Any:
        composer = page.locator(self.selectors.prompt_textarea).first.locator(COMPOSER_ANCESTOR_XPATH)
        return composer.locator(self.TRIGGER_CANDIDATES).filter(has=page.locator("svg"))

    async def probe(self, page: Any) -> bool:
        """Does the page look like the new interface?"""
        try:
            if self.selectors.settings_trigger:
                if await page.locator(self.selectors.settings_trigger).count() > 0:
                    return True
            if await page.locator(self.selectors.settings_menu).count() > 0:
                return True
            return await self._composer_triggers(page).count() > 0
        except Exception as e:
            logger.debug(f"Settings menu probe failed: {e}")
            return False

    async def open_settings_menu(self, page: Any) -> bool:
        menu = page.locator(self.selectors.settings_menu).first
        try:
            if await menu.is_visible():
                return True
        except Exception:
            pass

        if self.selectors.settings_trigger:
            try:
                await page.locator(self.selectors.settings_trigger).first.click(
                    timeout=self.click_timeout_ms, force=True
                )
                await menu.wait_for(state="visible", timeout=self.visible_timeout_ms)
                return True
            except Exception as e:
                logger.debug(f"Configured settings trigger did not open the menu: {e}")

        # Auto-detect, restricted to the composer so sidebar buttons are never clicked.
        candidates = self._composer_triggers(page)
        try:
            n = await candidates.count()
        except Exception as e:
            logger.debug(f"Composer trigger lookup failed: {e}")
            return False
        for i in range(min(n, MAX_AUTO_TRIGGER_CANDIDATES)):
            btn = candidates.nth(i)
            try:
                if await is_control_disabled(btn):
                    continue
                await btn.click(timeout=1000, force=True)
                await menu.wait_for(state="visible", timeout=1000)
                return True
            except Exception:
                continue
        return False

    async def configure(self, page: Any) -> ConfigureReport:
        report = ConfigureReport(variant=self.mode)
        opened = await self.open_settings_menu(page)

        menu = page.locator(self.selectors.settings_menu).first
        has_rows = False
        if opened:
            try:
                rows = menu.locator(self.ROW_ITEMS)
                has_rows = (
                    await rows.filter(has_text="Orientation").count() > 0
                    or await rows.filter(has_text="Duration").count() > 0
                )
            except Exception as e:
                logger.debug(f"Settings menu rows unreadable: {e}")

        if not has_rows:
            if self.fallback is not None:
                logger.info("Settings menu not available; using toolbar configuration")
                return await self.fallback.configure(page)
            report.failed.append("menu")
            return report

        orientation = infer_orientation(self.selectors.orientation_choice, self.selectors.aspect_choice)
        if orientation:
            await self._pick(page, menu, "Orientation", orientation, report)

        duration = map_duration_label(self.selectors.duration_choice)
        if duration:
            await self._pick(page, menu, "Duration", duration, report)
        return report

    async def _pick(self, page: Any, menu: Any, row_label: str, desired: str, report: ConfigureReport):
        name = row_label.lower()
        rows = menu.locator(self.ROW_ITEMS).filter(has_text=row_label)
        try:
            if await rows.filter(has_text=desired).count() > 0:
                report.skipped.append(name)
                return
        except Exception as e:
            logger.debug(f"{row_label} current value unreadable: {e}")

        try:
            await rows.first.click(timeout=self.click_timeout_ms, force=True)
        except Exception as e:
            logger.debug(f"{row_label} row not clickable: {e}")

        try:
            await page.locator(self.RADIO_ITEMS).filter(has_text=desired).first.click(
                timeout=self.click_timeout_ms, force=True
            )
            report.applied.append(name)
        except Exception as e:
            logger.info(f"{row_label} option {desired!r} not selectable: {e}")
            report.failed.append(name)
            return

        try:
            await page.keyboard.press("Escape")
        except Exception:
            pass


async def detect_configurator(
    page: Any,
    selectors: UiSelectors,
    ui_mode: str = "auto",
    click_timeout_ms: int = 10000,
    visible_timeout_ms: int = 5000,
) -> UiConfigurator:
    """Choose the configuration surface once at startup."""
    toolbar = ToolbarConfigurator(selectors, click_timeout_ms, visible_timeout_ms)
    if ui_mode == "toolbar":
        logger.info("UI variant: toolbar (configured)")
        return toolbar

    menu = SettingsMenuConfigurator(selectors, click_timeout_ms, visible_timeout_ms, fallback=toolbar)
    if ui_mode == "menu":
        logger.info("UI variant: settings menu (configured)")
        return menu

    if await menu.probe(page):
        logger.info("Detected UI variant: settings menu")
        return menu
    logger.info("Detected UI variant: toolbar")
    return toolbar


@dataclass
class UiProfile:
    """
    Capacity reading and job configuration for the detected interface.

    Selected once at startup and fixed for the process lifetime.
    """
    capacity: CapacityEstimator
    configurator: UiConfigurator

    @property
    def mode(self) -> str:
        return f"{self.capacity.mode}/{self.configurator.mode}"

    async def read(self) -> int:
        return await self.capacity.read()

    async def configure(self, page: Any) -> ConfigureReport:
        return await self.configurator.configure(page)
