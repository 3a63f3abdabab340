"""
Submission Executor

One attempt to enqueue a generation job through the page UI:

    activate -> populate -> configure -> readiness gate -> trigger
             -> verify (correlated request) -> confirm (response status)

The UI's own feedback is never trusted: an attempt only counts when the
network correlator saw the generation request go out and a success response
come back.

Outcomes:
    True   response observed with a 2xx status
    False  trigger stayed disabled, no request, no response, non-2xx status
    raise  PromptFillError when the prompt field cannot be filled,
           SubmitTriggerError when no click strategy worked on any candidate
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

from browser.network import ExchangeWatch, NetworkCorrelator

from .click_strategies import ClickResult, TriggerEscalation, focus_page
from .errors import PromptFillError
from .selectors import UiSelectors
from .state import Clock, monotonic_clock
from .ui_variants import ConfigureReport, UiProfile, is_control_disabled

logger = logging.getLogger(__name__)

# Tried in order when the click produced no generation request.
KEYBOARD_SUBMIT_KEYS: Tuple[str, ...] = ("Meta+Enter", "Enter")

# Some UIs only enable the trigger after a blur/focus cycle on the field.
READY_NUDGE_KEY = "Enter"
READY_POLL_MS = 500


class SubmissionOutcome(Enum):
    """How an attempt ended."""
    CONFIRMED = "confirmed"
    TRIGGER_DISABLED = "trigger_disabled"
    NO_REQUEST = "no_request"
    NO_RESPONSE = "no_response"
    RATE_LIMITED = "rate_limited"
    REJECTED = "rejected"


@dataclass
class SubmissionTimeouts:
    fill_ms: int = 30000
    click_ms: int = 10000
    visible_ms: int = 5000
    request_ms: int = 20000
    response_ms: int = 20000
    keypress_request_ms: int = 5000
    ready_retries: int = 5

    @classmethod
    def from_config(cls, config: Any) -> "SubmissionTimeouts":
        return cls(
            fill_ms=config.FILL_TIMEOUT_MS,
            click_ms=config.CLICK_TIMEOUT_MS,
            visible_ms=config.VISIBLE_TIMEOUT_MS,
            request_ms=config.GEN_REQUEST_TIMEOUT_MS,
            response_ms=config.GEN_RESPONSE_TIMEOUT_MS,
            keypress_request_ms=config.KEYPRESS_REQUEST_TIMEOUT_MS,
            ready_retries=config.SUBMIT_READY_RETRIES,
        )


@dataclass
class SubmissionAttempt:
    """Ephemeral record of one executor invocation; never persisted."""
    prompt: str
    started_at: float
    configuration: Optional[ConfigureReport] = None
    click: Optional[ClickResult] = None
    submit_key: Optional[str] = None
    request_method: Optional[str] = None
    request_url: Optional[str] = None
    response_status: Optional[int] = None
    outcome: Optional[SubmissionOutcome] = None
    finished_at: Optional[float] = None

    @property
    def confirmed(self) -> bool:
        return self.outcome is SubmissionOutcome.CONFIRMED

    @property
    def duration(self) -> float:
        if self.finished_at is None:
            return 0.0
        return self.finished_at - self.started_at


class SubmissionExecutor:
    """
    Drives one submission at a time against a single page.

    Attempts are strictly sequential: the page has one prompt field and one
    trigger, so overlapping attempts would corrupt each other.
    """

    def __init__(
        self,
        page: Any,
        selectors: UiSelectors,
        ui: UiProfile,
        correlator: NetworkCorrelator,
        timeouts: Optional[SubmissionTimeouts] = None,
        clock: Clock = monotonic_clock,
        trigger: Optional[TriggerEscalation] = None,
        keyboard_keys: Tuple[str, ...] = KEYBOARD_SUBMIT_KEYS,
    ):
        self.page = page
        self.selectors = selectors
        self.ui = ui
        self.correlator = correlator
        self.timeouts = timeouts or SubmissionTimeouts()
        self.clock = clock
        self.trigger = trigger or TriggerEscalation(
            click_timeout_ms=self.timeouts.click_ms,
            visible_timeout_ms=self.timeouts.visible_ms,
            is_enabled=self.is_trigger_enabled,
        )
        self.keyboard_keys = keyboard_keys
        self.last_attempt: Optional[SubmissionAttempt] = None

    async def submit(self, prompt: str) -> bool:
        attempt = SubmissionAttempt(prompt=prompt, started_at=self.clock())
        self.last_attempt = attempt
        try:
            outcome = await self._run(attempt)
        finally:
            attempt.finished_at = self.clock()
        attempt.outcome = outcome
        logger.debug(f"Attempt {outcome.value} after {attempt.duration:.1f}s")
        return attempt.confirmed

    async def _run(self, attempt: SubmissionAttempt) -> SubmissionOutcome:
        page = self.page
        await self._activate()
        await self._populate(attempt.prompt)

        attempt.configuration = await self._configure()
        try:
            await page.keyboard.press("Escape")
        except Exception:
            pass

        if not await self._await_ready():
            logger.info("Submit still disabled after prompt + settings; skipping submit.")
            return SubmissionOutcome.TRIGGER_DISABLED

        # The watch opens before the click so a fast request is not missed.
        watch: Optional[ExchangeWatch] = self.correlator.watch()
        try:
            attempt.click = await self.trigger.activate(page, self.selectors.submit_candidates)
            request = await self.correlator.wait_for_request(watch, self.timeouts.request_ms)
            if request is None:
                self.correlator.release(watch)
                watch, request = await self._keyboard_fallback(attempt)

            if request is None:
                logger.info("No generation request observed after submit attempts.")
                return SubmissionOutcome.NO_REQUEST

            attempt.request_method = request.method
            attempt.request_url = request.url
            logger.info(f"Gen request: {request.method} {request.url}")
            response = await self.correlator.wait_for_response(watch, self.timeouts.response_ms)
        finally:
            if watch is not None:
                self.correlator.release(watch)

        if response is None:
            logger.info("No response observed for gen request.")
            return SubmissionOutcome.NO_RESPONSE

        status = response.status
        attempt.response_status = status
        logger.info(f"Gen response: {status} {response.url}")
        if status in self.correlator.rate_limit_statuses:
            return SubmissionOutcome.RATE_LIMITED
        if 200 <= status < 300:
            return SubmissionOutcome.CONFIRMED
        return SubmissionOutcome.REJECTED

    # --- steps ---

    async def _activate(self):
        page = self.page
        await focus_page(page)
        try:
            await page.wait_for_timeout(200)
            await page.wait_for_load_state("networkidle", timeout=self.timeouts.visible_ms)
        except Exception as e:
            logger.debug(f"Page not idle: {e}")
        try:
            field = await page.query_selector(self.selectors.prompt_textarea)
            if field:
                await field.click(timeout=self.timeouts.visible_ms, force=True)
                await page.wait_for_timeout(200)
        except Exception as e:
            logger.debug(f"Prompt field focus failed: {e}")

    async def _populate(self, prompt: str):
        page = self.page
        selector = self.selectors.prompt_textarea
        try:
            await page.fill(selector, "", timeout=self.timeouts.fill_ms)
            await page.fill(selector, prompt, timeout=self.timeouts.fill_ms)
        except Exception as e:
            raise PromptFillError(selector, e) from e

        # Let the UI register the text, then dismiss anything that might intercept clicks.
        try:
            await page.wait_for_timeout(500)
            await page.keyboard.press("Escape")
            await page.wait_for_timeout(200)
        except Exception as e:
            logger.debug(f"Post-fill settle failed: {e}")

    async def _configure(self) -> Optional[ConfigureReport]:
        try:
            report = await self.ui.configure(self.page)
        except Exception as e:
            logger.info(f"Configuration skipped after error: {e}")
            return None
        logger.info(f"Settings {report.summary()}")
        return report

    async def is_trigger_enabled(self, page: Any = None) -> bool:
        page = page or self.page
        for selector in self.selectors.submit_candidates:
            try:
                handle = await page.query_selector(selector)
                if handle and not await is_control_disabled(handle):
                    return True
            except Exception as e:
                logger.debug(f"Enabled check failed for {selector}: {e}")
        return False

    async def _await_ready(self) -> bool:
        page = self.page
        for _ in range(self.timeouts.ready_retries):
            if await self.is_trigger_enabled(page):
                return True
            try:
                await page.keyboard.press(READY_NUDGE_KEY)
            except Exception:
                pass
            try:
                await page.wait_for_timeout(READY_POLL_MS)
            except Exception as e:
                # Page went away while polling; report not ready.
                logger.debug(f"Readiness poll failed: {e}")
                return False
        return await self.is_trigger_enabled(page)

    async def _keyboard_fallback(self, attempt: SubmissionAttempt) -> Tuple[Optional[ExchangeWatch], Optional[Any]]:
        for key in self.keyboard_keys:
            logger.info(f"No gen request observed. Trying keypress: {key}")
            watch = self.correlator.watch()
            try:
                await self.page.keyboard.press(key)
            except Exception as e:
                logger.debug(f"Keypress {key} failed: {e}")
            request = await self.correlator.wait_for_request(watch, self.timeouts.keypress_request_ms)
            if request is not None:
                attempt.submit_key = key
                return watch, request
            self.correlator.release(watch)
        return None, None
