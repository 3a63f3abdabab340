"""
Queue Runner

Wires the pieces together for one process run:

1. load prompts
2. attach to the browser over CDP (retries until it succeeds)
3. find the generation page (fatal if there is none)
4. attach the network correlator
5. detect the capacity strategy and UI variant once
6. run the admission loop until the run limit is reached
7. log the metrics summary and close the connection (bounded)
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from browser.cdp_manager import CdpBrowserManager, ConnectRetryConfig
from browser.network import GenerationUrlMatcher, NetworkCorrelator
from monitoring.metrics import QueueMetrics

from .admission import AdmissionLoop, LoopTimings
from .capacity import detect_capacity_estimator
from .config import QueueConfig
from .errors import TargetPageNotFoundError
from .prompt_source import PromptSource
from .state import BackoffState, Clock, RunAccounting, monotonic_clock
from .submission import SubmissionExecutor, SubmissionTimeouts
from .ui_variants import UiProfile, detect_configurator

logger = logging.getLogger(__name__)

DRAFTS_URL_FRAGMENT = "/drafts"
SHUTDOWN_TIMEOUT_SECONDS = 2.0


class QueueRunner:
    """
    Owns the browser connection and the admission loop for one run.

    Example:
        runner = QueueRunner(QueueConfig.load())
        accounting = await runner.run()
    """

    def __init__(
        self,
        config: QueueConfig,
        browser_manager: Optional[CdpBrowserManager] = None,
        prompts: Optional[PromptSource] = None,
        metrics: Optional[QueueMetrics] = None,
        clock: Clock = monotonic_clock,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config
        self.browser_manager = browser_manager or CdpBrowserManager(
            config.DEBUG_WS,
            retry=ConnectRetryConfig(
                base_delay_seconds=config.CONNECT_RETRY_BASE_MS / 1000.0,
                max_delay_seconds=config.CONNECT_RETRY_MAX_MS / 1000.0,
            ),
            sleep=sleep,
        )
        self.prompts = prompts or PromptSource(config.PROMPTS_FILE, config.PROMPT_OBJECT_MODE)
        self.metrics = metrics or QueueMetrics()
        self.clock = clock
        self.sleep = sleep
        self.correlator: Optional[NetworkCorrelator] = None
        self.loop: Optional[AdmissionLoop] = None

    async def setup(self) -> AdmissionLoop:
        cfg = self.config
        selectors = cfg.selectors

        self.prompts.load()

        await self.browser_manager.connect()
        page = self.browser_manager.find_target_page(cfg.PAGE_URL_HINT)
        if page is None:
            raise TargetPageNotFoundError(cfg.PAGE_URL_HINT)
        logger.info(f"Using page: {page.url}")

        backoff = BackoffState()
        self.correlator = NetworkCorrelator(
            backoff,
            cfg.backoff_seconds,
            matcher=GenerationUrlMatcher(cfg.GEN_URL_PATTERN),
            clock=self.clock,
        )
        self.correlator.attach(page)

        async def open_drafts_page():
            return await self.browser_manager.get_or_create_page(page, DRAFTS_URL_FRAGMENT, selectors.drafts_url)

        capacity = await detect_capacity_estimator(
            page,
            selectors,
            cfg.MAX_CONCURRENT,
            open_drafts_page,
            mode=cfg.IN_PROGRESS_MODE,
            missing_policy=cfg.COUNTER_MISSING_POLICY,
            recent_check_count=cfg.DRAFTS_RECENT_CHECK_COUNT,
            safety_margin=cfg.DRAFTS_SPINNER_SAFETY_MARGIN,
        )
        configurator = await detect_configurator(
            page,
            selectors,
            ui_mode=cfg.UI_MODE,
            click_timeout_ms=cfg.CLICK_TIMEOUT_MS,
            visible_timeout_ms=cfg.VISIBLE_TIMEOUT_MS,
        )
        ui = UiProfile(capacity=capacity, configurator=configurator)
        logger.info(f"UI profile: {ui.mode}")

        executor = SubmissionExecutor(
            page,
            selectors,
            ui,
            self.correlator,
            timeouts=SubmissionTimeouts.from_config(cfg),
            clock=self.clock,
        )
        self.loop = AdmissionLoop(
            prompts=self.prompts,
            capacity=ui,
            executor=executor,
            max_concurrent=cfg.MAX_CONCURRENT,
            run_limit=cfg.PROMPT_FILE_RUNS,
            timings=LoopTimings.from_config(cfg),
            backoff=backoff,
            accounting=RunAccounting(),
            metrics=self.metrics,
            clock=self.clock,
            sleep=self.sleep,
        )
        return self.loop

    async def run(self) -> RunAccounting:
        """Set up, run to completion, always shut down. Fatal errors propagate."""
        try:
            loop = await self.setup()
            return await loop.run()
        finally:
            await self.shutdown()

    async def shutdown(self):
        if self.correlator is not None:
            self.metrics.record_rate_limit(self.correlator.rate_limit_hits)
        self.metrics.log_summary()
        await self.browser_manager.close(timeout_seconds=SHUTDOWN_TIMEOUT_SECONDS)
        logger.info("Browser connection closed")
