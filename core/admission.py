#!/usr/bin/env python3
"""
Admission Loop

Keeps the configured number of generation jobs in flight:
- Hot-reloads the prompt list between iterations
- Honours the rate-limit backoff window set by the network correlator
- Enforces a minimum interval between submission starts
- Submits only while the capacity estimate is below the concurrency cap
- Advances the prompt/run accounting only on a confirmed submission

Each iteration runs the gates in a fixed order. The first gate that fails
waits and ends the iteration; later gates are never consulted early.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from monitoring.metrics import QueueMetrics, Timer
from monitoring.progress import ProgressSnapshot

from .errors import PromptFillError
from .state import BackoffState, Clock, RunAccounting, monotonic_clock

logger = logging.getLogger(__name__)

# Floor for the wait after a non-confirmed attempt.
MIN_FAILURE_WAIT_SECONDS = 2.0


class LoopDecision(Enum):
    """What one iteration decided."""
    BACKOFF = "backoff"
    INTERVAL = "interval"
    AT_CAPACITY = "capacity"
    NO_PROMPTS = "no_prompts"
    RUN_LIMIT = "run_limit"
    SUBMITTED = "submitted"
    NOT_CONFIRMED = "not_confirmed"
    COMPLETED = "completed"


@dataclass
class LoopTimings:
    poll_seconds: float = 5.0
    min_submit_interval_seconds: float = 12.0
    after_submit_seconds: float = 2.0

    @property
    def failure_wait_seconds(self) -> float:
        return max(self.poll_seconds, MIN_FAILURE_WAIT_SECONDS)

    @classmethod
    def from_config(cls, config: Any) -> "LoopTimings":
        return cls(
            poll_seconds=config.poll_seconds,
            min_submit_interval_seconds=config.min_submit_interval_seconds,
            after_submit_seconds=config.after_submit_seconds,
        )


@dataclass
class AdmissionLoop:
    """
    Single-threaded cooperative admission control.

    Args:
        prompts: PromptSource (``reload_if_changed()``, ``len()``, ``get(i)``)
        capacity: anything with ``async read() -> int`` (normally a UiProfile)
        executor: anything with ``async submit(prompt) -> bool``
        max_concurrent: concurrency cap
        run_limit: number of full passes over the prompt list, None for unlimited

    Example:
        loop = AdmissionLoop(prompts, ui_profile, executor, max_concurrent=3, run_limit=2)
        accounting = await loop.run()
    """
    prompts: Any
    capacity: Any
    executor: Any
    max_concurrent: int
    run_limit: Optional[int] = None
    timings: LoopTimings = field(default_factory=LoopTimings)
    backoff: BackoffState = field(default_factory=BackoffState)
    accounting: RunAccounting = field(default_factory=RunAccounting)
    metrics: QueueMetrics = field(default_factory=QueueMetrics)
    clock: Clock = monotonic_clock
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    last_attempt_at: Optional[float] = None
    last_capacity: Optional[int] = None
    finished: bool = False

    async def run(self) -> RunAccounting:
        """Iterate until the run limit is reached. Fatal errors propagate."""
        logger.info(
            f"Admission loop started: max {self.max_concurrent} in flight, "
            f"runs {self.run_limit if self.run_limit is not None else 'unlimited'}, "
            f"{len(self.prompts)} prompt(s)"
        )
        while not self.finished:
            await self.step()
        logger.info(
            f"✅ Done: {self.accounting.submit_count} submission(s) over {self.accounting.cycle} run(s)"
        )
        return self.accounting

    async def step(self) -> LoopDecision:
        """One iteration: run the gates in order, submit at most once."""
        self._reload_prompts()

        decision = await self._backoff_gate()
        if decision:
            return decision

        now = self.clock()
        if (
            self.last_attempt_at is not None
            and now - self.last_attempt_at < self.timings.min_submit_interval_seconds
        ):
            remaining = self.timings.min_submit_interval_seconds - (now - self.last_attempt_at)
            logger.info(f"Min submit interval not elapsed ({remaining:.1f}s left); waiting")
            return await self._wait(LoopDecision.INTERVAL, self.timings.poll_seconds)

        count = await self.capacity.read()
        self.last_capacity = count
        self.metrics.record_capacity(count)
        if count >= self.max_concurrent:
            logger.info(f"In progress: {count}/{self.max_concurrent}; at capacity, waiting")
            return await self._wait(LoopDecision.AT_CAPACITY, self.timings.poll_seconds)

        prompt_count = len(self.prompts)
        if not prompt_count:
            logger.warning("No prompts loaded; waiting")
            return await self._wait(LoopDecision.NO_PROMPTS, self.timings.poll_seconds)

        if self.accounting.limit_reached(self.run_limit):
            logger.info(f"Run limit reached ({self.run_limit} run(s)); stopping")
            self.finished = True
            self.metrics.record_gate(LoopDecision.RUN_LIMIT.value)
            return LoopDecision.RUN_LIMIT

        # A rate-limit response may have arrived while capacity was being read.
        decision = await self._backoff_gate()
        if decision:
            return decision

        return await self._attempt(count, prompt_count)

    # --- gates ---

    def _reload_prompts(self):
        try:
            changed = self.prompts.reload_if_changed()
        except Exception as e:
            logger.warning(f"Prompt reload failed: {e}")
            return
        if changed:
            self.accounting.reconcile(len(self.prompts))
            self.metrics.record_reload()

    async def _backoff_gate(self) -> Optional[LoopDecision]:
        now = self.clock()
        if not self.backoff.active(now):
            return None
        remaining = self.backoff.remaining(now)
        logger.info(f"Rate-limit backoff active ({remaining:.1f}s left); waiting")
        return await self._wait(LoopDecision.BACKOFF, min(self.timings.poll_seconds, remaining))

    async def _wait(self, decision: LoopDecision, seconds: float) -> LoopDecision:
        self.metrics.record_gate(decision.value)
        await self.sleep(max(0.0, seconds))
        return decision

    # --- attempt ---

    def progress(self, in_progress: int, prompt_count: int) -> ProgressSnapshot:
        a = self.accounting
        return ProgressSnapshot(
            in_progress=in_progress,
            max_concurrent=self.max_concurrent,
            prompt_index=a.prompt_index,
            prompt_count=prompt_count,
            cycle=a.cycle,
            run_limit=self.run_limit,
            submitted=a.submit_count,
            planned_total=a.planned_total(prompt_count, self.run_limit),
        )

    async def _attempt(self, in_progress: int, prompt_count: int) -> LoopDecision:
        a = self.accounting
        prompt = self.prompts.get(a.prompt_index)
        logger.info(self.progress(in_progress, prompt_count).line())

        self.last_attempt_at = self.clock()
        with Timer(self.metrics.attempt_duration, clock=self.clock):
            try:
                ok = bool(await self.executor.submit(prompt))
            except PromptFillError as e:
                logger.error(f"❌ {e}")
                self.metrics.record_fill_error()
                ok = False
        self.metrics.record_attempt(ok)

        if not ok:
            logger.info("⚠️ Submission not confirmed; retrying same prompt after a pause")
            return await self._wait(LoopDecision.NOT_CONFIRMED, self.timings.failure_wait_seconds)

        wrapped = a.record_success(prompt_count)
        logger.info(f"✅ Submission confirmed (total {a.submit_count})")
        if wrapped:
            logger.info(f"Run {a.cycle} complete")
            if a.limit_reached(self.run_limit):
                # Do not wait for the counter to reflect the job just created.
                logger.info(f"Run limit reached ({self.run_limit} run(s)); stopping")
                self.finished = True
                self.metrics.record_gate(LoopDecision.COMPLETED.value)
                return LoopDecision.COMPLETED

        return await self._wait(LoopDecision.SUBMITTED, self.timings.after_submit_seconds)
