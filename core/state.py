"""
Queue State

Explicit state objects owned by the admission loop. Nothing here is global:
the runner creates one instance of each and passes it by reference to the
components that read or write it.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional

Clock = Callable[[], float]


def monotonic_clock() -> float:
    return time.monotonic()


@dataclass
class BackoffState:
    """
    Rate-limit cooldown window.

    Written only by the network correlator (last observation wins, no
    stacking); read by the admission loop. A single float assignment, so no
    lock is needed between the event callback and the loop.
    """
    backoff_until: float = 0.0

    def trigger(self, now: float, duration_seconds: float) -> float:
        self.backoff_until = now + duration_seconds
        return self.backoff_until

    def active(self, now: float) -> bool:
        return now < self.backoff_until

    def remaining(self, now: float) -> float:
        return max(0.0, self.backoff_until - now)


@dataclass
class RunAccounting:
    """
    Prompt position and run counters.

    Advanced only by the admission loop, and only on a confirmed submission.
    """
    prompt_index: int = 0
    cycle: int = 0
    submit_count: int = 0

    def record_success(self, prompt_count: int) -> bool:
        """
        Count a confirmed submission and move to the next prompt.

        Returns:
            True when the prompt list wrapped (a full run completed)
        """
        self.submit_count += 1
        self.prompt_index += 1
        if self.prompt_index >= max(prompt_count, 1):
            self.prompt_index = 0
            self.cycle += 1
            return True
        return False

    def reconcile(self, prompt_count: int):
        """Keep the index in range after the prompt list was replaced."""
        self.prompt_index = self.prompt_index % max(prompt_count, 1)

    def limit_reached(self, run_limit: Optional[int]) -> bool:
        return run_limit is not None and self.cycle >= run_limit

    def planned_total(self, prompt_count: int, run_limit: Optional[int]) -> Optional[int]:
        if run_limit is None or not prompt_count:
            return None
        return prompt_count * run_limit
