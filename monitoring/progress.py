"""Progress bar and summary line printed before every attempt."""

from dataclasses import dataclass
from typing import Optional

BAR_WIDTH = 20
UNLIMITED = "∞"


def progress_bar(done: int, total: Optional[int], width: int = BAR_WIDTH) -> str:
    """
    Render ``[####......]``.

    With no finite total the bar stays empty.
    """
    if not total or total <= 0:
        return "[" + "." * width + "]"
    ratio = max(0.0, min(1.0, done / total))
    filled = int(round(ratio * width))
    return "[" + "#" * filled + "." * (width - filled) + "]"


@dataclass
class ProgressSnapshot:
    in_progress: int
    max_concurrent: int
    prompt_index: int
    prompt_count: int
    cycle: int
    run_limit: Optional[int]
    submitted: int
    planned_total: Optional[int]

    def line(self, width: int = BAR_WIDTH) -> str:
        runs = str(self.run_limit) if self.run_limit is not None else UNLIMITED
        total = str(self.planned_total) if self.planned_total is not None else UNLIMITED
        # Current run is 1-based and never shown past the limit.
        run_no = self.cycle + 1
        if self.run_limit is not None:
            run_no = min(run_no, self.run_limit)
        prompt_no = self.prompt_index + 1 if self.prompt_count else 0
        return (
            f"{progress_bar(self.submitted, self.planned_total, width)} "
            f"In progress: {self.in_progress}/{self.max_concurrent} | "
            f"prompt {prompt_no}/{self.prompt_count} | "
            f"run {run_no}/{runs} | "
            f"submitted {self.submitted}/{total}"
        )
