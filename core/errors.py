"""
Queue Errors

Exception taxonomy for the generation queue.

Fatal errors (TargetPageNotFoundError, SubmitTriggerError) propagate to the
top level and end the process with exit code 1. Everything else is handled
where it happens and surfaced as a log line or a boolean outcome.
"""

from typing import List, Optional, Tuple


class QueueError(Exception):
    """Base class for generation queue errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigError(QueueError):
    """Invalid configuration input (e.g. a malformed --set override)."""


class TargetPageNotFoundError(QueueError):
    """No page to drive was found in the attached browser."""

    def __init__(self, hint: str):
        self.hint = hint
        super().__init__(f"No page matching '{hint}' found; open it in the browser first.")


class PromptFillError(QueueError):
    """The prompt field could not be cleared or filled."""

    def __init__(self, selector: str, cause: Optional[BaseException] = None):
        self.selector = selector
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to fill prompt field '{selector}'{detail}")


class SubmitTriggerError(QueueError):
    """Every selector candidate and click strategy failed to activate the trigger."""

    def __init__(self, failures: List[Tuple[str, str, str]]):
        # (selector, strategy, error)
        self.failures = list(failures)
        if failures:
            tried = ", ".join(f"{sel} [{strategy}]" for sel, strategy, _ in failures)
        else:
            tried = "no candidates"
        super().__init__(f"Failed to click submit button with all strategies ({tried})")
