"""
Core components for the generation queue.

Modules:
- config: option resolution, aliases, clamping
- selectors: selector strings as configuration data
- state: backoff window and run accounting
- prompt_source: prompt file parsing and hot reload
- capacity: in-flight job estimation strategies
- ui_variants: job configuration for the settings-menu and toolbar interfaces
- click_strategies: ordered trigger escalation
- submission: one submit attempt, verified against network traffic
- admission: the admission control loop
- queue_runner: ties everything together

submission and queue_runner depend on the browser package and are imported
from their modules directly.
"""

from .errors import (
    QueueError,
    ConfigError,
    TargetPageNotFoundError,
    PromptFillError,
    SubmitTriggerError,
)
from .config import QueueConfig
from .selectors import UiSelectors
from .state import BackoffState, RunAccounting
from .prompt_source import PromptSource
from .capacity import ActivityCounterEstimator, DraftsSpinnerEstimator, detect_capacity_estimator
from .ui_variants import UiProfile, SettingsMenuConfigurator, ToolbarConfigurator, detect_configurator
from .click_strategies import TriggerEscalation
from .admission import AdmissionLoop, LoopDecision, LoopTimings

__all__ = [
    "QueueError",
    "ConfigError",
    "TargetPageNotFoundError",
    "PromptFillError",
    "SubmitTriggerError",
    "QueueConfig",
    "UiSelectors",
    "BackoffState",
    "RunAccounting",
    "PromptSource",
    "ActivityCounterEstimator",
    "DraftsSpinnerEstimator",
    "detect_capacity_estimator",
    "UiProfile",
    "SettingsMenuConfigurator",
    "ToolbarConfigurator",
    "detect_configurator",
    "TriggerEscalation",
    "AdmissionLoop",
    "LoopDecision",
    "LoopTimings",
]
