"""
Queue Configuration

All tunables for the generation queue are resolved here.

Precedence for every option:
    explicit override (CLI --set) > environment > config file > built-in default

The config file is JSON by default; ``.yaml``/``.yml`` files are read with
PyYAML. Numeric options are clamped to sane bounds and a few legacy option
names are reconciled to their canonical name.

Usage:
    from core.config import QueueConfig

    config = QueueConfig.load(config_file="config.json", overrides={"POLL_MS": "2000"})
"""

import json
import logging
import math
import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from .errors import ConfigError
from .selectors import UiSelectors

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "config.json"
DEFAULT_PROMPTS_FILENAME = "prompts.json"

PROMPT_OBJECT_MODES = ("full", "prompt")
IN_PROGRESS_MODES = ("auto", "activity", "drafts")
UI_MODES = ("auto", "menu", "toolbar")
COUNTER_MISSING_POLICIES = ("zero", "saturated")

# canonical name -> legacy names, checked in order
LEGACY_ALIASES: Dict[str, Tuple[str, ...]] = {
    "MAX_CONCURRENT": ("TARGET_IN_FLIGHT",),
    "PROMPT_FILE_RUNS": ("MAX_SUBMITS",),
}


def clamp(value: float, lower: float, upper: float) -> float:
    return min(upper, max(lower, value))


def load_config_file(path: Optional[Path]) -> Dict[str, Any]:
    """
    Read a JSON or YAML config file.

    A missing file is not an error. An unreadable or malformed file is logged
    and contributes nothing.
    """
    if not path or not path.exists():
        return {}
    try:
        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Failed to parse config file {path}: {e}")
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.error(f"Config file {path} must contain a mapping, got {type(data).__name__}")
        return {}
    return data


def parse_overrides(pairs: Optional[List[str]]) -> Dict[str, str]:
    """Parse ``KEY=VALUE`` strings from the command line."""
    result: Dict[str, str] = {}
    for pair in pairs or []:
        if "=" not in pair:
            raise ConfigError(f"Invalid override '{pair}', expected KEY=VALUE")
        key, value = pair.split("=", 1)
        key = key.strip()
        if not key:
            raise ConfigError(f"Invalid override '{pair}', empty key")
        result[key] = value
    return result


class ConfigSource:
    """Layered lookup over overrides, environment and file values."""

    def __init__(
        self,
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
        file_values: Optional[Mapping[str, Any]] = None,
    ):
        self.layers = [dict(overrides or {}), dict(environ or {}), dict(file_values or {})]

    def get(self, key: str, default: Any = None) -> Any:
        for layer in self.layers:
            if key in layer and layer[key] is not None:
                return layer[key]
        return default

    def get_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.get(key)
        if value is None or str(value) == "":
            return default
        return str(value)

    def get_number(self, key: str, default: Optional[float] = None) -> Optional[float]:
        raw = self.get(key)
        if raw is None or raw == "" or isinstance(raw, bool):
            return default
        try:
            number = float(raw)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-numeric value for {key}: {raw!r}")
            return default
        return number if math.isfinite(number) else default

    def get_number_alias(self, key: str, default: Optional[float] = None) -> Optional[float]:
        preferred = self.get_number(key)
        if preferred is not None:
            return preferred
        for legacy in LEGACY_ALIASES.get(key, ()):
            value = self.get_number(legacy)
            if value is not None:
                logger.info(f"Using legacy option {legacy} for {key}")
                return value
        return default

    def get_choice(self, key: str, choices: Tuple[str, ...], default: str) -> str:
        raw = self.get_str(key)
        if raw is None:
            return default
        value = raw.strip().lower()
        if value not in choices:
            logger.warning(f"Unknown {key}={raw!r}; expected one of {', '.join(choices)}. Using '{default}'")
            return default
        return value


def _bounded_int(source: ConfigSource, key: str, default: float, lower: float, upper: float) -> int:
    return int(round(clamp(source.get_number_alias(key, default), lower, upper)))


@dataclass
class QueueConfig:
    """Resolved generation queue configuration."""

    # === Browser attachment ===
    DEBUG_WS: str = "http://localhost:9222"
    PAGE_URL_HINT: str = "sora"
    CONNECT_RETRY_BASE_MS: int = 1000
    CONNECT_RETRY_MAX_MS: int = 30000

    # === Admission control ===
    # Target number of in-flight generations (the service caps at 3).
    MAX_CONCURRENT: int = 3
    # Polling interval when all slots are busy.
    POLL_MS: int = 5000
    # Minimum gap between submission starts.
    MIN_SUBMIT_INTERVAL_MS: int = 12000
    # Cooldown after a rate-limit response.
    BACKOFF_429_MS: int = 60000
    # Full passes through the prompt list; None runs forever.
    PROMPT_FILE_RUNS: Optional[int] = None

    # === Timeouts / delays ===
    FILL_TIMEOUT_MS: int = 30000
    CLICK_TIMEOUT_MS: int = 10000
    VISIBLE_TIMEOUT_MS: int = 5000
    GEN_REQUEST_TIMEOUT_MS: int = 20000
    GEN_RESPONSE_TIMEOUT_MS: int = 20000
    KEYPRESS_REQUEST_TIMEOUT_MS: int = 5000
    AFTER_SUBMIT_WAIT_MS: int = 2000
    SUBMIT_READY_RETRIES: int = 5

    # === Capacity estimation ===
    IN_PROGRESS_MODE: str = "auto"
    COUNTER_MISSING_POLICY: str = "zero"
    # Spinner detection can undercount (virtualised tiles); added then capped.
    DRAFTS_SPINNER_SAFETY_MARGIN: int = 1
    DRAFTS_RECENT_CHECK_COUNT: int = 3

    # === UI variant ===
    UI_MODE: str = "auto"

    # === Network correlation ===
    GEN_URL_PATTERN: Optional[str] = None

    # === Prompts ===
    PROMPTS_FILE: str = field(default_factory=lambda: str(Path.cwd() / DEFAULT_PROMPTS_FILENAME))
    # "full": stringify object items; "prompt": submit only their "prompt" field.
    PROMPT_OBJECT_MODE: str = "full"

    # === Logging ===
    LOG_FILE: Optional[str] = None
    LOG_LEVEL: str = "INFO"

    selectors: UiSelectors = field(default_factory=UiSelectors)
    config_file: Optional[str] = None

    @classmethod
    def load(
        cls,
        config_file: Optional[str] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "QueueConfig":
        """
        Resolve the configuration from all layers.

        Args:
            config_file: Explicit config file path (else CONFIG_FILE, else ./config.json)
            overrides: Highest-priority values, usually from the command line
            environ: Environment mapping (defaults to os.environ)

        Returns:
            QueueConfig with every numeric option clamped
        """
        environ = os.environ if environ is None else environ
        overrides = dict(overrides or {})

        path_value = (
            config_file
            or overrides.get("CONFIG_FILE")
            or environ.get("CONFIG_FILE")
            or str(Path.cwd() / DEFAULT_CONFIG_FILENAME)
        )
        cfg_path = Path(path_value).expanduser()
        source = ConfigSource(overrides, environ, load_config_file(cfg_path))

        max_concurrent = _bounded_int(source, "MAX_CONCURRENT", 3, 1, 3)

        runs = source.get_number_alias("PROMPT_FILE_RUNS")
        prompt_file_runs = None if runs is None else max(1, int(runs))

        connect_base = _bounded_int(source, "CONNECT_RETRY_BASE_MS", 1000, 100, 60000)
        connect_max = _bounded_int(source, "CONNECT_RETRY_MAX_MS", 30000, 1000, 300000)

        pattern = source.get_str("GEN_URL_PATTERN")
        if pattern is not None:
            try:
                re.compile(pattern)
            except re.error as e:
                logger.warning(f"Ignoring invalid GEN_URL_PATTERN {pattern!r}: {e}")
                pattern = None

        return cls(
            DEBUG_WS=source.get_str("DEBUG_WS", cls.DEBUG_WS),
            PAGE_URL_HINT=source.get_str("PAGE_URL_HINT", cls.PAGE_URL_HINT),
            CONNECT_RETRY_BASE_MS=connect_base,
            CONNECT_RETRY_MAX_MS=max(connect_base, connect_max),
            MAX_CONCURRENT=max_concurrent,
            POLL_MS=_bounded_int(source, "POLL_MS", 5000, 250, 30000),
            MIN_SUBMIT_INTERVAL_MS=_bounded_int(source, "MIN_SUBMIT_INTERVAL_MS", 12000, 500, 60000),
            BACKOFF_429_MS=_bounded_int(source, "BACKOFF_429_MS", 60000, 1000, 300000),
            PROMPT_FILE_RUNS=prompt_file_runs,
            FILL_TIMEOUT_MS=_bounded_int(source, "FILL_TIMEOUT_MS", 30000, 1000, 120000),
            CLICK_TIMEOUT_MS=_bounded_int(source, "CLICK_TIMEOUT_MS", 10000, 1000, 120000),
            VISIBLE_TIMEOUT_MS=_bounded_int(source, "VISIBLE_TIMEOUT_MS", 5000, 500, 60000),
            GEN_REQUEST_TIMEOUT_MS=_bounded_int(source, "GEN_REQUEST_TIMEOUT_MS", 20000, 1000, 120000),
            GEN_RESPONSE_TIMEOUT_MS=_bounded_int(source, "GEN_RESPONSE_TIMEOUT_MS", 20000, 1000, 120000),
            KEYPRESS_REQUEST_TIMEOUT_MS=_bounded_int(source, "KEYPRESS_REQUEST_TIMEOUT_MS", 5000, 500, 60000),
            AFTER_SUBMIT_WAIT_MS=_bounded_int(source, "AFTER_SUBMIT_WAIT_MS", 2000, 0, 60000),
            SUBMIT_READY_RETRIES=_bounded_int(source, "SUBMIT_READY_RETRIES", 5, 0, 20),
            IN_PROGRESS_MODE=source.get_choice("IN_PROGRESS_MODE", IN_PROGRESS_MODES, "auto"),
            COUNTER_MISSING_POLICY=source.get_choice("COUNTER_MISSING_POLICY", COUNTER_MISSING_POLICIES, "zero"),
            DRAFTS_SPINNER_SAFETY_MARGIN=_bounded_int(source, "DRAFTS_SPINNER_SAFETY_MARGIN", 1, 0, 3),
            DRAFTS_RECENT_CHECK_COUNT=_bounded_int(source, "DRAFTS_RECENT_CHECK_COUNT", max_concurrent, 1, 12),
            UI_MODE=source.get_choice("UI_MODE", UI_MODES, "auto"),
            GEN_URL_PATTERN=pattern,
            PROMPTS_FILE=source.get_str("PROMPTS_FILE", str(Path.cwd() / DEFAULT_PROMPTS_FILENAME)),
            PROMPT_OBJECT_MODE=source.get_choice("PROMPT_OBJECT_MODE", PROMPT_OBJECT_MODES, "full"),
            LOG_FILE=source.get_str("LOG_FILE"),
            LOG_LEVEL=(source.get_str("LOG_LEVEL", "INFO") or "INFO").upper(),
            selectors=UiSelectors.from_lookup(source.get),
            config_file=str(cfg_path),
        )

    # --- derived values (seconds) ---

    @property
    def poll_seconds(self) -> float:
        return self.POLL_MS / 1000.0

    @property
    def min_submit_interval_seconds(self) -> float:
        return self.MIN_SUBMIT_INTERVAL_MS / 1000.0

    @property
    def backoff_seconds(self) -> float:
        return self.BACKOFF_429_MS / 1000.0

    @property
    def after_submit_seconds(self) -> float:
        return self.AFTER_SUBMIT_WAIT_MS / 1000.0

    def as_dict(self) -> Dict[str, Any]:
        """Flat view of the resolved options, selectors included."""
        values = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name.isupper()
        }
        values.update(self.selectors.as_dict())
        return values
