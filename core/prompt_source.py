"""
Prompt Source

Supplies the ordered list of prompt payloads and reloads it when the backing
file changes.

The file holds either a single payload or a list of payloads. Each payload is
a plain string or a structured object; objects are either submitted in full
(pretty-printed JSON) or reduced to their ``prompt`` field, depending on
PROMPT_OBJECT_MODE. JSON is the default format; ``.yaml``/``.yml`` files are
read with PyYAML. An empty, missing or unparsable file falls back to the
built-in default payload with a warning.

The list is exposed as an immutable tuple and replaced wholesale on reload,
so a reader never observes a partially updated list.
"""

import json
import logging
from pathlib import Path
from typing import Any, List, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

DEFAULT_PROMPTS: Tuple[str, ...] = (
    "10-second cinematic shot, moody and high contrast. Shot on a mirrorless camera "
    "with a 50mm f/1.8 prime lens, shallow depth of field, 16:9 horizontal, 24fps.\n\n"
    "Interior, small student room at night, lit only by a warm desk lamp and the cool "
    "blue glow of a monitor. Slow dolly-in on a student at her desk, background softly "
    "blurred. Close-up on tired eyes reflecting text on the screen, then a slow orbit "
    "as she leans back, finally calm, desk lamp forming soft bokeh.\n\n"
    "Overall mood: dark, focused, controlled camera movement, minimal colour palette, "
    "subtle ticking, cinematic film look.",
)


def normalize_prompt_item(item: Any, object_mode: str = "full") -> Optional[str]:
    """
    Turn one prompt-file item into a payload string.

    Returns:
        The payload, or None for null/empty items
    """
    if item is None:
        return None
    if isinstance(item, str):
        return item if item.strip() else None
    if isinstance(item, (dict, list)):
        if object_mode == "prompt" and isinstance(item, dict) and isinstance(item.get("prompt"), str):
            return item["prompt"] or None
        return json.dumps(item, indent=2, ensure_ascii=False)
    return str(item)


def parse_prompts(data: Any, object_mode: str = "full") -> List[str]:
    """Normalize parsed file content into a list of payloads (may be empty)."""
    if isinstance(data, list):
        return [p for p in (normalize_prompt_item(item, object_mode) for item in data) if p]
    one = normalize_prompt_item(data, object_mode)
    return [one] if one else []


def _read_file(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        return yaml.safe_load(text)
    return json.loads(text)


class PromptSource:
    """
    File-backed prompt list with modification-time hot reload.

    Example:
        source = PromptSource("prompts.json", object_mode="prompt")
        source.load()

        if source.reload_if_changed():
            accounting.reconcile(len(source.prompts))
    """

    def __init__(self, path: str, object_mode: str = "full", defaults: Tuple[str, ...] = DEFAULT_PROMPTS):
        self.path = Path(path).expanduser()
        self.object_mode = object_mode
        self.defaults = tuple(defaults)
        self._prompts: Tuple[str, ...] = ()
        self._mtime: Optional[float] = None

    @property
    def prompts(self) -> Tuple[str, ...]:
        return self._prompts

    def __len__(self) -> int:
        return len(self._prompts)

    def get(self, index: int) -> str:
        prompts = self._prompts
        return prompts[index % len(prompts)]

    def read(self) -> Tuple[str, ...]:
        """Parse the backing file without touching the current snapshot."""
        if not self.path.exists():
            logger.warning(f"Prompts file {self.path} not found; using defaults")
            return self.defaults
        try:
            data = _read_file(self.path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.warning(f"Failed to read prompts file {self.path}; using defaults ({e})")
            return self.defaults

        if isinstance(data, list) and not data:
            logger.warning(f"Prompts file {self.path} array is empty; using defaults")
            return self.defaults
        prompts = parse_prompts(data, self.object_mode)
        if not prompts:
            logger.warning(f"Prompts file {self.path} not usable; using defaults")
            return self.defaults
        return tuple(prompts)

    def load(self) -> Tuple[str, ...]:
        """Initial load; remembers the file's modification time."""
        self._mtime = self._stat_mtime()
        self._prompts = self.read()
        logger.info(f"Loaded {len(self._prompts)} prompt(s) from {self.path}")
        return self._prompts

    def reload_if_changed(self) -> bool:
        """
        Swap in a fresh list when the file's modification time changed.

        Returns:
            True if the snapshot was replaced
        """
        mtime = self._stat_mtime()
        if mtime is None:
            return False
        if self._mtime is None:
            self._mtime = mtime
            return False
        if mtime == self._mtime:
            return False

        fresh = self.read()
        self._mtime = mtime
        if not fresh:
            return False
        self._prompts = fresh
        logger.info(f"Prompts reloaded from file ({len(fresh)} prompt(s)).")
        return True

    def _stat_mtime(self) -> Optional[float]:
        try:
            return self.path.stat().st_mtime
        except OSError:
            return None
