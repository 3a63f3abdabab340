"""
UI Selectors

Every CSS/XPath selector the queue uses, treated as configuration data.
Each field can be overridden through the config layer using the option name
listed in SELECTOR_OPTIONS (e.g. SORA_SUBMIT, SORA_DRAFTS_GRID).
"""

from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, List, Optional

DEFAULT_PROMPT_TEXTAREA = (
    "textarea.flex.w-full.rounded-md.text-sm.placeholder\\:text-token-text-secondary"
    ".focus-visible\\:outline-none.disabled\\:cursor-not-allowed.disabled\\:opacity-50"
    ".\\!overflow-x-hidden.tablet\\:max-h-\\[80vh\\].bg-transparent.px-2.py-3.max-tablet\\:flex-1"
)

DEFAULT_SUBMIT_BUTTON = (
    'button:has-text("Create video"), '
    'button:has(span.sr-only:has-text("Create video"))'
)

DEFAULT_LOADING_OVERLAY = (
    "div.flex.h-full.w-full.items-center.justify-center.bg-token-bg-secondary svg.animate-spin"
)

# Composer auto-detection for the settings menu trigger; the sr-only label marks the composer root.
COMPOSER_ANCESTOR_XPATH = (
    "xpath=ancestor-or-self::*[.//span[contains(@class,'sr-only') and "
    "(contains(.,'Create video') or contains(.,'Create image') or contains(.,'Generate'))]][1]"
)

# Maps dataclass field -> config option name.
SELECTOR_OPTIONS: Dict[str, str] = {
    "in_progress_count": "SORA_IN_PROGRESS",
    "prompt_textarea": "SORA_PROMPT",
    "submit_button": "SORA_SUBMIT",
    "loading_overlay": "SORA_LOADING",
    "aspect_choice": "SORA_ASPECT",
    "resolution_choice": "SORA_RESOLUTION",
    "duration_choice": "SORA_DURATION",
    "variations_choice": "SORA_VARIATIONS",
    "variations_button": "SORA_VARIATIONS_BUTTON",
    "variations_option": "SORA_VARIATIONS_OPTION",
    "mode_choice": "SORA_MODE",
    "drafts_url": "SORA_DRAFTS_URL",
    "drafts_in_progress_spinner": "SORA_DRAFTS_IN_PROGRESS",
    "drafts_grid": "SORA_DRAFTS_GRID",
    "drafts_tile": "SORA_DRAFTS_TILE",
    "settings_trigger": "SORA_SETTINGS_TRIGGER",
    "settings_menu": "SORA_SETTINGS_MENU",
    "orientation_choice": "SORA_ORIENTATION",
}


def split_selector_list(raw: str) -> List[str]:
    """
    Split a comma-separated selector list on top-level commas only.

    Commas inside parentheses, brackets or quotes belong to the selector
    itself (e.g. ``:is(a, b)`` or ``[aria-label="x, y"]``).
    """
    parts: List[str] = []
    depth = 0
    quote: Optional[str] = None
    current: List[str] = []
    for ch in raw or "":
        if quote:
            current.append(ch)
            if ch == quote:
                quote = None
            continue
        if ch in ("'", '"'):
            quote = ch
        elif ch in "([":
            depth += 1
        elif ch in ")]" and depth > 0:
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    parts.append("".join(current).strip())
    return [p for p in parts if p]


@dataclass
class UiSelectors:
    """Selectors for the generation page and its drafts view."""

    # Element that displays "X/3" or similar for in-progress jobs.
    in_progress_count: str = ""
    prompt_textarea: str = DEFAULT_PROMPT_TEXTAREA
    submit_button: str = DEFAULT_SUBMIT_BUTTON
    loading_overlay: str = DEFAULT_LOADING_OVERLAY

    # Quick-pick labels (legacy toolbar). Empty means "leave as is".
    aspect_choice: str = ""
    resolution_choice: str = ""
    duration_choice: str = ""
    variations_choice: str = ""
    variations_button: str = ""
    variations_option: str = ""
    mode_choice: str = ""

    # Drafts view (no activity counter): in-progress tiles carry a spinner overlay.
    drafts_url: str = "https://sora.chatgpt.com/drafts"
    drafts_in_progress_spinner: str = "div.absolute.inset-0.grid.place-items-center"
    drafts_grid: str = "xpath=/html/body/main/div[3]/div[1]/div/div/div/div/div[2]/div/div[1]"
    drafts_tile: str = "[data-index]"

    # New settings menu (radix dropdown with Orientation / Duration rows).
    settings_trigger: str = ""
    settings_menu: str = "div[data-radix-menu-content][role='menu']"
    orientation_choice: str = ""

    @property
    def submit_candidates(self) -> List[str]:
        return split_selector_list(self.submit_button)

    @classmethod
    def from_lookup(cls, lookup: Callable[[str], Any]) -> "UiSelectors":
        """Build selectors from a config lookup; unset or blank options keep the defaults."""
        values: Dict[str, str] = {}
        for f in fields(cls):
            option = SELECTOR_OPTIONS.get(f.name)
            if not option:
                continue
            raw = lookup(option)
            if raw is None or str(raw) == "":
                continue
            values[f.name] = str(raw)
        return cls(**values)

    def as_dict(self) -> Dict[str, str]:
        return {SELECTOR_OPTIONS[f.name]: getattr(self, f.name) for f in fields(self)}
