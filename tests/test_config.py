"""
Configuration Tests
Option precedence, clamping, legacy aliases and selector overrides.
"""

import json

import pytest

from core.config import QueueConfig, load_config_file, parse_overrides
from core.errors import ConfigError
from core.selectors import DEFAULT_SUBMIT_BUTTON, UiSelectors, split_selector_list


def _load(tmp_path, file_values=None, environ=None, overrides=None, suffix=".json"):
    path = tmp_path / f"config{suffix}"
    if file_values is not None:
        if suffix == ".json":
            path.write_text(json.dumps(file_values))
        else:
            path.write_text(file_values)
    return QueueConfig.load(config_file=str(path), overrides=overrides, environ=environ or {})


class TestPrecedence:
    """Override > environment > file > default."""

    def test_defaults_without_any_source(self, tmp_path):
        cfg = _load(tmp_path)
        assert cfg.MAX_CONCURRENT == 3
        assert cfg.POLL_MS == 5000
        assert cfg.MIN_SUBMIT_INTERVAL_MS == 12000
        assert cfg.BACKOFF_429_MS == 60000
        assert cfg.PROMPT_FILE_RUNS is None
        assert cfg.UI_MODE == "auto"
        assert cfg.selectors.submit_button == DEFAULT_SUBMIT_BUTTON

    def test_file_overrides_default(self, tmp_path):
        cfg = _load(tmp_path, {"POLL_MS": 2000})
        assert cfg.POLL_MS == 2000

    def test_environment_beats_file(self, tmp_path):
        cfg = _load(tmp_path, {"POLL_MS": 2000}, environ={"POLL_MS": "3000"})
        assert cfg.POLL_MS == 3000

    def test_override_beats_environment(self, tmp_path):
        cfg = _load(tmp_path, {"POLL_MS": 2000}, environ={"POLL_MS": "3000"}, overrides={"POLL_MS": "4000"})
        assert cfg.POLL_MS == 4000

    def test_yaml_config_file(self, tmp_path):
        cfg = _load(tmp_path, "MAX_CONCURRENT: 2\nUI_MODE: menu\n", suffix=".yaml")
        assert cfg.MAX_CONCURRENT == 2
        assert cfg.UI_MODE == "menu"

    def test_malformed_file_contributes_nothing(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        assert load_config_file(path) == {}
        cfg = QueueConfig.load(config_file=str(path), environ={})
        assert cfg.POLL_MS == 5000

    def test_non_mapping_file_is_rejected(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        assert load_config_file(path) == {}


class TestClamping:
    """Numeric options are coerced and bounded."""

    def test_max_concurrent_clamped_to_three(self, tmp_path):
        assert _load(tmp_path, overrides={"MAX_CONCURRENT": "10"}).MAX_CONCURRENT == 3
        assert _load(tmp_path, overrides={"MAX_CONCURRENT": "0"}).MAX_CONCURRENT == 1

    def test_poll_clamped(self, tmp_path):
        assert _load(tmp_path, overrides={"POLL_MS": "10"}).POLL_MS == 250
        assert _load(tmp_path, overrides={"POLL_MS": "999999"}).POLL_MS == 30000

    def test_non_numeric_falls_back_to_default(self, tmp_path):
        cfg = _load(tmp_path, overrides={"POLL_MS": "fast", "BACKOFF_429_MS": "nan"})
        assert cfg.POLL_MS == 5000
        assert cfg.BACKOFF_429_MS == 60000

    def test_run_limit_minimum_one(self, tmp_path):
        assert _load(tmp_path, overrides={"PROMPT_FILE_RUNS": "0"}).PROMPT_FILE_RUNS == 1
        assert _load(tmp_path, overrides={"PROMPT_FILE_RUNS": "2"}).PROMPT_FILE_RUNS == 2

    def test_recent_check_count_defaults_to_cap(self, tmp_path):
        cfg = _load(tmp_path, overrides={"MAX_CONCURRENT": "2"})
        assert cfg.DRAFTS_RECENT_CHECK_COUNT == 2

    def test_derived_seconds(self, tmp_path):
        cfg = _load(tmp_path, overrides={"POLL_MS": "1500", "AFTER_SUBMIT_WAIT_MS": "0"})
        assert cfg.poll_seconds == 1.5
        assert cfg.after_submit_seconds == 0.0


class TestAliasesAndChoices:
    """Legacy names and enumerated options."""

    def test_legacy_target_in_flight(self, tmp_path):
        cfg = _load(tmp_path, {"TARGET_IN_FLIGHT": 2})
        assert cfg.MAX_CONCURRENT == 2

    def test_canonical_name_wins_over_alias(self, tmp_path):
        cfg = _load(tmp_path, {"TARGET_IN_FLIGHT": 1, "MAX_CONCURRENT": 2})
        assert cfg.MAX_CONCURRENT == 2

    def test_legacy_max_submits(self, tmp_path):
        cfg = _load(tmp_path, environ={"MAX_SUBMITS": "4"})
        assert cfg.PROMPT_FILE_RUNS == 4

    def test_unknown_choice_falls_back(self, tmp_path):
        cfg = _load(tmp_path, overrides={"UI_MODE": "sidebar", "PROMPT_OBJECT_MODE": "PROMPT"})
        assert cfg.UI_MODE == "auto"
        assert cfg.PROMPT_OBJECT_MODE == "prompt"

    def test_invalid_url_pattern_is_ignored(self, tmp_path):
        assert _load(tmp_path, overrides={"GEN_URL_PATTERN": "("}).GEN_URL_PATTERN is None
        assert _load(tmp_path, overrides={"GEN_URL_PATTERN": "/jobs$"}).GEN_URL_PATTERN == "/jobs$"


class TestOverrides:
    """--set KEY=VALUE parsing."""

    def test_parse_pairs(self):
        assert parse_overrides(["A=1", "B=x=y"]) == {"A": "1", "B": "x=y"}
        assert parse_overrides(None) == {}

    @pytest.mark.parametrize("bad", ["NOVALUE", "=1"])
    def test_invalid_pair_raises(self, bad):
        with pytest.raises(ConfigError):
            parse_overrides([bad])


class TestSelectors:
    """Selectors are configuration data."""

    def test_selector_option_override(self, tmp_path):
        cfg = _load(tmp_path, {"SORA_SUBMIT": "button#go", "SORA_PROMPT": ""})
        assert cfg.selectors.submit_button == "button#go"
        assert cfg.selectors.prompt_textarea == UiSelectors().prompt_textarea

    def test_split_respects_parentheses_and_quotes(self):
        raw = 'button:has-text("Create, now"), button:is(.a, .b), [aria-label=\'x, y\']'
        assert split_selector_list(raw) == [
            'button:has-text("Create, now")',
            "button:is(.a, .b)",
            "[aria-label='x, y']",
        ]

    def test_default_submit_candidates(self):
        assert len(UiSelectors().submit_candidates) == 2

    def test_as_dict_includes_selectors(self, tmp_path):
        values = _load(tmp_path).as_dict()
        assert values["MAX_CONCURRENT"] == 3
        assert "SORA_SUBMIT" in values
        assert "selectors" not in values
