#!/usr/bin/env python3
"""
Generation Queue - Main Entry Point

Keeps a fixed number of generation jobs running in an already-open browser
tab, submitting prompts from a file through the page UI.

Usage:
    # Run the queue (default command)
    python main.py run --prompts prompts.json --set MAX_CONCURRENT=2 --set PROMPT_FILE_RUNS=1

    # Show the parsed prompt list
    python main.py prompts --prompts prompts.yaml

    # Show the resolved configuration
    python main.py config --config config.yaml

Exit codes:
    0  run limit reached, or interrupted with Ctrl-C
    1  no target page, submit control unusable, or any unhandled error
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from core.config import QueueConfig, parse_overrides
from core.errors import ConfigError, SubmitTriggerError, TargetPageNotFoundError
from core.prompt_source import PromptSource
from core.queue_runner import QueueRunner
from monitoring.logging_config import setup_logging

logger = logging.getLogger(__name__)


def _add_common_args(parser: argparse.ArgumentParser, suppress: bool = False):
    # Subcommand copies use SUPPRESS so they never overwrite values given before the subcommand.
    default = argparse.SUPPRESS if suppress else None
    parser.add_argument('--config', default=default, help='Path to config file (JSON or YAML)')
    parser.add_argument('--prompts', default=default, help='Path to prompts file (JSON or YAML)')
    parser.add_argument(
        '--set', action='append', default=default, metavar='KEY=VALUE',
        help='Override a config option (repeatable)'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generation Queue - keep generation jobs running through the page UI"
    )
    _add_common_args(parser)

    subparsers = parser.add_subparsers(dest='command', help='Command to run')
    for name, help_text in (
        ('run', 'Run the queue (default)'),
        ('prompts', 'Print the parsed prompt list'),
        ('config', 'Print the resolved configuration'),
    ):
        _add_common_args(subparsers.add_parser(name, help=help_text), suppress=True)
    return parser


def load_config(args: argparse.Namespace) -> QueueConfig:
    overrides = parse_overrides(args.set)
    if args.prompts:
        overrides["PROMPTS_FILE"] = args.prompts
    return QueueConfig.load(config_file=args.config, overrides=overrides)


def show_prompts(config: QueueConfig) -> int:
    source = PromptSource(config.PROMPTS_FILE, config.PROMPT_OBJECT_MODE)
    prompts = source.load()
    for i, prompt in enumerate(prompts, start=1):
        print(f"--- [{i}/{len(prompts)}] ---")
        print(prompt)
    return 0


def show_config(config: QueueConfig) -> int:
    print(json.dumps(config.as_dict(), indent=2, default=str))
    return 0


def run_queue(config: QueueConfig) -> int:
    """Run the queue to completion and map the outcome to an exit code."""
    logger.info(f"🚀 Starting generation queue (config: {config.config_file})")
    try:
        accounting = asyncio.run(QueueRunner(config).run())
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")
        return 0
    except (TargetPageNotFoundError, SubmitTriggerError) as e:
        logger.error(f"❌ {e}")
        return 1
    except Exception as e:
        logger.exception(f"❌ Unhandled error: {e}")
        return 1

    logger.info(f"✅ Finished: {accounting.submit_count} submission(s), {accounting.cycle} run(s)")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    load_dotenv()
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except ConfigError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    setup_logging(config.LOG_FILE, config.LOG_LEVEL)

    command = args.command or 'run'
    if command == 'prompts':
        return show_prompts(config)
    if command == 'config':
        return show_config(config)
    return run_queue(config)


if __name__ == "__main__":
    sys.exit(main())
