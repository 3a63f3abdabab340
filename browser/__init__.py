"""
Browser Module

Playwright-facing pieces that are not specific to the queue's UI:
- cdp_manager: attach to a running browser over CDP, find tabs, bounded close
- network: generation request/response correlation and rate-limit detection

Start the browser with remote debugging enabled, e.g.:
    google-chrome --remote-debugging-port=9222
"""

from .cdp_manager import CdpBrowserManager, ConnectRetryConfig
from .network import (
    RATE_LIMIT_STATUSES,
    ExchangeWatch,
    GenerationUrlMatcher,
    NetworkCorrelator,
)

__all__ = [
    "CdpBrowserManager",
    "ConnectRetryConfig",
    "RATE_LIMIT_STATUSES",
    "ExchangeWatch",
    "GenerationUrlMatcher",
    "NetworkCorrelator",
]
