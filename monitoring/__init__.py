"""Logging setup, run metrics and the progress line."""
