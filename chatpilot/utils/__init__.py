"""Utility functions for chatpilot."""

from chatpilot.utils.helpers import ensure_dir, parse_datetime, truncate

__all__ = ["ensure_dir", "parse_datetime", "truncate"]
