"""Global application context and state management."""

from __future__ import annotations

from datetime import date
from pathlib import Path


class _Context:
    """Application context for CLI-wide state."""

    def __init__(self) -> None:
        self.config_path: Path | None = None
        self.today: date | None = None  # Pinned "today" for reproducible runs


# Singleton instance
_context = _Context()


def get_config_path() -> Path | None:
    """Get the config path given on the command line, if any."""
    return _context.config_path


def set_config_path(path: Path | None) -> None:
    """Set the global config path."""
    _context.config_path = path


def get_today() -> date | None:
    """Get the date given with --today, or None to use the clock."""
    return _context.today


def set_today(today: date | None) -> None:
    _context.today = today


def reset() -> None:
    """Clear all CLI-wide state."""
    _context.config_path = None
    _context.today = None
