# src/mailboard/infrastructure/__init__.py
"""Infrastructure layer - mailbox, monday.com, storage and configuration."""

from mailboard.infrastructure.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
