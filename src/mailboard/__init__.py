"""mailboard: intake email to monday.com board items."""

__version__ = "0.1.0"
