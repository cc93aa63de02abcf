from mailboard.infrastructure.monday.client import MondayClient

__all__ = ["MondayClient"]
