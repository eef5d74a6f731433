"""Chat persistence."""

from .chat_store import ChatStore

__all__ = ["ChatStore"]
