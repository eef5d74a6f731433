"""Chat record models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class ChatRow:
    """A persisted chat transcript."""
    id: str
    title: str
    last_message_preview: Optional[str]
    updated_at: datetime
