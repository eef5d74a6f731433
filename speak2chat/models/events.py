"""Event models published over pub/sub."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict


@dataclass
class SessionEvent:
    """Session lifecycle event."""
    event_id: str
    event_type: str  # "started", "stopped", "error"
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LiveTextEvent:
    """One element of the live-text sequence."""
    session_id: str
    text: str
    sequence_number: int
    is_final: bool = False
    timestamp: datetime = field(default_factory=datetime.now)
