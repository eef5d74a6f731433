"""Session event publisher for pub/sub broadcasting."""

import logging
import uuid
from typing import Any, Dict, Optional

from pubsub import pub

from ..models.events import LiveTextEvent, SessionEvent

logger = logging.getLogger(__name__)

SESSION_TOPIC = "session_events"
LIVE_TEXT_TOPIC = "live_text_events"


class SessionEventPublisher:
    """Publishes transcription session lifecycle and live text using pubsub.pub."""

    def __init__(self, session_topic: str = SESSION_TOPIC, live_text_topic: str = LIVE_TEXT_TOPIC):
        """Initialize session event publisher.

        Args:
            session_topic: Topic for SessionEvent messages
            live_text_topic: Topic for LiveTextEvent messages
        """
        self.session_topic = session_topic
        self.live_text_topic = live_text_topic
        self.session_id: Optional[str] = None
        self.sequence_number = 0
        logger.info(f"SessionEventPublisher initialized with topics: {session_topic}, {live_text_topic}")

    def begin_session(self) -> str:
        """Allocate an id for a new session and publish its `started` event."""
        self.session_id = uuid.uuid4().hex[:12]
        self.sequence_number = 0
        self.publish_session_event("started")
        return self.session_id

    def publish_session_event(self, event_type: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        event = SessionEvent(
            event_id=f"{self.session_id}-{event_type}",
            event_type=event_type,
            metadata=dict(metadata or {}, session_id=self.session_id),
        )
        pub.sendMessage(self.session_topic, event=event)
        logger.debug(f"Published session event: {event.event_id}")

    def publish_live_text(self, text: str, is_final: bool = False) -> None:
        self.sequence_number += 1
        event = LiveTextEvent(
            session_id=self.session_id or "",
            text=text,
            sequence_number=self.sequence_number,
            is_final=is_final,
        )
        pub.sendMessage(self.live_text_topic, event=event)
