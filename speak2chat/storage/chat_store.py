"""Chat transcript persistence backed by JSON files."""

import json
import logging
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import ChatNotFound, InvalidChatID, StoresNotLoaded, TextMissing
from ..models.chat import ChatRow

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New chat"
MAX_TITLE_LENGTH = 48


class ChatStore:
    """Stores chats as one JSON file each under `<data_dir>/chats`.

    `load()` must be called before any other operation. With `in_memory=True`
    nothing touches the disk.
    """

    def __init__(self, data_dir: str = "./data", in_memory: bool = False):
        """Initialize chat store.

        Args:
            data_dir: Base directory for application data
            in_memory: Keep chats in memory only (tests, previews)
        """
        self.data_dir = Path(data_dir)
        self.chats_dir = self.data_dir / "chats"
        self.in_memory = in_memory

        self._rows: Dict[str, ChatRow] = {}
        self._loaded = False
        self._lock = threading.RLock()

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def load(self) -> None:
        """Load persisted chats. Unreadable chat files are skipped."""
        with self._lock:
            self._rows.clear()
            if not self.in_memory:
                self.chats_dir.mkdir(parents=True, exist_ok=True)
                for path in sorted(self.chats_dir.glob("*.json")):
                    row = self._read_row(path)
                    if row is not None:
                        self._rows[row.id] = row
            self._loaded = True

        logger.info(f"ChatStore loaded {len(self._rows)} chats "
                    f"({'in memory' if self.in_memory else self.chats_dir})")

    def fetch_chat(self, chat_id: str) -> ChatRow:
        """Return the chat with `chat_id`.

        Raises:
            InvalidChatID: Blank or path-like identifier
            ChatNotFound: No chat with that identifier
        """
        with self._lock:
            self._ensure_loaded()
            key = _validate_chat_id(chat_id)
            row = self._rows.get(key)
            if row is None:
                raise ChatNotFound(key)
            return row

    def upsert_chat(self,
                    chat_id: Optional[str] = None,
                    title: Optional[str] = None,
                    transcript: str = "") -> ChatRow:
        """Create or update a chat with `transcript` as its preview.

        Args:
            chat_id: Existing chat id; None or blank creates a new chat
            title: New title; None keeps the current one
            transcript: Transcript text, must not be blank

        Returns:
            The stored chat row
        """
        text = (transcript or "").strip()
        with self._lock:
            self._ensure_loaded()
            if not text:
                raise TextMissing()

            if chat_id is None or not chat_id.strip():
                key = _new_chat_id()
            else:
                key = _validate_chat_id(chat_id)

            existing = self._rows.get(key)
            if title is not None and title.strip():
                new_title = title.strip()
            elif existing is not None:
                new_title = existing.title
            else:
                new_title = _title_from_transcript(text)

            row = ChatRow(
                id=key,
                title=new_title,
                last_message_preview=text,
                updated_at=datetime.now(),
            )
            self._save_row(row)
            logger.info(f"{'Updated' if existing else 'Created'} chat {key} ({len(text)} chars)")
            return row

    def create_chat(self, title: Optional[str] = None) -> ChatRow:
        """Create an empty chat."""
        with self._lock:
            self._ensure_loaded()
            row = ChatRow(
                id=_new_chat_id(),
                title=(title or "").strip() or DEFAULT_TITLE,
                last_message_preview=None,
                updated_at=datetime.now(),
            )
            self._save_row(row)
            logger.info(f"Created chat {row.id}")
            return row

    def fetch_all_chats(self) -> List[ChatRow]:
        """Return all chats, most recently updated first."""
        with self._lock:
            self._ensure_loaded()
            return sorted(self._rows.values(), key=lambda row: row.updated_at, reverse=True)

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            raise StoresNotLoaded()

    def _save_row(self, row: ChatRow) -> None:
        if not self.in_memory:
            path = self.chats_dir / f"{row.id}.json"
            data = {
                "id": row.id,
                "title": row.title,
                "last_message_preview": row.last_message_preview,
                "updated_at": row.updated_at.isoformat(),
            }
            try:
                with open(path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
            except Exception as e:
                logger.error(f"Error saving chat {row.id}: {e}")
                raise
        self._rows[row.id] = row

    def _read_row(self, path: Path) -> Optional[ChatRow]:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return ChatRow(
                id=data["id"],
                title=data["title"],
                last_message_preview=data.get("last_message_preview"),
                updated_at=datetime.fromisoformat(data["updated_at"]),
            )
        except Exception as e:
            logger.error(f"Error loading chat file {path}: {e}")
            return None


def _new_chat_id() -> str:
    return str(uuid.uuid4())


def _validate_chat_id(chat_id: Optional[str]) -> str:
    key = (chat_id or "").strip()
    if not key or "/" in key or "\\" in key or key.startswith("."):
        raise InvalidChatID()
    return key


def _title_from_transcript(text: str) -> str:
    first_line = text.splitlines()[0].strip()
    if len(first_line) > MAX_TITLE_LENGTH:
        return first_line[:MAX_TITLE_LENGTH - 1].rstrip() + "…"
    return first_line or DEFAULT_TITLE
