"""Conversation history: messages and the append-only store that owns them."""

import os
import json
import tempfile
from enum import Enum
from pathlib import Path
from datetime import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union
import structlog

from ..errors import InvalidMessageError


logger = structlog.get_logger()


class Sender(str, Enum):
    """Who authored a message."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """A single entry in the conversation history."""

    id: int
    text: str
    sender: Sender
    error: bool = False
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def is_user(self) -> bool:
        return self.sender is Sender.USER

    def to_dict(self) -> Dict[str, Any]:
        """Convert message to dictionary for serialization."""
        return {
            "id": self.id,
            "text": self.text,
            "sender": self.sender.value,
            "error": self.error,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        """Create message from dictionary."""
        try:
            text = data["text"]
            if not isinstance(text, str):
                raise TypeError(f"text must be a string, got {type(text).__name__}")
            return cls(
                id=int(data["id"]),
                text=text,
                sender=Sender(data["sender"]),
                error=bool(data.get("error", False)),
                created_at=data.get("created_at") or datetime.now().isoformat(),
            )
        except KeyError as e:
            raise InvalidMessageError(f"Message is missing field {e}") from e
        except (TypeError, ValueError) as e:
            raise InvalidMessageError(f"Malformed message: {e}") from e


class ConversationStore:
    """
    Ordered, append-only message history.

    Messages are never edited or reordered once appended. The store does no
    locking of its own; the request pipeline is its only writer.
    """

    def __init__(self, messages: Optional[List[Message]] = None):
        self._messages: List[Message] = []
        for message in messages or []:
            self.append(message)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.snapshot())

    @property
    def last(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def next_id(self) -> int:
        """Return an id greater than every id already in the history."""
        return self._messages[-1].id + 1 if self._messages else 1

    def append(self, message: Message) -> Message:
        """Add a message to the tail of the history."""
        if message.sender is Sender.USER and not message.text.strip():
            raise InvalidMessageError("User message text must not be empty")
        if self._messages and message.id <= self._messages[-1].id:
            raise InvalidMessageError(
                f"Message id {message.id} is not after {self._messages[-1].id}"
            )

        self._messages.append(message)
        logger.debug(
            "Message appended",
            message_id=message.id,
            sender=message.sender.value,
            error=message.error,
            history_length=len(self._messages),
        )
        return message

    def snapshot(self) -> Tuple[Message, ...]:
        """Read-only view of the history, oldest first."""
        return tuple(self._messages)

    def clear(self) -> None:
        """Drop the whole history."""
        logger.info("Conversation cleared", removed=len(self._messages))
        self._messages.clear()

    def to_dict(self) -> Dict[str, Any]:
        return {"messages": [message.to_dict() for message in self._messages]}

    def save(self, file_path: Union[str, Path]) -> None:
        """Atomically write the raw transcript to disk."""
        file_path = Path(file_path).expanduser()
        file_path.parent.mkdir(parents=True, exist_ok=True)

        # Write to temporary file first
        with tempfile.NamedTemporaryFile(
            mode="w", dir=file_path.parent, delete=False, suffix=".tmp"
        ) as tmp_file:
            json.dump(self.to_dict(), tmp_file, indent=2, ensure_ascii=False)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
            tmp_path = tmp_file.name

        os.replace(tmp_path, file_path)
        logger.info(
            "Transcript saved", path=str(file_path), message_count=len(self._messages)
        )

    @classmethod
    def load(cls, file_path: Union[str, Path]) -> "ConversationStore":
        """Load a transcript written by save(); a missing file gives an empty store."""
        file_path = Path(file_path).expanduser()
        if not file_path.exists():
            return cls()

        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        messages = data.get("messages", []) if isinstance(data, dict) else None
        if not isinstance(messages, list):
            raise InvalidMessageError(f"{file_path} is not a transcript file")

        store = cls([Message.from_dict(item) for item in messages])
        logger.info(
            "Transcript loaded", path=str(file_path), message_count=len(store)
        )
        return store
