"""Domain models for the chat application."""

import time
from datetime import datetime
from threading import Lock
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

GREETING_TEXT = "Hi! Ask me anything."
NO_REPLY_TEXT = "Sorry, I didn’t get that."
ERROR_TEXT = "Oops, something went wrong."

PIRATE_PERSONA = "Drunken Pirate"
STYLE_OPTIONS = ["Finnish", "Swedish", PIRATE_PERSONA]

_id_lock = Lock()
_last_id = 0


def new_id() -> str:
    """Return a unique id that sorts by creation time."""
    global _last_id
    with _id_lock:
        candidate = time.time_ns() // 1000
        # Clock resolution can repeat values; bump to stay strictly increasing
        if candidate <= _last_id:
            candidate = _last_id + 1
        _last_id = candidate
        return str(candidate)


def conversation_title(created_at: Optional[datetime] = None) -> str:
    """Display title for a conversation created at the given time."""
    created_at = created_at or datetime.now()
    return f"Conversation {created_at.strftime('%Y-%m-%d %H:%M:%S')}"


class Message(BaseModel):
    """Message model."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    sender: Literal["user", "bot"]
    text: str


class Conversation(BaseModel):
    """Conversation model."""

    id: str = Field(default_factory=new_id)
    title: str = Field(default_factory=conversation_title)
    messages: List[Message] = []


def greeting_message() -> Message:
    """The single bot message every new session starts with."""
    return Message(id="greeting", sender="bot", text=GREETING_TEXT)
