"""Chat session controller: live message list, prompts and persistence."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Set

import structlog

from ..domain.models import (
    ERROR_TEXT,
    NO_REPLY_TEXT,
    PIRATE_PERSONA,
    Conversation,
    Message,
    conversation_title,
    greeting_message,
    new_id,
)
from .store import ConversationStore

logger = structlog.get_logger()

PIRATE_SUFFIX = " Respond like a drunken pirate, ye scurvy dog!"

IDLE = "idle"
AWAITING_REPLY = "awaiting_reply"


class CompletionClient(Protocol):
    async def complete(self, prompt: str) -> Optional[str]:
        ...


def build_prompt(text: str, style_preference: Optional[str] = None) -> str:
    """Annotate the user's text with the response style instruction."""
    if not style_preference:
        return text
    if style_preference == PIRATE_PERSONA:
        return text + PIRATE_SUFFIX
    return f"{text} Respond to this in {style_preference}"


@dataclass
class SessionState:
    """Everything the live chat view renders."""

    messages: List[Message] = field(default_factory=lambda: [greeting_message()])
    active_id: Optional[str] = None
    title: Optional[str] = None
    draft: str = ""
    style_preference: Optional[str] = None
    in_flight: int = 0
    # Bumped whenever the live view is swapped for another conversation
    generation: int = 0

    @property
    def status(self) -> str:
        return AWAITING_REPLY if self.in_flight else IDLE


class ChatSessionController:
    """Owns the live session and keeps the store in step with it."""

    def __init__(
        self,
        store: ConversationStore,
        completion_client: CompletionClient,
        allow_concurrent_submits: bool = False
    ) -> None:
        self.store = store
        self.completion_client = completion_client
        self.allow_concurrent_submits = allow_concurrent_submits
        self.state = SessionState()
        # Submits awaiting a reply, counted per originating conversation
        self._pending: Dict[str, int] = {}
        self._deleted_ids: Set[str] = set()

    async def restore(self) -> List[Conversation]:
        """Load saved conversations and the style preference at startup."""
        conversations = await self.store.load()
        self.state.style_preference = await self.store.get_style_preference()
        logger.info(
            "session_restored",
            conversation_count=len(conversations),
            style_preference=self.state.style_preference
        )
        return conversations

    def set_draft(self, text: str) -> None:
        self.state.draft = text

    async def submit(self, text: Optional[str] = None) -> Optional[Message]:
        """
        Send one user message and append the bot's reply.

        Returns the bot message, or None when nothing was sent (blank input,
        or a reply is still pending and concurrent sends are disabled).
        Completion failures become a fallback bot message; they are logged
        and never raised.
        """
        state = self.state
        if text is None:
            text = state.draft
        if not text.strip():
            return None
        if state.in_flight and not self.allow_concurrent_submits:
            logger.warning("submit_rejected_awaiting_reply", conversation_id=state.active_id)
            return None

        prompt = build_prompt(text, state.style_preference)
        if state.active_id is None:
            state.active_id = new_id()
            state.title = conversation_title()

        origin_id = state.active_id
        origin_title = state.title
        origin_generation = state.generation

        user_message = Message(sender="user", text=text)
        state.messages.append(user_message)
        state.draft = ""
        snapshot = list(state.messages)

        state.in_flight += 1
        self._pending[origin_id] = self._pending.get(origin_id, 0) + 1
        try:
            try:
                reply = await self.completion_client.complete(prompt)
                reply_text = reply or NO_REPLY_TEXT
            except Exception as e:
                logger.error("completion_error", conversation_id=origin_id, error=str(e))
                reply_text = ERROR_TEXT
            finally:
                state.in_flight -= 1

            bot_message = Message(sender="bot", text=reply_text)

            if state.generation == origin_generation and state.active_id == origin_id:
                state.messages.append(bot_message)
                await self.store.upsert(
                    Conversation(id=origin_id, title=origin_title, messages=list(state.messages))
                )
            else:
                await self._archive_stale_reply(
                    origin_id, origin_title, snapshot, user_message, bot_message
                )
        finally:
            self._release_pending(origin_id)

        logger.info(
            "message_processed",
            conversation_id=origin_id,
            user_message_length=len(text),
            reply_length=len(reply_text)
        )
        return bot_message

    async def _archive_stale_reply(
        self,
        conversation_id: str,
        title: str,
        snapshot: List[Message],
        user_message: Message,
        bot_message: Message
    ) -> None:
        """Route a reply whose conversation left the live view back to the store."""
        if conversation_id in self._deleted_ids:
            logger.info("stale_reply_dropped", conversation_id=conversation_id)
            return
        stored = await self.store.get(conversation_id)
        if stored is not None:
            messages = list(stored.messages)
            title = stored.title
        else:
            messages = list(snapshot)
        if all(m.id != user_message.id for m in messages):
            messages.append(user_message)
        messages.append(bot_message)

        # Reopened while the reply was pending: keep messages sent since then
        reopened = self.state.active_id == conversation_id
        if reopened:
            routed_ids = {m.id for m in messages}
            messages.extend(m for m in self.state.messages if m.id not in routed_ids)

        await self.store.upsert(Conversation(id=conversation_id, title=title, messages=messages))
        logger.info("stale_reply_archived", conversation_id=conversation_id)

        if reopened:
            self.state.messages = list(messages)

    def _release_pending(self, conversation_id: str) -> None:
        remaining = self._pending.get(conversation_id, 0) - 1
        if remaining > 0:
            self._pending[conversation_id] = remaining
            return
        self._pending.pop(conversation_id, None)
        self._deleted_ids.discard(conversation_id)

    def start_new(self) -> None:
        """Reset the live view to a fresh, not-yet-saved conversation."""
        state = self.state
        state.active_id = None
        state.title = None
        state.messages = [greeting_message()]
        state.generation += 1
        logger.info("conversation_started")

    async def load_existing(self, conversation_id: str) -> bool:
        """Make a stored conversation the live one; unknown ids change nothing."""
        conversation = await self.store.get(conversation_id)
        if conversation is None:
            logger.warning("conversation_not_found", conversation_id=conversation_id)
            return False
        state = self.state
        state.active_id = conversation.id
        state.title = conversation.title
        state.messages = list(conversation.messages)
        state.generation += 1
        logger.info("conversation_loaded", conversation_id=conversation_id)
        return True

    async def delete_conversation(self, conversation_id: str) -> bool:
        deleted = await self.store.delete(conversation_id)
        # Only pending replies can resurrect a deleted conversation
        if deleted and conversation_id in self._pending:
            self._deleted_ids.add(conversation_id)
        if deleted and conversation_id == self.state.active_id:
            self.start_new()
        return deleted

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return await self.store.get(conversation_id)

    async def list_conversations(self) -> List[Conversation]:
        return await self.store.list()

    async def set_style_preference(self, value: Optional[str]) -> None:
        """Persist a style preference; a blank value clears it."""
        value = (value or "").strip()
        if not value:
            await self.clear_style_preference()
            return
        await self.store.set_style_preference(value)
        self.state.style_preference = value

    async def clear_style_preference(self) -> None:
        await self.store.clear_style_preference()
        self.state.style_preference = None
