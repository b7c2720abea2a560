"""
Conversation service: message relay plus conversation CRUD.

Each operation re-loads the user document, edits its embedded
conversations and saves the whole document back (version-checked).

Relay contract:
- The active conversation is the one named by ``active_conversation_id``;
  if there is none, a new conversation is started and persisted.
- The full stored history plus the new user message is sent to the
  completion API (no truncation).
- The user message and the assistant reply are appended together, so a
  failed API call persists nothing.
"""

import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from openai import AsyncOpenAI

from app.core.config import settings
from app.core.errors import AuthenticationFailure, UpstreamFailure
from app.models.user import User
from app.services.database import UserStore, user_store

logger = logging.getLogger("chat_relay.conversation")


def new_conversation() -> dict[str, Any]:
    return {
        "id": str(uuid.uuid4()),
        "chats": [],
        "created_at": datetime.now(UTC).isoformat(),
    }


class ConversationService:
    """
    Relays chat messages to the completion API and manages a user's conversations.

    The OpenAI client is only needed for ``relay_message``; CRUD operations
    work without one.
    """

    def __init__(self, client: AsyncOpenAI | None = None, store: UserStore | None = None):
        self.client = client
        self.store = store or user_store

    async def _load_user(self, user_id: str) -> User:
        user = await self.store.find_by_id(user_id)
        if not user:
            raise AuthenticationFailure("User not registered / token malfunctioned")
        return user

    @staticmethod
    def _active_index(user: User, conversations: list[dict[str, Any]]) -> int | None:
        """Position of the active conversation, or None if the reference is unset or dangling."""
        if not user.active_conversation_id:
            return None
        for index, conversation in enumerate(conversations):
            if conversation.get("id") == user.active_conversation_id:
                return index
        return None

    async def _complete(self, messages: list[dict[str, str]]) -> dict[str, str]:
        """Send the full context to the completion API and return the assistant chat."""
        if self.client is None:
            raise UpstreamFailure("OpenAI API key not configured")

        try:
            response = await self.client.chat.completions.create(
                model=settings.OPENAI_MODEL,
                messages=messages,
            )
        except Exception as e:
            logger.error("OpenAI API Error: %s", e)
            raise UpstreamFailure("Chat completion failed", detail=str(e)) from e

        reply = response.choices[0].message if response.choices else None
        return {"role": "assistant", "content": (reply.content if reply else None) or ""}

    async def relay_message(self, user_id: str, message: str) -> list[dict[str, Any]]:
        """
        Append a user message to the active conversation and relay it.

        Args:
            user_id: Verified session user.
            message: New user message.

        Returns:
            The active conversation's full chat list after the exchange.

        Raises:
            AuthenticationFailure: 401 if the user no longer exists.
            UpstreamFailure: 500 on API or database errors.
            Conflict: 409 if the document changed while the reply was generated.
        """
        user = await self._load_user(user_id)
        conversations = list(user.conversations or [])

        index = self._active_index(user, conversations)
        if index is None:
            conversation = new_conversation()
            conversations.append(conversation)
            index = len(conversations) - 1
            user.active_conversation_id = conversation["id"]
            logger.info("Started conversation %s for user %s on first message", conversation["id"], user_id)

        conversation = conversations[index]
        stored_chats = list(conversation.get("chats", []))

        context = [{"role": chat["role"], "content": chat["content"]} for chat in stored_chats]
        user_chat = {"role": "user", "content": message}
        context.append(user_chat)

        assistant_chat = await self._complete(context)

        chats = [*stored_chats, user_chat, assistant_chat]
        conversations[index] = {**conversation, "chats": chats}
        user.conversations = conversations

        await self.store.save(user)
        return chats

    async def list_conversations(self, user_id: str) -> list[dict[str, Any]]:
        """Return the user's conversations in stored order."""
        user = await self._load_user(user_id)
        return list(user.conversations or [])

    async def start_conversation(self, user_id: str) -> dict[str, Any]:
        """Append an empty conversation, make it active and persist it."""
        user = await self._load_user(user_id)

        conversation = new_conversation()
        user.conversations = [*(user.conversations or []), conversation]
        user.active_conversation_id = conversation["id"]

        await self.store.save(user)
        logger.info("Started conversation %s for user %s", conversation["id"], user_id)
        return conversation

    async def delete_conversation(self, user_id: str, conversation_id: str) -> list[dict[str, Any]]:
        """
        Remove one conversation by id.

        Unknown ids leave the document untouched. Deleting the active
        conversation clears the active reference, so the next relayed message
        starts a fresh conversation.

        Returns:
            The remaining conversations in stored order.
        """
        user = await self._load_user(user_id)
        conversations = list(user.conversations or [])

        remaining = [c for c in conversations if c.get("id") != conversation_id]
        if len(remaining) == len(conversations):
            return remaining

        user.conversations = remaining
        if user.active_conversation_id == conversation_id:
            user.active_conversation_id = None

        await self.store.save(user)
        logger.info("Deleted conversation %s for user %s", conversation_id, user_id)
        return remaining
