"""Conversation service: conversation CRUD and message appends.

Owns the transaction for each operation; repositories only flush.
"""
from __future__ import annotations

from typing import Any, List, Optional, Tuple

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversation.entities.conversation import Conversation
from api.features.conversation.entities.message import Message, MessageRole
from api.features.conversation.exceptions import (
    ConversationNotFoundError,
    ConversationValidationError,
    MessageNotFoundError,
)
from api.features.conversation.repository import (
    ConversationRepository,
    MessageRepository,
)
from api.shared.entities.base import utc_now
from api.shared.utils import truncate_text
from core.settings import SETTINGS

logger = structlog.get_logger("chat.conversation")


def generate_conversation_title(first_message: str) -> str:
    """Title from the first user message: trimmed, cut at the configured length."""
    title = (first_message or "").strip()
    if not title:
        return SETTINGS.CHAT.DEFAULT_CONVERSATION_TITLE
    return truncate_text(title, SETTINGS.CHAT.TITLE_MAX_LENGTH)


class ConversationService:
    """Conversation and message operations bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.conversations = ConversationRepository(session)
        self.messages = MessageRepository(session)

    async def create_conversation(
        self, title: Optional[str] = None, user_id: Optional[int] = None
    ) -> Conversation:
        clean_title = (title or "").strip() or SETTINGS.CHAT.DEFAULT_CONVERSATION_TITLE
        try:
            conversation = await self.conversations.create(
                title=clean_title,
                user_id=user_id if user_id is not None else SETTINGS.CHAT.DEFAULT_USER_ID,
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        logger.info("conversation.created", conversation_id=conversation.id)
        return conversation

    async def list_conversations(
        self, user_id: Optional[int] = None, limit: int = 100
    ) -> List[Conversation]:
        return await self.conversations.list_recent(user_id=user_id, limit=limit)

    async def get_conversation(self, conversation_id: int) -> Conversation:
        conversation = await self.conversations.get_by_id(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    async def get_conversation_with_messages(
        self, conversation_id: int
    ) -> Tuple[Conversation, List[Message]]:
        conversation = await self.get_conversation(conversation_id)
        messages = await self.messages.list_for_conversation(conversation_id)
        return conversation, messages

    async def rename_conversation(self, conversation_id: int, title: str) -> Conversation:
        clean_title = (title or "").strip()
        if not clean_title:
            raise ConversationValidationError("Title must not be empty")
        if len(clean_title) > 255:
            raise ConversationValidationError(
                "Title is too long", {"max_length": 255}
            )
        try:
            conversation = await self.conversations.update_title(
                conversation_id, clean_title
            )
            if conversation is None:
                raise ConversationNotFoundError(conversation_id)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return conversation

    async def delete_conversation(self, conversation_id: int) -> None:
        """Delete a conversation; its messages go with it via ON DELETE CASCADE."""
        try:
            deleted = await self.conversations.delete(conversation_id)
            if not deleted:
                raise ConversationNotFoundError(conversation_id)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        logger.info("conversation.deleted", conversation_id=conversation_id)

    async def append_message(
        self,
        conversation_id: int,
        role: MessageRole | str,
        content: str,
        tool_invocations: Optional[List[dict[str, Any]]] = None,
    ) -> Message:
        """Insert a message and refresh the conversation's ``updated_at`` in one transaction."""
        role_value = MessageRole(role).value
        try:
            message = await self.messages.create(
                conversation_id=conversation_id,
                role=role_value,
                content=content,
                tool_invocations=tool_invocations,
            )
            if not await self.conversations.touch(conversation_id, at=utc_now()):
                raise ConversationNotFoundError(conversation_id)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        logger.debug(
            "message.appended",
            conversation_id=conversation_id,
            message_id=message.id,
            role=role_value,
        )
        return message

    async def list_messages(self, conversation_id: int) -> List[Message]:
        await self.get_conversation(conversation_id)
        return await self.messages.list_for_conversation(conversation_id)

    async def get_message(self, message_id: int) -> Message:
        message = await self.messages.get_by_id(message_id)
        if message is None:
            raise MessageNotFoundError(message_id)
        return message
