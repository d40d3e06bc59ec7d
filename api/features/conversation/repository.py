"""Repositories for conversation and message persistence."""
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import select, update

from api.features.conversation.entities.conversation import Conversation
from api.features.conversation.entities.message import Message
from api.shared.base import BaseRepository
from api.shared.entities.base import utc_now


class ConversationRepository(BaseRepository[Conversation]):
    model = Conversation

    async def create(self, *, title: str, user_id: int) -> Conversation:
        now = utc_now()
        return await self.add(
            Conversation(title=title, user_id=user_id, created_at=now, updated_at=now)
        )

    async def list_recent(
        self, *, user_id: Optional[int] = None, limit: int = 100
    ) -> List[Conversation]:
        """Most recently updated first."""
        return await self.list(
            limit=limit, order_by=["-updated_at", "-id"], user_id=user_id
        )

    async def update_title(self, conversation_id: int, title: str) -> Optional[Conversation]:
        return await self.update_by_id(
            conversation_id, title=title, updated_at=utc_now()
        )

    async def touch(self, conversation_id: int, at: Optional[datetime] = None) -> bool:
        """Refresh ``updated_at``; False if the conversation does not exist."""
        stmt = (
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(updated_at=at or utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount > 0


class MessageRepository(BaseRepository[Message]):
    model = Message

    async def create(
        self,
        *,
        conversation_id: int,
        role: str,
        content: str,
        tool_invocations: Optional[List[dict[str, Any]]] = None,
    ) -> Message:
        return await self.add(
            Message(
                conversation_id=conversation_id,
                role=role,
                content=content,
                tool_invocations=tool_invocations,
                created_at=utc_now(),
            )
        )

    async def list_for_conversation(self, conversation_id: int) -> List[Message]:
        """Chronological order; ``id`` breaks timestamp ties."""
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
