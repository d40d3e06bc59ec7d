"""Message entity."""
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from api.shared.entities.base import BaseEntity, utc_now

if TYPE_CHECKING:
    from api.features.conversation.entities.conversation import Conversation


class MessageRole(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class Message(BaseEntity):
    """One immutable turn of a conversation."""

    __tablename__ = "messages"

    conversation_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Stored as plain varchar so new roles need no enum migration
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tool_invocations: Mapped[Optional[List[dict[str, Any]]]] = mapped_column(
        JSON, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
        index=True,
    )

    conversation: Mapped["Conversation"] = relationship(
        back_populates="messages", lazy="raise"
    )

    @property
    def role_enum(self) -> MessageRole:
        return MessageRole(self.role)
