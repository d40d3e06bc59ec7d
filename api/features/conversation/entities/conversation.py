"""Conversation entity."""
from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from api.shared.entities.base import BaseEntity, utc_now
from core.settings import SETTINGS

if TYPE_CHECKING:
    from api.features.conversation.entities.message import Message


class Conversation(BaseEntity):
    """A titled thread owning an ordered list of messages."""

    __tablename__ = "conversations"

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default=lambda: SETTINGS.CHAT.DEFAULT_CONVERSATION_TITLE,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
        default=lambda: SETTINGS.CHAT.DEFAULT_USER_ID,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
        index=True,
    )

    messages: Mapped[List["Message"]] = relationship(
        back_populates="conversation",
        order_by="Message.created_at",
        passive_deletes=True,
        lazy="raise",
    )
