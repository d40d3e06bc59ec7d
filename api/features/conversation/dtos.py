"""DTOs for the Conversation feature."""
from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field

from api.shared.dtos import BaseDTO


class CreateConversationRequest(BaseDTO):
    """Request to create a conversation."""

    title: Optional[str] = Field(default=None, description="Conversation title")


class UpdateConversationRequest(BaseDTO):
    """Patch of the mutable conversation fields."""

    title: str = Field(description="New conversation title")


class ConversationDTO(BaseDTO):
    """Conversation DTO."""

    id: int = Field(description="Conversation identifier")
    title: str = Field(description="Conversation title")
    user_id: int = Field(description="Owning user identifier")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last update timestamp")


class MessageDTO(BaseDTO):
    """Conversation message DTO."""

    id: int = Field(description="Message identifier")
    conversation_id: int = Field(description="Owning conversation identifier")
    role: str = Field(description="Message role: user, assistant, system or tool")
    content: str = Field(description="Message content")
    tool_invocations: Optional[List[dict[str, Any]]] = Field(
        default=None, description="Tool calls made while producing this message"
    )
    created_at: datetime = Field(description="Creation timestamp")


class ConversationDetailResponse(BaseDTO):
    """A conversation with its messages in chronological order."""

    conversation: ConversationDTO
    messages: List[MessageDTO]


class ConversationEnvelope(BaseDTO):
    conversation: ConversationDTO


class MessagesResponse(BaseDTO):
    """Messages list response."""

    messages: List[MessageDTO] = Field(description="Messages in chronological order")


class MessageEnvelope(BaseDTO):
    message: MessageDTO
