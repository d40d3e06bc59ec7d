"""Exceptions for the Conversation feature."""
from typing import Any, Dict, Optional

from api.shared.exceptions import NotFoundError, ValidationError


class ConversationNotFoundError(NotFoundError):
    """Raised when a conversation is not found."""

    def __init__(self, conversation_id: int):
        super().__init__("Conversation", conversation_id, "CONVERSATION_NOT_FOUND")


class MessageNotFoundError(NotFoundError):
    """Raised when a message is not found."""

    def __init__(self, message_id: int):
        super().__init__("Message", message_id, "MESSAGE_NOT_FOUND")


class ConversationValidationError(ValidationError):
    """Raised when conversation input is rejected."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.error_code = "CONVERSATION_VALIDATION_ERROR"
