"""Controller for the Conversation feature."""
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversation.dtos import (
    ConversationDetailResponse,
    ConversationDTO,
    ConversationEnvelope,
    MessageDTO,
    MessageEnvelope,
    MessagesResponse,
)
from api.features.conversation.service import ConversationService
from api.shared.dtos import SuccessResponse
from api.shared.exceptions import ChatAppException
from api.shared.utils import parse_identifier

logger = structlog.get_logger("chat.conversation.controller")


class ConversationController:
    """Controller handling conversation CRUD and message reads."""

    def __init__(self) -> None:
        # Services are bound to the request-scoped session per call
        pass

    @staticmethod
    def _service(db_session: AsyncSession) -> ConversationService:
        return ConversationService(db_session)

    @staticmethod
    def _raise_http(exc: Exception, action: str) -> None:
        if isinstance(exc, ChatAppException):
            raise HTTPException(status_code=exc.status_code, detail=exc.message)
        if isinstance(exc, SQLAlchemyError):
            logger.error(f"Failed to {action}", error=str(exc))
        else:
            logger.exception(f"Unexpected error while trying to {action}")
        raise HTTPException(status_code=500, detail=f"Failed to {action}")

    async def list_conversations(
        self, *, user_id: Optional[int], limit: int, db_session: AsyncSession
    ) -> list[ConversationDTO]:
        try:
            items = await self._service(db_session).list_conversations(
                user_id=user_id, limit=limit
            )
        except Exception as e:
            self._raise_http(e, "fetch conversations")
        return [ConversationDTO.model_validate(c) for c in items]

    async def create_conversation(
        self, *, title: Optional[str], db_session: AsyncSession
    ) -> ConversationDTO:
        try:
            conv = await self._service(db_session).create_conversation(title=title)
        except Exception as e:
            self._raise_http(e, "create conversation")
        return ConversationDTO.model_validate(conv)

    async def get_conversation(
        self, *, raw_id: str, db_session: AsyncSession
    ) -> ConversationDetailResponse:
        try:
            conversation_id = parse_identifier(raw_id)
            conv, messages = await self._service(
                db_session
            ).get_conversation_with_messages(conversation_id)
        except Exception as e:
            self._raise_http(e, "fetch conversation")
        return ConversationDetailResponse(
            conversation=ConversationDTO.model_validate(conv),
            messages=[MessageDTO.model_validate(m) for m in messages],
        )

    async def rename_conversation(
        self, *, raw_id: str, title: str, db_session: AsyncSession
    ) -> ConversationEnvelope:
        try:
            conversation_id = parse_identifier(raw_id)
            conv = await self._service(db_session).rename_conversation(
                conversation_id, title
            )
        except Exception as e:
            self._raise_http(e, "update conversation")
        return ConversationEnvelope(conversation=ConversationDTO.model_validate(conv))

    async def delete_conversation(
        self, *, raw_id: str, db_session: AsyncSession
    ) -> SuccessResponse:
        try:
            conversation_id = parse_identifier(raw_id)
            await self._service(db_session).delete_conversation(conversation_id)
        except Exception as e:
            self._raise_http(e, "delete conversation")
        return SuccessResponse(success=True)

    async def get_messages(
        self, *, raw_id: str, db_session: AsyncSession
    ) -> MessagesResponse:
        try:
            conversation_id = parse_identifier(raw_id)
            messages = await self._service(db_session).list_messages(conversation_id)
        except Exception as e:
            self._raise_http(e, "fetch messages")
        return MessagesResponse(messages=[MessageDTO.model_validate(m) for m in messages])

    async def get_message(self, *, raw_id: str, db_session: AsyncSession) -> MessageEnvelope:
        try:
            message_id = parse_identifier(raw_id, resource="message")
            message = await self._service(db_session).get_message(message_id)
        except Exception as e:
            self._raise_http(e, "fetch message")
        return MessageEnvelope(message=MessageDTO.model_validate(message))
