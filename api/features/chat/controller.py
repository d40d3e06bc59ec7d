"""Controller for the Chat feature."""
import structlog
from fastapi import HTTPException
from fastapi.responses import StreamingResponse

from api.features.chat.dtos import ChatRequest
from api.features.chat.exceptions import ChatRequestError
from api.features.chat.service import ChatService
from api.features.chat.stream import UI_MESSAGE_STREAM_HEADERS
from api.shared.exceptions import ChatAppException

logger = structlog.get_logger("chat.controller")


class ChatController:
    """Turns a chat request into a streamed response."""

    def __init__(self, chat_service: ChatService, conversation_id_header: str):
        self.chat_service = chat_service
        self.conversation_id_header = conversation_id_header

    async def chat(self, request: ChatRequest) -> StreamingResponse:
        try:
            if not request.messages:
                raise ChatRequestError("At least one message is required")
            turn = await self.chat_service.prepare(
                request.messages, conversation_id=request.conversation_id
            )
        except ChatAppException as e:
            logger.info("chat.request_rejected", error_code=e.error_code, error=e.message)
            raise HTTPException(status_code=e.status_code, detail=e.message)

        headers = dict(UI_MESSAGE_STREAM_HEADERS)
        if turn.conversation_id is not None:
            headers[self.conversation_id_header] = str(turn.conversation_id)

        return StreamingResponse(
            self.chat_service.stream(turn),
            media_type="text/event-stream",
            headers=headers,
        )
