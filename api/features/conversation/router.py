"""Routers for the Conversation feature."""
from typing import List, Optional

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversation.controller import ConversationController
from api.features.conversation.dtos import (
    ConversationDetailResponse,
    ConversationDTO,
    ConversationEnvelope,
    CreateConversationRequest,
    MessageEnvelope,
    MessagesResponse,
    UpdateConversationRequest,
)
from api.shared.db import get_db_session
from api.shared.dtos import SuccessResponse
from di.container import ApplicationContainer as DependencyContainer

router = APIRouter()
messages_router = APIRouter()


@router.get("", response_model=List[ConversationDTO])
@inject
async def list_conversations(
    user_id: Optional[int] = Query(None, alias="userId", description="Filter by owning user"),
    limit: int = Query(100, ge=1, le=500),
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """List conversations, most recently updated first."""
    return await controller.list_conversations(
        user_id=user_id, limit=limit, db_session=db_session
    )


@router.post("", response_model=ConversationDTO)
@inject
async def create_conversation(
    request: Optional[CreateConversationRequest] = None,
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    return await controller.create_conversation(
        title=request.title if request else None, db_session=db_session
    )


@router.get("/{conversation_id}", response_model=ConversationDetailResponse)
@inject
async def get_conversation(
    conversation_id: str,
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Conversation plus its messages in creation order."""
    return await controller.get_conversation(raw_id=conversation_id, db_session=db_session)


@router.put("/{conversation_id}", response_model=ConversationEnvelope)
@inject
async def update_conversation(
    conversation_id: str,
    request: UpdateConversationRequest,
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    return await controller.rename_conversation(
        raw_id=conversation_id, title=request.title, db_session=db_session
    )


@router.delete("/{conversation_id}", response_model=SuccessResponse)
@inject
async def delete_conversation(
    conversation_id: str,
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    return await controller.delete_conversation(raw_id=conversation_id, db_session=db_session)


@router.get("/{conversation_id}/messages", response_model=MessagesResponse)
@inject
async def get_messages(
    conversation_id: str,
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    return await controller.get_messages(raw_id=conversation_id, db_session=db_session)


@messages_router.get("/{message_id}", response_model=MessageEnvelope)
@inject
async def get_message(
    message_id: str,
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    return await controller.get_message(raw_id=message_id, db_session=db_session)
