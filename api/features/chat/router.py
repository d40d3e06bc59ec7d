"""Router for the Chat feature."""
from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends

from api.features.chat.controller import ChatController
from api.features.chat.dtos import ChatRequest
from di.container import ApplicationContainer as DependencyContainer

router = APIRouter()


@router.post("")
@inject
async def chat(
    request: ChatRequest,
    controller: ChatController = Depends(
        Provide[DependencyContainer.controllers.chat_controller]
    ),
):
    """Stream the model's reply; the resolved conversation id is returned in a header."""
    return await controller.chat(request)
