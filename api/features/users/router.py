"""Router for the Users feature."""
from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends

from api.features.users.controller import UserController
from api.features.users.dtos import UsersResponse
from di.container import ApplicationContainer as DependencyContainer

router = APIRouter()


@router.get("", response_model=UsersResponse)
@inject
async def list_users(
    controller: UserController = Depends(
        Provide[DependencyContainer.controllers.user_controller]
    ),
):
    """All users. Diagnostic endpoint."""
    return await controller.list_users()
