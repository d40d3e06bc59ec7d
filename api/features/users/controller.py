"""Controller for the Users feature."""
import structlog
from fastapi.responses import JSONResponse

from api.features.users.dtos import UserDTO, UsersResponse
from api.features.users.repository import UserRepository
from infra.resources import DatabaseResource

logger = structlog.get_logger("chat.users.controller")


class UserController:
    """Read-only access to users (diagnostics)."""

    def __init__(self, database: DatabaseResource):
        self.database = database

    async def list_users(self) -> UsersResponse | JSONResponse:
        # Failures opening the session map to the same 500
        try:
            async with self.database.get_session() as session:
                users = await UserRepository(session).list_all()
        except Exception as e:
            logger.error("Error fetching users", error=str(e))
            return JSONResponse(
                status_code=500,
                content={"error": "Failed to fetch users", "users": []},
            )
        return UsersResponse(users=[UserDTO.model_validate(u) for u in users])
