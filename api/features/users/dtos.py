"""DTOs for the Users feature."""
from typing import List

from pydantic import Field

from api.shared.dtos import BaseDTO


class UserDTO(BaseDTO):
    id: int = Field(description="User identifier")
    name: str = Field(description="Display name")
    age: int = Field(description="Age in years")
    email: str = Field(description="Unique email address")


class UsersResponse(BaseDTO):
    users: List[UserDTO]
