"""User entity."""
from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from api.shared.entities.base import BaseEntity


class User(BaseEntity):
    """Owner of conversations.

    Conversations reference users by ``user_id`` without a foreign key, so
    single-user deployments work with the configured default user id and no
    ``users`` rows at all.
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    age: Mapped[int] = mapped_column(Integer, nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
