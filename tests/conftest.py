"""Shared fixtures: in-memory SQLite database, scripted chat model, API client."""

from __future__ import annotations

import asyncio
import os

os.environ.setdefault("ENVIRONMENT", "test")

from typing import Any, List, Optional, Sequence, Union

import httpx
import pytest
from dependency_injector import providers
from langchain_core.messages import AIMessageChunk, BaseMessage

from api.shared.entities.registry import BaseEntity
from infra.resources import DatabaseResource

TEST_DATABASE_URL = "sqlite+aiosqlite://"


# ---------------------------------------------------------------------------
# Scripted chat model
# ---------------------------------------------------------------------------

Step = Union[List[AIMessageChunk], Exception]


def text_step(*pieces: str) -> List[AIMessageChunk]:
    return [AIMessageChunk(content=piece) for piece in pieces]


def tool_step(name: str, args_json: str, call_id: str = "call_1") -> List[AIMessageChunk]:
    return [
        AIMessageChunk(
            content="",
            tool_call_chunks=[
                {"name": name, "args": args_json, "id": call_id, "index": 0}
            ],
        )
    ]


class FakeChatModel:
    """Plays back one scripted step per ``astream`` call; the last step repeats.

    With ``gate`` set, each step pauses after its first chunk until the gate opens.
    """

    def __init__(self, steps: Optional[Sequence[Step]] = None):
        self.steps: List[Step] = list(steps or [text_step("Hello", " there")])
        self.calls: List[List[BaseMessage]] = []
        self.bound_tools: List[Any] = []
        self.gate: Optional[asyncio.Event] = None

    def script(self, *steps: Step) -> "FakeChatModel":
        self.steps = list(steps)
        return self

    def bind_tools(self, tools):
        self.bound_tools = list(tools)
        return self

    async def astream(self, messages):
        self.calls.append(list(messages))
        index = min(len(self.calls) - 1, len(self.steps) - 1)
        step = self.steps[index]
        if isinstance(step, Exception):
            raise step
        for position, chunk in enumerate(step):
            yield chunk
            if position == 0 and self.gate is not None:
                await self.gate.wait()


class FakeModelResource:
    def __init__(self, model: FakeChatModel):
        self.model = model

    def get_model(self) -> FakeChatModel:
        return self.model


class BrokenDatabase:
    """Database resource whose sessions can never be opened."""

    def get_session(self):
        raise RuntimeError("database unavailable")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def database():
    resource = DatabaseResource(TEST_DATABASE_URL)
    await resource.init()
    await resource.create_all(BaseEntity.metadata)
    yield resource
    await resource.shutdown()


@pytest.fixture
async def session(database):
    db_session = database.get_session()
    try:
        yield db_session
    finally:
        await db_session.close()


@pytest.fixture
def chat_model():
    return FakeChatModel()


@pytest.fixture
def app(database, chat_model):
    from api.main import create_fastapi_app

    application = create_fastapi_app()
    infra = application.container.infrastructure
    infra.database.override(providers.Object(database))
    infra.chat_model.override(providers.Object(FakeModelResource(chat_model)))
    yield application
    infra.database.reset_override()
    infra.chat_model.reset_override()


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
