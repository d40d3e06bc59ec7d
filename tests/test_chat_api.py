"""Tests for POST /api/chat: streaming, persistence and the tool loop."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import pytest
from dependency_injector import providers
from langchain_core.messages import AIMessageChunk

from api.features.chat.dtos import UIMessage
from api.features.chat.service import ChatService, ChatTurn, _running
from api.features.chat.tools import default_tools
from api.features.conversation.service import ConversationService
from streamlit_ui.client import parse_sse_lines
from tests.conftest import (
    BrokenDatabase,
    FakeChatModel,
    FakeModelResource,
    text_step,
    tool_step,
)


def user(text: str) -> Dict[str, Any]:
    return {"role": "user", "parts": [{"type": "text", "text": text}]}


def assistant(text: str) -> Dict[str, Any]:
    return {"role": "assistant", "parts": [{"type": "text", "text": text}]}


def events_of(resp) -> List[Dict[str, Any]]:
    return list(parse_sse_lines(resp.text.splitlines()))


def parse_ts(value: str) -> datetime:
    # SQLite drops the offset; compare as naive UTC
    return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)


def types_of(events: List[Dict[str, Any]]) -> List[str]:
    return [e["type"] for e in events]


async def chat(client, messages, conversation_id=None):
    body: Dict[str, Any] = {"messages": messages}
    if conversation_id is not None:
        body["conversationId"] = conversation_id
    return await client.post("/api/chat", json=body)


async def wait_for_running_turns(timeout: float = 5.0) -> None:
    if _running:
        await asyncio.wait_for(asyncio.gather(*list(_running)), timeout=timeout)


async def drive_chat_asgi(app, messages, disconnect_after: bytes) -> Tuple[Optional[int], bytes]:
    """POST /api/chat straight through ASGI 2.3, where Starlette watches for
    ``http.disconnect`` while streaming. The client leaves as soon as a body
    chunk contains ``disconnect_after``.
    """
    body = json.dumps({"messages": messages}).encode()
    scope = {
        "type": "http",
        "asgi": {"version": "3.0", "spec_version": "2.3"},
        "http_version": "1.1",
        "method": "POST",
        "scheme": "http",
        "path": "/api/chat",
        "raw_path": b"/api/chat",
        "query_string": b"",
        "root_path": "",
        "headers": [(b"content-type", b"application/json"), (b"host", b"test")],
        "client": ("test", 1),
        "server": ("test", 80),
    }
    left = asyncio.Event()
    request_sent = False
    received = bytearray()
    conversation_id: Optional[int] = None

    async def receive():
        nonlocal request_sent
        if not request_sent:
            request_sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        await left.wait()
        return {"type": "http.disconnect"}

    async def send(message):
        nonlocal conversation_id
        if message["type"] == "http.response.start":
            headers = dict(message["headers"])
            if b"x-conversation-id" in headers:
                conversation_id = int(headers[b"x-conversation-id"])
        elif message["type"] == "http.response.body":
            received.extend(message.get("body", b""))
            if disconnect_after in received:
                left.set()

    await asyncio.wait_for(app(scope, receive, send), timeout=5)
    return conversation_id, bytes(received)


# ---------------------------------------------------------------------------
# Request validation
# ---------------------------------------------------------------------------


class TestChatRequestValidation:
    async def test_empty_messages_rejected(self, client):
        resp = await client.post("/api/chat", json={"messages": []})
        assert resp.status_code == 400
        assert resp.json()["error"] == "At least one message is required"

    async def test_malformed_conversation_id(self, client):
        resp = await chat(client, [user("hi")], conversation_id="abc")
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid conversation ID"

    async def test_unknown_conversation_id(self, client):
        resp = await chat(client, [user("hi")], conversation_id=9999)
        assert resp.status_code == 404
        assert resp.json()["error"] == "Conversation not found"


# ---------------------------------------------------------------------------
# Streaming and persistence
# ---------------------------------------------------------------------------


class TestChatStreaming:
    async def test_new_conversation_is_created_and_returned_in_header(self, client):
        resp = await chat(client, [user("What is the capital of France?")])
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        assert resp.headers["x-vercel-ai-ui-message-stream"] == "v1"

        conversation_id = int(resp.headers["x-conversation-id"])
        detail = (await client.get(f"/api/conversations/{conversation_id}")).json()
        assert detail["conversation"]["title"] == "What is the capital of France?"

    async def test_text_shorthand_creates_exactly_one_conversation(self, client):
        resp = await client.post("/api/chat", json={"messages": [{"role": "user", "text": "Hello"}]})
        assert resp.status_code == 200

        listed = (await client.get("/api/conversations")).json()
        assert len(listed) == 1
        assert listed[0]["title"] == "Hello"
        assert str(listed[0]["id"]) == resp.headers["x-conversation-id"]

        messages = (await client.get(f"/api/conversations/{listed[0]['id']}/messages")).json()[
            "messages"
        ]
        assert [m["role"] for m in messages] == ["user", "assistant"]

    async def test_event_sequence_for_plain_text(self, client):
        resp = await chat(client, [user("hi")])
        events = events_of(resp)
        assert types_of(events) == [
            "start",
            "start-step",
            "text-start",
            "text-delta",
            "text-delta",
            "text-end",
            "finish-step",
            "finish",
        ]
        assert "".join(e["delta"] for e in events if e["type"] == "text-delta") == "Hello there"
        assert resp.text.rstrip().endswith("data: [DONE]")

    async def test_user_and_assistant_messages_persisted(self, client):
        resp = await chat(client, [user("hi")])
        conversation_id = resp.headers["x-conversation-id"]

        messages = (await client.get(f"/api/conversations/{conversation_id}/messages")).json()[
            "messages"
        ]
        assert [(m["role"], m["content"]) for m in messages] == [
            ("user", "hi"),
            ("assistant", "Hello there"),
        ]
        assert messages[1]["toolInvocations"] is None

    async def test_existing_conversation_only_stores_newest_user_message(self, client):
        first = await chat(client, [user("first")])
        conversation_id = int(first.headers["x-conversation-id"])

        resp = await chat(
            client,
            [user("first"), assistant("Hello there"), user("second")],
            conversation_id=conversation_id,
        )
        assert int(resp.headers["x-conversation-id"]) == conversation_id

        messages = (await client.get(f"/api/conversations/{conversation_id}/messages")).json()[
            "messages"
        ]
        assert [m["content"] for m in messages] == [
            "first",
            "Hello there",
            "second",
            "Hello there",
        ]

    async def test_string_conversation_id_accepted(self, client):
        created = (await client.post("/api/conversations", json={"title": "Kept"})).json()
        resp = await chat(client, [user("hi")], conversation_id=str(created["id"]))
        assert resp.status_code == 200
        assert resp.headers["x-conversation-id"] == str(created["id"])

    async def test_updated_at_advances_after_chat(self, client):
        created = (await client.post("/api/conversations", json={})).json()
        conversation_id = created["id"]
        before = (
            await client.get(f"/api/conversations/{conversation_id}")
        ).json()["conversation"]["updatedAt"]

        await chat(client, [user("hi")], conversation_id=conversation_id)

        detail = (await client.get(f"/api/conversations/{conversation_id}")).json()
        after = detail["conversation"]["updatedAt"]
        assert parse_ts(after) > parse_ts(before)
        assert detail["conversation"]["title"] == "New Conversation"


# ---------------------------------------------------------------------------
# Tool loop
# ---------------------------------------------------------------------------


class TestToolLoop:
    async def test_weather_tool_round_trip(self, client, chat_model):
        chat_model.script(
            tool_step("weather", '{"location": "New York"}'),
            text_step("It is warm."),
        )
        resp = await chat(client, [user("What's the weather in New York?")])
        events = events_of(resp)

        assert types_of(events).count("start-step") == 2
        tool_input = next(e for e in events if e["type"] == "tool-input-available")
        assert tool_input["toolName"] == "weather"
        assert tool_input["input"] == {"location": "New York"}

        tool_output = next(e for e in events if e["type"] == "tool-output-available")
        assert tool_output["toolCallId"] == tool_input["toolCallId"]
        assert tool_output["output"]["location"] == "New York"
        assert 32 <= tool_output["output"]["temperature"] <= 90

        # Second model call sees the tool result
        assert len(chat_model.calls) == 2
        assert chat_model.calls[1][-1].type == "tool"

        conversation_id = resp.headers["x-conversation-id"]
        messages = (await client.get(f"/api/conversations/{conversation_id}/messages")).json()[
            "messages"
        ]
        reply = messages[-1]
        assert reply["role"] == "assistant"
        assert reply["content"] == "It is warm."
        assert reply["toolInvocations"][0]["toolName"] == "weather"
        assert reply["toolInvocations"][0]["input"] == {"location": "New York"}

    async def test_step_limit_stops_the_loop(self, client, chat_model):
        chat_model.script(tool_step("weather", '{"location": "Paris"}'))
        resp = await chat(client, [user("loop forever")])
        events = events_of(resp)

        assert len(chat_model.calls) == 5
        assert types_of(events).count("tool-output-available") == 5
        assert types_of(events)[-1] == "finish"

        conversation_id = resp.headers["x-conversation-id"]
        messages = (await client.get(f"/api/conversations/{conversation_id}/messages")).json()[
            "messages"
        ]
        assert len(messages[-1]["toolInvocations"]) == 5

    async def test_unknown_tool_reports_error_output(self, client, chat_model):
        chat_model.script(tool_step("stock_price", "{}"), text_step("Sorry."))
        events = events_of(await chat(client, [user("price?")]))
        tool_output = next(e for e in events if e["type"] == "tool-output-available")
        assert "error" in tool_output["output"]

    async def test_text_from_separate_steps_is_kept_apart(self, client, chat_model):
        chat_model.script(
            [AIMessageChunk(content="Let me check."), *tool_step("weather", '{"location": "Oslo"}')],
            text_step("It is warm."),
        )
        resp = await chat(client, [user("Weather in Oslo?")])

        conversation_id = resp.headers["x-conversation-id"]
        messages = (await client.get(f"/api/conversations/{conversation_id}/messages")).json()[
            "messages"
        ]
        assert messages[-1]["content"] == "Let me check.\n\nIt is warm."
        assert messages[-1]["toolInvocations"][0]["input"] == {"location": "Oslo"}


# ---------------------------------------------------------------------------
# Failure handling
# ---------------------------------------------------------------------------


class TestChatFailures:
    async def test_model_error_emits_error_event_and_skips_persistence(
        self, client, chat_model
    ):
        chat_model.script(RuntimeError("upstream down"))
        resp = await chat(client, [user("hi")])
        assert resp.status_code == 200
        events = events_of(resp)
        assert types_of(events)[-1] == "error"
        assert "finish" not in types_of(events)

        conversation_id = resp.headers["x-conversation-id"]
        messages = (await client.get(f"/api/conversations/{conversation_id}/messages")).json()[
            "messages"
        ]
        assert [m["role"] for m in messages] == ["user"]

    async def test_stream_continues_when_storage_unavailable(self, app, client):
        with app.container.infrastructure.database.override(providers.Object(BrokenDatabase())):
            resp = await chat(client, [user("hi")])

        assert resp.status_code == 200
        assert "x-conversation-id" not in resp.headers
        events = events_of(resp)
        assert "Hello there" in "".join(
            e["delta"] for e in events if e["type"] == "text-delta"
        )
        assert types_of(events)[-1] == "finish"


class TestClientDisconnect:
    async def test_reply_stored_when_client_leaves_after_done(self, app, client):
        conversation_id, received = await drive_chat_asgi(
            app, [user("hi")], disconnect_after=b"[DONE]"
        )
        assert b"data: [DONE]" in received

        await wait_for_running_turns()
        messages = (await client.get(f"/api/conversations/{conversation_id}/messages")).json()[
            "messages"
        ]
        assert [(m["role"], m["content"]) for m in messages] == [
            ("user", "hi"),
            ("assistant", "Hello there"),
        ]

    async def test_model_keeps_running_when_client_leaves_mid_stream(
        self, app, client, chat_model
    ):
        chat_model.gate = asyncio.Event()
        conversation_id, received = await drive_chat_asgi(
            app, [user("hi")], disconnect_after=b"text-delta"
        )
        assert b"[DONE]" not in received

        chat_model.gate.set()
        await wait_for_running_turns()
        messages = (await client.get(f"/api/conversations/{conversation_id}/messages")).json()[
            "messages"
        ]
        assert [(m["role"], m["content"]) for m in messages] == [
            ("user", "hi"),
            ("assistant", "Hello there"),
        ]


# ---------------------------------------------------------------------------
# Service-level behaviour
# ---------------------------------------------------------------------------


class TestChatServiceHistory:
    async def test_history_reload_replaces_client_turns(self, database, session):
        conversations = ConversationService(session)
        conv = await conversations.create_conversation(title="History")
        await conversations.append_message(conv.id, "user", "stored question")
        await conversations.append_message(conv.id, "assistant", "stored answer")

        model = FakeChatModel()
        service = ChatService(
            database, FakeModelResource(model), default_tools(), load_history=True
        )
        messages = [
            UIMessage(role="system", parts=[{"type": "text", "text": "Be brief."}]),
            UIMessage(role="user", parts=[{"type": "text", "text": "client-only turn"}]),
            UIMessage(role="user", parts=[{"type": "text", "text": "newest"}]),
        ]
        turn = await service.prepare(messages, conversation_id=conv.id)

        assert [m.content for m in turn.model_messages] == [
            "Be brief.",
            "stored question",
            "stored answer",
            "newest",
        ]

    async def test_history_not_loaded_by_default(self, database, session):
        conv = await ConversationService(session).create_conversation()
        service = ChatService(database, FakeModelResource(FakeChatModel()), default_tools())
        turn = await service.prepare(
            [UIMessage(role="user", parts=[{"type": "text", "text": "only"}])],
            conversation_id=conv.id,
        )
        assert [m.content for m in turn.model_messages] == ["only"]
        assert turn.created_conversation is False

    async def test_finalize_runs_once(self, database, session):
        conv = await ConversationService(session).create_conversation()
        service = ChatService(database, FakeModelResource(FakeChatModel()), default_tools())
        turn = ChatTurn(conversation_id=conv.id, model_messages=[], text_parts=["done"])

        assert await service.finalize(turn) is True
        assert await service.finalize(turn) is False

        messages = await ConversationService(session).list_messages(conv.id)
        assert [m.content for m in messages] == ["done"]

    async def test_finalize_skips_empty_reply(self, database, session):
        conv = await ConversationService(session).create_conversation()
        service = ChatService(database, FakeModelResource(FakeChatModel()), default_tools())
        turn = ChatTurn(conversation_id=conv.id, model_messages=[])
        assert await service.finalize(turn) is False

    async def test_finalize_swallows_storage_errors(self):
        service = ChatService(
            BrokenDatabase(), FakeModelResource(FakeChatModel()), default_tools()
        )
        turn = ChatTurn(conversation_id=1, model_messages=[], text_parts=["x"])
        assert await service.finalize(turn) is False
        assert turn.finalized is True


@pytest.mark.parametrize("raw", [True, -1, 0, "1.5", "", "12a"])
async def test_prepare_rejects_bad_identifiers(database, raw):
    from api.shared.exceptions import InvalidIdentifierError

    service = ChatService(database, FakeModelResource(FakeChatModel()), default_tools())
    with pytest.raises(InvalidIdentifierError):
        await service.prepare(
            [UIMessage(role="user", parts=[{"type": "text", "text": "hi"}])],
            conversation_id=raw,
        )
