"""Chat service: conversation-aware streamed chat.

A request is handled in three phases:

1. ``prepare`` resolves (or creates) the conversation, stores the newest user
   message and assembles the model context.
2. ``stream`` runs the model with tools for at most ``max_steps`` steps in a
   task of its own and yields UI message stream events as tokens arrive.
3. ``finalize`` stores the assistant reply once the model is done. It runs at
   most once per turn, inside that task, so a client that goes away (even
   right after ``[DONE]``) aborts neither the model call nor the write.

Persistence in every phase is best effort: failures are logged and the
stream carries on.
"""
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Set
from uuid import uuid4

import structlog
from langchain_core.messages import AIMessageChunk, BaseMessage, ToolMessage
from langchain_core.tools import BaseTool

from api.features.chat import stream as ui_stream
from api.features.chat.dtos import UIMessage
from api.features.chat.messages import (
    AssistantTurn,
    SystemTurn,
    ToolInvocation,
    Turn,
    UserTurn,
    from_row,
    from_ui,
    to_model,
    to_row_fields,
)
from api.features.conversation.exceptions import ConversationNotFoundError
from api.features.conversation.service import (
    ConversationService,
    generate_conversation_title,
)
from api.shared.utils import parse_identifier
from infra.resources import ChatModelResource, DatabaseResource

logger = structlog.get_logger("chat.service")

STEP_SEPARATOR = "\n\n"

# Strong references to turns still running after their client left
_running: Set["asyncio.Task[None]"] = set()


@dataclass
class ChatTurn:
    """State of one request/response exchange."""

    conversation_id: Optional[int]
    model_messages: List[BaseMessage]
    created_conversation: bool = False
    # One entry per model step that produced text
    text_parts: List[str] = field(default_factory=list)
    tool_invocations: List[ToolInvocation] = field(default_factory=list)
    completed: bool = False
    finalized: bool = False

    @property
    def text(self) -> str:
        return STEP_SEPARATOR.join(p for p in self.text_parts if p)


def _chunk_text(chunk: BaseMessage) -> str:
    content = chunk.content
    if isinstance(content, str):
        return content
    return "".join(
        block.get("text", "")
        for block in content
        if isinstance(block, dict) and block.get("type") == "text"
    )


class ChatService:
    """Runs chat turns against the model and records them in storage."""

    def __init__(
        self,
        database: DatabaseResource,
        chat_model: ChatModelResource,
        tools: Sequence[BaseTool],
        max_steps: int = 5,
        load_history: bool = False,
    ):
        self.database = database
        self.chat_model = chat_model
        self.tools = list(tools)
        self.tools_by_name = {t.name: t for t in self.tools}
        self.max_steps = max_steps
        self.load_history = load_history

    async def prepare(
        self, messages: List[UIMessage], conversation_id: Optional[Any] = None
    ) -> ChatTurn:
        """Resolve the conversation, store the user message, build model context.

        Raises InvalidIdentifierError for a malformed ``conversation_id`` and
        ConversationNotFoundError for an unknown one; storage failures are
        only logged.
        """
        resolved_id = (
            parse_identifier(conversation_id) if conversation_id is not None else None
        )
        existed = resolved_id is not None
        turns: List[Turn] = [from_ui(m) for m in messages]
        user_turns = [t for t in turns if isinstance(t, UserTurn)]
        newest_user = user_turns[-1] if user_turns else None
        stored: Optional[List[Turn]] = None
        created = False

        try:
            async with self.database.get_session() as session:
                service = ConversationService(session)

                if resolved_id is not None:
                    await service.get_conversation(resolved_id)
                elif newest_user is not None:
                    conversation = await service.create_conversation(
                        title=generate_conversation_title(user_turns[0].text)
                    )
                    resolved_id = conversation.id
                    created = True

                if existed and self.load_history and resolved_id is not None:
                    # Loaded before this turn's user message is stored
                    rows = await service.messages.list_for_conversation(resolved_id)
                    stored = [from_row(r) for r in rows]

                if resolved_id is not None and newest_user is not None:
                    fields = to_row_fields(newest_user)
                    await service.append_message(
                        resolved_id, fields["role"], fields["content"]
                    )
        except ConversationNotFoundError:
            raise
        except Exception as e:
            logger.error(
                "chat.persist_user_message_failed",
                conversation_id=resolved_id,
                error=str(e),
            )

        if stored is not None:
            context: List[Turn] = [t for t in turns if isinstance(t, SystemTurn)]
            context.extend(stored)
            if newest_user is not None:
                context.append(newest_user)
        else:
            context = turns

        model_messages: List[BaseMessage] = []
        for turn in context:
            model_messages.extend(to_model(turn))

        return ChatTurn(
            conversation_id=resolved_id,
            model_messages=model_messages,
            created_conversation=created,
        )

    async def _run_tool(self, call: Dict[str, Any]) -> Any:
        selected = self.tools_by_name.get(call.get("name", ""))
        if selected is None:
            return {"error": f"Unknown tool: {call.get('name')}"}
        try:
            return await selected.ainvoke(call.get("args") or {})
        except Exception as e:
            logger.warning("chat.tool_failed", tool=call.get("name"), error=str(e))
            return {"error": str(e)}

    async def stream(self, turn: ChatTurn) -> AsyncIterator[str]:
        """Yield UI message stream events for ``turn``.

        The model loop and the final write run in a task of their own. Closing
        this generator stops the reads only; the task still stores the reply.
        """
        queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue()

        async def produce() -> None:
            try:
                async for event in self._generate(turn):
                    queue.put_nowait(event)
            finally:
                queue.put_nowait(None)
            if turn.completed:
                await self.finalize(turn)

        task = asyncio.create_task(produce(), name=f"chat-turn-{turn.conversation_id}")
        _running.add(task)
        task.add_done_callback(_running.discard)

        while True:
            event = await queue.get()
            if event is None:
                break
            yield event
        await asyncio.shield(task)

    async def _generate(self, turn: ChatTurn) -> AsyncIterator[str]:
        model = self.chat_model.get_model().bind_tools(self.tools)
        history: List[BaseMessage] = list(turn.model_messages)

        yield ui_stream.start(f"msg-{uuid4().hex}")
        try:
            for step in range(self.max_steps):
                yield ui_stream.start_step()
                gathered: Optional[AIMessageChunk] = None
                text_id = f"text-{step}"
                text_open = False
                step_text: List[str] = []

                async for chunk in model.astream(history):
                    gathered = chunk if gathered is None else gathered + chunk
                    delta = _chunk_text(chunk)
                    if not delta:
                        continue
                    if not text_open:
                        text_open = True
                        yield ui_stream.text_start(text_id)
                    step_text.append(delta)
                    yield ui_stream.text_delta(text_id, delta)

                if text_open:
                    turn.text_parts.append("".join(step_text))
                    yield ui_stream.text_end(text_id)

                tool_calls = gathered.tool_calls if gathered is not None else []
                if not tool_calls:
                    yield ui_stream.finish_step()
                    break

                history.append(gathered)
                for call in tool_calls:
                    call_id = call.get("id") or f"call_{uuid4().hex}"
                    yield ui_stream.tool_input_available(
                        call_id, call["name"], call.get("args")
                    )
                    output = await self._run_tool(call)
                    turn.tool_invocations.append(
                        ToolInvocation(
                            tool_call_id=call_id,
                            tool_name=call["name"],
                            input=call.get("args"),
                            output=output,
                        )
                    )
                    history.append(
                        ToolMessage(
                            content=json.dumps(output, ensure_ascii=False, default=str),
                            tool_call_id=call_id,
                        )
                    )
                    yield ui_stream.tool_output_available(call_id, output)
                yield ui_stream.finish_step()
            else:
                logger.info(
                    "chat.step_limit_reached",
                    conversation_id=turn.conversation_id,
                    max_steps=self.max_steps,
                )
        except Exception as e:
            logger.exception(
                "chat.model_stream_failed",
                conversation_id=turn.conversation_id,
                error=str(e),
            )
            yield ui_stream.error("An error occurred while generating the response.")
            yield ui_stream.DONE
            return

        yield ui_stream.finish()
        yield ui_stream.DONE
        turn.completed = True

    async def finalize(self, turn: ChatTurn) -> bool:
        """Store the assistant reply and refresh the conversation timestamp.

        At most once per turn. Storage errors are logged, not raised. Returns
        True only when a message was stored.
        """
        if turn.finalized:
            return False
        turn.finalized = True

        if turn.conversation_id is None:
            logger.warning("chat.finalize_skipped", reason="no conversation")
            return False
        reply = AssistantTurn(text=turn.text, tool_invocations=list(turn.tool_invocations))
        if not reply.text and not reply.tool_invocations:
            return False
        fields = to_row_fields(reply)

        try:
            async with self.database.get_session() as session:
                service = ConversationService(session)
                await service.append_message(
                    turn.conversation_id,
                    fields["role"],
                    fields["content"],
                    tool_invocations=fields["tool_invocations"],
                )
        except Exception as e:
            logger.error(
                "chat.finalize_failed",
                conversation_id=turn.conversation_id,
                error=str(e),
            )
            return False
        logger.info(
            "chat.finalized",
            conversation_id=turn.conversation_id,
            tool_calls=len(turn.tool_invocations),
        )
        return True
