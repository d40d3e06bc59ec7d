"""Message representations and the conversions between them.

Three shapes meet in a chat turn: the browser's ``UIMessage``, the model
SDK's ``BaseMessage`` and the stored ``Message`` row. Each is first mapped
onto one of the role-tagged turns below; every conversion out of a turn
handles each role explicitly.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from api.features.chat.dtos import TextUIPart, ToolUIPart, UIMessage
from api.features.conversation.entities.message import Message, MessageRole


@dataclass(frozen=True)
class ToolInvocation:
    tool_call_id: str
    tool_name: str
    input: Any = None
    output: Any = None

    def to_record(self) -> Dict[str, Any]:
        return {
            "toolCallId": self.tool_call_id,
            "toolName": self.tool_name,
            "input": self.input,
            "output": self.output,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ToolInvocation":
        return cls(
            tool_call_id=str(record.get("toolCallId", "")),
            tool_name=str(record.get("toolName", "unknown")),
            input=record.get("input"),
            output=record.get("output"),
        )


@dataclass(frozen=True)
class SystemTurn:
    text: str
    role: MessageRole = field(default=MessageRole.SYSTEM, init=False)


@dataclass(frozen=True)
class UserTurn:
    text: str
    role: MessageRole = field(default=MessageRole.USER, init=False)


@dataclass(frozen=True)
class AssistantTurn:
    text: str
    tool_invocations: List[ToolInvocation] = field(default_factory=list)
    role: MessageRole = field(default=MessageRole.ASSISTANT, init=False)


@dataclass(frozen=True)
class ToolTurn:
    tool_call_id: str
    content: str
    role: MessageRole = field(default=MessageRole.TOOL, init=False)


Turn = Union[SystemTurn, UserTurn, AssistantTurn, ToolTurn]


def from_ui(message: UIMessage) -> Turn:
    if message.role == "system":
        return SystemTurn(text=message.text)
    if message.role == "user":
        return UserTurn(text=message.text)
    if message.role == "assistant":
        invocations = [
            ToolInvocation(
                tool_call_id=part.tool_call_id,
                tool_name=part.name,
                input=part.input,
                output=part.output if part.output is not None else part.error_text,
            )
            for part in message.parts
            if isinstance(part, ToolUIPart) and part.has_output
        ]
        text = "".join(p.text for p in message.parts if isinstance(p, TextUIPart))
        return AssistantTurn(text=text, tool_invocations=invocations)
    raise ValueError(f"Unsupported UI message role: {message.role}")


def from_row(row: Message) -> Turn:
    role = row.role_enum
    if role is MessageRole.SYSTEM:
        return SystemTurn(text=row.content)
    if role is MessageRole.USER:
        return UserTurn(text=row.content)
    if role is MessageRole.ASSISTANT:
        return AssistantTurn(
            text=row.content,
            tool_invocations=[
                ToolInvocation.from_record(r) for r in (row.tool_invocations or [])
            ],
        )
    if role is MessageRole.TOOL:
        records = row.tool_invocations or []
        call_id = str(records[0].get("toolCallId")) if records else f"call_{row.id}"
        return ToolTurn(tool_call_id=call_id, content=row.content)
    raise ValueError(f"Unsupported message role: {row.role}")


def _tool_content(output: Any) -> str:
    if isinstance(output, str):
        return output
    return json.dumps(output, ensure_ascii=False, default=str)


def to_model(turn: Turn) -> List[BaseMessage]:
    """One turn becomes one or more model messages.

    An assistant turn with tool calls expands to the tool-calling message,
    one tool result per call, then the final text.
    """
    if isinstance(turn, SystemTurn):
        return [SystemMessage(content=turn.text)]
    if isinstance(turn, UserTurn):
        return [HumanMessage(content=turn.text)]
    if isinstance(turn, AssistantTurn):
        if not turn.tool_invocations:
            return [AIMessage(content=turn.text)]
        out: List[BaseMessage] = [
            AIMessage(
                content="",
                tool_calls=[
                    {
                        "name": inv.tool_name,
                        "args": inv.input if isinstance(inv.input, dict) else {},
                        "id": inv.tool_call_id,
                    }
                    for inv in turn.tool_invocations
                ],
            )
        ]
        out.extend(
            ToolMessage(content=_tool_content(inv.output), tool_call_id=inv.tool_call_id)
            for inv in turn.tool_invocations
        )
        if turn.text:
            out.append(AIMessage(content=turn.text))
        return out
    if isinstance(turn, ToolTurn):
        return [ToolMessage(content=turn.content, tool_call_id=turn.tool_call_id)]
    raise TypeError(f"Unknown turn type: {type(turn).__name__}")


def to_row_fields(turn: Turn) -> Dict[str, Any]:
    """Column values for persisting ``turn`` as a ``messages`` row."""
    if isinstance(turn, (SystemTurn, UserTurn)):
        return {"role": turn.role, "content": turn.text, "tool_invocations": None}
    if isinstance(turn, AssistantTurn):
        records: Optional[List[Dict[str, Any]]] = [
            inv.to_record() for inv in turn.tool_invocations
        ] or None
        return {"role": turn.role, "content": turn.text, "tool_invocations": records}
    if isinstance(turn, ToolTurn):
        return {
            "role": turn.role,
            "content": turn.content,
            "tool_invocations": [{"toolCallId": turn.tool_call_id}],
        }
    raise TypeError(f"Unknown turn type: {type(turn).__name__}")

