"""DTOs for the Chat feature: the front end's message shape and the chat request."""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    model_validator,
)


class TextUIPart(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["text"] = "text"
    text: str = ""


class ToolUIPart(BaseModel):
    """A tool call as the front end tracks it (``tool-<name>`` or ``dynamic-tool``)."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str
    tool_call_id: str = Field(alias="toolCallId")
    tool_name: Optional[str] = Field(default=None, alias="toolName")
    state: Optional[str] = None
    input: Optional[Any] = None
    output: Optional[Any] = None
    error_text: Optional[str] = Field(default=None, alias="errorText")

    @property
    def name(self) -> str:
        if self.type.startswith("tool-"):
            return self.type[len("tool-"):]
        return self.tool_name or "unknown"

    @property
    def has_output(self) -> bool:
        return self.state == "output-available" or self.output is not None


class OtherUIPart(BaseModel):
    """Parts the server does not interpret (reasoning, files, step markers)."""

    model_config = ConfigDict(extra="allow")

    type: str


def _part_kind(value: Any) -> str:
    part_type = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    if part_type == "text":
        return "text"
    if isinstance(part_type, str) and (
        part_type.startswith("tool-") or part_type == "dynamic-tool"
    ):
        return "tool"
    return "other"


UIPart = Annotated[
    Union[
        Annotated[TextUIPart, Tag("text")],
        Annotated[ToolUIPart, Tag("tool")],
        Annotated[OtherUIPart, Tag("other")],
    ],
    Discriminator(_part_kind),
]


class UIMessage(BaseModel):
    """Message as exchanged with the browser.

    ``text`` or ``content`` strings are accepted as shorthand for a single text part.
    """

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=lambda: uuid4().hex)
    role: Literal["system", "user", "assistant"]
    parts: List[UIPart] = Field(default_factory=list)
    metadata: Optional[Dict[str, Any]] = None

    @model_validator(mode="before")
    @classmethod
    def _shorthand_text(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("parts"):
            shorthand = data.get("text", data.get("content"))
            if isinstance(shorthand, str):
                data = {**data, "parts": [{"type": "text", "text": shorthand}]}
        return data

    @property
    def text(self) -> str:
        return "".join(p.text for p in self.parts if isinstance(p, TextUIPart))


class ChatRequest(BaseModel):
    """``POST /api/chat`` body."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    messages: List[UIMessage] = Field(default_factory=list)
    conversation_id: Optional[Union[int, str]] = Field(
        default=None, alias="conversationId"
    )
