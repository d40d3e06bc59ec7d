"""UI message stream framing.

Each event is one JSON object on a server-sent-events ``data:`` line; the
stream ends with ``data: [DONE]``.
"""
import json
from typing import Any, Dict

UI_MESSAGE_STREAM_HEADERS: Dict[str, str] = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
    "x-vercel-ai-ui-message-stream": "v1",
}

DONE = "data: [DONE]\n\n"


def encode_event(event: Dict[str, Any]) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False, separators=(',', ':'), default=str)}\n\n"


def start(message_id: str) -> str:
    return encode_event({"type": "start", "messageId": message_id})


def start_step() -> str:
    return encode_event({"type": "start-step"})


def text_start(part_id: str) -> str:
    return encode_event({"type": "text-start", "id": part_id})


def text_delta(part_id: str, delta: str) -> str:
    return encode_event({"type": "text-delta", "id": part_id, "delta": delta})


def text_end(part_id: str) -> str:
    return encode_event({"type": "text-end", "id": part_id})


def tool_input_available(tool_call_id: str, tool_name: str, tool_input: Any) -> str:
    return encode_event(
        {
            "type": "tool-input-available",
            "toolCallId": tool_call_id,
            "toolName": tool_name,
            "input": tool_input,
        }
    )


def tool_output_available(tool_call_id: str, output: Any) -> str:
    return encode_event(
        {"type": "tool-output-available", "toolCallId": tool_call_id, "output": output}
    )


def finish_step() -> str:
    return encode_event({"type": "finish-step"})


def finish() -> str:
    return encode_event({"type": "finish"})


def error(error_text: str) -> str:
    return encode_event({"type": "error", "errorText": error_text})
