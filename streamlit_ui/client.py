"""HTTP client used by the Streamlit UI to talk to the chat API."""
import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional

import requests


def parse_sse_lines(lines: Iterable[str]) -> Iterator[Dict[str, Any]]:
    """Yield the JSON events of a UI message stream until ``[DONE]``.

    Blank lines, comments and non-``data:`` fields are skipped; a payload that
    is not valid JSON is skipped as well.
    """
    for raw in lines:
        if raw is None:
            continue
        line = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        line = line.strip()
        if not line.startswith("data:"):
            continue
        payload = line[len("data:"):].strip()
        if payload == "[DONE]":
            return
        try:
            event = json.loads(payload)
        except json.JSONDecodeError:
            continue
        if isinstance(event, dict):
            yield event


@dataclass
class ChatStream:
    conversation_id: Optional[int]
    events: Iterator[Dict[str, Any]]


class ChatApiClient:
    def __init__(
        self,
        base_url: str,
        chat_path: str = "/api/chat",
        conversations_path: str = "/api/conversations",
        timeout: float = 60.0,
        conversation_id_header: str = "X-Conversation-Id",
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.chat_path = chat_path
        self.conversations_path = conversations_path
        self.timeout = timeout
        self.conversation_id_header = conversation_id_header
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def list_conversations(self) -> List[Dict[str, Any]]:
        resp = self.session.get(self._url(self.conversations_path), timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def create_conversation(self, title: Optional[str] = None) -> Dict[str, Any]:
        resp = self.session.post(
            self._url(self.conversations_path),
            json={"title": title} if title else {},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def get_conversation(self, conversation_id: int) -> Dict[str, Any]:
        resp = self.session.get(
            self._url(f"{self.conversations_path}/{conversation_id}"), timeout=self.timeout
        )
        resp.raise_for_status()
        return resp.json()

    def rename_conversation(self, conversation_id: int, title: str) -> Dict[str, Any]:
        resp = self.session.put(
            self._url(f"{self.conversations_path}/{conversation_id}"),
            json={"title": title},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()["conversation"]

    def delete_conversation(self, conversation_id: int) -> bool:
        resp = self.session.delete(
            self._url(f"{self.conversations_path}/{conversation_id}"), timeout=self.timeout
        )
        resp.raise_for_status()
        return bool(resp.json().get("success"))

    def stream_chat(
        self, messages: List[Dict[str, Any]], conversation_id: Optional[int] = None
    ) -> ChatStream:
        """POST the history and return the resolved conversation id plus the event stream."""
        body: Dict[str, Any] = {"messages": messages}
        if conversation_id is not None:
            body["conversationId"] = conversation_id
        resp = self.session.post(
            self._url(self.chat_path), json=body, stream=True, timeout=self.timeout
        )
        if resp.status_code != 200:
            try:
                detail = resp.json().get("error")
            except ValueError:
                detail = resp.text
            resp.close()
            raise RuntimeError(f"API error {resp.status_code}: {detail}")

        header_value = resp.headers.get(self.conversation_id_header)
        resolved = int(header_value) if header_value and header_value.isdigit() else None

        def _events() -> Iterator[Dict[str, Any]]:
            try:
                yield from parse_sse_lines(resp.iter_lines(decode_unicode=True))
            finally:
                resp.close()

        return ChatStream(conversation_id=resolved, events=_events())


def to_ui_message(role: str, text: str) -> Dict[str, Any]:
    return {"role": role, "parts": [{"type": "text", "text": text}]}
