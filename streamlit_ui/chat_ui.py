import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import streamlit as st
from requests.exceptions import RequestException

try:
    from core.settings import SETTINGS
except ModuleNotFoundError:
    ROOT = Path(__file__).resolve().parents[1]
    if str(ROOT) not in sys.path:
        sys.path.insert(0, str(ROOT))
    from core.settings import SETTINGS

from streamlit_ui.client import ChatApiClient, to_ui_message
from streamlit_ui.state import ChatStatus, is_busy, transition


st.set_page_config(page_title="LLM Chat", layout="wide")
st.title("Chat")

client = ChatApiClient(
    base_url=SETTINGS.UI.API_BASE_URL,
    chat_path=SETTINGS.UI.ENDPOINT_CHAT,
    conversations_path=SETTINGS.UI.ENDPOINT_CONVERSATIONS,
    timeout=SETTINGS.UI.UI_REQUEST_TIMEOUT,
    conversation_id_header=SETTINGS.CHAT.CONVERSATION_ID_HEADER,
)

# Keep chat history
if "messages" not in st.session_state:
    st.session_state.messages = []
if "conversation_id" not in st.session_state:
    st.session_state.conversation_id = None
if "status" not in st.session_state:
    st.session_state.status = ChatStatus.IDLE
if "renaming" not in st.session_state:
    st.session_state.renaming = None
if "confirm_delete" not in st.session_state:
    st.session_state.confirm_delete = None


def set_status(target: ChatStatus) -> None:
    st.session_state.status = transition(st.session_state.status, target)


def load_conversation(conversation_id: int) -> None:
    """Replace the local message list with the stored conversation."""
    try:
        data = client.get_conversation(conversation_id)
    except RequestException as e:
        st.error(f"Failed to load conversation: {e}")
        return
    st.session_state.conversation_id = conversation_id
    st.session_state.messages = [
        {"role": m["role"], "content": m["content"], "tools": m.get("toolInvocations")}
        for m in data.get("messages", [])
        if m["role"] in ("user", "assistant")
    ]
    st.session_state.status = ChatStatus.IDLE


def start_new_chat() -> None:
    # The conversation is created server side on the first submit
    st.session_state.messages = []
    st.session_state.conversation_id = None
    st.session_state.status = ChatStatus.IDLE


def fetch_conversations() -> List[Dict[str, Any]]:
    try:
        return client.list_conversations()
    except RequestException as e:
        st.sidebar.error(f"Failed to fetch conversations: {e}")
        return []


def render_sidebar() -> None:
    with st.sidebar:
        st.subheader("Conversations")
        if st.button("New chat", use_container_width=True):
            start_new_chat()

        for conv in fetch_conversations():
            conv_id = conv["id"]
            active = conv_id == st.session_state.conversation_id
            label = ("▶ " if active else "") + conv["title"]

            if st.session_state.renaming == conv_id:
                new_title = st.text_input(
                    "Title", value=conv["title"], key=f"title-{conv_id}"
                )
                save_col, cancel_col = st.columns(2)
                if save_col.button("Save", key=f"save-{conv_id}"):
                    try:
                        client.rename_conversation(conv_id, new_title)
                    except RequestException as e:
                        st.error(f"Rename failed: {e}")
                    st.session_state.renaming = None
                    st.rerun()
                if cancel_col.button("Cancel", key=f"cancel-{conv_id}"):
                    st.session_state.renaming = None
                    st.rerun()
                continue

            select_col, rename_col, delete_col = st.columns([6, 1, 1])
            if select_col.button(label, key=f"select-{conv_id}", use_container_width=True):
                load_conversation(conv_id)
            if rename_col.button("✏️", key=f"rename-{conv_id}"):
                st.session_state.renaming = conv_id
                st.rerun()
            if delete_col.button("🗑️", key=f"delete-{conv_id}"):
                st.session_state.confirm_delete = conv_id
                st.rerun()

            if st.session_state.confirm_delete == conv_id:
                st.warning(f"Delete “{conv['title']}”?")
                yes_col, no_col = st.columns(2)
                if yes_col.button("Delete", key=f"confirm-{conv_id}"):
                    try:
                        client.delete_conversation(conv_id)
                    except RequestException as e:
                        st.error(f"Delete failed: {e}")
                    if active:
                        start_new_chat()
                    st.session_state.confirm_delete = None
                    st.rerun()
                if no_col.button("Keep", key=f"keep-{conv_id}"):
                    st.session_state.confirm_delete = None
                    st.rerun()


def render_tools(tools: Optional[List[Dict[str, Any]]]) -> None:
    for inv in tools or []:
        with st.expander(f"🔧 {inv.get('toolName', 'tool')}"):
            st.json({"input": inv.get("input"), "output": inv.get("output")})


def send(prompt: str) -> None:
    set_status(ChatStatus.SUBMITTED)
    st.session_state.messages.append({"role": "user", "content": prompt, "tools": None})
    with st.chat_message("user"):
        st.markdown(prompt)

    history = [
        to_ui_message(m["role"], m["content"]) for m in st.session_state.messages
    ]

    with st.chat_message("assistant"):
        placeholder = st.empty()
        text = ""
        tools: List[Dict[str, Any]] = []
        try:
            chat = client.stream_chat(history, st.session_state.conversation_id)
            if st.session_state.conversation_id is None and chat.conversation_id is not None:
                st.session_state.conversation_id = chat.conversation_id

            for event in chat.events:
                if st.session_state.status is ChatStatus.SUBMITTED:
                    set_status(ChatStatus.STREAMING)
                kind = event.get("type")
                if kind == "text-delta":
                    text += event.get("delta", "")
                    placeholder.markdown(text + "▌")
                elif kind == "tool-input-available":
                    tools.append(
                        {
                            "toolCallId": event.get("toolCallId"),
                            "toolName": event.get("toolName"),
                            "input": event.get("input"),
                        }
                    )
                elif kind == "tool-output-available":
                    for inv in tools:
                        if inv["toolCallId"] == event.get("toolCallId"):
                            inv["output"] = event.get("output")
                elif kind == "error":
                    raise RuntimeError(event.get("errorText", "Stream error"))
        except (RequestException, RuntimeError) as e:
            set_status(ChatStatus.ERROR)
            placeholder.markdown(text)
            st.error(str(e))
            return

        placeholder.markdown(text)
        render_tools(tools)
        st.session_state.messages.append(
            {"role": "assistant", "content": text, "tools": tools or None}
        )
        set_status(ChatStatus.IDLE)


render_sidebar()

# Display chat history
for msg in st.session_state.messages:
    with st.chat_message(msg["role"]):
        st.markdown(msg["content"])
        render_tools(msg.get("tools"))

if st.session_state.status is ChatStatus.ERROR:
    st.caption("The last request failed. Send a new message to retry.")

if prompt := st.chat_input("Type your message...", disabled=is_busy(st.session_state.status)):
    send(prompt)
