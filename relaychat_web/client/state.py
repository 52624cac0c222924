# relaychat_web/client/state.py
"""
Client-side chat state: the message list, the loading/status indicator and
the reveal bookkeeping for the message currently being typed out.
"""
import time
import uuid
from dataclasses import dataclass, field
from typing import List, Literal, Optional, Set

Role = Literal["user", "assistant"]

STATUS_LABELS = {
    "thinking": "Thinking…",
    "searching_sql": "Searching SQL…",
    "cached": "From cache…",
    "error": "Error",
}


def next_message_id() -> str:
    return f"msg-{int(time.time() * 1000)}-{uuid.uuid4().hex[:7]}"


@dataclass
class ChatMessage:
    id: str
    role: Role
    content: str
    run_id: Optional[str] = None


@dataclass
class ChatState:
    """
    Mutable UI state for one chat view.

    `streaming_message_id`, `prefix_length` and `visible_length` describe the
    reveal in progress: the first `prefix_length` characters of that message
    (the rewrite annotation) are always shown, followed by `visible_length`
    characters of the answer.
    """

    messages: List[ChatMessage] = field(default_factory=list)
    status: Optional[str] = None
    loading: bool = False
    streaming_message_id: Optional[str] = None
    prefix_length: int = 0
    visible_length: int = 0
    thumbs_up: Set[str] = field(default_factory=set)
    thumbs_down: Set[str] = field(default_factory=set)

    def find(self, message_id: Optional[str]) -> Optional[ChatMessage]:
        if message_id is None:
            return None
        return next((m for m in self.messages if m.id == message_id), None)

    def index_of(self, message_id: str) -> int:
        return next((i for i, m in enumerate(self.messages) if m.id == message_id), -1)

    def append(self, role: Role, content: str, run_id: Optional[str] = None) -> ChatMessage:
        message = ChatMessage(id=next_message_id(), role=role, content=content, run_id=run_id)
        self.messages.append(message)
        return message

    @property
    def last_assistant_id(self) -> Optional[str]:
        return next((m.id for m in reversed(self.messages) if m.role == "assistant"), None)

    def clear_turn(self) -> None:
        """Clears the loading indicator and status text at the end of a turn."""
        self.status = None
        self.loading = False

    def display_content(self, message: ChatMessage) -> str:
        if message.role != "assistant" or message.id != self.streaming_message_id:
            return message.content
        return message.content[: self.prefix_length + self.visible_length]

    def is_revealing(self, message: ChatMessage) -> bool:
        return message.id == self.streaming_message_id and self.prefix_length + self.visible_length < len(message.content)

    def actions_available(self, message: ChatMessage) -> bool:
        """Copy/regenerate/feedback controls appear only once the reveal is over."""
        return message.role == "assistant" and message.id != self.streaming_message_id

    def status_label(self) -> str:
        if self.status is None:
            return "…"
        return STATUS_LABELS.get(self.status, self.status)
