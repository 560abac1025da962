"""Chat view model: the in-memory mirror of the active conversation.

Messages are addressed by their remote id once it is known and by their
correlation token before that. Nothing here talks to the database or the
backend; controllers do that and report results back.
"""

from __future__ import annotations

from documind.chat.messages import Message
from documind.db.models import URLGroup

DEFAULT_TITLE = "New Conversation"


class ChatViewModel:
    """Ordered message list, URL groups and transient UI flags."""

    def __init__(self) -> None:
        self.session_id: str | None = None
        self.session_title: str = DEFAULT_TITLE
        self.messages: list[Message] = []
        self.groups: list[URLGroup] = []
        self.active_group_id: str | None = None
        self.is_loading: bool = False
        self.is_fetching_suggestions: bool = False
        self.suggestions: list[str] = []

    # ------------------------------------------------------------------
    # Flags
    # ------------------------------------------------------------------

    @property
    def busy(self) -> bool:
        """True while a turn is analyzing/streaming or suggestions are loading."""
        return self.is_loading or self.is_fetching_suggestions

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def reset(self, messages: list[Message] | None = None) -> None:
        self.messages = list(messages or [])

    def append(self, message: Message) -> Message:
        self.messages.append(message)
        return message

    def index_of(self, ref: str) -> int:
        """Position of the message whose id or token equals *ref*, else -1."""
        for i, message in enumerate(self.messages):
            if message.id == ref or message.token == ref:
                return i
        return -1

    def find(self, ref: str) -> Message | None:
        i = self.index_of(ref)
        return self.messages[i] if i >= 0 else None

    def replace(self, ref: str, new: Message) -> Message:
        """Swap the message at *ref* for *new* in place, keeping token and id.

        Raises:
            KeyError: If no message matches *ref*.
        """
        i = self.index_of(ref)
        if i < 0:
            raise KeyError(ref)
        old = self.messages[i]
        new.token = old.token
        if new.id is None:
            new.id = old.id
        new.timestamp = old.timestamp
        self.messages[i] = new
        return new

    def assign_id(self, token: str, remote_id: str) -> bool:
        """Record the database id of the message created with *token*."""
        for message in self.messages:
            if message.token == token:
                message.id = remote_id
                return True
        return False

    # ------------------------------------------------------------------
    # URL groups
    # ------------------------------------------------------------------

    @property
    def active_group(self) -> URLGroup | None:
        return next((g for g in self.groups if g.id == self.active_group_id), None)

    @property
    def active_urls(self) -> list[str]:
        group = self.active_group
        return list(group.urls) if group else []

    def get_group(self, group_id: str) -> URLGroup | None:
        return next((g for g in self.groups if g.id == group_id), None)
