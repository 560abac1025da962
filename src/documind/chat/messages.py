"""In-memory chat message kinds and their mapping to persisted rows.

Each stage of a query turn is its own type, so a message cannot be both
"pending confirmation" and "answered". Every message carries a correlation
token assigned at creation; the token is written with the row and is the only
key used to reconcile a local message with its database id.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional, Union

from documind.db.models import MessageRecord
from documind.rag.llm_client import UrlContextItem

Feedback = Optional[Literal["positive", "negative"]]

ANALYZING_TEXT = "Analyzing your query and finding relevant documentation..."


class Sender(str, Enum):
    USER = "user"
    MODEL = "model"
    SYSTEM = "system"


def new_token() -> str:
    return uuid.uuid4().hex


@dataclass
class SourceSelection:
    """The query and URL set an answer was (or will be) generated from."""

    original_query: str
    urls: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"originalQuery": self.original_query, "urls": list(self.urls)}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SourceSelection | None:
        if not isinstance(data, dict) or "originalQuery" not in data:
            return None
        return cls(original_query=str(data["originalQuery"]), urls=list(data.get("urls") or []))


@dataclass(kw_only=True)
class _Message:
    token: str = field(default_factory=new_token)
    id: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    sender = Sender.MODEL
    is_loading = False

    @property
    def ref(self) -> str:
        """Remote id once assigned, the correlation token before that."""
        return self.id or self.token


@dataclass
class UserMessage(_Message):
    text: str
    sender = Sender.USER


@dataclass
class SystemNotice(_Message):
    text: str
    sender = Sender.SYSTEM


@dataclass
class AnalyzingSources(_Message):
    query: str
    text: str = ANALYZING_TEXT
    is_loading = True


@dataclass
class PendingSourceConfirmation(_Message):
    query: str
    candidates: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return ""


@dataclass
class StreamingAnswer(_Message):
    query: str
    urls: list[str] = field(default_factory=list)
    partial_text: str = ""
    url_context: list[UrlContextItem] | None = None
    is_loading = True

    @property
    def text(self) -> str:
        return self.partial_text


@dataclass
class CompletedAnswer(_Message):
    text: str
    selection: SourceSelection | None = None
    url_context: list[UrlContextItem] | None = None
    feedback: Feedback = None


@dataclass
class ErroredAnswer(_Message):
    text: str
    selection: SourceSelection | None = None


Message = Union[
    UserMessage,
    SystemNotice,
    AnalyzingSources,
    PendingSourceConfirmation,
    StreamingAnswer,
    CompletedAnswer,
    ErroredAnswer,
]

TRANSIENT_KINDS = (AnalyzingSources, StreamingAnswer)


# ------------------------------------------------------------------
# Row mapping
# ------------------------------------------------------------------


def to_record(message: Message) -> tuple[str, str, dict[str, Any] | None]:
    """Return ``(sender, content, metadata)`` for persisting *message*.

    Raises:
        ValueError: For in-flight kinds (analyzing, streaming), which are
            never written.
    """
    if isinstance(message, TRANSIENT_KINDS):
        raise ValueError(f"{type(message).__name__} is transient and is not persisted.")

    if isinstance(message, (UserMessage, SystemNotice)):
        return message.sender.value, message.text, None

    if isinstance(message, PendingSourceConfirmation):
        return Sender.MODEL.value, "", {
            "isSourceConfirmationPending": True,
            "sourceSelection": SourceSelection(message.query, message.candidates).to_dict(),
        }

    if isinstance(message, CompletedAnswer):
        metadata: dict[str, Any] = {
            "urlContext": (
                [item.to_dict() for item in message.url_context]
                if message.url_context is not None
                else None
            ),
            "isSourceConfirmationPending": False,
            "feedback": message.feedback,
        }
        if message.selection is not None:
            metadata["sourceSelection"] = message.selection.to_dict()
        return Sender.MODEL.value, message.text, metadata

    if isinstance(message, ErroredAnswer):
        metadata = {"isSourceConfirmationPending": False, "error": True}
        if message.selection is not None:
            metadata["sourceSelection"] = message.selection.to_dict()
        return Sender.MODEL.value, message.text, metadata

    raise TypeError(f"Unknown message kind: {type(message).__name__}")


def from_record(record: MessageRecord) -> Message:
    """Rebuild the in-memory message for a persisted row."""
    common: dict[str, Any] = {
        "token": record.client_token or new_token(),
        "id": record.id,
        "timestamp": _parse_ts(record.created_at),
    }
    if record.sender == Sender.USER.value:
        return UserMessage(text=record.content, **common)
    if record.sender == Sender.SYSTEM.value:
        return SystemNotice(text=record.content, **common)

    meta = record.metadata_dict
    selection = SourceSelection.from_dict(meta.get("sourceSelection"))

    if meta.get("isSourceConfirmationPending") and selection is not None:
        return PendingSourceConfirmation(
            query=selection.original_query, candidates=selection.urls, **common
        )
    if meta.get("error"):
        return ErroredAnswer(text=record.content, selection=selection, **common)

    raw_context = meta.get("urlContext")
    url_context = (
        [UrlContextItem.from_dict(item) for item in raw_context if isinstance(item, dict)]
        if isinstance(raw_context, list)
        else None
    )
    feedback = meta.get("feedback")
    return CompletedAnswer(
        text=record.content,
        selection=selection,
        url_context=url_context,
        feedback=feedback if feedback in ("positive", "negative") else None,
        **common,
    )


def _parse_ts(value: str | None) -> datetime:
    if not value:
        return datetime.now()
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return datetime.now()
