"""Row models for the Documind database layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field


@dataclass
class URLGroup:
    id: str
    name: str
    urls: list[str] = field(default_factory=list)
    user_id: str = ""
    created_at: str | None = None


@dataclass
class ChatSession:
    id: str
    title: str
    user_id: str = ""
    created_at: str | None = None


@dataclass
class MessageRecord:
    id: str
    session_id: str
    sender: str
    content: str = ""
    metadata: str | None = None  # JSON text, None when the row has no metadata
    client_token: str | None = None
    created_at: str | None = None

    @property
    def metadata_dict(self) -> dict:
        return json.loads(self.metadata) if self.metadata else {}
