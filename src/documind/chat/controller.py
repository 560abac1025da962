"""Chat controller: sessions, query turns, feedback and suggestions.

Ties the view model to the repository and the generation operations. At most
one conversational turn is in flight; send() while busy is a no-op.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from documind.chat.groups import GroupManager
from documind.chat.messages import (
    CompletedAnswer,
    ErroredAnswer,
    Feedback,
    Message,
    PendingSourceConfirmation,
    SystemNotice,
    from_record,
)
from documind.chat.turn import QueryTurn, TurnState
from documind.chat.view_model import DEFAULT_TITLE, ChatViewModel
from documind.config import DocumindConfig
from documind.db.repository import PersistenceError, Repository
from documind.rag.generation import NO_URLS_SUGGESTION, initial_suggestions
from documind.settings import has_api_key

log = logging.getLogger(__name__)

TITLE_MAX_CHARS = 30

API_KEY_NOTICE = (
    "⚠️ **Action Required:** Please add your Gemini API Key in settings "
    "(`documind settings set-key`) to start using Documind."
)


def session_title(query: str) -> str:
    """Title for a session started by *query*: first 30 characters + '...'."""
    return query[:TITLE_MAX_CHARS] + "..." if len(query) > TITLE_MAX_CHARS else query


class ChatController:
    """Application-level operations over the active conversation."""

    def __init__(
        self,
        repo: Repository,
        config: DocumindConfig,
        *,
        view: ChatViewModel | None = None,
        settings_path: Path | None = None,
        on_update: Callable[[Message], None] | None = None,
    ) -> None:
        self.repo = repo
        self.config = config
        self.view = view if view is not None else ChatViewModel()
        self.settings_path = settings_path
        self.on_update = on_update
        self.groups = GroupManager(
            repo, self.view, config.user.id, max_urls=config.knowledge_base.max_urls
        )
        self.turn: QueryTurn | None = None

    @property
    def user_id(self) -> str:
        return self.config.user.id

    def has_credential(self) -> bool:
        return has_api_key(self.settings_path)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def welcome_text(self) -> str:
        if not self.has_credential():
            return API_KEY_NOTICE
        group = self.view.active_group
        if group is not None:
            return (
                f'Welcome to **Documind**! You\'re currently browsing content from: "{group.name}". '
                "I am here to help you implement SDKs and APIs. "
                "Ask me technical questions based on the docs!"
            )
        return (
            "Welcome to **Documind**! Create a URL group and add documentation "
            "links to get started."
        )

    def new_chat(self) -> None:
        """Forget the active session and show the welcome notice."""
        self.turn = None
        self.view.session_id = None
        self.view.session_title = DEFAULT_TITLE
        self.view.reset([SystemNotice(text=self.welcome_text())])

    def load_session(self, session_id: str) -> bool:
        session = self.repo.get_session(session_id)
        if session is None:
            return False
        self.turn = None
        self.view.session_id = session.id
        self.view.session_title = session.title
        self.view.reset([from_record(r) for r in self.repo.list_messages(session.id)])
        return True

    def rename_session(self, title: str) -> None:
        """Rename the active session.

        Raises:
            PersistenceError: If the row cannot be updated. The view keeps
                the old title.
        """
        if self.view.session_id is not None:
            try:
                self.repo.rename_session(self.view.session_id, title)
            except PersistenceError as exc:
                log.error("Could not rename session: %s", exc)
                raise
        self.view.session_title = title

    def delete_session(self, session_id: str) -> None:
        """Delete a session and its messages; raises PersistenceError on failure."""
        self.repo.delete_session(session_id)
        if self.view.session_id == session_id:
            self.new_chat()

    def _ensure_session(self, query: str) -> str | None:
        if self.view.session_id is not None:
            return self.view.session_id
        title = session_title(query)
        try:
            session = self.repo.create_session(self.user_id, title)
        except PersistenceError as exc:
            log.error("Failed to create session: %s", exc)
            return None
        self.view.session_id = session.id
        self.view.session_title = title
        return session.id

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    def _new_turn(self, session_id: str, urls: list[str]) -> QueryTurn:
        return QueryTurn(
            self.view,
            self.repo,
            session_id,
            urls,
            model=self.config.generation.model,
            shortcut=self.config.knowledge_base.relevance_shortcut,
            settings_path=self.settings_path,
            on_update=self.on_update,
        )

    def send(self, query: str) -> Message | None:
        """Start a turn for *query* and run it up to source confirmation.

        Returns the pending confirmation (or error) message, or None when the
        send was ignored: blank query, a turn or suggestion fetch in flight,
        no credential, or no session could be created.
        """
        if not query.strip() or self.view.busy:
            return None
        if not self.has_credential():
            log.warning("Send ignored: no API key configured.")
            self.view.append(SystemNotice(text=API_KEY_NOTICE))
            return None

        self.view.suggestions = []
        session_id = self._ensure_session(query)
        if session_id is None:
            return None

        self.turn = self._new_turn(session_id, self.view.active_urls)
        return self.turn.start(query)

    def _turn_for(self, message: Message) -> QueryTurn:
        if self.turn is not None and self.turn.message_token == message.token:
            return self.turn
        if self.view.session_id is None:
            raise LookupError("No active session.")
        self.turn = QueryTurn.resume(
            self.view,
            self.repo,
            self.view.session_id,
            message,  # type: ignore[arg-type]
            model=self.config.generation.model,
            shortcut=self.config.knowledge_base.relevance_shortcut,
            settings_path=self.settings_path,
            on_update=self.on_update,
        )
        return self.turn

    def confirm_sources(self, message_ref: str, urls: list[str]) -> Message | None:
        """Generate the answer for a pending confirmation from the chosen *urls*."""
        if self.view.busy:
            return None
        message = self.view.find(message_ref)
        if not isinstance(message, PendingSourceConfirmation):
            raise LookupError(f"No pending source confirmation '{message_ref}'.")
        return self._turn_for(message).confirm(urls)

    def regenerate(self, message_ref: str) -> Message | None:
        if self.view.busy:
            return None
        message = self.view.find(message_ref)
        if not isinstance(message, (CompletedAnswer, ErroredAnswer)) or message.selection is None:
            raise LookupError(f"Message '{message_ref}' cannot be regenerated.")
        return self._turn_for(message).regenerate()

    @property
    def turn_state(self) -> TurnState:
        return self.turn.state if self.turn is not None else TurnState.IDLE

    def pending_confirmation(self) -> PendingSourceConfirmation | None:
        """The latest unresolved source confirmation in the view, if any."""
        for message in reversed(self.view.messages):
            if isinstance(message, PendingSourceConfirmation):
                return message
        return None

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    def set_feedback(self, message_ref: str, feedback: Feedback) -> None:
        """Record thumbs up/down (or clear it); the view updates first."""
        message = self.view.find(message_ref)
        if not isinstance(message, CompletedAnswer):
            raise LookupError(f"No answer '{message_ref}' to give feedback on.")
        message.feedback = feedback
        if message.id is None:
            return
        try:
            metadata = self.repo.get_metadata(message.id)
            if metadata is None:
                return
            metadata["feedback"] = feedback
            self.repo.update_metadata(message.id, metadata)
        except PersistenceError as exc:
            log.warning("Could not save feedback for %s: %s", message.id, exc)

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    def refresh_suggestions(self) -> list[str]:
        """Fetch starter questions for the active group (best effort)."""
        urls = self.view.active_urls
        if not urls or not self.has_credential():
            self.view.suggestions = []
            return []
        self.view.is_fetching_suggestions = True
        self.view.suggestions = []
        try:
            suggestions = initial_suggestions(
                urls, model=self.config.generation.model, settings_path=self.settings_path
            )
        finally:
            self.view.is_fetching_suggestions = False
        self.view.suggestions = [s for s in suggestions if s != NO_URLS_SUGGESTION]
        return self.view.suggestions
