"""Two-phase query turn: source identification, user confirmation, streamed answer.

States:
  IDLE → ANALYZING_SOURCES → SOURCES_PENDING_CONFIRMATION
       → ANSWERING_STREAMING → ANSWERED
  ANALYZING_SOURCES / ANSWERING_STREAMING → ERRORED

ANSWERED and ERRORED turns whose source selection is known may re-enter
ANSWERING_STREAMING (regenerate). A failed step replaces the in-progress
message with a readable error; nothing is retried automatically.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from documind.chat.messages import (
    AnalyzingSources,
    CompletedAnswer,
    ErroredAnswer,
    Message,
    PendingSourceConfirmation,
    SourceSelection,
    StreamingAnswer,
    UserMessage,
    to_record,
)
from documind.chat.view_model import ChatViewModel
from documind.config import DEFAULT_MODEL
from documind.db.repository import PersistenceError, Repository
from documind.rag.generation import RELEVANCE_SHORTCUT, answer_stream, identify_relevant_urls
from documind.rag.llm_client import GenerationError, MissingApiKeyError, QuotaExceededError

log = logging.getLogger(__name__)

_TURN_ERRORS = (MissingApiKeyError, QuotaExceededError, GenerationError)


class TurnState(str, Enum):
    IDLE = "idle"
    ANALYZING_SOURCES = "analyzing_sources"
    SOURCES_PENDING_CONFIRMATION = "sources_pending_confirmation"
    ANSWERING_STREAMING = "answering_streaming"
    ANSWERED = "answered"
    ERRORED = "errored"


_ALLOWED: dict[TurnState, frozenset[TurnState]] = {
    TurnState.IDLE: frozenset({TurnState.ANALYZING_SOURCES}),
    TurnState.ANALYZING_SOURCES: frozenset(
        {TurnState.SOURCES_PENDING_CONFIRMATION, TurnState.ERRORED}
    ),
    TurnState.SOURCES_PENDING_CONFIRMATION: frozenset({TurnState.ANSWERING_STREAMING}),
    TurnState.ANSWERING_STREAMING: frozenset({TurnState.ANSWERED, TurnState.ERRORED}),
    TurnState.ANSWERED: frozenset({TurnState.ANSWERING_STREAMING}),
    TurnState.ERRORED: frozenset({TurnState.ANSWERING_STREAMING}),
}


class InvalidTransitionError(RuntimeError):
    """Raised when a turn is driven out of order (e.g. confirm before analyze)."""


class QueryTurn:
    """One conversational turn, bound to a session and the active URL set.

    Args:
        view: View model that renders the turn's messages.
        repo: Repository used to persist user and model messages.
        session_id: Session the messages belong to.
        urls: URLs of the active group at submit time.
        model: LiteLLM model string.
        shortcut: Groups with this many URLs or fewer skip identification.
        settings_path: Override for the local settings store (testing).
        on_update: Called with the affected message after every state update,
            including once per streamed fragment.
    """

    def __init__(
        self,
        view: ChatViewModel,
        repo: Repository,
        session_id: str,
        urls: list[str],
        *,
        model: str = DEFAULT_MODEL,
        shortcut: int = RELEVANCE_SHORTCUT,
        settings_path: Path | None = None,
        on_update: Callable[[Message], None] | None = None,
    ) -> None:
        self.view = view
        self.repo = repo
        self.session_id = session_id
        self.urls = list(urls)
        self.model = model
        self.shortcut = shortcut
        self.settings_path = settings_path
        self.on_update = on_update
        self.state = TurnState.IDLE
        self.history: list[TurnState] = [TurnState.IDLE]
        self.query: str | None = None
        self.message_token: str | None = None

    # ------------------------------------------------------------------
    # Construction from history
    # ------------------------------------------------------------------

    @classmethod
    def resume(
        cls,
        view: ChatViewModel,
        repo: Repository,
        session_id: str,
        message: PendingSourceConfirmation | CompletedAnswer | ErroredAnswer,
        **kwargs,
    ) -> QueryTurn:
        """Rebuild a turn around a message loaded from history.

        A pending confirmation resumes in SOURCES_PENDING_CONFIRMATION; a
        finished answer resumes in ANSWERED/ERRORED so it can be regenerated.
        """
        if isinstance(message, PendingSourceConfirmation):
            turn = cls(view, repo, session_id, message.candidates, **kwargs)
            turn.query = message.query
            turn.state = TurnState.SOURCES_PENDING_CONFIRMATION
        elif isinstance(message, (CompletedAnswer, ErroredAnswer)) and message.selection:
            turn = cls(view, repo, session_id, message.selection.urls, **kwargs)
            turn.query = message.selection.original_query
            turn.state = (
                TurnState.ANSWERED
                if isinstance(message, CompletedAnswer)
                else TurnState.ERRORED
            )
        else:
            raise InvalidTransitionError(
                f"Cannot resume a turn from {type(message).__name__} without a source selection."
            )
        turn.history = [turn.state]
        turn.message_token = message.token
        return turn

    # ------------------------------------------------------------------
    # Phase 1: identify candidate sources
    # ------------------------------------------------------------------

    def start(self, query: str) -> PendingSourceConfirmation | ErroredAnswer:
        """Submit *query*: persist it, then find candidate URLs for confirmation."""
        self._transition(TurnState.ANALYZING_SOURCES)
        self.query = query
        self.view.is_loading = True
        try:
            user_message = self.view.append(UserMessage(text=query))
            self._notify(user_message)
            self._persist_new(user_message)

            placeholder = self.view.append(AnalyzingSources(query=query))
            self.message_token = placeholder.token
            self._notify(placeholder)

            try:
                if len(self.urls) <= self.shortcut:
                    candidates = list(self.urls)
                else:
                    candidates = identify_relevant_urls(
                        query,
                        self.urls,
                        model=self.model,
                        shortcut=self.shortcut,
                        settings_path=self.settings_path,
                    )
            except _TURN_ERRORS as exc:
                return self._fail(exc, selection=None)

            pending = self._update(PendingSourceConfirmation(query=query, candidates=candidates))
            self._persist_new(pending)
            self._transition(TurnState.SOURCES_PENDING_CONFIRMATION)
            return pending
        finally:
            self.view.is_loading = False

    # ------------------------------------------------------------------
    # Phase 2: confirmed sources → streamed answer
    # ------------------------------------------------------------------

    def confirm(self, urls: list[str]) -> CompletedAnswer | ErroredAnswer:
        """Generate the answer from the user-confirmed *urls*."""
        if self.state is not TurnState.SOURCES_PENDING_CONFIRMATION:
            raise InvalidTransitionError(f"Cannot confirm sources in state {self.state.value}.")
        return self._answer(list(urls))

    def regenerate(self) -> CompletedAnswer | ErroredAnswer:
        """Re-run the answer with the query and URLs recorded on the message."""
        message = self._current()
        selection = getattr(message, "selection", None)
        if self.state not in (TurnState.ANSWERED, TurnState.ERRORED) or selection is None:
            raise InvalidTransitionError(f"Cannot regenerate in state {self.state.value}.")
        self.query = selection.original_query
        return self._answer(list(selection.urls))

    def _answer(self, urls: list[str]) -> CompletedAnswer | ErroredAnswer:
        if self.query is None:
            raise InvalidTransitionError("Cannot answer a turn that has no query.")
        query = self.query
        selection = SourceSelection(original_query=query, urls=urls)
        self._transition(TurnState.ANSWERING_STREAMING)
        self.view.is_loading = True
        try:
            self._update(StreamingAnswer(query=query, urls=urls))
            accumulated = ""
            url_context = None
            try:
                for fragment in answer_stream(
                    query, urls, model=self.model, settings_path=self.settings_path
                ):
                    accumulated += fragment.text
                    if fragment.url_context:
                        url_context = fragment.url_context
                    self._update(
                        StreamingAnswer(
                            query=query,
                            urls=urls,
                            partial_text=accumulated,
                            url_context=url_context,
                        )
                    )
            except _TURN_ERRORS as exc:
                return self._fail(exc, selection=selection)

            final = self._update(
                CompletedAnswer(text=accumulated, selection=selection, url_context=url_context)
            )
            self._persist_final(final)
            self._transition(TurnState.ANSWERED)
            return final
        finally:
            self.view.is_loading = False

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _transition(self, target: TurnState) -> None:
        if target not in _ALLOWED[self.state]:
            raise InvalidTransitionError(
                f"Illegal transition {self.state.value} → {target.value}."
            )
        log.debug("Turn %s: %s → %s", self.message_token, self.state.value, target.value)
        self.state = target
        self.history.append(target)

    def _current(self) -> Message:
        message = self.view.find(self.message_token or "")
        if message is None:
            raise InvalidTransitionError("The turn's message is no longer in the view.")
        return message

    def _update(self, new: Message) -> Message:
        message = self.view.replace(self._current().token, new)
        self._notify(message)
        return message

    def _notify(self, message: Message) -> None:
        if self.on_update is not None:
            self.on_update(message)

    def _fail(self, exc: Exception, selection: SourceSelection | None) -> ErroredAnswer:
        log.error("Query turn failed: %s", exc)
        errored = self._update(ErroredAnswer(text=f"Error: {exc}", selection=selection))
        self._persist_final(errored)
        self._transition(TurnState.ERRORED)
        return errored  # type: ignore[return-value]

    def _persist_new(self, message: Message) -> None:
        """Insert *message* and reconcile its id by token. Best effort."""
        sender, content, metadata = to_record(message)
        try:
            record = self.repo.add_message(
                self.session_id, sender, content, metadata, client_token=message.token
            )
        except PersistenceError as exc:
            log.warning("Could not save %s message: %s", sender, exc)
            return
        self.view.assign_id(message.token, record.id)

    def _persist_final(self, message: Message) -> None:
        """Write the finished message over its row, inserting if it has none."""
        if message.id is None:
            try:
                existing = self.repo.get_message_by_token(message.token)
            except PersistenceError as exc:
                log.warning("Could not look up message %s: %s", message.token, exc)
                existing = None
            if existing is not None:
                self.view.assign_id(message.token, existing.id)
        if message.id is None:
            self._persist_new(message)
            return
        _, content, metadata = to_record(message)
        try:
            self.repo.update_message(message.id, content, metadata)
        except PersistenceError as exc:
            log.warning("Could not update message %s: %s", message.id, exc)
