"""LiteLLM client wrapper: backend handle cache, error taxonomy, response metadata.

All generation calls route through this module. The credential is resolved on
every call (settings store first, then environment); the backend handle is
memoized per (model, credential) and dropped by invalidate_backend() whenever
the stored credential changes.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import litellm

from documind.settings import resolve_api_key

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]

log = logging.getLogger(__name__)

URL_CONTEXT_TOOL: dict[str, Any] = {"urlContext": {}}
WEB_SEARCH_TOOL: dict[str, Any] = {"googleSearch": {}}

SAFETY_SETTINGS: list[dict[str, str]] = [
    {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]


# ------------------------------------------------------------------
# Error taxonomy
# ------------------------------------------------------------------


class MissingApiKeyError(EnvironmentError):
    """No credential configured, or the backend rejected it."""


class QuotaExceededError(RuntimeError):
    """The backend reported an exhausted quota."""


class GenerationError(RuntimeError):
    """Any other backend failure."""


MISSING_KEY_MESSAGE = "Invalid or Missing API Key. Please check settings."
QUOTA_MESSAGE = "API quota exceeded."


def classify_error(exc: BaseException) -> Exception:
    """Map a backend exception onto MissingApiKeyError / QuotaExceededError / GenerationError."""
    if isinstance(exc, (MissingApiKeyError, QuotaExceededError, GenerationError)):
        return exc
    message = str(exc) or exc.__class__.__name__
    if isinstance(exc, litellm.exceptions.AuthenticationError) or (
        "API key not valid" in message or "API Key missing" in message
    ):
        return MissingApiKeyError(MISSING_KEY_MESSAGE)
    if isinstance(exc, litellm.exceptions.RateLimitError) or "quota" in message.lower():
        return QuotaExceededError(QUOTA_MESSAGE)
    return GenerationError(message)


# ------------------------------------------------------------------
# Response shapes
# ------------------------------------------------------------------


@dataclass
class UrlContextItem:
    """Retrieval status of one URL the backend fetched for grounding."""

    retrieved_url: str
    url_retrieval_status: str

    def to_dict(self) -> dict[str, str]:
        return {"retrievedUrl": self.retrieved_url, "urlRetrievalStatus": self.url_retrieval_status}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UrlContextItem:
        return cls(
            retrieved_url=str(data.get("retrievedUrl") or data.get("retrieved_url") or ""),
            url_retrieval_status=str(
                data.get("urlRetrievalStatus") or data.get("url_retrieval_status") or ""
            ),
        )


@dataclass
class Completion:
    text: str
    url_context: list[UrlContextItem] | None = None
    grounding_urls: list[str] = field(default_factory=list)


@dataclass
class StreamFragment:
    text: str
    url_context: list[UrlContextItem] | None = None


# ------------------------------------------------------------------
# Backend handle
# ------------------------------------------------------------------


@dataclass(frozen=True)
class Backend:
    """A model bound to one credential. Obtain through get_backend()."""

    model: str
    api_key: str

    def completion(self, messages: list[dict], **kwargs: Any) -> Any:
        return litellm.completion(
            model=self.model,
            messages=messages,
            api_key=self.api_key,
            safety_settings=SAFETY_SETTINGS,
            **kwargs,
        )


@functools.lru_cache(maxsize=8)
def _backend_for(model: str, api_key: str) -> Backend:
    log.debug("Creating backend handle for %s", model)
    return Backend(model=model, api_key=api_key)


def get_backend(model: str, settings_path: Path | None = None) -> Backend:
    """Return the memoized backend handle for *model* and the active credential.

    Raises:
        MissingApiKeyError: If no credential is configured.
    """
    api_key = resolve_api_key(settings_path)
    if not api_key:
        log.error("No API key configured; generation is disabled.")
        raise MissingApiKeyError(MISSING_KEY_MESSAGE)
    return _backend_for(model, api_key)


def invalidate_backend() -> None:
    """Drop every cached backend handle (call after the credential changes)."""
    _backend_for.cache_clear()


# ------------------------------------------------------------------
# Calls
# ------------------------------------------------------------------


def complete(
    model: str,
    messages: list[dict],
    *,
    tools: list[dict] | None = None,
    json_response: bool = False,
    settings_path: Path | None = None,
) -> Completion:
    """One-shot generation. Returns text plus any retrieval/grounding metadata.

    Raises:
        MissingApiKeyError, QuotaExceededError, GenerationError
    """
    backend = get_backend(model, settings_path)
    kwargs: dict[str, Any] = {}
    if tools:
        kwargs["tools"] = tools
    if json_response:
        kwargs["response_format"] = {"type": "json_object"}
    try:
        response = backend.completion(messages, **kwargs)
    except Exception as exc:
        log.error("Generation call to %s failed: %s", model, exc)
        raise classify_error(exc) from exc

    return Completion(
        text=_message_text(response),
        url_context=extract_url_context(response),
        grounding_urls=extract_grounding_urls(response),
    )


def stream(
    model: str,
    messages: list[dict],
    *,
    tools: list[dict] | None = None,
    settings_path: Path | None = None,
) -> Iterator[StreamFragment]:
    """Token-streamed generation.

    Yields fragments in backend emission order. The sequence is finite and not
    restartable; issue a new call to retry.

    Raises:
        MissingApiKeyError, QuotaExceededError, GenerationError
    """
    backend = get_backend(model, settings_path)
    kwargs: dict[str, Any] = {"stream": True}
    if tools:
        kwargs["tools"] = tools
    try:
        response = backend.completion(messages, **kwargs)
        for chunk in response:
            yield StreamFragment(text=_delta_text(chunk), url_context=extract_url_context(chunk))
    except Exception as exc:
        log.error("Streaming call to %s failed: %s", model, exc)
        raise classify_error(exc) from exc


# ------------------------------------------------------------------
# Response helpers
# ------------------------------------------------------------------


def _message_text(response: Any) -> str:
    try:
        return response.choices[0].message.content or ""
    except (AttributeError, IndexError, TypeError):
        return ""


def _delta_text(chunk: Any) -> str:
    try:
        return chunk.choices[0].delta.content or ""
    except (AttributeError, IndexError, TypeError):
        return ""


def _provider_field(response: Any, name: str) -> Any:
    """Read a provider-specific field LiteLLM attaches to a response or chunk."""
    hidden = getattr(response, "_hidden_params", None)
    if isinstance(hidden, dict) and hidden.get(name):
        return hidden[name]
    value = getattr(response, name, None)
    if isinstance(value, (list, dict)):
        return value
    return None


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    if isinstance(value, list):
        return value
    return []


def extract_url_context(response: Any) -> list[UrlContextItem] | None:
    """Return the URL retrieval statuses of the first candidate, if any."""
    for entry in _as_list(_provider_field(response, "vertex_ai_url_context_metadata")):
        if not isinstance(entry, dict):
            continue
        raw = entry.get("urlMetadata") or entry.get("url_metadata")
        if raw:
            return [UrlContextItem.from_dict(item) for item in raw if isinstance(item, dict)]
    return None


def extract_grounding_urls(response: Any) -> list[str]:
    """Return the web citation URIs of the first grounded candidate (may repeat)."""
    for entry in _as_list(_provider_field(response, "vertex_ai_grounding_metadata")):
        if not isinstance(entry, dict):
            continue
        chunks = entry.get("groundingChunks") or entry.get("grounding_chunks")
        if not chunks:
            continue
        uris: list[str] = []
        for chunk in chunks:
            web = chunk.get("web") if isinstance(chunk, dict) else None
            if isinstance(web, dict) and web.get("uri"):
                uris.append(str(web["uri"]))
        return uris
    return []
