"""Generation operations: grounded answers, suggestions, URL ranking and discovery.

Answer paths propagate MissingApiKeyError / QuotaExceededError /
GenerationError. Suggestions, relevance ranking and discovery are best-effort:
they log and degrade to a fallback value instead of raising.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from documind.config import DEFAULT_MODEL
from documind.rag.llm_client import (
    URL_CONTEXT_TOOL,
    WEB_SEARCH_TOOL,
    MissingApiKeyError,
    StreamFragment,
    UrlContextItem,
    complete,
    stream,
)
from documind.rag.prompt import compose_prompt

log = logging.getLogger(__name__)

NOT_FOUND_ANSWER = "I cannot find this information in the documentation."

SYSTEM_INSTRUCTION = f"""You are "Documind", an expert Technical Documentation Assistant. Your goal is to help developers implement SDKs and APIs by answering questions strictly based on the provided reference material.

CORE DIRECTIVES
1.  **Strict Grounding:** Answer **only** using the provided [CONTEXT]. Do not use outside knowledge.
2.  **No Hallucinations:** If the answer is not in the context, state: *"{NOT_FOUND_ANSWER}"* Do not invent parameters or endpoints.
3.  **Code First:** Prioritize code examples. Ensure all code is syntactically correct and uses appropriate Markdown tags (e.g., python, bash).
4.  **Version Awareness:** Pay attention to version numbers in the context. If the user does not specify a version, assume the latest available in the context and note this assumption.

RESPONSE RULES
*   **Citation:** End every response with a reference to the source file or section title found in the context.
    *   *Format:* > Source: [Section Title / File Name]
*   **Style:** Technical, direct, and concise. No conversational filler.
*   **Ambiguity:** If the user's question is vague, ask for clarification regarding the specific language or framework version.

OUTPUT FORMAT
*   **Text:** Clear explanations of logical steps.
*   **Code:** Copy-paste ready snippets with comments explaining complex lines.
*   **Links:** If a URL is present in the context, provide it as a reference."""

NO_URLS_SUGGESTION = "Add some URLs to get topic suggestions."
MAX_SUGGESTIONS = 4
MAX_DISCOVERED_URLS = 5
RELEVANCE_SHORTCUT = 3

_FENCE_RE = re.compile(r"^```(\w*)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)


@dataclass
class Answer:
    text: str
    url_context: list[UrlContextItem] | None = None


def _answer_messages(query: str, urls: list[str]) -> list[dict]:
    return [
        {"role": "system", "content": SYSTEM_INSTRUCTION},
        {"role": "user", "content": compose_prompt(query, urls)},
    ]


# ------------------------------------------------------------------
# Answers
# ------------------------------------------------------------------


def answer(
    query: str,
    urls: list[str],
    *,
    model: str = DEFAULT_MODEL,
    settings_path: Path | None = None,
) -> Answer:
    """Return the full grounded answer for *query* with the URL-context tool on."""
    result = complete(
        model,
        _answer_messages(query, urls),
        tools=[URL_CONTEXT_TOOL],
        settings_path=settings_path,
    )
    return Answer(text=result.text, url_context=result.url_context)


def answer_stream(
    query: str,
    urls: list[str],
    *,
    model: str = DEFAULT_MODEL,
    settings_path: Path | None = None,
) -> Iterator[StreamFragment]:
    """Stream the grounded answer for *query* as ordered text fragments."""
    return stream(
        model,
        _answer_messages(query, urls),
        tools=[URL_CONTEXT_TOOL],
        settings_path=settings_path,
    )


# ------------------------------------------------------------------
# JSON helpers
# ------------------------------------------------------------------


def strip_code_fence(text: str) -> str:
    """Remove a surrounding Markdown code fence (```json ... ```), if present."""
    clean = text.strip()
    match = _FENCE_RE.match(clean)
    if match and match.group(2):
        return match.group(2).strip()
    return clean


def _load_json_object(text: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(strip_code_fence(text))
    except (json.JSONDecodeError, TypeError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _string_list(value: Any) -> list[str] | None:
    if not isinstance(value, list):
        return None
    return [v for v in value if isinstance(v, str)]


# ------------------------------------------------------------------
# Suggestions
# ------------------------------------------------------------------


def parse_suggestions(text: str) -> list[str]:
    """Parse ``{"suggestions": [...]}``; anything unusable yields []."""
    parsed = _load_json_object(text)
    if parsed is None:
        return []
    return (_string_list(parsed.get("suggestions")) or [])[:MAX_SUGGESTIONS]


def initial_suggestions(
    urls: list[str],
    *,
    model: str = DEFAULT_MODEL,
    settings_path: Path | None = None,
) -> list[str]:
    """Return 3–4 starter questions for the documents behind *urls*."""
    if not urls:
        return [NO_URLS_SUGGESTION]

    url_list = "\n".join(urls)
    prompt = (
        "Based on the content of the following documentation URLs, provide 3-4 concise "
        "and actionable questions a developer might ask to explore these documents. "
        "These questions should be suitable as quick-start prompts. Return ONLY a JSON "
        'object with a key "suggestions" containing an array of these question strings. '
        'For example: {"suggestions": ["What are the rate limits?", '
        '"How do I get an API key?", "Explain model X."]}\n\n'
        f"Relevant URLs:\n{url_list}"
    )
    try:
        result = complete(
            model,
            [{"role": "user", "content": prompt}],
            json_response=True,
            settings_path=settings_path,
        )
    except Exception as exc:
        log.warning("Suggestion request failed, showing none: %s", exc)
        return []
    return parse_suggestions(result.text)


# ------------------------------------------------------------------
# Relevant-URL identification
# ------------------------------------------------------------------


def identify_relevant_urls(
    query: str,
    urls: list[str],
    *,
    model: str = DEFAULT_MODEL,
    shortcut: int = RELEVANCE_SHORTCUT,
    settings_path: Path | None = None,
) -> list[str]:
    """Return the subset of *urls* most likely to answer *query*.

    Lists of *shortcut* entries or fewer are returned unchanged without a
    backend call. Any failure degrades to the full input list.
    """
    if not urls:
        return []
    if len(urls) <= shortcut:
        return list(urls)

    url_list = "\n".join(urls)
    prompt = (
        "You are an expert research assistant.\n"
        f'User Query: "{query}"\n\n'
        f"Available Sources:\n{url_list}\n\n"
        "Task: Analyze the user query and identify which of the provided URLs are most "
        "likely to contain the answer.\n"
        'Return a JSON object with a key "relevant_urls" containing an array of the '
        "relevant URL strings.\n"
        "Select all that apply. If the query is broad, you may select multiple top-level pages.\n\n"
        "JSON Response:"
    )
    try:
        result = complete(
            model,
            [{"role": "user", "content": prompt}],
            json_response=True,
            settings_path=settings_path,
        )
    except Exception as exc:
        log.warning("Failed to identify relevant URLs, defaulting to all: %s", exc)
        return list(urls)

    parsed = _load_json_object(result.text)
    relevant = _string_list(parsed.get("relevant_urls")) if parsed else None
    if not relevant:
        log.warning("Relevance response unusable, defaulting to all URLs.")
        return list(urls)
    return relevant


# ------------------------------------------------------------------
# Search-based URL discovery
# ------------------------------------------------------------------


def parse_search_urls(text: str, grounding_urls: list[str] | None = None) -> list[str]:
    """Parse ``{"urls": [...]}`` from *text*, falling back to grounding citations.

    The fallback keeps the first occurrence of each citation and at most
    five of them.
    """
    if text:
        parsed = _load_json_object(text)
        found = _string_list(parsed.get("urls")) if parsed else None
        if found is not None:
            return found
        log.warning("Could not parse URLs from search response; using citations.")

    unique = list(dict.fromkeys(grounding_urls or []))
    return unique[:MAX_DISCOVERED_URLS]


def discover_urls(
    topic: str,
    *,
    model: str = DEFAULT_MODEL,
    settings_path: Path | None = None,
) -> list[str]:
    """Use the backend's web search to find five authoritative URLs for *topic*.

    Raises:
        MissingApiKeyError: If no credential is configured. Every other
            failure returns [].
    """
    prompt = (
        "Find 5 official documentation, authoritative guides, or high-quality source URLs "
        f'for the following topic: "{topic}".\n\n'
        "Instructions:\n"
        "1. Use Google Search to find the most relevant and up-to-date sources.\n"
        "2. Prioritize official documentation (e.g., docs.python.org, react.dev, etc.).\n"
        '3. Return ONLY a JSON object with a single key "urls" containing an array of the '
        "5 best URL strings found.\n"
        "4. Do not include any markdown formatting or explanation outside the JSON.\n\n"
        "JSON Response:"
    )
    try:
        result = complete(
            model,
            [{"role": "user", "content": prompt}],
            tools=[WEB_SEARCH_TOOL],
            settings_path=settings_path,
        )
    except MissingApiKeyError:
        raise
    except Exception as exc:
        log.warning("URL discovery for %r failed: %s", topic, exc)
        return []
    return parse_search_urls(result.text, result.grounding_urls)
