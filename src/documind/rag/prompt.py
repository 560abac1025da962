"""Prompt composer: a user query plus the URLs the answer must be grounded on."""

from __future__ import annotations

CONTEXT_HEADER = "[CONTEXT] Relevant URLs:"


def compose_prompt(query: str, urls: list[str]) -> str:
    """Return the text prompt for *query* with *urls* appended as context.

    URLs are passed through verbatim: no truncation, escaping or
    deduplication. With no URLs the query is returned unchanged.
    """
    if not urls:
        return query
    url_list = "\n".join(urls)
    return f"{query}\n\n{CONTEXT_HEADER}\n{url_list}"
