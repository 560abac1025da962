"""URL group management: CRUD over groups and their URLs, kept in sync with the view."""

from __future__ import annotations

import logging
from urllib.parse import urlparse

from documind.chat.view_model import ChatViewModel
from documind.config import MAX_URLS_PER_GROUP
from documind.db.models import URLGroup
from documind.db.repository import PersistenceError, Repository

log = logging.getLogger(__name__)

GEMINI_DOCS_URLS = [
    "https://ai.google.dev/gemini-api/docs",
    "https://ai.google.dev/gemini-api/docs/quickstart",
    "https://ai.google.dev/gemini-api/docs/models",
]

MODEL_CAPABILITIES_URLS = [
    "https://ai.google.dev/gemini-api/docs/text-generation",
    "https://ai.google.dev/gemini-api/docs/image-generation",
    "https://ai.google.dev/gemini-api/docs/function-calling",
]

DEFAULT_GROUPS: list[tuple[str, list[str]]] = [
    ("Gemini Docs Overview", GEMINI_DOCS_URLS),
    ("Model Capabilities", MODEL_CAPABILITIES_URLS),
]


class GroupError(ValueError):
    """A group or URL edit was rejected; the message is shown to the user."""


def is_valid_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class GroupManager:
    """Applies group edits to the repository, then mirrors them into the view."""

    def __init__(
        self,
        repo: Repository,
        view: ChatViewModel,
        user_id: str,
        max_urls: int = MAX_URLS_PER_GROUP,
    ) -> None:
        self.repo = repo
        self.view = view
        self.user_id = user_id
        self.max_urls = max_urls

    def load(self, *, seed: bool = True) -> list[URLGroup]:
        """Fetch the user's groups, seeding the defaults for a new user."""
        groups = self.repo.list_groups(self.user_id)
        if not groups and seed:
            self.seed_defaults()
            groups = self.repo.list_groups(self.user_id)
        self.view.groups = groups
        if self.view.get_group(self.view.active_group_id or "") is None:
            self.view.active_group_id = groups[0].id if groups else None
        return groups

    def seed_defaults(self) -> None:
        for name, urls in DEFAULT_GROUPS:
            group = self.repo.create_group(self.user_id, name)
            self.repo.add_urls(group.id, urls)
        log.info("Seeded %d default URL groups for %s", len(DEFAULT_GROUPS), self.user_id)

    def find(self, name_or_id: str) -> URLGroup | None:
        """Look a group up by id, then by exact name."""
        group = self.view.get_group(name_or_id)
        if group is not None:
            return group
        return next((g for g in self.view.groups if g.name == name_or_id), None)

    def select_group(self, group_id: str) -> URLGroup:
        group = self.view.get_group(group_id)
        if group is None:
            raise GroupError(f"No URL group with id '{group_id}'.")
        self.view.active_group_id = group.id
        return group

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def create_group(self, name: str) -> URLGroup:
        """Create an empty group and make it active."""
        name = name.strip()
        if not name:
            raise GroupError("Group name cannot be empty")
        try:
            group = self.repo.create_group(self.user_id, name)
        except PersistenceError as exc:
            raise GroupError("Failed to create group") from exc
        self.view.groups.append(group)
        self.view.active_group_id = group.id
        return group

    def rename_group(self, group_id: str, name: str) -> None:
        """Rename a group in the database, then in the view.

        Raises:
            GroupError: If *name* is blank.
            PersistenceError: If the update fails. The view is left unchanged.
        """
        name = name.strip()
        if not name:
            raise GroupError("Group name cannot be empty")
        try:
            self.repo.rename_group(group_id, name)
        except PersistenceError as exc:
            log.error("Error renaming group: %s", exc)
            raise
        group = self.view.get_group(group_id)
        if group is not None:
            group.name = name

    def delete_group(self, group_id: str) -> None:
        """Delete a group and its URLs; move the active pointer if needed.

        Raises:
            PersistenceError: If the delete fails. The view is left unchanged.
        """
        try:
            removed = self.repo.delete_group(group_id)
        except PersistenceError as exc:
            log.error("Error deleting group: %s", exc)
            raise
        log.info("Deleted group %s with %d URLs", group_id, removed)
        remaining = [g for g in self.view.groups if g.id != group_id]
        self.view.groups = remaining
        if self.view.active_group_id == group_id:
            self.view.active_group_id = remaining[0].id if remaining else None

    # ------------------------------------------------------------------
    # URLs of the active group
    # ------------------------------------------------------------------

    def add_url(self, url: str) -> None:
        """Validate and append *url* to the active group."""
        group = self.view.active_group
        if group is None:
            raise GroupError("Please create or select a group first.")
        url = url.strip()
        if not url:
            raise GroupError("URL cannot be empty.")
        if not is_valid_url(url):
            raise GroupError("Invalid URL format. Please include http:// or https://")
        if len(group.urls) >= self.max_urls:
            raise GroupError(
                f"You can add a maximum of {self.max_urls} URLs to the current group."
            )
        if url in group.urls:
            raise GroupError("This URL has already been added to the current group.")
        try:
            self.repo.add_url(group.id, url)
        except PersistenceError as exc:
            raise GroupError("Failed to add URL") from exc
        group.urls.append(url)

    def remove_url(self, url: str) -> bool:
        group = self.view.active_group
        if group is None:
            return False
        try:
            removed = self.repo.remove_url(group.id, url)
        except PersistenceError as exc:
            raise GroupError("Failed to remove URL") from exc
        if removed == 0:
            return False
        group.urls = [u for u in group.urls if u != url]
        return True

    def import_urls(self, urls: list[str]) -> list[str]:
        """Add search-discovered *urls* not already in the active group.

        URLs rejected by validation (invalid, group full) are skipped.
        Returns the URLs actually added.
        """
        added: list[str] = []
        for url in urls:
            try:
                self.add_url(url)
            except GroupError as exc:
                log.info("Skipping %s: %s", url, exc)
                continue
            added.append(url)
        return added
