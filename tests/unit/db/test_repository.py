"""Tests for the Repository pattern."""

from __future__ import annotations

import pytest

from documind.db.repository import PersistenceError, Repository


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


@pytest.fixture
def session_id(repo):
    return repo.create_session("u1", "How do I stream...").id


# ------------------------------------------------------------------
# URL groups
# ------------------------------------------------------------------

def test_create_and_get_group(repo):
    group = repo.create_group("u1", "Docs")
    fetched = repo.get_group(group.id)
    assert fetched is not None
    assert fetched.name == "Docs"
    assert fetched.user_id == "u1"
    assert fetched.urls == []


def test_get_group_not_found(repo):
    assert repo.get_group("nonexistent") is None


def test_list_groups_scoped_to_user_oldest_first(repo):
    a = repo.create_group("u1", "A")
    b = repo.create_group("u1", "B")
    repo.create_group("u2", "Other")
    assert [g.id for g in repo.list_groups("u1")] == [a.id, b.id]


def test_list_groups_includes_urls(repo):
    group = repo.create_group("u1", "Docs")
    repo.add_urls(group.id, ["https://a.dev", "https://b.dev"])
    assert repo.list_groups("u1")[0].urls == ["https://a.dev", "https://b.dev"]


def test_rename_group(repo):
    group = repo.create_group("u1", "Old")
    repo.rename_group(group.id, "New")
    assert repo.get_group(group.id).name == "New"


def test_rename_missing_group_raises(repo):
    with pytest.raises(PersistenceError):
        repo.rename_group("nope", "New")


def test_delete_group_removes_its_urls(repo, tmp_db):
    group = repo.create_group("u1", "Docs")
    repo.add_urls(group.id, ["https://a.dev", "https://b.dev"])

    removed = repo.delete_group(group.id)

    assert removed == 2
    assert repo.get_group(group.id) is None
    count = tmp_db.execute(
        "SELECT COUNT(*) FROM group_urls WHERE group_id = ?", (group.id,)
    ).fetchone()[0]
    assert count == 0


def test_delete_missing_group_raises_and_keeps_data(repo):
    keep = repo.create_group("u1", "Keep")
    repo.add_url(keep.id, "https://a.dev")
    with pytest.raises(PersistenceError):
        repo.delete_group("nope")
    assert repo.list_urls(keep.id) == ["https://a.dev"]


# ------------------------------------------------------------------
# Group URLs
# ------------------------------------------------------------------

def test_add_url_preserves_order(repo):
    group = repo.create_group("u1", "Docs")
    for url in ("https://c.dev", "https://a.dev", "https://b.dev"):
        repo.add_url(group.id, url)
    assert repo.list_urls(group.id) == ["https://c.dev", "https://a.dev", "https://b.dev"]


def test_add_url_to_missing_group_raises(repo):
    with pytest.raises(PersistenceError):
        repo.add_url("nope", "https://a.dev")


def test_remove_url_returns_rowcount(repo):
    group = repo.create_group("u1", "Docs")
    repo.add_url(group.id, "https://a.dev")
    assert repo.remove_url(group.id, "https://a.dev") == 1
    assert repo.remove_url(group.id, "https://a.dev") == 0
    assert repo.list_urls(group.id) == []


# ------------------------------------------------------------------
# Chat sessions
# ------------------------------------------------------------------

def test_create_and_get_session(repo):
    session = repo.create_session("u1", "Title")
    fetched = repo.get_session(session.id)
    assert fetched is not None
    assert fetched.title == "Title"
    assert fetched.created_at


def test_list_sessions_newest_first(repo):
    first = repo.create_session("u1", "first")
    second = repo.create_session("u1", "second")
    repo.create_session("u2", "other user")
    assert [s.id for s in repo.list_sessions("u1")] == [second.id, first.id]


def test_rename_session(repo, session_id):
    repo.rename_session(session_id, "Renamed")
    assert repo.get_session(session_id).title == "Renamed"


def test_rename_missing_session_raises(repo):
    with pytest.raises(PersistenceError):
        repo.rename_session("nope", "x")


def test_delete_session_cascades_messages(repo, session_id):
    message = repo.add_message(session_id, "user", "hi")
    repo.delete_session(session_id)
    assert repo.get_session(session_id) is None
    assert repo.get_message(message.id) is None


# ------------------------------------------------------------------
# Chat messages
# ------------------------------------------------------------------

def test_add_message_returns_record_with_id(repo, session_id):
    record = repo.add_message(session_id, "user", "hello", client_token="tok-1")
    assert record.id
    assert record.sender == "user"
    assert record.content == "hello"
    assert record.metadata is None
    assert record.client_token == "tok-1"


def test_add_message_serializes_metadata(repo, session_id):
    meta = {"isSourceConfirmationPending": True, "sourceSelection": {"originalQuery": "q", "urls": []}}
    record = repo.add_message(session_id, "model", "", meta)
    assert record.metadata_dict == meta


def test_add_message_unknown_sender_raises(repo, session_id):
    with pytest.raises(PersistenceError):
        repo.add_message(session_id, "robot", "beep")


def test_add_message_missing_session_raises(repo):
    with pytest.raises(PersistenceError):
        repo.add_message("nope", "user", "hi")


def test_list_messages_in_creation_order(repo, session_id):
    ids = [repo.add_message(session_id, "user", str(i)).id for i in range(5)]
    assert [m.id for m in repo.list_messages(session_id)] == ids


def test_get_message_by_token(repo, session_id):
    record = repo.add_message(session_id, "model", "", client_token="abc")
    found = repo.get_message_by_token("abc")
    assert found is not None
    assert found.id == record.id
    assert repo.get_message_by_token("missing") is None


def test_update_message_overwrites_content_and_metadata(repo, session_id):
    record = repo.add_message(session_id, "model", "", {"isSourceConfirmationPending": True})
    repo.update_message(record.id, "answer", {"isSourceConfirmationPending": False})
    updated = repo.get_message(record.id)
    assert updated.content == "answer"
    assert updated.metadata_dict == {"isSourceConfirmationPending": False}


def test_update_missing_message_raises(repo):
    with pytest.raises(PersistenceError):
        repo.update_message("nope", "x", None)


def test_get_metadata(repo, session_id):
    with_meta = repo.add_message(session_id, "model", "a", {"feedback": None})
    without = repo.add_message(session_id, "user", "q")
    assert repo.get_metadata(with_meta.id) == {"feedback": None}
    assert repo.get_metadata(without.id) == {}
    assert repo.get_metadata("nope") is None


def test_update_metadata(repo, session_id):
    record = repo.add_message(session_id, "model", "a", {"feedback": None})
    repo.update_metadata(record.id, {"feedback": "positive"})
    assert repo.get_metadata(record.id) == {"feedback": "positive"}


def test_update_metadata_missing_raises(repo):
    with pytest.raises(PersistenceError):
        repo.update_metadata("nope", {})


# ------------------------------------------------------------------
# Locked database
# ------------------------------------------------------------------


def test_locked_update_metadata_raises_persistence_error(repo, session_id, lock_database):
    msg = repo.add_message(session_id, "model", "answer", {"feedback": None})
    lock_database(repo)
    with pytest.raises(PersistenceError, match="database is locked"):
        repo.update_metadata(msg.id, {"feedback": "positive"})


def test_locked_writes_all_raise_persistence_error(repo, session_id, lock_database):
    group = repo.create_group("u1", "Docs")
    msg = repo.add_message(session_id, "user", "hi")
    lock_database(repo)
    writes = [
        lambda: repo.create_group("u1", "Other"),
        lambda: repo.rename_group(group.id, "Renamed"),
        lambda: repo.delete_group(group.id),
        lambda: repo.add_url(group.id, "https://a.dev"),
        lambda: repo.add_urls(group.id, ["https://a.dev"]),
        lambda: repo.remove_url(group.id, "https://a.dev"),
        lambda: repo.create_session("u1", "t"),
        lambda: repo.rename_session(session_id, "t"),
        lambda: repo.delete_session(session_id),
        lambda: repo.add_message(session_id, "user", "again"),
        lambda: repo.update_message(msg.id, "x", None),
    ]
    for write in writes:
        with pytest.raises(PersistenceError):
            write()


def test_locked_write_leaves_data_unchanged(repo, session_id, lock_database):
    group = repo.create_group("u1", "Docs")
    lock_database(repo)
    with pytest.raises(PersistenceError):
        repo.rename_group(group.id, "Renamed")
    assert repo.get_group(group.id).name == "Docs"
