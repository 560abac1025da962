"""Tests for the chat view model."""

from __future__ import annotations

import pytest

from documind.chat.messages import AnalyzingSources, PendingSourceConfirmation, UserMessage
from documind.chat.view_model import DEFAULT_TITLE, ChatViewModel
from documind.db.models import URLGroup


def test_defaults():
    view = ChatViewModel()
    assert view.session_id is None
    assert view.session_title == DEFAULT_TITLE
    assert view.messages == []
    assert not view.busy


@pytest.mark.parametrize("flag", ["is_loading", "is_fetching_suggestions"])
def test_busy_flags(flag):
    view = ChatViewModel()
    setattr(view, flag, True)
    assert view.busy


def test_find_by_token_then_by_id():
    view = ChatViewModel()
    message = view.append(UserMessage(text="hi"))
    assert view.find(message.token) is message
    view.assign_id(message.token, "remote-1")
    assert view.find("remote-1") is message
    assert view.find("missing") is None


def test_replace_keeps_token_id_and_timestamp():
    view = ChatViewModel()
    placeholder = view.append(AnalyzingSources(query="q"))
    view.assign_id(placeholder.token, "remote-1")

    pending = view.replace(placeholder.token, PendingSourceConfirmation(query="q"))

    assert view.messages == [pending]
    assert pending.token == placeholder.token
    assert pending.id == "remote-1"
    assert pending.timestamp == placeholder.timestamp


def test_replace_unknown_ref_raises():
    with pytest.raises(KeyError):
        ChatViewModel().replace("nope", UserMessage(text="x"))


def test_assign_id_unknown_token():
    assert ChatViewModel().assign_id("nope", "id") is False


def test_reset_copies_list():
    view = ChatViewModel()
    initial = [UserMessage(text="a")]
    view.reset(initial)
    view.append(UserMessage(text="b"))
    assert len(initial) == 1


def test_active_group_and_urls():
    view = ChatViewModel()
    view.groups = [URLGroup(id="g1", name="A", urls=["https://a"]), URLGroup(id="g2", name="B")]
    assert view.active_group is None
    assert view.active_urls == []
    view.active_group_id = "g1"
    assert view.active_group.name == "A"
    urls = view.active_urls
    urls.append("https://mutated")
    assert view.active_group.urls == ["https://a"]
