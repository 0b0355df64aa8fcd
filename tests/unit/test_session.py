"""
tests/unit/test_session.py — Unit tests for agent/session.py

Covers: Session defaults, reset(), rearm(), record_search() reference
        dedup and count/history coupling, merge begin/commit/rollback,
        is_running, SessionStore.
"""

import pytest

from agent.session import (
    Reference,
    Session,
    SessionStatus,
    SessionStore,
    WAITING_MESSAGE,
)
from tools.search import SearchItem


# ── Fixtures ──────────────────────────────────────────────────────────────────

def make_session(**kwargs) -> Session:
    return Session(session_id="tab-1", location="https://example.com/a", **kwargs)


def item(n: int, title: str | None = None) -> SearchItem:
    return SearchItem(title=title or f"Source {n}", url=f"https://s{n}.com/")


# ── Defaults ──────────────────────────────────────────────────────────────────

class TestSessionDefaults:
    def test_fresh_session(self):
        s = make_session()
        assert s.status == SessionStatus.IDLE
        assert s.status_message == WAITING_MESSAGE
        assert s.generation == 0
        assert s.intent == ""
        assert s.search_count == 0
        assert s.references == {}
        assert s.analyzable is True
        assert s.token.revoked is False

    def test_status_is_string_enum(self):
        assert SessionStatus.FETCHING_PAGE == "fetching_page"
        assert SessionStatus("interrupted") is SessionStatus.INTERRUPTED


# ── reset / rearm ─────────────────────────────────────────────────────────────

class TestReset:
    def test_bumps_generation_and_revokes_token(self):
        s = make_session()
        old_token = s.token
        s.reset()
        assert s.generation == 1
        assert old_token.revoked is True
        assert s.token is not old_token
        assert s.token.revoked is False

    def test_clears_knowledge(self):
        s = make_session(intent="x", summary="y", pending_query="q", error="boom")
        s.record_search("q", [item(1)])
        s.analyzable = False
        s.set_status(SessionStatus.ERROR, "boom")

        s.reset()

        assert s.intent == ""
        assert s.summary == ""
        assert s.search_history == []
        assert s.search_count == 0
        assert s.references == {}
        assert s.pending_query == ""
        assert s.error == ""
        assert s.analyzable is True
        assert s.status == SessionStatus.IDLE
        assert s.status_message == WAITING_MESSAGE

    def test_new_location(self):
        s = make_session()
        s.reset("https://example.com/b")
        assert s.location == "https://example.com/b"

    def test_location_kept_when_not_given(self):
        s = make_session()
        s.reset()
        assert s.location == "https://example.com/a"

    def test_idempotent(self):
        s = make_session()
        s.reset()
        s.reset()
        assert s.generation == 2
        assert s.intent == ""


class TestRearm:
    def test_live_token_kept(self):
        s = make_session()
        token = s.token
        assert s.rearm() is token

    def test_revoked_token_replaced(self):
        s = make_session()
        old = s.token
        old.revoke()
        new = s.rearm()
        assert new is not old
        assert new.revoked is False
        assert s.token is new


# ── record_search ─────────────────────────────────────────────────────────────

class TestRecordSearch:
    def test_history_and_count_move_together(self):
        s = make_session()
        s.record_search("q1", [item(1)])
        s.record_search("q2", [])
        assert s.search_history == ["q1", "q2"]
        assert s.search_count == 2

    def test_references_deduplicated_by_url(self):
        s = make_session()
        s.record_search("q1", [item(1), item(2)])
        s.record_search("q2", [item(2), item(3)])
        assert [r.url for r in s.reference_list] == [
            "https://s1.com/", "https://s2.com/", "https://s3.com/",
        ]

    def test_first_seen_title_wins(self):
        s = make_session()
        s.record_search("q1", [item(1, "Original")])
        s.record_search("q2", [item(1, "Renamed")])
        assert s.references["https://s1.com/"] == Reference("Original", "https://s1.com/")


# ── merge bookkeeping ─────────────────────────────────────────────────────────

class TestMerge:
    def test_commit(self):
        s = make_session(summary="old")
        assert s.begin_merge() == "old"
        s.summary = "partial..."
        s.commit_merge("new")
        assert s.summary == "new"
        assert s.merge_base is None

    def test_rollback_restores_pre_merge_summary(self):
        s = make_session(summary="old")
        s.begin_merge()
        s.summary = "half writ"
        s.rollback_merge()
        assert s.summary == "old"

    def test_rollback_without_merge_is_noop(self):
        s = make_session(summary="kept")
        s.rollback_merge()
        assert s.summary == "kept"


# ── is_running / is_terminal ──────────────────────────────────────────────────

class TestRunningFlags:
    def test_running_while_loop_token_is_live_token(self):
        s = make_session()
        s.loop_token = s.token
        assert s.is_running is True

    def test_not_running_after_revoke(self):
        s = make_session()
        s.loop_token = s.token
        s.token.revoke()
        assert s.is_running is False

    def test_not_running_after_rearm(self):
        s = make_session()
        s.loop_token = s.token
        s.token.revoke()
        s.rearm()
        assert s.is_running is False

    @pytest.mark.parametrize("status", [SessionStatus.COMPLETE, SessionStatus.ERROR])
    def test_terminal(self, status):
        s = make_session()
        s.set_status(status, "")
        assert s.is_terminal is True

    def test_interrupted_not_terminal(self):
        s = make_session()
        s.set_status(SessionStatus.INTERRUPTED, "")
        assert s.is_terminal is False


# ── SessionStore ──────────────────────────────────────────────────────────────

class TestSessionStore:
    def test_create_then_get(self):
        store = SessionStore()
        s = store.create("tab-1", "https://a.com/")
        assert store.get("tab-1") is s
        assert "tab-1" in store
        assert len(store) == 1

    def test_create_returns_existing(self):
        store = SessionStore()
        first = store.create("tab-1", "https://a.com/")
        assert store.create("tab-1", "https://b.com/") is first
        assert first.location == "https://a.com/"

    def test_remove(self):
        store = SessionStore()
        s = store.create("tab-1")
        assert store.remove("tab-1") is s
        assert store.get("tab-1") is None
        assert store.remove("tab-1") is None

    def test_iteration_is_snapshot(self):
        store = SessionStore()
        store.create("a")
        store.create("b")
        for s in store:
            store.remove(s.session_id)
        assert len(store) == 0
