"""
agent/session.py — Session dataclass, SessionStatus enum, SessionStore.

Design principles:
  - A dataclass, not a dict — typos become AttributeError, not silent new keys
  - One Session per observed page, keyed by an opaque session id
  - Explicit status machine — no ambiguity about where in the loop we are
  - An explicit SessionStore owned by the orchestrator, no module globals

Key design decisions:

  generation:
    Every reset and every destroy bumps it. A loop binds the value when it
    starts and compares before every mutation. A mismatch means the page
    changed underneath it: the loop's result is stale and is dropped.

  token:
    Revoked on reset, destroy and interrupt. rearm() swaps in a fresh one
    when a loop starts after a revocation, so the new loop is never
    cancelled by the old revocation and the old loop can never pass the
    identity check against the new token.

  references:
    Keyed by url in insertion order. The summary is rewritten from
    scratch on every merge, so this dict is the durable record of which
    sources were used. It only ever grows within a generation, and the
    first title seen for a url wins.

  search_count:
    Always len(search_history). record_search() is the only writer of
    both, so they cannot drift.

USAGE:
  from agent.session import Session, SessionStatus, SessionStore

  store = SessionStore()
  session = store.create("tab-1", "https://example.com/article")
  session.record_search("solid state batteries", [SearchItem(...)])
  session.set_status(SessionStatus.SUMMARIZING, "Updating summary...")
  print(session.reference_list)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator

from agent.cancellation import CancellationToken

WAITING_MESSAGE = "Waiting..."


# ── Status enum ────────────────────────────────────────────────────────────────

class SessionStatus(str, Enum):
    """
    The lifecycle of one session's research loop.

    IDLE              → nothing running (fresh, or page not analyzable)
    FETCHING_PAGE     → reading the observed page
    INFERRING_INTENT  → asking the model what the reader wants to learn
    PLANNING          → asking the model whether to search again
    SEARCHING         → running one search and its page scrapes
    SUMMARIZING       → streaming the merged summary
    COMPLETE          → planner said stop, or the search cap was reached
    ERROR             → backend or search failure, message in session.error
    INTERRUPTED       → another page took focus; knowledge is kept
    """
    IDLE             = "idle"
    FETCHING_PAGE    = "fetching_page"
    INFERRING_INTENT = "inferring_intent"
    PLANNING         = "planning"
    SEARCHING        = "searching"
    SUMMARIZING      = "summarizing"
    COMPLETE         = "complete"
    ERROR            = "error"
    INTERRUPTED      = "interrupted"


TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETE, SessionStatus.ERROR})


# ── Reference ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Reference:
    """A source that contributed to the summary."""
    title: str
    url: str


# ── Session ────────────────────────────────────────────────────────────────────

@dataclass
class Session:
    """
    The complete research state for one observed page.

    Mutated only by the loop whose generation and token still match.
    The orchestrator checks that; this class does not.
    """

    session_id: str
    location: str = ""
    """Expected page location. Content reads must report this (or a longer form of it)."""

    generation: int = 0
    token: CancellationToken = field(default_factory=CancellationToken)

    # ── Knowledge ──────────────────────────────────────────────────────────────
    intent: str = ""
    """Empty until the first inference completes. Fixed until the next reset."""

    summary: str = ""
    search_history: list[str] = field(default_factory=list)
    references: dict[str, Reference] = field(default_factory=dict)
    search_count: int = 0
    pending_query: str = ""
    """First query proposed by intent inference, consumed by the next search."""

    merge_base: str | None = None
    """Summary as it was before the merge now streaming into `summary`, else None."""

    page_title: str = ""

    # ── Status ─────────────────────────────────────────────────────────────────
    status: SessionStatus = SessionStatus.IDLE
    status_message: str = WAITING_MESSAGE
    error: str = ""
    analyzable: bool = True
    """False once the page is classified not-analyzable. The loop does not retry it."""

    loop_token: CancellationToken | None = None
    """Token of the loop currently running, None when no loop is active."""

    updated_at: float = field(default_factory=time.time)

    # ── Lifecycle ──────────────────────────────────────────────────────────────

    def reset(self, location: str | None = None) -> None:
        """
        Start over for a new page: bump the generation, revoke the token,
        clear everything else. Safe to call on a fresh session.
        """
        self.generation += 1
        self.token.revoke()
        self.token = CancellationToken()
        if location is not None:
            self.location = location
        self.intent = ""
        self.summary = ""
        self.search_history = []
        self.references = {}
        self.search_count = 0
        self.pending_query = ""
        self.merge_base = None
        self.page_title = ""
        self.status = SessionStatus.IDLE
        self.status_message = WAITING_MESSAGE
        self.error = ""
        self.analyzable = True
        self.loop_token = None
        self.touch()

    def rearm(self) -> CancellationToken:
        """Replace a revoked token with a fresh one. Returns the current token."""
        if self.token.revoked:
            self.token = CancellationToken()
        return self.token

    # ── Mutation helpers ───────────────────────────────────────────────────────

    def record_search(self, query: str, sources: Iterable) -> None:
        """
        Commit one search: history, count and references move together.

        sources: anything with .title and .url (SearchItem, Reference).
        """
        self.search_history.append(query)
        self.search_count = len(self.search_history)
        for source in sources:
            if source.url not in self.references:
                self.references[source.url] = Reference(title=source.title, url=source.url)
        self.touch()

    # The summary streams in place while a merge runs. merge_base keeps the
    # last complete summary so an interrupted or failed merge leaves no half text.

    def begin_merge(self) -> str:
        self.merge_base = self.summary
        return self.merge_base

    def commit_merge(self, summary: str) -> None:
        self.summary = summary
        self.merge_base = None
        self.touch()

    def rollback_merge(self) -> None:
        if self.merge_base is not None:
            self.summary = self.merge_base
            self.merge_base = None
            self.touch()

    def set_status(self, status: SessionStatus, message: str = "") -> None:
        self.status = status
        self.status_message = message
        self.touch()

    def touch(self) -> None:
        self.updated_at = time.time()

    # ── Read helpers ───────────────────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        """A loop is active while its token is this session's live token."""
        return self.loop_token is not None and self.loop_token is self.token and not self.token.revoked

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def reference_list(self) -> list[Reference]:
        return list(self.references.values())


# ── SessionStore ───────────────────────────────────────────────────────────────

class SessionStore:
    """Session id → Session. Owned by one orchestrator."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def create(self, session_id: str, location: str = "") -> Session:
        """Return the existing session, or create one for `location`."""
        session = self._sessions.get(session_id)
        if session is None:
            session = Session(session_id=session_id, location=location)
            self._sessions[session_id] = session
        elif location and not session.location:
            session.location = location
        return session

    def remove(self, session_id: str) -> Session | None:
        return self._sessions.pop(session_id, None)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))

    def __len__(self) -> int:
        return len(self._sessions)
