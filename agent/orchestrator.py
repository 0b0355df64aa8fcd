"""
agent/orchestrator.py — Per-session research loop: page → intent → search ⟲ summarize.

THE LOOP (one start() call on one session):

  1. If the session has no intent yet:
       a. Content Provider reads the observed page
       b. IntentInferrer turns it into an intent (+ optional first query)
  2. While search_count < max_searches:
       a. Pick the next query:
            pending_query from intent inference, if there is one
            else the intent itself, if nothing was searched or summarized yet
            else ask the Planner — "no search" ends the loop as complete
       b. (optional) wait for the rate limiter
       c. Search Executor → combined text + scraped sources
       d. Commit: history, count, references (one step, never partial)
       e. Summarizer merges the text into the summary, streaming partials
  3. Reaching the cap ends the loop as complete.

STALENESS:
  The loop binds the session's generation and token when it starts.
  Every await is a point where the page may have changed. So before every
  mutation the loop re-checks: same Session object in the store, same
  generation, same token, token not revoked. Any mismatch raises
  OperationCancelled internally, and the loop exits without touching
  the session. This is what makes reset() safe while a loop is running.

FAILURE SEMANTICS (at the loop boundary):
  OperationCancelled       → silent exit, no mutation
  PageNotAnalyzableError   → status idle, quiet message, analyzable=False
  anything else            → status error, message in session.error

FOCUS:
  Only the focused session runs. focus() interrupts every other running
  session (knowledge kept, token revoked) and starts or resumes the
  focused one. Resuming never re-reads the page once the intent is set.
  Focusing a session on a different page (anything beyond the fragment)
  resets it first.

PROGRESS CALLBACK:
  Pass on_update=callable to get the session after every change, including
  every streamed summary chunk. Use it to drive a UI.

USAGE:
  orchestrator = SessionOrchestrator(on_update=render)
  orchestrator.on_activated("tab-1", "https://example.com/article")
  ...
  orchestrator.on_navigated("tab-1", "https://example.com/other")
  orchestrator.on_removed("tab-1")
  await orchestrator.shutdown()
"""

import asyncio
import logging
from typing import Callable

from agent.cancellation import CancellationToken
from agent.errors import OperationCancelled, PageNotAnalyzableError
from agent.guardrails import same_page
from agent.intent import IntentInferrer
from agent.planner import Planner
from agent.rate_limit import RateLimiter, build_rate_limiter
from agent.session import Session, SessionStatus, SessionStore
from agent.summarizer import Summarizer
from config import settings
from llm.client import InferenceClient
from observability.tracer import Tracer
from tools.content import ContentProvider, HttpContentProvider
from tools.search import SearchExecutor

logger = logging.getLogger(__name__)

INTERRUPTED_MESSAGE = "Paused — another page is in focus."


class SessionOrchestrator:
    """
    Owns the SessionStore and every research loop running against it.

    All collaborators are injectable; the defaults are built from settings.
    """

    def __init__(
        self,
        *,
        content_provider: ContentProvider | None = None,
        intent_inferrer: IntentInferrer | None = None,
        planner: Planner | None = None,
        summarizer: Summarizer | None = None,
        search_executor: SearchExecutor | None = None,
        rate_limiter: RateLimiter | None = None,
        client: InferenceClient | None = None,
        on_update: Callable[[Session], None] | None = None,
        store: SessionStore | None = None,
    ) -> None:
        if client is None and None in (intent_inferrer, planner, summarizer):
            client = InferenceClient()
        self._content = content_provider or HttpContentProvider()
        self._intent = intent_inferrer or IntentInferrer(client=client)
        self._planner = planner or Planner(client=client)
        self._summarizer = summarizer or Summarizer(client=client)
        self._search = search_executor or SearchExecutor()
        self._rate_limiter = rate_limiter if rate_limiter is not None else build_rate_limiter()
        self._on_update = on_update
        self._store = store or SessionStore()
        self._tasks: set[asyncio.Task] = set()
        self._focused: str | None = None
        self._closed = False

    # ── Read access ───────────────────────────────────────────────────────────

    def get(self, session_id: str) -> Session | None:
        return self._store.get(session_id)

    @property
    def focused(self) -> str | None:
        return self._focused

    # ── Loop entry points ─────────────────────────────────────────────────────

    async def start(self, session_id: str, expected_location: str = "") -> Session:
        """
        Run the loop for one session until it stops.

        No-op (returns the session untouched) when a loop is already
        running for it, when it is complete, or when its page is not
        analyzable.
        """
        session = self._store.create(session_id, expected_location)
        if self._closed or session.is_running:
            return session
        if session.status == SessionStatus.COMPLETE or not session.analyzable:
            return session

        token = session.rearm()
        session.loop_token = token
        generation = session.generation
        session.error = ""
        tracer = Tracer(session_id=session_id, location=session.location)

        try:
            await self._run_loop(session, generation, token, tracer)
        except OperationCancelled:
            logger.debug("Loop for %s cancelled", session_id)
        except PageNotAnalyzableError as e:
            if self._is_current(session, generation, token):
                session.analyzable = False
                session.error = ""
                session.set_status(SessionStatus.IDLE, str(e))
                self._notify(session)
        except Exception as e:
            if self._is_current(session, generation, token):
                logger.warning("Loop for %s failed: %s: %s", session_id, type(e).__name__, e)
                session.error = str(e) or type(e).__name__
                session.set_status(SessionStatus.ERROR, session.error)
                self._notify(session)
        finally:
            if session.loop_token is token:
                session.loop_token = None
            tracer.finish(session)
            if settings.save_traces:
                path = tracer.save()
                logger.info("Trace saved → %s", path)

        return session

    def launch(self, session_id: str, expected_location: str = "") -> asyncio.Task:
        """Schedule start() as a tracked task. Needs a running event loop."""
        task = asyncio.create_task(self.start(session_id, expected_location))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ── Session lifecycle ─────────────────────────────────────────────────────

    def reset(self, session_id: str, location: str | None = None) -> Session:
        """New generation, revoked token, everything else cleared. Idempotent."""
        session = self._store.create(session_id, location or "")
        session.reset(location)
        self._notify(session)
        return session

    def interrupt(self, session_id: str) -> None:
        """Stop the session's loop but keep what it learned."""
        session = self._store.get(session_id)
        if session is None:
            return
        session.token.revoke()
        session.rollback_merge()
        if not session.is_terminal and session.analyzable:
            session.set_status(SessionStatus.INTERRUPTED, INTERRUPTED_MESSAGE)
        self._notify(session)

    def destroy(self, session_id: str) -> None:
        session = self._store.remove(session_id)
        if session is not None:
            session.generation += 1
            session.token.revoke()
        if self._focused == session_id:
            self._focused = None

    def focus(self, session_id: str, location: str = "") -> asyncio.Task:
        """Interrupt every other running session, then start or resume this one."""
        self._focused = session_id
        for other in self._store:
            if other.session_id != session_id and other.is_running:
                logger.info("Interrupting %s (focus moved to %s)", other.session_id, session_id)
                self.interrupt(other.session_id)

        session = self._store.get(session_id)
        if session is None:
            session = self._store.create(session_id, location)
        elif location and not same_page(location, session.location):
            # A session reset without a location adopts the focused one here.
            session = self.reset(session_id, location)
        return self.launch(session_id, session.location)

    # ── Page events ───────────────────────────────────────────────────────────

    def on_navigated(self, session_id: str, location: str) -> asyncio.Task | None:
        self.reset(session_id, location)
        if session_id == self._focused:
            return self.launch(session_id, location)
        return None

    def on_activated(self, session_id: str, location: str = "") -> asyncio.Task:
        return self.focus(session_id, location)

    def on_removed(self, session_id: str) -> None:
        self.destroy(session_id)

    async def shutdown(self) -> None:
        """Revoke every token and wait for the loops to exit. No loop starts afterwards."""
        self._closed = True
        for session in self._store:
            session.token.revoke()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ── The loop ──────────────────────────────────────────────────────────────

    async def _run_loop(
        self,
        session: Session,
        generation: int,
        token: CancellationToken,
        tracer: Tracer,
    ) -> None:
        if not session.intent:
            await self._infer_intent(session, generation, token, tracer)

        while True:
            self._check(session, generation, token)
            if session.search_count >= settings.max_searches:
                session.set_status(
                    SessionStatus.COMPLETE,
                    f"Search limit reached ({settings.max_searches}).",
                )
                self._notify(session)
                return

            query = await self._next_query(session, generation, token, tracer)
            if not query:
                self._check(session, generation, token)
                session.set_status(SessionStatus.COMPLETE, "Research complete.")
                self._notify(session)
                return

            await self._search_and_merge(session, generation, token, tracer, query)

    async def _infer_intent(
        self,
        session: Session,
        generation: int,
        token: CancellationToken,
        tracer: Tracer,
    ) -> None:
        self._check(session, generation, token)
        session.set_status(SessionStatus.FETCHING_PAGE, "Reading page...")
        self._notify(session)

        with tracer.span("fetch_page") as span:
            span.metadata["location"] = session.location
            page = await self._content.fetch(session.session_id, session.location, token)
            span.metadata["title"] = page.title
            span.metadata["content_chars"] = len(page.content)

        self._check(session, generation, token)
        session.page_title = page.title
        session.set_status(SessionStatus.INFERRING_INTENT, "Working out what you're looking for...")
        self._notify(session)

        with tracer.span("infer_intent") as span:
            result = await self._intent.infer(page, token)
            span.metadata["intent"] = result.intent
            span.metadata["query"] = result.query
            span.metadata["fallback"] = result.fallback_reason

        self._check(session, generation, token)
        session.intent = result.intent
        session.pending_query = result.query
        session.touch()
        self._notify(session)

    async def _next_query(
        self,
        session: Session,
        generation: int,
        token: CancellationToken,
        tracer: Tracer,
    ) -> str:
        """The query for the next search, or "" to stop."""
        if session.pending_query:
            return session.pending_query
        if not session.search_history and not session.summary:
            return session.intent

        self._check(session, generation, token)
        session.set_status(SessionStatus.PLANNING, "Deciding whether to search more...")
        self._notify(session)

        with tracer.span("planner") as span:
            decision = await self._planner.decide(
                session.intent, session.summary, list(session.search_history), token
            )
            span.metadata["should_search"] = decision.should_search
            span.metadata["query"] = decision.query

        return decision.query if decision.should_search else ""

    async def _search_and_merge(
        self,
        session: Session,
        generation: int,
        token: CancellationToken,
        tracer: Tracer,
        query: str,
    ) -> None:
        self._check(session, generation, token)
        session.set_status(SessionStatus.SEARCHING, f"Searching: {query}")
        self._notify(session)

        if self._rate_limiter is not None:
            await self._rate_limiter.acquire(token)

        with tracer.span("search") as span:
            span.metadata["query"] = query
            outcome = await self._search.search(query, token)
            span.metadata["n_items"] = len(outcome.items)
            span.metadata["n_sources"] = len(outcome.sources)

        self._check(session, generation, token)
        session.record_search(query, outcome.sources)
        session.pending_query = ""
        session.set_status(SessionStatus.SUMMARIZING, "Updating summary...")
        base = session.begin_merge()
        self._notify(session)

        def on_partial(text: str) -> None:
            if self._is_current(session, generation, token):
                session.summary = text
                session.touch()
                self._notify(session)

        try:
            with tracer.span("summarize") as span:
                merged = await self._summarizer.merge(
                    base, outcome.text, session.intent, token=token, on_partial=on_partial
                )
                span.metadata["summary_chars"] = len(merged)
        except Exception:
            # An interrupt or reset already restored or cleared the summary.
            if self._is_current(session, generation, token):
                session.rollback_merge()
            raise

        self._check(session, generation, token)
        session.commit_merge(merged)
        self._notify(session)

    # ── Guards and notification ───────────────────────────────────────────────

    def _is_current(self, session: Session, generation: int, token: CancellationToken) -> bool:
        return (
            self._store.get(session.session_id) is session
            and session.generation == generation
            and session.token is token
            and not token.revoked
        )

    def _check(self, session: Session, generation: int, token: CancellationToken) -> None:
        if not self._is_current(session, generation, token):
            raise OperationCancelled(f"stale loop for {session.session_id}")

    def _notify(self, session: Session) -> None:
        if self._on_update is not None:
            self._on_update(session)
