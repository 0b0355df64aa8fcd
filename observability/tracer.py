"""
observability/tracer.py — Span-based tracing for one research loop run.

THE CORE CONCEPT:
  Every meaningful step in the loop is a Span: a named unit of work
  with a start time, end time, status, and metadata dict.

  A Trace collects all spans for one loop run (one start() call on one
  session) and can be saved to disk as JSON. This gives you a record of
  exactly what the loop did:
    - Which page it read and what intent it inferred
    - Which queries the planner chose, and when it said stop
    - How many results each search produced and how many were scraped
    - How long each merge took
    - Where failures happened and why

WHY SPANS INSTEAD OF JUST LOGS:
  Logs are linear — one message per line. Spans are structured: each has
  a name, duration, and typed metadata. This lets you ask questions like
  "how long do merges take on this model?" or "which queries always end
  with zero scraped pages?" You can't answer those from raw log lines.

WHAT GETS TRACED:
  - fetch_page    → location, title, content_chars
  - infer_intent  → intent, query, fallback
  - planner       → should_search, query
  - search        → query, n_items, n_sources
  - summarize     → summary_chars
  - run           → overall: status, n_searches, n_references, duration

  A cancelled step shows up as status "error" with OperationCancelled.

USAGE:
  tracer = Tracer(session_id="tab-1", location="https://...")

  with tracer.span("planner") as span:
      decision = await planner.decide(...)
      span.metadata["should_search"] = decision.should_search

  tracer.finish(session)
  if settings.save_traces:
      path = tracer.save()
"""

import json
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from pathlib import Path

from config import settings


# ── Span ──────────────────────────────────────────────────────────────────────

@dataclass
class Span:
    """
    One named step in the loop.

    status is "success" or "error".
    metadata holds step-specific data (query, n_sources, should_search, etc.).
    """
    name: str
    step: int
    started_at: float       # time.monotonic() — for duration math
    ended_at: float = 0.0
    duration_ms: float = 0.0
    status: str = "success"
    metadata: dict = field(default_factory=dict)
    error: str = ""

    def finish(self, status: str = "success", error: str = "") -> None:
        self.ended_at = time.monotonic()
        self.duration_ms = round((self.ended_at - self.started_at) * 1000, 2)
        self.status = status
        self.error = error


# ── Trace ─────────────────────────────────────────────────────────────────────

@dataclass
class Trace:
    """
    Complete record of one loop run: all spans + summary stats.

    Saved to {trace_dir}/{run_id}.json when settings.save_traces is on.
    """
    run_id: str
    session_id: str
    location: str
    started_at: str         # ISO timestamp
    completed_at: str = ""
    spans: list[Span] = field(default_factory=list)

    # Summary stats (filled by finish())
    status: str = "running"
    intent: str = ""
    n_searches: int = 0
    n_references: int = 0
    summary_chars: int = 0
    total_duration_ms: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


# ── Tracer ────────────────────────────────────────────────────────────────────

class Tracer:
    """
    Collects spans for one loop run and saves the trace to disk.

    On error inside a span's with-block: span status is set to "error"
    and the exception is re-raised — the tracer never swallows errors.
    """

    def __init__(self, session_id: str, location: str = "", run_id: str | None = None) -> None:
        self._run_id = run_id or uuid.uuid4().hex[:12]
        self._started = time.monotonic()
        self._trace = Trace(
            run_id=self._run_id,
            session_id=session_id,
            location=location,
            started_at=datetime.now(timezone.utc).isoformat(),
        )
        self._step_counter = 0

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def trace(self) -> Trace:
        return self._trace

    @contextmanager
    def span(self, name: str):
        """
        Context manager that creates, times, and closes a span.

        Works around awaits too:
            with tracer.span("search") as span:
                outcome = await executor.search(query, token)
                span.metadata["n_sources"] = len(outcome.sources)
        """
        self._step_counter += 1
        s = Span(name=name, step=self._step_counter, started_at=time.monotonic())
        self._trace.spans.append(s)
        try:
            yield s
            s.finish(status="success")
        except Exception as exc:
            s.finish(status="error", error=f"{type(exc).__name__}: {exc}")
            raise

    def finish(self, session) -> None:
        """Populate summary stats from the session as the loop left it."""
        elapsed = time.monotonic() - self._started
        self._trace.completed_at = datetime.now(timezone.utc).isoformat()
        self._trace.total_duration_ms = round(elapsed * 1000, 2)
        self._trace.status = session.status.value
        self._trace.intent = session.intent
        self._trace.n_searches = session.search_count
        self._trace.n_references = len(session.references)
        self._trace.summary_chars = len(session.summary)

    def save(self, log_dir: Path | None = None) -> Path:
        """
        Write the trace to {trace_dir}/{run_id}.json.
        Returns the path written. Creates the directory if needed.
        """
        if log_dir is None:
            log_dir = Path(settings.trace_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        path = log_dir / f"{self._run_id}.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self._trace.to_dict(), f, indent=2, default=str)

        return path
