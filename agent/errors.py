"""
agent/errors.py — Exception taxonomy for the research loop.

The loop boundary in agent/orchestrator.py sorts every failure into one
of four buckets:

  PageNotAnalyzableError   → quiet "not applicable" status, never retried
  OperationCancelled       → silent exit, no state mutation
  everything else          → session status=error with the message shown

Page-level failures (ScrapeError) never reach the loop boundary: the
Search Executor turns them into an inline "(Error: ...)" marker for that
page and moves on.
"""


class CompanionError(Exception):
    """Base class for errors raised by this package."""


class OperationCancelled(CompanionError):
    """The cancellation token was revoked while an operation was running."""


class PageNotAnalyzableError(CompanionError):
    """
    The observed page cannot be analyzed at all.

    Restricted locations (browser-internal pages, extension galleries),
    hosts that refuse access, and invalidated page contexts. Not a
    failure from the user's point of view.
    """


class ContentUnavailableError(CompanionError):
    """The page never reported the expected location within the attempt budget."""


class SearchError(CompanionError):
    """The search engine results page could not be loaded."""


class ScrapeError(CompanionError):
    """One result page could not be scraped. Always absorbed per page."""


class InferenceError(CompanionError):
    """The model backend returned an error or could not be reached."""


class AttemptsExhausted(CompanionError):
    """bounded_attempts() ran out of attempts without an acceptable result."""

    def __init__(self, message: str, last_result=None) -> None:
        super().__init__(message)
        self.last_result = last_result
