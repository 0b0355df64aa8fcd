"""
tools/retry.py — One bounded-attempt-with-backoff primitive.

Three places need "try again a few times, then give up":

  - the content provider, which re-reads the observed page until it
    reports the location we asked for (10 attempts, 0.5s apart)
  - the HEAD content-type probe (transport errors only)
  - the per-page scrape (transport errors only)

All three go through bounded_attempts(). It is a thin layer over
tenacity.AsyncRetrying used programmatically, so attempt counts and
backoff are per-call rather than baked into a decorator.

Two retry triggers:
  retry_on — exception types worth another attempt
  accept   — predicate on the result; a rejected result is retried

Cancellation is honoured between attempts: the backoff sleep is
CancellationToken.sleep(), and the token is checked before each attempt.
OperationCancelled and PageNotAnalyzableError are never retried.

USAGE:
  page = await bounded_attempts(
      lambda: read_page(url),
      attempts=10,
      backoff=0.5,
      accept=lambda p: p.location.startswith(expected),
      retry_on=(httpx.TransportError,),
      token=token,
      describe="page content",
  )
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

import tenacity

from agent.cancellation import CancellationToken
from agent.errors import AttemptsExhausted, OperationCancelled, PageNotAnalyzableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NEVER_RETRY = (OperationCancelled, PageNotAnalyzableError)


async def bounded_attempts(
    fn: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    backoff: float = 0.0,
    accept: Callable[[T], bool] | None = None,
    retry_on: tuple[type[BaseException], ...] = (),
    token: CancellationToken | None = None,
    describe: str = "operation",
) -> T:
    """
    Run `fn` up to `attempts` times with a fixed `backoff` between tries.

    Returns the first result that `accept` approves (any result when
    accept is None).

    Raises:
        AttemptsExhausted: every attempt returned a rejected result.
        The last exception: every attempt raised a retryable exception.
        Any non-retryable exception immediately.
    """

    def _retryable(exc: BaseException) -> bool:
        if isinstance(exc, _NEVER_RETRY):
            return False
        return bool(retry_on) and isinstance(exc, retry_on)

    def _rejected(result) -> bool:
        return accept is not None and not accept(result)

    async def _sleep(seconds: float) -> None:
        if token is not None:
            await token.sleep(seconds)
        else:
            await asyncio.sleep(seconds)

    async def _attempt() -> T:
        if token is not None:
            token.raise_if_revoked()
        return await fn()

    retryer = tenacity.AsyncRetrying(
        stop=tenacity.stop_after_attempt(max(attempts, 1)),
        wait=tenacity.wait_fixed(backoff),
        retry=tenacity.retry_if_exception(_retryable) | tenacity.retry_if_result(_rejected),
        sleep=_sleep,
        before_sleep=tenacity.before_sleep_log(logger, logging.DEBUG),
        reraise=True,
    )

    try:
        return await retryer(_attempt)
    except tenacity.RetryError as exc:
        last = exc.last_attempt.result() if not exc.last_attempt.failed else None
        raise AttemptsExhausted(
            f"{describe}: no acceptable result after {attempts} attempt(s)",
            last_result=last,
        ) from None
