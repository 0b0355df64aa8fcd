"""
agent/cancellation.py — Revocable cancellation token.

Cancellation is cooperative. A token is handed to every suspending call
(content fetch, inference, search, scrape). Those calls check it between
steps and raise OperationCancelled once it is revoked. Nothing is killed
mid-request: a scrape that already started finishes its current bounded
step first.

One token belongs to one loop run. Interrupting a session revokes its
token; resuming the session replaces it with a fresh one, so the old
loop can never mistake the new token for its own.

USAGE:
  token = CancellationToken()
  await token.sleep(0.5)      # raises OperationCancelled if revoked meanwhile
  token.raise_if_revoked()
  token.revoke()
"""

import asyncio

from agent.errors import OperationCancelled


class CancellationToken:
    """A one-way switch: once revoked, it stays revoked."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def revoked(self) -> bool:
        return self._event.is_set()

    def revoke(self) -> None:
        self._event.set()

    def raise_if_revoked(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("operation cancelled")

    async def sleep(self, seconds: float) -> None:
        """Sleep for `seconds`, waking early (and raising) on revocation."""
        self.raise_if_revoked()
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise OperationCancelled("operation cancelled")

    def __repr__(self) -> str:
        return f"CancellationToken(revoked={self.revoked})"
