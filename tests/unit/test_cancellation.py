"""
tests/unit/test_cancellation.py — Unit tests for agent/cancellation.py

Covers: revoke(), raise_if_revoked(), sleep() timeout and early wake-up.
"""

import asyncio

import pytest

from agent.cancellation import CancellationToken
from agent.errors import OperationCancelled


class TestRevoke:
    def test_fresh_token_not_revoked(self):
        assert CancellationToken().revoked is False

    def test_revoke_is_permanent(self):
        token = CancellationToken()
        token.revoke()
        token.revoke()
        assert token.revoked is True

    def test_raise_if_revoked_noop_when_live(self):
        CancellationToken().raise_if_revoked()

    def test_raise_if_revoked_raises(self):
        token = CancellationToken()
        token.revoke()
        with pytest.raises(OperationCancelled):
            token.raise_if_revoked()


class TestSleep:
    async def test_returns_after_timeout(self):
        token = CancellationToken()
        await token.sleep(0.01)
        assert token.revoked is False

    async def test_zero_seconds_returns_immediately(self):
        await CancellationToken().sleep(0)

    async def test_already_revoked_raises_without_sleeping(self):
        token = CancellationToken()
        token.revoke()
        with pytest.raises(OperationCancelled):
            await token.sleep(10)

    async def test_revoke_wakes_sleeper(self):
        token = CancellationToken()

        async def revoke_soon():
            await asyncio.sleep(0.01)
            token.revoke()

        asyncio.create_task(revoke_soon())
        with pytest.raises(OperationCancelled):
            await asyncio.wait_for(token.sleep(5), timeout=1)
