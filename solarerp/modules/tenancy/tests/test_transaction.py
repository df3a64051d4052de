"""Unit tests for the per-request tenant transaction."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from solarerp.exceptions import TransactionTimeoutError
from solarerp.modules.tenancy.transaction import (
    RequestTransaction,
    TransactionState,
    finalize_request_transaction,
    rollback_request_transaction,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


async def _open_transaction(clock: FakeClock | None = None, timeout: float = 30) -> RequestTransaction:
    txn = RequestTransaction(AsyncMock(), timeout, clock or FakeClock())
    await txn.open()
    return txn


@pytest.mark.asyncio
async def test_open_begins_and_bounds_the_transaction():
    txn = await _open_transaction(timeout=2.5)

    assert txn.state is TransactionState.OPEN
    txn.session.begin.assert_awaited_once()
    # statement_timeout and idle_in_transaction_session_timeout
    assert txn.session.execute.await_count == 2
    assert txn.session.execute.await_args_list[0].args[1] == {"ms": "2500"}


@pytest.mark.asyncio
async def test_open_failure_closes_session():
    session = AsyncMock()
    session.begin.side_effect = OSError("connection refused")
    txn = RequestTransaction(session, 30)

    with pytest.raises(OSError):
        await txn.open()

    session.close.assert_awaited_once()
    assert txn.state is TransactionState.NONE


@pytest.mark.asyncio
async def test_commit_happens_once():
    txn = await _open_transaction()

    await txn.commit()
    await txn.commit()
    await txn.rollback()

    txn.session.commit.assert_awaited_once()
    txn.session.rollback.assert_not_awaited()
    assert txn.state is TransactionState.COMMITTED


@pytest.mark.asyncio
async def test_rollback_happens_once():
    txn = await _open_transaction()

    await txn.rollback()
    await txn.rollback()
    await txn.commit()

    txn.session.rollback.assert_awaited_once()
    txn.session.commit.assert_not_awaited()
    assert txn.state is TransactionState.ROLLED_BACK


@pytest.mark.asyncio
async def test_expired_transaction_rolls_back_instead_of_committing():
    clock = FakeClock()
    txn = await _open_transaction(clock, timeout=5)
    clock.now = 5.0

    with pytest.raises(TransactionTimeoutError):
        await txn.commit()

    txn.session.commit.assert_not_awaited()
    txn.session.rollback.assert_awaited_once()
    assert txn.state is TransactionState.ROLLED_BACK


@pytest.mark.asyncio
async def test_failed_commit_rolls_back_and_reraises():
    txn = await _open_transaction()
    txn.session.commit.side_effect = OSError("connection reset")

    with pytest.raises(OSError):
        await txn.commit()

    txn.session.rollback.assert_awaited_once()
    assert txn.state is TransactionState.ROLLED_BACK


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (200, TransactionState.COMMITTED),
        (201, TransactionState.COMMITTED),
        (399, TransactionState.COMMITTED),
        (400, TransactionState.ROLLED_BACK),
        (404, TransactionState.ROLLED_BACK),
        (500, TransactionState.ROLLED_BACK),
    ],
)
async def test_finalize_commits_only_below_400(status_code, expected):
    txn = await _open_transaction()
    await finalize_request_transaction(txn, status_code)
    assert txn.state is expected


@pytest.mark.asyncio
async def test_rollback_request_transaction_handles_missing_and_failing():
    await rollback_request_transaction(SimpleNamespace(state=SimpleNamespace()))

    txn = await _open_transaction()
    txn.session.rollback.side_effect = OSError("gone")
    request = SimpleNamespace(state=SimpleNamespace(transaction=txn))

    await rollback_request_transaction(request)

    assert txn.state is TransactionState.ROLLED_BACK
    txn.session.close.assert_awaited()
