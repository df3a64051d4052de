"""Per-request tenant transaction: opened by a dependency, finished after the handler.

The transaction is committed only once the response status is known, and only
when that status is below 400. Everything else rolls back, so a handler that
raised or answered with an error can never persist partial writes.
"""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Callable

from fastapi import Request, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from solarerp.database.tenant import set_transaction_timeout
from solarerp.exceptions import AppException, TransactionTimeoutError
from solarerp.schemas.responses import error_response, get_request_id

logger = logging.getLogger(__name__)


class TransactionState(str, enum.Enum):
    NONE = "none"
    OPEN = "open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class RequestTransaction:
    """An ``AsyncSession`` plus an explicit open/committed/rolled-back state.

    Exactly one terminal transition happens; ``commit`` and ``rollback`` are
    no-ops once the transaction has finished.
    """

    def __init__(
        self,
        session: AsyncSession,
        timeout_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._deadline: float | None = None
        self.state = TransactionState.NONE

    @classmethod
    async def begin(
        cls,
        engine: AsyncEngine,
        timeout_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> RequestTransaction:
        """Open a session on ``engine`` and start its transaction."""
        txn = cls(AsyncSession(bind=engine, expire_on_commit=False), timeout_seconds, clock)
        await txn.open()
        return txn

    @property
    def is_open(self) -> bool:
        return self.state is TransactionState.OPEN

    @property
    def finished(self) -> bool:
        return self.state in (TransactionState.COMMITTED, TransactionState.ROLLED_BACK)

    @property
    def expired(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    async def open(self) -> None:
        if self.state is not TransactionState.NONE:
            return
        try:
            await self.session.begin()
            await set_transaction_timeout(self.session, self.timeout_seconds)
        except Exception:
            await self.session.close()
            raise
        self._deadline = self._clock() + self.timeout_seconds
        self.state = TransactionState.OPEN

    async def commit(self) -> None:
        """Commit the transaction.

        Raises:
            TransactionTimeoutError: The transaction outlived its timeout; it
                has been rolled back instead.
        """
        if not self.is_open:
            return
        if self.expired:
            await self.rollback()
            raise TransactionTimeoutError("Transaction timed out")
        try:
            await self.session.commit()
        except Exception:
            await self.rollback()
            raise
        self.state = TransactionState.COMMITTED
        await self.session.close()

    async def rollback(self) -> None:
        if self.finished:
            return
        try:
            if self.state is TransactionState.OPEN:
                await self.session.rollback()
        finally:
            self.state = TransactionState.ROLLED_BACK
            await self.session.close()


async def finalize_request_transaction(txn: RequestTransaction, status_code: int) -> None:
    """Commit if the transaction is still open and the response succeeded, else roll back."""
    if txn.finished:
        return
    if txn.is_open and status_code < 400:
        await txn.commit()
    else:
        await txn.rollback()


async def rollback_request_transaction(request: Request) -> None:
    """Roll back the request's open transaction, if any. Errors are logged, never raised."""
    txn: RequestTransaction | None = getattr(request.state, "transaction", None)
    if txn is None or txn.finished:
        return
    try:
        await txn.rollback()
    except (SQLAlchemyError, OSError) as exc:
        logger.error("Transaction rollback failed: %s", exc)


class TenantTransactionMiddleware(BaseHTTPMiddleware):
    """Finishes the request's tenant transaction once the response status is known.

    Runs after the handler and the exception handlers have produced a
    response, but before the body is sent. A failed commit replaces the
    response with a 500.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            response = await call_next(request)
        except Exception:
            await rollback_request_transaction(request)
            raise

        txn: RequestTransaction | None = getattr(request.state, "transaction", None)
        if txn is None:
            return response

        try:
            await finalize_request_transaction(txn, response.status_code)
        except TransactionTimeoutError as exc:
            logger.error("Tenant transaction timed out after %ss", txn.timeout_seconds)
            return error_response(exc.status_code, exc.code, "An unexpected error occurred.", get_request_id(request))
        except (SQLAlchemyError, OSError, AppException) as exc:
            logger.error("Tenant transaction commit failed: %s", exc)
            return error_response(500, "INTERNAL_ERROR", "An unexpected error occurred.", get_request_id(request))
        return response
