from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession


async def set_transaction_timeout(session: AsyncSession, timeout_seconds: float) -> None:
    """Bound how long statements in the current transaction may run.

    Uses ``set_config(..., true)`` so the limits are scoped to the current
    transaction and never leak to the next borrower of the pooled connection.
    """
    timeout_ms = str(int(timeout_seconds * 1000))
    await session.execute(
        text("SELECT set_config('statement_timeout', :ms, true)"),
        {"ms": timeout_ms},
    )
    await session.execute(
        text("SELECT set_config('idle_in_transaction_session_timeout', :ms, true)"),
        {"ms": timeout_ms},
    )
