"""Unit of Work - one atomic commit per settlement workflow.

Services used inside a unit of work only ``add``/``flush``; the unit of
work commits once when the block exits cleanly and rolls back everything
when any step raises, so a ledger transaction is never persisted without
its wallet mutations (and vice versa).

Usage:
    async with UnitOfWork(session_factory) as uow:
        ledger = LedgerService(uow.session)
        wallets = WalletService(uow.session)
        ...
"""

import logging
from collections.abc import Callable
from types import TracebackType

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


class UnitOfWork:
    """Async context manager wrapping a single session and transaction."""

    def __init__(self, session_factory: SessionFactory | None = None) -> None:
        if session_factory is None:
            from src.db.engine import async_session_factory

            session_factory = async_session_factory
        self._session_factory = session_factory
        self._session: AsyncSession | None = None

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("UnitOfWork is not active. Use 'async with UnitOfWork()'.")
        return self._session

    async def __aenter__(self) -> "UnitOfWork":
        self._session = self._session_factory()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        session = self.session
        try:
            if exc_type is None:
                await session.commit()
            else:
                await session.rollback()
                logger.debug(f"Unit of work rolled back: {exc_type.__name__}")
        finally:
            await session.close()
            self._session = None
