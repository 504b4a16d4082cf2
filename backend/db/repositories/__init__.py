"""
Repository layer: one class per entity over an AsyncSession.

Services receive a ``Repositories`` bundle instead of touching the session
directly, so tests can hand them an in-memory bundle with the same surface.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_async_session
from db.repositories.analyses import UsageAnalysisRepository
from db.repositories.csv import CsvRepository
from db.repositories.items import InventoryItemRepository
from db.repositories.ledger import TransactionRepository
from db.repositories.periods import PeriodRepository, SnapshotRepository
from db.repositories.pos import PosRawRepository
from db.repositories.recipes import RecipeRepository
from db.repositories.sales import SalesTransactionRepository


@dataclass
class Repositories:
    session: AsyncSession
    periods: PeriodRepository
    snapshots: SnapshotRepository
    items: InventoryItemRepository
    transactions: TransactionRepository
    recipes: RecipeRepository
    sales: SalesTransactionRepository
    analyses: UsageAnalysisRepository
    csv: CsvRepository
    pos_raw: PosRawRepository

    @classmethod
    def from_session(cls, session: AsyncSession) -> "Repositories":
        return cls(
            session=session,
            periods=PeriodRepository(session),
            snapshots=SnapshotRepository(session),
            items=InventoryItemRepository(session),
            transactions=TransactionRepository(session),
            recipes=RecipeRepository(session),
            sales=SalesTransactionRepository(session),
            analyses=UsageAnalysisRepository(session),
            csv=CsvRepository(session),
            pos_raw=PosRawRepository(session),
        )

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    @asynccontextmanager
    async def savepoint(self):
        """Isolate one row's writes; a failure rolls back only that row."""
        async with self.session.begin_nested():
            yield


async def get_repositories(
    session: AsyncSession = Depends(get_async_session),
) -> AsyncGenerator[Repositories, None]:
    yield Repositories.from_session(session)
