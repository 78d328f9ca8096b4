"""
Shared fixtures: a fresh in-memory SQLite database per test and a few deal builders.
"""
import unittest
import uuid
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from database import Base
from models import Comment, Deal, DealStageHistory, Merchant
from schemas.enums import DealStage


class DatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine = create_async_engine(
            "sqlite+aiosqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.Session = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    async def asyncTearDown(self):
        await self.engine.dispose()

    async def add_deal(self, stage: DealStage = DealStage.NEW_LEAD, **fields) -> Deal:
        async with self.Session() as session:
            merchant = Merchant(
                id=f"mer-{uuid.uuid4().hex[:12]}",
                legal_name="Premier Auto Shop LLC",
                industry_risk_tier="B",
                monthly_revenue=Decimal("50000"),
                time_in_business=36,
            )
            session.add(merchant)
            deal = Deal(
                id=f"deal-{uuid.uuid4().hex[:12]}",
                merchant_id=merchant.id,
                requested_amount=fields.pop("requested_amount", Decimal("25000")),
                stage=stage.value,
                **fields,
            )
            session.add(deal)
            await session.commit()
            return deal

    async def fetch_deal(self, deal_id: str) -> Deal:
        async with self.Session() as session:
            return await session.get(Deal, deal_id)

    async def history_count(self, deal_id: str) -> int:
        async with self.Session() as session:
            result = await session.execute(
                select(func.count()).select_from(DealStageHistory).where(DealStageHistory.deal_id == deal_id)
            )
            return result.scalar_one()

    async def history(self, deal_id: str) -> list[DealStageHistory]:
        async with self.Session() as session:
            result = await session.execute(
                select(DealStageHistory).where(DealStageHistory.deal_id == deal_id).order_by(DealStageHistory.changed_at)
            )
            return list(result.scalars().all())

    async def comments(self, deal_id: str) -> list[Comment]:
        async with self.Session() as session:
            result = await session.execute(select(Comment).where(Comment.deal_id == deal_id))
            return list(result.scalars().all())
