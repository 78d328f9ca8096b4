"""
Seed demo merchants, brokers and deals for local development.
Run: python -m scripts.seed_deals (from the project root).
"""
import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from decimal import Decimal

from sqlalchemy import select

from database import AsyncSessionLocal, init_db
from models import Broker, Deal, Merchant, MerchantOwner, UccFiling
from schemas.enums import DealStage
from services.workflow import apply_stage, record_intake

BROKERS_DATA = [
    {"id": "brk-capital-bridge", "company_name": "Capital Bridge Partners", "contact_name": "Richard Moore", "commission_rate": Decimal("0.10")},
    {"id": "brk-main-street", "company_name": "Main Street Funding", "contact_name": "Linda Taylor", "commission_rate": Decimal("0.08")},
]

MERCHANTS_DATA = [
    {
        "id": "mer-golden-restaurant",
        "legal_name": "Golden Restaurant LLC",
        "dba_name": "Golden Grill",
        "industry": "Restaurant",
        "industry_risk_tier": "C",
        "state": "NY",
        "monthly_revenue": Decimal("85000"),
        "time_in_business": 48,
        "owners": [{"first_name": "Maria", "last_name": "Garcia", "fico_score": 690, "ownership": Decimal("100"), "is_primary": True}],
        "ucc_filings": [{"filing_number": "NY-2024-118832", "filing_type": "UCC-1", "filing_state": "NY", "status": "ACCEPTED"}],
    },
    {
        "id": "mer-metro-hvac",
        "legal_name": "Metro HVAC Services Inc",
        "dba_name": None,
        "industry": "HVAC",
        "industry_risk_tier": "A",
        "state": "TX",
        "monthly_revenue": Decimal("140000"),
        "time_in_business": 96,
        "owners": [
            {"first_name": "David", "last_name": "Wilson", "fico_score": 742, "ownership": Decimal("60"), "is_primary": True},
            {"first_name": "Sarah", "last_name": "Wilson", "fico_score": 715, "ownership": Decimal("40"), "is_primary": False},
        ],
        "ucc_filings": [],
    },
    {
        "id": "mer-elite-trucking",
        "legal_name": "Elite Trucking Co",
        "dba_name": "Elite Freight",
        "industry": "Trucking",
        "industry_risk_tier": "D",
        "state": "FL",
        "monthly_revenue": Decimal("60000"),
        "time_in_business": 14,
        "owners": [{"first_name": "James", "last_name": "Brown", "fico_score": 590, "ownership": Decimal("100"), "is_primary": True}],
        "ucc_filings": [
            {"filing_number": "FL-2025-004411", "filing_type": "UCC-1", "filing_state": "FL", "status": "FILED"},
            {"filing_number": "FL-2025-007902", "filing_type": "UCC-1", "filing_state": "FL", "status": "ACCEPTED"},
        ],
    },
]

# (deal id, merchant id, broker id, requested amount, existing positions, stages walked after intake)
DEALS_DATA = [
    ("deal-golden-001", "mer-golden-restaurant", "brk-capital-bridge", Decimal("50000"), 1, [DealStage.DOCS_REQUESTED, DealStage.DOCS_RECEIVED]),
    ("deal-metro-001", "mer-metro-hvac", None, Decimal("120000"), 0, [DealStage.DOCS_REQUESTED, DealStage.DOCS_RECEIVED, DealStage.IN_UNDERWRITING]),
    ("deal-elite-001", "mer-elite-trucking", "brk-main-street", Decimal("35000"), 2, []),
]


async def seed():
    await init_db()
    async with AsyncSessionLocal() as session:
        for data in BROKERS_DATA:
            if await session.get(Broker, data["id"]):
                print(f"Broker {data['id']} already exists, skipping")
                continue
            session.add(Broker(**data))
            print(f"Seeded broker: {data['company_name']}")

        for data in MERCHANTS_DATA:
            existing = await session.execute(select(Merchant).where(Merchant.id == data["id"]))
            if existing.scalar_one_or_none():
                print(f"Merchant {data['id']} already exists, skipping")
                continue
            fields = {k: v for k, v in data.items() if k not in ("owners", "ucc_filings")}
            session.add(Merchant(**fields))
            for i, o in enumerate(data["owners"]):
                session.add(MerchantOwner(id=f"{data['id']}-own-{i}", merchant_id=data["id"], **o))
            for i, f in enumerate(data["ucc_filings"]):
                session.add(UccFiling(id=f"{data['id']}-ucc-{i}", merchant_id=data["id"], **f))
            print(f"Seeded merchant: {data['legal_name']}")
        await session.flush()

        for deal_id, merchant_id, broker_id, amount, positions, stages in DEALS_DATA:
            if await session.get(Deal, deal_id):
                print(f"Deal {deal_id} already exists, skipping")
                continue
            broker = await session.get(Broker, broker_id) if broker_id else None
            deal = Deal(
                id=deal_id,
                merchant_id=merchant_id,
                broker_id=broker_id,
                source="BROKER" if broker_id else "DIRECT",
                requested_amount=amount,
                existing_positions=positions,
                stacking_detected=positions > 0,
                commission_rate=broker.commission_rate if broker else None,
                stage=DealStage.NEW_LEAD.value,
            )
            session.add(deal)
            await session.flush()
            record_intake(session, deal, "seed")
            for stage in stages:
                apply_stage(session, deal, stage, changed_by="seed", notes="Seeded")
            await session.flush()
            print(f"Seeded deal: {deal_id} ({deal.stage})")
        await session.commit()
    print("Seed complete.")


if __name__ == "__main__":
    asyncio.run(seed())
