import uuid
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models import Broker
from schemas.merchant import BrokerCreate
from utils.case import iso, money

router = APIRouter(prefix="/api/brokers", tags=["brokers"])


def _broker_to_response(b: Broker) -> dict[str, Any]:
    return {
        "id": b.id,
        "companyName": b.company_name,
        "contactName": b.contact_name,
        "email": b.email,
        "commissionRate": money(b.commission_rate),
        "createdAt": iso(b.created_at),
    }


@router.get("", response_model=list)
async def list_brokers(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Broker).order_by(Broker.company_name))
    return [_broker_to_response(b) for b in result.scalars().all()]


@router.post("", response_model=dict, status_code=201)
async def create_broker(body: BrokerCreate, db: AsyncSession = Depends(get_db)):
    broker = Broker(
        id=f"brk-{uuid.uuid4().hex[:12]}",
        company_name=body.company_name,
        contact_name=body.contact_name,
        email=body.email,
        commission_rate=body.commission_rate,
    )
    db.add(broker)
    await db.flush()
    return _broker_to_response(broker)
