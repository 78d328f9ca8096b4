import uuid
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from database import get_db
from errors import NotFound
from models import Merchant, MerchantOwner, UccFiling
from schemas.merchant import MerchantCreate, MerchantUpdate, OwnerCreate, UccFilingCreate
from utils.case import iso, money

router = APIRouter(prefix="/api/merchants", tags=["merchants"])


def _owner_to_response(o: MerchantOwner) -> dict[str, Any]:
    return {
        "id": o.id,
        "firstName": o.first_name,
        "lastName": o.last_name,
        "ficoScore": o.fico_score,
        "ownership": money(o.ownership),
        "isPrimary": o.is_primary,
    }


def _filing_to_response(f: UccFiling) -> dict[str, Any]:
    return {
        "id": f.id,
        "filingNumber": f.filing_number,
        "filingType": f.filing_type,
        "filingState": f.filing_state,
        "status": f.status,
        "filedAt": iso(f.filed_at),
    }


def _merchant_to_response(m: Merchant) -> dict[str, Any]:
    return {
        "id": m.id,
        "legalName": m.legal_name,
        "dbaName": m.dba_name,
        "industry": m.industry,
        "industryRiskTier": m.industry_risk_tier,
        "state": m.state,
        "monthlyRevenue": money(m.monthly_revenue),
        "timeInBusiness": m.time_in_business,
        "owners": [_owner_to_response(o) for o in m.owners],
        "uccFilings": [_filing_to_response(f) for f in m.ucc_filings],
        "createdAt": iso(m.created_at),
        "updatedAt": iso(m.updated_at),
    }


def _new_owner(merchant_id: str, body: OwnerCreate) -> MerchantOwner:
    return MerchantOwner(
        id=f"own-{uuid.uuid4().hex[:12]}",
        merchant_id=merchant_id,
        first_name=body.first_name,
        last_name=body.last_name,
        fico_score=body.fico_score,
        ownership=body.ownership,
        is_primary=body.is_primary,
    )


async def _get_merchant(db: AsyncSession, merchant_id: str) -> Merchant:
    result = await db.execute(
        select(Merchant)
        .options(selectinload(Merchant.owners), selectinload(Merchant.ucc_filings))
        .where(Merchant.id == merchant_id)
        .execution_options(populate_existing=True)
    )
    merchant = result.scalar_one_or_none()
    if not merchant:
        raise NotFound("Merchant", merchant_id)
    return merchant


@router.get("", response_model=list)
async def list_merchants(db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(Merchant)
        .options(selectinload(Merchant.owners), selectinload(Merchant.ucc_filings))
        .order_by(Merchant.legal_name)
    )
    return [_merchant_to_response(m) for m in result.scalars().all()]


@router.post("", response_model=dict, status_code=201)
async def create_merchant(body: MerchantCreate, db: AsyncSession = Depends(get_db)):
    merchant_id = f"mer-{uuid.uuid4().hex[:12]}"
    merchant = Merchant(
        id=merchant_id,
        legal_name=body.legal_name,
        dba_name=body.dba_name,
        industry=body.industry,
        industry_risk_tier=body.industry_risk_tier.value,
        state=body.state.upper() if body.state else None,
        monthly_revenue=body.monthly_revenue,
        time_in_business=body.time_in_business,
    )
    db.add(merchant)
    for owner in body.owners:
        db.add(_new_owner(merchant_id, owner))
    await db.flush()
    return _merchant_to_response(await _get_merchant(db, merchant_id))


@router.get("/{merchant_id}", response_model=dict)
async def get_merchant(merchant_id: str, db: AsyncSession = Depends(get_db)):
    return _merchant_to_response(await _get_merchant(db, merchant_id))


@router.patch("/{merchant_id}", response_model=dict)
async def update_merchant(merchant_id: str, body: MerchantUpdate, db: AsyncSession = Depends(get_db)):
    merchant = await _get_merchant(db, merchant_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        if value is None:
            continue
        if field == "industry_risk_tier":
            value = value.value if hasattr(value, "value") else value
        if field == "state":
            value = value.upper()
        setattr(merchant, field, value)
    await db.flush()
    return _merchant_to_response(merchant)


@router.post("/{merchant_id}/owners", response_model=dict, status_code=201)
async def add_owner(merchant_id: str, body: OwnerCreate, db: AsyncSession = Depends(get_db)):
    await _get_merchant(db, merchant_id)
    owner = _new_owner(merchant_id, body)
    db.add(owner)
    await db.flush()
    return _owner_to_response(owner)


@router.post("/{merchant_id}/ucc-filings", response_model=dict, status_code=201)
async def add_ucc_filing(merchant_id: str, body: UccFilingCreate, db: AsyncSession = Depends(get_db)):
    await _get_merchant(db, merchant_id)
    filing = UccFiling(
        id=f"ucc-{uuid.uuid4().hex[:12]}",
        merchant_id=merchant_id,
        filing_number=body.filing_number,
        filing_type=body.filing_type,
        filing_state=body.filing_state.upper() if body.filing_state else None,
        status=body.status.value,
        filed_at=body.filed_at,
    )
    db.add(filing)
    await db.flush()
    return _filing_to_response(filing)
