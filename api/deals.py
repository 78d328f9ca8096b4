from __future__ import annotations

import uuid
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from database import get_db
from errors import NotFound
from models import BankAnalysis, Broker, Comment, Deal, DealStageHistory, Document, Merchant
from schemas.deal import BankAnalysisUpsert, CommentCreate, DealCreate, DealUpdate, DocumentCreate, StageChange
from schemas.enums import DealStage
from services.deals import update_deal
from services.workflow import TransitionRequest, allowed_transitions, load_deal, record_intake, transition_deal
from utils.case import dict_keys_to_camel, iso, money

router = APIRouter(prefix="/api/deals", tags=["deals"])


def _deal_to_response(d: Deal) -> dict[str, Any]:
    return {
        "id": d.id,
        "merchantId": d.merchant_id,
        "brokerId": d.broker_id,
        "underwriterId": d.underwriter_id,
        "source": d.source,
        "requestedAmount": money(d.requested_amount),
        "approvedAmount": money(d.approved_amount),
        "factorRate": money(d.factor_rate),
        "termDays": d.term_days,
        "paybackAmount": money(d.payback_amount),
        "dailyPayment": money(d.daily_payment),
        "weeklyPayment": money(d.weekly_payment),
        "holdbackPercentage": money(d.holdback_percentage),
        "position": d.position,
        "commission": money(d.commission),
        "commissionRate": money(d.commission_rate),
        "paperGrade": d.paper_grade,
        "riskScore": d.risk_score,
        "existingPositions": d.existing_positions,
        "stackingDetected": d.stacking_detected,
        "stage": d.stage,
        "stageChangedAt": iso(d.stage_changed_at),
        "decisionDate": iso(d.decision_date),
        "decisionNotes": d.decision_notes,
        "declineReasons": d.decline_reasons,
        "fundedAt": iso(d.funded_at),
        "version": d.version,
        "createdAt": iso(d.created_at),
        "updatedAt": iso(d.updated_at),
    }


def _history_to_response(h: DealStageHistory) -> dict[str, Any]:
    return {
        "id": h.id,
        "fromStage": h.from_stage,
        "toStage": h.to_stage,
        "changedBy": h.changed_by,
        "notes": h.notes,
        "changedAt": iso(h.changed_at),
    }


def _comment_to_response(c: Comment) -> dict[str, Any]:
    return {
        "id": c.id,
        "dealId": c.deal_id,
        "author": c.author,
        "content": c.content,
        "isInternal": c.is_internal,
        "createdAt": iso(c.created_at),
    }


def _document_to_response(doc: Document) -> dict[str, Any]:
    return {
        "id": doc.id,
        "name": doc.name,
        "docType": doc.doc_type,
        "url": doc.url,
        "uploadedAt": iso(doc.uploaded_at),
    }


def _bank_analysis_to_response(b: BankAnalysis) -> dict[str, Any]:
    return {
        "id": b.id,
        "avgDailyBalance": money(b.avg_daily_balance),
        "minBalance": money(b.min_balance),
        "maxBalance": money(b.max_balance),
        "totalDeposits": money(b.total_deposits),
        "depositCount": b.deposit_count,
        "avgDeposit": money(b.avg_deposit),
        "depositDaysCount": b.deposit_days_count,
        "nsfCount": b.nsf_count,
        "overdraftCount": b.overdraft_count,
        "monthsAnalyzed": b.months_analyzed,
        "revenueTrend": b.revenue_trend,
        "estimatedDailyLoad": money(b.estimated_daily_load),
        "detectedMcaPayments": dict_keys_to_camel(b.detected_mca_payments) if b.detected_mca_payments else None,
    }


def _deal_detail(d: Deal) -> dict[str, Any]:
    m = d.merchant
    return {
        **_deal_to_response(d),
        "merchant": {
            "id": m.id,
            "legalName": m.legal_name,
            "dbaName": m.dba_name,
            "industry": m.industry,
            "industryRiskTier": m.industry_risk_tier,
            "state": m.state,
            "monthlyRevenue": money(m.monthly_revenue),
            "timeInBusiness": m.time_in_business,
            "owners": [
                {
                    "id": o.id,
                    "firstName": o.first_name,
                    "lastName": o.last_name,
                    "ficoScore": o.fico_score,
                    "ownership": money(o.ownership),
                    "isPrimary": o.is_primary,
                }
                for o in m.owners
            ],
            "uccFilings": [
                {
                    "id": f.id,
                    "filingNumber": f.filing_number,
                    "filingType": f.filing_type,
                    "filingState": f.filing_state,
                    "status": f.status,
                    "filedAt": iso(f.filed_at),
                }
                for f in m.ucc_filings
            ],
        },
        "broker": (
            {"id": d.broker.id, "companyName": d.broker.company_name, "contactName": d.broker.contact_name}
            if d.broker
            else None
        ),
        "documents": [_document_to_response(doc) for doc in d.documents],
        "bankAnalysis": _bank_analysis_to_response(d.bank_analysis) if d.bank_analysis else None,
        "comments": [_comment_to_response(c) for c in d.comments],
        "stageHistory": [_history_to_response(h) for h in d.stage_history],
    }


_DETAIL_OPTIONS = (
    selectinload(Deal.merchant).selectinload(Merchant.owners),
    selectinload(Deal.merchant).selectinload(Merchant.ucc_filings),
    selectinload(Deal.broker),
    selectinload(Deal.documents),
    selectinload(Deal.bank_analysis),
    selectinload(Deal.comments),
    selectinload(Deal.stage_history),
)


async def _load_detail(db: AsyncSession, deal_id: str) -> Deal:
    result = await db.execute(select(Deal).options(*_DETAIL_OPTIONS).where(Deal.id == deal_id))
    deal = result.scalar_one_or_none()
    if not deal:
        raise NotFound("Deal", deal_id)
    return deal


@router.get("")
async def list_deals(
    stage: Optional[DealStage] = None,
    merchant_id: Optional[str] = Query(None, alias="merchantId"),
    db: AsyncSession = Depends(get_db),
):
    query = select(Deal).options(selectinload(Deal.merchant), selectinload(Deal.broker))
    if stage is not None:
        query = query.where(Deal.stage == stage.value)
    if merchant_id:
        query = query.where(Deal.merchant_id == merchant_id)
    result = await db.execute(query.order_by(Deal.created_at.desc()))
    out = []
    for d in result.scalars().all():
        out.append({
            **_deal_to_response(d),
            "merchant": {"id": d.merchant.id, "legalName": d.merchant.legal_name, "dbaName": d.merchant.dba_name},
            "broker": {"id": d.broker.id, "companyName": d.broker.company_name} if d.broker else None,
        })
    return out


@router.post("", status_code=201)
async def create_deal(body: DealCreate, db: AsyncSession = Depends(get_db)):
    merchant = await db.get(Merchant, body.merchant_id)
    if not merchant:
        raise NotFound("Merchant", body.merchant_id)
    commission_rate = None
    if body.broker_id:
        broker = await db.get(Broker, body.broker_id)
        if not broker:
            raise NotFound("Broker", body.broker_id)
        commission_rate = broker.commission_rate
    deal = Deal(
        id=f"deal-{uuid.uuid4().hex[:12]}",
        merchant_id=merchant.id,
        broker_id=body.broker_id,
        source=body.source.value,
        requested_amount=body.requested_amount,
        existing_positions=body.existing_positions,
        stacking_detected=body.existing_positions > 0,
        commission_rate=commission_rate,
        stage=DealStage.NEW_LEAD.value,
    )
    db.add(deal)
    await db.flush()
    record_intake(db, deal, body.created_by)
    await db.flush()
    return _deal_to_response(deal)


@router.get("/{deal_id}")
async def get_deal(deal_id: str, db: AsyncSession = Depends(get_db)):
    return _deal_detail(await _load_detail(db, deal_id))


@router.patch("/{deal_id}")
async def patch_deal(deal_id: str, body: DealUpdate, db: AsyncSession = Depends(get_db)):
    deal = await update_deal(db, deal_id, body)
    return _deal_to_response(deal)


@router.delete("/{deal_id}", status_code=204)
async def delete_deal(deal_id: str, db: AsyncSession = Depends(get_db)):
    # Children must be loaded for the ORM cascade to remove them
    deal = await _load_detail(db, deal_id)
    await db.delete(deal)
    await db.flush()
    return None


@router.get("/{deal_id}/transitions")
async def list_transitions(deal_id: str, db: AsyncSession = Depends(get_db)):
    deal = await load_deal(db, deal_id)
    return {
        "dealId": deal.id,
        "stage": deal.stage,
        "allowedStages": [s.value for s in allowed_transitions(DealStage(deal.stage))],
    }


@router.post("/{deal_id}/transition")
async def change_stage(deal_id: str, body: StageChange, db: AsyncSession = Depends(get_db)):
    result = await transition_deal(
        db,
        TransitionRequest(
            deal_id=deal_id,
            to_stage=body.stage,
            changed_by=body.changed_by,
            notes=body.notes,
            expected_version=body.expected_version,
        ),
    )
    return {
        "dealId": result.deal_id,
        "fromStage": result.from_stage.value,
        "toStage": result.to_stage.value,
        "changedAt": iso(result.changed_at),
        "historyId": result.history_id,
        "version": result.version,
    }


@router.get("/{deal_id}/history")
async def list_history(deal_id: str, db: AsyncSession = Depends(get_db)):
    await load_deal(db, deal_id)
    result = await db.execute(
        select(DealStageHistory)
        .where(DealStageHistory.deal_id == deal_id)
        .order_by(DealStageHistory.changed_at.desc())
    )
    return [_history_to_response(h) for h in result.scalars().all()]


@router.get("/{deal_id}/comments")
async def list_comments(deal_id: str, db: AsyncSession = Depends(get_db)):
    await load_deal(db, deal_id)
    result = await db.execute(select(Comment).where(Comment.deal_id == deal_id).order_by(Comment.created_at.desc()))
    return [_comment_to_response(c) for c in result.scalars().all()]


@router.post("/{deal_id}/comments", status_code=201)
async def add_comment(deal_id: str, body: CommentCreate, db: AsyncSession = Depends(get_db)):
    await load_deal(db, deal_id)
    comment = Comment(
        id=f"cmt-{uuid.uuid4().hex[:12]}",
        deal_id=deal_id,
        author=body.author,
        content=body.content,
        is_internal=body.is_internal,
    )
    db.add(comment)
    await db.flush()
    return _comment_to_response(comment)


@router.post("/{deal_id}/documents", status_code=201)
async def add_document(deal_id: str, body: DocumentCreate, db: AsyncSession = Depends(get_db)):
    await load_deal(db, deal_id)
    doc = Document(
        id=f"doc-{uuid.uuid4().hex[:12]}",
        deal_id=deal_id,
        name=body.name,
        doc_type=body.doc_type,
        url=body.url,
    )
    db.add(doc)
    await db.flush()
    return _document_to_response(doc)


@router.put("/{deal_id}/bank-analysis")
async def upsert_bank_analysis(deal_id: str, body: BankAnalysisUpsert, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Deal).options(selectinload(Deal.bank_analysis)).where(Deal.id == deal_id))
    deal = result.scalar_one_or_none()
    if not deal:
        raise NotFound("Deal", deal_id)
    analysis = deal.bank_analysis
    if analysis is None:
        analysis = BankAnalysis(id=f"bank-{uuid.uuid4().hex[:12]}", deal_id=deal.id)
        db.add(analysis)
    for field in (
        "avg_daily_balance",
        "min_balance",
        "max_balance",
        "total_deposits",
        "deposit_count",
        "avg_deposit",
        "deposit_days_count",
        "nsf_count",
        "overdraft_count",
        "months_analyzed",
        "estimated_daily_load",
    ):
        setattr(analysis, field, getattr(body, field))
    analysis.revenue_trend = body.revenue_trend.value
    analysis.detected_mca_payments = body.payments_for_storage()
    await db.flush()
    return _bank_analysis_to_response(analysis)
