from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from config import settings
from errors import InvalidOfferInput, NotFound
from models import Deal, Merchant
from schemas.enums import PaperGrade
from schemas.offer import OfferRequest
from schemas.underwriting import OfferQuoteRequest
from services.offers import FACTOR_RATES, TERM_DAYS, calculate_offer, grade_offer, offer_constraints, offer_tiers
from services.risk import analyze_bank_metrics, calculate_risk_score, detect_stacking
from utils.case import dict_keys_to_camel

logger = logging.getLogger(__name__)


async def load_deal_for_underwriting(session: AsyncSession, deal_id: str) -> Deal:
    result = await session.execute(
        select(Deal)
        .options(
            selectinload(Deal.merchant).selectinload(Merchant.owners),
            selectinload(Deal.merchant).selectinload(Merchant.ucc_filings),
            selectinload(Deal.bank_analysis),
            selectinload(Deal.broker),
        )
        .where(Deal.id == deal_id)
    )
    deal = result.scalar_one_or_none()
    if deal is None:
        raise NotFound("Deal", deal_id)
    return deal


def _merchant_data(deal: Deal) -> dict[str, Any]:
    m = deal.merchant
    return {
        "time_in_business": m.time_in_business,
        "monthly_revenue": float(m.monthly_revenue) if m.monthly_revenue is not None else None,
        "industry_risk_tier": m.industry_risk_tier,
    }


def _owner_data(deal: Deal) -> list[dict[str, Any]]:
    return [
        {"fico_score": o.fico_score, "ownership": float(o.ownership or 0), "is_primary": o.is_primary}
        for o in deal.merchant.owners
    ]


def _bank_data(deal: Deal) -> dict[str, Any] | None:
    b = deal.bank_analysis
    if b is None:
        return None
    return {
        "avg_daily_balance": float(b.avg_daily_balance or 0),
        "min_balance": float(b.min_balance or 0),
        "max_balance": float(b.max_balance or 0),
        "total_deposits": float(b.total_deposits or 0),
        "deposit_count": b.deposit_count,
        "avg_deposit": float(b.avg_deposit or 0),
        "deposit_days_count": b.deposit_days_count,
        "nsf_count": b.nsf_count,
        "overdraft_count": b.overdraft_count,
        "months_analyzed": b.months_analyzed,
        "revenue_trend": b.revenue_trend,
        "estimated_daily_load": float(b.estimated_daily_load) if b.estimated_daily_load is not None else None,
        "detected_mca_payments": b.detected_mca_payments,
    }


def commission_rate_for(deal: Deal) -> Decimal:
    if deal.broker is not None and deal.broker.commission_rate is not None:
        return Decimal(deal.broker.commission_rate)
    return settings.default_commission_rate


def _existing_daily_load(deal: Deal) -> Decimal:
    b = deal.bank_analysis
    if b is None or b.estimated_daily_load is None:
        return Decimal("0")
    return Decimal(b.estimated_daily_load)


async def analyze_deal(session: AsyncSession, deal_id: str) -> dict[str, Any]:
    """
    Risk score, stacking, standard offer (when revenue is known) and bank metrics for one deal.
    Read-only: nothing is persisted; decisions snapshot the grade/score explicitly.
    """
    deal = await load_deal_for_underwriting(session, deal_id)
    merchant = _merchant_data(deal)
    bank = _bank_data(deal)

    risk = calculate_risk_score(
        merchant,
        _owner_data(deal),
        bank,
        {
            "requested_amount": float(deal.requested_amount),
            "existing_positions": deal.existing_positions,
            "stacking_detected": deal.stacking_detected,
        },
    )
    stacking = detect_stacking(
        bank,
        [{"filing_number": f.filing_number, "status": f.status} for f in deal.merchant.ucc_filings],
    )

    offer = None
    if deal.merchant.monthly_revenue:
        offer = grade_offer(
            risk.grade,
            Decimal(deal.requested_amount),
            Decimal(deal.merchant.monthly_revenue),
            existing_positions=deal.existing_positions,
            existing_daily_load=_existing_daily_load(deal),
            commission_rate=commission_rate_for(deal),
        )

    logger.info("Deal %s analyzed: score=%s grade=%s stacking=%s", deal.id, risk.total_score, risk.grade.value, stacking.risk_level)
    return {
        "dealId": deal.id,
        "merchantName": deal.merchant.legal_name,
        "riskAnalysis": dict_keys_to_camel(risk.model_dump(mode="json")),
        "stackingAnalysis": dict_keys_to_camel(stacking.model_dump(mode="json")),
        "offer": offer.to_response() if offer else None,
        "bankMetrics": dict_keys_to_camel(analyze_bank_metrics(bank).model_dump(mode="json")) if bank else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def quote_offer(session: AsyncSession, request: OfferQuoteRequest) -> dict[str, Any]:
    """Standard offer, tiers, optional custom offer and constraints for a deal's paper grade."""
    deal = await load_deal_for_underwriting(session, request.deal_id)
    if not deal.merchant.monthly_revenue:
        raise InvalidOfferInput("monthlyRevenue", None, "is required for offer calculation")

    monthly_revenue = Decimal(deal.merchant.monthly_revenue)
    grade = request.grade or PaperGrade(deal.paper_grade or "C")
    requested = request.custom_amount or Decimal(deal.requested_amount)
    load = _existing_daily_load(deal)
    rate = commission_rate_for(deal)

    standard = grade_offer(
        grade,
        requested,
        monthly_revenue,
        existing_positions=deal.existing_positions,
        existing_daily_load=load,
        commission_rate=rate,
    )

    custom = None
    if request.custom_amount or request.custom_factor_rate or request.custom_term_days:
        custom = calculate_offer(
            OfferRequest(
                approved_amount=request.custom_amount or standard.approved_amount,
                factor_rate=request.custom_factor_rate or FACTOR_RATES[grade]["default"],
                term_days=request.custom_term_days or TERM_DAYS[grade]["default"],
                commission_rate=rate,
                monthly_revenue=monthly_revenue,
                existing_daily_load=load,
                existing_positions=deal.existing_positions,
            )
        )

    return {
        "dealId": deal.id,
        "merchantName": deal.merchant.legal_name,
        "paperGrade": grade.value,
        "monthlyRevenue": float(monthly_revenue),
        "requestedAmount": float(deal.requested_amount),
        "existingPositions": deal.existing_positions,
        "existingDailyLoad": float(load),
        "standardOffer": standard.to_response(),
        "offerTiers": [t.to_response() for t in offer_tiers(grade, requested, monthly_revenue)],
        "customOffer": custom.to_response() if custom else None,
        "constraints": offer_constraints(grade, monthly_revenue, load),
    }
