"""
Partial deal updates (PATCH): field edits, offer inputs and stage moves in one all-or-nothing write.
"""
from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from config import settings
from errors import IncompleteOffer, NotFound
from models import Deal
from schemas.deal import DealUpdate
from schemas.offer import Offer, OfferRequest
from services.offers import apply_offer, calculate_offer
from services.workflow import apply_stage, check_version, flush_deal, validate_transition

logger = logging.getLogger(__name__)

OFFER_INPUTS = {"approved_amount": "approvedAmount", "factor_rate": "factorRate", "term_days": "termDays"}

# Copied as-is when present in the body
PLAIN_FIELDS = (
    "requested_amount",
    "underwriter_id",
    "broker_id",
    "existing_positions",
    "stacking_detected",
    "decision_notes",
    "risk_score",
)


def _offer_from_update(deal: Deal, body: DealUpdate) -> tuple[dict[str, object], Offer | None]:
    """
    Returns (raw offer inputs to write, derived offer or None).
    Strict mode needs all three inputs together; loose mode merges with what the deal already has and
    only derives payback/payments once all three are known.
    """
    supplied = {f: getattr(body, f) for f in OFFER_INPUTS if getattr(body, f) is not None}
    if not supplied:
        return {}, None
    missing = [OFFER_INPUTS[f] for f in OFFER_INPUTS if f not in supplied]
    if missing and not settings.allow_partial_offer_fields:
        raise IncompleteOffer(missing)

    merged = {f: supplied.get(f, getattr(deal, f)) for f in OFFER_INPUTS}
    if any(v is None for v in merged.values()):
        return supplied, None
    commission_rate = deal.commission_rate if deal.commission_rate is not None else settings.default_commission_rate
    bank = deal.bank_analysis
    existing_load = bank.estimated_daily_load if bank is not None and bank.estimated_daily_load is not None else 0
    offer = calculate_offer(
        OfferRequest(
            approved_amount=Decimal(merged["approved_amount"]),
            factor_rate=Decimal(merged["factor_rate"]),
            term_days=int(merged["term_days"]),
            commission_rate=commission_rate,
            monthly_revenue=deal.merchant.monthly_revenue if deal.merchant is not None else None,
            existing_daily_load=existing_load,
            existing_positions=deal.existing_positions or 0,
        )
    )
    return supplied, offer


async def _load_for_update(session: AsyncSession, deal_id: str) -> Deal:
    # Merchant revenue and bank load feed the holdback percentage
    result = await session.execute(
        select(Deal)
        .options(selectinload(Deal.merchant), selectinload(Deal.bank_analysis))
        .where(Deal.id == deal_id)
    )
    deal = result.scalar_one_or_none()
    if deal is None:
        raise NotFound("Deal", deal_id)
    return deal


async def update_deal(session: AsyncSession, deal_id: str, body: DealUpdate) -> Deal:
    deal = await _load_for_update(session, deal_id)
    check_version(deal, body.expected_version)

    # Validate everything before the first attribute is touched
    move_stage = body.stage is not None and body.stage.value != deal.stage
    if move_stage:
        validate_transition(deal.stage, body.stage)
    raw_offer, offer = _offer_from_update(deal, body)

    if move_stage:
        apply_stage(session, deal, body.stage, changed_by=body.changed_by, notes=body.decision_notes)

    for field in PLAIN_FIELDS:
        value = getattr(body, field)
        if value is not None:
            setattr(deal, field, value)
    if body.paper_grade is not None:
        deal.paper_grade = body.paper_grade.value
    if body.decline_reasons is not None:
        deal.decline_reasons = list(body.decline_reasons)

    for field, value in raw_offer.items():
        setattr(deal, field, value)
    if offer is not None:
        # Holdback included, so a re-price never leaves the old percentage behind
        apply_offer(deal, offer)

    await flush_deal(session, deal)
    logger.info("Deal %s updated (stage=%s, version=%s)", deal.id, deal.stage, deal.version)
    return deal
