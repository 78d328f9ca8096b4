"""
Underwriting decisions (APPROVE / DECLINE / COUNTER) against a deal.
Everything that can fail (deal lookup, version, transition, offer inputs) is checked before the first write.
"""
from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from errors import IncompleteOffer
from models import Comment, Deal
from schemas.enums import DealStage, DecisionKind
from schemas.offer import Offer
from schemas.underwriting import DecisionRequest, DecisionResult
from services.offers import apply_offer, calculate_offer, offer_request_from, validate_offer
from services.workflow import apply_stage, check_version, flush_deal, load_deal, validate_transition

logger = logging.getLogger(__name__)


def _resolve_offer(request: DecisionRequest) -> Offer:
    if request.offer is not None:
        return validate_offer(request.offer)
    if request.offer_request is not None:
        return calculate_offer(request.offer_request)
    raise IncompleteOffer(["offer"])


def _counter_offer(request: DecisionRequest) -> Offer:
    if request.offer_request is not None:
        return calculate_offer(request.offer_request)
    if request.offer is not None:
        return calculate_offer(offer_request_from(request.offer))
    raise IncompleteOffer(["offerRequest"])


def _fmt_money(value) -> str:
    return f"${value:,.2f}" if value is not None else "N/A"


def decision_comment(
    decision: DecisionKind,
    offer: Optional[Offer] = None,
    paper_grade: Optional[str] = None,
    risk_score: Optional[int] = None,
    decline_reasons: Optional[list[str]] = None,
    notes: Optional[str] = None,
) -> str:
    """Internal note posted on the deal's comment thread."""
    if decision is DecisionKind.DECLINE:
        reasons = "\n".join(f"- {r}" for r in decline_reasons or []) or "No reasons provided"
        body = f"**Underwriting Decision: DECLINED**\n\nReasons:\n{reasons}"
    else:
        title = "COUNTER OFFER" if decision is DecisionKind.COUNTER else "APPROVED"
        body = (
            f"**Underwriting Decision: {title}**\n\n"
            f"Paper Grade: {paper_grade or 'N/A'}\n"
            f"Risk Score: {risk_score if risk_score is not None else 'N/A'}\n"
            f"Approved Amount: {_fmt_money(offer.approved_amount if offer else None)}\n"
            f"Factor Rate: {offer.factor_rate if offer else 'N/A'}\n"
            f"Term: {f'{offer.term_days} days' if offer else 'N/A'}"
        )
    if notes:
        body += f"\n\nNotes: {notes}"
    return body


def _record_decision(session: AsyncSession, deal: Deal, request: DecisionRequest, target: DealStage, offer: Optional[Offer]):
    apply_stage(
        session,
        deal,
        target,
        changed_by=request.underwriter_id,
        notes=f"{request.decision.value}: {request.notes or 'No notes provided'}",
    )
    deal.decision_notes = request.notes
    if request.underwriter_id:
        deal.underwriter_id = request.underwriter_id
    session.add(
        Comment(
            id=f"cmt-{uuid.uuid4().hex[:12]}",
            deal_id=deal.id,
            author=request.underwriter_id,
            content=decision_comment(
                request.decision,
                offer=offer,
                paper_grade=request.paper_grade.value if request.paper_grade else deal.paper_grade,
                risk_score=request.risk_score if request.risk_score is not None else deal.risk_score,
                decline_reasons=request.decline_reasons,
                notes=request.notes,
            ),
            is_internal=True,
        )
    )


async def issue_decision(session: AsyncSession, request: DecisionRequest) -> DecisionResult:
    deal = await load_deal(session, request.deal_id)

    if request.decision is DecisionKind.COUNTER:
        # Proposal only: the deal is left exactly as it was
        offer = _counter_offer(request)
        return DecisionResult(
            deal_id=deal.id,
            decision=request.decision,
            stage=DealStage(deal.stage),
            persisted=False,
            offer=offer,
            message="Counter offer calculated",
        )

    check_version(deal, request.expected_version)

    if request.decision is DecisionKind.APPROVE:
        validate_transition(deal.stage, DealStage.APPROVED)
        offer = _resolve_offer(request)
        _record_decision(session, deal, request, DealStage.APPROVED, offer)
        apply_offer(deal, offer)
        if request.paper_grade is not None:
            deal.paper_grade = request.paper_grade.value
        if request.risk_score is not None:
            deal.risk_score = request.risk_score
        await flush_deal(session, deal)
        logger.info("Deal %s approved: %s at %s for %s days", deal.id, offer.approved_amount, offer.factor_rate, offer.term_days)
        return DecisionResult(
            deal_id=deal.id,
            decision=request.decision,
            stage=DealStage.APPROVED,
            persisted=True,
            offer=offer,
            message="Deal approved successfully",
        )

    validate_transition(deal.stage, DealStage.DECLINED)
    _record_decision(session, deal, request, DealStage.DECLINED, None)
    deal.decline_reasons = list(request.decline_reasons)
    await flush_deal(session, deal)
    logger.info("Deal %s declined: %s", deal.id, "; ".join(request.decline_reasons) or "no reasons given")
    return DecisionResult(
        deal_id=deal.id,
        decision=request.decision,
        stage=DealStage.DECLINED,
        persisted=True,
        decline_reasons=list(request.decline_reasons),
        message="Deal declined successfully",
    )
