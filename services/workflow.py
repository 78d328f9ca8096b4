"""
Deal stage workflow: the allowed-transition table and the atomic transition itself.

A transition either records all of stage, stage_changed_at and one history row, or nothing:
validation happens before any attribute is touched, and all writes go out in one flush inside the
request's transaction (rolled back by `get_db` on error). Deal.version guards against lost updates.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, assert_never

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from config import settings
from errors import ConcurrentModification, InvalidTransition, NotFound
from models import Deal, DealStageHistory
from schemas.enums import DealStage
from services.offers import clear_offer

logger = logging.getLogger(__name__)

# Any live deal can be dropped to one of these
_EXITS = (DealStage.DECLINED, DealStage.DEAD)


def allowed_transitions(stage: DealStage) -> tuple[DealStage, ...]:
    """Stages reachable in one step from `stage`. Adding a DealStage member fails type checking until handled here."""
    match stage:
        case DealStage.NEW_LEAD:
            return (DealStage.DOCS_REQUESTED, *_EXITS)
        case DealStage.DOCS_REQUESTED:
            return (DealStage.DOCS_RECEIVED, *_EXITS)
        case DealStage.DOCS_RECEIVED:
            return (DealStage.IN_UNDERWRITING, DealStage.DOCS_REQUESTED, *_EXITS)
        case DealStage.IN_UNDERWRITING:
            return (DealStage.APPROVED, *_EXITS)
        case DealStage.APPROVED:
            return (DealStage.CONTRACT_SENT, *_EXITS)
        case DealStage.CONTRACT_SENT:
            return (DealStage.CONTRACT_SIGNED, *_EXITS)
        case DealStage.CONTRACT_SIGNED:
            return (DealStage.FUNDED, *_EXITS)
        case DealStage.FUNDED:
            return ()
        case DealStage.DECLINED | DealStage.DEAD:
            # Re-open only
            return (DealStage.NEW_LEAD,)
        case _:
            assert_never(stage)


def _coerce_stage(current: str, value: str | DealStage) -> DealStage:
    try:
        return DealStage(value)
    except ValueError:
        raise InvalidTransition(str(current), str(value)) from None


def validate_transition(current: str | DealStage, requested: str | DealStage) -> DealStage:
    """Return the requested stage as a DealStage, or raise InvalidTransition naming the pair."""
    current_stage = _coerce_stage(current, current)
    requested_stage = _coerce_stage(current_stage.value, requested)
    allowed = allowed_transitions(current_stage)
    if requested_stage not in allowed:
        raise InvalidTransition(current_stage.value, requested_stage.value, [s.value for s in allowed])
    return requested_stage


def is_reopen(current: DealStage, target: DealStage) -> bool:
    return current in _EXITS and target is DealStage.NEW_LEAD


class TransitionRequest(BaseModel):
    deal_id: str
    to_stage: DealStage
    changed_by: Optional[str] = None
    notes: Optional[str] = None
    # When set, the deal must still be at this version
    expected_version: Optional[int] = None

    model_config = {"frozen": True}


class TransitionResult(BaseModel):
    deal_id: str
    from_stage: DealStage
    to_stage: DealStage
    changed_at: datetime
    history_id: str
    version: int


async def load_deal(session: AsyncSession, deal_id: str) -> Deal:
    result = await session.execute(select(Deal).where(Deal.id == deal_id))
    deal = result.scalar_one_or_none()
    if deal is None:
        raise NotFound("Deal", deal_id)
    return deal


def check_version(deal: Deal, expected_version: Optional[int]) -> None:
    if expected_version is not None and expected_version != deal.version:
        raise ConcurrentModification(deal.id, expected_version, deal.version)


def stage_history_entry(
    deal_id: str,
    from_stage: Optional[str],
    to_stage: str,
    changed_by: Optional[str] = None,
    notes: Optional[str] = None,
    changed_at: Optional[datetime] = None,
) -> DealStageHistory:
    return DealStageHistory(
        id=f"hist-{uuid.uuid4().hex[:12]}",
        deal_id=deal_id,
        from_stage=from_stage,
        to_stage=to_stage,
        changed_by=changed_by,
        notes=notes,
        changed_at=changed_at or datetime.now(timezone.utc),
    )


def apply_stage(
    session: AsyncSession,
    deal: Deal,
    target: DealStage,
    changed_by: Optional[str] = None,
    notes: Optional[str] = None,
) -> DealStageHistory:
    """
    Validate and stage (not flush) a transition on an already-loaded deal.
    Callers add their own field updates and flush once so everything lands together.
    """
    current = DealStage(deal.stage)
    target = validate_transition(current, target)
    now = datetime.now(timezone.utc)

    deal.stage = target.value
    deal.stage_changed_at = now
    if target in (DealStage.APPROVED, DealStage.DECLINED):
        deal.decision_date = now
    if target is DealStage.FUNDED:
        deal.funded_at = now
    if is_reopen(current, target):
        deal.decline_reasons = None
        deal.decision_date = None
        if settings.clear_offer_on_reopen:
            clear_offer(deal)

    entry = stage_history_entry(deal.id, current.value, target.value, changed_by, notes, now)
    session.add(entry)
    return entry


async def flush_deal(session: AsyncSession, deal: Deal) -> None:
    """Flush pending deal writes, turning a lost optimistic-lock race into ConcurrentModification."""
    # A failed flush leaves the session needing rollback; attributes cannot be read after it
    deal_id = deal.id
    try:
        await session.flush()
    except StaleDataError as e:
        raise ConcurrentModification(deal_id) from e


async def transition_deal(session: AsyncSession, request: TransitionRequest) -> TransitionResult:
    deal = await load_deal(session, request.deal_id)
    check_version(deal, request.expected_version)
    from_stage = DealStage(deal.stage)
    entry = apply_stage(session, deal, request.to_stage, request.changed_by, request.notes)
    await flush_deal(session, deal)

    logger.info("Deal %s transitioned: %s -> %s", deal.id, from_stage.value, request.to_stage.value)
    return TransitionResult(
        deal_id=deal.id,
        from_stage=from_stage,
        to_stage=request.to_stage,
        changed_at=entry.changed_at,
        history_id=entry.id,
        version=deal.version,
    )


def record_intake(session: AsyncSession, deal: Deal, changed_by: Optional[str] = None) -> DealStageHistory:
    """History row for a freshly created NEW_LEAD deal."""
    entry = stage_history_entry(deal.id, None, DealStage.NEW_LEAD.value, changed_by, "Deal created")
    session.add(entry)
    return entry
