"""
Stage transition table and atomic transitions.
Run: python -m pytest tests/test_workflow.py -v
"""
import unittest
from unittest.mock import patch

from config import settings
from errors import ConcurrentModification, InvalidTransition, NotFound
from models import Deal
from schemas.enums import DealStage as S
from services.workflow import (
    TransitionRequest,
    allowed_transitions,
    is_reopen,
    record_intake,
    transition_deal,
    validate_transition,
)
from tests.support import DatabaseTestCase

EXPECTED = {
    S.NEW_LEAD: {S.DOCS_REQUESTED, S.DECLINED, S.DEAD},
    S.DOCS_REQUESTED: {S.DOCS_RECEIVED, S.DECLINED, S.DEAD},
    S.DOCS_RECEIVED: {S.IN_UNDERWRITING, S.DOCS_REQUESTED, S.DECLINED, S.DEAD},
    S.IN_UNDERWRITING: {S.APPROVED, S.DECLINED, S.DEAD},
    S.APPROVED: {S.CONTRACT_SENT, S.DECLINED, S.DEAD},
    S.CONTRACT_SENT: {S.CONTRACT_SIGNED, S.DECLINED, S.DEAD},
    S.CONTRACT_SIGNED: {S.FUNDED, S.DECLINED, S.DEAD},
    S.FUNDED: set(),
    S.DECLINED: {S.NEW_LEAD},
    S.DEAD: {S.NEW_LEAD},
}


class TestTransitionTable(unittest.TestCase):
    def test_table_matches_every_stage(self):
        self.assertEqual(set(EXPECTED), set(S))
        for stage, allowed in EXPECTED.items():
            self.assertEqual(set(allowed_transitions(stage)), allowed, stage)

    def test_every_pair(self):
        for current in S:
            for target in S:
                if target in EXPECTED[current]:
                    self.assertIs(validate_transition(current, target), target)
                else:
                    with self.assertRaises(InvalidTransition):
                        validate_transition(current, target)

    def test_funded_is_terminal(self):
        self.assertEqual(allowed_transitions(S.FUNDED), ())

    def test_error_names_both_stages(self):
        with self.assertRaises(InvalidTransition) as ctx:
            validate_transition("NEW_LEAD", "APPROVED")
        err = ctx.exception
        self.assertEqual(err.current, "NEW_LEAD")
        self.assertEqual(err.requested, "APPROVED")
        self.assertIn("NEW_LEAD -> APPROVED", err.message)
        self.assertEqual(err.to_dict()["allowedStages"], ["DOCS_REQUESTED", "DECLINED", "DEAD"])

    def test_unknown_stage_is_invalid_transition(self):
        with self.assertRaises(InvalidTransition):
            validate_transition("NEW_LEAD", "ON_HOLD")

    def test_reopen(self):
        self.assertTrue(is_reopen(S.DECLINED, S.NEW_LEAD))
        self.assertTrue(is_reopen(S.DEAD, S.NEW_LEAD))
        self.assertFalse(is_reopen(S.NEW_LEAD, S.DOCS_REQUESTED))


class TestTransitionDeal(DatabaseTestCase):
    async def test_transition_writes_stage_and_one_history_row(self):
        deal = await self.add_deal(S.NEW_LEAD)
        before = deal.stage_changed_at
        async with self.Session() as session:
            result = await transition_deal(
                session, TransitionRequest(deal_id=deal.id, to_stage=S.DOCS_REQUESTED, changed_by="u-1", notes="Sent list")
            )
            await session.commit()

        self.assertEqual(result.from_stage, S.NEW_LEAD)
        self.assertEqual(result.to_stage, S.DOCS_REQUESTED)
        self.assertEqual(result.version, 2)

        self.assertGreaterEqual(result.changed_at, before)

        stored = await self.fetch_deal(deal.id)
        self.assertEqual(stored.stage, "DOCS_REQUESTED")
        self.assertEqual(stored.version, 2)
        history = await self.history(deal.id)
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].from_stage, "NEW_LEAD")
        self.assertEqual(history[0].to_stage, "DOCS_REQUESTED")
        self.assertEqual(history[0].changed_by, "u-1")
        self.assertEqual(history[0].notes, "Sent list")

    async def test_rejected_transition_leaves_deal_untouched(self):
        deal = await self.add_deal(S.NEW_LEAD)
        async with self.Session() as session:
            with self.assertRaises(InvalidTransition):
                await transition_deal(session, TransitionRequest(deal_id=deal.id, to_stage=S.APPROVED))
            await session.rollback()

        stored = await self.fetch_deal(deal.id)
        self.assertEqual(stored.stage, "NEW_LEAD")
        self.assertEqual(stored.version, 1)
        self.assertEqual(await self.history_count(deal.id), 0)

    async def test_funded_sets_funded_at(self):
        deal = await self.add_deal(S.CONTRACT_SIGNED)
        async with self.Session() as session:
            await transition_deal(session, TransitionRequest(deal_id=deal.id, to_stage=S.FUNDED))
            await session.commit()
        stored = await self.fetch_deal(deal.id)
        self.assertIsNotNone(stored.funded_at)

    async def test_unknown_deal(self):
        async with self.Session() as session:
            with self.assertRaises(NotFound):
                await transition_deal(session, TransitionRequest(deal_id="deal-missing", to_stage=S.DEAD))

    async def test_stale_expected_version(self):
        deal = await self.add_deal(S.NEW_LEAD)
        async with self.Session() as session:
            with self.assertRaises(ConcurrentModification):
                await transition_deal(
                    session, TransitionRequest(deal_id=deal.id, to_stage=S.DOCS_REQUESTED, expected_version=7)
                )
        self.assertEqual(await self.history_count(deal.id), 0)

    async def test_lost_update_is_concurrent_modification(self):
        deal = await self.add_deal(S.NEW_LEAD)
        async with self.Session() as session:
            loaded = await session.get(Deal, deal.id)
            # Another writer bumps the row behind this session's back
            await session.execute(
                Deal.__table__.update().where(Deal.__table__.c.id == deal.id).values(version=Deal.__table__.c.version + 1)
            )
            self.assertEqual(loaded.version, 1)
            with self.assertRaises(ConcurrentModification):
                await transition_deal(session, TransitionRequest(deal_id=deal.id, to_stage=S.DOCS_REQUESTED))
            await session.rollback()
        self.assertEqual(await self.history_count(deal.id), 0)

    async def test_reopen_clears_decline_but_keeps_offer(self):
        deal = await self.add_deal(
            S.DECLINED,
            decline_reasons=["Low FICO"],
            approved_amount=10000,
            factor_rate=1.35,
            term_days=120,
        )
        async with self.Session() as session:
            await transition_deal(session, TransitionRequest(deal_id=deal.id, to_stage=S.NEW_LEAD))
            await session.commit()
        stored = await self.fetch_deal(deal.id)
        self.assertEqual(stored.stage, "NEW_LEAD")
        self.assertIsNone(stored.decline_reasons)
        self.assertIsNone(stored.decision_date)
        self.assertEqual(stored.term_days, 120)

    async def test_reopen_can_clear_offer(self):
        deal = await self.add_deal(S.DEAD, approved_amount=10000, factor_rate=1.35, term_days=120)
        with patch.object(settings, "clear_offer_on_reopen", True):
            async with self.Session() as session:
                await transition_deal(session, TransitionRequest(deal_id=deal.id, to_stage=S.NEW_LEAD))
                await session.commit()
        stored = await self.fetch_deal(deal.id)
        self.assertIsNone(stored.approved_amount)
        self.assertIsNone(stored.term_days)

    async def test_intake_entry(self):
        deal = await self.add_deal(S.NEW_LEAD)
        async with self.Session() as session:
            loaded = await session.get(Deal, deal.id)
            record_intake(session, loaded, "sales-1")
            await session.commit()
        history = await self.history(deal.id)
        self.assertEqual(len(history), 1)
        self.assertIsNone(history[0].from_stage)
        self.assertEqual(history[0].to_stage, "NEW_LEAD")


if __name__ == "__main__":
    unittest.main()
