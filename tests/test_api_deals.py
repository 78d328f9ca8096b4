"""
HTTP surface: status codes, error bodies and PATCH offer handling.
Run: python -m pytest tests/test_api_deals.py -v
"""
import unittest
from unittest.mock import patch

from httpx import ASGITransport, AsyncClient

from config import settings
from database import get_db
from main import app
from tests.support import DatabaseTestCase

OFFER = {"approvedAmount": 10000, "factorRate": 1.35, "termDays": 120}


class ApiTestCase(DatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()

        async def _get_test_db():
            async with self.Session() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

        app.dependency_overrides[get_db] = _get_test_db
        self.client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    async def asyncTearDown(self):
        await self.client.aclose()
        app.dependency_overrides.clear()
        await super().asyncTearDown()

    async def create_deal(self, **extra) -> dict:
        merchant = await self.client.post(
            "/api/merchants",
            json={
                "legalName": "City Dental Office PC",
                "industryRiskTier": "A",
                "state": "ca",
                "monthlyRevenue": 60000,
                "timeInBusiness": 48,
                "owners": [{"firstName": "Emily", "lastName": "Davis", "ficoScore": 720, "isPrimary": True}],
            },
        )
        self.assertEqual(merchant.status_code, 201, merchant.text)
        deal = await self.client.post(
            "/api/deals", json={"merchantId": merchant.json()["id"], "requestedAmount": 30000, **extra}
        )
        self.assertEqual(deal.status_code, 201, deal.text)
        return deal.json()

    async def move(self, deal_id: str, *stages: str):
        for stage in stages:
            r = await self.client.post(f"/api/deals/{deal_id}/transition", json={"stage": stage})
            self.assertEqual(r.status_code, 200, r.text)


class TestDealLifecycle(ApiTestCase):
    async def test_create_starts_at_new_lead_with_intake_history(self):
        deal = await self.create_deal()
        self.assertEqual(deal["stage"], "NEW_LEAD")
        self.assertEqual(deal["version"], 1)

        detail = (await self.client.get(f"/api/deals/{deal['id']}")).json()
        self.assertEqual(detail["merchant"]["state"], "CA")
        self.assertEqual(len(detail["merchant"]["owners"]), 1)
        self.assertEqual(len(detail["stageHistory"]), 1)
        self.assertIsNone(detail["stageHistory"][0]["fromStage"])
        self.assertEqual(detail["stageHistory"][0]["toStage"], "NEW_LEAD")

    async def test_create_for_unknown_merchant(self):
        r = await self.client.post("/api/deals", json={"merchantId": "mer-nope", "requestedAmount": 1000})
        self.assertEqual(r.status_code, 404)
        self.assertEqual(r.json()["error"]["code"], "NOT_FOUND")

    async def test_invalid_transition_is_409(self):
        deal = await self.create_deal()
        r = await self.client.post(f"/api/deals/{deal['id']}/transition", json={"stage": "APPROVED"})
        self.assertEqual(r.status_code, 409)
        error = r.json()["error"]
        self.assertEqual(error["code"], "INVALID_TRANSITION")
        self.assertEqual(error["currentStage"], "NEW_LEAD")
        self.assertEqual(error["requestedStage"], "APPROVED")

        detail = (await self.client.get(f"/api/deals/{deal['id']}")).json()
        self.assertEqual(detail["stage"], "NEW_LEAD")
        self.assertEqual(len(detail["stageHistory"]), 1)

    async def test_allowed_transitions(self):
        deal = await self.create_deal()
        body = (await self.client.get(f"/api/deals/{deal['id']}/transitions")).json()
        self.assertEqual(body["allowedStages"], ["DOCS_REQUESTED", "DECLINED", "DEAD"])

    async def test_unknown_deal_is_404(self):
        r = await self.client.get("/api/deals/deal-missing")
        self.assertEqual(r.status_code, 404)
        self.assertEqual(r.json()["error"]["code"], "NOT_FOUND")

    async def test_list_filters_by_stage(self):
        first = await self.create_deal()
        await self.create_deal()
        await self.move(first["id"], "DOCS_REQUESTED")
        r = await self.client.get("/api/deals", params={"stage": "DOCS_REQUESTED"})
        self.assertEqual([d["id"] for d in r.json()], [first["id"]])

    async def test_stale_version_is_409(self):
        deal = await self.create_deal()
        r = await self.client.post(
            f"/api/deals/{deal['id']}/transition", json={"stage": "DOCS_REQUESTED", "expectedVersion": 5}
        )
        self.assertEqual(r.status_code, 409)
        self.assertEqual(r.json()["error"]["code"], "CONCURRENT_MODIFICATION")

    async def test_delete(self):
        deal = await self.create_deal()
        await self.client.post(f"/api/deals/{deal['id']}/comments", json={"content": "Called merchant"})
        r = await self.client.delete(f"/api/deals/{deal['id']}")
        self.assertEqual(r.status_code, 204)
        self.assertEqual((await self.client.get(f"/api/deals/{deal['id']}")).status_code, 404)

    async def test_comments_and_bank_analysis(self):
        deal = await self.create_deal()
        r = await self.client.post(f"/api/deals/{deal['id']}/comments", json={"content": "Docs chased", "isInternal": True})
        self.assertEqual(r.status_code, 201)
        comments = (await self.client.get(f"/api/deals/{deal['id']}/comments")).json()
        self.assertEqual(comments[0]["content"], "Docs chased")

        r = await self.client.put(
            f"/api/deals/{deal['id']}/bank-analysis",
            json={"avgDailyBalance": 15000, "depositDaysCount": 55, "nsfCount": 1, "revenueTrend": "GROWING"},
        )
        self.assertEqual(r.status_code, 200, r.text)
        self.assertEqual(r.json()["avgDailyBalance"], 15000.0)
        r = await self.client.put(f"/api/deals/{deal['id']}/bank-analysis", json={"nsfCount": 3})
        self.assertEqual(r.json()["nsfCount"], 3)


class TestPatchOffer(ApiTestCase):
    async def test_all_three_fields_derive_payments(self):
        deal = await self.create_deal()
        r = await self.client.patch(f"/api/deals/{deal['id']}", json=OFFER)
        self.assertEqual(r.status_code, 200, r.text)
        body = r.json()
        self.assertEqual(body["paybackAmount"], 13500.0)
        self.assertEqual(body["dailyPayment"], 112.5)
        self.assertEqual(body["weeklyPayment"], 787.5)
        self.assertEqual(body["commission"], 1000.0)
        self.assertEqual(body["version"], 2)

    async def test_reprice_recomputes_holdback(self):
        deal = await self.create_deal()
        r = await self.client.patch(f"/api/deals/{deal['id']}", json=OFFER)
        # 112.50 a day against 60000 a month
        self.assertEqual(r.json()["holdbackPercentage"], 4.1)

        r = await self.client.patch(
            f"/api/deals/{deal['id']}", json={"approvedAmount": 40000, "factorRate": 1.5, "termDays": 60}
        )
        self.assertEqual(r.status_code, 200, r.text)
        self.assertEqual(r.json()["dailyPayment"], 1000.0)
        self.assertEqual(r.json()["holdbackPercentage"], 36.7)

    async def test_reprice_holdback_counts_existing_daily_load(self):
        deal = await self.create_deal()
        r = await self.client.put(f"/api/deals/{deal['id']}/bank-analysis", json={"estimatedDailyLoad": 100})
        self.assertEqual(r.status_code, 200, r.text)
        r = await self.client.patch(
            f"/api/deals/{deal['id']}", json={"approvedAmount": 40000, "factorRate": 1.5, "termDays": 60}
        )
        self.assertEqual(r.status_code, 200, r.text)
        self.assertEqual(r.json()["holdbackPercentage"], 40.3)

    async def test_partial_offer_rejected_by_default(self):
        deal = await self.create_deal()
        r = await self.client.patch(f"/api/deals/{deal['id']}", json={"approvedAmount": 10000})
        self.assertEqual(r.status_code, 422)
        self.assertEqual(r.json()["error"]["code"], "INCOMPLETE_OFFER")

    async def test_zero_term_is_422(self):
        deal = await self.create_deal()
        r = await self.client.patch(f"/api/deals/{deal['id']}", json={**OFFER, "termDays": 0})
        self.assertEqual(r.status_code, 422)
        self.assertEqual(r.json()["error"]["code"], "INVALID_OFFER_INPUT")
        detail = (await self.client.get(f"/api/deals/{deal['id']}")).json()
        self.assertIsNone(detail["approvedAmount"])

    async def test_partial_offer_when_allowed(self):
        deal = await self.create_deal()
        with patch.object(settings, "allow_partial_offer_fields", True):
            r = await self.client.patch(f"/api/deals/{deal['id']}", json={"approvedAmount": 10000})
            self.assertEqual(r.status_code, 200, r.text)
            self.assertEqual(r.json()["approvedAmount"], 10000.0)
            self.assertIsNone(r.json()["paybackAmount"])

            r = await self.client.patch(f"/api/deals/{deal['id']}", json={"factorRate": 1.35, "termDays": 120})
            self.assertEqual(r.status_code, 200, r.text)
            self.assertEqual(r.json()["paybackAmount"], 13500.0)

    async def test_patch_stage_uses_transition_rules(self):
        deal = await self.create_deal()
        r = await self.client.patch(f"/api/deals/{deal['id']}", json={"stage": "FUNDED"})
        self.assertEqual(r.status_code, 409)
        r = await self.client.patch(f"/api/deals/{deal['id']}", json={"stage": "DOCS_REQUESTED", "riskScore": 55})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["stage"], "DOCS_REQUESTED")
        self.assertEqual(r.json()["riskScore"], 55)

    async def test_failed_patch_writes_nothing(self):
        deal = await self.create_deal()
        r = await self.client.patch(f"/api/deals/{deal['id']}", json={"stage": "APPROVED", "riskScore": 90, **OFFER})
        self.assertEqual(r.status_code, 409)
        detail = (await self.client.get(f"/api/deals/{deal['id']}")).json()
        self.assertIsNone(detail["riskScore"])
        self.assertIsNone(detail["paybackAmount"])
        self.assertEqual(detail["version"], 1)


class TestUnderwritingApi(ApiTestCase):
    async def test_calculate(self):
        r = await self.client.post("/api/underwriting/calculate", json=OFFER)
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["paybackAmount"], 13500.0)

    async def test_calculate_zero_term(self):
        r = await self.client.post("/api/underwriting/calculate", json={**OFFER, "termDays": 0})
        self.assertEqual(r.status_code, 422)
        self.assertEqual(r.json()["error"]["field"], "termDays")

    async def test_approve_then_counter(self):
        deal = await self.create_deal()
        await self.move(deal["id"], "DOCS_REQUESTED", "DOCS_RECEIVED", "IN_UNDERWRITING")

        r = await self.client.post(
            "/api/underwriting/decision",
            json={"dealId": deal["id"], "decision": "COUNTER", "offerRequest": {**OFFER, "factorRate": 1.4}},
        )
        self.assertEqual(r.status_code, 200, r.text)
        self.assertFalse(r.json()["persisted"])
        self.assertEqual(r.json()["stage"], "IN_UNDERWRITING")

        r = await self.client.post(
            "/api/underwriting/decision",
            json={"dealId": deal["id"], "decision": "APPROVE", "offerRequest": OFFER, "paperGrade": "B"},
        )
        self.assertEqual(r.status_code, 200, r.text)
        self.assertEqual(r.json()["stage"], "APPROVED")

        detail = (await self.client.get(f"/api/deals/{deal['id']}")).json()
        self.assertEqual(detail["stage"], "APPROVED")
        self.assertEqual(detail["dailyPayment"], 112.5)
        self.assertEqual(len(detail["stageHistory"]), 5)
        self.assertEqual(len(detail["comments"]), 1)

    async def test_analyze_and_quote(self):
        deal = await self.create_deal()
        r = await self.client.post("/api/underwriting/analyze", json={"dealId": deal["id"]})
        self.assertEqual(r.status_code, 200, r.text)
        body = r.json()
        self.assertIn("totalScore", body["riskAnalysis"])
        self.assertEqual(body["stackingAnalysis"]["riskLevel"], "LOW")
        self.assertIsNotNone(body["offer"])
        self.assertIsNone(body["bankMetrics"])

        r = await self.client.post("/api/underwriting/offer", json={"dealId": deal["id"], "grade": "A"})
        self.assertEqual(r.status_code, 200, r.text)
        body = r.json()
        self.assertEqual(body["paperGrade"], "A")
        self.assertEqual(body["standardOffer"]["approvedAmount"], 30000.0)
        self.assertEqual(len(body["offerTiers"]), 3)
        self.assertIsNone(body["customOffer"])


if __name__ == "__main__":
    unittest.main()
