from __future__ import annotations

from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from schemas.enums import DealStage, DecisionKind, PaperGrade
from schemas.offer import FROZEN_CAMEL, Offer, OfferRequest

CAMEL = {"populate_by_name": True, "alias_generator": to_camel}


class DecisionRequest(BaseModel):
    """
    One underwriting decision against a deal.
    APPROVE needs `offer` (persisted verbatim) or `offerRequest` (computed, then persisted).
    COUNTER needs either; it only computes. DECLINE uses `declineReasons`.
    """
    deal_id: str
    decision: DecisionKind
    notes: Optional[str] = None
    offer: Optional[Offer] = None
    offer_request: Optional[OfferRequest] = None
    decline_reasons: list[str] = Field(default_factory=list)
    paper_grade: Optional[PaperGrade] = None
    risk_score: Optional[int] = Field(None, ge=0, le=100)
    underwriter_id: Optional[str] = None
    expected_version: Optional[int] = None

    model_config = FROZEN_CAMEL


class DecisionResult(BaseModel):
    deal_id: str
    decision: DecisionKind
    stage: DealStage
    # False for COUNTER: nothing was written
    persisted: bool
    offer: Optional[Offer] = None
    decline_reasons: list[str] = Field(default_factory=list)
    message: str

    def to_response(self) -> dict:
        return {
            "success": True,
            "dealId": self.deal_id,
            "decision": self.decision.value,
            "stage": self.stage.value,
            "persisted": self.persisted,
            "offer": self.offer.to_response() if self.offer else None,
            "declineReasons": self.decline_reasons,
            "message": self.message,
        }


class AnalyzeRequest(BaseModel):
    deal_id: str

    model_config = CAMEL


class OfferQuoteRequest(BaseModel):
    """Grade-based quote; any custom_* field also yields a custom offer."""
    deal_id: str
    grade: Optional[PaperGrade] = None
    custom_amount: Optional[Decimal] = None
    custom_factor_rate: Optional[Decimal] = None
    custom_term_days: Optional[int] = None

    model_config = CAMEL


class RiskComponentSchema(BaseModel):
    name: str
    weight: int
    score: int
    weighted_score: float
    details: str


class RiskScoreResultSchema(BaseModel):
    total_score: int
    grade: PaperGrade
    components: list[RiskComponentSchema] = Field(default_factory=list)
    auto_approve: bool
    auto_decline: bool
    decline_reasons: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class McaPaymentSchema(BaseModel):
    name: str
    amount: float
    frequency: Literal["DAILY", "WEEKLY"] = "DAILY"
    estimated_balance: float = 0


class StackingResultSchema(BaseModel):
    is_stacked: bool
    total_positions: int
    detected_payments: list[McaPaymentSchema] = Field(default_factory=list)
    total_daily_load: float = 0
    risk_level: Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]
    recommendations: list[str] = Field(default_factory=list)


class BankMetricSchema(BaseModel):
    name: str
    value: str
    status: Literal["good", "warning", "danger"]
    description: str


class BankMetricsResultSchema(BaseModel):
    health_score: int
    metrics: list[BankMetricSchema] = Field(default_factory=list)
