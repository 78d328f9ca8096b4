from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from schemas.enums import DealSource, DealStage, PaperGrade, RevenueTrend

CAMEL = {"populate_by_name": True, "alias_generator": to_camel}


class DealCreate(BaseModel):
    merchant_id: str
    requested_amount: Decimal = Field(..., gt=0)
    source: DealSource = DealSource.DIRECT
    broker_id: Optional[str] = None
    existing_positions: int = Field(0, ge=0)
    created_by: Optional[str] = None

    model_config = CAMEL


class DealUpdate(BaseModel):
    """
    Partial update. A `stage` different from the current one goes through the transition rules.
    Offer inputs (approvedAmount, factorRate, termDays) are set together; payback and payments are derived.
    """
    requested_amount: Optional[Decimal] = Field(None, gt=0)
    approved_amount: Optional[Decimal] = None
    factor_rate: Optional[Decimal] = None
    term_days: Optional[int] = None
    stage: Optional[DealStage] = None
    paper_grade: Optional[PaperGrade] = None
    risk_score: Optional[int] = Field(None, ge=0, le=100)
    underwriter_id: Optional[str] = None
    broker_id: Optional[str] = None
    existing_positions: Optional[int] = Field(None, ge=0)
    stacking_detected: Optional[bool] = None
    decision_notes: Optional[str] = None
    decline_reasons: Optional[list[str]] = None
    changed_by: Optional[str] = None
    expected_version: Optional[int] = None

    model_config = CAMEL


class StageChange(BaseModel):
    stage: DealStage
    changed_by: Optional[str] = None
    notes: Optional[str] = None
    expected_version: Optional[int] = None

    model_config = CAMEL


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1)
    author: Optional[str] = None
    is_internal: bool = False

    model_config = CAMEL


class DocumentCreate(BaseModel):
    name: str
    doc_type: Optional[str] = None
    url: Optional[str] = None

    model_config = CAMEL


class McaPaymentIn(BaseModel):
    name: str
    amount: Decimal
    frequency: Literal["DAILY", "WEEKLY"] = "DAILY"
    estimated_balance: Decimal = Decimal("0")

    model_config = CAMEL


class BankAnalysisUpsert(BaseModel):
    avg_daily_balance: Decimal = Decimal("0")
    min_balance: Decimal = Decimal("0")
    max_balance: Decimal = Decimal("0")
    total_deposits: Decimal = Decimal("0")
    deposit_count: int = Field(0, ge=0)
    avg_deposit: Decimal = Decimal("0")
    deposit_days_count: int = Field(0, ge=0)
    nsf_count: int = Field(0, ge=0)
    overdraft_count: int = Field(0, ge=0)
    months_analyzed: int = Field(3, gt=0)
    revenue_trend: RevenueTrend = RevenueTrend.STABLE
    estimated_daily_load: Optional[Decimal] = Field(None, ge=0)
    detected_mca_payments: Optional[list[McaPaymentIn]] = None

    model_config = CAMEL

    def payments_for_storage(self) -> Optional[list[dict[str, Any]]]:
        if self.detected_mca_payments is None:
            return None
        return [
            {
                "name": p.name,
                "amount": float(p.amount),
                "frequency": p.frequency,
                "estimated_balance": float(p.estimated_balance),
            }
            for p in self.detected_mca_payments
        ]
