from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

# Immutable request/response values; camelCase on the wire, snake_case in code
FROZEN_CAMEL = {"populate_by_name": True, "alias_generator": to_camel, "frozen": True}


class OfferRequest(BaseModel):
    """
    Inputs of the offer calculator.
    Positivity is checked by `calculate_offer` (raises InvalidOfferInput) rather than here,
    so a zero term is a domain error and not a schema error.
    """
    approved_amount: Decimal
    factor_rate: Decimal
    term_days: int
    commission_rate: Decimal = Decimal("0")
    # Only needed for the holdback percentage
    monthly_revenue: Optional[Decimal] = None
    existing_daily_load: Decimal = Decimal("0")
    existing_positions: int = 0

    model_config = FROZEN_CAMEL


class Offer(BaseModel):
    approved_amount: Decimal
    factor_rate: Decimal
    term_days: int
    payback_amount: Decimal
    daily_payment: Decimal
    weekly_payment: Decimal
    holdback_percentage: Optional[Decimal] = None
    position: Optional[int] = None
    commission: Decimal = Decimal("0")
    commission_rate: Decimal = Decimal("0")

    model_config = FROZEN_CAMEL

    def to_response(self) -> dict:
        return {
            "approvedAmount": float(self.approved_amount),
            "factorRate": float(self.factor_rate),
            "termDays": self.term_days,
            "paybackAmount": float(self.payback_amount),
            "dailyPayment": float(self.daily_payment),
            "weeklyPayment": float(self.weekly_payment),
            "holdbackPercentage": float(self.holdback_percentage) if self.holdback_percentage is not None else None,
            "position": self.position,
            "commission": float(self.commission),
            "commissionRate": float(self.commission_rate),
        }


class OfferTier(BaseModel):
    name: str
    factor_rate: Decimal
    term_days: int
    max_multiple: Decimal
    payback_amount: Decimal
    daily_payment: Decimal
    weekly_payment: Decimal

    model_config = FROZEN_CAMEL

    def to_response(self) -> dict:
        return {
            "name": self.name,
            "factorRate": float(self.factor_rate),
            "termDays": self.term_days,
            "maxMultiple": float(self.max_multiple),
            "paybackAmount": float(self.payback_amount),
            "dailyPayment": float(self.daily_payment),
            "weeklyPayment": float(self.weekly_payment),
        }
