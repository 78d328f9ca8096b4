"""
Offer calculator: payback, daily/weekly payment, holdback and commission for an MCA offer.
Pure and synchronous; every input is checked before any arithmetic so a bad term never yields Infinity/NaN.
Money is quantized to cents and holdback to a tenth of a percent (ROUND_HALF_UP); the quantized values are
exactly what gets persisted on the deal.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from errors import InvalidOfferInput
from schemas.enums import PaperGrade
from schemas.offer import Offer, OfferRequest, OfferTier

CENT = Decimal("0.01")
TENTH = Decimal("0.1")
# Matches the Numeric(6, 4) factor_rate column
FACTOR_PLACES = Decimal("0.0001")
DAYS_PER_WEEK = 7
BUSINESS_DAYS_PER_MONTH = 22
# Daily payments (new + existing positions) may not exceed this share of daily revenue
MAX_HOLDBACK = Decimal("0.25")

FACTOR_RATES: dict[PaperGrade, dict[str, Decimal]] = {
    PaperGrade.A: {"min": Decimal("1.15"), "max": Decimal("1.25"), "default": Decimal("1.20")},
    PaperGrade.B: {"min": Decimal("1.26"), "max": Decimal("1.35"), "default": Decimal("1.30")},
    PaperGrade.C: {"min": Decimal("1.36"), "max": Decimal("1.45"), "default": Decimal("1.40")},
    PaperGrade.D: {"min": Decimal("1.46"), "max": Decimal("1.55"), "default": Decimal("1.50")},
}

TERM_DAYS: dict[PaperGrade, dict[str, int]] = {
    PaperGrade.A: {"min": 90, "max": 180, "default": 120},
    PaperGrade.B: {"min": 90, "max": 150, "default": 120},
    PaperGrade.C: {"min": 60, "max": 120, "default": 90},
    PaperGrade.D: {"min": 60, "max": 90, "default": 60},
}

# Max advance as a multiple of monthly revenue
MAX_MULTIPLES: dict[PaperGrade, Decimal] = {
    PaperGrade.A: Decimal("1.5"),
    PaperGrade.B: Decimal("1.25"),
    PaperGrade.C: Decimal("1.0"),
    PaperGrade.D: Decimal("0.75"),
}

OFFER_COLUMNS = (
    "approved_amount",
    "factor_rate",
    "term_days",
    "payback_amount",
    "daily_payment",
    "weekly_payment",
    "holdback_percentage",
    "position",
    "commission",
    "commission_rate",
)


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _require_positive(field: str, value: Any) -> Decimal:
    if value is None:
        raise InvalidOfferInput(field, value, "is required")
    d = Decimal(value)
    if not d.is_finite() or d <= 0:
        raise InvalidOfferInput(field, value)
    return d


def _require_non_negative(field: str, value: Any) -> Decimal:
    d = Decimal(value if value is not None else 0)
    if not d.is_finite() or d < 0:
        raise InvalidOfferInput(field, value, "must not be negative")
    return d


def _require_term(value: Any) -> int:
    if value is None or isinstance(value, bool) or int(value) != value or value <= 0:
        raise InvalidOfferInput("termDays", value, "must be a positive whole number of days")
    return int(value)


def _payment_terms(amount: Decimal, factor_rate: Decimal, term_days: int) -> tuple[Decimal, Decimal, Decimal]:
    """(payback, daily, weekly), each rounded once from the unrounded chain."""
    payback = amount * factor_rate
    daily = payback / term_days
    weekly = daily * DAYS_PER_WEEK
    return _cents(payback), _cents(daily), _cents(weekly)


def calculate_offer(request: OfferRequest) -> Offer:
    """
    paybackAmount = approvedAmount x factorRate
    dailyPayment  = paybackAmount / termDays
    weeklyPayment = dailyPayment x 7
    commission    = approvedAmount x commissionRate
    holdback %    = (dailyPayment + existing daily load) x 22 x 100 / monthly revenue, when revenue is known

    The factor rate is first rounded to the four places the deal stores, so every derived amount is
    reproducible from the persisted row.
    """
    amount = _require_positive("approvedAmount", request.approved_amount)
    factor_rate = _require_positive("factorRate", request.factor_rate).quantize(FACTOR_PLACES, rounding=ROUND_HALF_UP)
    if factor_rate <= 0:
        raise InvalidOfferInput("factorRate", request.factor_rate)
    term_days = _require_term(request.term_days)
    commission_rate = _require_non_negative("commissionRate", request.commission_rate)
    existing_load = _require_non_negative("existingDailyLoad", request.existing_daily_load)
    if request.existing_positions < 0:
        raise InvalidOfferInput("existingPositions", request.existing_positions, "must not be negative")

    payback, daily, weekly = _payment_terms(amount, factor_rate, term_days)

    holdback = None
    if request.monthly_revenue is not None:
        monthly_revenue = _require_positive("monthlyRevenue", request.monthly_revenue)
        raw_daily = amount * factor_rate / term_days
        # Multiply before dividing; monthly_revenue / 22 is rarely exact
        holdback = ((raw_daily + existing_load) * BUSINESS_DAYS_PER_MONTH * 100 / monthly_revenue).quantize(
            TENTH, rounding=ROUND_HALF_UP
        )

    return Offer(
        approved_amount=_cents(amount),
        factor_rate=factor_rate,
        term_days=term_days,
        payback_amount=payback,
        daily_payment=daily,
        weekly_payment=weekly,
        holdback_percentage=holdback,
        position=request.existing_positions + 1,
        commission=_cents(amount * commission_rate),
        commission_rate=commission_rate,
    )


def validate_offer(offer: Offer) -> Offer:
    """
    Check a caller-supplied Offer before it is persisted verbatim.
    Derived amounts must equal what the calculator produces from the offer's own inputs.
    """
    _require_positive("approvedAmount", offer.approved_amount)
    _require_positive("factorRate", offer.factor_rate)
    _require_term(offer.term_days)
    _require_positive("paybackAmount", offer.payback_amount)
    _require_positive("dailyPayment", offer.daily_payment)

    expected = calculate_offer(offer_request_from(offer))
    for field, name in (
        ("factor_rate", "factorRate"),
        ("payback_amount", "paybackAmount"),
        ("daily_payment", "dailyPayment"),
        ("weekly_payment", "weeklyPayment"),
        ("commission", "commission"),
    ):
        if getattr(offer, field) != getattr(expected, field):
            raise InvalidOfferInput(
                name, getattr(offer, field), f"does not match the offer's inputs (expected {getattr(expected, field)})"
            )
    return offer


def offer_request_from(offer: Offer) -> OfferRequest:
    """Inputs that reproduce `offer`; position is echoed back as existing positions."""
    return OfferRequest(
        approved_amount=offer.approved_amount,
        factor_rate=offer.factor_rate,
        term_days=offer.term_days,
        commission_rate=offer.commission_rate,
        existing_positions=max((offer.position or 1) - 1, 0),
    )


def max_advance(grade: PaperGrade, monthly_revenue: Decimal) -> Decimal:
    return _cents(Decimal(monthly_revenue) * MAX_MULTIPLES[grade])


def grade_offer(
    grade: PaperGrade,
    requested_amount: Decimal,
    monthly_revenue: Decimal,
    existing_positions: int = 0,
    existing_daily_load: Decimal = Decimal("0"),
    commission_rate: Decimal = Decimal("0.10"),
) -> Offer:
    """Standard offer for a paper grade: lesser of request and revenue cap, grade default factor and term."""
    requested = _require_positive("requestedAmount", requested_amount)
    revenue = _require_positive("monthlyRevenue", monthly_revenue)
    approved = min(requested, max_advance(grade, revenue))
    return calculate_offer(
        OfferRequest(
            approved_amount=_cents(approved),
            factor_rate=FACTOR_RATES[grade]["default"],
            term_days=TERM_DAYS[grade]["default"],
            commission_rate=commission_rate,
            monthly_revenue=revenue,
            existing_daily_load=existing_daily_load,
            existing_positions=existing_positions,
        )
    )


def offer_tiers(grade: PaperGrade, requested_amount: Decimal, monthly_revenue: Decimal) -> list[OfferTier]:
    requested = _require_positive("requestedAmount", requested_amount)
    revenue = _require_positive("monthlyRevenue", monthly_revenue)
    rates = FACTOR_RATES[grade]
    terms = TERM_DAYS[grade]
    multiple = MAX_MULTIPLES[grade]
    approved = min(requested, max_advance(grade, revenue))

    tiers = []
    for name, amount, factor_rate, term_days, tier_multiple in (
        ("Conservative", approved * Decimal("0.75"), rates["min"], terms["max"], multiple * Decimal("0.75")),
        ("Standard", approved, rates["default"], terms["default"], multiple),
        ("Aggressive", approved, rates["max"], terms["min"], multiple * Decimal("1.1")),
    ):
        payback, daily, weekly = _payment_terms(amount, factor_rate, term_days)
        tiers.append(
            OfferTier(
                name=name,
                factor_rate=factor_rate,
                term_days=term_days,
                max_multiple=tier_multiple,
                payback_amount=payback,
                daily_payment=daily,
                weekly_payment=weekly,
            )
        )
    return tiers


def offer_constraints(grade: PaperGrade, monthly_revenue: Decimal, existing_daily_load: Decimal = Decimal("0")) -> dict:
    revenue = _require_positive("monthlyRevenue", monthly_revenue)
    load = _require_non_negative("existingDailyLoad", existing_daily_load)
    daily_revenue = revenue / BUSINESS_DAYS_PER_MONTH
    return {
        "maxAmount": float(max_advance(grade, revenue)),
        "maxMultiple": float(MAX_MULTIPLES[grade]),
        "factorRateRange": {k: float(v) for k, v in FACTOR_RATES[grade].items()},
        "termDaysRange": dict(TERM_DAYS[grade]),
        "maxDailyPaymentCapacity": float(_cents(daily_revenue * MAX_HOLDBACK - load)),
        "dailyRevenue": float(_cents(daily_revenue)),
    }


def apply_offer(deal: Any, offer: Offer) -> None:
    """Write every offer column from `offer`, verbatim."""
    for column in OFFER_COLUMNS:
        setattr(deal, column, getattr(offer, column))


def clear_offer(deal: Any) -> None:
    for column in OFFER_COLUMNS:
        setattr(deal, column, None)
