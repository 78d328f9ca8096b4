"""
Underwriting risk analysis for a deal: weighted risk score, paper grade, auto approve/decline checks,
stacking detection and bank statement health metrics.
All inputs are plain dicts normalized to snake_case at entry; internal logic uses snake_case only.
"""
from __future__ import annotations

from typing import Any

from schemas.enums import IndustryRiskTier, PaperGrade, RevenueTrend
from schemas.underwriting import (
    BankMetricSchema,
    BankMetricsResultSchema,
    McaPaymentSchema,
    RiskComponentSchema,
    RiskScoreResultSchema,
    StackingResultSchema,
)
from utils.case import dict_keys_to_snake

# Weights sum to 100
RISK_WEIGHTS = {
    "fico": 20,
    "avg_daily_balance": 15,
    "deposit_consistency": 15,
    "nsf_frequency": 15,
    "time_in_business": 10,
    "industry_risk": 10,
    "existing_mca_load": 10,
    "revenue_stability": 5,
}

PAPER_GRADE_THRESHOLDS = (
    (PaperGrade.A, 650, 75),
    (PaperGrade.B, 575, 60),
    (PaperGrade.C, 500, 45),
)

AUTO_APPROVE_CRITERIA = {
    "min_fico": 650,
    "min_time_in_business": 12,
    "min_avg_daily_balance": 5000,
    "max_nsf_count": 2,
    "max_positions": 0,
    "max_request_multiple": 1.0,
    "min_score": 70,
}

AUTO_DECLINE_CRITERIA = {
    "min_fico": 500,
    "min_time_in_business": 6,
    "min_monthly_revenue": 10_000,
    "max_nsf_count": 10,
    "max_positions": 3,
}

BUSINESS_DAYS_PER_MONTH = 22
ACTIVE_UCC_STATUSES = ("FILED", "ACCEPTED")


def _num(value: Any, default: float = 0) -> float:
    return float(value) if value is not None else default


def _fico_score(fico: int) -> int:
    if not fico:
        return 0
    for floor, score in ((750, 100), (700, 90), (650, 80), (600, 65), (550, 50), (500, 35)):
        if fico >= floor:
            return score
    return 20


def _fico_details(fico: int) -> str:
    if not fico:
        return "No FICO score available"
    for floor, label in ((750, "Excellent"), (700, "Good"), (650, "Fair"), (600, "Below Average"), (550, "Poor")):
        if fico >= floor:
            return f"{label} ({fico})"
    return f"Very Poor ({fico})"


def _adb_score(adb: float, requested_amount: float) -> int:
    ratio = adb / (requested_amount or 1)
    for floor, score in ((0.5, 100), (0.3, 85), (0.2, 70), (0.1, 50), (0.05, 30)):
        if ratio >= floor:
            return score
    return 15


def _adb_details(adb: float) -> str:
    for floor, label in ((25_000, "Strong"), (10_000, "Good"), (5_000, "Fair")):
        if adb >= floor:
            return f"{label} (${adb:,.0f})"
    return f"Low (${adb:,.0f})"


def _deposit_consistency(bank: dict[str, Any]) -> float:
    total_days = (bank.get("months_analyzed") or 0) * 30
    if not total_days:
        return 0.0
    return (bank.get("deposit_days_count") or 0) / total_days * 100


def _deposit_score(bank: dict[str, Any]) -> int:
    consistency = _deposit_consistency(bank)
    for floor, score in ((80, 100), (60, 80), (40, 60), (20, 40)):
        if consistency >= floor:
            return score
    return 20


def _nsf_score(nsf_count: int) -> int:
    if nsf_count == 0:
        return 100
    for ceiling, score in ((2, 85), (4, 65), (6, 45), (10, 25)):
        if nsf_count <= ceiling:
            return score
    return 10


def _nsf_details(nsf_count: int) -> str:
    if nsf_count == 0:
        return "No NSF/overdraft activity - excellent"
    if nsf_count <= 2:
        return f"{nsf_count} NSF items - acceptable"
    if nsf_count <= 5:
        return f"{nsf_count} NSF items - concerning"
    return f"{nsf_count} NSF items - high risk"


def _tib_score(months: int | None) -> int:
    if not months:
        return 0
    for floor, score in ((60, 100), (36, 90), (24, 80), (12, 65), (6, 40)):
        if months >= floor:
            return score
    return 20


def _tib_details(months: int | None) -> str:
    if not months:
        return "Time in business unknown"
    years, remaining = divmod(months, 12)
    if years >= 1:
        out = f"{years} year{'s' if years > 1 else ''}"
        return out + (f" {remaining} months" if remaining else "")
    return f"{months} months"


INDUSTRY_SCORES = {
    IndustryRiskTier.A: (100, "Low risk industry"),
    IndustryRiskTier.B: (75, "Moderate risk industry"),
    IndustryRiskTier.C: (50, "Higher risk industry"),
    IndustryRiskTier.D: (20, "High risk/restricted industry"),
}

REVENUE_SCORES = {
    RevenueTrend.GROWING: (100, "Revenue trending upward"),
    RevenueTrend.STABLE: (80, "Revenue stable"),
    RevenueTrend.DECLINING: (40, "Revenue declining - risk factor"),
}


def _mca_load_score(positions: int, daily_load: float, monthly_revenue: float) -> int:
    if positions == 0:
        return 100
    daily_revenue = monthly_revenue / BUSINESS_DAYS_PER_MONTH
    load = daily_load / (daily_revenue or 1)
    if positions == 1:
        return 70 if load < 0.15 else 55
    if positions == 2:
        return 40 if load < 0.25 else 30
    return 15


def _mca_load_details(positions: int, daily_load: float) -> str:
    if positions == 0:
        return "First position - no existing MCAs"
    load = f", ~${daily_load:,.0f}/day" if daily_load else ""
    if positions == 1:
        return f"1 existing position{load} load"
    return f"{positions} existing positions{load} total load - STACKED"


def _primary_fico(owners: list[dict[str, Any]]) -> int:
    primary = next((o for o in owners if o.get("is_primary")), owners[0] if owners else None)
    return int((primary or {}).get("fico_score") or 0)


def determine_paper_grade(fico: int, total_score: int) -> PaperGrade:
    for grade, min_fico, min_score in PAPER_GRADE_THRESHOLDS:
        if fico >= min_fico and total_score >= min_score:
            return grade
    return PaperGrade.D


def calculate_risk_score(
    merchant: dict[str, Any],
    owners: list[dict[str, Any]],
    bank_analysis: dict[str, Any] | None,
    deal: dict[str, Any],
) -> RiskScoreResultSchema:
    """
    Weighted risk score (0-100) with paper grade, warnings and auto-decision flags.
    Missing bank analysis scores those components as unknown rather than failing.
    """
    merchant = dict_keys_to_snake(merchant) if merchant else {}
    owners = [dict_keys_to_snake(o) for o in owners or []]
    bank = dict_keys_to_snake(bank_analysis) if bank_analysis else None
    deal = dict_keys_to_snake(deal) if deal else {}

    fico = _primary_fico(owners)
    requested = _num(deal.get("requested_amount"))
    positions = int(deal.get("existing_positions") or 0)
    monthly_revenue = _num(merchant.get("monthly_revenue"))
    tib = merchant.get("time_in_business")
    tier = IndustryRiskTier(merchant.get("industry_risk_tier") or "B")
    daily_load = _num(bank.get("estimated_daily_load")) if bank else 0.0
    nsf_count = int(bank.get("nsf_count") or 0) if bank else 0
    no_bank = "No bank analysis available"

    scored: list[tuple[str, str, int, str]] = [
        ("FICO Score", "fico", _fico_score(fico), _fico_details(fico)),
        (
            "Average Daily Balance",
            "avg_daily_balance",
            _adb_score(_num(bank.get("avg_daily_balance")), requested) if bank else 0,
            _adb_details(_num(bank.get("avg_daily_balance"))) if bank else no_bank,
        ),
        (
            "Deposit Consistency",
            "deposit_consistency",
            _deposit_score(bank) if bank else 0,
            (
                f"{bank.get('deposit_days_count') or 0} deposit days out of {(bank.get('months_analyzed') or 0) * 30} "
                f"({round(_deposit_consistency(bank))}% consistency)"
            ) if bank else no_bank,
        ),
        (
            "NSF Frequency",
            "nsf_frequency",
            _nsf_score(nsf_count) if bank else 50,
            _nsf_details(nsf_count) if bank else no_bank,
        ),
        ("Time in Business", "time_in_business", _tib_score(tib), _tib_details(tib)),
        ("Industry Risk", "industry_risk", *INDUSTRY_SCORES[tier]),
        (
            "Existing MCA Load",
            "existing_mca_load",
            _mca_load_score(positions, daily_load, monthly_revenue),
            _mca_load_details(positions, daily_load),
        ),
        (
            "Revenue Stability",
            "revenue_stability",
            *(REVENUE_SCORES[RevenueTrend(bank.get("revenue_trend") or "STABLE")] if bank else (50, no_bank)),
        ),
    ]

    components = [
        RiskComponentSchema(
            name=name,
            weight=RISK_WEIGHTS[key],
            score=score,
            weighted_score=score * RISK_WEIGHTS[key] / 100,
            details=details,
        )
        for name, key, score, details in scored
    ]
    total_score = round(sum(c.weighted_score for c in components))
    grade = determine_paper_grade(fico, total_score)

    warnings: list[str] = []
    if 0 < fico < 550:
        warnings.append("FICO score below 550 - high risk")
    if bank and nsf_count > 5:
        warnings.append(f"High NSF count: {nsf_count} in analyzed period")
    if positions > 0:
        warnings.append(f"{positions} existing MCA position(s) detected")
    if deal.get("stacking_detected"):
        warnings.append("Stacking detected - merchant has multiple active MCAs")
    if tib and tib < 12:
        warnings.append("Business less than 12 months old")

    decline_reasons = _auto_decline_reasons(fico, merchant, bank, positions, tier)
    auto_approve = _auto_approve(fico, merchant, bank, requested, positions, total_score)

    return RiskScoreResultSchema(
        total_score=total_score,
        grade=grade,
        components=components,
        auto_approve=auto_approve and not decline_reasons,
        auto_decline=bool(decline_reasons),
        decline_reasons=decline_reasons,
        warnings=warnings,
    )


def _auto_approve(
    fico: int,
    merchant: dict[str, Any],
    bank: dict[str, Any] | None,
    requested: float,
    positions: int,
    total_score: int,
) -> bool:
    c = AUTO_APPROVE_CRITERIA
    if not bank:
        return False
    tib = merchant.get("time_in_business") or 0
    monthly_revenue = _num(merchant.get("monthly_revenue"))
    return (
        fico >= c["min_fico"]
        and tib >= c["min_time_in_business"]
        and _num(bank.get("avg_daily_balance")) >= c["min_avg_daily_balance"]
        and int(bank.get("nsf_count") or 0) <= c["max_nsf_count"]
        and positions <= c["max_positions"]
        and requested / (monthly_revenue or 1) <= c["max_request_multiple"]
        and total_score >= c["min_score"]
    )


def _auto_decline_reasons(
    fico: int,
    merchant: dict[str, Any],
    bank: dict[str, Any] | None,
    positions: int,
    tier: IndustryRiskTier,
) -> list[str]:
    c = AUTO_DECLINE_CRITERIA
    reasons: list[str] = []
    if 0 < fico < c["min_fico"]:
        reasons.append(f"FICO score {fico} below minimum threshold of {c['min_fico']}")
    tib = merchant.get("time_in_business")
    if tib and tib < c["min_time_in_business"]:
        reasons.append(f"Time in business ({tib} months) below minimum of {c['min_time_in_business']} months")
    revenue = _num(merchant.get("monthly_revenue"))
    if revenue and revenue < c["min_monthly_revenue"]:
        reasons.append(f"Monthly revenue (${revenue:,.0f}) below minimum of ${c['min_monthly_revenue']:,}")
    nsf_count = int(bank.get("nsf_count") or 0) if bank else 0
    if nsf_count > c["max_nsf_count"]:
        reasons.append(f"NSF count ({nsf_count}) exceeds maximum of {c['max_nsf_count']}")
    if positions >= c["max_positions"]:
        reasons.append(f"{positions} existing MCA positions - maximum {c['max_positions'] - 1} allowed")
    if tier is IndustryRiskTier.D:
        reasons.append("Industry classified as prohibited/high-risk")
    return reasons


def detect_stacking(
    bank_analysis: dict[str, Any] | None,
    ucc_filings: list[dict[str, Any]] | None = None,
) -> StackingResultSchema:
    """Existing positions = max(MCA debits seen on statements, active UCC filings)."""
    bank = dict_keys_to_snake(bank_analysis) if bank_analysis else None
    filings = [dict_keys_to_snake(f) for f in ucc_filings or []]

    payments: list[McaPaymentSchema] = []
    total_daily_load = 0.0
    if bank and bank.get("detected_mca_payments"):
        payments = [McaPaymentSchema(**p) for p in bank["detected_mca_payments"]]
        total_daily_load = _num(bank.get("estimated_daily_load"))

    active_uccs = sum(1 for f in filings if f.get("status") in ACTIVE_UCC_STATUSES)
    total_positions = max(len(payments), active_uccs)

    if total_positions == 0:
        risk_level = "LOW"
        recommendations = ["First position - proceed with standard underwriting"]
    elif total_positions == 1:
        risk_level = "MEDIUM"
        recommendations = [
            "Second position - verify payoff or calculate combined load",
            "Consider reduced advance amount",
        ]
    elif total_positions == 2:
        risk_level = "HIGH"
        recommendations = [
            "Third position - high stacking risk",
            "Recommend declining or requiring payoff of existing positions",
        ]
    else:
        risk_level = "CRITICAL"
        recommendations = [
            "Multiple existing positions - auto-decline recommended",
            "Merchant appears over-leveraged",
        ]

    return StackingResultSchema(
        is_stacked=total_positions > 0,
        total_positions=total_positions,
        detected_payments=payments,
        total_daily_load=total_daily_load,
        risk_level=risk_level,
        recommendations=recommendations,
    )


def analyze_bank_metrics(bank_analysis: dict[str, Any]) -> BankMetricsResultSchema:
    bank = dict_keys_to_snake(bank_analysis)
    adb = _num(bank.get("avg_daily_balance"))
    min_balance = _num(bank.get("min_balance"))
    nsf_count = int(bank.get("nsf_count") or 0)
    deposit_days = int(bank.get("deposit_days_count") or 0)
    business_days = (bank.get("months_analyzed") or 0) * BUSINESS_DAYS_PER_MONTH
    deposit_ratio = deposit_days / business_days if business_days else 0.0
    trend = RevenueTrend(bank.get("revenue_trend") or "STABLE")

    metrics: list[BankMetricSchema] = []

    status = "good" if adb >= 10_000 else "warning" if adb >= 5_000 else "danger"
    metrics.append(
        BankMetricSchema(
            name="Average Daily Balance",
            value=f"${adb:,.0f}",
            status=status,
            description={
                "good": "Strong balance indicates healthy cash flow",
                "warning": "Moderate balance - monitor closely",
                "danger": "Low balance - cash flow concerns",
            }[status],
        )
    )

    status = "good" if min_balance >= 1_000 else "warning" if min_balance >= 0 else "danger"
    metrics.append(
        BankMetricSchema(
            name="Minimum Balance",
            value=f"${min_balance:,.0f}",
            status=status,
            description=(
                "Negative balance indicates overdraft issues"
                if min_balance < 0
                else "Low minimum balance - tight cash flow"
                if min_balance < 1_000
                else "Healthy minimum balance maintained"
            ),
        )
    )

    metrics.append(
        BankMetricSchema(
            name="Deposit Consistency",
            value=f"{deposit_days} days",
            status="good" if deposit_ratio >= 0.7 else "warning" if deposit_ratio >= 0.4 else "danger",
            description=f"{round(deposit_ratio * 100)}% of business days had deposits",
        )
    )

    status = "good" if nsf_count == 0 else "warning" if nsf_count <= 3 else "danger"
    metrics.append(
        BankMetricSchema(
            name="NSF/Overdraft Count",
            value=str(nsf_count),
            status=status,
            description={
                "good": "No NSF activity - excellent",
                "warning": "Some NSF activity - acceptable",
                "danger": "High NSF count - significant risk",
            }[status],
        )
    )

    metrics.append(
        BankMetricSchema(
            name="Revenue Trend",
            value=trend.value,
            status="danger" if trend is RevenueTrend.DECLINING else "good",
            description={
                RevenueTrend.GROWING: "Revenue is growing - positive indicator",
                RevenueTrend.STABLE: "Revenue is stable",
                RevenueTrend.DECLINING: "Revenue declining - risk factor",
            }[trend],
        )
    )

    status_scores = {"good": 100, "warning": 50, "danger": 20}
    health_score = round(sum(status_scores[m.status] for m in metrics) / len(metrics))
    return BankMetricsResultSchema(health_score=health_score, metrics=metrics)
