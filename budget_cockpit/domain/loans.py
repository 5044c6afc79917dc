"""Loan and credit card payoff simulation"""

import math
from typing import Any, List, Tuple

from budget_cockpit.domain.metrics import calculate_monthly_summary, sum_field
from budget_cockpit.domain.models import (
    CardPaymentRecommendation,
    CardPaymentRecommendationRow,
    PayoffComparison,
    Snapshot,
)
from budget_cockpit.domain.results import result_boundary, unwrap
from budget_cockpit.domain.validation import check_monetary_value
from budget_cockpit.utils.number_utils import as_number, is_number

NON_CONVERGENT_MONTHS = 9999
MAX_SIMULATION_MONTHS = 1200
BALANCE_EPSILON = 0.000001

EXTRA_POOL_SHARE_OF_SURPLUS = 0.35
APR_SCORE_CEILING = 35
BALANCE_SCORE_CEILING = 15000
APR_WEIGHT = 0.55
UTILIZATION_WEIGHT = 0.30
BALANCE_WEIGHT = 0.15
AVALANCHE_STRATEGY = "Weighted debt avalanche (APR + utilization + balance)"


@result_boundary
def calculate_estimated_payoff_months(
    principal_balance: float,
    monthly_payment: float,
    annual_interest_rate_percent: float,
) -> float:
    """
    Closed-form months to pay off a balance.

    Returns 0 when there is nothing to pay (or no payment), balance / payment
    at 0% APR, and 9999 when the payment does not cover the first month's
    interest. Otherwise -ln(1 - iB/P) / ln(1 + i) with i the monthly rate.
    """
    balance = check_monetary_value(principal_balance, "principalBalance")
    payment = check_monetary_value(monthly_payment, "monthlyPayment")
    rate_percent = check_monetary_value(annual_interest_rate_percent, "annualInterestRatePercent")

    if balance == 0 or payment == 0:
        return 0
    if rate_percent == 0:
        return balance / payment

    monthly_rate = rate_percent / 100 / 12
    # Payoff never converges when the payment cannot cover the interest
    if payment <= balance * monthly_rate:
        return NON_CONVERGENT_MONTHS
    return -math.log(1 - (monthly_rate * balance) / payment) / math.log(1 + monthly_rate)


def _simulate_payoff(balance: float, payment: float, monthly_rate: float) -> Tuple[float, float, float]:
    """(months, interest_paid, total_paid) for a fixed monthly payment"""
    non_convergent = (NON_CONVERGENT_MONTHS, math.inf, math.inf)
    if balance == 0:
        return 0, 0, 0
    if payment == 0:
        return non_convergent

    remaining = balance
    months = 0
    interest_paid = 0.0
    total_paid = 0.0
    while remaining > BALANCE_EPSILON and months < MAX_SIMULATION_MONTHS:
        interest = remaining * monthly_rate
        if payment - interest <= 0:
            return non_convergent
        applied = min(payment, remaining + interest)
        remaining = max(0, remaining + interest - applied)
        interest_paid += interest
        total_paid += applied
        months += 1

    if months >= MAX_SIMULATION_MONTHS and remaining > 0:
        return non_convergent
    return months, interest_paid, total_paid


@result_boundary
def calculate_payoff_comparison(
    principal_balance: float,
    base_monthly_payment: float,
    extra_monthly_payment: float,
    annual_interest_rate_percent: float,
) -> PayoffComparison:
    """
    Month-by-month payoff at the base payment vs base + extra.

    Args:
        principal_balance: Outstanding balance
        base_monthly_payment: Scheduled payment
        extra_monthly_payment: Additional payment on top of the base
        annual_interest_rate_percent: APR, compounded monthly

    Returns:
        PayoffComparison; a side that never pays off reports 9999 months and
        infinite interest, and interest_saved is 0 unless both sides converge
    """
    balance = check_monetary_value(principal_balance, "principalBalance")
    base = check_monetary_value(base_monthly_payment, "baseMonthlyPayment")
    extra = check_monetary_value(extra_monthly_payment, "extraMonthlyPayment")
    rate_percent = check_monetary_value(annual_interest_rate_percent, "annualInterestRatePercent")
    monthly_rate = rate_percent / 100 / 12

    base_months, base_interest, base_total = _simulate_payoff(balance, base, monthly_rate)
    fast_months, fast_interest, fast_total = _simulate_payoff(balance, base + extra, monthly_rate)

    if math.isfinite(base_interest) and math.isfinite(fast_interest):
        interest_saved = max(0, base_interest - fast_interest)
    else:
        interest_saved = 0

    return PayoffComparison(
        base_months=base_months,
        accelerated_months=fast_months,
        months_saved=max(0, base_months - fast_months),
        base_interest_paid=base_interest,
        accelerated_interest_paid=fast_interest,
        interest_saved=interest_saved,
        base_total_paid=base_total,
        accelerated_total_paid=fast_total,
    )


def _recommendation_reason(apr: float, utilization: float) -> str:
    if apr >= 20:
        return "High APR priority in avalanche model."
    if utilization >= 50:
        return "High utilization gets extra allocation."
    return "Balanced allocation based on score."


@result_boundary
def calculate_card_payment_recommendations(state: Any) -> CardPaymentRecommendation:
    """
    Split card payments using a weighted avalanche.

    Each card scores 0.55 * APR/35 + 0.30 * utilization + 0.15 * balance/15000
    (each term capped at 1). The pool above card minimums is the larger of
    current payments and minimums, plus 35% of what is left after expenses and
    non-card debt minimums, and it is shared in proportion to score.
    """
    snapshot = Snapshot.parse(state)
    summary = unwrap(calculate_monthly_summary(snapshot), "monthly summary")
    cards = snapshot.credit_cards

    required_minimums = sum_field(snapshot.debts, "minimumPayment") + sum_field(snapshot.loans, "minimumPayment")
    current_total = sum(
        (max(as_number(card.get("monthlyPayment")), as_number(card.get("minimumPayment"))) for card in cards),
        0,
    )
    available = summary.total_income - summary.total_expenses - required_minimums
    extra_budget = max(0, available * EXTRA_POOL_SHARE_OF_SURPLUS)

    scored: List[dict] = []
    for index, card in enumerate(cards):
        balance = as_number(card.get("currentBalance"))
        capacity = as_number(card.get("maxCapacity"))
        minimum = as_number(card.get("minimumPayment"))
        monthly = card.get("monthlyPayment") if is_number(card.get("monthlyPayment")) else minimum
        apr = as_number(card.get("interestRatePercent"))
        utilization = (balance / capacity) * 100 if capacity > 0 else 0
        score = (
            min(1, apr / APR_SCORE_CEILING) * APR_WEIGHT
            + min(1, utilization / 100) * UTILIZATION_WEIGHT
            + min(1, balance / BALANCE_SCORE_CEILING) * BALANCE_WEIGHT
        )
        scored.append(
            {
                "id": card["id"] if isinstance(card.get("id"), str) else f"credit-card-reco-{index + 1}",
                "person": card["person"] if isinstance(card.get("person"), str) else "Unknown",
                "item": card["item"] if isinstance(card.get("item"), str) else f"Card {index + 1}",
                "balance": balance,
                "minimum": minimum,
                "monthly": monthly,
                "apr": apr,
                "utilization": utilization,
                "score": score,
            }
        )

    total_score = sum((row["score"] for row in scored), 0)
    total_minimums = sum((row["minimum"] for row in scored), 0)
    # Recommendations never undercut what is already being paid
    baseline_pool = max(current_total, total_minimums)
    pool_above_minimums = max(0, baseline_pool + extra_budget - total_minimums)
    equal_share = 1 / (len(scored) or 1)

    rows: List[CardPaymentRecommendationRow] = []
    for row in scored:
        share = row["score"] / total_score if total_score > 0 else equal_share
        recommended = row["minimum"] + pool_above_minimums * share
        current_payment = max(row["monthly"], row["minimum"])
        months_current = unwrap(
            calculate_estimated_payoff_months(row["balance"], current_payment, row["apr"]), "estimated payoff months"
        )
        months_recommended = unwrap(
            calculate_estimated_payoff_months(row["balance"], max(recommended, row["minimum"]), row["apr"]),
            "estimated payoff months",
        )
        rows.append(
            CardPaymentRecommendationRow(
                id=row["id"],
                person=row["person"],
                item=row["item"],
                current_balance=row["balance"],
                minimum_payment=row["minimum"],
                current_monthly_payment=current_payment,
                interest_rate_percent=row["apr"],
                utilization_percent=row["utilization"],
                priority_score=row["score"],
                recommended_monthly_payment=recommended,
                estimated_months_current=months_current,
                estimated_months_recommended=months_recommended,
                recommendation_reason=_recommendation_reason(row["apr"], row["utilization"]),
            )
        )

    balance_divisor = max(sum((row.current_balance for row in rows), 0), 1)
    return CardPaymentRecommendation(
        strategy=AVALANCHE_STRATEGY,
        extra_acceleration_budget=extra_budget,
        recommended_total_monthly_payment=sum((row.recommended_monthly_payment for row in rows), 0),
        current_total_monthly_payment=current_total,
        weighted_payoff_months_current=sum(
            (row.estimated_months_current * row.current_balance for row in rows), 0
        ) / balance_divisor,
        weighted_payoff_months_recommended=sum(
            (row.estimated_months_recommended * row.current_balance for row in rows), 0
        ) / balance_divisor,
        rows=tuple(sorted(rows, key=lambda row: row.interest_rate_percent, reverse=True)),
    )
