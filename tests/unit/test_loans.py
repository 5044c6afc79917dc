"""Unit tests for payoff simulation and card payment recommendations"""

import math

import pytest

from budget_cockpit.domain.loans import (
    NON_CONVERGENT_MONTHS,
    calculate_card_payment_recommendations,
    calculate_estimated_payoff_months,
    calculate_payoff_comparison,
)


def test_payoff_months_without_interest():
    """0% APR is a straight division"""
    months, error = calculate_estimated_payoff_months(1000, 100, 0)

    assert error is None
    assert months == 10


def test_payoff_months_nothing_owed():
    months, _ = calculate_estimated_payoff_months(0, 100, 5)
    assert months == 0


def test_payoff_months_payment_below_interest():
    """$1 against 2% monthly interest on $1000 never pays off"""
    months, _ = calculate_estimated_payoff_months(1000, 1, 24)
    assert months == NON_CONVERGENT_MONTHS == 9999


def test_payoff_months_payment_equal_to_interest():
    months, _ = calculate_estimated_payoff_months(1000, 10, 12)
    assert months == 9999


def test_payoff_months_closed_form():
    months, _ = calculate_estimated_payoff_months(1000, 100, 12)
    assert months == pytest.approx(-math.log(0.9) / math.log(1.01))


def test_payoff_months_rejects_negative_balance():
    months, error = calculate_estimated_payoff_months(-1, 100, 5)

    assert months is None
    assert error.message == "principalBalance must be non-negative"


def test_payoff_comparison_extra_payment():
    comparison, error = calculate_payoff_comparison(1000, 100, 100, 0)

    assert error is None
    assert comparison.base_months == 10
    assert comparison.accelerated_months == 5
    assert comparison.months_saved == 5
    assert comparison.base_total_paid == pytest.approx(1000)
    assert comparison.interest_saved == 0


def test_payoff_comparison_with_interest_saves_money():
    comparison, _ = calculate_payoff_comparison(5000, 150, 100, 18)

    assert comparison.accelerated_months < comparison.base_months
    assert comparison.interest_saved > 0
    assert comparison.base_total_paid == pytest.approx(5000 + comparison.base_interest_paid)


def test_payoff_comparison_non_convergent_base():
    """A base payment below interest reports infinite cost and no interest delta"""
    comparison, _ = calculate_payoff_comparison(1000, 5, 50, 12)

    assert comparison.base_months == 9999
    assert math.isinf(comparison.base_interest_paid)
    assert math.isfinite(comparison.accelerated_interest_paid)
    assert comparison.interest_saved == 0
    assert comparison.months_saved > 0


def test_card_recommendation_single_card(sample_state):
    """The single card gets its minimum plus the whole pool"""
    recommendation, error = calculate_card_payment_recommendations(sample_state)

    assert error is None
    assert recommendation.extra_acceleration_budget == pytest.approx(0.35 * (6000 - 3000 - 1550))
    assert recommendation.current_total_monthly_payment == 150
    row = recommendation.rows[0]
    assert row.recommended_monthly_payment == pytest.approx(150 + 507.5)
    assert row.utilization_percent == pytest.approx(30)
    assert row.recommendation_reason == "High APR priority in avalanche model."
    assert row.estimated_months_recommended < row.estimated_months_current


def test_card_recommendation_sorted_by_apr(empty_state):
    empty_state["income"] = [{"amount": 5000}]
    empty_state["expenses"] = [{"amount": 2000}]
    empty_state["creditCards"] = [
        {"id": "low", "currentBalance": 800, "maxCapacity": 4000, "minimumPayment": 25, "interestRatePercent": 12},
        {"id": "high", "currentBalance": 3000, "maxCapacity": 3500, "minimumPayment": 90, "interestRatePercent": 29},
    ]
    recommendation, error = calculate_card_payment_recommendations(empty_state)

    assert error is None
    assert [row.id for row in recommendation.rows] == ["high", "low"]
    high, low = recommendation.rows
    assert high.priority_score > low.priority_score
    assert high.recommended_monthly_payment - high.minimum_payment > low.recommended_monthly_payment - low.minimum_payment


def test_card_recommendation_no_cards(empty_state):
    recommendation, error = calculate_card_payment_recommendations(empty_state)

    assert error is None
    assert recommendation.rows == ()
    assert recommendation.weighted_payoff_months_current == 0
