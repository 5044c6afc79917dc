"""Unit tests for the planning cockpit"""

from datetime import date

import pytest

from budget_cockpit.domain.cockpit import calculate_planning_cockpit

MID_MARCH = date(2024, 3, 15)


@pytest.fixture
def cockpit(sample_state, now):
    value, error = calculate_planning_cockpit(sample_state, today=MID_MARCH, now=now)
    assert error is None
    return value


def test_budget_vs_actual(cockpit):
    """Planned is actual plus 5%; rows ordered by variance size"""
    rows = cockpit.budget_vs_actual_rows

    assert [row.category for row in rows] == ["Housing", "Food", "Utilities"]
    housing = rows[0]
    assert housing.actual == 1800
    assert housing.planned == pytest.approx(1890)
    assert housing.variance == pytest.approx(90)
    assert housing.run_rate_month_end == pytest.approx(1800 * 31 / 15)


def test_recurring_baseline(cockpit):
    rows = cockpit.recurring_baseline_rows

    assert len(rows) == 1
    assert rows[0].id == "recurring-1"
    assert rows[0].category == "Utilities"
    assert rows[0].cadence == "monthly"


def test_forecast(cockpit):
    forecast = cockpit.forecast

    assert forecast.committed == 1650
    assert forecast.planned == pytest.approx(3150)
    assert forecast.optional == 1350
    assert forecast.projected_month_end_cashflow == 3000
    assert forecast.projected_savings_contribution == pytest.approx(2850)
    assert forecast.projected_risk_level == "low"


def test_amortization_and_waterfall(cockpit):
    amortization = cockpit.amortization_rows

    assert [row.id for row in amortization] == ["debt-1", "loan-1"]
    assert amortization[0].remaining_payments == 300
    assert amortization[1].projected_payoff_months == pytest.approx(37, abs=1)

    waterfall = cockpit.waterfall_rows
    assert [row.month for row in waterfall] == list(range(1, 13))
    assert all(row.payment_extra == 1500 for row in waterfall)
    balances = [row.ending_balance for row in waterfall]
    assert balances == sorted(balances, reverse=True)
    assert balances[-1] < 212000


def test_goal_templates(cockpit):
    templates = {row.id: row for row in cockpit.goal_template_rows}

    assert len(templates) == 4
    emergency = templates["template-emergency-fund"]
    assert emergency.target_amount == 18000
    assert emergency.required_monthly_contribution == pytest.approx((18000 - 500) / 18)
    assert templates["template-down-payment"].required_monthly_contribution == pytest.approx(30000 / 36)
    assert templates["template-payoff-credit"].required_monthly_contribution == 0


def test_scenarios(cockpit):
    scenarios = {row.id: row for row in cockpit.scenario_rows}

    assert scenarios["scenario-extra-card-300"].debt_free_months_delta == pytest.approx(7.5)
    assert scenarios["scenario-cut-groceries-200"].debt_free_months_delta == pytest.approx(-5)
    assert scenarios["scenario-income-drop-20"].monthly_delta == pytest.approx(-1200)
    assert scenarios["scenario-income-drop-20"].debt_free_months_delta == pytest.approx(30)
    assert scenarios["scenario-extra-card-300"].runway_months == pytest.approx(500 / 3300)


def test_risk_provenance_and_checklist(cockpit):
    assert 0 < len(cockpit.risk_provenance_rows) <= 10
    assert all(row.raw_inputs.startswith("metricValue=") for row in cockpit.risk_provenance_rows)

    checklist = {row.id: row for row in cockpit.reconcile_checklist_rows}
    assert checklist["reconcile-recurring"].detail == "1 recurring items available."
    assert checklist["reconcile-credit"].status == "ready"
    assert checklist["reconcile-month-close"].status == "ready"


def test_run_rate_on_first_day(sample_state, now):
    cockpit, _ = calculate_planning_cockpit(sample_state, today=date(2024, 2, 1), now=now)
    housing = cockpit.budget_vs_actual_rows[0]
    assert housing.run_rate_month_end == pytest.approx(1800 * 29)


def test_empty_household(empty_state, now):
    cockpit, error = calculate_planning_cockpit(empty_state, today=MID_MARCH, now=now)

    assert error is None
    assert cockpit.budget_vs_actual_rows == ()
    assert cockpit.forecast.projected_risk_level == "medium"
    checklist = {row.id: row for row in cockpit.reconcile_checklist_rows}
    assert checklist["reconcile-recurring"].status == "needs_review"
    assert checklist["reconcile-credit"].detail == "No credit card rows found."
