"""Unit tests for the dashboard datapoint table"""

from datetime import date

import pytest

from budget_cockpit.domain.dashboard import calculate_dashboard_datapoints
from budget_cockpit.domain.results import ErrorKind

MARCH = date(2024, 3, 20)


def _by_metric(rows):
    return {row.metric: row for row in rows}


def test_sample_household_datapoints(sample_state):
    rows, error = calculate_dashboard_datapoints(sample_state, MARCH)

    assert error is None
    table = _by_metric(rows)
    assert table["Credit Card Capacity"].value == 5000
    assert table["Credit Card Debt"].value == 1500
    assert table["Monthly Debt Payback"].value == 1700
    assert table["Debt to Income Ratio"].value == pytest.approx(1700 / 6000 * 100)
    assert table["Total Debts"].value == 213500
    assert table["Debt Balance Without Mortgage"].value == 13500
    assert table["Yearly Income"].value == 72000
    assert table["Monthly Surplus / Deficit"].value == 3000
    assert table["Secured Equity"].value == 50000
    assert table["Secured Debt Loan-To-Value"].value == pytest.approx(80)


def test_goal_counts_follow_amounts(sample_state):
    table = _by_metric(calculate_dashboard_datapoints(sample_state, MARCH).value)

    assert table["Goals Completed"].value == 0
    assert table["Goals In Progress"].value == 1
    assert table["Goals Not Started"].value == 1
    assert table["Travel Goals On Bucket List"].value == 1
    assert table["Travel Goals Completed"].value == 0


def test_card_descriptions_switch_with_card_rows(sample_state, empty_state):
    with_cards = _by_metric(calculate_dashboard_datapoints(sample_state, MARCH).value)
    without_cards = _by_metric(calculate_dashboard_datapoints(empty_state, MARCH).value)

    assert "Credit Accounts section" in with_cards["Credit Card Capacity"].description
    assert "all recorded credit accounts" in without_cards["Credit Card Capacity"].description


def test_empty_household_has_no_division_errors(empty_state):
    rows, error = calculate_dashboard_datapoints(empty_state, MARCH)

    assert error is None
    assert all(row.value == 0 for row in rows)


def test_metric_order_is_stable(sample_state):
    rows = calculate_dashboard_datapoints(sample_state, MARCH).value

    assert rows[0].metric == "Credit Card Capacity"
    assert rows[-1].metric == "Secured Debt Loan-To-Value"


def test_malformed_snapshot():
    rows, error = calculate_dashboard_datapoints({"income": "nope"}, MARCH)

    assert rows is None
    assert error.kind == ErrorKind.VALIDATION
