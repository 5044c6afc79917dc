"""
E2E tests for household budgeting flows.

Each flow edits a snapshot through the record operations, then reads it back
through the analytics engine and the HTTP API the way a client would after
every save.

Households:
- new household: starts empty and records its first month
- imported household: merges an export from another device
- split household: one member leaves and their rows go with them
"""

from datetime import date

import pytest
from fastapi.testclient import TestClient

from budget_cockpit.domain.cockpit import calculate_planning_cockpit
from budget_cockpit.domain.collection_state import (
    append_goal,
    append_income_or_expense,
    delete_persona,
    merge_imported_state,
)
from budget_cockpit.domain.feed import build_sorted_and_filtered, build_unified_feed
from budget_cockpit.domain.results import unwrap
from budget_cockpit.domain.risk import extract_risk_findings

MID_MARCH = date(2024, 3, 15)


@pytest.fixture
def first_month(empty_state, iso_timestamp):
    """New household after entering March income, rent, savings and a goal"""
    state = unwrap(append_income_or_expense(
        empty_state, "income",
        {"item": "Salary", "category": "Salary", "amount": 4000, "date": "2024-03-01", "person": "Jo"},
        iso_timestamp,
    ), "append income")
    state = unwrap(append_income_or_expense(
        state, "expense",
        {"item": "Rent", "category": "Housing", "amount": 1500, "date": "2024-03-01", "person": "Jo"},
        iso_timestamp,
    ), "append expense")
    state = unwrap(append_income_or_expense(
        state, "savings",
        {"item": "HYSA", "category": "Savings", "amount": 300, "date": "2024-03-02", "person": "Jo"},
        iso_timestamp,
    ), "append savings")
    return unwrap(append_goal(
        state, {"title": "Rainy day", "status": "In Progress", "timeframeMonths": 12, "targetAmount": 9000},
        iso_timestamp,
    ), "append goal")


@pytest.mark.integration
def test_new_household_first_month(first_month, now):
    """
    New household: one income, one expense, one savings transfer
    Expected: ids generated, an active goal, and a low-risk forecast
    """
    assert first_month.income[0]["id"] == "income-2024-03-15T12:00:00+00:00-1"
    assert first_month.assets[0]["recordType"] == "savings"

    findings = unwrap(extract_risk_findings(first_month, now), "risk findings")
    ids = [finding.id for finding in findings]
    assert "no-active-goals" not in ids

    cockpit = unwrap(calculate_planning_cockpit(first_month, today=MID_MARCH, now=now), "cockpit")
    assert cockpit.forecast.projected_month_end_cashflow == 2500
    assert cockpit.forecast.projected_risk_level == "low"
    assert cockpit.budget_vs_actual_rows[0].category == "Housing"


@pytest.mark.integration
def test_new_household_feed(first_month):
    """The feed shows money in as positive and money out as negative"""
    feed = unwrap(build_unified_feed(first_month), "feed")
    rows = unwrap(build_sorted_and_filtered(feed, {"sortBy": "signedAmount"}), "sorted feed")

    assert [row["signedAmount"] for row in rows] == [4000, -300, -1500]


@pytest.mark.integration
def test_new_household_over_http(client: TestClient, first_month):
    """The API gives the same answers as the engine for a saved snapshot"""
    state = first_month.to_dict()

    risk = client.post("/v1/risk-findings", json={"currentCollectionsState": state, "correlationId": "save-1"})
    assert risk.status_code == 200
    assert risk.json()["correlationId"] == "save-1"
    assert risk.json()["error"] is None

    projection = client.post(
        "/v1/net-worth-projection",
        json={"currentCollectionsState": state, "referenceDate": "2024-03-20"},
    )
    assert projection.status_code == 200
    baseline = projection.json()["projection"]["baselineVariables"]
    assert baseline["totalMonthlyIncome"] == 4000
    assert baseline["monthlySavingsPaceBaseline"] == 300


@pytest.mark.integration
def test_imported_household_merge_is_idempotent(sample_state, first_month, now):
    """
    Imported household: an export is merged on top of local data twice
    Expected: no duplicated rows, and risk findings unchanged by the repeat
    """
    once = unwrap(merge_imported_state(sample_state, first_month), "merge")
    twice = unwrap(merge_imported_state(once, first_month), "merge again")

    assert len(once.income) == len(sample_state["income"]) + 1
    assert once.to_dict() == twice.to_dict()

    first = unwrap(extract_risk_findings(once, now), "risk findings")
    second = unwrap(extract_risk_findings(twice, now), "risk findings")
    assert [finding.to_dict() for finding in first] == [finding.to_dict() for finding in second]


@pytest.mark.integration
def test_split_household_cascade_delete(client: TestClient, sample_state, now):
    """
    Split household: Sam leaves and their rows are deleted
    Expected: only Alex's income remains and all of it is one source
    """
    state = unwrap(delete_persona(sample_state, "Sam", "cascade"), "delete persona")

    assert [row["person"] for row in state.income] == ["Alex"]
    assert state.credit_cards == ()
    assert [persona["name"] for persona in state.personas] == ["Alex"]

    response = client.post("/v1/risk-findings", json={"currentCollectionsState": state.to_dict()})
    assert response.status_code == 200
    ids = [finding["id"] for finding in response.json()["findings"]]
    assert "income-concentration-gt-80" in ids
