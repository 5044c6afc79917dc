"""Unit tests for the risk findings engine"""

from datetime import datetime, timezone

from budget_cockpit.domain.models import Severity
from budget_cockpit.domain.risk import MAX_FINDINGS, THRESHOLD_RULES, extract_risk_findings

SEVERITY_RANK = {Severity.HIGH: 3, Severity.MEDIUM: 2, Severity.LOW: 1}


def _ids(findings):
    return [finding.id for finding in findings]


def test_sample_household_findings(sample_state, now):
    findings, error = extract_risk_findings(sample_state, now)

    assert error is None
    ids = set(_ids(findings))
    assert {
        "dti-gt-20",
        "payment-burden-gt-25",
        "efund-lt-6",
        "runway-debt-lt-3",
        "liq-lt-0.5",
        "liability-ratio-gt-2x-income",
        "income-concentration-gt-80",
        "income-volatility-gt-40",
        "debt-concentration-0",
    } <= ids
    assert "stale-balance-gt-0" not in ids
    assert "forecast-fields-missing-gt-0" not in ids
    assert "no-active-goals" not in ids


def test_dti_family_keeps_tightest_threshold(empty_state, now):
    """DTI of 40% reports dti-gt-36 only"""
    empty_state["income"] = [{"item": "Salary", "amount": 1000}]
    empty_state["debts"] = [
        {"item": "Student loan", "amount": 5000, "minimumPayment": 400, "interestRatePercent": 5, "updatedAt": "2024-03-14"},
    ]
    findings, _ = extract_risk_findings(empty_state, now)

    dti_ids = [finding_id for finding_id in _ids(findings) if finding_id.startswith("dti-gt-")]
    assert dti_ids == ["dti-gt-36"]
    dti = next(finding for finding in findings if finding.id == "dti-gt-36")
    assert dti.metric_value == 40
    assert dti.severity == Severity.HIGH


def test_less_than_family_keeps_lowest_threshold(empty_state, now):
    """A negative savings rate reports savings-lt-0, not lt-10 or lt-20"""
    empty_state["income"] = [{"item": "Salary", "amount": 1000}]
    empty_state["expenses"] = [{"category": "Rent", "amount": 1200}]
    findings, _ = extract_risk_findings(empty_state, now)

    savings_ids = [finding_id for finding_id in _ids(findings) if finding_id.startswith("savings-lt-")]
    assert savings_ids == ["savings-lt-0"]


def test_every_rule_family_appears_once_at_most(sample_state, now):
    findings, _ = extract_risk_findings(sample_state, now)
    families = {rule.id: rule.family for rule in THRESHOLD_RULES}

    seen = [families[finding_id] for finding_id in _ids(findings) if finding_id in families]
    assert len(seen) == len(set(seen))


def test_findings_sorted_by_severity_then_magnitude(sample_state, now):
    findings, _ = extract_risk_findings(sample_state, now)

    ranks = [SEVERITY_RANK[finding.severity] for finding in findings]
    assert ranks == sorted(ranks, reverse=True)
    for left, right in zip(findings, findings[1:]):
        if left.severity == right.severity:
            assert abs(left.metric_value) >= abs(right.metric_value)


def test_stale_and_missing_timestamps(empty_state, now):
    """Untimestamped or old liabilities count as stale"""
    empty_state["income"] = [{"item": "Salary", "amount": 8000}]
    empty_state["debts"] = [
        {"item": "Old", "amount": 100, "minimumPayment": 10, "interestRatePercent": 5, "updatedAt": "2023-12-01T00:00:00Z"},
        {"item": "Never", "amount": 100, "minimumPayment": 10, "interestRatePercent": 5},
        {"item": "Fresh", "amount": 100, "minimumPayment": 10, "interestRatePercent": 5, "date": "2024-03-10"},
    ]
    findings, _ = extract_risk_findings(empty_state, now)

    stale = next(finding for finding in findings if finding.id == "stale-balance-gt-0")
    assert stale.metric_value == 2


def test_stale_depends_on_reference_time(empty_state):
    empty_state["debts"] = [
        {"item": "Car", "amount": 100, "minimumPayment": 10, "interestRatePercent": 5, "updatedAt": "2024-01-01T00:00:00Z"},
    ]
    early, _ = extract_risk_findings(empty_state, datetime(2024, 1, 20, tzinfo=timezone.utc))
    late, _ = extract_risk_findings(empty_state, datetime(2024, 6, 1, tzinfo=timezone.utc))

    assert "stale-balance-gt-0" not in _ids(early)
    assert "stale-balance-gt-0" in _ids(late)


def test_missing_forecast_fields(empty_state, now):
    empty_state["loans"] = [{"item": "Family loan", "amount": 2000, "updatedAt": "2024-03-10"}]
    findings, _ = extract_risk_findings(empty_state, now)

    missing = next(finding for finding in findings if finding.id == "forecast-fields-missing-gt-0")
    assert missing.metric_value == 1


def test_card_utilization_drilldown(empty_state, now):
    empty_state["income"] = [{"item": "Salary", "amount": 9000}]
    empty_state["creditCards"] = [
        {"item": "Visa", "currentBalance": 900, "maxCapacity": 1000, "minimumPayment": 30, "interestRatePercent": 22, "updatedAt": "2024-03-10"},
        {"item": "Amex", "currentBalance": 600, "maxCapacity": 1000, "minimumPayment": 30, "interestRatePercent": 22, "updatedAt": "2024-03-10"},
        {"currentBalance": 100, "maxCapacity": 1000, "minimumPayment": 30, "interestRatePercent": 22, "updatedAt": "2024-03-10"},
    ]
    findings, _ = extract_risk_findings(empty_state, now)
    by_id = {finding.id: finding for finding in findings}

    assert by_id["credit-util-item-0"].severity == Severity.HIGH
    assert by_id["credit-util-item-0"].title == "Visa card utilization is elevated"
    assert by_id["credit-util-item-0"].detail == "Visa utilization is 90.00%."
    assert by_id["credit-util-item-1"].severity == Severity.MEDIUM
    assert "credit-util-item-2" not in by_id


def test_singular_checks(empty_state, now):
    """Cash flow, APR exposure, underwater collateral and placeholder income"""
    empty_state["income"] = [{"item": "Salary", "amount": 2000}, {"item": "Bonus", "amount": 0}]
    empty_state["expenses"] = [{"category": "Rent", "amount": 1900}]
    empty_state["creditCards"] = [
        {"item": "Store card", "currentBalance": 2500, "maxCapacity": 3000, "minimumPayment": 80, "interestRatePercent": 29.9, "updatedAt": "2024-03-10"},
    ]
    empty_state["loans"] = [
        {"item": "Car loan", "amount": 15000, "minimumPayment": 300, "interestRatePercent": 7,
         "collateralAssetMarketValue": 12000, "updatedAt": "2024-03-10"},
    ]
    findings, _ = extract_risk_findings(empty_state, now)
    by_id = {finding.id: finding for finding in findings}

    assert by_id["negative-operating-cashflow"].metric_value == 2000 - 1900 - 380
    assert "discretionary-buffer-lt-0" in by_id
    assert "forecast-month-end-cash-lt-0" in by_id
    assert by_id["apr-exposure-gt-25"].metric_value == 29.9
    assert by_id["secured-specific-ltv-risk"].metric_value == 1
    assert by_id["income-placeholders-gt-0"].metric_value == 1
    assert by_id["no-active-goals"].metric_value == 0


def test_findings_capped(empty_state, now):
    empty_state["income"] = [{"item": "Salary", "amount": 100000}]
    empty_state["creditCards"] = [
        {"item": f"Card {index}", "currentBalance": 950, "maxCapacity": 1000, "minimumPayment": 1,
         "interestRatePercent": 10, "updatedAt": "2024-03-10"}
        for index in range(70)
    ]
    findings, error = extract_risk_findings(empty_state, now)

    assert error is None
    assert len(findings) == MAX_FINDINGS


def test_malformed_state_is_validation_error():
    findings, error = extract_risk_findings({"income": [], "expenses": "x"})

    assert findings is None
    assert error.kind.value == "VALIDATION"
    assert error.message == "expenses must be an array"
