"""Detailed dashboard datapoint table"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, List, Mapping, Tuple

from budget_cockpit.domain.loans import calculate_estimated_payoff_months
from budget_cockpit.domain.metrics import (
    calculate_dashboard_health_metrics,
    calculate_emergency_fund_summary,
    calculate_month_over_month_breakdown,
    calculate_monthly_summary,
    calculate_savings_storage_summary,
    sum_field,
)
from budget_cockpit.domain.models import Snapshot
from budget_cockpit.domain.results import result_boundary, unwrap
from budget_cockpit.utils.number_utils import as_number

TRAVEL_KEYWORDS = ("travel", "trip", "vacation")


@dataclass(frozen=True)
class DatapointRow:
    metric: str
    value: float
    description: str


def _weighted_rate(rows: Iterable[Mapping[str, Any]], amount_key: str = "amount") -> float:
    rows = list(rows)
    numerator = sum(
        (as_number(row.get(amount_key)) * as_number(row.get("interestRatePercent")) for row in rows), 0
    )
    return numerator / max(sum_field(rows, amount_key), 1)


def _goal_progress_counts(goals: Iterable[Mapping[str, Any]]) -> Tuple[int, int, int]:
    """(completed, in progress, not started) judged by amounts rather than status"""
    completed = in_progress = not_started = 0
    for goal in goals:
        target = as_number(goal.get("targetAmount"))
        current = as_number(goal.get("currentAmount"))
        if target <= 0 or current <= 0:
            not_started += 1
        elif current >= target:
            completed += 1
        else:
            in_progress += 1
    return completed, in_progress, not_started


def _is_travel_goal(goal: Mapping[str, Any]) -> bool:
    parts = [goal.get(key) for key in ("title", "name", "category")]
    text = " ".join("" if part is None else str(part) for part in parts).lower()
    return any(keyword in text for keyword in TRAVEL_KEYWORDS)


@result_boundary
def calculate_dashboard_datapoints(
    state: Any,
    reference_date: date | datetime | None = None,
) -> List[DatapointRow]:
    """Ordered metric/value/description rows for the dashboard detail table"""
    snapshot = Snapshot.parse(state)
    health = unwrap(calculate_dashboard_health_metrics(snapshot), "health metrics")
    summary = unwrap(calculate_monthly_summary(snapshot), "monthly summary")
    breakdown = unwrap(calculate_month_over_month_breakdown(snapshot, reference_date), "source breakdown")
    savings = unwrap(calculate_savings_storage_summary(snapshot, reference_date), "monthly savings summary")
    emergency = unwrap(calculate_emergency_fund_summary(snapshot), "emergency fund summary")

    cards = snapshot.credit_cards
    has_cards = len(cards) > 0
    if has_cards:
        credit_capacity = sum_field(cards, "maxCapacity")
        card_debt = sum_field(cards, "currentBalance")
        credit_monthly_payment = sum_field(cards, "monthlyPayment")
        credit_rate = _weighted_rate(cards, "currentBalance")
    else:
        credit_capacity = sum_field(snapshot.credit, "creditLimit")
        card_debt = sum_field(snapshot.credit, "amount")
        credit_monthly_payment = sum_field(snapshot.credit, "minimumPayment")
        credit_rate = _weighted_rate(snapshot.credit)
    utilization = (card_debt / credit_capacity) * 100 if credit_capacity > 0 else 0

    debt_balance = sum_field(snapshot.debts, "amount")
    loan_balance = sum_field(snapshot.loans, "amount")
    monthly_debt_payback = (
        sum_field(snapshot.debts, "minimumPayment") + credit_monthly_payment + sum_field(snapshot.loans, "minimumPayment")
    )
    total_income = summary.total_income
    total_expenses = summary.total_expenses
    debt_to_income = (monthly_debt_payback / total_income) * 100 if total_income > 0 else 0

    fund_goal = emergency.emergency_fund_goal
    fund_current = emergency.total_emergency_fund_amount
    fund_progress = (fund_current / fund_goal) * 100 if fund_goal > 0 else 0

    goals_completed, goals_in_progress, goals_not_started = _goal_progress_counts(snapshot.goals)
    travel_goals = [goal for goal in snapshot.goals if _is_travel_goal(goal)]
    travel_completed = sum(
        1
        for goal in travel_goals
        if as_number(goal.get("targetAmount")) > 0
        and as_number(goal.get("currentAmount")) >= as_number(goal.get("targetAmount"))
    )

    total_debt = debt_balance + card_debt + loan_balance
    if total_debt > 0:
        weighted_rate = (
            debt_balance * (_weighted_rate(snapshot.debts) if debt_balance > 0 else 0)
            + card_debt * credit_rate
            + loan_balance * (_weighted_rate(snapshot.loans) if loan_balance > 0 else 0)
        ) / total_debt
    else:
        weighted_rate = 0
    months_debt_free = unwrap(
        calculate_estimated_payoff_months(total_debt, monthly_debt_payback, weighted_rate), "months until debt-free"
    )

    surplus = summary.monthly_surplus_deficit
    net_worth = health.net_worth
    total_assets = health.total_assets
    mortgage_balance_in_debts = sum(
        (
            as_number(row.get("amount"))
            for row in snapshot.debts
            if isinstance(row.get("item"), str) and "mortgage" in row["item"].lower()
        ),
        0,
    )
    debt_without_mortgage = max(0, total_debt - mortgage_balance_in_debts)
    mortgage_balance = total_debt - debt_without_mortgage
    burn_after_debt = total_expenses + monthly_debt_payback

    secured_rows = [row for row in snapshot.debts + snapshot.loans if as_number(row.get("collateralAssetMarketValue")) > 0]
    secured_balance = sum_field(secured_rows, "amount")
    secured_collateral = sum_field(secured_rows, "collateralAssetMarketValue")

    rows = [
        (
            "Credit Card Capacity",
            credit_capacity,
            "Total capacity from the Credit Accounts section card limits."
            if has_cards
            else "Total capacity of credit available across all recorded credit accounts.",
        ),
        (
            "Credit Card Debt",
            card_debt,
            "Current balance from the Credit Accounts section. Included in total debts."
            if has_cards
            else "Current outstanding balance across all credit accounts. Included in total debts.",
        ),
        (
            "Credit Card Utilization",
            utilization,
            "Credit balance divided by total credit capacity. A lower percentage is healthier.",
        ),
        ("Debt to Income Ratio", debt_to_income, "Monthly required debt payments divided by monthly income."),
        (
            "Emergency Funds",
            fund_current,
            f"Current emergency fund proxy from current-month assets. Progress: {fund_progress:.2f}% of goal.",
        ),
        ("Emergency Funds Goal", fund_goal, "Six times monthly obligations (expenses plus debt minimums)."),
        ("Goals Completed", goals_completed, "Goals where current amount is greater than or equal to target amount."),
        ("Goals In Progress", goals_in_progress, "Goals with positive progress that have not yet reached target."),
        ("Goals Not Started", goals_not_started, "Goals with no positive progress recorded yet."),
        ("Monthly Expenses", total_expenses, "Total expenses from current recorded monthly expense entries."),
        ("Monthly Income", total_income, "Total income from current recorded monthly income entries."),
        (
            "Months Until Debt-Free",
            months_debt_free,
            "Estimated months to pay all debts at the current monthly debt payback pace.",
        ),
        (
            "Monthly Debt Payback",
            monthly_debt_payback,
            "Sum of minimum monthly payments across debt, credit, and loan records.",
        ),
        ("Weighted Interest Rate", weighted_rate, "Balance-weighted APR across debts, credit balances, and loans."),
        (
            "Net Worth",
            net_worth,
            f"Assets minus liabilities. Change vs previous month: {breakdown.net_worth.delta:.2f}.",
        ),
        (
            "Savings Rate",
            savings.monthly_savings_rate_percent,
            "Tracked monthly savings contributions divided by monthly income.",
        ),
        ("Total Debts", total_debt, "Total liabilities including debts, credit balances, and loans."),
        ("Travel Goals Completed", travel_completed, "Number of travel-related goals completed."),
        ("Travel Goals On Bucket List", len(travel_goals), "Number of travel-related goals currently tracked."),
        ("Yearly Income", total_income * 12, "Current monthly income annualized."),
        (
            "Income After Debt Minimums",
            total_income - monthly_debt_payback,
            "Monthly income remaining after minimum debt payments.",
        ),
        ("Monthly Surplus / Deficit", surplus, "Monthly income minus monthly expenses."),
        (
            "Projected Net Worth (3 Months)",
            net_worth + surplus * 3,
            "Current net worth projected forward 3 months at current surplus pace.",
        ),
        (
            "Projected Net Worth (6 Months)",
            net_worth + surplus * 6,
            "Current net worth projected forward 6 months at current surplus pace.",
        ),
        (
            "Projected Net Worth (12 Months)",
            net_worth + surplus * 12,
            "Current net worth projected forward 12 months at current surplus pace.",
        ),
        ("Emergency Fund Gap", max(0, fund_goal - fund_current), "How much is still needed to hit the emergency fund goal."),
        (
            "Emergency Fund Coverage (Months)",
            emergency.total_coverage_months,
            "How many months of expenses plus debt minimums current emergency funds can cover.",
        ),
        (
            "Debt Coverage By Assets",
            (total_assets / total_debt) * 100 if total_debt > 0 else 0,
            "Assets divided by total liabilities.",
        ),
        (
            "Liabilities As % Of Assets",
            (total_debt / total_assets) * 100 if total_assets > 0 else 0,
            "Total liabilities divided by assets.",
        ),
        (
            "Debt Balance Without Mortgage",
            debt_without_mortgage,
            "Total liabilities excluding identified mortgage balances.",
        ),
        (
            "Mortgage Share Of Liabilities",
            (mortgage_balance / total_debt) * 100 if total_debt > 0 else 0,
            "Mortgage balance as a share of total liabilities.",
        ),
        (
            "Non-Mortgage Liability Share",
            (debt_without_mortgage / total_debt) * 100 if total_debt > 0 else 0,
            "All non-mortgage liabilities as a share of total liabilities.",
        ),
        (
            "Debt Minimums As % Of Expenses",
            (monthly_debt_payback / total_expenses) * 100 if total_expenses > 0 else 0,
            "Monthly debt minimums divided by monthly expenses.",
        ),
        (
            "Discretionary After Expenses + Debt",
            total_income - total_expenses - monthly_debt_payback,
            "Income remaining after expenses and monthly debt minimums.",
        ),
        (
            "Cash Runway After Debt Service",
            fund_current / burn_after_debt if burn_after_debt > 0 else 0,
            "Months current emergency funds can cover expenses plus debt minimums.",
        ),
        ("Income Change vs Last Month", breakdown.income.delta, "Current-month income minus previous-month income."),
        (
            "Expense Change vs Last Month",
            breakdown.expenses.delta,
            "Current-month expenses minus previous-month expenses.",
        ),
        (
            "Liabilities Change vs Last Month",
            breakdown.liabilities.delta,
            "Current-month liabilities minus previous-month liabilities.",
        ),
        (
            "Net Worth Change vs Last Month",
            breakdown.net_worth.delta,
            "Current-month net worth minus previous-month net worth.",
        ),
        ("Annual Debt Service", monthly_debt_payback * 12, "Annualized monthly debt minimum payments."),
        (
            "Debt Paydown Velocity",
            (monthly_debt_payback / total_debt) * 100 if total_debt > 0 else 0,
            "Monthly debt minimums as a share of total liabilities.",
        ),
        (
            "Secured Collateral Market Value",
            secured_collateral,
            "Combined market value of assets backing debt/loan balances.",
        ),
        (
            "Secured Equity",
            secured_collateral - secured_balance,
            "Tracked collateral market value minus associated secured debt balances.",
        ),
        (
            "Secured Debt Loan-To-Value",
            (secured_balance / secured_collateral) * 100 if secured_collateral > 0 else 0,
            "Debt+loan balance divided by collateral market value (lower is safer).",
        ),
    ]
    return [DatapointRow(metric=metric, value=value, description=description) for metric, value, description in rows]
