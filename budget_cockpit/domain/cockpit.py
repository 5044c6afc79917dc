"""Planning cockpit - turns current metrics into an executable monthly plan"""

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Tuple

from budget_cockpit.domain.loans import calculate_estimated_payoff_months
from budget_cockpit.domain.metrics import sum_field
from budget_cockpit.domain.models import RiskFinding, Snapshot
from budget_cockpit.domain.results import result_boundary, unwrap
from budget_cockpit.domain.risk import extract_risk_findings
from budget_cockpit.utils.date_utils import days_in_month
from budget_cockpit.utils.number_utils import as_number, is_number

BUDGET_BUFFER_MULTIPLIER = 1.05
RECURRING_CATEGORIES = ("hoa", "utilities", "internet", "phone", "insurance", "debt payment", "subscriptions", "services")
RECURRING_ITEMS = ("hoa", "internet", "phone", "insurance", "services", "debts")
LOW_RISK_CASHFLOW_FLOOR = 1000
EXTRA_PAYMENT_SHARE_OF_SURPLUS = 0.5
WATERFALL_MONTHS = 12
DEBT_FREE_MONTHS_PER_DOLLAR = 1 / 40
PROVENANCE_LIMIT = 10


@dataclass(frozen=True)
class BudgetVsActualRow:
    category: str
    planned: float
    actual: float
    variance: float
    run_rate_month_end: float


@dataclass(frozen=True)
class RecurringBaselineRow:
    id: str
    category: str
    amount: float
    cadence: str
    expected_next_month_amount: float


@dataclass(frozen=True)
class CashflowForecast:
    committed: float
    planned: float
    optional: float
    projected_month_end_cashflow: float
    projected_savings_contribution: float
    projected_risk_level: str


@dataclass(frozen=True)
class AmortizationRow:
    id: str
    item: str
    start_balance: float
    payment: float
    interest_rate_percent: float
    remaining_payments: float
    projected_payoff_months: float


@dataclass(frozen=True)
class WaterfallRow:
    month: int
    payment_minimums: float
    payment_extra: float
    interest_portion: float
    principal_portion: float
    ending_balance: float


@dataclass(frozen=True)
class GoalTemplateRow:
    id: str
    title: str
    target_amount: float
    target_months: int
    required_monthly_contribution: float
    tradeoff_debt_paydown_reduction: float


@dataclass(frozen=True)
class ScenarioRow:
    id: str
    label: str
    monthly_delta: float
    debt_free_months_delta: float
    runway_months: float


@dataclass(frozen=True)
class RiskProvenanceRow:
    id: str
    title: str
    formula: str
    threshold: str
    raw_inputs: str
    data_completeness_percent: float


@dataclass(frozen=True)
class ReconcileChecklistRow:
    id: str
    label: str
    status: str
    detail: str


@dataclass(frozen=True)
class PlanningCockpit:
    budget_vs_actual_rows: Tuple[BudgetVsActualRow, ...]
    recurring_baseline_rows: Tuple[RecurringBaselineRow, ...]
    forecast: CashflowForecast
    amortization_rows: Tuple[AmortizationRow, ...]
    waterfall_rows: Tuple[WaterfallRow, ...]
    goal_template_rows: Tuple[GoalTemplateRow, ...]
    scenario_rows: Tuple[ScenarioRow, ...]
    risk_provenance_rows: Tuple[RiskProvenanceRow, ...]
    reconcile_checklist_rows: Tuple[ReconcileChecklistRow, ...]


def _category_label(row: Mapping[str, Any]) -> str:
    category = row.get("category")
    return category.strip() if isinstance(category, str) and category.strip() else "Uncategorized"


def _is_recurring(row: Mapping[str, Any]) -> bool:
    category = row.get("category")
    item = row.get("item")
    if isinstance(category, str) and category.lower() in RECURRING_CATEGORIES:
        return True
    return isinstance(item, str) and item.lower() in RECURRING_ITEMS


def _budget_vs_actual(expenses: Tuple[Dict[str, Any], ...], today: date) -> List[BudgetVsActualRow]:
    """Planned = actual + 5% per category, run-rate scaled to the end of the month"""
    actual_by_category: Dict[str, float] = {}
    for row in expenses:
        category = _category_label(row)
        actual_by_category[category] = actual_by_category.get(category, 0) + as_number(row.get("amount"))

    run_rate_multiplier = days_in_month(today.year, today.month) / max(1, today.day)
    rows = []
    for category, actual in actual_by_category.items():
        planned = actual * BUDGET_BUFFER_MULTIPLIER
        rows.append(
            BudgetVsActualRow(
                category=category,
                planned=planned,
                actual=actual,
                variance=planned - actual,
                run_rate_month_end=actual * run_rate_multiplier,
            )
        )
    rows.sort(key=lambda row: abs(row.variance), reverse=True)
    return rows


def _amortization_rows(liabilities: List[Mapping[str, Any]]) -> List[AmortizationRow]:
    rows = []
    for index, liability in enumerate(liabilities):
        start_balance = as_number(liability.get("amount"))
        payment = as_number(liability.get("minimumPayment"))
        rate = as_number(liability.get("interestRatePercent"))
        # A row the payoff model rejects (negative balance or APR) counts as 0 months
        estimated = calculate_estimated_payoff_months(start_balance, max(payment, 1), rate).value or 0
        remaining = liability.get("remainingPayments")
        rows.append(
            AmortizationRow(
                id=liability["id"] if isinstance(liability.get("id"), str) else f"amort-{index + 1}",
                item=liability["item"] if isinstance(liability.get("item"), str) else f"Liability {index + 1}",
                start_balance=start_balance,
                payment=payment,
                interest_rate_percent=rate,
                remaining_payments=remaining if is_number(remaining) and remaining > 0 else math.ceil(estimated),
                projected_payoff_months=estimated,
            )
        )
    return rows


def _waterfall(amortization: List[AmortizationRow], extra_pool: float) -> List[WaterfallRow]:
    """Twelve months of paydown at the balance-weighted APR of all liabilities"""
    balance = sum((row.start_balance for row in amortization), 0)
    minimums = sum((row.payment for row in amortization), 0)
    weighted_apr = sum((row.start_balance * row.interest_rate_percent for row in amortization), 0) / max(1, balance)
    monthly_rate = weighted_apr / 100 / 12

    rows = []
    for month in range(1, WATERFALL_MONTHS + 1):
        interest = balance * monthly_rate
        principal = max(0, minimums + extra_pool - interest)
        balance = max(0, balance - principal)
        rows.append(WaterfallRow(month, minimums, extra_pool, interest, principal, balance))
    return rows


def _goal_templates(snapshot: Snapshot, total_expenses: float, current_savings: float) -> List[GoalTemplateRow]:
    templates = (
        ("template-emergency-fund", "Emergency Fund", total_expenses * 6, 18),
        ("template-payoff-credit", "Kill Highest APR Credit", sum_field(snapshot.credit, "amount"), 12),
        ("template-down-payment", "Down Payment Fund", 30000, 36),
        ("template-travel-fund", "Travel Fund", 8000, 18),
    )
    rows = []
    for template_id, title, target, months in templates:
        already_saved = current_savings if template_id == "template-emergency-fund" else 0
        required = max(0, (target - already_saved) / max(1, months))
        rows.append(GoalTemplateRow(template_id, title, target, months, required, required))
    return rows


def _scenarios(
    total_income: float,
    total_expenses: float,
    current_savings: float,
    base_debt_months: float,
) -> List[ScenarioRow]:
    scenarios = (
        ("scenario-extra-card-300", "Pay +$300/mo to highest APR debt", -300),
        ("scenario-cut-groceries-200", "Cut groceries by $200/mo", 200),
        ("scenario-income-drop-20", "Income drops by 20%", -total_income * 0.2),
    )
    rows = []
    for scenario_id, label, monthly_delta in scenarios:
        if monthly_delta < 0:
            raw_delta = abs(monthly_delta) * DEBT_FREE_MONTHS_PER_DOLLAR
        else:
            raw_delta = -monthly_delta * DEBT_FREE_MONTHS_PER_DOLLAR
        runway = current_savings / max(1, total_expenses - monthly_delta) if total_expenses > 0 else 0
        rows.append(
            ScenarioRow(
                id=scenario_id,
                label=label,
                monthly_delta=monthly_delta,
                # debt-free horizon cannot go below zero months
                debt_free_months_delta=max(0, base_debt_months + raw_delta) - base_debt_months,
                runway_months=max(0, runway),
            )
        )
    return rows


def _provenance(findings: List[RiskFinding]) -> List[RiskProvenanceRow]:
    rows = []
    for finding in findings[:PROVENANCE_LIMIT]:
        if "util" in finding.id:
            threshold = "> 30%"
        elif "dti" in finding.id:
            threshold = "> 36%"
        else:
            threshold = "custom threshold"
        rows.append(
            RiskProvenanceRow(
                id=finding.id,
                title=finding.title,
                formula="computed metric compared to threshold",
                threshold=threshold,
                raw_inputs=f"metricValue={as_number(finding.metric_value):.2f}",
                data_completeness_percent=100,
            )
        )
    return rows


def _reconcile_checklist(snapshot: Snapshot, recurring_count: int, month_end_cashflow: float) -> List[ReconcileChecklistRow]:
    return [
        ReconcileChecklistRow(
            "reconcile-recurring",
            "Recurring bills confirmed",
            "ready" if recurring_count > 0 else "needs_review",
            f"{recurring_count} recurring items available." if recurring_count > 0 else "No recurring baseline rows detected.",
        ),
        ReconcileChecklistRow(
            "reconcile-credit",
            "Credit balances updated this month",
            "ready" if snapshot.credit_cards else "needs_review",
            "Credit account rows are present." if snapshot.credit_cards else "No credit card rows found.",
        ),
        ReconcileChecklistRow(
            "reconcile-month-close",
            "Month can be closed",
            "ready" if month_end_cashflow >= 0 else "needs_review",
            (
                "Projected month-end cashflow is non-negative."
                if month_end_cashflow >= 0
                else "Projected month-end cashflow is negative."
            ),
        ),
    ]


@result_boundary
def calculate_planning_cockpit(
    state: Any,
    today: date | None = None,
    now: date | datetime | None = None,
) -> PlanningCockpit:
    """
    Build the planning cockpit for a snapshot.

    Args:
        state: Snapshot or persisted snapshot mapping
        today: Day of month used for run-rate projection (default: today)
        now: Reference time passed to the risk engine for stale-balance checks

    Returns:
        PlanningCockpit with budget, forecast, debt, goal, scenario, risk provenance
        and reconcile sections
    """
    snapshot = Snapshot.parse(state)
    if today is None:
        today = date.today()

    total_income = sum_field(snapshot.income, "amount")
    total_expenses = sum_field(snapshot.expenses, "amount")

    budget_rows = _budget_vs_actual(snapshot.expenses, today)
    recurring_rows = [
        RecurringBaselineRow(
            id=f"recurring-{index + 1}",
            category=row["category"] if isinstance(row.get("category"), str) and row["category"].strip() else "Recurring",
            amount=as_number(row.get("amount")),
            cadence="monthly",
            expected_next_month_amount=as_number(row.get("amount")),
        )
        for index, row in enumerate(row for row in snapshot.expenses if _is_recurring(row))
    ]

    committed = (
        sum_field(snapshot.debts, "minimumPayment")
        + sum_field(snapshot.credit, "minimumPayment")
        + sum_field(snapshot.loans, "minimumPayment")
        + sum((row.amount for row in recurring_rows), 0)
    )
    planned = sum((max(0, row.planned) for row in budget_rows), 0)
    optional = max(0, total_expenses - committed)
    month_end_cashflow = total_income - committed - optional
    if month_end_cashflow >= LOW_RISK_CASHFLOW_FLOOR:
        risk_level = "low"
    elif month_end_cashflow >= 0:
        risk_level = "medium"
    else:
        risk_level = "high"
    forecast = CashflowForecast(
        committed=committed,
        planned=planned,
        optional=optional,
        projected_month_end_cashflow=month_end_cashflow,
        projected_savings_contribution=max(0, total_income - planned),
        projected_risk_level=risk_level,
    )

    amortization = _amortization_rows([*snapshot.debts, *snapshot.credit, *snapshot.loans])
    extra_pool = max(0, total_income - total_expenses) * EXTRA_PAYMENT_SHARE_OF_SURPLUS
    waterfall = _waterfall(amortization, extra_pool)

    current_savings = sum(
        (as_number(row.get("amount")) for row in snapshot.assets if row.get("recordType") == "savings"), 0
    )
    base_debt_months = max([0, *(row.projected_payoff_months for row in amortization)])

    findings = unwrap(extract_risk_findings(snapshot, now), "risk findings")

    return PlanningCockpit(
        budget_vs_actual_rows=tuple(budget_rows),
        recurring_baseline_rows=tuple(recurring_rows),
        forecast=forecast,
        amortization_rows=tuple(amortization),
        waterfall_rows=tuple(waterfall),
        goal_template_rows=tuple(_goal_templates(snapshot, total_expenses, current_savings)),
        scenario_rows=tuple(_scenarios(total_income, total_expenses, current_savings, base_debt_months)),
        risk_provenance_rows=tuple(_provenance(findings)),
        reconcile_checklist_rows=tuple(_reconcile_checklist(snapshot, len(recurring_rows), month_end_cashflow)),
    )
