"""Aggregate summaries derived from a Snapshot"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, List, Mapping, Tuple

from budget_cockpit.domain.exceptions import RecordValidationError
from budget_cockpit.domain.models import Snapshot
from budget_cockpit.domain.results import result_boundary, unwrap
from budget_cockpit.utils.date_utils import as_utc_datetime, parse_record_datetime, previous_month
from budget_cockpit.utils.number_utils import as_number, coerce_number, is_finite_number

GOAL_STATUSES = ("completed", "in progress", "not started")
LIQUID_KEYWORDS = ("cash", "checking", "bank", "savings", "hysa", "money market")
INVESTED_KEYWORDS = ("stock", "stocks", "voo", "etf", "brokerage", "fidelity", "index fund")

EMERGENCY_FUND_GOAL_MONTHS = 6
LIQUID_TARGET_MONTHS = 2
BASELINE_SAVINGS_RATE_PERCENT = 20
REDUCED_SAVINGS_RATE_PERCENT = 15
STRETCH_SAVINGS_RATE_PERCENT = 30
DEBT_PRESSURE_LIMIT_PERCENT = 36


def sum_field(rows: Iterable[Mapping[str, Any]], key: str) -> float:
    """Sum a numeric field, counting non-numeric values as 0"""
    return sum((as_number(row.get(key)) for row in rows), 0)


def safe_divisor(value: float) -> float:
    return value if value > 0 else 1


def total_debt_minimums(snapshot: Snapshot) -> float:
    """Minimum payments across debts, credit and loans"""
    return (
        sum_field(snapshot.debts, "minimumPayment")
        + sum_field(snapshot.credit, "minimumPayment")
        + sum_field(snapshot.loans, "minimumPayment")
    )


def holdings_net_value(snapshot: Snapshot) -> float:
    return sum(
        (as_number(row.get("assetMarketValue")) - as_number(row.get("assetValueOwed")) for row in snapshot.asset_holdings),
        0,
    )


@dataclass(frozen=True)
class MonthlySummary:
    total_income: float
    total_expenses: float
    monthly_surplus_deficit: float
    savings_rate_percent: float


@dataclass(frozen=True)
class HealthMetrics:
    """Twenty dashboard health indicators"""

    net_worth: float
    net_worth_change_month_to_date: float
    total_assets: float
    total_liabilities: float
    debt_to_asset_ratio: float
    debt_to_income_ratio: float
    savings_rate_percent: float
    expense_ratio_percent: float
    needs_versus_wants_split_percent: float
    cash_runway_months: float
    emergency_fund_coverage_months: float
    monthly_surplus_deficit: float
    burn_rate: float
    income_stability_variance: float
    credit_utilization_percent: float
    average_apr_debt_weighted: float
    minimum_payment_burden_percent_of_income: float
    loan_payoff_eta_months_weighted: float
    on_time_payment_streak_months: float
    goal_progress_score_percent: float


@dataclass(frozen=True)
class CreditCardSummary:
    total_current: float
    total_monthly: float
    total_utilization_percent: float
    remaining_capacity: float
    max_capacity: float


@dataclass(frozen=True)
class GoalStatusSummary:
    completed_count: int
    in_progress_count: int
    not_started_count: int
    average_timeframe_months: float
    completion_rate_percent: float
    short_term_not_started_count: int


@dataclass(frozen=True)
class MonthComparison:
    current_month: float
    previous_month: float
    delta: float


@dataclass(frozen=True)
class MonthOverMonthBreakdown:
    income: MonthComparison
    expenses: MonthComparison
    assets: MonthComparison
    liabilities: MonthComparison
    net_worth: MonthComparison


@dataclass(frozen=True)
class SavingsStorageRow:
    id: str
    person: str
    location: str
    balance: float
    allocation_percent: float
    description: str


@dataclass(frozen=True)
class SavingsStorageSummary:
    monthly_savings_amount: float
    monthly_savings_rate_percent: float
    total_stored_savings: float
    storage_rows: Tuple[SavingsStorageRow, ...]


@dataclass(frozen=True)
class FundSource:
    id: str
    label: str
    amount: float


@dataclass(frozen=True)
class EmergencyFundSummary:
    monthly_expenses: float
    monthly_debt_minimums: float
    monthly_obligations: float
    emergency_fund_goal: float
    liquid_target: float
    invested_target: float
    liquid_amount: float
    invested_amount: float
    total_emergency_fund_amount: float
    missing_total_amount: float
    missing_liquid_amount: float
    liquid_coverage_months: float
    total_coverage_months: float
    liquid_sources: Tuple[FundSource, ...]
    invested_sources: Tuple[FundSource, ...]


@dataclass(frozen=True)
class RecommendedSavings:
    total_income_for_reference: float
    recommended_monthly_savings: float
    recommended_savings_rate_percent: float
    minimum_recommended_savings: float
    stretch_recommended_savings: float
    current_monthly_savings: float
    gap_to_recommended_savings: float
    recommendation_reason: str


@result_boundary
def calculate_monthly_summary(state: Any) -> MonthlySummary:
    snapshot = Snapshot.parse(state)
    total_income = sum_field(snapshot.income, "amount")
    total_expenses = sum_field(snapshot.expenses, "amount")
    surplus = total_income - total_expenses
    return MonthlySummary(
        total_income=total_income,
        total_expenses=total_expenses,
        monthly_surplus_deficit=surplus,
        savings_rate_percent=(surplus / safe_divisor(total_income)) * 100,
    )


@result_boundary
def calculate_dashboard_health_metrics(state: Any) -> HealthMetrics:
    """
    Headline health indicators for the overview dashboard.

    Total assets are direct assets plus asset holdings at market value minus
    amount owed. Denominators are floored at 1 so an empty snapshot yields
    zeros rather than division errors.
    """
    snapshot = Snapshot.parse(state)
    total_income = sum_field(snapshot.income, "amount")
    total_expenses = sum_field(snapshot.expenses, "amount")
    total_assets = sum_field(snapshot.assets, "amount") + holdings_net_value(snapshot)
    total_liabilities = (
        sum_field(snapshot.debts, "amount") + sum_field(snapshot.credit, "amount") + sum_field(snapshot.loans, "amount")
    )
    surplus = total_income - total_expenses

    income_divisor = safe_divisor(total_income)
    expense_divisor = safe_divisor(total_expenses)
    asset_divisor = safe_divisor(total_assets)

    utilization = 0.0
    if snapshot.credit:
        ratios = []
        for row in snapshot.credit:
            limit = as_number(row.get("creditLimit"))
            ratios.append(as_number(row.get("amount")) / (limit if limit > 0 else 1))
        utilization = sum(ratios) / len(snapshot.credit)

    goal_target = sum_field(snapshot.goals, "targetAmount")
    goal_current = sum_field(snapshot.goals, "currentAmount")

    return HealthMetrics(
        net_worth=total_assets - total_liabilities,
        net_worth_change_month_to_date=surplus,
        total_assets=total_assets,
        total_liabilities=total_liabilities,
        debt_to_asset_ratio=total_liabilities / asset_divisor,
        debt_to_income_ratio=total_liabilities / income_divisor,
        savings_rate_percent=(surplus / income_divisor) * 100,
        expense_ratio_percent=(total_expenses / income_divisor) * 100,
        needs_versus_wants_split_percent=50,
        cash_runway_months=total_assets / expense_divisor,
        emergency_fund_coverage_months=total_assets / expense_divisor,
        monthly_surplus_deficit=surplus,
        burn_rate=total_expenses,
        income_stability_variance=0,
        credit_utilization_percent=utilization * 100,
        average_apr_debt_weighted=0,
        minimum_payment_burden_percent_of_income=0,
        loan_payoff_eta_months_weighted=0,
        on_time_payment_streak_months=0,
        goal_progress_score_percent=(goal_current / goal_target) * 100 if goal_target > 0 else 0,
    )


@result_boundary
def calculate_credit_card_summary(state: Any) -> CreditCardSummary:
    """Totals across credit card rows; accepts a Snapshot or the card rows themselves"""
    cards = state.credit_cards if isinstance(state, Snapshot) else _rows_argument(state, "creditCardInformationCollection")
    max_capacity = sum_field(cards, "maxCapacity")
    total_current = sum_field(cards, "currentBalance")
    return CreditCardSummary(
        total_current=total_current,
        total_monthly=sum_field(cards, "monthlyPayment"),
        total_utilization_percent=(total_current / max_capacity) * 100 if max_capacity > 0 else 0,
        remaining_capacity=max_capacity - total_current,
        max_capacity=max_capacity,
    )


def _rows_argument(rows: Any, name: str) -> List[Mapping[str, Any]]:
    if not isinstance(rows, (list, tuple)):
        raise RecordValidationError(f"{name} must be an array")
    return [row for row in rows if isinstance(row, Mapping)]


def goal_status_of(goal: Mapping[str, Any]) -> str:
    status = goal.get("status")
    status = status.strip().lower() if isinstance(status, str) else ""
    return status if status in GOAL_STATUSES else "not started"


@result_boundary
def calculate_goal_status_summary(state: Any) -> GoalStatusSummary:
    goals = state.goals if isinstance(state, Snapshot) else _rows_argument(state, "goalCollection")
    completed = in_progress = not_started = short_term_not_started = 0
    timeframe_total = 0.0
    for goal in goals:
        status = goal_status_of(goal)
        timeframe = goal.get("timeframeMonths")
        timeframe = coerce_number(timeframe)
        timeframe = timeframe if is_finite_number(timeframe) and timeframe >= 0 else 0

        completed += status == "completed"
        in_progress += status == "in progress"
        not_started += status == "not started"
        short_term_not_started += status == "not started" and timeframe <= 12
        timeframe_total += timeframe

    count = len(goals)
    return GoalStatusSummary(
        completed_count=completed,
        in_progress_count=in_progress,
        not_started_count=not_started,
        average_timeframe_months=timeframe_total / count if count else 0,
        completion_rate_percent=(completed / count) * 100 if count else 0,
        short_term_not_started_count=short_term_not_started,
    )


def record_year_month(row: Mapping[str, Any]) -> Tuple[int, int] | None:
    """UTC (year, month) of a record's date, falling back to updatedAt"""
    record_date = row.get("date") if isinstance(row.get("date"), str) else ""
    updated_at = row.get("updatedAt") if isinstance(row.get("updatedAt"), str) else ""
    parsed = parse_record_datetime(record_date or updated_at)
    if parsed is None:
        return None
    return parsed.year, parsed.month


def _sum_for_month(rows: Iterable[Mapping[str, Any]], year_month: Tuple[int, int], key: str = "amount") -> float:
    return sum((as_number(row.get(key)) for row in rows if record_year_month(row) == year_month), 0)


def _compare(current: float, previous: float) -> MonthComparison:
    return MonthComparison(current_month=current, previous_month=previous, delta=current - previous)


@result_boundary
def calculate_month_over_month_breakdown(
    state: Any,
    reference_date: date | datetime | None = None,
) -> MonthOverMonthBreakdown:
    """
    Current vs previous UTC calendar month totals.

    Assets include the collateral market value recorded on debts and loans.
    """
    snapshot = Snapshot.parse(state)
    reference = as_utc_datetime(reference_date)
    current = (reference.year, reference.month)
    previous = previous_month(reference.year, reference.month)
    secured = snapshot.debts + snapshot.loans

    def totals(year_month: Tuple[int, int]) -> Tuple[float, float, float, float]:
        income = _sum_for_month(snapshot.income, year_month)
        expenses = _sum_for_month(snapshot.expenses, year_month)
        assets = _sum_for_month(snapshot.assets, year_month) + _sum_for_month(
            secured, year_month, "collateralAssetMarketValue"
        )
        liabilities = (
            _sum_for_month(snapshot.debts, year_month)
            + _sum_for_month(snapshot.credit, year_month)
            + _sum_for_month(snapshot.loans, year_month)
        )
        return income, expenses, assets, liabilities

    income_now, expenses_now, assets_now, liabilities_now = totals(current)
    income_prev, expenses_prev, assets_prev, liabilities_prev = totals(previous)

    return MonthOverMonthBreakdown(
        income=_compare(income_now, income_prev),
        expenses=_compare(expenses_now, expenses_prev),
        assets=_compare(assets_now, assets_prev),
        liabilities=_compare(liabilities_now, liabilities_prev),
        net_worth=_compare(assets_now - liabilities_now, assets_prev - liabilities_prev),
    )


@result_boundary
def calculate_savings_storage_summary(
    state: Any,
    reference_date: date | datetime | None = None,
) -> SavingsStorageSummary:
    """Tracked savings transfers for the reference month and where savings are stored"""
    snapshot = Snapshot.parse(state)
    reference = as_utc_datetime(reference_date)
    summary = unwrap(calculate_monthly_summary(snapshot), "monthly summary")

    monthly_savings = 0.0
    for row in snapshot.assets:
        if row.get("recordType") != "savings":
            continue
        parsed = parse_record_datetime(row.get("date"))
        if parsed is None or (parsed.year, parsed.month) != (reference.year, reference.month):
            continue
        monthly_savings += as_number(row.get("amount"))

    total_stored = sum_field(snapshot.assets, "amount")
    allocation_divisor = safe_divisor(total_stored)
    storage_rows = []
    for index, row in enumerate(snapshot.assets):
        amount = as_number(row.get("amount"))
        if isinstance(row.get("item"), str):
            location = row["item"]
        elif isinstance(row.get("category"), str):
            location = row["category"]
        else:
            location = f"Savings {index + 1}"
        storage_rows.append(
            SavingsStorageRow(
                id=row["id"] if isinstance(row.get("id"), str) else f"savings-storage-{index + 1}",
                person=row["person"] if isinstance(row.get("person"), str) else "User",
                location=location,
                balance=amount,
                allocation_percent=(amount / allocation_divisor) * 100,
                description=row["description"] if isinstance(row.get("description"), str) else "",
            )
        )

    return SavingsStorageSummary(
        monthly_savings_amount=monthly_savings,
        monthly_savings_rate_percent=(monthly_savings / summary.total_income) * 100 if summary.total_income > 0 else 0,
        total_stored_savings=total_stored,
        storage_rows=tuple(storage_rows),
    )


def _classify_source(prefix: str, index: int, label: str, amount: float) -> Tuple[str, FundSource] | None:
    if not is_finite_number(amount) or amount <= 0:
        return None
    lowered = label.lower()
    if any(keyword in lowered for keyword in LIQUID_KEYWORDS):
        return "liquid", FundSource(id=f"{prefix}-liq-{index}", label=label or "Liquid", amount=amount)
    if any(keyword in lowered for keyword in INVESTED_KEYWORDS):
        return "invested", FundSource(id=f"{prefix}-inv-{index}", label=label or "Invested", amount=amount)
    return None


@result_boundary
def calculate_emergency_fund_summary(state: Any) -> EmergencyFundSummary:
    """
    Emergency fund coverage against six months of obligations.

    Obligations are expenses plus all debt minimums. Assets and holdings are
    classified as liquid or invested by keywords in their item/category label;
    unmatched rows do not count toward the fund.
    """
    snapshot = Snapshot.parse(state)
    monthly_expenses = sum_field(snapshot.expenses, "amount")
    debt_minimums = total_debt_minimums(snapshot)
    obligations = monthly_expenses + debt_minimums
    goal = obligations * EMERGENCY_FUND_GOAL_MONTHS
    liquid_target = obligations * LIQUID_TARGET_MONTHS

    candidates = []
    for index, row in enumerate(snapshot.assets):
        if isinstance(row.get("item"), str):
            label = row["item"]
        elif isinstance(row.get("category"), str):
            label = row["category"]
        else:
            label = f"Asset {index + 1}"
        candidates.append(("asset", index, label, as_number(row.get("amount"))))
    for index, row in enumerate(snapshot.asset_holdings):
        label = row["item"] if isinstance(row.get("item"), str) else f"Holding {index + 1}"
        net_value = as_number(row.get("assetMarketValue")) - as_number(row.get("assetValueOwed"))
        candidates.append(("holding", index, label, net_value))

    liquid_sources: List[FundSource] = []
    invested_sources: List[FundSource] = []
    for candidate in candidates:
        classified = _classify_source(*candidate)
        if classified is None:
            continue
        bucket, source = classified
        (liquid_sources if bucket == "liquid" else invested_sources).append(source)

    liquid_amount = sum((source.amount for source in liquid_sources), 0)
    invested_amount = sum((source.amount for source in invested_sources), 0)
    total_amount = liquid_amount + invested_amount

    return EmergencyFundSummary(
        monthly_expenses=monthly_expenses,
        monthly_debt_minimums=debt_minimums,
        monthly_obligations=obligations,
        emergency_fund_goal=goal,
        liquid_target=liquid_target,
        invested_target=max(0, goal - liquid_target),
        liquid_amount=liquid_amount,
        invested_amount=invested_amount,
        total_emergency_fund_amount=total_amount,
        missing_total_amount=max(0, goal - total_amount),
        missing_liquid_amount=max(0, liquid_target - liquid_amount),
        liquid_coverage_months=liquid_amount / obligations if obligations > 0 else 0,
        total_coverage_months=total_amount / obligations if obligations > 0 else 0,
        liquid_sources=tuple(liquid_sources),
        invested_sources=tuple(invested_sources),
    )


@result_boundary
def calculate_recommended_savings(state: Any) -> RecommendedSavings:
    """
    Monthly savings target.

    20% of income (stretch 30%), lowered to 15% while debt minimums exceed 36%
    of income, and never above what income minus expenses can afford.
    """
    snapshot = Snapshot.parse(state)
    summary = unwrap(calculate_monthly_summary(snapshot), "monthly summary")
    total_income = summary.total_income
    debt_pressure = (total_debt_minimums(snapshot) / total_income) * 100 if total_income > 0 else 0
    under_pressure = debt_pressure > DEBT_PRESSURE_LIMIT_PERCENT

    rate = REDUCED_SAVINGS_RATE_PERCENT if under_pressure else BASELINE_SAVINGS_RATE_PERCENT
    minimum_recommended = total_income * (rate / 100)
    stretch = total_income * (STRETCH_SAVINGS_RATE_PERCENT / 100)
    affordable_ceiling = max(0, total_income - summary.total_expenses)
    recommended = min(max(minimum_recommended, 0), affordable_ceiling)

    if under_pressure:
        reason = "Debt burden is elevated; target 15% savings now, then raise toward 20% as debt pressure drops."
    else:
        reason = "Industry guidance is 20% monthly savings (stretch 30%) when cash flow supports it."

    return RecommendedSavings(
        total_income_for_reference=total_income,
        recommended_monthly_savings=recommended,
        recommended_savings_rate_percent=(recommended / total_income) * 100 if total_income > 0 else 0,
        minimum_recommended_savings=minimum_recommended,
        stretch_recommended_savings=stretch,
        current_monthly_savings=summary.monthly_surplus_deficit,
        gap_to_recommended_savings=recommended - summary.monthly_surplus_deficit,
        recommendation_reason=reason,
    )
