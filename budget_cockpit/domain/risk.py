"""Risk findings engine - threshold rules over aggregate ratios plus per-record drilldowns"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping

from budget_cockpit.domain.metrics import (
    calculate_dashboard_health_metrics,
    calculate_monthly_summary,
    sum_field,
)
from budget_cockpit.domain.models import RiskFinding, Severity, Snapshot
from budget_cockpit.domain.results import result_boundary, unwrap
from budget_cockpit.utils.date_utils import as_utc_datetime, parse_record_datetime
from budget_cockpit.utils.number_utils import as_number, is_number

MAX_FINDINGS = 50
STALE_CUTOFF_DAYS = 45
NO_DEBT_COVERAGE_RATIO = 999
REVOLVING_BALANCE_FLOOR = 1000
FIXED_EXPENSE_CATEGORIES = {"housing", "utilities", "insurance", "internet", "phone", "hoa"}
CASH_EQUIVALENT_KEYWORDS = ("bank", "checking", "cash", "savings")
SEVERITY_RANK = {Severity.HIGH: 3, Severity.MEDIUM: 2, Severity.LOW: 1}

_FAMILY_SUFFIX = re.compile(r"-(gt|lt)-.*")


@dataclass(frozen=True)
class ThresholdRule:
    """A tier of a ratio check; detail may reference {value}"""

    id: str
    severity: Severity
    title: str
    detail: str
    metric: str
    threshold: float
    less_than: bool = False

    @property
    def family(self) -> str:
        return _FAMILY_SUFFIX.sub("", self.id)

    def triggered(self, value: float) -> bool:
        return value < self.threshold if self.less_than else value > self.threshold

    def tighter_than(self, other: "ThresholdRule") -> bool:
        return self.threshold < other.threshold if self.less_than else self.threshold > other.threshold


HIGH, MEDIUM, LOW = Severity.HIGH, Severity.MEDIUM, Severity.LOW

THRESHOLD_RULES: tuple = (
    ThresholdRule("dti-gt-20", LOW, "Debt-to-income is above 20%", "Debt payments are above conservative comfort range.", "debt_to_income", 20),
    ThresholdRule("dti-gt-30", MEDIUM, "Debt-to-income is above 30%", "Debt payments are approaching stressed affordability.", "debt_to_income", 30),
    ThresholdRule("dti-gt-36", HIGH, "Debt-to-income is above 36%", "Debt payments exceed a common underwriting ceiling.", "debt_to_income", 36),
    ThresholdRule("dti-gt-43", HIGH, "Debt-to-income is above 43%", "Debt payments indicate high leverage risk.", "debt_to_income", 43),
    ThresholdRule("dti-gt-50", HIGH, "Debt-to-income is above 50%", "Debt payments indicate severe affordability risk.", "debt_to_income", 50),
    ThresholdRule("util-total-gt-30", HIGH, "Total credit utilization is above 30%", "Portfolio utilization is {value:.2f}% against a 30% threshold.", "credit_utilization", 30),
    ThresholdRule("savings-lt-20", LOW, "Savings rate is below 20%", "Savings rate is below strong accumulation pace.", "savings_rate", 20, True),
    ThresholdRule("savings-lt-10", MEDIUM, "Savings rate is below 10%", "Savings rate may be insufficient for resilience goals.", "savings_rate", 10, True),
    ThresholdRule("savings-lt-0", HIGH, "Savings rate is negative", "Expenses currently exceed income.", "savings_rate", 0, True),
    ThresholdRule("efund-lt-6", LOW, "Emergency fund below 6 months", "Coverage is below the ideal resilience target.", "emergency_fund_months", 6, True),
    ThresholdRule("efund-lt-3", MEDIUM, "Emergency fund below 3 months", "Coverage is below baseline safety target.", "emergency_fund_months", 3, True),
    ThresholdRule("efund-lt-1", HIGH, "Emergency fund below 1 month", "Coverage is critically low for disruptions.", "emergency_fund_months", 1, True),
    ThresholdRule("runway-debt-lt-3", HIGH, "Cash runway including debt is below 3 months", "Liquid savings coverage against expenses plus debt minimums is low.", "runway_with_debt", 3, True),
    ThresholdRule("runway-debt-lt-1", HIGH, "Cash runway including debt is below 1 month", "Any disruption can force borrowing or missed obligations.", "runway_with_debt", 1, True),
    ThresholdRule("runway-expense-lt-1", HIGH, "Liquid cash runway is below 1 month of expenses", "Cash-equivalent holdings cover less than one month of expenses.", "runway_expenses_only", 1, True),
    ThresholdRule("cash-equivalents-lt-1000", HIGH, "Cash equivalents are below $1,000", "Low immediate liquidity increases disruption risk.", "liquid_cash_equivalents", 1000, True),
    ThresholdRule("dsc-lt-2", LOW, "Debt service coverage below 2.0", "Income buffer over debt minimums is thinning.", "debt_service_coverage", 2, True),
    ThresholdRule("dsc-lt-1.5", MEDIUM, "Debt service coverage below 1.5", "Debt minimums absorb substantial income.", "debt_service_coverage", 1.5, True),
    ThresholdRule("dsc-lt-1.2", HIGH, "Debt service coverage below 1.2", "Income has little room over mandatory debt payments.", "debt_service_coverage", 1.2, True),
    ThresholdRule("liq-lt-1", MEDIUM, "Liquidity ratio below 1.0", "Assets are below total liabilities.", "liquidity_ratio", 1, True),
    ThresholdRule("liq-lt-0.5", HIGH, "Liquidity ratio below 0.5", "Assets cover less than half of liabilities.", "liquidity_ratio", 0.5, True),
    ThresholdRule("expense-ratio-gt-80", MEDIUM, "Expense ratio above 80%", "Most income is consumed by expenses before debt.", "expense_ratio", 80),
    ThresholdRule("expense-ratio-gt-100", HIGH, "Expense ratio above 100%", "Expenses exceed income before debt obligations.", "expense_ratio", 100),
    ThresholdRule("liability-ratio-gt-2x-income", MEDIUM, "Liabilities exceed 2x yearly income", "Leverage relative to income is elevated.", "liability_to_income", 2),
    ThresholdRule("liability-ratio-gt-3x-income", HIGH, "Liabilities exceed 3x yearly income", "Leverage relative to income is high risk.", "liability_to_income", 3),
    ThresholdRule("liability-ratio-gt-4x-income", HIGH, "Liabilities exceed 4x yearly income", "Leverage relative to income is severe.", "liability_to_income", 4),
    ThresholdRule("payment-burden-gt-15", LOW, "Debt payment burden above 15%", "Mandatory debt payments reduce flexibility.", "debt_to_income", 15),
    ThresholdRule("payment-burden-gt-25", MEDIUM, "Debt payment burden above 25%", "Debt payments materially compress monthly cash flow.", "debt_to_income", 25),
    ThresholdRule("payment-burden-gt-40", HIGH, "Debt payment burden above 40%", "Debt payments are in stressed range.", "debt_to_income", 40),
    ThresholdRule("debt-minimums-vs-expenses-gt-100", HIGH, "Debt minimums exceed monthly expenses", "Debt minimum payments are larger than monthly expenses.", "debt_minimums_to_expenses", 100),
    ThresholdRule("single-payment-concentration-gt-25", MEDIUM, "A single debt payment exceeds 25% of income", "One recurring payment is highly concentrated against income.", "max_single_payment_share", 25),
    ThresholdRule("fixed-cost-ratio-gt-60", HIGH, "Fixed-cost ratio is above 60%", "High fixed obligations reduce flexibility during shocks.", "fixed_cost_ratio", 60),
    ThresholdRule("income-concentration-gt-80", MEDIUM, "Income is concentrated above 80% in one source", "A single source dominates total income.", "top_income_source_share", 80),
    ThresholdRule("income-concentration-gt-90", HIGH, "Income is highly concentrated in one source", "A single-source income disruption would materially impact the plan.", "top_income_source_share", 90),
    ThresholdRule("secured-ltv-gt-80", MEDIUM, "Secured debt LTV is above 80%", "Collateral cushion is thinning on secured balances.", "secured_ltv", 80),
    ThresholdRule("secured-ltv-gt-100", HIGH, "Secured debt LTV is above 100%", "Secured balances exceed tracked collateral market value.", "secured_ltv", 100),
    ThresholdRule("income-volatility-gt-20", LOW, "Cash-flow swing proxy above 20%", "Surplus/deficit swing indicates unstable cash profile.", "income_volatility", 20),
    ThresholdRule("income-volatility-gt-40", MEDIUM, "Cash-flow swing proxy above 40%", "Cash profile variability may disrupt planning.", "income_volatility", 40),
    ThresholdRule("income-volatility-gt-60", HIGH, "Cash-profile variability is severe", "Cash profile variability is severe.", "income_volatility", 60),
    ThresholdRule("util-mismatch-gt-5", HIGH, "Utilization mismatch across sections", "Credit utilization inputs disagree between credit and card sources.", "utilization_mismatch", 5),
    ThresholdRule("stale-balance-gt-0", MEDIUM, "Some liability balances are stale", "At least one liability balance is older than 45 days or missing timestamps.", "stale_balance_count", 0),
    ThresholdRule("stale-balance-gt-3", HIGH, "Multiple liability balances are stale", "Several liabilities are stale; forecast confidence is low.", "stale_balance_count", 3),
    ThresholdRule("forecast-fields-missing-gt-0", MEDIUM, "Missing debt fields for forecasting", "One or more liabilities are missing amount, minimum payment, or APR.", "missing_forecast_fields", 0),
)


def _first_number(row: Mapping[str, Any], *keys: str, default: Any = 0) -> Any:
    for key in keys:
        if is_number(row.get(key)):
            return row[key]
    return default


def _label(row: Mapping[str, Any], fallback: str) -> str:
    return row["item"] if isinstance(row.get("item"), str) else fallback


def _stale_count(rows: Iterable[Mapping[str, Any]], now: datetime) -> int:
    """Liabilities last touched more than 45 days ago, or never timestamped"""
    count = 0
    for row in rows:
        if isinstance(row.get("updatedAt"), str):
            stamp = row["updatedAt"]
        elif isinstance(row.get("date"), str):
            stamp = row["date"]
        else:
            stamp = ""
        parsed = parse_record_datetime(stamp)
        if parsed is None or (now - parsed).total_seconds() / 86400 > STALE_CUTOFF_DAYS:
            count += 1
    return count


def _missing_forecast_fields(rows: Iterable[Mapping[str, Any]]) -> int:
    count = 0
    for row in rows:
        amount = _first_number(row, "amount", "currentBalance", default=None)
        has_amount = amount is not None and amount >= 0
        has_minimum = is_number(row.get("minimumPayment")) and row["minimumPayment"] >= 0
        has_rate = is_number(row.get("interestRatePercent")) and row["interestRatePercent"] >= 0
        if not (has_amount and has_minimum and has_rate):
            count += 1
    return count


def _top_income_source(income: Iterable[Mapping[str, Any]]) -> float:
    totals: Dict[str, float] = {}
    for row in income:
        item = row.get("item")
        source = item.strip() if isinstance(item, str) and item.strip() else "Income"
        totals[source] = totals.get(source, 0) + as_number(row.get("amount"))
    return max([0, *totals.values()])


def _underwater_secured_count(secured_rows: Iterable[Mapping[str, Any]]) -> int:
    """Mortgages above 90% LTV and other secured debt above 100%"""
    count = 0
    for row in secured_rows:
        collateral = as_number(row.get("collateralAssetMarketValue"))
        if collateral <= 0:
            continue
        ltv = (as_number(row.get("amount")) / collateral) * 100
        is_mortgage = isinstance(row.get("item"), str) and "mortgage" in row["item"].lower()
        if ltv > (90 if is_mortgage else 100):
            count += 1
    return count


def _family_best(metric_values: Dict[str, float]) -> List[RiskFinding]:
    """Tightest triggered tier per rule family"""
    best: Dict[str, ThresholdRule] = {}
    for rule in THRESHOLD_RULES:
        if not rule.triggered(metric_values[rule.metric]):
            continue
        existing = best.get(rule.family)
        if existing is None or rule.tighter_than(existing):
            best[rule.family] = rule

    findings = []
    for rule in best.values():
        value = metric_values[rule.metric]
        findings.append(RiskFinding(rule.id, rule.severity, rule.title, rule.detail.format(value=value), value))
    return findings


def _drilldowns(
    snapshot: Snapshot,
    income_divisor: float,
    liabilities_divisor: float,
) -> List[RiskFinding]:
    findings = []
    for index, card in enumerate(snapshot.credit_cards):
        name = _label(card, f"Credit {index + 1}")
        limit = as_number(card.get("maxCapacity"))
        utilization = (as_number(card.get("currentBalance")) / limit) * 100 if limit > 0 else 0
        threshold = 80 if utilization > 80 else 50
        if utilization > threshold:
            findings.append(
                RiskFinding(
                    f"credit-util-item-{index}",
                    HIGH if utilization > 80 else MEDIUM,
                    f"{name} card utilization is elevated",
                    f"{name} utilization is {utilization:.2f}%.",
                    utilization,
                )
            )

    for index, debt in enumerate(snapshot.debts):
        name = _label(debt, f"Debt {index + 1}")
        share = (as_number(debt.get("amount")) / liabilities_divisor) * 100
        if share > 35:
            findings.append(
                RiskFinding(
                    f"debt-concentration-{index}",
                    HIGH if share > 60 else MEDIUM,
                    f"{name} concentration is high",
                    f"{name} is a concentrated share of liabilities.",
                    share,
                )
            )

    for index, loan in enumerate(snapshot.loans):
        name = _label(loan, f"Loan {index + 1}")
        share = (as_number(loan.get("minimumPayment")) / income_divisor) * 100
        if share > 10:
            findings.append(
                RiskFinding(
                    f"loan-payment-share-{index}",
                    HIGH if share > 20 else MEDIUM,
                    f"{name} payment share is high",
                    f"{name} minimum payment is elevated relative to income.",
                    share,
                )
            )
    return findings


@result_boundary
def extract_risk_findings(state: Any, now: date | datetime | None = None) -> List[RiskFinding]:
    """
    Evaluate every risk rule against a snapshot.

    Threshold rules are deduplicated per family so only the tightest triggered
    tier is reported. Per-record drilldowns and singular checks are added as-is.
    The list is ordered high > medium > low, then by descending absolute
    metric value, then by id, and capped at 50 rows.

    Args:
        state: Snapshot or persisted snapshot mapping
        now: Reference time for stale-balance checks (default: current UTC time)
    """
    snapshot = Snapshot.parse(state)
    health = unwrap(calculate_dashboard_health_metrics(snapshot), "health metrics")
    summary = unwrap(calculate_monthly_summary(snapshot), "monthly summary")
    reference = as_utc_datetime(now)
    total_income = summary.total_income
    total_expenses = summary.total_expenses

    cards = snapshot.credit_cards
    card_limit = sum_field(cards, "maxCapacity")
    card_balance = sum_field(cards, "currentBalance")
    legacy_limit = sum_field(snapshot.credit, "creditLimit")
    legacy_balance = sum_field(snapshot.credit, "amount")
    credit_payment_rows = cards if cards else snapshot.credit
    credit_limit = card_limit if card_limit > 0 else legacy_limit
    credit_balance = card_balance if card_limit > 0 else legacy_balance

    liabilities = sum_field(snapshot.debts, "amount") + credit_balance + sum_field(snapshot.loans, "amount")
    debt_payments = (
        sum_field(snapshot.debts, "minimumPayment")
        + sum((_first_number(row, "minimumPayment", "monthlyPayment") for row in credit_payment_rows), 0)
        + sum_field(snapshot.loans, "minimumPayment")
    )
    liability_rows = [*snapshot.debts, *credit_payment_rows, *snapshot.loans]
    secured_rows = [row for row in snapshot.debts + snapshot.loans if as_number(row.get("collateralAssetMarketValue")) > 0]
    secured_balance = sum_field(secured_rows, "amount")
    secured_collateral = sum_field(secured_rows, "collateralAssetMarketValue")
    income_divisor = total_income if total_income > 0 else 1
    liabilities_divisor = liabilities if liabilities > 0 else 1

    liquid_savings = sum(
        (as_number(row.get("amount")) for row in snapshot.assets if row.get("recordType") == "savings"), 0
    )
    cash_holdings = sum(
        (
            max(0, as_number(row.get("assetMarketValue")) - as_number(row.get("assetValueOwed")))
            for row in snapshot.asset_holdings
            if isinstance(row.get("item"), str)
            and any(keyword in row["item"].lower() for keyword in CASH_EQUIVALENT_KEYWORDS)
        ),
        0,
    )
    liquid_cash = liquid_savings + cash_holdings
    obligations = total_expenses + debt_payments
    discretionary_buffer = total_income - total_expenses - debt_payments

    fixed_costs = debt_payments + sum(
        (
            as_number(row.get("amount"))
            for row in snapshot.expenses
            if isinstance(row.get("category"), str) and row["category"].lower() in FIXED_EXPENSE_CATEGORIES
        ),
        0,
    )
    max_single_payment = max(
        [0, *(max(as_number(row.get("minimumPayment")), as_number(row.get("monthlyPayment"))) for row in liability_rows)]
    )
    if card_limit > 0 and legacy_limit > 0:
        utilization_mismatch = abs((card_balance / card_limit) * 100 - (legacy_balance / legacy_limit) * 100)
    else:
        utilization_mismatch = 0

    metric_values = {
        "debt_to_income": (debt_payments / total_income) * 100 if total_income > 0 else 0,
        "credit_utilization": (credit_balance / credit_limit) * 100 if credit_limit > 0 else 0,
        "savings_rate": summary.savings_rate_percent,
        "emergency_fund_months": liquid_cash / total_expenses if total_expenses > 0 else 0,
        "runway_with_debt": liquid_cash / obligations if obligations > 0 else 0,
        "runway_expenses_only": liquid_cash / total_expenses if total_expenses > 0 else 0,
        "liquid_cash_equivalents": liquid_cash,
        "debt_service_coverage": total_income / debt_payments if debt_payments > 0 else NO_DEBT_COVERAGE_RATIO,
        "liquidity_ratio": health.total_assets / liabilities if liabilities > 0 else 0,
        "expense_ratio": (total_expenses / income_divisor) * 100,
        "liability_to_income": liabilities / (total_income * 12 or 1),
        "debt_minimums_to_expenses": (debt_payments / total_expenses) * 100 if total_expenses > 0 else 0,
        "max_single_payment_share": (max_single_payment / income_divisor) * 100,
        "fixed_cost_ratio": (fixed_costs / income_divisor) * 100,
        "top_income_source_share": (_top_income_source(snapshot.income) / income_divisor) * 100,
        "secured_ltv": (secured_balance / secured_collateral) * 100 if secured_collateral > 0 else 0,
        "income_volatility": (
            (abs(summary.monthly_surplus_deficit) / total_income) * 100 if total_income > 0 else 0
        ),
        "utilization_mismatch": utilization_mismatch,
        "stale_balance_count": _stale_count(liability_rows, reference),
        "missing_forecast_fields": _missing_forecast_fields(liability_rows),
    }

    findings = _family_best(metric_values)
    findings.extend(_drilldowns(snapshot, income_divisor, liabilities_divisor))

    operating_cash_flow = total_income - obligations
    if operating_cash_flow < 0:
        findings.append(RiskFinding(
            "negative-operating-cashflow", HIGH, "Negative operating cash flow",
            "Monthly income is below expenses plus debt minimums.", operating_cash_flow,
        ))
    if discretionary_buffer < 0:
        findings.append(RiskFinding(
            "discretionary-buffer-lt-0", HIGH, "Discretionary buffer is negative",
            "There is no discretionary capacity after expenses and debt minimums.", discretionary_buffer,
        ))
    elif discretionary_buffer < 500:
        findings.append(RiskFinding(
            "discretionary-buffer-lt-500", MEDIUM, "Discretionary buffer is below $500",
            "Small surprise expenses can still destabilize the month.", discretionary_buffer,
        ))

    revolving_apr = max(
        [
            0,
            *(
                as_number(row.get("interestRatePercent"))
                for row in credit_payment_rows
                if _first_number(row, "amount", "currentBalance") > REVOLVING_BALANCE_FLOOR
            ),
        ]
    )
    if revolving_apr > 25:
        findings.append(RiskFinding(
            "apr-exposure-gt-25", HIGH, "High APR exposure on revolving debt",
            "At least one revolving balance above $1,000 has APR above 25%.", revolving_apr,
        ))

    underwater = _underwater_secured_count(secured_rows)
    if underwater > 0:
        findings.append(RiskFinding(
            "secured-specific-ltv-risk", HIGH, "One or more secured debts are near/above risk LTV thresholds",
            "Mortgage above 90% LTV or non-mortgage secured debt above 100% LTV detected.", underwater,
        ))

    # Month-end cash forecast is the discretionary buffer under current obligations
    if discretionary_buffer < 0:
        findings.append(RiskFinding(
            "forecast-month-end-cash-lt-0", HIGH, "Projected month-end cash is negative",
            "Projected month-end cashflow falls below zero with current obligations.", discretionary_buffer,
        ))

    placeholders = sum(
        1
        for row in snapshot.income
        if isinstance(row.get("item"), str) and row["item"].strip() and as_number(row.get("amount")) == 0
    )
    if placeholders > 0:
        findings.append(RiskFinding(
            "income-placeholders-gt-0", MEDIUM, "One or more income sources are unrealized ($0)",
            "Income assumptions include one or more $0 rows that may not be active.", placeholders,
        ))

    active_goals = sum(
        1 for goal in snapshot.goals if isinstance(goal.get("status"), str) and goal["status"].lower() == "in progress"
    )
    if active_goals == 0:
        findings.append(RiskFinding(
            "no-active-goals", MEDIUM, "No active goals in progress",
            "Without active goals, budget-to-action alignment is likely weak.", 0,
        ))

    findings.sort(key=lambda finding: (-SEVERITY_RANK[finding.severity], -abs(finding.metric_value), finding.id))
    return findings[:MAX_FINDINGS]
