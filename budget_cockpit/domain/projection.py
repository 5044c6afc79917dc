"""Three-profile, ten-year net worth projection"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Tuple

from budget_cockpit.domain.metrics import (
    calculate_monthly_summary,
    calculate_savings_storage_summary,
    holdings_net_value,
)
from budget_cockpit.domain.models import Snapshot
from budget_cockpit.domain.results import result_boundary, unwrap
from budget_cockpit.utils.number_utils import as_number, is_number

PROJECTION_MONTHS = 120


@dataclass(frozen=True)
class Horizon:
    id: str
    label: str
    months: int


@dataclass(frozen=True)
class ProfileAssumptions:
    savings_pace_multiplier: float
    annual_asset_growth_percent: float
    debt_payment_extra_percent: float
    apr_stress_adjustment_percent: float


@dataclass(frozen=True)
class ProfileDefinition:
    id: str
    label: str
    assumptions: ProfileAssumptions


HORIZONS: Tuple[Horizon, ...] = (
    Horizon("current", "Current", 0),
    Horizon("6-months", "6 Months", 6),
    Horizon("1-year", "1 Year", 12),
    Horizon("2-years", "2 Years", 24),
    Horizon("5-years", "5 Years", 60),
    Horizon("10-years", "10 Years", 120),
)

PROFILES: Tuple[ProfileDefinition, ...] = (
    ProfileDefinition("conservative", "Conservative", ProfileAssumptions(0.7, 1.5, 0, 1.0)),
    ProfileDefinition("base", "Base", ProfileAssumptions(1.0, 3.0, 0, 0)),
    ProfileDefinition("accelerated", "Accelerated", ProfileAssumptions(1.25, 4.5, 0.15, -1.0)),
)


@dataclass(frozen=True)
class ProjectionPoint:
    horizon_id: str
    months: int
    projected_assets: float
    projected_debt: float
    projected_net_worth: float


@dataclass(frozen=True)
class ProjectionProfile:
    id: str
    label: str
    assumptions: ProfileAssumptions
    points: Tuple[ProjectionPoint, ...]


@dataclass(frozen=True)
class BaselineVariables:
    starting_asset_value: float
    starting_liability_balance: float
    total_monthly_income: float
    total_monthly_expenses: float
    monthly_savings_pace_baseline: float
    total_monthly_debt_payments: float
    weighted_apr_percent: float


@dataclass(frozen=True)
class NetWorthProjection:
    horizons: Tuple[Horizon, ...]
    baseline_variables: BaselineVariables
    profiles: Tuple[ProjectionProfile, ...] = field(default_factory=tuple)


@dataclass
class _LiabilityState:
    balance: float
    apr_percent: float
    base_payment: float
    remaining_payments: float | None
    payments_made: int = 0


def _scheduled_payment(row: Mapping[str, Any]) -> float:
    if is_number(row.get("monthlyPayment")):
        return row["monthlyPayment"]
    return as_number(row.get("minimumPayment"))


def _liability_rows(snapshot: Snapshot) -> List[Mapping[str, Any]]:
    """Debts, loans, credit and credit cards in one liability shape"""
    cards = [
        {
            "id": card["id"] if isinstance(card.get("id"), str) else "",
            "amount": as_number(card.get("currentBalance")),
            "monthlyPayment": as_number(card.get("monthlyPayment")),
            "minimumPayment": as_number(card.get("minimumPayment")),
            "interestRatePercent": as_number(card.get("interestRatePercent")),
            "remainingPayments": as_number(card.get("remainingPayments")),
        }
        for card in snapshot.credit_cards
    ]
    return [*snapshot.debts, *snapshot.loans, *snapshot.credit, *cards]


def _advance(state: _LiabilityState, assumptions: ProfileAssumptions) -> None:
    """Amortize one liability by one month under a profile's assumptions"""
    if state.balance <= 0:
        return
    apr = max(0, state.apr_percent + assumptions.apr_stress_adjustment_percent)
    interest = state.balance * (apr / 100 / 12)

    can_pay = state.remaining_payments is None or state.remaining_payments - state.payments_made > 0
    payment = (state.base_payment if can_pay else 0) * (1 + assumptions.debt_payment_extra_percent)
    applied = min(max(0, payment), state.balance + interest)

    state.balance = max(0, state.balance + interest - applied)
    if can_pay and applied > 0:
        state.payments_made += 1


def _project_profile(
    profile: ProfileDefinition,
    starting_assets: float,
    starting_liabilities: float,
    liabilities: List[Mapping[str, Any]],
    savings_pace: float,
) -> ProjectionProfile:
    assumptions = profile.assumptions
    monthly_growth = assumptions.annual_asset_growth_percent / 100 / 12
    contribution = savings_pace * assumptions.savings_pace_multiplier
    horizon_by_month: Dict[int, Horizon] = {horizon.months: horizon for horizon in HORIZONS}

    states = []
    for row in liabilities:
        remaining = as_number(row.get("remainingPayments"))
        states.append(
            _LiabilityState(
                balance=max(0, as_number(row.get("amount"))),
                apr_percent=max(0, as_number(row.get("interestRatePercent"))),
                base_payment=max(0, _scheduled_payment(row)),
                remaining_payments=remaining if remaining > 0 else None,
            )
        )

    assets = starting_assets
    debt = starting_liabilities
    points = []
    for month in range(PROJECTION_MONTHS + 1):
        if month > 0:
            assets = assets * (1 + monthly_growth) + contribution
            for state in states:
                _advance(state, assumptions)
            debt = sum((state.balance for state in states), 0)

        horizon = horizon_by_month.get(month)
        if horizon is not None:
            points.append(
                ProjectionPoint(
                    horizon_id=horizon.id,
                    months=horizon.months,
                    projected_assets=assets,
                    projected_debt=debt,
                    projected_net_worth=assets - debt,
                )
            )

    return ProjectionProfile(id=profile.id, label=profile.label, assumptions=assumptions, points=tuple(points))


@result_boundary
def calculate_net_worth_projection(
    state: Any,
    reference_date: date | datetime | None = None,
) -> NetWorthProjection:
    """
    Project assets, debt and net worth for each profile at fixed horizons.

    Assets start from asset holdings at market value minus amount owed and grow
    monthly, plus a profile-scaled share of the tracked monthly savings pace.
    Each liability amortizes on its own APR and scheduled payment, stops paying
    once its remaining payment count is used up and never goes below zero.

    Args:
        state: Snapshot or persisted snapshot mapping
        reference_date: Month whose tracked savings set the savings pace (default: now)
    """
    snapshot = Snapshot.parse(state)
    liabilities = _liability_rows(snapshot)

    starting_assets = holdings_net_value(snapshot)
    starting_liabilities = sum((as_number(row.get("amount")) for row in liabilities), 0)
    monthly_debt_payments = sum((_scheduled_payment(row) for row in liabilities), 0)
    apr_numerator = sum(
        (as_number(row.get("amount")) * as_number(row.get("interestRatePercent")) for row in liabilities), 0
    )

    summary = unwrap(calculate_monthly_summary(snapshot), "monthly summary during projection")
    savings = unwrap(
        calculate_savings_storage_summary(snapshot, reference_date), "monthly savings summary during projection"
    )
    savings_pace = max(0, savings.monthly_savings_amount)

    profiles = tuple(
        _project_profile(profile, starting_assets, starting_liabilities, liabilities, savings_pace)
        for profile in PROFILES
    )

    return NetWorthProjection(
        horizons=HORIZONS,
        baseline_variables=BaselineVariables(
            starting_asset_value=starting_assets,
            starting_liability_balance=starting_liabilities,
            total_monthly_income=summary.total_income,
            total_monthly_expenses=summary.total_expenses,
            monthly_savings_pace_baseline=savings_pace,
            total_monthly_debt_payments=monthly_debt_payments,
            weighted_apr_percent=apr_numerator / starting_liabilities if starting_liabilities > 0 else 0,
        ),
        profiles=profiles,
    )
