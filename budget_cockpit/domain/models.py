"""Domain models - pure Python dataclasses representing budget state and findings"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Tuple

from budget_cockpit.domain.exceptions import RecordValidationError
from budget_cockpit.domain.results import result_boundary

CURRENT_SCHEMA_VERSION = 2

# Persisted (wire) collection name -> Snapshot attribute
COLLECTION_ATTRIBUTES: Dict[str, str] = {
    "income": "income",
    "expenses": "expenses",
    "assets": "assets",
    "assetHoldings": "asset_holdings",
    "debts": "debts",
    "credit": "credit",
    "creditCards": "credit_cards",
    "loans": "loans",
    "goals": "goals",
    "notes": "notes",
    "personas": "personas",
}

REQUIRED_COLLECTIONS = ("income", "expenses", "assets", "debts", "credit", "loans", "goals")

Record = Dict[str, Any]
Rows = Tuple[Record, ...]


class RecordKind(str, Enum):
    """Discriminant stored on records as recordType"""

    INCOME = "income"
    EXPENSE = "expense"
    SAVINGS = "savings"
    ASSET = "asset"
    DEBT = "debt"
    CREDIT = "credit"
    LOAN = "loan"
    GOAL = "goal"
    NOTE = "note"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Snapshot:
    """
    Full state of every named collection at a point in time.

    Collections are tuples of plain record dicts keyed by their persisted
    camelCase field names. Writes go through with_collection(), which returns a
    new Snapshot sharing every untouched collection with this one.
    """

    income: Rows = ()
    expenses: Rows = ()
    assets: Rows = ()
    asset_holdings: Rows = ()
    debts: Rows = ()
    credit: Rows = ()
    credit_cards: Rows = ()
    loans: Rows = ()
    goals: Rows = ()
    notes: Rows = ()
    personas: Rows = ()
    schema_version: int = CURRENT_SCHEMA_VERSION

    def collection(self, name: str) -> Rows:
        """Rows of a collection by its persisted name (e.g. "assetHoldings")"""
        return getattr(self, COLLECTION_ATTRIBUTES[name])

    def with_collection(self, name: str, rows: Iterable[Record]) -> "Snapshot":
        return replace(self, **{COLLECTION_ATTRIBUTES[name]: tuple(rows)})

    def to_dict(self) -> Dict[str, Any]:
        """Persisted snapshot shape"""
        state: Dict[str, Any] = {
            name: [dict(row) for row in self.collection(name)] for name in COLLECTION_ATTRIBUTES
        }
        state["schemaVersion"] = self.schema_version
        return state

    @classmethod
    def parse(cls, raw: Any) -> "Snapshot":
        """Build a Snapshot from a persisted mapping, raising on malformed input"""
        if isinstance(raw, Snapshot):
            return raw
        if not isinstance(raw, Mapping):
            raise RecordValidationError("currentCollectionsState must be an object")

        collections: Dict[str, Rows] = {}
        for name, attribute in COLLECTION_ATTRIBUTES.items():
            rows = raw.get(name)
            if rows is None and name not in REQUIRED_COLLECTIONS:
                collections[attribute] = ()
                continue
            if not isinstance(rows, list) and not isinstance(rows, tuple):
                raise RecordValidationError(f"{name} must be an array", {"requiredCollectionName": name})
            collections[attribute] = tuple(_parse_rows(name, rows))

        schema_version = raw.get("schemaVersion", CURRENT_SCHEMA_VERSION)
        if not isinstance(schema_version, int) or isinstance(schema_version, bool):
            schema_version = CURRENT_SCHEMA_VERSION
        return cls(schema_version=schema_version, **collections)

    @classmethod
    @result_boundary
    def from_mapping(cls, raw: Any) -> "Snapshot":
        return cls.parse(raw)


def _parse_rows(name: str, rows: Iterable[Any]) -> List[Record]:
    parsed = []
    for index, row in enumerate(rows):
        if not isinstance(row, Mapping):
            raise RecordValidationError(
                f"{name} rows must be objects",
                {"collectionName": name, "index": index},
            )
        parsed.append(dict(row))
    return parsed


@result_boundary
def build_default_snapshot() -> Snapshot:
    """Empty state for first use: every collection empty, current schema version"""
    return Snapshot()


@dataclass(frozen=True)
class RiskFinding:
    """Triggered risk rule"""

    id: str
    severity: Severity
    title: str
    detail: str
    metric_value: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "severity": self.severity.value,
            "title": self.title,
            "detail": self.detail,
            "metricValue": self.metric_value,
        }


@dataclass(frozen=True)
class PayoffComparison:
    """Base vs accelerated payoff simulation outcome"""

    base_months: float
    accelerated_months: float
    months_saved: float
    base_interest_paid: float
    accelerated_interest_paid: float
    interest_saved: float
    base_total_paid: float
    accelerated_total_paid: float


@dataclass(frozen=True)
class CardPaymentRecommendationRow:
    id: str
    person: str
    item: str
    current_balance: float
    minimum_payment: float
    current_monthly_payment: float
    interest_rate_percent: float
    utilization_percent: float
    priority_score: float
    recommended_monthly_payment: float
    estimated_months_current: float
    estimated_months_recommended: float
    recommendation_reason: str


@dataclass(frozen=True)
class CardPaymentRecommendation:
    """Avalanche-weighted allocation across credit cards"""

    strategy: str
    extra_acceleration_budget: float
    recommended_total_monthly_payment: float
    current_total_monthly_payment: float
    weighted_payoff_months_current: float
    weighted_payoff_months_recommended: float
    rows: Tuple[CardPaymentRecommendationRow, ...] = field(default_factory=tuple)
