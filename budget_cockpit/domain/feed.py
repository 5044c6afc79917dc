"""Unified records feed and generic filter/sort over record rows"""

import json
import math
from functools import cmp_to_key
from typing import Any, Dict, List, Mapping

from budget_cockpit.domain.exceptions import RecordValidationError
from budget_cockpit.domain.models import Record, Snapshot
from budget_cockpit.domain.results import result_boundary
from budget_cockpit.utils.number_utils import as_number, is_number

DEFAULT_SORT_FIELD = "updatedAt"


def _tagged(row: Mapping[str, Any], source: str, record_type: str, **overrides: Any) -> Record:
    return {**row, "sourceCollectionName": source, "recordType": record_type, **overrides}


def _payment_row(row: Mapping[str, Any], source: str, record_type: str) -> Record:
    """Debt-family rows show their minimum payment as the monthly outflow"""
    payment = row["minimumPayment"] if is_number(row.get("minimumPayment")) else 0
    return _tagged(row, source, record_type, amount=payment, signedAmount=-payment)


@result_boundary
def build_unified_feed(state: Any) -> List[Record]:
    """
    Flatten every collection into one list of feed rows.

    Each row keeps its original fields and gains sourceCollectionName, recordType
    and signedAmount: positive for income, negative for expenses, savings
    transfers and debt-family payments, zero for asset holdings.
    """
    snapshot = Snapshot.parse(state)
    rows: List[Record] = []
    for row in snapshot.income:
        amount = row["amount"] if is_number(row.get("amount")) else 0
        rows.append(_tagged(row, "income", "income", signedAmount=amount))
    for row in snapshot.expenses:
        amount = row["amount"] if is_number(row.get("amount")) else 0
        rows.append(_tagged(row, "expenses", "expense", signedAmount=-amount))
    for row in snapshot.assets:
        if row.get("recordType") != "savings":
            continue
        # savings contributions leave monthly cashflow
        amount = row["amount"] if is_number(row.get("amount")) else 0
        rows.append(_tagged(row, "assets", "savings", signedAmount=-amount))
    rows.extend(_payment_row(row, "debts", "debt") for row in snapshot.debts)
    rows.extend(_payment_row(row, "loans", "loan") for row in snapshot.loans)
    rows.extend(_payment_row(row, "credit", "credit") for row in snapshot.credit)
    for row in snapshot.credit_cards:
        payment = row["monthlyPayment"] if is_number(row.get("monthlyPayment")) else 0
        rows.append(
            _tagged(
                row,
                "creditCards",
                "credit card",
                category=row["item"] if isinstance(row.get("item"), str) else "",
                amount=payment,
                signedAmount=-payment,
                description=row["description"] if isinstance(row.get("description"), str) else "",
            )
        )
    for row in snapshot.asset_holdings:
        rows.append(
            _tagged(
                row,
                "assetHoldings",
                "asset",
                category=row["item"] if isinstance(row.get("item"), str) else "",
                amount=as_number(row.get("assetMarketValue")) - as_number(row.get("assetValueOwed")),
                signedAmount=0,
            )
        )
    return rows


def _searchable_text(row: Mapping[str, Any]) -> str:
    return json.dumps(row, ensure_ascii=False, separators=(",", ":"), default=str).lower()


def _compare_values(left: Any, right: Any) -> int:
    try:
        return 1 if left > right else -1
    except TypeError:
        # mixed types compare by their text form
        return 1 if str(left) > str(right) else -1


@result_boundary
def build_sorted_and_filtered(records: Any, criteria: Mapping[str, Any] | None = None) -> List[Record]:
    """
    Filter and sort record rows.

    Criteria keys (all optional): searchText, tagAny, minAmount, maxAmount,
    sortBy (default updatedAt) and sortDirection ("asc", otherwise descending).
    Rows missing the sort field always sort last.

    Args:
        records: List of record mappings, typically the unified feed
        criteria: Filter and sort options

    Returns:
        A new list; the input rows are not modified
    """
    if not isinstance(records, (list, tuple)):
        raise RecordValidationError("recordsCollection must be an array", {"recordsCollection": records})

    options: Dict[str, Any] = dict(criteria) if isinstance(criteria, Mapping) else {}
    search_text = options["searchText"].lower().strip() if isinstance(options.get("searchText"), str) else ""
    tag_filter = options["tagAny"] if isinstance(options.get("tagAny"), (list, tuple)) else []
    minimum = options["minAmount"] if is_number(options.get("minAmount")) else -math.inf
    maximum = options["maxAmount"] if is_number(options.get("maxAmount")) else math.inf
    sort_field = options["sortBy"] if isinstance(options.get("sortBy"), str) else DEFAULT_SORT_FIELD
    ascending = options.get("sortDirection") == "asc"

    def matches(row: Mapping[str, Any]) -> bool:
        if search_text and search_text not in _searchable_text(row):
            return False
        amount = row["amount"] if is_number(row.get("amount")) else 0
        if not minimum <= amount <= maximum:
            return False
        tags = row["tags"] if isinstance(row.get("tags"), (list, tuple)) else []
        return not tag_filter or any(tag in tags for tag in tag_filter)

    def compare(left_row: Mapping[str, Any], right_row: Mapping[str, Any]) -> int:
        left = left_row.get(sort_field)
        right = right_row.get(sort_field)
        if left == right:
            return 0
        if left is None:
            return 1
        if right is None:
            return -1
        order = _compare_values(left, right)
        return order if ascending else -order

    filtered = [row for row in records if isinstance(row, Mapping) and matches(row)]
    return sorted(filtered, key=cmp_to_key(compare))
