"""Unit tests for the unified feed and record filtering"""

import pytest

from budget_cockpit.domain.feed import build_sorted_and_filtered, build_unified_feed
from budget_cockpit.domain.results import ErrorKind


@pytest.fixture
def records():
    return [
        {"id": "r1", "item": "Rent", "amount": 1800, "updatedAt": "2024-03-01", "tags": ["fixed"]},
        {"id": "r2", "item": "Coffee", "amount": 5, "updatedAt": "2024-03-10", "tags": []},
        {"id": "r3", "item": "Groceries", "amount": 200, "tags": ["food"]},
        {"id": "r4", "item": "Internet", "amount": 80, "updatedAt": "2024-02-20", "tags": ["fixed"]},
    ]


def test_unified_feed_signed_amounts(sample_state):
    rows, error = build_unified_feed(sample_state)

    assert error is None
    by_id = {row["id"]: row for row in rows}
    assert by_id["inc-1"]["signedAmount"] == 5000
    assert by_id["exp-1"]["signedAmount"] == -1800
    assert by_id["sav-1"]["signedAmount"] == -500
    assert by_id["debt-1"]["amount"] == 1200
    assert by_id["debt-1"]["signedAmount"] == -1200
    assert by_id["hold-2"]["signedAmount"] == 0


def test_unified_feed_card_and_holding_rows(sample_state):
    by_id = {row["id"]: row for row in build_unified_feed(sample_state).value}

    card = by_id["card-1"]
    assert card["recordType"] == "credit card"
    assert card["category"] == "Visa"
    assert card["amount"] == 150
    assert card["sourceCollectionName"] == "creditCards"

    holding = by_id["hold-2"]
    assert holding["recordType"] == "asset"
    assert holding["amount"] == 20000


def test_unified_feed_leaves_out_non_savings_assets(empty_state):
    empty_state["assets"] = [{"id": "a-1", "recordType": "asset", "amount": 100}]

    rows, error = build_unified_feed(empty_state)

    assert error is None
    assert rows == []


def test_unified_feed_does_not_modify_input(sample_state):
    build_unified_feed(sample_state)
    assert "signedAmount" not in sample_state["income"][0]


def test_default_sort_is_newest_first_with_missing_last(records):
    rows, error = build_sorted_and_filtered(records)

    assert error is None
    assert [row["id"] for row in rows] == ["r2", "r1", "r4", "r3"]


def test_ascending_sort_keeps_missing_last(records):
    rows = build_sorted_and_filtered(records, {"sortDirection": "asc"}).value
    assert [row["id"] for row in rows] == ["r4", "r1", "r2", "r3"]


def test_sort_by_amount(records):
    rows = build_sorted_and_filtered(records, {"sortBy": "amount", "sortDirection": "asc"}).value
    assert [row["amount"] for row in rows] == [5, 80, 200, 1800]


def test_search_is_case_insensitive(records):
    rows = build_sorted_and_filtered(records, {"searchText": "  GROC "}).value
    assert [row["id"] for row in rows] == ["r3"]


def test_tag_any(records):
    rows = build_sorted_and_filtered(records, {"tagAny": ["fixed", "travel"]}).value
    assert sorted(row["id"] for row in rows) == ["r1", "r4"]


def test_amount_range(records):
    rows = build_sorted_and_filtered(records, {"minAmount": 50, "maxAmount": 500}).value
    assert sorted(row["id"] for row in rows) == ["r3", "r4"]


def test_empty_collection():
    assert build_sorted_and_filtered([]).value == []


def test_non_list_is_rejected():
    rows, error = build_sorted_and_filtered({"id": "r1"})

    assert rows is None
    assert error.kind == ErrorKind.VALIDATION
    assert error.message == "recordsCollection must be an array"


def test_feed_rows_sort_by_signed_amount(sample_state):
    feed = build_unified_feed(sample_state).value

    rows = build_sorted_and_filtered(feed, {"sortBy": "signedAmount", "sortDirection": "asc"}).value

    assert rows[0]["id"] == "exp-1"
    assert rows[-1]["id"] == "inc-1"
