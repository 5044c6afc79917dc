"""Per-field and per-record-type validation producing normalized records"""

import math
from collections.abc import Mapping
from typing import Any, Dict

from budget_cockpit.domain.exceptions import RecordValidationError
from budget_cockpit.domain.models import Record, RecordKind
from budget_cockpit.domain.results import result_boundary
from budget_cockpit.utils.number_utils import coerce_number, half_up_round, is_number

GOAL_STATUSES = ("completed", "in progress", "not started")
LOAN_FAMILY = (RecordKind.DEBT.value, RecordKind.CREDIT.value, RecordKind.LOAN.value)


def check_monetary_value(value: Any, field_name: str) -> float:
    """Raise unless value is a finite, non-negative number"""
    details = {"valueFieldName": field_name, "valueToValidate": value}
    if not is_number(value) or not math.isfinite(value):
        raise RecordValidationError(f"{field_name} must be a finite number", details)
    if value < 0:
        raise RecordValidationError(f"{field_name} must be non-negative", details)
    return value


def _trimmed(raw: Mapping, key: str) -> str:
    value = raw.get(key)
    return value.strip() if isinstance(value, str) else ""


def _text_or_empty(raw: Mapping, key: str) -> str:
    value = raw.get(key)
    return value if isinstance(value, str) else ""


def _or_zero(value: Any) -> Any:
    return 0 if value is None else value


def normalize_record(record_type: str, raw: Any) -> Record:
    if not isinstance(raw, Mapping):
        raise RecordValidationError("record payload must be an object", {"recordType": record_type})

    record: Dict[str, Any] = dict(raw)
    # Empty defaults keep sorting, filtering and search total
    record["notes"] = _text_or_empty(raw, "notes")
    tags = raw.get("tags")
    record["tags"] = list(tags) if isinstance(tags, (list, tuple)) else []

    if record_type != RecordKind.NOTE.value:
        record["amount"] = check_monetary_value(_or_zero(raw.get("amount")), "amount")

    if record_type == RecordKind.CREDIT.value:
        record["creditLimit"] = check_monetary_value(_or_zero(raw.get("creditLimit")), "creditLimit")

    if record_type in LOAN_FAMILY:
        record["interestRatePercent"] = check_monetary_value(
            _or_zero(raw.get("interestRatePercent")), "interestRatePercent"
        )
        remaining = check_monetary_value(coerce_number(raw.get("remainingPayments")), "remainingPayments")
        record["remainingPayments"] = half_up_round(remaining)
        record["loanStartDate"] = _text_or_empty(raw, "loanStartDate")
        record["collateralAssetName"] = _text_or_empty(raw, "collateralAssetName")
        record["collateralAssetMarketValue"] = check_monetary_value(
            coerce_number(raw.get("collateralAssetMarketValue")), "collateralAssetMarketValue"
        )

    return record


def normalize_income_expense(record_type: str, raw: Any) -> Record:
    if not isinstance(raw, Mapping):
        raise RecordValidationError("record payload must be an object", {"recordType": record_type})

    category = _trimmed(raw, "category")
    if not category:
        raise RecordValidationError(f"{record_type} category is required", {"recordType": record_type})
    record_date = _trimmed(raw, "date")
    if not record_date:
        raise RecordValidationError(f"{record_type} date is required", {"recordType": record_type})

    record = normalize_record(record_type, raw)
    record["category"] = category
    record["date"] = record_date
    record["description"] = _trimmed(raw, "description")
    return record


def normalize_goal(raw: Any) -> Record:
    if not isinstance(raw, Mapping):
        raise RecordValidationError("goal payload must be an object")

    title = _trimmed(raw, "title")
    if not title:
        raise RecordValidationError("goal title is required")

    timeframe = raw.get("timeframeMonths")
    timeframe_months = timeframe if is_number(timeframe) else coerce_number(timeframe)
    if not math.isfinite(timeframe_months) or timeframe_months < 0:
        raise RecordValidationError(
            "goal timeframeMonths must be a non-negative number",
            {"valueFieldName": "timeframeMonths", "valueToValidate": timeframe},
        )

    status = raw.get("status")
    status = status.strip().lower() if isinstance(status, str) else ""
    if status not in GOAL_STATUSES:
        status = "not started"

    return {
        **raw,
        "title": title,
        "status": status,
        "timeframeMonths": timeframe_months,
        "description": _trimmed(raw, "description"),
    }


@result_boundary
def validate_monetary_value(value: Any, field_name: str) -> float:
    """
    Validate a monetary field.

    Args:
        value: Candidate value; must be an int/float, finite and >= 0
        field_name: Field name used in the error message and details

    Returns:
        Result carrying the value unchanged, or a VALIDATION error
    """
    return check_monetary_value(value, field_name)


@result_boundary
def validate_and_normalize_record(record_type: str, raw: Any) -> Record:
    """Fill notes/tags defaults and validate the numeric fields of a record type"""
    return normalize_record(record_type, raw)


@result_boundary
def validate_income_expense_fields(record_type: str, raw: Any) -> Record:
    """Require category and date, normalize, trim description"""
    return normalize_income_expense(record_type, raw)


@result_boundary
def validate_goal_fields(raw: Any) -> Record:
    return normalize_goal(raw)
