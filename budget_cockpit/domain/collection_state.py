"""Immutable write operations over the named collections of a Snapshot"""

from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Sequence

from budget_cockpit.domain.exceptions import RecordValidationError
from budget_cockpit.domain.models import COLLECTION_ATTRIBUTES, CURRENT_SCHEMA_VERSION, Record, Snapshot
from budget_cockpit.domain.results import result_boundary
from budget_cockpit.domain.validation import (
    check_monetary_value,
    normalize_goal,
    normalize_income_expense,
    normalize_record,
)
from budget_cockpit.utils.number_utils import as_number, coerce_number, format_number

EDITABLE_COLLECTIONS = ("income", "expenses", "assets", "assetHoldings", "debts", "credit", "loans", "creditCards")
MERGEABLE_COLLECTIONS = (
    "income", "expenses", "assets", "assetHoldings", "debts", "credit",
    "loans", "creditCards", "goals", "personas", "notes",
)
PERSONA_COLLECTIONS = ("income", "expenses", "assets", "debts", "credit", "loans", "creditCards")
AUDIT_TIMELINE_LIMIT = 240

IMPORT_SIGNATURE_FIELDS = (
    "person", "item", "category", "recordType", "amount", "minimumPayment", "monthlyPayment",
    "creditLimit", "maxCapacity", "currentBalance", "assetValueOwed", "assetMarketValue",
    "date", "description",
)

# Record type revalidated after an edit, per collection
INCOME_EXPENSE_TYPES = {"income": "income", "expenses": "expense", "assets": "savings"}
LOAN_FAMILY_TYPES = {"debts": "debt", "credit": "credit", "loans": "loan"}
LOAN_FAMILY_FIELDS = (
    "amount", "interestRatePercent", "remainingPayments", "loanStartDate",
    "collateralAssetName", "collateralAssetMarketValue",
)
CREDIT_CARD_NUMERIC_FIELDS = ("maxCapacity", "currentBalance", "minimumPayment", "monthlyPayment", "interestRatePercent")
ASSET_HOLDING_NUMERIC_FIELDS = ("assetValueOwed", "assetMarketValue")
ASSET_HOLDING_TEXT_FIELDS = ("person", "item", "description", "date")


@dataclass(frozen=True)
class SeedUpsert:
    snapshot: Snapshot
    added_count: int


def _lower_text(row: Mapping, key: str) -> str:
    value = row.get(key)
    return value.strip().lower() if isinstance(value, str) else ""


def _assign_id(record: Record, prefix: str, iso_timestamp: str, ordinal: int) -> str:
    record_id = record.get("id")
    if isinstance(record_id, str) and record_id.strip():
        return record_id
    return f"{prefix}-{iso_timestamp}-{ordinal}"


@result_boundary
def append_income_or_expense(state: Any, record_type: str, raw: Any, iso_timestamp: str) -> Snapshot:
    """
    Validate an income, expense or savings record and append it.

    income goes to income, savings to assets and anything else to expenses.
    A caller-supplied non-blank id is kept, otherwise one is generated from the
    record type, timestamp and the new row's ordinal.
    """
    snapshot = Snapshot.parse(state)
    if record_type == "income":
        target = "income"
    elif record_type == "savings":
        target = "assets"
    else:
        target = "expenses"

    rows = snapshot.collection(target)
    record = normalize_income_expense(record_type, raw)
    record["recordType"] = record_type
    record["id"] = _assign_id(record, record_type, iso_timestamp, len(rows) + 1)
    record["updatedAt"] = iso_timestamp
    return snapshot.with_collection(target, rows + (record,))


@result_boundary
def append_goal(state: Any, raw: Any, iso_timestamp: str) -> Snapshot:
    snapshot = Snapshot.parse(state)
    record = normalize_goal(raw)
    record["id"] = _assign_id(record, "goal", iso_timestamp, len(snapshot.goals) + 1)
    record["updatedAt"] = iso_timestamp
    return snapshot.with_collection("goals", snapshot.goals + (record,))


def _revalidate_edit(collection_name: str, candidate: Record) -> None:
    if collection_name in INCOME_EXPENSE_TYPES:
        validated = normalize_income_expense(INCOME_EXPENSE_TYPES[collection_name], candidate)
        for key in ("amount", "category", "date", "description"):
            candidate[key] = validated[key]

    elif collection_name in LOAN_FAMILY_TYPES:
        record_type = LOAN_FAMILY_TYPES[collection_name]
        normalized = normalize_record(record_type, candidate)
        for key in LOAN_FAMILY_FIELDS:
            candidate[key] = normalized[key]
        if record_type == "credit":
            candidate["creditLimit"] = normalized["creditLimit"]

    elif collection_name == "creditCards":
        for key in CREDIT_CARD_NUMERIC_FIELDS:
            candidate[key] = check_monetary_value(coerce_number(candidate.get(key)), key)

    elif collection_name == "assetHoldings":
        for key in ASSET_HOLDING_NUMERIC_FIELDS:
            candidate[key] = check_monetary_value(coerce_number(candidate.get(key)), key)
        for key in ASSET_HOLDING_TEXT_FIELDS:
            value = candidate.get(key)
            candidate[key] = value if isinstance(value, str) else ""


@result_boundary
def update_record_by_collection_and_id(
    state: Any,
    collection_name: str,
    record_id: str,
    patch: Any,
    iso_timestamp: str,
) -> Snapshot:
    """
    Merge a patch into one record and revalidate its type-specific fields.

    Args:
        state: Snapshot or persisted snapshot mapping
        collection_name: One of the editable collections
        record_id: Exact id of the record to edit
        patch: Field overrides; id is always preserved
        iso_timestamp: Written to updatedAt

    Returns:
        Result carrying the new Snapshot
    """
    snapshot = Snapshot.parse(state)
    if collection_name not in EDITABLE_COLLECTIONS:
        raise RecordValidationError(
            "collectionName is not supported for editing", {"collectionName": collection_name}
        )
    if not isinstance(patch, Mapping):
        raise RecordValidationError("record patch must be an object", {"collectionName": collection_name})

    rows = snapshot.collection(collection_name)
    target_index = next(
        (
            index
            for index, row in enumerate(rows)
            if isinstance(row.get("id"), str) and row.get("id") == record_id
        ),
        None,
    )
    if target_index is None:
        raise RecordValidationError(
            "record id was not found in target collection",
            {"collectionName": collection_name, "recordId": record_id},
        )

    existing = rows[target_index]
    candidate = {**existing, **patch, "id": existing["id"], "updatedAt": iso_timestamp}
    _revalidate_edit(collection_name, candidate)

    next_rows = rows[:target_index] + (candidate,) + rows[target_index + 1:]
    return snapshot.with_collection(collection_name, next_rows)


def _expense_fingerprint(row: Mapping) -> str:
    return "|".join(
        [
            _lower_text(row, "person"),
            _lower_text(row, "item"),
            _lower_text(row, "category"),
            format_number(as_number(row.get("amount"))),
            _lower_text(row, "description"),
        ]
    )


def _is_legacy_debt_payment_row(row: Mapping) -> bool:
    return (
        _lower_text(row, "item") == "debts"
        and _lower_text(row, "category") == "debt payment"
        and _lower_text(row, "description") == "total debt payments"
    )


@result_boundary
def upsert_recurring_seed_rows(state: Any, seed_rows: Sequence[Record] | None = None) -> SeedUpsert:
    """
    Add recurring seed expense rows that are not already present.

    Rows are matched on a case-insensitive person|item|category|amount|description
    fingerprint. Legacy synthetic "total debt payments" rows are dropped since
    debt minimums are already counted from the debt collections.
    """
    snapshot = Snapshot.parse(state)
    if seed_rows is None:
        seed_rows = Snapshot().expenses

    existing = {_expense_fingerprint(row) for row in snapshot.expenses}
    rows_to_add = [dict(row) for row in seed_rows if _expense_fingerprint(row) not in existing]
    cleaned = [row for row in snapshot.expenses if not _is_legacy_debt_payment_row(row)]

    return SeedUpsert(
        snapshot=snapshot.with_collection("expenses", cleaned + rows_to_add),
        added_count=len(rows_to_add),
    )


def import_dedup_key(row: Mapping) -> str:
    record_id = row.get("id")
    if isinstance(record_id, str) and record_id.strip():
        return f"id:{record_id.strip()}"
    signature = [format_number(row.get(key)).strip().lower() for key in IMPORT_SIGNATURE_FIELDS]
    return "sig:" + "|".join(signature)


def _mapping_rows(source: Any, name: str) -> Iterable[Mapping]:
    if isinstance(source, Snapshot):
        return source.collection(name)
    rows = source.get(name)
    if not isinstance(rows, (list, tuple)):
        return ()
    return [row for row in rows if isinstance(row, Mapping)]


@result_boundary
def merge_imported_state(current: Any, imported: Any) -> Snapshot:
    """
    Merge an imported snapshot into the current one.

    Rows are keyed by id, or by a field signature when the id is blank. Current
    rows seed the map and imported rows overwrite on key collision, so merging
    the same import twice gives the same result as merging it once.
    """
    if not isinstance(current, (Mapping, Snapshot)):
        raise RecordValidationError("currentCollectionsState must be an object")
    if not isinstance(imported, (Mapping, Snapshot)):
        raise RecordValidationError("importedCollectionsState must be an object")

    merged: Dict[str, Any] = {}
    for name in MERGEABLE_COLLECTIONS:
        row_map: Dict[str, Record] = {}
        for row in _mapping_rows(current, name):
            row_map[import_dedup_key(row)] = dict(row)
        for row in _mapping_rows(imported, name):
            row_map[import_dedup_key(row)] = dict(row)
        merged[COLLECTION_ATTRIBUTES[name]] = tuple(row_map.values())

    if isinstance(imported, Snapshot):
        schema_version = imported.schema_version
    elif isinstance(current, Snapshot):
        schema_version = imported.get("schemaVersion", current.schema_version)
    else:
        schema_version = imported.get("schemaVersion", current.get("schemaVersion", CURRENT_SCHEMA_VERSION))
    if not isinstance(schema_version, int) or isinstance(schema_version, bool):
        schema_version = CURRENT_SCHEMA_VERSION

    return Snapshot(schema_version=schema_version, **merged)


def _audit_key(row: Mapping) -> str:
    record_id = row.get("id")
    if isinstance(record_id, str) and record_id.strip():
        return f"id:{record_id.strip()}"
    timestamp = row.get("timestamp") if isinstance(row.get("timestamp"), str) else ""
    context_tag = row.get("contextTag") if isinstance(row.get("contextTag"), str) else ""
    return f"sig:{timestamp}|{context_tag}"


def _timestamp_of(row: Mapping) -> str:
    timestamp = row.get("timestamp")
    return timestamp if isinstance(timestamp, str) else ""


@result_boundary
def merge_audit_timeline(current: Any, imported: Any) -> List[Record]:
    """Dedup audit entries, newest first, keeping the most recent 240"""
    if not isinstance(current, (list, tuple)) or not isinstance(imported, (list, tuple)):
        raise RecordValidationError("audit timeline inputs must be arrays")

    timeline: Dict[str, Record] = {}
    for row in [*current, *imported]:
        if not isinstance(row, Mapping):
            continue
        timeline[_audit_key(row)] = dict(row)

    ordered = sorted(timeline.values(), key=_timestamp_of, reverse=True)
    return ordered[:AUDIT_TIMELINE_LIMIT]


@result_boundary
def build_persona_impact_summary(state: Any, persona_name: str) -> Dict[str, int]:
    """Count of records per collection attributed to a persona (case-insensitive)"""
    snapshot = Snapshot.parse(state)
    name = persona_name.strip().lower() if isinstance(persona_name, str) else ""
    if not name:
        raise RecordValidationError("personaName must be a non-empty string")

    summary = {collection: 0 for collection in PERSONA_COLLECTIONS}
    summary["total"] = 0
    for collection in PERSONA_COLLECTIONS:
        count = sum(1 for row in snapshot.collection(collection) if _lower_text(row, "person") == name)
        summary[collection] = count
        summary["total"] += count
    return summary


def _patched_text(patch: Mapping, persona: Mapping, key: str) -> str:
    if isinstance(patch.get(key), str):
        return patch[key]
    return persona[key] if isinstance(persona.get(key), str) else ""


@result_boundary
def rename_persona(state: Any, source_name: str, target_name: str, persona_patch: Any = None) -> Snapshot:
    """Rewrite person on matching rows and rename the persona entry"""
    snapshot = Snapshot.parse(state)
    source = source_name.strip() if isinstance(source_name, str) else ""
    target = target_name.strip() if isinstance(target_name, str) else ""
    if not source or not target:
        raise RecordValidationError("sourcePersonaName and targetPersonaName must be non-empty strings")
    source_lower = source.lower()
    patch = persona_patch if isinstance(persona_patch, Mapping) else {}

    changes: Dict[str, Any] = {}
    for collection in PERSONA_COLLECTIONS:
        changes[COLLECTION_ATTRIBUTES[collection]] = tuple(
            {**row, "person": target} if _lower_text(row, "person") == source_lower else row
            for row in snapshot.collection(collection)
        )

    personas = []
    for persona in snapshot.personas:
        if _lower_text(persona, "name") != source_lower:
            personas.append(persona)
            continue
        personas.append(
            {
                **persona,
                "name": target,
                "note": _patched_text(patch, persona, "note"),
                "emoji": _patched_text(patch, persona, "emoji"),
                "updatedAt": patch["updatedAt"] if isinstance(patch.get("updatedAt"), str) else persona.get("updatedAt"),
            }
        )
    changes["personas"] = tuple(personas)
    return replace(snapshot, **changes)


@result_boundary
def delete_persona(state: Any, source_name: str, delete_mode: str, reassign_name: str = "") -> Snapshot:
    """
    Remove a persona.

    reassign moves matching rows to reassign_name (default "User"); cascade
    deletes them. The persona entry itself is removed in both modes.
    """
    snapshot = Snapshot.parse(state)
    source = source_name.strip() if isinstance(source_name, str) else ""
    if not source:
        raise RecordValidationError("sourcePersonaName must be a non-empty string")
    if delete_mode not in ("reassign", "cascade"):
        raise RecordValidationError("deleteMode must be reassign or cascade", {"deleteMode": delete_mode})
    source_lower = source.lower()
    fallback = reassign_name.strip() if isinstance(reassign_name, str) else ""
    fallback = fallback or "User"

    changes: Dict[str, Any] = {}
    for collection in PERSONA_COLLECTIONS:
        rows = snapshot.collection(collection)
        if delete_mode == "cascade":
            next_rows = tuple(row for row in rows if _lower_text(row, "person") != source_lower)
        else:
            next_rows = tuple(
                {**row, "person": fallback} if _lower_text(row, "person") == source_lower else row
                for row in rows
            )
        changes[COLLECTION_ATTRIBUTES[collection]] = next_rows

    changes["personas"] = tuple(
        persona for persona in snapshot.personas if _lower_text(persona, "name") != source_lower
    )
    return replace(snapshot, **changes)
