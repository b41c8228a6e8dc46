"""
Row <-> Entity Mappers

Rows come from PostgREST as JSON objects; entities are what the rest of the
application works with. Update mappers emit only the fields that were
supplied, so a partial update never nulls columns it did not mention.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Mapping

from residency_docs.backends.supabase.rows import (
    ActivityLogRow,
    CompanyRow,
    DocumentRow,
    ForeignerRow,
    ProfileRow,
)
from residency_docs.contracts import (
    ActivityLog,
    Company,
    Document,
    DocumentDraft,
    DocumentStatus,
    DocumentType,
    Foreigner,
    ForeignerDraft,
    Role,
    User,
)

COMPANY_UPDATABLE_FIELDS = ("name", "address", "representative", "phone", "registration_number")

FOREIGNER_UPDATABLE_FIELDS = (
    "company_id",
    "name",
    "name_kana",
    "nationality",
    "birth_date",
    "passport_number",
    "residence_status",
    "residence_period",
    "work_category",
    "notes",
    "synced_at",
)

DOCUMENT_UPDATABLE_FIELDS = ("type", "title", "status", "foreigner_id", "data")


def _utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_wire(value: Any) -> Any:
    """Convert a Python value into its JSON column representation."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _pick(updates: Mapping[str, Any], fields: tuple[str, ...]) -> dict[str, Any]:
    return {name: to_wire(updates[name]) for name in fields if name in updates}


# =============================================================================
# Companies
# =============================================================================


def map_company_row(row: CompanyRow | Mapping[str, Any]) -> Company:
    if not isinstance(row, CompanyRow):
        row = CompanyRow.model_validate(row)
    return Company(
        id=row.id,
        name=row.name,
        address=row.address,
        representative=row.representative,
        phone=row.phone,
        registration_number=row.registration_number,
        created_at=_utc(row.created_at),
        updated_at=_utc(row.updated_at),
    )


def map_company_update(updates: Mapping[str, Any]) -> dict[str, Any]:
    return _pick(updates, COMPANY_UPDATABLE_FIELDS)


# =============================================================================
# Foreigners
# =============================================================================


def map_foreigner_row(row: ForeignerRow | Mapping[str, Any]) -> Foreigner:
    if not isinstance(row, ForeignerRow):
        row = ForeignerRow.model_validate(row)
    return Foreigner(
        id=row.id,
        company_id=row.company_id,
        name=row.name,
        name_kana=row.name_kana,
        nationality=row.nationality,
        birth_date=row.birth_date,
        passport_number=row.passport_number,
        residence_status=row.residence_status,
        residence_period=row.residence_period,
        work_category=row.work_category,
        notes=row.notes or None,
        synced_at=_utc(row.synced_at),
        created_at=_utc(row.created_at),
        updated_at=_utc(row.updated_at),
    )


def map_foreigner_insert(draft: ForeignerDraft) -> dict[str, Any]:
    return {
        "company_id": draft.company_id,
        "name": draft.name,
        "name_kana": draft.name_kana,
        "nationality": draft.nationality,
        "birth_date": to_wire(draft.birth_date),
        "passport_number": draft.passport_number,
        "residence_status": draft.residence_status,
        "residence_period": draft.residence_period,
        "work_category": draft.work_category,
        "notes": draft.notes,
        "synced_at": to_wire(draft.synced_at),
    }


def map_foreigner_update(updates: Mapping[str, Any]) -> dict[str, Any]:
    """
    Build the PATCH body for a foreigner.

    Only keys present in ``updates`` are emitted; an explicit None for
    ``notes`` or ``synced_at`` clears the column.
    """
    return _pick(updates, FOREIGNER_UPDATABLE_FIELDS)


# =============================================================================
# Documents
# =============================================================================


def map_document_row(row: DocumentRow | Mapping[str, Any]) -> Document:
    if not isinstance(row, DocumentRow):
        row = DocumentRow.model_validate(row)
    return Document(
        id=row.id,
        type=DocumentType(row.type),
        title=row.title,
        status=DocumentStatus(row.status),
        foreigner_id=row.foreigner_id,
        data=row.data or {},
        created_at=_utc(row.created_at),
        updated_at=_utc(row.updated_at),
    )


def map_document_insert(draft: DocumentDraft) -> dict[str, Any]:
    return {
        "type": to_wire(draft.type),
        "title": draft.title,
        "status": to_wire(draft.status),
        "foreigner_id": draft.foreigner_id,
        "data": draft.data or {},
    }


def map_document_update(updates: Mapping[str, Any]) -> dict[str, Any]:
    payload = _pick(updates, DOCUMENT_UPDATABLE_FIELDS)
    if "data" in payload and payload["data"] is None:
        payload["data"] = {}
    return payload


# =============================================================================
# Activity logs
# =============================================================================


def map_activity_log_row(row: ActivityLogRow | Mapping[str, Any]) -> ActivityLog:
    if not isinstance(row, ActivityLogRow):
        row = ActivityLogRow.model_validate(row)
    return ActivityLog(id=row.id, message=row.message, created_at=_utc(row.created_at))


def map_activity_log_insert(message: str, company_id: str) -> dict[str, Any]:
    return {"message": message, "company_id": company_id}


# =============================================================================
# Profiles
# =============================================================================


def map_profile_row(row: ProfileRow | Mapping[str, Any]) -> User:
    if not isinstance(row, ProfileRow):
        row = ProfileRow.model_validate(row)
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        role=Role(row.role),
        company_id=row.company_id,
    )
