"""
Domain Entities

Provider-agnostic view models used by the store, the dashboard and the CLI.
Backends map their own row formats into these.
"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from typing import Any

from residency_docs.contracts.enums import DocumentStatus, DocumentType, Role


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO timestamp (or date) into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class User:
    """Authenticated identity resolved from the profiles table."""

    id: str
    email: str
    name: str
    role: Role
    company_id: str

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["role"] = self.role.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        return cls(
            id=data["id"],
            email=data["email"],
            name=data["name"],
            role=Role(data.get("role", Role.OPERATOR.value)),
            company_id=data["company_id"],
        )


@dataclass
class AuthSession:
    """Bearer-token session issued by the backend."""

    access_token: str
    refresh_token: str
    expires_at: datetime
    user_id: str
    email: str

    def seconds_until_expiry(self, now: datetime | None = None) -> float:
        now = now or datetime.now(timezone.utc)
        return (self.expires_at - now).total_seconds()

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.seconds_until_expiry(now) <= 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at.isoformat(),
            "user_id": self.user_id,
            "email": self.email,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuthSession":
        return cls(
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            expires_at=parse_datetime(data["expires_at"]),
            user_id=data["user_id"],
            email=data.get("email", ""),
        )


@dataclass
class Company:
    """The accepting organization. One per tenant."""

    id: str
    name: str
    address: str
    representative: str
    phone: str
    registration_number: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["created_at"] = _iso(self.created_at)
        data["updated_at"] = _iso(self.updated_at)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Company":
        return cls(
            id=data["id"],
            name=data["name"],
            address=data.get("address", ""),
            representative=data.get("representative", ""),
            phone=data.get("phone", ""),
            registration_number=data.get("registration_number", ""),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
        )


@dataclass
class ForeignerDraft:
    """Fields supplied when registering a new foreign worker."""

    company_id: str
    name: str
    name_kana: str
    nationality: str
    birth_date: date
    passport_number: str
    residence_status: str
    residence_period: str
    work_category: str
    notes: str | None = None
    synced_at: datetime | None = None


@dataclass
class Foreigner:
    """
    A registered foreign worker.

    ``synced_at`` marks the last successful remote sync of this record.
    """

    id: str
    company_id: str
    name: str
    name_kana: str
    nationality: str
    birth_date: date
    passport_number: str
    residence_status: str
    residence_period: str
    work_category: str
    notes: str | None = None
    synced_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["birth_date"] = _iso(self.birth_date)
        data["synced_at"] = _iso(self.synced_at)
        data["created_at"] = _iso(self.created_at)
        data["updated_at"] = _iso(self.updated_at)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Foreigner":
        return cls(
            id=data["id"],
            company_id=data["company_id"],
            name=data["name"],
            name_kana=data.get("name_kana", ""),
            nationality=data["nationality"],
            birth_date=parse_date(data["birth_date"]),
            passport_number=data.get("passport_number", ""),
            residence_status=data["residence_status"],
            residence_period=data["residence_period"],
            work_category=data.get("work_category", ""),
            notes=data.get("notes") or None,
            synced_at=parse_datetime(data.get("synced_at")),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
        )


@dataclass
class DocumentDraft:
    """Fields supplied when creating a document."""

    type: DocumentType
    title: str
    foreigner_id: str
    status: DocumentStatus = DocumentStatus.DRAFT
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class Document:
    """
    A typed immigration form instance.

    ``data`` carries the type-specific form fields as free-form JSON.
    """

    id: str
    type: DocumentType
    title: str
    status: DocumentStatus
    foreigner_id: str
    created_at: datetime
    updated_at: datetime
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "status": self.status.value,
            "foreigner_id": self.foreigner_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Document":
        return cls(
            id=data["id"],
            type=DocumentType(data["type"]),
            title=data["title"],
            status=DocumentStatus(data["status"]),
            foreigner_id=data["foreigner_id"],
            created_at=parse_datetime(data["created_at"]),
            updated_at=parse_datetime(data["updated_at"]),
            data=data.get("data") or {},
        )


@dataclass
class ActivityLog:
    """One entry of the activity feed."""

    id: str
    message: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "message": self.message, "created_at": _iso(self.created_at)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActivityLog":
        return cls(
            id=data["id"],
            message=data["message"],
            created_at=parse_datetime(data["created_at"]),
        )
