"""
Supabase Row Models

Pydantic models for the rows returned by PostgREST. Validation happens at
the boundary so mappers only deal with typed values.
"""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _Row(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CompanyRow(_Row):
    """Row of public.companies."""

    id: str
    name: str
    address: str = ""
    representative: str = ""
    phone: str = ""
    registration_number: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ForeignerRow(_Row):
    """Row of public.foreigners."""

    id: str
    company_id: str
    name: str
    name_kana: str = ""
    nationality: str
    birth_date: date
    passport_number: str = ""
    residence_status: str
    residence_period: str
    work_category: str = ""
    notes: str | None = None
    synced_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class DocumentRow(_Row):
    """Row of public.documents. ``data`` holds the type-specific form fields."""

    id: str
    type: str
    title: str
    status: str
    foreigner_id: str
    data: dict[str, Any] | None = Field(default=None)
    created_at: datetime
    updated_at: datetime


class ActivityLogRow(_Row):
    """Row of public.activity_logs."""

    id: str
    company_id: str | None = None
    message: str
    created_at: datetime


class ProfileRow(_Row):
    """Row of public.profiles. ``id`` equals the auth user id."""

    id: str
    email: str
    name: str
    role: str
    company_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
