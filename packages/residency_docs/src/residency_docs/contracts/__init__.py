"""
Residency Document Contracts

Entities and enumerations shared by backends, the store and the CLI.
"""

from residency_docs.contracts.entities import (
    ActivityLog,
    AuthSession,
    Company,
    Document,
    DocumentDraft,
    Foreigner,
    ForeignerDraft,
    User,
)
from residency_docs.contracts.enums import (
    AuthEvent,
    DocumentStatus,
    DocumentType,
    NetworkStatus,
    Role,
    TaskCardStatus,
)

__all__ = [
    "ActivityLog",
    "AuthSession",
    "Company",
    "Document",
    "DocumentDraft",
    "Foreigner",
    "ForeignerDraft",
    "User",
    "AuthEvent",
    "DocumentStatus",
    "DocumentType",
    "NetworkStatus",
    "Role",
    "TaskCardStatus",
]
