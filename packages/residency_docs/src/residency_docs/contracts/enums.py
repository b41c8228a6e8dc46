"""Enumerations shared across the residency document domain."""

from enum import Enum


class Role(str, Enum):
    """User roles inside an accepting company."""

    ADMIN = "admin"
    OPERATOR = "operator"


class DocumentType(str, Enum):
    """Kinds of immigration forms handled by the application."""

    RESIDENCE_STATUS = "residence_status"
    PERIOD_EXTENSION = "period_extension"
    STATUS_CHANGE = "status_change"
    INTERVIEW_REPORT = "interview_report"
    RESIGNATION_REPORT = "resignation_report"


class DocumentStatus(str, Enum):
    """
    Document lifecycle status.

    The usual order is draft -> submitted -> approved/rejected, but nothing
    enforces it.
    """

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class NetworkStatus(str, Enum):
    """Connectivity as observed from request outcomes."""

    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


class AuthEvent(str, Enum):
    """Auth state change events emitted by a backend."""

    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


class TaskCardStatus(str, Enum):
    """Urgency of a dashboard task card."""

    OVERDUE = "overdue"
    DANGER = "danger"
    WARNING = "warning"
    NORMAL = "normal"
    NONE = "none"
