"""
Dashboard Task Board

Groups documents into the three dashboard cards (regular reports, visa
renewals, resignations) and classifies each card by the nearest deadline.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Iterable

from residency_docs.contracts import Document, DocumentStatus, DocumentType, Foreigner, TaskCardStatus

# Keys inside Document.data that may hold a deadline, in priority order
DATE_KEYS = ("deadline", "dueDate", "due_date", "dueOn", "scheduledDate", "scheduled_date")

DANGER_DAYS = 3
WARNING_DAYS = 7

RESIGNATION_NOTE_MARKER = "退職予定"
TARGET_DOCUMENT_LABEL = "対象書類"
DEADLINE_LABEL = "期限"
DOCUMENTS_HREF = "/documents"

_DAY_SECONDS = 24 * 60 * 60


@dataclass
class MetaItem:
    label: str
    value: str


@dataclass
class TaskCardSummary:
    id: str
    title: str
    description: str
    status: TaskCardStatus
    count: int
    cta_href: str
    deadline: datetime | None = None
    remaining_days: int | None = None
    meta: list[MetaItem] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "count": self.count,
            "cta_href": self.cta_href,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "remaining_days": self.remaining_days,
            "meta": [{"label": m.label, "value": m.value} for m in self.meta] if self.meta else None,
        }


@dataclass
class DashboardStats:
    submitted: int
    approved: int
    created_this_month: int


def parse_deadline(value: Any) -> datetime | None:
    """
    Interpret a deadline candidate.

    Accepts datetimes, dates, ISO strings and epoch milliseconds. Falsy or
    unparseable values yield None. Naive values are taken as UTC.
    """
    if not value or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def extract_deadline(document: Document) -> datetime | None:
    """First parseable deadline in ``data``, else updated_at, else created_at."""
    data = document.data or {}
    for key in DATE_KEYS:
        if key in data:
            candidate = parse_deadline(data[key])
            if candidate is not None:
                return candidate
    return parse_deadline(document.updated_at or document.created_at)


def _start_of_day(today: date | datetime | None) -> datetime:
    if today is None:
        today = datetime.now(timezone.utc)
    if isinstance(today, datetime):
        if today.tzinfo is not None:
            today = today.astimezone(timezone.utc)
        today = today.date()
    return datetime.combine(today, time.min, tzinfo=timezone.utc)


def remaining_days(deadline: datetime | None, today: date | datetime | None = None) -> int | None:
    """Whole days from today's UTC midnight to ``deadline``, rounded down."""
    if deadline is None:
        return None
    diff = (deadline - _start_of_day(today)).total_seconds()
    return math.floor(diff / _DAY_SECONDS)


def status_for_remaining_days(days: int | None) -> TaskCardStatus:
    if days is None:
        return TaskCardStatus.NONE
    if days < 0:
        return TaskCardStatus.OVERDUE
    if days <= DANGER_DAYS:
        return TaskCardStatus.DANGER
    if days <= WARNING_DAYS:
        return TaskCardStatus.WARNING
    return TaskCardStatus.NORMAL


def format_deadline(deadline: datetime) -> str:
    return deadline.astimezone(timezone.utc).strftime("%Y/%m/%d")


def _sort_key(document: Document) -> float:
    deadline = extract_deadline(document)
    return deadline.timestamp() if deadline else math.inf


def create_summary(
    card_id: str,
    title: str,
    description: str,
    documents: list[Document],
    cta_href: str = DOCUMENTS_HREF,
    today: date | datetime | None = None,
) -> TaskCardSummary:
    if not documents:
        return TaskCardSummary(
            id=card_id,
            title=title,
            description=description,
            status=TaskCardStatus.NONE,
            count=0,
            cta_href=cta_href,
        )

    next_document = sorted(documents, key=_sort_key)[0]
    deadline = extract_deadline(next_document)
    days = remaining_days(deadline, today)

    meta: list[MetaItem] = []
    if next_document.title:
        meta.append(MetaItem(label=TARGET_DOCUMENT_LABEL, value=next_document.title))
    if deadline is not None:
        meta.append(MetaItem(label=DEADLINE_LABEL, value=format_deadline(deadline)))

    return TaskCardSummary(
        id=card_id,
        title=title,
        description=description,
        status=status_for_remaining_days(days),
        count=len(documents),
        cta_href=cta_href,
        deadline=deadline,
        remaining_days=days,
        meta=meta or None,
    )


def _of_types(documents: Iterable[Document], types: tuple[DocumentType, ...]) -> list[Document]:
    return [doc for doc in documents if doc.type in types]


def build_task_summaries(
    documents: list[Document],
    foreigners: list[Foreigner],
    today: date | datetime | None = None,
) -> list[TaskCardSummary]:
    """
    Build the regularReport, visaRenewal and resignation cards, in that order.

    The resignation count falls back to foreigners whose notes mention a
    planned resignation when no resignation reports exist.
    """
    regular_docs = _of_types(documents, (DocumentType.INTERVIEW_REPORT,))
    renewal_docs = _of_types(documents, (DocumentType.PERIOD_EXTENSION, DocumentType.RESIDENCE_STATUS))
    resignation_docs = _of_types(documents, (DocumentType.RESIGNATION_REPORT,))

    resignation_count = len(resignation_docs) or sum(
        1 for f in foreigners if f.notes and RESIGNATION_NOTE_MARKER in f.notes
    )

    regular = create_summary(
        "regularReport", "定期届出", "定期届出の作成・提出状況を確認", regular_docs, today=today
    )
    renewal = create_summary(
        "visaRenewal", "在留期間更新", "在留期間更新の準備状況を確認", renewal_docs, today=today
    )
    resignation = create_summary(
        "resignation", "退職予定者", "退職予定者の手続き・書類の進捗を確認", resignation_docs, today=today
    )

    if resignation_count == 0 and resignation.meta:
        resignation.meta = [m for m in resignation.meta if m.label != TARGET_DOCUMENT_LABEL] or None
    resignation.count = resignation_count

    return [regular, renewal, resignation]


def dashboard_stats(documents: list[Document], today: date | datetime | None = None) -> DashboardStats:
    """Counts shown above the task board."""
    start = _start_of_day(today)
    created_this_month = sum(
        1
        for doc in documents
        if doc.created_at
        and doc.created_at.astimezone(timezone.utc).year == start.year
        and doc.created_at.astimezone(timezone.utc).month == start.month
    )
    return DashboardStats(
        submitted=sum(1 for doc in documents if doc.status == DocumentStatus.SUBMITTED),
        approved=sum(1 for doc in documents if doc.status == DocumentStatus.APPROVED),
        created_this_month=created_this_month,
    )
