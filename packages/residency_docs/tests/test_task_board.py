"""
Tests for dashboard task bucketing.
"""

from datetime import date, datetime, timezone

import pytest

from residency_docs.backends.stub.seed import seed_foreigners
from residency_docs.contracts import Document, DocumentStatus, DocumentType, TaskCardStatus
from residency_docs.dashboard.task_board import (
    build_task_summaries,
    dashboard_stats,
    extract_deadline,
    parse_deadline,
    remaining_days,
    status_for_remaining_days,
)

TODAY = date(2024, 3, 10)
CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)


def doc(doc_id, doc_type, data=None, title="書類", status=DocumentStatus.DRAFT, created_at=CREATED):
    return Document(
        id=doc_id,
        type=doc_type,
        title=title,
        status=status,
        foreigner_id="f1",
        created_at=created_at,
        updated_at=created_at,
        data=data or {},
    )


class TestDeadlineExtraction:
    """Tests for locating a document's deadline."""

    def test_first_matching_key_wins(self):
        document = doc("d", DocumentType.INTERVIEW_REPORT, {"dueDate": "2024-03-20", "deadline": "2024-03-12"})
        assert extract_deadline(document) == datetime(2024, 3, 12, tzinfo=timezone.utc)

    def test_unparseable_key_falls_through(self):
        document = doc("d", DocumentType.INTERVIEW_REPORT, {"deadline": "soon", "scheduled_date": "2024-04-01"})
        assert extract_deadline(document) == datetime(2024, 4, 1, tzinfo=timezone.utc)

    def test_epoch_milliseconds(self):
        millis = int(datetime(2024, 3, 15, tzinfo=timezone.utc).timestamp() * 1000)
        document = doc("d", DocumentType.INTERVIEW_REPORT, {"dueOn": millis})
        assert extract_deadline(document) == datetime(2024, 3, 15, tzinfo=timezone.utc)

    def test_falls_back_to_updated_at(self):
        document = doc("d", DocumentType.INTERVIEW_REPORT)
        assert extract_deadline(document) == CREATED

    def test_parse_deadline_rejects_falsy(self):
        assert parse_deadline(None) is None
        assert parse_deadline("") is None
        assert parse_deadline(0) is None


class TestRemainingDays:
    @pytest.mark.parametrize(
        "deadline, expected",
        [
            (datetime(2024, 3, 9, tzinfo=timezone.utc), -1),
            (datetime(2024, 3, 10, tzinfo=timezone.utc), 0),
            (datetime(2024, 3, 10, 23, 0, tzinfo=timezone.utc), 0),
            (datetime(2024, 3, 13, tzinfo=timezone.utc), 3),
            (datetime(2024, 3, 17, tzinfo=timezone.utc), 7),
            (datetime(2024, 3, 18, tzinfo=timezone.utc), 8),
        ],
    )
    def test_days_from_utc_midnight(self, deadline, expected):
        assert remaining_days(deadline, TODAY) == expected

    def test_datetime_today_uses_its_date(self):
        now = datetime(2024, 3, 10, 18, 30, tzinfo=timezone.utc)
        assert remaining_days(datetime(2024, 3, 11, tzinfo=timezone.utc), now) == 1

    def test_none(self):
        assert remaining_days(None, TODAY) is None

    @pytest.mark.parametrize(
        "days, status",
        [
            (None, TaskCardStatus.NONE),
            (-1, TaskCardStatus.OVERDUE),
            (0, TaskCardStatus.DANGER),
            (3, TaskCardStatus.DANGER),
            (4, TaskCardStatus.WARNING),
            (7, TaskCardStatus.WARNING),
            (8, TaskCardStatus.NORMAL),
        ],
    )
    def test_thresholds(self, days, status):
        assert status_for_remaining_days(days) == status


class TestBuildTaskSummaries:
    """Tests for the three dashboard cards."""

    def test_card_order_and_buckets(self):
        documents = [
            doc("r1", DocumentType.INTERVIEW_REPORT, {"deadline": "2024-03-12"}, title="面談A"),
            doc("v1", DocumentType.PERIOD_EXTENSION, {"deadline": "2024-03-30"}, title="更新A"),
            doc("v2", DocumentType.RESIDENCE_STATUS, {"deadline": "2024-03-15"}, title="認定B"),
        ]

        regular, renewal, resignation = build_task_summaries(documents, [], today=TODAY)

        assert [regular.id, renewal.id, resignation.id] == ["regularReport", "visaRenewal", "resignation"]

        assert regular.status == TaskCardStatus.DANGER
        assert regular.remaining_days == 2
        assert regular.count == 1

        assert renewal.count == 2
        assert renewal.status == TaskCardStatus.WARNING
        assert renewal.remaining_days == 5
        assert [(m.label, m.value) for m in renewal.meta] == [("対象書類", "認定B"), ("期限", "2024/03/15")]
        assert renewal.cta_href == "/documents"

        assert resignation.status == TaskCardStatus.NONE
        assert resignation.count == 0
        assert resignation.meta is None

    @pytest.mark.parametrize(
        "due_date, status",
        [
            ("2024-03-12", TaskCardStatus.DANGER),
            ("2024-03-20", TaskCardStatus.NORMAL),
            ("2024-03-09", TaskCardStatus.OVERDUE),
        ],
    )
    def test_due_date_field(self, due_date, status):
        documents = [doc("r1", DocumentType.INTERVIEW_REPORT, {"dueDate": due_date})]
        assert build_task_summaries(documents, [], today=TODAY)[0].status == status

    def test_undated_documents_sort_last(self):
        undated = doc("r1", DocumentType.INTERVIEW_REPORT, title="日付なし")
        undated.updated_at = None
        undated.created_at = None
        dated = doc("r2", DocumentType.INTERVIEW_REPORT, {"deadline": "2024-04-30"}, title="日付あり")

        regular = build_task_summaries([undated, dated], [], today=TODAY)[0]

        assert regular.meta[0].value == "日付あり"
        assert regular.count == 2

    def test_overdue(self):
        documents = [doc("r1", DocumentType.INTERVIEW_REPORT, {"deadline": "2024-03-01"})]
        regular = build_task_summaries(documents, [], today=TODAY)[0]
        assert regular.status == TaskCardStatus.OVERDUE
        assert regular.remaining_days == -9

    def test_resignation_count_falls_back_to_notes(self):
        foreigners = seed_foreigners()
        foreigners[1].notes = "3月末 退職予定"

        resignation = build_task_summaries([], foreigners, today=TODAY)[2]

        assert resignation.count == 1
        assert resignation.status == TaskCardStatus.NONE

    def test_resignation_documents_counted(self):
        documents = [
            doc("x1", DocumentType.RESIGNATION_REPORT, {"deadline": "2024-03-20"}, title="退職A"),
            doc("x2", DocumentType.RESIGNATION_REPORT, {"deadline": "2024-03-25"}, title="退職B"),
        ]
        resignation = build_task_summaries(documents, [], today=TODAY)[2]

        assert resignation.count == 2
        assert resignation.status == TaskCardStatus.NORMAL
        assert resignation.meta[0].value == "退職A"

    def test_to_dict(self):
        documents = [doc("r1", DocumentType.INTERVIEW_REPORT, {"deadline": "2024-03-12"}, title="面談A")]
        data = build_task_summaries(documents, [], today=TODAY)[0].to_dict()
        assert data["status"] == "danger"
        assert data["meta"][1] == {"label": "期限", "value": "2024/03/12"}


class TestDashboardStats:
    def test_counts(self):
        documents = [
            doc("a", DocumentType.INTERVIEW_REPORT, status=DocumentStatus.SUBMITTED),
            doc("b", DocumentType.INTERVIEW_REPORT, status=DocumentStatus.SUBMITTED),
            doc("c", DocumentType.INTERVIEW_REPORT, status=DocumentStatus.APPROVED),
            doc(
                "d",
                DocumentType.INTERVIEW_REPORT,
                created_at=datetime(2024, 3, 2, tzinfo=timezone.utc),
            ),
        ]

        stats = dashboard_stats(documents, today=TODAY)

        assert stats.submitted == 2
        assert stats.approved == 1
        assert stats.created_this_month == 1
