"""
Demo Data

Seed records for the stub backend: one company, three foreign workers, a
few documents and an activity feed. Also the demo login account.
"""

from datetime import date

from residency_docs.contracts import (
    ActivityLog,
    Company,
    Document,
    DocumentStatus,
    DocumentType,
    Foreigner,
    Role,
    User,
)
from residency_docs.contracts.entities import parse_datetime

DEMO_COMPANY_ID = "c1"

DEMO_USERS: list[dict] = [
    {
        "email": "admin@example.com",
        "password": "password123",
        "user": User(
            id="u1",
            email="admin@example.com",
            name="管理者",
            role=Role.ADMIN,
            company_id=DEMO_COMPANY_ID,
        ),
    },
]


def seed_company() -> Company:
    return Company(
        id=DEMO_COMPANY_ID,
        name="サンプル受入機関株式会社",
        address="東京都千代田区丸の内1-1-1",
        representative="山田 太郎",
        phone="03-1234-5678",
        registration_number="1234567890123",
    )


def seed_foreigners() -> list[Foreigner]:
    return [
        Foreigner(
            id="f1",
            company_id=DEMO_COMPANY_ID,
            name="田中 太郎",
            name_kana="たなか たろう",
            nationality="ベトナム",
            birth_date=date(1995, 4, 10),
            passport_number="AB1234567",
            residence_status="特定技能1号",
            residence_period="1年",
            work_category="飲食料品製造業",
            notes="日本語教育: JLPT N3 相当",
            created_at=parse_datetime("2024-01-05"),
        ),
        Foreigner(
            id="f2",
            company_id=DEMO_COMPANY_ID,
            name="佐藤 花子",
            name_kana="さとう はなこ",
            nationality="インドネシア",
            birth_date=date(1998, 12, 1),
            passport_number="CD7654321",
            residence_status="特定技能1号",
            residence_period="1年",
            work_category="外食業",
            created_at=parse_datetime("2024-01-04"),
        ),
        Foreigner(
            id="f3",
            company_id=DEMO_COMPANY_ID,
            name="グエン ティン",
            name_kana="ぐえん てぃん",
            nationality="ベトナム",
            birth_date=date(1997, 7, 21),
            passport_number="EF2468101",
            residence_status="特定技能2号",
            residence_period="2年",
            work_category="介護",
            created_at=parse_datetime("2024-01-03"),
        ),
    ]


def seed_documents() -> list[Document]:
    return [
        Document(
            id="d3",
            type=DocumentType.PERIOD_EXTENSION,
            title="在留期間更新許可申請書",
            status=DocumentStatus.DRAFT,
            foreigner_id="f3",
            created_at=parse_datetime("2024-02-01"),
            updated_at=parse_datetime("2024-02-01"),
        ),
        Document(
            id="d1",
            type=DocumentType.RESIDENCE_STATUS,
            title="在留資格認定証明書交付申請書",
            status=DocumentStatus.SUBMITTED,
            foreigner_id="f1",
            created_at=parse_datetime("2024-01-12"),
            updated_at=parse_datetime("2024-01-15"),
            data={"name": "田中 太郎", "nationality": "ベトナム", "residenceStatus": "特定技能1号"},
        ),
        Document(
            id="d2",
            type=DocumentType.INTERVIEW_REPORT,
            title="定期面談報告書",
            status=DocumentStatus.APPROVED,
            foreigner_id="f2",
            created_at=parse_datetime("2024-01-08"),
            updated_at=parse_datetime("2024-01-10"),
            data={"interviewer": "管理者", "summary": "業務状況を確認し、特記事項なし。"},
        ),
    ]


def seed_activities() -> list[ActivityLog]:
    return [
        ActivityLog(
            id="a3",
            message="グエン ティンさんの在留期間更新を下書き保存しました。",
            created_at=parse_datetime("2024-02-01T09:10:00+09:00"),
        ),
        ActivityLog(
            id="a1",
            message="田中 太郎さんの在留資格認定証明書交付申請を提出しました。",
            created_at=parse_datetime("2024-01-15T10:30:00+09:00"),
        ),
        ActivityLog(
            id="a2",
            message="佐藤 花子さんの定期面談報告書を承認しました。",
            created_at=parse_datetime("2024-01-12T14:20:00+09:00"),
        ),
    ]
