"""Display labels and selectable options for the residency forms."""

from residency_docs.contracts.enums import DocumentStatus, DocumentType

DOCUMENT_TYPE_LABELS: dict[DocumentType, str] = {
    DocumentType.RESIDENCE_STATUS: "在留資格認定証明書",
    DocumentType.PERIOD_EXTENSION: "在留期間更新許可申請",
    DocumentType.STATUS_CHANGE: "在留資格変更許可申請",
    DocumentType.INTERVIEW_REPORT: "定期面談報告書",
    DocumentType.RESIGNATION_REPORT: "退職等随時報告書",
}

DOCUMENT_STATUS_LABELS: dict[DocumentStatus, str] = {
    DocumentStatus.DRAFT: "下書き",
    DocumentStatus.SUBMITTED: "申請中",
    DocumentStatus.APPROVED: "承認済み",
    DocumentStatus.REJECTED: "差戻し",
}

NATIONALITY_OPTIONS = ["ベトナム", "インドネシア", "フィリピン", "ミャンマー", "タイ", "中国"]

RESIDENCE_STATUS_OPTIONS = ["特定技能1号", "特定技能2号"]

RESIDENCE_PERIOD_OPTIONS = ["6ヶ月", "1年", "1年6ヶ月", "2年"]

WORK_CATEGORY_OPTIONS = ["外食業", "飲食料品製造業", "介護", "農業", "建設業"]

# Activity feed entries kept client-side
ACTIVITY_LOG_LIMIT = 20

# Storage keys for the persisted JSON blobs
APP_STATE_STORAGE_KEY = "ssw:app-state"
SESSION_STORAGE_KEY = "session:user"
