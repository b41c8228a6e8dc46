"""Dashboard summaries."""

from residency_docs.dashboard.task_board import (
    DashboardStats,
    MetaItem,
    TaskCardSummary,
    build_task_summaries,
    dashboard_stats,
    extract_deadline,
    remaining_days,
)

__all__ = [
    "DashboardStats",
    "MetaItem",
    "TaskCardSummary",
    "build_task_summaries",
    "dashboard_stats",
    "extract_deadline",
    "remaining_days",
]
