"""
User Notifications

Toast-style messages raised by the executor and the session manager.
The CLI prints them; library users get them in the log by default.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from residency_docs.http.errors import ApiError, format_validation_errors, to_api_error

logger = logging.getLogger(__name__)

DEFAULT_ERROR_TITLE = "エラーが発生しました"


@dataclass
class Toast:
    title: str
    description: str
    variant: str = "default"  # default, destructive


class Notifier(ABC):
    """Destination for toasts."""

    @abstractmethod
    def notify(self, toast: Toast) -> None:
        ...


class LoggingNotifier(Notifier):
    """Writes toasts to the log."""

    def notify(self, toast: Toast) -> None:
        level = logging.WARNING if toast.variant == "destructive" else logging.INFO
        logger.log(level, f"{toast.title}: {toast.description}", extra={"variant": toast.variant})


class CollectingNotifier(Notifier):
    """Keeps every toast in memory."""

    def __init__(self) -> None:
        self.toasts: list[Toast] = []

    def notify(self, toast: Toast) -> None:
        self.toasts.append(toast)


def notify_api_error(
    error: Any,
    notifier: Notifier,
    title: str = DEFAULT_ERROR_TITLE,
    fallback_message: str | None = None,
    variant: str = "destructive",
    include_field_errors: bool = True,
) -> ApiError:
    """
    Normalize ``error`` and show it as a toast.

    Field-level validation errors are appended to the description, one per
    line. Returns the normalized error so callers can keep it.
    """
    api_error = to_api_error(error, fallback_message) if fallback_message else to_api_error(error)
    field_messages = format_validation_errors(api_error.errors) if include_field_errors else None
    description = f"{api_error.message}\n{field_messages}" if field_messages else api_error.message
    notifier.notify(Toast(title=title, description=description, variant=variant))
    return api_error
