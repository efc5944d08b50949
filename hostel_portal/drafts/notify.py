"""Notification sink for draft events."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    info = "info"
    success = "success"


class Notifier(Protocol):
    def notify(self, severity: Severity, message: str, description: Optional[str] = None) -> None:
        ...


class LogNotifier:
    """Writes notifications to the log instead of a UI."""

    def notify(self, severity: Severity, message: str, description: Optional[str] = None) -> None:
        if description:
            logger.info("[%s] %s: %s", severity.value, message, description)
        else:
            logger.info("[%s] %s", severity.value, message)
