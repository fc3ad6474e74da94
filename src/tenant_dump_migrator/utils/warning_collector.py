"""Collection of non-fatal migration warnings.

Warnings are gathered across both passes and reported once at the end of the
run. The same condition usually fires for every section of a schema, so the
report is de-duplicated while keeping first-seen order.

Usage:
    >>> warnings = WarningCollector()
    >>> warnings.warn("Skipping schema tenant_x", namespace="tenant_x")
    >>> warnings.warn("Skipping schema tenant_x", namespace="tenant_x")
    >>> warnings.unique()
    ['Skipping schema tenant_x']
"""

from typing import Any, Dict, List

import structlog

logger = structlog.get_logger(__name__)


class WarningCollector:
    """Accumulate free-text warnings with occurrence counts."""

    def __init__(self) -> None:
        self.messages: List[str] = []
        self._counts: Dict[str, int] = {}

    def warn(self, message: str, **context: Any) -> None:
        """Record a warning. Only the first occurrence of a message is logged."""
        self.messages.append(message)
        if message not in self._counts:
            self._counts[message] = 0
            logger.warning("migration.warning", message=message, **context)
        self._counts[message] += 1

    def unique(self) -> List[str]:
        """Distinct warnings in first-seen order."""
        return list(self._counts)

    def count(self, message: str) -> int:
        return self._counts.get(message, 0)

    def __len__(self) -> int:
        return len(self.messages)

    def __bool__(self) -> bool:
        return bool(self.messages)
