"""Notifier port — outbound user notifications (push/in-app/email).

Delivery is fire-and-forget from the orchestrator's point of view: a
failed notification is logged by the caller and never rolls back the
transition that triggered it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class NotificationPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class Notification:
    user_id: str
    type: str
    title: str
    message: str
    priority: str = NotificationPriority.MEDIUM.value
    action_url: str | None = None


class NotifierPort(ABC):
    """Abstract interface for notification adapters."""

    @abstractmethod
    def notify(self, notification: Notification) -> None:
        """Send a notification. Raises on failure; callers decide what to do."""
        ...
