"""Fake notifier — in-memory outbox for testing and development."""

from delivery.notifier.port import Notification, NotifierPort


class FakeNotifier(NotifierPort):
    """Records every notification; can be configured to fail."""

    def __init__(self) -> None:
        self.sent: list[Notification] = []
        self.should_fail = False
        self.failure_reason = "Notification service unavailable"

    def configure(self, should_fail: bool = False, failure_reason: str = "Notification service unavailable") -> None:
        self.should_fail = should_fail
        self.failure_reason = failure_reason

    def notify(self, notification: Notification) -> None:
        if self.should_fail:
            raise RuntimeError(self.failure_reason)
        self.sent.append(notification)

    def sent_to(self, user_id: str) -> list[Notification]:
        return [n for n in self.sent if n.user_id == user_id]

    def reset(self) -> None:
        self.sent.clear()
