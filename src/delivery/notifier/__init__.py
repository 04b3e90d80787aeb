"""Notifier factory.

Provides get_notifier() / set_notifier() / reset_notifier(). The fake
in-memory notifier is the only built-in adapter; the platform's
notification service plugs in through set_notifier().
"""

from delivery.config import get_settings
from delivery.notifier.port import NotifierPort

_current_notifier: NotifierPort | None = None


def get_notifier() -> NotifierPort:
    """Return the current notifier. Defaults to FakeNotifier."""
    global _current_notifier
    if _current_notifier is None:
        adapter = get_settings().notifier_adapter
        if adapter != "fake":
            raise ValueError(f"Unknown notifier adapter: {adapter}")
        from delivery.notifier.fake_adapter import FakeNotifier

        _current_notifier = FakeNotifier()
    return _current_notifier


def set_notifier(notifier: NotifierPort) -> None:
    """Override the active notifier (useful for tests)."""
    global _current_notifier
    _current_notifier = notifier


def reset_notifier() -> None:
    """Reset to default notifier."""
    global _current_notifier
    _current_notifier = None
