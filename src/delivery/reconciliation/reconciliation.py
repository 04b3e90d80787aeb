"""PendingReconciliation aggregate — a courier update awaiting a retry.

Webhooks are acknowledged before they are applied. When applying one
fails, the raw update is persisted here so it can be retried instead of
lost.

State Machine:
    PENDING → RESOLVED
    PENDING → ABANDONED (attempts exhausted)
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Integer, String, Text

from delivery.domain import delivery
from delivery.reconciliation.events import (
    ReconciliationAbandoned,
    ReconciliationDeferred,
    ReconciliationResolved,
)


class ReconciliationStatus(Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    ABANDONED = "abandoned"


@delivery.aggregate
class PendingReconciliation:
    courier_order_id = String(required=True, max_length=100)
    message_type = String(max_length=50)
    update_json = Text(required=True)  # JSON of the update fields
    source = String(max_length=20, default="webhook")
    status = String(choices=ReconciliationStatus, default=ReconciliationStatus.PENDING.value)
    attempts = Integer(default=1, min_value=0)
    max_attempts = Integer(default=5, min_value=1)
    last_error = String(max_length=1000)
    created_at = DateTime()
    last_attempt_at = DateTime()
    resolved_at = DateTime()

    @classmethod
    def defer(
        cls,
        courier_order_id: str,
        message_type: str | None,
        update: dict,
        error: str,
        source: str = "webhook",
        max_attempts: int = 5,
    ):
        """Park an update whose first application attempt failed."""
        now = datetime.now(UTC)
        pending = cls(
            courier_order_id=courier_order_id,
            message_type=message_type,
            update_json=json.dumps(update),
            source=source,
            attempts=1,
            max_attempts=max_attempts,
            last_error=error[:1000] if error else None,
            created_at=now,
            last_attempt_at=now,
        )
        pending.raise_(
            ReconciliationDeferred(
                reconciliation_id=str(pending.id),
                courier_order_id=courier_order_id,
                message_type=message_type,
                attempts=1,
                last_error=pending.last_error,
                deferred_at=now,
            )
        )
        return pending

    @property
    def update(self) -> dict:
        return json.loads(self.update_json)

    @property
    def is_pending(self) -> bool:
        return ReconciliationStatus(self.status) == ReconciliationStatus.PENDING

    def _assert_pending(self):
        if not self.is_pending:
            raise ValidationError({"status": [f"Reconciliation is already {self.status}"]})

    def record_failure(self, error: str) -> None:
        self._assert_pending()
        now = datetime.now(UTC)
        self.attempts = self.attempts + 1
        self.last_error = error[:1000] if error else None
        self.last_attempt_at = now

        if self.attempts >= self.max_attempts:
            self.status = ReconciliationStatus.ABANDONED.value
            self.raise_(
                ReconciliationAbandoned(
                    reconciliation_id=str(self.id),
                    courier_order_id=self.courier_order_id,
                    attempts=self.attempts,
                    last_error=self.last_error,
                    abandoned_at=now,
                )
            )

    def mark_resolved(self) -> None:
        self._assert_pending()
        now = datetime.now(UTC)
        self.attempts = self.attempts + 1
        self.status = ReconciliationStatus.RESOLVED.value
        self.last_attempt_at = now
        self.resolved_at = now
        self.raise_(
            ReconciliationResolved(
                reconciliation_id=str(self.id),
                courier_order_id=self.courier_order_id,
                attempts=self.attempts,
                resolved_at=now,
            )
        )
