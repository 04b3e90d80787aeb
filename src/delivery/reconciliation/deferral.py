"""Deferred courier updates — commands and handler.

DeferCourierUpdate parks a courier update whose application failed.
RecordReconciliationAttempt records the outcome of each retry.
"""

import json

import structlog
from protean import handle
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from delivery.config import get_settings
from delivery.domain import delivery
from delivery.reconciliation.reconciliation import PendingReconciliation, ReconciliationStatus

logger = structlog.get_logger(__name__)


@delivery.command(part_of="PendingReconciliation")
class DeferCourierUpdate:
    """Persist a courier update for a later retry."""

    courier_order_id = String(required=True, max_length=100)
    message_type = String(max_length=50)
    update_json = Text(required=True)  # JSON of the ReconcileCourierUpdate fields
    error = String(max_length=1000)
    source = String(max_length=20, default="webhook")


@delivery.command(part_of="PendingReconciliation")
class RecordReconciliationAttempt:
    """Record whether retrying a parked update succeeded."""

    reconciliation_id = Identifier(required=True)
    succeeded = Boolean(required=True)
    error = String(max_length=1000)


@delivery.command_handler(part_of=PendingReconciliation)
class PendingReconciliationHandler:
    @handle(DeferCourierUpdate)
    def defer_courier_update(self, command):
        pending = PendingReconciliation.defer(
            courier_order_id=command.courier_order_id,
            message_type=command.message_type,
            update=json.loads(command.update_json),
            error=command.error or "",
            source=command.source,
            max_attempts=get_settings().reconciliation_max_attempts,
        )
        current_domain.repository_for(PendingReconciliation).add(pending)
        logger.warning(
            "Courier update deferred for retry",
            reconciliation_id=str(pending.id),
            courier_order_id=command.courier_order_id,
            message_type=command.message_type,
            error=command.error,
        )
        return str(pending.id)

    @handle(RecordReconciliationAttempt)
    def record_attempt(self, command):
        repo = current_domain.repository_for(PendingReconciliation)
        pending = repo.get(command.reconciliation_id)
        if command.succeeded:
            pending.mark_resolved()
            logger.info(
                "Deferred courier update applied",
                reconciliation_id=str(pending.id),
                attempts=pending.attempts,
            )
        else:
            pending.record_failure(command.error or "")
            if ReconciliationStatus(pending.status) == ReconciliationStatus.ABANDONED:
                logger.error(
                    "Deferred courier update abandoned",
                    reconciliation_id=str(pending.id),
                    courier_order_id=pending.courier_order_id,
                    attempts=pending.attempts,
                    error=pending.last_error,
                )
        repo.add(pending)
        return pending.status
