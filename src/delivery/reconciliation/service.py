"""Applying courier updates, with persistence and retry on failure.

Every webhook is acknowledged before it is applied. If applying it fails,
the update is parked as a PendingReconciliation and retried later from
that persisted copy.
"""

import json

import structlog
from protean.utils.globals import current_domain

from delivery.delivery.courier_updates import ReconcileCourierUpdate, RefreshCourierStatus
from delivery.delivery.delivery import Delivery
from delivery.locks import process_serialized
from delivery.reconciliation.deferral import DeferCourierUpdate, RecordReconciliationAttempt
from delivery.reconciliation.reconciliation import PendingReconciliation, ReconciliationStatus

logger = structlog.get_logger(__name__)

UPDATE_FIELDS = (
    "courier_order_id",
    "message_type",
    "courier_status",
    "driver_id",
    "share_link",
    "amount",
    "currency",
    "source",
)


def lock_key_for_courier_order(courier_order_id: str) -> str:
    """Deliveries are locked by id; fall back to the courier id when unlinked."""
    dlv = current_domain.repository_for(Delivery).find_by_courier_order_id(courier_order_id)
    return str(dlv.id) if dlv is not None else f"courier:{courier_order_id}"


def apply_courier_update(update: dict) -> str:
    """Apply one update under its delivery's lock. Raises on failure."""
    fields = {k: v for k, v in update.items() if k in UPDATE_FIELDS and v is not None}
    key = lock_key_for_courier_order(fields["courier_order_id"])
    return process_serialized(key, ReconcileCourierUpdate(**fields))


def reconcile_or_defer(update: dict) -> str | None:
    """Apply an update; park it for retry when that fails.

    Returns the reconciliation outcome, or None when the update was deferred.
    """
    try:
        return apply_courier_update(update)
    except Exception as exc:
        logger.error(
            "Courier update failed",
            courier_order_id=update.get("courier_order_id"),
            message_type=update.get("message_type"),
            error=str(exc),
        )
        current_domain.process(
            DeferCourierUpdate(
                courier_order_id=update["courier_order_id"],
                message_type=update.get("message_type"),
                update_json=json.dumps(update),
                error=str(exc),
                source=update.get("source") or "webhook",
            ),
            asynchronous=False,
        )
        return None


def retry_pending_reconciliations(limit: int = 50) -> dict:
    """Retry parked courier updates, oldest first."""
    repo = current_domain.repository_for(PendingReconciliation)
    pending = repo._dao.query.filter(status=ReconciliationStatus.PENDING.value).all().items
    pending = sorted(pending, key=lambda p: p.created_at)[:limit]

    summary = {"attempted": 0, "resolved": 0, "failed": 0, "abandoned": 0}
    for record in pending:
        summary["attempted"] += 1
        try:
            apply_courier_update(record.update)
        except Exception as exc:
            status = current_domain.process(
                RecordReconciliationAttempt(
                    reconciliation_id=str(record.id),
                    succeeded=False,
                    error=str(exc),
                ),
                asynchronous=False,
            )
            summary["abandoned" if status == ReconciliationStatus.ABANDONED.value else "failed"] += 1
            continue

        current_domain.process(
            RecordReconciliationAttempt(reconciliation_id=str(record.id), succeeded=True),
            asynchronous=False,
        )
        summary["resolved"] += 1

    if summary["attempted"]:
        logger.info("Deferred courier updates retried", **summary)
    return summary


def refresh_courier_status(delivery_id: str):
    """Poll the courier for one delivery under its lock."""
    return process_serialized(delivery_id, RefreshCourierStatus(delivery_id=delivery_id))


def poll_active_deliveries() -> dict:
    """Poll the courier for every delivery still waiting on it."""
    active = current_domain.repository_for(Delivery).find_active_courier_deliveries()
    summary = {"polled": 0, "failed": 0}
    for dlv in active:
        summary["polled"] += 1
        try:
            refresh_courier_status(str(dlv.id))
        except Exception as exc:
            summary["failed"] += 1
            logger.warning("Courier status poll failed", delivery_id=str(dlv.id), error=str(exc))
    return summary
