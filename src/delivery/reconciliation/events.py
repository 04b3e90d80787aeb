"""PendingReconciliation domain events."""

from protean.fields import DateTime, Identifier, Integer, String

from delivery.domain import delivery


@delivery.event(part_of="PendingReconciliation")
class ReconciliationDeferred:
    """A courier update could not be applied and was parked for retry."""

    __version__ = 1

    reconciliation_id = Identifier(required=True)
    courier_order_id = String(required=True)
    message_type = String()
    attempts = Integer(required=True)
    last_error = String()
    deferred_at = DateTime(required=True)


@delivery.event(part_of="PendingReconciliation")
class ReconciliationResolved:
    """A parked courier update was applied."""

    __version__ = 1

    reconciliation_id = Identifier(required=True)
    courier_order_id = String(required=True)
    attempts = Integer(required=True)
    resolved_at = DateTime(required=True)


@delivery.event(part_of="PendingReconciliation")
class ReconciliationAbandoned:
    """A parked courier update exhausted its retry budget."""

    __version__ = 1

    reconciliation_id = Identifier(required=True)
    courier_order_id = String(required=True)
    attempts = Integer(required=True)
    last_error = String()
    abandoned_at = DateTime(required=True)
