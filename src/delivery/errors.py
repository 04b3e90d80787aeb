"""Error taxonomy of the delivery service.

Every error carries a stable ``code`` and the HTTP status the API layer
renders it with. Leaf adapters (courier, geocoder) raise their own errors;
command handlers translate them into these before they reach a caller.
"""


class DeliveryError(Exception):
    """Base class for delivery service errors."""

    code = "delivery_error"
    status_code = 400

    def __init__(self, message: str, **context) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        body = {"error": self.code, "detail": self.message}
        body.update({k: v for k, v in self.context.items() if v is not None})
        return body


class DeliveryNotFound(DeliveryError):
    code = "not_found"
    status_code = 404


class ForbiddenError(DeliveryError):
    code = "forbidden"
    status_code = 403


class ConflictError(DeliveryError):
    code = "conflict"
    status_code = 400


class AlreadyPlaced(ConflictError):
    code = "already_placed"


class AlreadyAssigned(ConflictError):
    code = "already_assigned"


class TooLateToEdit(ConflictError):
    code = "too_late_to_edit"


class QuotationExpired(DeliveryError):
    code = "quotation_expired"
    status_code = 400

    def __init__(self, message: str = "Courier quotation has expired", **context) -> None:
        context.setdefault("hint", "Request a new quotation and place the order again")
        super().__init__(message, **context)


class AddressNotResolvable(DeliveryError):
    code = "address_not_resolvable"
    status_code = 400


class UpstreamError(DeliveryError):
    """A courier or geocoder call failed.

    Retryable failures (transport errors, timeouts, 5xx) render as 502;
    application rejections from the upstream render as 400.
    """

    code = "upstream_error"

    def __init__(self, message: str, retryable: bool = False, **context) -> None:
        super().__init__(message, **context)
        self.retryable = retryable
        self.status_code = 502 if retryable else 400
