"""Custom exceptions for the order desk application."""


def _format_qty(value):
    """Render a quantity without a trailing '.0' for whole numbers."""
    if value is None:
        return '0'
    if value % 1 == 0:
        return f"{int(value)}"
    return f"{value:.2f}".rstrip('0').rstrip('.')


class OrderDeskError(Exception):
    """Base exception for all application errors."""
    kind = 'InternalError'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['kind'] = self.kind
        rv['status'] = 'error'
        return rv


class ValidationError(OrderDeskError):
    """Raised when input or a business rule is violated."""
    kind = 'ValidationError'

    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(OrderDeskError):
    """Raised when a resource is not found."""
    kind = 'NotFound'

    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class ConflictError(ValidationError):
    """Raised when an operation clashes with the current state of a resource."""
    kind = 'ConflictError'

    def __init__(self, message, payload=None):
        super().__init__(message, status_code=409, payload=payload)


class InsufficientStockError(ValidationError):
    """Raised when an operation fails due to lack of stock."""

    def __init__(self, product_name, available, requested, product_id=None):
        message = (
            f'Insufficient stock for "{product_name}". '
            f'Available: {_format_qty(available)}, Requested: {_format_qty(requested)}'
        )
        payload = {
            'product': product_name,
            'available': available,
            'requested': requested,
        }
        if product_id is not None:
            payload['product_id'] = product_id
        super().__init__(message, payload=payload)
        self.product_name = product_name
        self.available = available
        self.requested = requested


class UnauthorizedError(OrderDeskError):
    """Raised when a request lacks an authenticated user."""
    kind = 'Unauthorized'

    def __init__(self, message="Authentication required"):
        super().__init__(message, 401)
