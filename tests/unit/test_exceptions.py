from orderdesk.exceptions import (
    ConflictError, InsufficientStockError, NotFoundError, OrderDeskError, UnauthorizedError,
    ValidationError
)


def test_error_body_carries_kind_message_and_payload():
    error = NotFoundError('Product not found', payload={'product_id': 9})
    assert error.status_code == 404
    assert error.to_dict() == {
        'status': 'error',
        'kind': 'NotFound',
        'message': 'Product not found',
        'product_id': 9,
    }


def test_insufficient_stock_identifies_product_and_quantities():
    error = InsufficientStockError('Blue Tarp', 10, 20, product_id=3)
    assert isinstance(error, ValidationError)
    assert error.status_code == 400
    assert error.message == 'Insufficient stock for "Blue Tarp". Available: 10, Requested: 20'

    body = error.to_dict()
    assert body['kind'] == 'ValidationError'
    assert body['product'] == 'Blue Tarp'
    assert body['available'] == 10
    assert body['requested'] == 20
    assert body['product_id'] == 3


def test_conflict_is_a_validation_error_with_409():
    error = ConflictError('Order request has already been approved', payload={'current_status': 'Approved'})
    assert isinstance(error, ValidationError)
    assert error.status_code == 409
    assert error.to_dict()['kind'] == 'ConflictError'


def test_defaults():
    assert OrderDeskError().status_code == 500
    assert UnauthorizedError().status_code == 401
    assert UnauthorizedError().to_dict()['message'] == 'Authentication required'
