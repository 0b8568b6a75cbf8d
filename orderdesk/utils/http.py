"""Small helpers shared by the JSON blueprints."""
from flask import jsonify, request

from orderdesk.exceptions import ValidationError


def json_body() -> dict:
    """Request JSON object, {} when the body is empty."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def page_args(default_limit: int = 10):
    page = request.args.get('page', 1, type=int) or 1
    limit = request.args.get('limit', default_limit, type=int) or default_limit
    return max(page, 1), min(max(limit, 1), 100)


def success(data=None, message=None, status_code=200, **extra):
    body = {'status': 'success', 'data': data}
    if message:
        body['message'] = message
    body.update(extra)
    return jsonify(body), status_code


def paginated(items, total: int, page: int, limit: int):
    pages = (total + limit - 1) // limit if limit else 0
    return success(
        [item.to_dict() for item in items],
        pagination={'page': page, 'limit': limit, 'total': total, 'pages': pages},
    )
