"""Catalog blueprint for categories and products."""
from flask import Blueprint, g, request

from orderdesk.database import get_session
from orderdesk.middleware import require_login
from orderdesk.services import catalog_service
from orderdesk.utils.http import json_body, page_args, paginated, success

catalog_bp = Blueprint('catalog', __name__)


# =====================================================
# CATEGORIES
# =====================================================

@catalog_bp.route('/categories', methods=['GET'])
def list_categories():
    categories = catalog_service.list_categories(get_session())
    return success([c.to_dict() for c in categories])


@catalog_bp.route('/categories', methods=['POST'])
@require_login
def create_category():
    category = catalog_service.create_category(get_session(), json_body())
    return success(category.to_dict(), message='Category created', status_code=201)


@catalog_bp.route('/categories/<int:category_id>', methods=['GET'])
def get_category(category_id):
    return success(catalog_service.get_category(get_session(), category_id).to_dict())


@catalog_bp.route('/categories/<int:category_id>', methods=['PUT', 'PATCH'])
@require_login
def update_category(category_id):
    category = catalog_service.update_category(get_session(), category_id, json_body())
    return success(category.to_dict(), message='Category updated')


@catalog_bp.route('/categories/<int:category_id>', methods=['DELETE'])
@require_login
def delete_category(category_id):
    catalog_service.delete_category(get_session(), category_id)
    return success(message='Category deleted')


# =====================================================
# PRODUCTS
# =====================================================

@catalog_bp.route('/products', methods=['GET'])
def list_products():
    page, limit = page_args(default_limit=20)
    products, total = catalog_service.list_products(
        get_session(),
        search=request.args.get('search'),
        category_id=request.args.get('category_id', type=int),
        page=page,
        limit=limit,
    )
    return paginated(products, total, page, limit)


@catalog_bp.route('/products', methods=['POST'])
@require_login
def create_product():
    product = catalog_service.create_product(get_session(), json_body(), user_id=g.user_id)
    return success(product.to_dict(), message='Product created', status_code=201)


@catalog_bp.route('/products/<int:product_id>', methods=['GET'])
def get_product(product_id):
    return success(catalog_service.get_product(get_session(), product_id).to_dict())


@catalog_bp.route('/products/<int:product_id>', methods=['PUT', 'PATCH'])
@require_login
def update_product(product_id):
    product = catalog_service.update_product(get_session(), product_id, json_body())
    return success(product.to_dict(), message='Product updated')


@catalog_bp.route('/products/<int:product_id>', methods=['DELETE'])
@require_login
def delete_product(product_id):
    catalog_service.delete_product(get_session(), product_id)
    return success(message='Product deleted')
