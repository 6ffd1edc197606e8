"""Customer-facing catalog JSON endpoints."""
import math
from decimal import Decimal, InvalidOperation
from flask import current_app, jsonify, request, abort
from storefront.blueprints.catalog import catalog_bp
from storefront.services import catalog_service, product_service, variant_service
from storefront.services.catalog_service import ProductFilters, ProductSort
from storefront.services.results import ResultStatus


def _decimal_arg(name):
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    try:
        return Decimal(raw)
    except InvalidOperation:
        abort(400, description=f"{name} must be a number")


def _flag_arg(name):
    return request.args.get(name, "").lower() == "true"


@catalog_bp.route("/products")
def list_products():
    """Catalog listing with filters, sorting and paging."""
    page, page_size = catalog_service.normalize_paging(
        request.args.get("page", 1, type=int),
        request.args.get("pageSize", type=int),
    )
    category_id = request.args.get("categoryId", type=int)
    if category_id is None:
        category_id = request.args.get("category", type=int)

    filters = ProductFilters(
        search=request.args.get("search"),
        category_id=category_id,
        min_price=_decimal_arg("minPrice"),
        max_price=_decimal_arg("maxPrice"),
        featured_only=_flag_arg("featured"),
        sale_only=_flag_arg("sale"),
        gender=request.args.get("gender") or None,
        sort=ProductSort.resolve(request.args.get("sortBy")),
    )
    items, total = catalog_service.list_products(
        page=page, page_size=page_size, filters=filters
    )
    return jsonify({
        "items": [product.to_dict() for product in items],
        "totalItems": total,
        "page": page,
        "pageSize": page_size,
        "totalPages": math.ceil(total / page_size) if total else 0,
    })


@catalog_bp.route("/products/featured")
def featured_products():
    count = request.args.get("count", current_app.config["FEATURED_COUNT"], type=int)
    products = catalog_service.get_featured(count)
    return jsonify([product.to_dict() for product in products])


@catalog_bp.route("/products/search/suggestions")
def search_suggestions():
    return jsonify(catalog_service.search_suggestions(request.args.get("q", "")))


@catalog_bp.route("/products/<int:product_id>")
def product_detail(product_id):
    result = catalog_service.get_product_by_id(product_id)
    if result.status is ResultStatus.NOT_FOUND:
        abort(404)
    return jsonify(result.value.to_dict())


@catalog_bp.route("/products/<int:product_id>/variants")
def product_variants(product_id):
    if not catalog_service.get_product_by_id(product_id).ok:
        abort(404)
    return jsonify([v.to_dict() for v in variant_service.list_variants(product_id)])


@catalog_bp.route("/products/<int:product_id>/view", methods=["POST"])
def record_view(product_id):
    result = product_service.increment_view_count(product_id)
    if result.status is ResultStatus.NOT_FOUND:
        abort(404)
    if not result.ok:
        return {"error": "view not recorded"}, 503
    return "", 204
