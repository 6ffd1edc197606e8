import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from flask import current_app
from sqlalchemy.orm import selectinload
from storefront.extensions import db
from storefront.models.product import Product
from storefront.models.variant import Variant
from storefront.services.locks import product_lock
from storefront.services.results import ServiceResult, persistence_guard
from storefront.services.variant_service import STOCK_LOCK, recompute_aggregate_stock

logger = logging.getLogger(__name__)


def _to_money(value, field_name):
    """Parse a money field. Returns ``(Decimal | None, error)``."""
    if value is None or value == "":
        return None, None
    try:
        return Decimal(str(value)), None
    except InvalidOperation:
        return None, f"{field_name} must be a number"


def _clean_product_fields(data, partial=False):
    """Validate and normalize product fields from a caller payload.

    Only keys in ``Product.MUTABLE_FIELDS`` are considered. Returns
    ``(values, error)``.
    """
    values = {k: data[k] for k in Product.MUTABLE_FIELDS if k in data}

    if "name" in values or not partial:
        name = (values.get("name") or "").strip()
        if not name:
            return None, "Product name is required"
        values["name"] = name

    if "price" in values or not partial:
        price, error = _to_money(values.get("price"), "Price")
        if error:
            return None, error
        if price is None or price <= 0:
            return None, "Price must be greater than zero"
        values["price"] = price

    if "discount_price" in values:
        discount, error = _to_money(values["discount_price"], "Discount price")
        if error:
            return None, error
        if discount is not None and discount < 0:
            return None, "Discount price cannot be negative"
        values["discount_price"] = discount

    if "stock_quantity" in values:
        try:
            stock = int(values["stock_quantity"] or 0)
        except (TypeError, ValueError):
            return None, "Stock quantity must be a whole number"
        if stock < 0:
            return None, "Stock quantity cannot be negative"
        values["stock_quantity"] = stock

    for flag in ("has_sizes", "is_featured"):
        if flag in values:
            values[flag] = bool(values[flag])

    return values, None


@persistence_guard("create_product")
def create_product(data):
    """Create an active product.

    Products with sizes start at zero stock; their stock comes from variants.
    """
    values, error = _clean_product_fields(data)
    if error:
        return ServiceResult.invalid(error)
    if values.get("has_sizes"):
        values["stock_quantity"] = 0

    now = datetime.now(timezone.utc)
    product = Product(created_at=now, updated_at=now, is_active=True, **values)
    db.session.add(product)
    db.session.commit()

    logger.info("Product created with ID: %s", product.id)
    return ServiceResult.success(product)


@persistence_guard("update_product")
def update_product(product_id, fields):
    """Replace the supplied mutable fields. Variants are left alone.

    A product with sizes keeps its derived stock: any stock figure in
    ``fields`` is dropped and the aggregate recomputed, which also covers a
    product switching to sizes in this update.
    """
    product = db.session.get(Product, product_id)
    if product is None:
        return ServiceResult.not_found(f"Product {product_id} not found")

    values, error = _clean_product_fields(fields, partial=True)
    if error:
        return ServiceResult.invalid(error)

    with product_lock(product_id, STOCK_LOCK):
        product = db.session.get(
            Product, product_id, populate_existing=True, with_for_update=True
        )
        if product is None:
            db.session.rollback()
            return ServiceResult.not_found(f"Product {product_id} not found")
        has_sizes = values.get("has_sizes", product.has_sizes)
        if has_sizes:
            values.pop("stock_quantity", None)

        for key, value in values.items():
            setattr(product, key, value)
        product.updated_at = datetime.now(timezone.utc)
        db.session.flush()

        if has_sizes:
            recompute_aggregate_stock(product_id)
        db.session.commit()

    logger.info("Product updated with ID: %s", product_id)
    return ServiceResult.success(product)


@persistence_guard("soft_delete_product")
def soft_delete_product(product_id):
    """Deactivate a product and every one of its variants in one commit."""
    with product_lock(product_id, STOCK_LOCK):
        product = db.session.get(
            Product, product_id, populate_existing=True, with_for_update=True
        )
        if product is None:
            db.session.rollback()
            return ServiceResult.not_found(f"Product {product_id} not found")

        variants = (
            Variant.query.filter_by(product_id=product_id).with_for_update().all()
        )
        now = datetime.now(timezone.utc)
        product.is_active = False
        product.updated_at = now
        for variant in variants:
            variant.is_active = False
            variant.updated_at = now
        db.session.commit()

    logger.info(
        "Product soft deleted: %s (%d variants deactivated)", product_id, len(variants)
    )
    return ServiceResult.success(True)


@persistence_guard("set_stock")
def set_stock(product_id, quantity):
    """Directly set stock for a product without sizes.

    Sized products are rejected: their stock is owned by variant edits.
    """
    if quantity is None or quantity < 0:
        return ServiceResult.invalid("Stock quantity cannot be negative")

    with product_lock(product_id, STOCK_LOCK):
        product = db.session.get(
            Product, product_id, populate_existing=True, with_for_update=True
        )
        if product is None:
            db.session.rollback()
            return ServiceResult.not_found(f"Product {product_id} not found")
        if product.has_sizes:
            db.session.rollback()
            return ServiceResult.invalid(
                f"Product {product_id} has sizes; edit variant stock instead"
            )
        product.stock_quantity = quantity
        product.updated_at = datetime.now(timezone.utc)
        db.session.commit()

    logger.info(
        "Stock updated for product ID: %s, New quantity: %s", product_id, quantity
    )
    return ServiceResult.success(product)


def check_availability(product_id, requested_quantity):
    product = Product.query.filter_by(id=product_id, is_active=True).first()
    return product is not None and product.stock_quantity >= requested_quantity


def get_low_stock(threshold=None):
    """Active products under ``threshold`` units, scarcest first."""
    if threshold is None:
        threshold = current_app.config["LOW_STOCK_THRESHOLD"]
    return (
        Product.query.options(selectinload(Product.category))
        .filter(Product.is_active.is_(True), Product.stock_quantity < threshold)
        .order_by(Product.stock_quantity.asc(), Product.id.asc())
        .all()
    )


def calculate_discount_price(product_id, percent):
    """Price after a percentage discount, unrounded. Nothing is saved."""
    try:
        percent = Decimal(str(percent))
    except InvalidOperation:
        return ServiceResult.invalid("Discount percentage must be a number")

    product = db.session.get(Product, product_id)
    if product is None:
        return ServiceResult.not_found(f"Product {product_id} not found")

    price = Decimal(product.price)
    discounted = price - price * percent / 100
    return ServiceResult.success(discounted)


def get_product_for_admin(product_id):
    """Any product by id, active or not, with all of its variants."""
    product = (
        Product.query.options(
            selectinload(Product.variants),
            selectinload(Product.images),
            selectinload(Product.category),
        )
        .filter(Product.id == product_id)
        .first()
    )
    if product is None:
        return ServiceResult.not_found(f"Product {product_id} not found")
    return ServiceResult.success(product)


def get_stats():
    """Product counts by active flag for the stats command."""
    rows = (
        db.session.query(Product.is_active, db.func.count(Product.id))
        .group_by(Product.is_active)
        .all()
    )
    counts = {"active": 0, "inactive": 0}
    for is_active, count in rows:
        counts["active" if is_active else "inactive"] = count
    return counts


@persistence_guard("increment_view_count")
def increment_view_count(product_id):
    """Bump the view counter with a single UPDATE so concurrent views all count."""
    result = db.session.execute(
        db.update(Product)
        .where(Product.id == product_id)
        .values(view_count=Product.view_count + 1)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    if result.rowcount == 0:
        return ServiceResult.not_found(f"Product {product_id} not found")
    return ServiceResult.success(True)
