"""Size variants and the aggregate stock they drive.

For a product with ``has_sizes`` set, ``Product.stock_quantity`` is owned by
``recompute_aggregate_stock``: it always equals the summed stock of the
product's active variants. Each variant mutation and its recompute commit
together while the product's stock lock and row lock are held.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import SQLAlchemyError

from storefront.extensions import db
from storefront.models.product import Product
from storefront.models.variant import Variant
from storefront.services.locks import product_lock
from storefront.services.results import ServiceResult, persistence_guard

logger = logging.getLogger(__name__)

STOCK_LOCK = "stock"


def _now():
    return datetime.now(timezone.utc)


def _lock_product_row(product_id):
    """Re-read the product inside the transaction with a row lock."""
    return db.session.get(
        Product, product_id, populate_existing=True, with_for_update=True
    )


def _clean_variant_fields(data, partial=False):
    """Normalize editable variant fields.

    Only keys in ``Variant.EDITABLE_FIELDS`` are considered. Returns
    ``(values, error)``. Missing keys get defaults unless ``partial``.
    """
    data = {k: data[k] for k in Variant.EDITABLE_FIELDS if k in data}
    values = {}
    if "size" in data or not partial:
        size = str(data.get("size") or "").strip()
        if not size:
            return None, "Variant size is required"
        values["size"] = size
    if "size_display" in data or not partial:
        values["size_display"] = data.get("size_display") or values.get("size", "")
    if "stock_quantity" in data or not partial:
        try:
            stock = int(data.get("stock_quantity") or 0)
        except (TypeError, ValueError):
            return None, "Stock quantity must be a whole number"
        if stock < 0:
            return None, "Stock quantity cannot be negative"
        values["stock_quantity"] = stock
    if "price_modifier" in data or not partial:
        modifier = data.get("price_modifier")
        if modifier is not None:
            try:
                modifier = Decimal(str(modifier))
            except InvalidOperation:
                return None, "Price modifier must be a number"
        values["price_modifier"] = modifier
    if "is_available" in data or not partial:
        values["is_available"] = bool(data.get("is_available", True))
    if "sort_order" in data or not partial:
        try:
            values["sort_order"] = int(data.get("sort_order") or 0)
        except (TypeError, ValueError):
            return None, "Sort order must be a whole number"
    return values, None


def recompute_aggregate_stock(product_id):
    """Set a sized product's stock to the sum over its active variants.

    No-op for products without sizes. Flushes but does not commit; callers own
    the transaction. Returns the new aggregate, or None when nothing changed.
    """
    product = db.session.get(Product, product_id)
    if product is None or not product.has_sizes:
        return None

    total = (
        db.session.query(db.func.coalesce(db.func.sum(Variant.stock_quantity), 0))
        .filter(Variant.product_id == product_id, Variant.is_active.is_(True))
        .scalar()
    )
    product.stock_quantity = int(total)
    product.updated_at = _now()
    db.session.flush()
    return product.stock_quantity


def _recompute_within_savepoint(product_id):
    """Recompute without letting a failure undo the variant write before it."""
    try:
        with db.session.begin_nested():
            total = recompute_aggregate_stock(product_id)
    except SQLAlchemyError:
        logger.warning(
            "Aggregate stock recompute failed for product %s", product_id, exc_info=True
        )
        return None
    if total is not None:
        logger.info("Product %s aggregate stock now %d", product_id, total)
    return total


@persistence_guard("upsert_variant")
def upsert_variant(data):
    """Create the variant for (product_id, size), or revive and overwrite it.

    A size is never stored twice: an existing row, active or not, is updated
    in place and reactivated.
    """
    product_id = data.get("product_id")
    values, error = _clean_variant_fields(data)
    if error:
        return ServiceResult.invalid(error)

    with product_lock(product_id, STOCK_LOCK):
        product = _lock_product_row(product_id)
        if product is None:
            db.session.rollback()
            return ServiceResult.not_found(f"Product {product_id} not found")
        if not product.is_active:
            db.session.rollback()
            return ServiceResult.invalid(f"Product {product_id} is not active")

        now = _now()
        variant = (
            Variant.query.filter_by(product_id=product_id, size=values["size"])
            .with_for_update()
            .first()
        )
        if variant is not None:
            for key, value in values.items():
                setattr(variant, key, value)
            variant.is_active = True
            variant.updated_at = now
            action = "updated"
        else:
            variant = Variant(
                product_id=product_id,
                is_active=True,
                created_at=now,
                updated_at=now,
                **values,
            )
            db.session.add(variant)
            action = "created"
        db.session.flush()

        _recompute_within_savepoint(product_id)
        db.session.commit()

    logger.info("Variant %s product=%s size=%s", action, product_id, variant.size)
    return ServiceResult.success(variant)


@persistence_guard("update_variant")
def update_variant(variant_id, fields):
    """Partial in-place update of a variant by id."""
    variant = db.session.get(Variant, variant_id)
    if variant is None:
        return ServiceResult.not_found(f"Variant {variant_id} not found")

    values, error = _clean_variant_fields(fields, partial=True)
    if error:
        return ServiceResult.invalid(error)

    product_id = variant.product_id
    with product_lock(product_id, STOCK_LOCK):
        _lock_product_row(product_id)
        variant = db.session.get(
            Variant, variant_id, populate_existing=True, with_for_update=True
        )
        if variant is None:
            db.session.rollback()
            return ServiceResult.not_found(f"Variant {variant_id} not found")

        new_size = values.get("size")
        if new_size and new_size != variant.size:
            clash = Variant.query.filter_by(product_id=product_id, size=new_size).first()
            if clash is not None:
                db.session.rollback()
                return ServiceResult.invalid(
                    f"Product {product_id} already has a variant for size {new_size}"
                )

        for key, value in values.items():
            setattr(variant, key, value)
        variant.updated_at = _now()
        db.session.flush()

        _recompute_within_savepoint(product_id)
        db.session.commit()

    logger.info("Variant updated: ID=%s", variant_id)
    return ServiceResult.success(variant)


@persistence_guard("delete_variant")
def delete_variant(variant_id):
    """Permanently remove a variant; there is no soft delete for variants."""
    variant = db.session.get(Variant, variant_id)
    if variant is None:
        return ServiceResult.not_found(f"Variant {variant_id} not found")

    product_id = variant.product_id
    with product_lock(product_id, STOCK_LOCK):
        _lock_product_row(product_id)
        variant = db.session.get(
            Variant, variant_id, populate_existing=True, with_for_update=True
        )
        if variant is None:
            db.session.rollback()
            return ServiceResult.not_found(f"Variant {variant_id} not found")
        db.session.delete(variant)
        db.session.flush()

        _recompute_within_savepoint(product_id)
        db.session.commit()

    logger.info("Variant hard deleted: ID=%s product=%s", variant_id, product_id)
    return ServiceResult.success(True)


@persistence_guard("refresh_aggregate_stock")
def refresh_aggregate_stock(product_id):
    """Recompute and commit one product's aggregate stock (repair path)."""
    with product_lock(product_id, STOCK_LOCK):
        product = _lock_product_row(product_id)
        if product is None:
            db.session.rollback()
            return ServiceResult.not_found(f"Product {product_id} not found")
        total = recompute_aggregate_stock(product_id)
        db.session.commit()
    return ServiceResult.success(total)


def list_variants(product_id):
    return (
        Variant.query.filter_by(product_id=product_id, is_active=True)
        .order_by(Variant.sort_order.asc(), Variant.size.asc())
        .all()
    )


def check_stock(variant_id, requested_quantity):
    """True only for an active, available variant holding enough stock."""
    variant = (
        Variant.query.filter_by(id=variant_id, is_active=True, is_available=True)
        .first()
    )
    return variant is not None and variant.stock_quantity >= requested_quantity


def variant_price(variant_id):
    """Unit price for a variant: discount price (else list price) plus modifier.

    Returns ``Decimal("0")`` for an unknown variant; callers treat zero as
    unpriceable.
    """
    variant = db.session.get(Variant, variant_id)
    if variant is None:
        return Decimal("0")
    product = variant.product
    if product is None:
        return Decimal("0")
    base = product.discount_price if product.discount_price is not None else product.price
    return Decimal(base) + Decimal(variant.price_modifier or 0)
