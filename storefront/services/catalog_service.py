"""Customer-facing catalog queries.

Read-only: nothing here writes to the session. Every query is scoped to
active products and eager-loads images plus active+available variants so a
result page costs a fixed number of round trips.
"""
import enum
from dataclasses import dataclass, field
from flask import current_app
from sqlalchemy.orm import selectinload
from storefront.extensions import db
from storefront.models.product import Product
from storefront.services.results import ServiceResult


class ProductSort(enum.Enum):
    BY_NAME = "name"
    BY_PRICE_ASC = "price"
    BY_PRICE_DESC = "price_desc"
    BY_NEWEST = "newest"
    BY_POPULARITY = "popular"

    @classmethod
    def resolve(cls, value):
        """Map caller input to a sort key; anything unrecognized sorts by name."""
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.BY_NAME

    def order_by(self):
        # Product.id breaks ties so paging is stable
        return {
            ProductSort.BY_NAME: (Product.name.asc(), Product.id.asc()),
            ProductSort.BY_PRICE_ASC: (Product.price.asc(), Product.id.asc()),
            ProductSort.BY_PRICE_DESC: (Product.price.desc(), Product.id.asc()),
            ProductSort.BY_NEWEST: (Product.created_at.desc(), Product.id.desc()),
            ProductSort.BY_POPULARITY: (Product.view_count.desc(), Product.id.asc()),
        }[self]


@dataclass
class ProductFilters:
    """Optional, conjunctive filters for the product listing."""

    search: str | None = None
    category_id: int | None = None
    min_price: object = None
    max_price: object = None
    featured_only: bool = False
    sale_only: bool = False
    gender: str | None = None
    sort: ProductSort = field(default=ProductSort.BY_NAME)


def _with_listing_loads(query):
    return query.options(
        selectinload(Product.images),
        selectinload(Product.available_variants),
        selectinload(Product.category),
    )


def _apply_filters(query, filters):
    search = (filters.search or "").strip()
    if search:
        # autoescape keeps % and _ literal
        query = query.filter(
            db.or_(
                Product.name.icontains(search, autoescape=True),
                Product.description.icontains(search, autoescape=True),
                Product.brand.icontains(search, autoescape=True),
            )
        )
    if filters.category_id is not None:
        query = query.filter(Product.category_id == filters.category_id)
    if filters.gender:
        query = query.filter(Product.gender == filters.gender)
    # Bounds apply to list price, never the discount
    if filters.min_price is not None:
        query = query.filter(Product.price >= filters.min_price)
    if filters.max_price is not None:
        query = query.filter(Product.price <= filters.max_price)
    if filters.featured_only:
        query = query.filter(Product.is_featured.is_(True))
    if filters.sale_only:
        query = query.filter(Product.on_sale)
    return query


def normalize_paging(page, page_size):
    """Page numbers below 1 read as 1; a missing or non-positive size uses the default."""
    if not page_size or page_size < 1:
        page_size = current_app.config["CATALOG_PAGE_SIZE"]
    page_size = min(page_size, current_app.config["CATALOG_MAX_PAGE_SIZE"])
    return max(page or 1, 1), page_size


def list_products(page=1, page_size=None, filters=None):
    """Filtered, sorted page of active products.

    Returns ``(items, total_count)``; the count covers the whole filtered set.
    """
    filters = filters or ProductFilters()
    page, page_size = normalize_paging(page, page_size)

    query = Product.query.filter(Product.is_active.is_(True))
    query = _apply_filters(query, filters)
    query = query.order_by(*ProductSort.resolve(filters.sort).order_by())

    pagination = _with_listing_loads(query).paginate(
        page=page, per_page=page_size, error_out=False
    )
    return pagination.items, pagination.total


def get_product_by_id(product_id):
    """Active product with active+available variants, or NOT_FOUND."""
    product = (
        _with_listing_loads(Product.query)
        .filter(Product.id == product_id, Product.is_active.is_(True))
        .first()
    )
    if product is None:
        return ServiceResult.not_found(f"Product {product_id} not found")
    return ServiceResult.success(product)


def get_featured(count=None):
    if count is None:
        count = current_app.config["FEATURED_COUNT"]
    if count < 1:
        return []
    return (
        _with_listing_loads(Product.query)
        .filter(Product.is_active.is_(True), Product.is_featured.is_(True))
        .order_by(Product.id)
        .limit(count)
        .all()
    )


def search_suggestions(query):
    """Distinct active product names containing ``query``, in store order."""
    query = (query or "").strip()
    if len(query) < 2:
        return []
    rows = (
        db.session.query(Product.name)
        .filter(
            Product.is_active.is_(True),
            Product.name.icontains(query, autoescape=True),
        )
        .distinct()
        .limit(current_app.config["SUGGESTION_LIMIT"])
        .all()
    )
    return [name for (name,) in rows]
