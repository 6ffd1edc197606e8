"""Tests for product lifecycle: create, update, soft delete, stock and pricing."""
from decimal import Decimal

from storefront.extensions import db as _db
from storefront.models.product import Product
from storefront.models.variant import Variant
from storefront.services import catalog_service, product_service, variant_service
from storefront.services.results import ResultStatus


def test_create_product_stamps_and_activates(db):
    result = product_service.create_product(
        {"name": "  Runner ", "price": "59.90", "brand": "Northpeak"}
    )

    assert result.ok
    product = result.value
    assert product.name == "Runner"
    assert product.is_active is True
    assert product.created_at is not None
    assert product.updated_at is not None
    assert product.price == Decimal("59.90")


def test_create_product_validation(db):
    assert product_service.create_product({"name": "", "price": "10"}).status is ResultStatus.INVALID
    assert product_service.create_product({"name": "X", "price": "0"}).status is ResultStatus.INVALID
    assert product_service.create_product({"name": "X", "price": "abc"}).status is ResultStatus.INVALID
    assert product_service.create_product(
        {"name": "X", "price": "10", "stock_quantity": -2}
    ).status is ResultStatus.INVALID
    assert Product.query.count() == 0


def test_sized_product_starts_with_derived_stock(make_product):
    product = make_product(name="Runner", has_sizes=True, stock_quantity=40)
    assert product.stock_quantity == 0


def test_update_product_replaces_fields_but_not_variants(make_product):
    product = make_product(name="Runner", price="100.00", has_sizes=True)
    variant_service.upsert_variant({"product_id": product.id, "size": "M", "stock_quantity": 3})

    result = product_service.update_product(
        product.id,
        {"name": "Runner 2", "price": "120.00", "discount_price": "99.00",
         "is_featured": True, "gender": "Kadın", "stock_quantity": 500},
    )

    assert result.ok
    updated = result.value
    assert updated.name == "Runner 2"
    assert updated.price == Decimal("120.00")
    assert updated.discount_price == Decimal("99.00")
    assert updated.is_featured is True
    assert updated.gender == "Kadın"
    # Sized products keep their aggregate stock
    assert updated.stock_quantity == 3
    assert [v.stock_quantity for v in variant_service.list_variants(product.id)] == [3]


def test_update_switching_to_sizes_recomputes(make_product):
    product = make_product(name="Runner", stock_quantity=20)
    variant_service.upsert_variant({"product_id": product.id, "size": "M", "stock_quantity": 4})

    result = product_service.update_product(product.id, {"has_sizes": True})

    assert result.value.stock_quantity == 4


def test_update_unknown_product(db):
    result = product_service.update_product(42, {"name": "Nope"})
    assert result.status is ResultStatus.NOT_FOUND


def test_soft_delete_cascades_to_variants(make_product):
    product = make_product(name="Runner", has_sizes=True)
    for size in ("S", "M", "L"):
        variant_service.upsert_variant({"product_id": product.id, "size": size, "stock_quantity": 1})

    result = product_service.soft_delete_product(product.id)

    assert result.ok
    _db.session.expire_all()
    assert catalog_service.get_product_by_id(product.id).status is ResultStatus.NOT_FOUND
    assert variant_service.list_variants(product.id) == []
    # Records survive for admin paths
    admin = product_service.get_product_for_admin(product.id)
    assert admin.ok
    assert admin.value.is_active is False
    assert Variant.query.filter_by(product_id=product.id).count() == 3
    assert all(not v.is_active for v in admin.value.variants)


def test_soft_delete_unknown_product(db):
    assert product_service.soft_delete_product(7).status is ResultStatus.NOT_FOUND


def test_set_stock(make_product):
    plain = make_product(name="Scarf")
    sized = make_product(name="Runner", has_sizes=True)

    assert product_service.set_stock(plain.id, 12).ok
    assert product_service.set_stock(plain.id, -1).status is ResultStatus.INVALID
    assert product_service.set_stock(sized.id, 12).status is ResultStatus.INVALID
    assert product_service.set_stock(999, 1).status is ResultStatus.NOT_FOUND

    _db.session.expire_all()
    assert _db.session.get(Product, plain.id).stock_quantity == 12
    assert _db.session.get(Product, sized.id).stock_quantity == 0


def test_check_availability(make_product):
    product = make_product(name="Scarf", stock_quantity=5)

    assert product_service.check_availability(product.id, 5)
    assert not product_service.check_availability(product.id, 6)
    assert not product_service.check_availability(999, 1)

    product_service.soft_delete_product(product.id)
    assert not product_service.check_availability(product.id, 1)


def test_low_stock_sorted_ascending(make_product):
    make_product(name="Plenty", stock_quantity=50)
    make_product(name="Few", stock_quantity=4)
    make_product(name="None", stock_quantity=0)
    gone = make_product(name="Gone", stock_quantity=1)
    product_service.soft_delete_product(gone.id)

    assert [p.name for p in product_service.get_low_stock(10)] == ["None", "Few"]
    assert [p.name for p in product_service.get_low_stock(1)] == ["None"]


def test_calculate_discount_price(make_product):
    product = make_product(name="Runner", price="80.00")

    result = product_service.calculate_discount_price(product.id, 15)
    assert result.ok
    assert result.value == Decimal("68.00")

    odd = make_product(name="Odd", price="19.99")
    assert product_service.calculate_discount_price(odd.id, "12.5").value == Decimal("17.49125")
    assert product_service.calculate_discount_price(product.id, 150).value == Decimal("-40")
    assert product_service.calculate_discount_price(product.id, "ten").status is ResultStatus.INVALID
    assert product_service.calculate_discount_price(999, 10).status is ResultStatus.NOT_FOUND
    # Pure calculation
    _db.session.expire_all()
    assert _db.session.get(Product, product.id).price == Decimal("80.00")


def test_increment_view_count(make_product):
    product = make_product(name="Runner")

    for _ in range(3):
        assert product_service.increment_view_count(product.id).ok

    _db.session.expire_all()
    assert _db.session.get(Product, product.id).view_count == 3
    assert product_service.increment_view_count(999).status is ResultStatus.NOT_FOUND


def test_stats(make_product):
    make_product(name="A")
    gone = make_product(name="B")
    product_service.soft_delete_product(gone.id)

    assert product_service.get_stats() == {"active": 1, "inactive": 1}
