"""Tests for database models."""
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from storefront.models.category import Category
from storefront.models.image import Image
from storefront.models.product import Product
from storefront.models.variant import Variant


def test_product_creation(db):
    category = Category(name="Shoes", slug="shoes")
    db.session.add(category)
    db.session.flush()

    p = Product(
        name="Trail Runner",
        brand="Northpeak",
        price=Decimal("129.90"),
        discount_price=Decimal("99.90"),
        category_id=category.id,
        gender="Erkek",
    )
    db.session.add(p)
    db.session.flush()

    assert p.id is not None
    assert p.is_active is True
    assert p.view_count == 0
    assert p.category.slug == "shoes"
    assert p.on_sale
    assert p.effective_price == Decimal("99.90")


@pytest.mark.parametrize(
    "discount, on_sale",
    [(None, False), ("0", False), ("100.00", False), ("120.00", False), ("80.00", True)],
)
def test_on_sale_requires_positive_discount_below_price(db, discount, on_sale):
    p = Product(
        name="Sale Check",
        price=Decimal("100.00"),
        discount_price=Decimal(discount) if discount is not None else None,
    )
    assert bool(p.on_sale) is on_sale
    expected = Decimal(discount) if on_sale else Decimal("100.00")
    assert p.effective_price == expected


def test_variant_size_unique_per_product(db):
    p = Product(name="Sneaker", price=Decimal("50"))
    db.session.add(p)
    db.session.flush()

    db.session.add(Variant(product_id=p.id, size="42", stock_quantity=1))
    db.session.flush()
    db.session.add(Variant(product_id=p.id, size="42", stock_quantity=2, is_active=False))
    with pytest.raises(IntegrityError):
        db.session.flush()
    db.session.rollback()


def test_available_variants_excludes_inactive_and_unavailable(db):
    p = Product(name="Sneaker", price=Decimal("50"), has_sizes=True)
    db.session.add(p)
    db.session.flush()
    db.session.add_all([
        Variant(product_id=p.id, size="40", sort_order=1),
        Variant(product_id=p.id, size="41", sort_order=0, is_available=False),
        Variant(product_id=p.id, size="42", sort_order=2, is_active=False),
    ])
    db.session.commit()

    p = db.session.get(Product, p.id)
    assert [v.size for v in p.variants] == ["41", "40", "42"]
    assert [v.size for v in p.available_variants] == ["40"]


def test_image_model_and_main_image(db):
    p = Product(name="Sneaker", price=Decimal("50"))
    db.session.add(p)
    db.session.flush()

    db.session.add_all([
        Image(product_id=p.id, image_url="/uploads/a.jpg"),
        Image(product_id=p.id, image_url="/uploads/b.jpg", is_main_image=True),
    ])
    db.session.commit()

    p = db.session.get(Product, p.id)
    assert p.main_image.image_url == "/uploads/b.jpg"
    data = p.to_dict()
    assert data["mainImageUrl"] == "/uploads/b.jpg"
    assert len(data["images"]) == 2
