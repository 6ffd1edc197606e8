from datetime import datetime, timezone
from sqlalchemy.ext.hybrid import hybrid_property
from storefront.extensions import db


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False, default="")
    brand = db.Column(db.String(100), nullable=False, default="")
    price = db.Column(db.Numeric(10, 2), nullable=False)
    discount_price = db.Column(db.Numeric(10, 2))
    # Derived from active variants when has_sizes is set
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    sku = db.Column(db.String(50), nullable=False, default="")
    category_id = db.Column(
        db.Integer,
        db.ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    gender = db.Column(db.String(30), index=True)  # free-form tag, e.g. "Kadın"
    has_sizes = db.Column(db.Boolean, nullable=False, default=False)
    is_featured = db.Column(db.Boolean, nullable=False, default=False, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    view_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.CheckConstraint("price > 0", name="ck_product_price_positive"),
        db.CheckConstraint("stock_quantity >= 0", name="ck_product_stock_nonnegative"),
    )

    # Relationships
    category = db.relationship("Category", back_populates="products")
    images = db.relationship(
        "Image",
        backref="product",
        lazy="select",
        cascade="all, delete-orphan",
        order_by="Image.id",
    )
    variants = db.relationship(
        "Variant",
        backref="product",
        lazy="select",
        cascade="all, delete-orphan",
        order_by="Variant.sort_order",
    )
    # Customer-facing subset, eager-loaded by catalog queries
    available_variants = db.relationship(
        "Variant",
        primaryjoin=(
            "and_(Product.id == Variant.product_id, "
            "Variant.is_active == True, Variant.is_available == True)"
        ),
        viewonly=True,
        lazy="select",
        order_by="Variant.sort_order",
    )

    # Columns a caller may replace through the lifecycle update
    MUTABLE_FIELDS = (
        "name",
        "description",
        "price",
        "discount_price",
        "stock_quantity",
        "sku",
        "brand",
        "category_id",
        "is_featured",
        "gender",
        "has_sizes",
    )

    @hybrid_property
    def on_sale(self):
        """A discount counts only when it is positive and below list price."""
        return (
            self.discount_price is not None
            and 0 < self.discount_price < self.price
        )

    @on_sale.expression
    def on_sale(cls):
        return db.and_(
            cls.discount_price.isnot(None),
            cls.discount_price > 0,
            cls.discount_price < cls.price,
        )

    @property
    def effective_price(self):
        return self.discount_price if self.on_sale else self.price

    @property
    def main_image(self):
        for image in self.images:
            if image.is_main_image:
                return image
        return self.images[0] if self.images else None

    def to_dict(self, variants=None):
        """Serialize for the catalog API.

        Customer-facing callers pass nothing and get active+available
        variants; admin callers pass the full variant list.
        """
        if variants is None:
            variants = self.available_variants
        main = self.main_image
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "brand": self.brand,
            "price": self.price,
            "discountPrice": self.discount_price,
            "effectivePrice": self.effective_price,
            "onSale": self.on_sale,
            "stockQuantity": self.stock_quantity,
            "sku": self.sku,
            "categoryId": self.category_id,
            "categoryName": self.category.name if self.category else None,
            "gender": self.gender,
            "hasSizes": self.has_sizes,
            "isFeatured": self.is_featured,
            "isActive": self.is_active,
            "viewCount": self.view_count,
            "mainImageUrl": main.image_url if main else None,
            "images": [image.to_dict() for image in self.images],
            "variants": [variant.to_dict() for variant in variants],
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Product {self.id}: {self.name}>"
