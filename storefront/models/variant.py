from datetime import datetime, timezone
from storefront.extensions import db


class Variant(db.Model):
    __tablename__ = "product_variants"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    size = db.Column(db.String(20), nullable=False)  # raw code: "M", "42"
    size_display = db.Column(db.String(50), nullable=False, default="")
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    price_modifier = db.Column(db.Numeric(10, 2))
    is_available = db.Column(db.Boolean, nullable=False, default=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # One row per size, active or not
    __table_args__ = (
        db.UniqueConstraint("product_id", "size", name="uq_variant_product_size"),
        db.CheckConstraint("stock_quantity >= 0", name="ck_variant_stock_nonnegative"),
    )

    EDITABLE_FIELDS = (
        "size",
        "size_display",
        "stock_quantity",
        "price_modifier",
        "is_available",
        "sort_order",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "productId": self.product_id,
            "size": self.size,
            "sizeDisplay": self.size_display,
            "stockQuantity": self.stock_quantity,
            "priceModifier": self.price_modifier,
            "isAvailable": self.is_available,
            "isActive": self.is_active,
            "sortOrder": self.sort_order,
        }

    def __repr__(self):
        return f"<Variant {self.product_id}/{self.size} stock={self.stock_quantity}>"
