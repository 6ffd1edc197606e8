from datetime import datetime, timezone
from storefront.extensions import db


class Image(db.Model):
    __tablename__ = "product_images"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    image_url = db.Column(db.String(1024), nullable=False)
    alt_text = db.Column(db.String(255), nullable=False, default="")
    is_main_image = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "imageUrl": self.image_url,
            "altText": self.alt_text,
            "isMainImage": self.is_main_image,
        }

    def __repr__(self):
        return f"<Image {self.id} product={self.product_id} main={self.is_main_image}>"
