from storefront.models.category import Category
from storefront.models.product import Product
from storefront.models.variant import Variant
from storefront.models.image import Image

__all__ = ["Category", "Product", "Variant", "Image"]
