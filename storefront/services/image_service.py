import logging
from datetime import datetime, timezone

from redis.exceptions import RedisError

from storefront import extensions
from storefront.extensions import db
from storefront.models.image import Image
from storefront.models.product import Product
from storefront.services import storage_service
from storefront.services.locks import product_lock
from storefront.services.results import ServiceResult, persistence_guard
from storefront.workers.storage_cleanup import delete_image_file

logger = logging.getLogger(__name__)

IMAGE_LOCK = "images"


def _clear_main_flags(product_id, keep_id=None):
    """Unset the main flag on every image of a product except ``keep_id``."""
    siblings = (
        Image.query.filter_by(product_id=product_id)
        .populate_existing()
        .with_for_update()
        .all()
    )
    for sibling in siblings:
        if sibling.id != keep_id:
            sibling.is_main_image = False
    return siblings


@persistence_guard("add_image")
def add_image(product_id, data):
    """Attach an image to an active product.

    ``data`` carries ``image_url`` (or a ``storage_key`` resolved against the
    public file-store URL), ``alt_text`` and ``is_main_image``. Adding a main
    image demotes the current one.
    """
    image_url = (data.get("image_url") or "").strip()
    if not image_url and data.get("storage_key"):
        image_url = storage_service.get_public_url(data["storage_key"])
    if not image_url:
        return ServiceResult.invalid("Image URL is required")

    with product_lock(product_id, IMAGE_LOCK):
        product = db.session.get(
            Product, product_id, populate_existing=True, with_for_update=True
        )
        if product is None:
            db.session.rollback()
            return ServiceResult.not_found(f"Product {product_id} not found")
        if not product.is_active:
            db.session.rollback()
            return ServiceResult.invalid(f"Product {product_id} is not active")

        is_main = bool(data.get("is_main_image", False))
        if is_main:
            _clear_main_flags(product_id)

        now = datetime.now(timezone.utc)
        image = Image(
            product_id=product_id,
            image_url=image_url,
            alt_text=data.get("alt_text") or product.name,
            is_main_image=is_main,
            created_at=now,
            updated_at=now,
        )
        db.session.add(image)
        db.session.commit()

    logger.info("Image added for product ID: %s (image %s)", product_id, image.id)
    return ServiceResult.success(image)


@persistence_guard("remove_image")
def remove_image(image_id):
    """Delete an image record, then have its stored file removed.

    The file is removed through the task queue after the record is gone; a
    file-store failure leaves an orphaned object but never fails the removal.
    """
    image = db.session.get(Image, image_id)
    if image is None:
        return ServiceResult.not_found(f"Image {image_id} not found")

    storage_key = storage_service.key_from_url(image.image_url)
    product_id = image.product_id
    db.session.delete(image)
    db.session.commit()
    logger.info("Image removed with ID: %s (product %s)", image_id, product_id)

    try:
        extensions.task_queue.enqueue(delete_image_file, storage_key, image_id=image_id)
    except RedisError:
        logger.warning(
            "Could not queue file cleanup for image %s (key %s)",
            image_id,
            storage_key,
            exc_info=True,
        )
    return ServiceResult.success(True)


@persistence_guard("set_main_image")
def set_main_image(image_id):
    """Make ``image_id`` the only main image of its product."""
    image = db.session.get(Image, image_id)
    if image is None:
        return ServiceResult.not_found(f"Image {image_id} not found")

    product_id = image.product_id
    with product_lock(product_id, IMAGE_LOCK):
        siblings = _clear_main_flags(product_id, keep_id=image_id)
        target = next((s for s in siblings if s.id == image_id), None)
        if target is None:
            db.session.rollback()
            return ServiceResult.not_found(f"Image {image_id} not found")
        target.is_main_image = True
        target.updated_at = datetime.now(timezone.utc)
        db.session.commit()

    logger.info("Main image for product %s set to %s", product_id, image_id)
    return ServiceResult.success(target)


def list_images(product_id):
    return (
        Image.query.filter_by(product_id=product_id)
        .order_by(Image.is_main_image.desc(), Image.id.asc())
        .all()
    )


def get_main_image(product_id):
    return Image.query.filter_by(product_id=product_id, is_main_image=True).first()
