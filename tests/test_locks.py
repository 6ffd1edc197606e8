"""Tests for the per-product Redis write lock (mocked Redis client)."""
import logging
from unittest.mock import MagicMock, patch

from redis.exceptions import ConnectionError as RedisConnectionError, LockNotOwnedError

from storefront import extensions
from storefront.extensions import db as _db
from storefront.models.product import Product
from storefront.models.variant import Variant
from storefront.services import product_service, variant_service
from storefront.services.results import ResultStatus


def _redis_with_lock(acquire=True, release=None):
    lock = MagicMock()
    if isinstance(acquire, Exception):
        lock.acquire.side_effect = acquire
    else:
        lock.acquire.return_value = acquire
    if release is not None:
        lock.release.side_effect = release
    client = MagicMock()
    client.lock.return_value = lock
    return client, lock


def _stock(product_id):
    _db.session.expire_all()
    return _db.session.get(Product, product_id).stock_quantity


def test_lock_is_keyed_per_product_and_scope(app, make_product):
    product = make_product(name="Runner", has_sizes=True)
    client, lock = _redis_with_lock()

    with patch.object(extensions, "redis_client", client):
        result = variant_service.upsert_variant(
            {"product_id": product.id, "size": "M", "stock_quantity": 4}
        )

    assert result.ok
    client.lock.assert_called_once_with(
        f"product:stock:{product.id}",
        timeout=app.config["PRODUCT_LOCK_TIMEOUT"],
        blocking_timeout=app.config["PRODUCT_LOCK_WAIT"],
    )
    lock.release.assert_called_once()
    assert _stock(product.id) == 4


def test_busy_lock_fails_without_writing(make_product):
    product = make_product(name="Runner", has_sizes=True)
    client, lock = _redis_with_lock(acquire=False)

    with patch.object(extensions, "redis_client", client):
        result = variant_service.upsert_variant(
            {"product_id": product.id, "size": "M", "stock_quantity": 4}
        )

    assert result.status is ResultStatus.FAILURE
    lock.release.assert_not_called()
    assert Variant.query.filter_by(product_id=product.id).count() == 0
    assert _stock(product.id) == 0


def test_redis_outage_on_acquire_is_a_failure(make_product):
    product = make_product(name="Scarf", stock_quantity=5)
    client, _ = _redis_with_lock(acquire=RedisConnectionError("down"))

    with patch.object(extensions, "redis_client", client):
        result = product_service.set_stock(product.id, 9)

    assert result.status is ResultStatus.FAILURE
    assert _stock(product.id) == 5


def test_expired_lock_on_release_keeps_the_write(make_product, caplog):
    product = make_product(name="Scarf", stock_quantity=5)
    client, _ = _redis_with_lock(release=LockNotOwnedError("expired"))

    with patch.object(extensions, "redis_client", client):
        with caplog.at_level(logging.WARNING, logger="storefront.services.locks"):
            result = product_service.set_stock(product.id, 9)

    assert result.ok
    assert _stock(product.id) == 9
    assert "expired before release" in caplog.text
