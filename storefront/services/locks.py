import logging
from contextlib import contextmanager

from flask import current_app
from redis.exceptions import LockError, RedisError

from storefront import extensions
from storefront.services.results import ProductLockTimeout

logger = logging.getLogger(__name__)


@contextmanager
def product_lock(product_id, scope):
    """Serialize writers of one product across processes.

    Variant mutations and their aggregate recompute share the "stock" scope;
    main-image selection uses "images". Without Redis only the row lock taken
    inside the transaction applies.
    """
    if extensions.redis_client is None:
        yield
        return

    try:
        lock = extensions.redis_client.lock(
            f"product:{scope}:{product_id}",
            timeout=current_app.config["PRODUCT_LOCK_TIMEOUT"],
            blocking_timeout=current_app.config["PRODUCT_LOCK_WAIT"],
        )
        acquired = lock.acquire()
    except RedisError as e:
        raise ProductLockTimeout(f"product {product_id} {scope} lock unavailable") from e
    if not acquired:
        raise ProductLockTimeout(f"product {product_id} {scope} lock busy")
    try:
        yield
    finally:
        try:
            lock.release()
        except LockError:
            logger.warning(
                "Lock for product %s (%s) expired before release", product_id, scope
            )
        except RedisError:
            logger.warning(
                "Could not release lock for product %s (%s)",
                product_id,
                scope,
                exc_info=True,
            )
