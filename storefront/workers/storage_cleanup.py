"""RQ worker job: remove the stored file behind a deleted image record."""
import logging
from flask import current_app, has_app_context
from storefront.services import storage_service

logger = logging.getLogger(__name__)

_worker_app = None


def _get_app():
    """Return an app instance for worker execution.

    Reuse the current app when already inside an app context (tests/CLI,
    inline queue), otherwise lazily create the worker app once.
    """
    global _worker_app
    if has_app_context():
        return current_app._get_current_object()
    if _worker_app is None:
        from storefront import create_app

        _worker_app = create_app()
    return _worker_app


def delete_image_file(storage_key, image_id=None):
    """Delete the backing file for an image.

    The image record is already gone when this runs, so a failure here only
    leaves an orphaned object behind. It is logged and re-raised so RQ can
    retry.
    """
    if not storage_key:
        logger.info("Image %s has no storage key, nothing to delete", image_id)
        return

    app = _get_app()
    with app.app_context():
        try:
            storage_service.delete(storage_key)
        except Exception:
            logger.warning(
                "File store delete failed for image %s (%s)",
                image_id,
                storage_key,
                exc_info=True,
            )
            raise
        logger.info("Deleted stored file %s for image %s", storage_key, image_id)
