from flask import Blueprint

catalog_bp = Blueprint("catalog", __name__)

from storefront.blueprints.catalog import views  # noqa: F401, E402
