import pytest
from storefront import create_app
from storefront.extensions import db as _db
from storefront.services import product_service


@pytest.fixture(scope="session")
def app():
    """Create application for testing."""
    app = create_app("testing")
    with app.app_context():
        yield app


@pytest.fixture
def client(app, db):
    return app.test_client()


@pytest.fixture
def db(app):
    """Fresh schema per test; services commit, so rollback is not enough."""
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def make_product(db):
    """Create a product through the lifecycle service."""

    def _make(name="Test Product", price="100.00", **fields):
        result = product_service.create_product({"name": name, "price": price, **fields})
        assert result.ok, result.error
        return result.value

    return _make
