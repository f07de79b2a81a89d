import os, sys, pytest
# Ensure backend directory is on path so 'storefront' and 'seeds' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
import storefront
from storefront import create_app, get_db
from storefront.models.authz import Base
# Import all model modules to ensure tables are registered before create_all
import storefront.models.audit  # noqa: F401
import storefront.models.vip  # noqa: F401
import storefront.models.settings  # noqa: F401

TEST_CONFIG = {
    'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
    'JWT_SECRET_KEY': 'test-secret-key-with-enough-bytes-for-hs256',
}


def build_app(**overrides):
    app = create_app({**TEST_CONFIG, **overrides})
    # Fresh in-memory database per app: bootstrap tests depend on an empty role store
    Base.metadata.create_all(get_db().get_bind())
    return app


@pytest.fixture()
def app_instance():
    app = build_app()
    yield app
    storefront.SessionLocal.remove()


@pytest.fixture()
def marker_app():
    app = build_app(BOOTSTRAP_STRATEGY='marker')
    yield app
    storefront.SessionLocal.remove()


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def session(app_instance):
    return get_db()
