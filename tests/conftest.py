# tests/conftest.py
import pytest
from sqlalchemy import update

from optimizer.container import build_services
from optimizer.db import init_db
from optimizer.db_init import seed_tenant
from optimizer.models.tenant import Tenant

from tests.fakes import ScriptedTextModel, no_sleep

TENANT_ID = "shop-1"
API_KEY = "test-key-shop-1"
OTHER_TENANT_ID = "shop-2"
OTHER_API_KEY = "test-key-shop-2"


def configure_tenant(session_factory, tenant_id: str = TENANT_ID, **values):
    with session_factory() as db:
        db.execute(update(Tenant).where(Tenant.tenant_id == tenant_id).values(**values))
        db.commit()


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'optimizer.db'}"


@pytest.fixture
def make_services(db_url):
    """
    Build the real service graph against a throwaway database, with the
    catalog and generator replaced by in-memory doubles.
    """
    created = []

    def _make(catalog=None, generator=None, plan: str = "PRO", **kwargs):
        kwargs.setdefault("pool_size", 0)
        kwargs.setdefault("item_delay", 0)
        services = build_services(
            db_url,
            text_model=ScriptedTextModel(),
            catalog_factory=lambda tenant: catalog,
            sleep=no_sleep,
            **kwargs,
        )
        init_db(services.engine)
        if generator is not None:
            services.orchestrator.generator = generator
        seed_tenant(services.session_factory, TENANT_ID, API_KEY,
                    catalog_url="https://catalog.test/api", access_token="catalog-token", plan=plan)
        seed_tenant(services.session_factory, OTHER_TENANT_ID, OTHER_API_KEY,
                    catalog_url="https://other.test/api", access_token="other-token", plan=plan)
        created.append(services)
        return services

    yield _make
    for services in created:
        services.engine.dispose()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {API_KEY}"}


@pytest.fixture
def other_headers():
    return {"X-API-Key": OTHER_API_KEY}
