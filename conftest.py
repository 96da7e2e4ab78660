# conftest.py
import os
import tempfile
import uuid

# settings are read at import time, so the environment must be set first
_TMP = tempfile.mkdtemp(prefix="storefront-test-")
os.environ.setdefault("APP_SECRET", "test-secret")
os.environ["DB_URL"] = f"sqlite+pysqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ.pop("REDIS_URL", None)
os.environ.pop("STOCK_ALERT_WEBHOOK_URL", None)

import pytest
from fastapi.testclient import TestClient

from app.db import Base, SessionLocal, engine
from app.main import app
from app.models.core import Coupon, DiscountType, Ingredient, ItemModifier, ItemVariant, MenuItem, Recipe, Tenant
from app.util.rate_limit import order_limiter
from app.util.security import create_token


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    order_limiter.reset()
    app.dependency_overrides.clear()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def rng_suffix():
    return uuid.uuid4().hex[:6]


@pytest.fixture
def tenant(db, rng_suffix):
    t = Tenant(
        slug=f"chez-{rng_suffix}", name="Chez Test", currency="XAF",
        enable_tax=True, tax_rate=0.18, enable_service_charge=True, service_charge_rate=0.10,
        subscription_plan="essentiel", subscription_status="active",
    )
    db.add(t)
    db.commit()
    db.refresh(t)
    return t


@pytest.fixture
def menu(db, tenant):
    """Two dishes, one with a variant and a modifier, plus an unavailable one."""
    poulet = MenuItem(tenant_id=tenant.id, name="Poulet DG", name_en="DG Chicken", price=5000)
    ndole = MenuItem(tenant_id=tenant.id, name="Ndolé", price=4000)
    jus = MenuItem(tenant_id=tenant.id, name="Jus de bissap", price=1000, is_available=False)
    db.add_all([poulet, ndole, jus])
    db.flush()
    db.add(ItemVariant(item_id=poulet.id, name_fr="Grande", name_en="Large", price=6500))
    db.add(ItemModifier(item_id=poulet.id, name="Plantain", price=500))
    db.commit()
    return {"poulet": poulet, "ndole": ndole, "jus": jus}


@pytest.fixture
def coupon_factory(db, tenant):
    def make(**kw):
        values = dict(
            tenant_id=tenant.id, code="BIENVENUE", discount_type=DiscountType.PERCENTAGE,
            discount_value=10, min_order_amount=0,
        )
        values.update(kw)
        c = Coupon(**values)
        db.add(c)
        db.commit()
        db.refresh(c)
        return c
    return make


@pytest.fixture
def stocked(db, tenant, menu):
    """Poulet DG uses 250 g of chicken; alert threshold at 1 kg."""
    chicken = Ingredient(tenant_id=tenant.id, name="Poulet", unit="g", current_stock=1500, min_stock_alert=1000)
    db.add(chicken)
    db.flush()
    db.add(Recipe(tenant_id=tenant.id, menu_item_id=menu["poulet"].id, ingredient_id=chicken.id, quantity_needed=250))
    db.commit()
    return chicken


@pytest.fixture
def auth_headers(tenant):
    return {"Authorization": f"Bearer {create_token('admin-1', tenant.id)}"}


def jprint(step, r):
    """Helper to assert on failure with the response text."""
    assert 200 <= r.status_code < 300, f"{step} -> {r.status_code}: {r.text}"
    return r.json()
