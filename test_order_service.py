# test_order_service.py
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from app.models.core import Order, OrderItem, OrderSequence, Tenant
from app.schemas.orders import CreateOrderIn, OrderItemIn
from app.schemas.tenant import TenantFiscalConfig
from app.services.errors import ErrorKind, ServiceError
from app.services.orders import NewOrder, OrderService
from app.services.pricing import calculate_order_total

DAY = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)


def _svc(db):
    return OrderService(db, clock=lambda: DAY)


def _line(item, **kw):
    data = {"id": item.id, "name": item.name, "price": item.price, "quantity": 1}
    data.update(kw)
    return OrderItemIn.model_validate(data)


def _expect(kind, fn, *args):
    with pytest.raises(ServiceError) as exc:
        fn(*args)
    assert exc.value.kind == kind
    return exc.value


# ── tenant ──────────────────────────────────────────────────────────────────
def test_validate_tenant(db, tenant):
    ref = _svc(db).validate_tenant(tenant.slug)
    assert ref.id == tenant.id
    assert ref.slug == tenant.slug


def test_unknown_tenant(db):
    err = _expect(ErrorKind.NOT_FOUND, _svc(db).validate_tenant, "inconnu")
    assert err.message == "Restaurant non trouvé"


def test_inactive_tenant(db, tenant):
    tenant.is_active = False
    db.commit()
    err = _expect(ErrorKind.NOT_FOUND, _svc(db).validate_tenant, tenant.slug)
    assert err.message == "Ce restaurant est temporairement indisponible"


@pytest.mark.parametrize("status", ["cancelled", "paused"])
def test_unusable_subscription(db, tenant, status):
    tenant.subscription_status = status
    db.commit()
    _expect(ErrorKind.FORBIDDEN, _svc(db).validate_tenant, tenant.slug)


def test_expired_trial_is_forbidden(db, tenant):
    tenant.subscription_status = "trial"
    tenant.trial_ends_at = datetime.now(timezone.utc) - timedelta(days=1)
    db.commit()
    _expect(ErrorKind.FORBIDDEN, _svc(db).validate_tenant, tenant.slug)


def test_load_fiscal_config(db, tenant):
    cfg = _svc(db).load_fiscal_config(tenant.id)
    assert cfg.enable_tax and cfg.enable_service_charge
    assert cfg.tax_rate == pytest.approx(0.18)
    assert cfg.service_charge_rate == pytest.approx(0.10)
    assert cfg.currency == "XAF"


# ── items ───────────────────────────────────────────────────────────────────
def test_items_priced_from_store(db, tenant, menu):
    poulet, ndole = menu["poulet"], menu["ndole"]
    v = _svc(db).validate_order_items(tenant.id, [
        _line(poulet, quantity=2),
        _line(ndole, price=4010),  # within 1%
    ])
    assert v.validated_total == 2 * 5000 + 4000
    assert [line.unit_price for line in v.lines] == [5000, 4000]


def test_variant_and_modifier_prices(db, tenant, menu):
    poulet = menu["poulet"]
    v = _svc(db).validate_order_items(tenant.id, [
        _line(poulet, price=6500, selectedVariant={"name_fr": "Grande", "price": 6500},
              modifiers=[{"name": "Plantain", "price": 0}]),
    ])
    # client modifier price is ignored, the store's 500 applies
    assert v.lines[0].unit_price == 7000
    assert v.validated_total == 7000


def test_all_item_failures_aggregated(db, tenant, menu):
    ghost = OrderItemIn.model_validate({"id": str(uuid.uuid4()), "name": "Ghost Item", "price": 100, "quantity": 1})
    err = _expect(ErrorKind.VALIDATION, _svc(db).validate_order_items, tenant.id, [
        ghost,
        _line(menu["jus"]),
        _line(menu["poulet"], selectedVariant={"name_fr": "Géante", "price": 9000}),
        _line(menu["poulet"], modifiers=[{"name": "Fromage", "price": 300}]),
        _line(menu["ndole"], price=3000),
    ])
    assert err.message == "Certains articles ne sont plus valides"
    assert err.details == [
        'Article "Ghost Item" non trouvé',
        '"Jus de bissap" n\'est plus disponible',
        'Variante "Géante" de "Poulet DG" non disponible',
        'Supplément "Fromage" de "Poulet DG" non disponible',
        'Prix de "Ndolé" a changé',
    ]


def test_soft_deleted_item_not_found(db, tenant, menu):
    menu["ndole"].deleted_at = datetime.now(timezone.utc)
    db.commit()
    err = _expect(ErrorKind.VALIDATION, _svc(db).validate_order_items, tenant.id, [_line(menu["ndole"])])
    assert err.details == ['Article "Ndolé" non trouvé']


def test_other_tenant_item_not_found(db, menu):
    err = _expect(ErrorKind.VALIDATION, _svc(db).validate_order_items, "another-tenant", [_line(menu["poulet"])])
    assert err.details == ['Article "Poulet DG" non trouvé']


def test_zero_total_rejected(db, tenant, menu):
    menu["ndole"].price = 0
    db.commit()
    err = _expect(ErrorKind.VALIDATION, _svc(db).validate_order_items, tenant.id, [_line(menu["ndole"], price=0)])
    assert err.message == "Le total de la commande doit être supérieur à 0"


def test_menu_read_failure_is_internal(db, tenant, menu, monkeypatch):
    svc = _svc(db)

    def boom(*a, **kw):
        raise OperationalError("SELECT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(svc, "_load_menu", boom)
    err = _expect(ErrorKind.INTERNAL, svc.validate_order_items, tenant.id, [_line(menu["poulet"])])
    assert err.message == "Erreur lors de la vérification du menu"


# ── numbering & persistence ─────────────────────────────────────────────────
def _new_order(db, tenant, menu, **intake):
    svc = _svc(db)
    data = {"items": [{"id": menu["poulet"].id, "name": "Poulet DG", "price": 5000, "quantity": 2,
                       "customerNotes": "bien cuit", "course": "main",
                       "selectedOption": {"name_fr": "Épicé"}}]}
    data.update(intake)
    order_in = CreateOrderIn.model_validate(data)
    validated = svc.validate_order_items(tenant.id, order_in.items)
    cfg = TenantFiscalConfig(enable_tax=True, tax_rate=0.18, enable_service_charge=True, service_charge_rate=0.10)
    return svc, NewOrder(
        tenant_id=tenant.id, intake=order_in, lines=validated.lines,
        pricing=calculate_order_total(validated.validated_total, cfg),
    )


def test_order_numbers_are_sequential_per_day(db, tenant):
    svc = _svc(db)
    assert svc.next_order_number(tenant.id) == "CMD-20260314-001"
    assert svc.next_order_number(tenant.id) == "CMD-20260314-002"
    tomorrow = OrderService(db, clock=lambda: DAY + timedelta(days=1))
    assert tomorrow.next_order_number(tenant.id) == "CMD-20260315-001"


def test_order_numbers_are_per_tenant(db, tenant):
    other = Tenant(slug="autre", name="Autre")
    db.add(other)
    db.commit()
    svc = _svc(db)
    assert svc.next_order_number(tenant.id) == "CMD-20260314-001"
    assert svc.next_order_number(other.id) == "CMD-20260314-001"


def test_create_order_with_items(db, tenant, menu):
    svc, new = _new_order(db, tenant, menu, tableNumber="7", customerName="Awa")
    created = svc.create_order_with_items(new)
    assert created.order_number == "CMD-20260314-001"
    assert created.total == 12800

    db.expire_all()
    order = db.get(Order, created.order_id)
    assert order.tenant_id == tenant.id
    assert (order.subtotal, order.tax_amount, order.service_charge_amount, order.total) == (10000, 1800, 1000, 12800)
    assert order.table_number == "7"
    assert order.status.value == "pending"
    items = db.query(OrderItem).filter(OrderItem.order_id == order.id).all()
    assert len(items) == 1
    assert items[0].price_at_order == 5000
    assert items[0].quantity == 2
    assert items[0].notes == "Épicé"
    assert items[0].customer_notes == "bien cuit"
    assert items[0].course == "main"


def test_failed_persist_rolls_back_everything(db, tenant, menu, monkeypatch):
    svc, new = _new_order(db, tenant, menu)
    original_flush = db.flush
    calls = {"n": 0}

    def flaky_flush(*a, **kw):
        calls["n"] += 1
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "flush", flaky_flush)
    err = _expect(ErrorKind.INTERNAL, svc.create_order_with_items, new)
    monkeypatch.setattr(db, "flush", original_flush)

    assert err.message == "Erreur lors de la création de la commande"
    assert calls["n"] == 1
    assert db.query(Order).count() == 0
    assert db.query(OrderItem).count() == 0
    # the sequence bump was rolled back with the order
    assert db.query(OrderSequence).count() == 0
