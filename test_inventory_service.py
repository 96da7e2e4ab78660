# test_inventory_service.py
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import httpx
import pytest

from app.config import settings
from app.models.core import AlertType, Ingredient, MovementType, StockAlertNotification, StockMovement
from app.schemas.inventory import AdjustStockIn, IngredientIn, RecipeIn, RecipeLineIn
from app.services.errors import ErrorKind, ServiceError
from app.services.inventory import InventoryService, detect_crossing
from app.services.notifications import check_and_notify_low_stock


def _stock(db, ingredient_id) -> Decimal:
    db.expire_all()
    return Decimal(db.get(Ingredient, ingredient_id).current_stock)


@pytest.mark.parametrize("previous,current,threshold,expected", [
    (Decimal(1500), Decimal(1000), Decimal(1000), AlertType.LOW_STOCK),
    (Decimal(1000), Decimal(750), Decimal(1000), None),   # already below, no second alert
    (Decimal(250), Decimal(0), Decimal(1000), AlertType.OUT_OF_STOCK),
    (Decimal(2000), Decimal(1500), Decimal(1000), None),
    (Decimal(5), Decimal(-1), Decimal(0), AlertType.OUT_OF_STOCK),
])
def test_detect_crossing(previous, current, threshold, expected):
    c = detect_crossing("i", "Poulet", previous, current, threshold)
    assert (c.alert_type if c else None) == expected


def test_destock_decrements_by_recipe(db, tenant, menu, stocked):
    result = InventoryService(db).destock_order(tenant.id, "order-1", [(menu["poulet"].id, 2)])
    assert result.decremented == 1
    assert _stock(db, stocked.id) == Decimal(1000)
    assert [c.alert_type for c in result.crossed] == [AlertType.LOW_STOCK]

    mv = db.query(StockMovement).one()
    assert mv.movement_type == MovementType.ORDER_DESTOCK
    assert Decimal(mv.quantity) == Decimal(-500)
    assert mv.order_id == "order-1"


def test_destock_ignores_items_without_recipe(db, tenant, menu, stocked):
    result = InventoryService(db).destock_order(tenant.id, "order-2", [(menu["ndole"].id, 3)])
    assert result.decremented == 0
    assert _stock(db, stocked.id) == Decimal(1500)


def test_destock_merges_repeated_lines_and_can_go_negative(db, tenant, menu, stocked):
    svc = InventoryService(db)
    result = svc.destock_order(tenant.id, "order-3", [(menu["poulet"].id, 4), (menu["poulet"].id, 3)])
    assert result.decremented == 1
    assert _stock(db, stocked.id) == Decimal(-250)
    assert [c.alert_type for c in result.crossed] == [AlertType.OUT_OF_STOCK]


def test_destock_is_cumulative(db, tenant, menu, stocked):
    svc = InventoryService(db)
    svc.destock_order(tenant.id, "a", [(menu["poulet"].id, 1)])
    svc.destock_order(tenant.id, "b", [(menu["poulet"].id, 1)])
    assert _stock(db, stocked.id) == Decimal(1000)
    assert db.query(StockMovement).count() == 2


def test_create_ingredient_records_opening(db, tenant):
    ing = InventoryService(db).create_ingredient(tenant.id, IngredientIn(name="Huile", unit="l", current_stock=Decimal(20)))
    mv = db.query(StockMovement).filter(StockMovement.ingredient_id == ing.id).one()
    assert mv.movement_type == MovementType.OPENING
    assert Decimal(mv.quantity) == Decimal(20)


def test_set_recipe_replaces_lines(db, tenant, menu, stocked):
    svc = InventoryService(db)
    oil = svc.create_ingredient(tenant.id, IngredientIn(name="Huile", unit="ml"))
    rows = svc.set_recipe(tenant.id, RecipeIn(menu_item_id=menu["poulet"].id, lines=[
        RecipeLineIn(ingredient_id=stocked.id, quantity_needed=Decimal(300)),
        RecipeLineIn(ingredient_id=oil.id, quantity_needed=Decimal(20)),
    ]))
    assert len(rows) == 2
    svc.destock_order(tenant.id, "o", [(menu["poulet"].id, 1)])
    assert _stock(db, stocked.id) == Decimal(1200)
    assert _stock(db, oil.id) == Decimal(-20)


def test_set_recipe_rejects_unknown_and_duplicate(db, tenant, menu, stocked):
    svc = InventoryService(db)
    with pytest.raises(ServiceError) as exc:
        svc.set_recipe(tenant.id, RecipeIn(menu_item_id="nope", lines=[]))
    assert exc.value.kind == ErrorKind.NOT_FOUND
    line = RecipeLineIn(ingredient_id=stocked.id, quantity_needed=Decimal(1))
    with pytest.raises(ServiceError) as exc:
        svc.set_recipe(tenant.id, RecipeIn(menu_item_id=menu["poulet"].id, lines=[line, line]))
    assert exc.value.kind == ErrorKind.VALIDATION


def test_adjust_stock(db, tenant, stocked):
    svc = InventoryService(db)
    current, crossing = svc.adjust_stock(tenant.id, AdjustStockIn(
        ingredient_id=stocked.id, movement_type="waste", quantity=Decimal(600), notes="périmé"))
    assert current == Decimal(900)
    assert crossing.alert_type == AlertType.LOW_STOCK
    current, crossing = svc.adjust_stock(tenant.id, AdjustStockIn(
        ingredient_id=stocked.id, movement_type="manual_add", quantity=Decimal(1100)))
    assert current == Decimal(2000)
    assert crossing is None


def test_adjust_stock_validation(db, tenant, stocked):
    svc = InventoryService(db)
    with pytest.raises(ServiceError) as exc:
        svc.adjust_stock(tenant.id, AdjustStockIn(ingredient_id=stocked.id, movement_type="waste", quantity=Decimal(0)))
    assert exc.value.kind == ErrorKind.VALIDATION
    with pytest.raises(ServiceError) as exc:
        svc.adjust_stock("other", AdjustStockIn(ingredient_id=stocked.id, movement_type="waste", quantity=Decimal(1)))
    assert exc.value.kind == ErrorKind.NOT_FOUND


def test_stock_status(db, tenant, stocked):
    svc = InventoryService(db)
    svc.create_ingredient(tenant.id, IngredientIn(name="Sel", unit="g"))
    by_name = {s.name: s.status for s in svc.get_stock_status(tenant.id)}
    assert by_name == {"Poulet": "ok", "Sel": "out"}


def test_notify_low_stock_posts_once_per_cooldown(db, tenant, stocked, monkeypatch):
    monkeypatch.setattr(settings, "STOCK_ALERT_WEBHOOK_URL", "https://hooks.example.test/stock")
    stocked.current_stock = 800
    db.commit()

    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    now = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)

    rows = check_and_notify_low_stock(db, tenant.id, now=now, client=client)
    assert len(rows) == 1
    assert rows[0].alert_type == AlertType.LOW_STOCK
    assert len(seen) == 1
    assert b'"low_stock"' in seen[0].content

    assert check_and_notify_low_stock(db, tenant.id, now=now + timedelta(minutes=5), client=client) == []
    assert len(seen) == 1

    later = now + timedelta(minutes=settings.STOCK_ALERT_COOLDOWN_MIN + 1)
    assert len(check_and_notify_low_stock(db, tenant.id, now=later, client=client)) == 1
    assert len(seen) == 2


def test_notify_without_webhook_only_logs(db, tenant, stocked, caplog):
    stocked.current_stock = 0
    db.commit()
    with caplog.at_level("WARNING"):
        rows = check_and_notify_low_stock(db, tenant.id)
    assert rows[0].alert_type == AlertType.OUT_OF_STOCK
    assert rows[0].sent_to == "log"
    assert "Poulet" in caplog.text
    assert db.query(StockAlertNotification).count() == 1


def test_webhook_failure_propagates(db, tenant, stocked, monkeypatch):
    monkeypatch.setattr(settings, "STOCK_ALERT_WEBHOOK_URL", "https://hooks.example.test/stock")
    stocked.current_stock = 10
    db.commit()
    client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(503)))
    with pytest.raises(httpx.HTTPStatusError):
        check_and_notify_low_stock(db, tenant.id, client=client)
    assert db.query(StockAlertNotification).count() == 0
