# app/routers/inventory.py
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session
from typing import Optional
from app.db import get_db
from app.deps import get_inventory_service, require_tenant
from app.models.core import Tenant
from app.schemas.inventory import AdjustStockIn, IngredientIn, RecipeIn, StockStatusOut
from app.services.inventory import InventoryService
from app.services.plans import tenant_can_access
from app.services.tasks import notify_low_stock

router = APIRouter(prefix="/api/inventory", tags=["inventory"])


@router.post("/ingredients", status_code=201)
def add_ingredient(
    body: IngredientIn,
    tenant_id: str = Depends(require_tenant),
    inv: InventoryService = Depends(get_inventory_service),
):
    ing = inv.create_ingredient(tenant_id, body)
    return {"id": ing.id, "name": ing.name, "current_stock": float(ing.current_stock or 0)}


@router.post("/recipe")
def set_recipe(
    body: RecipeIn,
    tenant_id: str = Depends(require_tenant),
    inv: InventoryService = Depends(get_inventory_service),
):
    rows = inv.set_recipe(tenant_id, body)
    return {"ok": True, "menu_item_id": body.menu_item_id, "lines": len(rows)}


@router.post("/adjust")
def adjust_stock(
    body: AdjustStockIn,
    background: BackgroundTasks,
    tenant_id: str = Depends(require_tenant),
    inv: InventoryService = Depends(get_inventory_service),
    db: Session = Depends(get_db),
):
    current, crossing = inv.adjust_stock(tenant_id, body)
    if crossing:
        tenant = db.get(Tenant, tenant_id)
        if tenant and tenant_can_access(tenant, "stock_alerts"):
            background.add_task(notify_low_stock, tenant_id)
    return {
        "ingredient_id": body.ingredient_id,
        "current_stock": float(current),
        "alert": crossing.alert_type.value if crossing else None,
    }


@router.get("/status", response_model=list[StockStatusOut])
def stock_status(tenant_id: str = Depends(require_tenant), inv: InventoryService = Depends(get_inventory_service)):
    return inv.get_stock_status(tenant_id)


@router.get("/movements")
def stock_movements(
    ingredient_id: Optional[str] = None,
    limit: int = 100,
    tenant_id: str = Depends(require_tenant),
    inv: InventoryService = Depends(get_inventory_service),
):
    rows = inv.get_stock_movements(tenant_id, ingredient_id, min(max(limit, 1), 500))
    return [
        {
            "id": m.id,
            "ingredient_id": m.ingredient_id,
            "movement_type": m.movement_type.value,
            "quantity": float(m.quantity),
            "order_id": m.order_id,
            "notes": m.notes,
            "created_at": m.created_at.isoformat() if m.created_at else None,
        }
        for m in rows
    ]
