"""Ingredient stock: recipe-driven destocking after an order, plus the admin
operations that maintain ingredients, recipes and manual movements.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.models.core import (
    AlertType, Ingredient, MenuItem, MovementType, Recipe, StockMovement,
)
from app.schemas.inventory import AdjustStockIn, IngredientIn, RecipeIn, StockStatusOut
from app.services.errors import ErrorKind, ServiceError

logger = logging.getLogger(__name__)

# movement types that put stock back on the shelf
INBOUND = {MovementType.MANUAL_ADD, MovementType.OPENING}


@dataclass(frozen=True)
class StockCrossing:
    ingredient_id: str
    name: str
    previous: Decimal
    current: Decimal
    threshold: Decimal
    alert_type: AlertType


@dataclass
class DestockResult:
    decremented: int = 0
    crossed: list[StockCrossing] = field(default_factory=list)


def detect_crossing(ingredient_id: str, name: str, previous: Decimal, current: Decimal,
                    threshold: Decimal) -> Optional[StockCrossing]:
    """A crossing is reported once, on the movement that goes over the line."""
    if previous > 0 >= current:
        alert = AlertType.OUT_OF_STOCK
    elif threshold > 0 and previous > threshold >= current:
        alert = AlertType.LOW_STOCK
    else:
        return None
    return StockCrossing(ingredient_id, name, previous, current, threshold, alert)


def stock_status(current: Decimal, threshold: Decimal) -> str:
    if current <= 0:
        return "out"
    if threshold > 0 and current <= threshold:
        return "low"
    return "ok"


class InventoryService:
    def __init__(self, db: Session):
        self.db = db

    def _apply_delta(self, tenant_id: str, ingredient_id: str, delta: Decimal):
        """current_stock += delta in one statement; returns (name, new, threshold) or None."""
        stmt = (
            update(Ingredient)
            .where(
                Ingredient.id == ingredient_id,
                Ingredient.tenant_id == tenant_id,
                Ingredient.deleted_at.is_(None),
            )
            .values(current_stock=Ingredient.current_stock + delta)
            .returning(Ingredient.name, Ingredient.current_stock, Ingredient.min_stock_alert)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).first()

    # ── order destock ────────────────────────────────────────────────────────
    def destock_order(self, tenant_id: str, order_id: str,
                      lines: Iterable[tuple[str, int]]) -> DestockResult:
        """
        Decrement every ingredient used by the order's recipes.

        `lines` are (menu_item_id, quantity) pairs. Items without a recipe are
        ignored. Stock may go negative; the movement ledger keeps the truth.
        """
        servings: dict[str, int] = defaultdict(int)
        for menu_item_id, quantity in lines:
            servings[menu_item_id] += int(quantity)
        result = DestockResult()
        if not servings:
            return result

        recipes = (
            self.db.query(Recipe)
            .filter(
                Recipe.tenant_id == tenant_id,
                Recipe.menu_item_id.in_(servings.keys()),
                Recipe.deleted_at.is_(None),
            )
            .all()
        )
        usage: dict[str, Decimal] = defaultdict(Decimal)
        for r in recipes:
            usage[r.ingredient_id] += Decimal(r.quantity_needed) * servings[r.menu_item_id]

        # fixed order keeps concurrent destocks from deadlocking on row locks
        for ingredient_id in sorted(usage):
            delta = usage[ingredient_id]
            row = self._apply_delta(tenant_id, ingredient_id, -delta)
            if row is None:
                continue
            name, current, threshold = row
            current = Decimal(current)
            self.db.add(StockMovement(
                tenant_id=tenant_id,
                ingredient_id=ingredient_id,
                movement_type=MovementType.ORDER_DESTOCK,
                quantity=-delta,
                order_id=order_id,
            ))
            result.decremented += 1
            crossing = detect_crossing(
                ingredient_id, name, current + delta, current, Decimal(threshold or 0),
            )
            if crossing:
                result.crossed.append(crossing)

        self.db.commit()
        if result.crossed:
            logger.info(
                "stock thresholds crossed",
                extra={"tenant_id": tenant_id, "order_id": order_id,
                       "ingredients": [c.ingredient_id for c in result.crossed]},
            )
        return result

    # ── admin ────────────────────────────────────────────────────────────────
    def create_ingredient(self, tenant_id: str, data: IngredientIn) -> Ingredient:
        ing = Ingredient(tenant_id=tenant_id, **data.model_dump())
        self.db.add(ing)
        self.db.flush()
        if data.current_stock:
            self.db.add(StockMovement(
                tenant_id=tenant_id,
                ingredient_id=ing.id,
                movement_type=MovementType.OPENING,
                quantity=data.current_stock,
                notes="Stock initial",
            ))
        self.db.commit()
        self.db.refresh(ing)
        return ing

    def _get_ingredient(self, tenant_id: str, ingredient_id: str) -> Ingredient:
        ing = self.db.get(Ingredient, ingredient_id)
        if not ing or ing.tenant_id != tenant_id or ing.deleted_at is not None:
            raise ServiceError("Ingrédient non trouvé", ErrorKind.NOT_FOUND)
        return ing

    def set_recipe(self, tenant_id: str, data: RecipeIn) -> list[Recipe]:
        """Replace the whole recipe of a menu item."""
        item = self.db.get(MenuItem, data.menu_item_id)
        if not item or item.tenant_id != tenant_id or item.deleted_at is not None:
            raise ServiceError("Article non trouvé", ErrorKind.NOT_FOUND)

        seen = set()
        for line in data.lines:
            if line.ingredient_id in seen:
                raise ServiceError("Ingrédient en double dans la recette", ErrorKind.VALIDATION)
            seen.add(line.ingredient_id)
            self._get_ingredient(tenant_id, line.ingredient_id)

        self.db.query(Recipe).filter(
            Recipe.tenant_id == tenant_id, Recipe.menu_item_id == data.menu_item_id
        ).delete(synchronize_session="fetch")
        rows = [
            Recipe(
                tenant_id=tenant_id,
                menu_item_id=data.menu_item_id,
                ingredient_id=line.ingredient_id,
                quantity_needed=line.quantity_needed,
                notes=line.notes,
            )
            for line in data.lines
        ]
        self.db.add_all(rows)
        self.db.commit()
        return rows

    def adjust_stock(self, tenant_id: str, data: AdjustStockIn) -> tuple[Decimal, Optional[StockCrossing]]:
        if data.quantity <= 0:
            raise ServiceError("La quantité doit être positive", ErrorKind.VALIDATION)
        self._get_ingredient(tenant_id, data.ingredient_id)

        movement_type = MovementType(data.movement_type)
        delta = data.quantity if movement_type in INBOUND else -data.quantity
        name, current, threshold = self._apply_delta(tenant_id, data.ingredient_id, delta)
        current = Decimal(current)
        self.db.add(StockMovement(
            tenant_id=tenant_id,
            ingredient_id=data.ingredient_id,
            movement_type=movement_type,
            quantity=delta,
            notes=data.notes,
        ))
        self.db.commit()
        crossing = detect_crossing(
            data.ingredient_id, name, current - delta, current, Decimal(threshold or 0),
        )
        return current, crossing

    def get_stock_status(self, tenant_id: str) -> list[StockStatusOut]:
        rows = (
            self.db.query(Ingredient)
            .filter(
                Ingredient.tenant_id == tenant_id,
                Ingredient.is_active.is_(True),
                Ingredient.deleted_at.is_(None),
            )
            .order_by(Ingredient.name.asc())
            .all()
        )
        return [
            StockStatusOut(
                ingredient_id=ing.id,
                name=ing.name,
                unit=ing.unit,
                current_stock=float(ing.current_stock or 0),
                min_stock_alert=float(ing.min_stock_alert or 0),
                status=stock_status(Decimal(ing.current_stock or 0), Decimal(ing.min_stock_alert or 0)),
            )
            for ing in rows
        ]

    def get_stock_movements(self, tenant_id: str, ingredient_id: Optional[str] = None,
                            limit: int = 100) -> list[StockMovement]:
        q = self.db.query(StockMovement).filter(StockMovement.tenant_id == tenant_id)
        if ingredient_id:
            q = q.filter(StockMovement.ingredient_id == ingredient_id)
        return q.order_by(StockMovement.created_at.desc()).limit(limit).all()
