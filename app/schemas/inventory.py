from decimal import Decimal
from pydantic import BaseModel, Field
from typing import Optional, Literal

AdjustMovementLiteral = Literal["manual_add", "manual_remove", "opening", "waste"]


class IngredientIn(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    unit: str = Field(min_length=1, max_length=20)
    current_stock: Decimal = Decimal(0)
    min_stock_alert: Decimal = Field(default=Decimal(0), ge=0)
    cost_per_unit: int = Field(default=0, ge=0)
    category: Optional[str] = None


class RecipeLineIn(BaseModel):
    ingredient_id: str
    quantity_needed: Decimal = Field(gt=0)
    notes: Optional[str] = None


class RecipeIn(BaseModel):
    menu_item_id: str
    lines: list[RecipeLineIn] = []


class AdjustStockIn(BaseModel):
    ingredient_id: str
    movement_type: AdjustMovementLiteral
    quantity: Decimal
    notes: Optional[str] = None


class StockStatusOut(BaseModel):
    ingredient_id: str
    name: str
    unit: str
    current_stock: float
    min_stock_alert: float
    status: Literal["ok", "low", "out"]
