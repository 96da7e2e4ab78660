import re
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError
from typing import Optional, Literal

ServiceTypeLiteral = Literal["dine_in", "takeaway", "delivery", "room_service"]
CourseLiteral = Literal["appetizer", "main", "dessert", "drink"]

_UUID_RE = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")

MAX_ITEMS = 50
MAX_QUANTITY = 100


def _max_len(value: Optional[str], limit: int, message: str) -> Optional[str]:
    if value is not None and len(value) > limit:
        raise PydanticCustomError("string_too_long", message)
    return value


def _non_negative(value: float, message: str) -> float:
    if value < 0:
        raise PydanticCustomError("greater_than_equal", message)
    return value


def _json_number(value, message: str):
    # JSON numbers only: no numeric strings, no booleans
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PydanticCustomError("float_type", message)
    return value


# ── Order intake (storefront payload) ──────────────────────────────────────
class OptionIn(BaseModel):
    name_fr: str
    name_en: Optional[str] = None

    @field_validator("name_fr")
    @classmethod
    def _name_fr(cls, v: str) -> str:
        if not v:
            raise PydanticCustomError("string_too_short", "Le nom de l'option est requis")
        return _max_len(v, 200, "Le nom de l'option ne doit pas dépasser 200 caractères")


class VariantIn(OptionIn):
    price: float = Field(strict=True, allow_inf_nan=False)

    @field_validator("price", mode="before")
    @classmethod
    def _price_is_number(cls, v):
        return _json_number(v, "Le prix de la variante doit être un nombre")

    @field_validator("price")
    @classmethod
    def _price(cls, v: float) -> float:
        return _non_negative(v, "Le prix de la variante doit être positif")


class ModifierIn(BaseModel):
    name: str
    price: float = Field(strict=True, allow_inf_nan=False)

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        if not v:
            raise PydanticCustomError("string_too_short", "Le nom du supplément est requis")
        return _max_len(v, 200, "Le nom du supplément ne doit pas dépasser 200 caractères")

    @field_validator("price", mode="before")
    @classmethod
    def _price_is_number(cls, v):
        return _json_number(v, "Le prix du supplément doit être un nombre")

    @field_validator("price")
    @classmethod
    def _price(cls, v: float) -> float:
        return _non_negative(v, "Le prix du supplément doit être positif")


class OrderItemIn(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    name: str
    name_en: Optional[str] = None
    price: float = Field(strict=True, allow_inf_nan=False)  # as shown to the customer, display/comparison only
    quantity: int = Field(strict=True)
    category_name: Optional[str] = None
    selected_option: Optional[OptionIn] = Field(default=None, alias="selectedOption")
    selected_variant: Optional[VariantIn] = Field(default=None, alias="selectedVariant")
    modifiers: Optional[list[ModifierIn]] = None
    customer_notes: Optional[str] = Field(default=None, alias="customerNotes")
    course: Optional[CourseLiteral] = None

    @field_validator("id")
    @classmethod
    def _id(cls, v: str) -> str:
        if not _UUID_RE.match(v):
            raise PydanticCustomError("uuid_parsing", "Identifiant d'article invalide")
        return v

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        if not v:
            raise PydanticCustomError("string_too_short", "Le nom est requis")
        return _max_len(v, 200, "Le nom ne doit pas dépasser 200 caractères")

    @field_validator("name_en", "category_name")
    @classmethod
    def _short_text(cls, v: Optional[str]) -> Optional[str]:
        return _max_len(v, 200, "Le texte ne doit pas dépasser 200 caractères")

    @field_validator("price", mode="before")
    @classmethod
    def _price_is_number(cls, v):
        return _json_number(v, "Le prix doit être un nombre")

    @field_validator("price")
    @classmethod
    def _price(cls, v: float) -> float:
        return _non_negative(v, "Le prix doit être positif")

    @field_validator("quantity", mode="before")
    @classmethod
    def _quantity_is_integer(cls, v):
        _json_number(v, "La quantité doit être un entier")
        if isinstance(v, float):
            if not v.is_integer():
                raise PydanticCustomError("int_type", "La quantité doit être un entier")
            # 2.0 is a JSON integer
            return int(v)
        return v

    @field_validator("quantity")
    @classmethod
    def _quantity_range(cls, v: int) -> int:
        if v < 1:
            raise PydanticCustomError("greater_than_equal", "La quantité minimum est 1")
        if v > MAX_QUANTITY:
            raise PydanticCustomError("less_than_equal", "La quantité maximum est 100")
        return v

    @field_validator("modifiers")
    @classmethod
    def _modifiers(cls, v: Optional[list[ModifierIn]]) -> Optional[list[ModifierIn]]:
        if v is not None and len(v) > 20:
            raise PydanticCustomError("too_long", "Maximum 20 suppléments par article")
        return v

    @field_validator("customer_notes")
    @classmethod
    def _customer_notes(cls, v: Optional[str]) -> Optional[str]:
        return _max_len(v, 500, "Les remarques ne doivent pas dépasser 500 caractères")

    def variant_info(self) -> Optional[str]:
        """Option / variant descriptor kept on the order line."""
        if self.selected_option:
            info = self.selected_option.name_fr
            if self.selected_variant:
                info += " - " + self.selected_variant.name_fr
            return info
        if self.selected_variant:
            return self.selected_variant.name_fr
        return None


class CreateOrderIn(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    items: list[OrderItemIn]
    notes: Optional[str] = None
    table_number: Optional[str] = Field(default=None, alias="tableNumber")
    customer_name: Optional[str] = Field(default=None, alias="customerName")
    customer_phone: Optional[str] = Field(default=None, alias="customerPhone")
    service_type: ServiceTypeLiteral = "dine_in"
    room_number: Optional[str] = None
    delivery_address: Optional[str] = None
    coupon_code: Optional[str] = None

    @field_validator("items")
    @classmethod
    def _items(cls, v: list[OrderItemIn]) -> list[OrderItemIn]:
        if len(v) == 0:
            raise PydanticCustomError("too_short", "Le panier ne peut pas être vide")
        if len(v) > MAX_ITEMS:
            raise PydanticCustomError("too_long", "Maximum 50 articles par commande")
        return v

    @field_validator("notes")
    @classmethod
    def _notes(cls, v: Optional[str]) -> Optional[str]:
        return _max_len(v, 500, "Les notes ne doivent pas dépasser 500 caractères")

    @field_validator("table_number")
    @classmethod
    def _table_number(cls, v: Optional[str]) -> Optional[str]:
        return _max_len(v, 10, "Le numéro de table ne doit pas dépasser 10 caractères")

    @field_validator("customer_name")
    @classmethod
    def _customer_name(cls, v: Optional[str]) -> Optional[str]:
        return _max_len(v, 100, "Le nom ne doit pas dépasser 100 caractères")

    @field_validator("customer_phone", "room_number")
    @classmethod
    def _short_codes(cls, v: Optional[str]) -> Optional[str]:
        return _max_len(v, 20, "Ce champ ne doit pas dépasser 20 caractères")

    @field_validator("delivery_address")
    @classmethod
    def _delivery_address(cls, v: Optional[str]) -> Optional[str]:
        return _max_len(v, 500, "L'adresse ne doit pas dépasser 500 caractères")

    @field_validator("coupon_code")
    @classmethod
    def _coupon_code(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return _max_len(v, 50, "Le code promo ne doit pas dépasser 50 caractères")


# ── Pricing ─────────────────────────────────────────────────────────────────
class PricingBreakdown(BaseModel):
    """Amounts in minor currency units. Built once per request, never mutated."""
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    subtotal: int
    tax_amount: int
    service_charge_amount: int
    discount_amount: int
    total: int

    def as_response(self) -> dict:
        return self.model_dump(by_alias=True)
