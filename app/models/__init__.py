# Importing the module registers tables with Base for create_all()
from .core import (  # noqa: F401
    # Enums
    ServiceType, OrderStatus, PaymentStatus, DiscountType, MovementType, AlertType,

    # Tenants
    Tenant,

    # Menu
    MenuItem, ItemVariant, ItemModifier,

    # Orders
    Order, OrderItem, OrderSequence,

    # Coupons
    Coupon,

    # Inventory
    Ingredient, Recipe, StockMovement, StockAlertNotification,
)

# Optional: make star-imports predictable
__all__ = [
    # Enums
    "ServiceType", "OrderStatus", "PaymentStatus", "DiscountType", "MovementType", "AlertType",

    # Tenants
    "Tenant",

    # Menu
    "MenuItem", "ItemVariant", "ItemModifier",

    # Orders
    "Order", "OrderItem", "OrderSequence",

    # Coupons
    "Coupon",

    # Inventory
    "Ingredient", "Recipe", "StockMovement", "StockAlertNotification",
]
