from sqlalchemy import (
    String, ForeignKey, Boolean, Numeric, Enum, Text, DateTime, Date, Integer, JSON, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column
from enum import Enum as PyEnum
from datetime import datetime, date
from decimal import Decimal
from app.db import Base
from app.models.common import IdMixin, TSMMixin

# ── Enums ───────────────────────────────────────────────────────────────────
class ServiceType(PyEnum):
    DINE_IN = "dine_in"
    TAKEAWAY = "takeaway"
    DELIVERY = "delivery"
    ROOM_SERVICE = "room_service"

class OrderStatus(PyEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

class PaymentStatus(PyEnum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"

class DiscountType(PyEnum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"

class MovementType(PyEnum):
    ORDER_DESTOCK = "order_destock"
    MANUAL_ADD = "manual_add"
    MANUAL_REMOVE = "manual_remove"
    OPENING = "opening"
    WASTE = "waste"

class AlertType(PyEnum):
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"

# ── Tenants ─────────────────────────────────────────────────────────────────
class Tenant(Base, IdMixin, TSMMixin):
    __tablename__ = "tenant"
    slug: Mapped[str] = mapped_column(String(80), unique=True)
    name: Mapped[str] = mapped_column(String(160))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    # fiscal config, rates are fractions in [0, 1]
    currency: Mapped[str] = mapped_column(String(3), default="XAF")
    enable_tax: Mapped[bool] = mapped_column(Boolean, default=False)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), default=0)
    enable_service_charge: Mapped[bool] = mapped_column(Boolean, default=False)
    service_charge_rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), default=0)
    # billing
    subscription_plan: Mapped[str | None] = mapped_column(String(20), default="essentiel")  # essentiel | premium | enterprise
    subscription_status: Mapped[str | None] = mapped_column(String(20), default="active")  # trial | active | past_due | cancelled | paused
    trial_ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

# ── Menu (read-only to the order pipeline) ──────────────────────────────────
class MenuItem(Base, IdMixin, TSMMixin):
    __tablename__ = "menu_item"
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenant.id"), index=True)
    name: Mapped[str] = mapped_column(String(200))
    name_en: Mapped[str | None] = mapped_column(String(200))
    price: Mapped[int] = mapped_column(Integer)  # minor units
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)

class ItemVariant(Base, IdMixin, TSMMixin):
    __tablename__ = "item_variant"
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("menu_item.id"), index=True)
    name_fr: Mapped[str] = mapped_column(String(200))
    name_en: Mapped[str | None] = mapped_column(String(200))
    price: Mapped[int] = mapped_column(Integer)

class ItemModifier(Base, IdMixin, TSMMixin):
    __tablename__ = "item_modifier"
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("menu_item.id"), index=True)
    name: Mapped[str] = mapped_column(String(200))
    price: Mapped[int] = mapped_column(Integer, default=0)

# ── Orders ──────────────────────────────────────────────────────────────────
class Order(Base, IdMixin, TSMMixin):
    __tablename__ = "orders"
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenant.id"), index=True)
    order_number: Mapped[str] = mapped_column(String(40))
    status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus), default=OrderStatus.PENDING)
    service_type: Mapped[ServiceType] = mapped_column(Enum(ServiceType), default=ServiceType.DINE_IN)
    table_number: Mapped[str | None] = mapped_column(String(10))
    customer_name: Mapped[str | None] = mapped_column(String(100))
    customer_phone: Mapped[str | None] = mapped_column(String(20))
    room_number: Mapped[str | None] = mapped_column(String(20))
    delivery_address: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    subtotal: Mapped[int] = mapped_column(Integer, default=0)
    tax_amount: Mapped[int] = mapped_column(Integer, default=0)
    service_charge_amount: Mapped[int] = mapped_column(Integer, default=0)
    discount_amount: Mapped[int] = mapped_column(Integer, default=0)
    total: Mapped[int] = mapped_column(Integer)
    payment_status: Mapped[PaymentStatus] = mapped_column(Enum(PaymentStatus), default=PaymentStatus.PENDING)
    coupon_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("coupon.id"))
    __table_args__ = (
        UniqueConstraint("tenant_id", "order_number", name="uq_orders_tenant_number"),
    )

class OrderItem(Base, IdMixin, TSMMixin):
    __tablename__ = "order_item"
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("orders.id"), index=True)
    menu_item_id: Mapped[str] = mapped_column(String(36), ForeignKey("menu_item.id"))
    item_name: Mapped[str] = mapped_column(String(200))
    item_name_en: Mapped[str | None] = mapped_column(String(200))
    quantity: Mapped[int] = mapped_column(Integer)
    price_at_order: Mapped[int] = mapped_column(Integer)  # trusted unit price, decoupled from the live menu
    notes: Mapped[str | None] = mapped_column(Text)  # "option - variant"
    customer_notes: Mapped[str | None] = mapped_column(Text)
    modifiers: Mapped[list] = mapped_column(JSON, default=list)
    course: Mapped[str | None] = mapped_column(String(20))
    item_status: Mapped[str] = mapped_column(String(20), default="pending")

class OrderSequence(Base):
    """Per tenant, per day counter behind the human readable order number."""
    __tablename__ = "order_sequence"
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenant.id"), primary_key=True)
    day: Mapped[date] = mapped_column(Date, primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, default=0)

# ── Coupons ─────────────────────────────────────────────────────────────────
class Coupon(Base, IdMixin, TSMMixin):
    __tablename__ = "coupon"
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenant.id"), index=True)
    code: Mapped[str] = mapped_column(String(50))
    discount_type: Mapped[DiscountType] = mapped_column(Enum(DiscountType))
    discount_value: Mapped[int] = mapped_column(Integer)  # percent for PERCENTAGE, minor units for FIXED
    min_order_amount: Mapped[int] = mapped_column(Integer, default=0)
    max_discount_amount: Mapped[int | None] = mapped_column(Integer)
    valid_from: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    valid_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    max_uses: Mapped[int | None] = mapped_column(Integer)
    current_uses: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_coupon_tenant_code"),
    )

# ── Inventory ───────────────────────────────────────────────────────────────
class Ingredient(Base, IdMixin, TSMMixin):
    __tablename__ = "ingredient"
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenant.id"), index=True)
    name: Mapped[str] = mapped_column(String(160))
    unit: Mapped[str] = mapped_column(String(20))  # e.g. g, kg, ml, l, pcs
    current_stock: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0)
    min_stock_alert: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0)
    cost_per_unit: Mapped[int] = mapped_column(Integer, default=0)
    category: Mapped[str | None] = mapped_column(String(80))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

class Recipe(Base, TSMMixin):
    __tablename__ = "recipe"
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenant.id"))
    menu_item_id: Mapped[str] = mapped_column(String(36), ForeignKey("menu_item.id"), primary_key=True)
    ingredient_id: Mapped[str] = mapped_column(String(36), ForeignKey("ingredient.id"), primary_key=True)
    quantity_needed: Mapped[Decimal] = mapped_column(Numeric(12, 3))  # per serving
    notes: Mapped[str | None] = mapped_column(Text)

class StockMovement(Base, IdMixin, TSMMixin):
    __tablename__ = "stock_movement"
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenant.id"), index=True)
    ingredient_id: Mapped[str] = mapped_column(String(36), ForeignKey("ingredient.id"))
    movement_type: Mapped[MovementType] = mapped_column(Enum(MovementType))
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3))  # signed
    order_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("orders.id"))
    notes: Mapped[str | None] = mapped_column(Text)

class StockAlertNotification(Base, IdMixin, TSMMixin):
    __tablename__ = "stock_alert_notification"
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenant.id"), index=True)
    ingredient_id: Mapped[str] = mapped_column(String(36), ForeignKey("ingredient.id"))
    alert_type: Mapped[AlertType] = mapped_column(Enum(AlertType))
    sent_to: Mapped[str | None] = mapped_column(String(400))
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
