"""Order service: tenant eligibility, server-side item re-validation and
transactional order creation.

Client-submitted prices are only compared against the store, never summed:
the subtotal is always rebuilt from live menu rows.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.core import (
    ItemModifier, ItemVariant, MenuItem, Order, OrderItem, OrderSequence, OrderStatus,
    PaymentStatus, ServiceType, Tenant,
)
from app.schemas.orders import CreateOrderIn, OrderItemIn, PricingBreakdown
from app.schemas.tenant import TenantFiscalConfig, TenantRef
from app.services.errors import ErrorKind, ServiceError
from app.services.plans import is_subscription_usable

logger = logging.getLogger(__name__)

PRICE_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class PricedLine:
    intake: OrderItemIn
    menu_item_id: str
    item_name: str
    item_name_en: Optional[str]
    unit_price: int  # trusted: variant or base price plus store modifier prices

    @property
    def line_total(self) -> int:
        return self.unit_price * self.intake.quantity


@dataclass(frozen=True)
class ValidatedItems:
    validated_total: int
    lines: list[PricedLine]


@dataclass(frozen=True)
class NewOrder:
    tenant_id: str
    intake: CreateOrderIn
    lines: list[PricedLine]
    pricing: PricingBreakdown
    coupon_id: Optional[str] = None


@dataclass(frozen=True)
class CreatedOrder:
    order_id: str
    order_number: str
    total: int


def _price_changed(client_price: float, expected: int) -> bool:
    return abs(Decimal(str(client_price)) - expected) > Decimal(expected) * PRICE_TOLERANCE


class OrderService:
    def __init__(self, db: Session, clock: Callable[[], datetime] | None = None):
        self.db = db
        self._clock = clock or (lambda: datetime.now(ZoneInfo(settings.TZ)))

    # ── stage 1 ──────────────────────────────────────────────────────────────
    def validate_tenant(self, slug: str) -> TenantRef:
        tenant = (
            self.db.query(Tenant)
            .filter(Tenant.slug == slug, Tenant.deleted_at.is_(None))
            .first()
        )
        if not tenant:
            raise ServiceError("Restaurant non trouvé", ErrorKind.NOT_FOUND)
        if not tenant.is_active:
            raise ServiceError("Ce restaurant est temporairement indisponible", ErrorKind.NOT_FOUND)
        if not is_subscription_usable(tenant.subscription_status, tenant.trial_ends_at):
            raise ServiceError(
                "Ce restaurant n'accepte pas de commandes pour le moment", ErrorKind.FORBIDDEN,
            )
        return TenantRef(id=tenant.id, slug=tenant.slug)

    def load_fiscal_config(self, tenant_id: str) -> TenantFiscalConfig:
        tenant = self.db.get(Tenant, tenant_id)
        if not tenant:
            raise ServiceError("Restaurant non trouvé", ErrorKind.NOT_FOUND)
        return TenantFiscalConfig(
            currency=tenant.currency or "XAF",
            enable_tax=bool(tenant.enable_tax),
            tax_rate=float(tenant.tax_rate or 0),
            enable_service_charge=bool(tenant.enable_service_charge),
            service_charge_rate=float(tenant.service_charge_rate or 0),
            subscription_plan=tenant.subscription_plan,
            subscription_status=tenant.subscription_status,
            trial_ends_at=tenant.trial_ends_at,
        )

    # ── stage 2 ──────────────────────────────────────────────────────────────
    def _load_menu(self, tenant_id: str, item_ids: list[str]):
        menu = {
            m.id: m
            for m in self.db.query(MenuItem)
            .filter(MenuItem.tenant_id == tenant_id, MenuItem.id.in_(item_ids))
            .all()
        }
        variants: dict[str, dict[str, ItemVariant]] = defaultdict(dict)
        modifiers: dict[str, dict[str, ItemModifier]] = defaultdict(dict)
        if menu:
            for v in self.db.query(ItemVariant).filter(
                ItemVariant.item_id.in_(menu.keys()), ItemVariant.deleted_at.is_(None)
            ):
                variants[v.item_id][v.name_fr.strip()] = v
            for mod in self.db.query(ItemModifier).filter(
                ItemModifier.item_id.in_(menu.keys()), ItemModifier.deleted_at.is_(None)
            ):
                modifiers[mod.item_id][mod.name.strip()] = mod
        return menu, variants, modifiers

    def validate_order_items(self, tenant_id: str, items: list[OrderItemIn]) -> ValidatedItems:
        """
        Re-resolve every submitted line against the live menu.

        Checks existence, availability, variant / modifier existence and that the
        displayed price is within 1% of the store price. All failures are
        collected into a single VALIDATION error.
        """
        try:
            menu, variants, modifiers = self._load_menu(tenant_id, list({i.id for i in items}))
        except SQLAlchemyError as exc:
            logger.error("menu lookup failed", extra={"tenant_id": tenant_id}, exc_info=True)
            raise ServiceError("Erreur lors de la vérification du menu", ErrorKind.INTERNAL) from exc

        errors: list[str] = []
        lines: list[PricedLine] = []

        for item in items:
            menu_item = menu.get(item.id)

            if menu_item is None or menu_item.deleted_at is not None:
                errors.append(f'Article "{item.name}" non trouvé')
                continue

            if menu_item.is_available is False:
                errors.append(f'"{menu_item.name}" n\'est plus disponible')
                continue

            base_price = menu_item.price
            if item.selected_variant:
                variant = variants[menu_item.id].get(item.selected_variant.name_fr.strip())
                if variant is None:
                    errors.append(
                        f'Variante "{item.selected_variant.name_fr}" de "{menu_item.name}" non disponible'
                    )
                    continue
                base_price = variant.price

            modifiers_total = 0
            missing_modifier = False
            for mod in item.modifiers or []:
                store_mod = modifiers[menu_item.id].get(mod.name.strip())
                if store_mod is None:
                    errors.append(f'Supplément "{mod.name}" de "{menu_item.name}" non disponible')
                    missing_modifier = True
                    continue
                modifiers_total += store_mod.price
            if missing_modifier:
                continue

            if _price_changed(item.price, base_price):
                errors.append(f'Prix de "{menu_item.name}" a changé')
                continue

            lines.append(PricedLine(
                intake=item,
                menu_item_id=menu_item.id,
                item_name=menu_item.name,
                item_name_en=menu_item.name_en or item.name_en,
                unit_price=base_price + modifiers_total,
            ))

        if errors:
            raise ServiceError("Certains articles ne sont plus valides", ErrorKind.VALIDATION, errors)

        validated_total = sum(line.line_total for line in lines)
        if validated_total <= 0:
            raise ServiceError("Le total de la commande doit être supérieur à 0", ErrorKind.VALIDATION)

        return ValidatedItems(validated_total=validated_total, lines=lines)

    # ── stage 3 ──────────────────────────────────────────────────────────────
    def _bump_sequence(self, tenant_id: str, day: date) -> int:
        """Atomic increment-and-read of the (tenant, day) counter."""
        dialect = self.db.get_bind().dialect.name
        if dialect in ("postgresql", "sqlite"):
            insert = pg_insert if dialect == "postgresql" else sqlite_insert
            stmt = (
                insert(OrderSequence)
                .values(tenant_id=tenant_id, day=day, last_value=1)
                .on_conflict_do_update(
                    index_elements=[OrderSequence.tenant_id, OrderSequence.day],
                    set_={"last_value": OrderSequence.last_value + 1},
                )
                .returning(OrderSequence.last_value)
            )
            return self.db.execute(stmt).scalar_one()

        # other backends: row lock inside the surrounding transaction
        seq = self.db.execute(
            select(OrderSequence)
            .where(OrderSequence.tenant_id == tenant_id, OrderSequence.day == day)
            .with_for_update()
        ).scalar_one_or_none()
        if seq is None:
            seq = OrderSequence(tenant_id=tenant_id, day=day, last_value=0)
            self.db.add(seq)
        seq.last_value += 1
        self.db.flush()
        return seq.last_value

    def next_order_number(self, tenant_id: str) -> str:
        """CMD-YYYYMMDD-001, unique per tenant and local day."""
        day = self._clock().date()
        n = self._bump_sequence(tenant_id, day)
        return f"{settings.ORDER_NUMBER_PREFIX}-{day.strftime('%Y%m%d')}-{n:03d}"

    def create_order_with_items(self, new: NewOrder) -> CreatedOrder:
        intake = new.intake
        pricing = new.pricing
        try:
            order_number = self.next_order_number(new.tenant_id)
            order = Order(
                tenant_id=new.tenant_id,
                order_number=order_number,
                status=OrderStatus.PENDING,
                service_type=ServiceType(intake.service_type),
                table_number=intake.table_number or None,
                customer_name=intake.customer_name or None,
                customer_phone=intake.customer_phone or None,
                room_number=intake.room_number or None,
                delivery_address=intake.delivery_address or None,
                notes=intake.notes or None,
                subtotal=pricing.subtotal,
                tax_amount=pricing.tax_amount,
                service_charge_amount=pricing.service_charge_amount,
                discount_amount=pricing.discount_amount,
                total=pricing.total,
                payment_status=PaymentStatus.PENDING,
                coupon_id=new.coupon_id,
            )
            self.db.add(order)
            self.db.flush()
            order_id = order.id

            for line in new.lines:
                self.db.add(OrderItem(
                    order_id=order_id,
                    menu_item_id=line.menu_item_id,
                    item_name=line.item_name,
                    item_name_en=line.item_name_en,
                    quantity=line.intake.quantity,
                    price_at_order=line.unit_price,
                    notes=line.intake.variant_info(),
                    customer_notes=line.intake.customer_notes or None,
                    modifiers=[m.model_dump() for m in line.intake.modifiers or []],
                    course=line.intake.course,
                    item_status="pending",
                ))

            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("order persistence failed", extra={"tenant_id": new.tenant_id}, exc_info=True)
            raise ServiceError("Erreur lors de la création de la commande", ErrorKind.INTERNAL) from exc

        logger.info(
            "order created",
            extra={"tenant_id": new.tenant_id, "order_id": order_id, "order_number": order_number},
        )
        return CreatedOrder(order_id=order_id, order_number=order_number, total=pricing.total)
