from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from starlette.concurrency import run_in_threadpool

from app.deps import get_coupon_service, get_order_limiter, get_order_service, resolve_tenant_slug
from app.schemas.common import ERROR_RESPONSES
from app.schemas.orders import CreateOrderIn, PricingBreakdown
from app.schemas.tenant import TenantFiscalConfig
from app.services.coupons import CouponService
from app.services.errors import ErrorKind, ServiceError
from app.services.intake import parse_json_body, validate_order_intake
from app.services.orders import CreatedOrder, NewOrder, OrderService, PricedLine
from app.services.plans import tenant_can_access
from app.services.pricing import calculate_order_total
from app.services.tasks import destock_order, increment_coupon_usage
from app.util.rate_limit import FixedWindowLimiter, client_ip

router = APIRouter(prefix="/api/orders", tags=["orders"], responses=ERROR_RESPONSES)

RATE_LIMITED_MESSAGE = "Trop de requêtes. Réessayez plus tard."
SUCCESS_MESSAGE = "Commande enregistrée avec succès !"


@dataclass(frozen=True)
class PlacedOrder:
    tenant_id: str
    created: CreatedOrder
    pricing: PricingBreakdown
    config: TenantFiscalConfig
    lines: list[PricedLine]
    coupon_id: Optional[str]


def _place_order(orders: OrderService, coupons: CouponService, slug: str, intake: CreateOrderIn) -> PlacedOrder:
    """Tenant -> items -> coupon -> pricing -> persist. Blocking, run off the event loop."""
    tenant = orders.validate_tenant(slug)
    validated = orders.validate_order_items(tenant.id, intake.items)

    discount = 0
    coupon_id = None
    if intake.coupon_code:
        result = coupons.validate_coupon(intake.coupon_code, tenant.id, validated.validated_total)
        if not result.valid:
            raise ServiceError(result.error or "Code promo invalide", ErrorKind.VALIDATION)
        discount = result.discount_amount
        coupon_id = result.coupon.id if result.coupon else None

    config = orders.load_fiscal_config(tenant.id)
    pricing = calculate_order_total(validated.validated_total, config, discount)

    created = orders.create_order_with_items(NewOrder(
        tenant_id=tenant.id,
        intake=intake,
        lines=validated.lines,
        pricing=pricing,
        coupon_id=coupon_id,
    ))
    return PlacedOrder(tenant.id, created, pricing, config, validated.lines, coupon_id)


@router.post("")
async def create_order(
    request: Request,
    background: BackgroundTasks,
    orders: OrderService = Depends(get_order_service),
    coupons: CouponService = Depends(get_coupon_service),
    limiter: FixedWindowLimiter = Depends(get_order_limiter),
):
    """
    Storefront order intake.

    Stages run in a fixed order and the first failure short-circuits: rate
    limit, tenant header, JSON body, schema, then the database-backed stages.
    Coupon usage and destocking are scheduled only once the order is committed.
    """
    if not limiter.check(client_ip(request)).success:
        raise ServiceError(RATE_LIMITED_MESSAGE, ErrorKind.RATE_LIMITED)

    slug = resolve_tenant_slug(request)
    intake = validate_order_intake(parse_json_body(await request.body()))

    placed = await run_in_threadpool(_place_order, orders, coupons, slug, intake)

    # coupon first: a destock failure must not cost the usage count
    if placed.coupon_id:
        background.add_task(increment_coupon_usage, placed.coupon_id)
    if tenant_can_access(placed.config, "inventory_tracking"):
        background.add_task(
            destock_order,
            placed.tenant_id,
            placed.created.order_id,
            [(line.menu_item_id, line.intake.quantity) for line in placed.lines],
            tenant_can_access(placed.config, "stock_alerts"),
        )

    return {
        "success": True,
        "orderId": placed.created.order_id,
        "orderNumber": placed.created.order_number,
        **placed.pricing.as_response(),
        "currency": placed.config.currency,
        "message": SUCCESS_MESSAGE,
    }
