from fastapi import APIRouter, BackgroundTasks, Depends, Request

from app.deps import get_order_service, resolve_tenant_slug
from app.schemas.common import ERROR_RESPONSES
from app.services.errors import ErrorKind, ServiceError
from app.services.orders import OrderService
from app.services.plans import tenant_can_access
from app.services.tasks import notify_low_stock

router = APIRouter(prefix="/api/stock-alerts", tags=["stock-alerts"], responses=ERROR_RESPONSES)


@router.post("/check", status_code=202)
def check_stock_alerts(
    request: Request,
    background: BackgroundTasks,
    orders: OrderService = Depends(get_order_service),
):
    """Fire-and-forget low stock sweep for the calling restaurant."""
    tenant = orders.validate_tenant(resolve_tenant_slug(request))
    config = orders.load_fiscal_config(tenant.id)
    if not tenant_can_access(config, "stock_alerts"):
        raise ServiceError("Fonctionnalité non disponible avec votre abonnement", ErrorKind.FORBIDDEN)
    background.add_task(notify_low_stock, tenant.id)
    return {"success": True}
