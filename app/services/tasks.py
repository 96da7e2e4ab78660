"""Side effects scheduled after an order is persisted.

Each task owns its session and never raises: a failing Starlette background
task would stop the ones queued after it, and the order is already accepted.
"""
import logging

from app.db import SessionLocal
from app.services.coupons import CouponService
from app.services.inventory import InventoryService
from app.services.notifications import check_and_notify_low_stock

logger = logging.getLogger(__name__)


def increment_coupon_usage(coupon_id: str) -> None:
    db = SessionLocal()
    try:
        CouponService(db).increment_usage(coupon_id)
    except Exception:
        db.rollback()
        logger.exception("coupon usage increment failed", extra={"coupon_id": coupon_id})
    finally:
        db.close()


def destock_order(tenant_id: str, order_id: str, lines: list[tuple[str, int]],
                  stock_alerts: bool = False) -> None:
    db = SessionLocal()
    try:
        result = InventoryService(db).destock_order(tenant_id, order_id, lines)
        if stock_alerts and result.crossed:
            check_and_notify_low_stock(db, tenant_id, [c.ingredient_id for c in result.crossed])
    except Exception:
        db.rollback()
        logger.exception("destock failed", extra={"tenant_id": tenant_id, "order_id": order_id})
    finally:
        db.close()


def notify_low_stock(tenant_id: str) -> None:
    db = SessionLocal()
    try:
        check_and_notify_low_stock(db, tenant_id)
    except Exception:
        db.rollback()
        logger.exception("low stock notification failed", extra={"tenant_id": tenant_id})
    finally:
        db.close()
