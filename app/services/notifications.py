"""Low-stock notifications.

Events go to STOCK_ALERT_WEBHOOK_URL as JSON; without a webhook they are only
logged. Every ingredient is notified at most once per cooldown window.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import httpx
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.config import settings
from app.models.core import AlertType, Ingredient, StockAlertNotification

logger = logging.getLogger(__name__)


def _alert_type(ing: Ingredient) -> AlertType:
    return AlertType.OUT_OF_STOCK if (ing.current_stock or 0) <= 0 else AlertType.LOW_STOCK


def check_and_notify_low_stock(
    db: Session,
    tenant_id: str,
    ingredient_ids: Optional[Iterable[str]] = None,
    now: Optional[datetime] = None,
    client: Optional[httpx.Client] = None,
) -> list[StockAlertNotification]:
    now = now or datetime.now(timezone.utc)

    q = db.query(Ingredient).filter(
        Ingredient.tenant_id == tenant_id,
        Ingredient.is_active.is_(True),
        Ingredient.deleted_at.is_(None),
        or_(Ingredient.current_stock <= 0, Ingredient.current_stock <= Ingredient.min_stock_alert),
    )
    if ingredient_ids is not None:
        q = q.filter(Ingredient.id.in_(list(ingredient_ids)))
    low = q.order_by(Ingredient.name.asc()).all()
    if not low:
        return []

    cutoff = now - timedelta(minutes=settings.STOCK_ALERT_COOLDOWN_MIN)
    recent = {
        row[0]
        for row in db.query(StockAlertNotification.ingredient_id).filter(
            StockAlertNotification.tenant_id == tenant_id,
            StockAlertNotification.sent_at >= cutoff,
        )
    }
    pending = [ing for ing in low if ing.id not in recent]
    if not pending:
        return []

    target = settings.STOCK_ALERT_WEBHOOK_URL
    payload = {
        "event": "low_stock",
        "tenant_id": tenant_id,
        "sent_at": now.isoformat(),
        "ingredients": [
            {
                "id": ing.id,
                "name": ing.name,
                "unit": ing.unit,
                "current_stock": float(ing.current_stock or 0),
                "min_stock_alert": float(ing.min_stock_alert or 0),
                "alert_type": _alert_type(ing).value,
            }
            for ing in pending
        ],
    }

    if target:
        if client is None:
            with httpx.Client(timeout=10.0) as c:
                c.post(target, json=payload).raise_for_status()
        else:
            client.post(target, json=payload).raise_for_status()
    else:
        logger.warning(
            "low stock: %s", ", ".join(ing.name for ing in pending),
            extra={"tenant_id": tenant_id},
        )

    rows = [
        StockAlertNotification(
            tenant_id=tenant_id,
            ingredient_id=ing.id,
            alert_type=_alert_type(ing),
            sent_to=target or "log",
            sent_at=now,
        )
        for ing in pending
    ]
    db.add_all(rows)
    db.commit()
    return rows
