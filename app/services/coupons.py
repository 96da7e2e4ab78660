"""Promo codes: validation against a subtotal, usage counting and admin CRUD."""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.core import Coupon, DiscountType
from app.schemas.coupons import CouponCreateIn, CouponOut, CouponValidationResult
from app.services.errors import ErrorKind, ServiceError
from app.services.pricing import round_minor

logger = logging.getLogger(__name__)

INVALID_CODE = "Code promo invalide"


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _fr_amount(n: int) -> str:
    # 5000 -> "5 000"
    return f"{n:,}".replace(",", " ")


def _invalid(message: str) -> CouponValidationResult:
    return CouponValidationResult(valid=False, discount_amount=0, error=message)


def compute_discount(coupon: Coupon, subtotal: int) -> int:
    if coupon.discount_type == DiscountType.PERCENTAGE:
        amount = round_minor(Decimal(subtotal) * Decimal(coupon.discount_value) / 100)
        if coupon.max_discount_amount is not None:
            amount = min(amount, coupon.max_discount_amount)
    else:
        amount = coupon.discount_value
    return max(0, min(amount, subtotal))


class CouponService:
    def __init__(self, db: Session):
        self.db = db

    def validate_coupon(self, code: Optional[str], tenant_id: str, subtotal: int,
                        now: Optional[datetime] = None) -> CouponValidationResult:
        """
        Check a code for this tenant and subtotal.

        Rules run in a fixed order (existence, active window, tenant, minimum
        subtotal, usage cap); the first failing one decides the message.
        """
        normalized = (code or "").upper().strip()
        if not normalized:
            return _invalid(INVALID_CODE)

        coupon = (
            self.db.query(Coupon)
            .filter(Coupon.code == normalized, Coupon.is_active.is_(True), Coupon.deleted_at.is_(None))
            .order_by(case((Coupon.tenant_id == tenant_id, 0), else_=1))
            .first()
        )
        if not coupon:
            return _invalid(INVALID_CODE)

        now = now or datetime.now(timezone.utc)
        if coupon.valid_from and _aware(coupon.valid_from) > now:
            return _invalid("Ce code n'est pas encore valide")
        if coupon.valid_until and _aware(coupon.valid_until) < now:
            return _invalid("Ce code a expiré")

        if coupon.tenant_id != tenant_id:
            return _invalid(INVALID_CODE)

        if coupon.min_order_amount and subtotal < coupon.min_order_amount:
            return _invalid(f"Commande minimum de {_fr_amount(coupon.min_order_amount)} requise")

        if coupon.max_uses is not None and coupon.current_uses >= coupon.max_uses:
            return _invalid("Ce code a atteint sa limite d'utilisation")

        return CouponValidationResult(
            valid=True,
            discount_amount=compute_discount(coupon, subtotal),
            coupon=CouponOut.model_validate(coupon),
        )

    def increment_usage(self, coupon_id: str) -> None:
        # single statement, concurrent orders never lose an increment
        self.db.execute(
            update(Coupon)
            .where(Coupon.id == coupon_id)
            .values(current_uses=Coupon.current_uses + 1)
        )
        self.db.commit()

    def list_coupons(self, tenant_id: str) -> list[Coupon]:
        return (
            self.db.query(Coupon)
            .filter(Coupon.tenant_id == tenant_id, Coupon.deleted_at.is_(None))
            .order_by(Coupon.code.asc())
            .all()
        )

    def create_coupon(self, tenant_id: str, data: CouponCreateIn) -> Coupon:
        if data.valid_from and data.valid_until and _aware(data.valid_until) <= _aware(data.valid_from):
            raise ServiceError("La date de fin doit suivre la date de début", ErrorKind.VALIDATION)
        if data.discount_type == "percentage" and data.discount_value > 100:
            raise ServiceError("Le pourcentage ne peut pas dépasser 100", ErrorKind.VALIDATION)

        existing = (
            self.db.query(Coupon)
            .filter(Coupon.tenant_id == tenant_id, Coupon.code == data.code)
            .first()
        )
        if existing and existing.deleted_at is None:
            raise ServiceError("Ce code promo existe déjà", ErrorKind.CONFLICT)

        values = data.model_dump()
        values["discount_type"] = DiscountType(values["discount_type"])
        if existing:
            # code was deleted earlier; reuse its row under the unique constraint
            for k, v in values.items():
                setattr(existing, k, v)
            existing.current_uses = 0
            existing.deleted_at = None
            coupon = existing
        else:
            coupon = Coupon(tenant_id=tenant_id, **values)
            self.db.add(coupon)

        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ServiceError("Ce code promo existe déjà", ErrorKind.CONFLICT) from exc
        self.db.refresh(coupon)
        logger.info("coupon created", extra={"tenant_id": tenant_id, "coupon_id": coupon.id})
        return coupon

    def delete_coupon(self, coupon_id: str, tenant_id: str) -> None:
        coupon = self.db.get(Coupon, coupon_id)
        if not coupon or coupon.tenant_id != tenant_id or coupon.deleted_at is not None:
            raise ServiceError("Code promo non trouvé", ErrorKind.NOT_FOUND)
        coupon.deleted_at = datetime.now(timezone.utc)
        coupon.is_active = False
        self.db.commit()
