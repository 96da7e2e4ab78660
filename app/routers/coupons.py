from fastapi import APIRouter, Depends

from app.deps import get_coupon_service, require_tenant
from app.schemas.common import ERROR_RESPONSES
from app.schemas.coupons import CouponCreateIn, CouponOut, CouponValidateIn
from app.services.coupons import CouponService
from app.services.errors import ErrorKind, ServiceError

router = APIRouter(prefix="/api/coupons", tags=["coupons"], responses=ERROR_RESPONSES)


@router.post("/validate")
def validate_coupon(body: CouponValidateIn, coupons: CouponService = Depends(get_coupon_service)):
    """Cart preview. Never consumes a use; the order pipeline re-validates."""
    if not body.code or not body.tenant_id:
        raise ServiceError("Code promo et restaurant requis", ErrorKind.VALIDATION)
    result = coupons.validate_coupon(body.code, body.tenant_id, body.subtotal)
    return result.model_dump(by_alias=True, exclude_none=True)


@router.get("", response_model=list[CouponOut])
def list_coupons(tenant_id: str = Depends(require_tenant), coupons: CouponService = Depends(get_coupon_service)):
    return coupons.list_coupons(tenant_id)


@router.post("", response_model=CouponOut, status_code=201)
def create_coupon(
    body: CouponCreateIn,
    tenant_id: str = Depends(require_tenant),
    coupons: CouponService = Depends(get_coupon_service),
):
    return coupons.create_coupon(tenant_id, body)


@router.delete("/{coupon_id}")
def delete_coupon(
    coupon_id: str,
    tenant_id: str = Depends(require_tenant),
    coupons: CouponService = Depends(get_coupon_service),
):
    coupons.delete_coupon(coupon_id, tenant_id)
    return {"ok": True, "id": coupon_id}
