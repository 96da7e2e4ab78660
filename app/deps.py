from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from sqlalchemy.orm import Session
from app.config import settings
from app.db import get_db
from app.services.coupons import CouponService
from app.services.errors import ErrorKind, ServiceError
from app.services.inventory import InventoryService
from app.services.orders import OrderService
from app.util.rate_limit import FixedWindowLimiter, order_limiter
from app.util.security import decode_token

auth_scheme = HTTPBearer(auto_error=False)


def require_claims(creds: HTTPAuthorizationCredentials | None = Depends(auth_scheme)) -> dict:
    if not creds:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        return decode_token(creds.credentials)
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def require_tenant(claims: dict = Depends(require_claims)) -> str:
    # admin tokens are always scoped to exactly one restaurant
    tenant_id = claims.get("tenant_id")
    if not tenant_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Token has no tenant")
    return tenant_id


def resolve_tenant_slug(request: Request) -> str:
    """Tenant routing header, set by the edge from the storefront's subdomain."""
    slug = (request.headers.get(settings.TENANT_HEADER) or "").strip()
    if not slug:
        raise ServiceError("Tenant non identifié", ErrorKind.VALIDATION)
    return slug


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db)


def get_coupon_service(db: Session = Depends(get_db)) -> CouponService:
    return CouponService(db)


def get_inventory_service(db: Session = Depends(get_db)) -> InventoryService:
    return InventoryService(db)


def get_order_limiter() -> FixedWindowLimiter:
    return order_limiter
