from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, Literal

DiscountTypeLiteral = Literal["percentage", "fixed"]


class CouponOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    code: str
    discount_type: DiscountTypeLiteral
    discount_value: int
    min_order_amount: int = 0
    max_discount_amount: Optional[int] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    max_uses: Optional[int] = None
    current_uses: int = 0
    is_active: bool = True

    @field_validator("discount_type", mode="before")
    @classmethod
    def _enum_value(cls, v):
        return getattr(v, "value", v)


class CouponValidationResult(BaseModel):
    valid: bool
    discount_amount: int = Field(default=0, serialization_alias="discountAmount")
    error: Optional[str] = None
    coupon: Optional[CouponOut] = None


class CouponValidateIn(BaseModel):
    code: Optional[str] = None
    tenant_id: Optional[str] = Field(default=None, alias="tenantId")
    subtotal: int = 0


class CouponCreateIn(BaseModel):
    code: str = Field(min_length=2, max_length=50)
    discount_type: DiscountTypeLiteral
    discount_value: int = Field(gt=0, le=999999)
    min_order_amount: int = Field(default=0, ge=0)
    max_discount_amount: Optional[int] = Field(default=None, ge=0)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    max_uses: Optional[int] = Field(default=None, gt=0)
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def _normalise(cls, v: str) -> str:
        return v.upper().strip()
