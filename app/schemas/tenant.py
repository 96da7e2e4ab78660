from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class TenantRef(BaseModel):
    """Minimal identity handed to every stage after tenant validation."""
    model_config = ConfigDict(frozen=True)

    id: str
    slug: str


class TenantFiscalConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    currency: str = "XAF"
    enable_tax: bool = False
    tax_rate: float = Field(default=0, ge=0, le=1)
    enable_service_charge: bool = False
    service_charge_rate: float = Field(default=0, ge=0, le=1)
    subscription_plan: Optional[str] = None
    subscription_status: Optional[str] = None
    trial_ends_at: Optional[datetime] = None
