"""Subscription plans and the features this service gates on them."""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

USABLE_STATUSES = {"trial", "active", "past_due"}


@dataclass(frozen=True)
class PlanFeatures:
    inventory_tracking: bool
    stock_alerts: bool


PLAN_FEATURES: dict[str, PlanFeatures] = {
    "essentiel": PlanFeatures(inventory_tracking=False, stock_alerts=False),
    "premium": PlanFeatures(inventory_tracking=True, stock_alerts=False),
    "enterprise": PlanFeatures(inventory_tracking=True, stock_alerts=True),
}

DEFAULT_PLAN = "essentiel"


def _aware(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def is_trial_active(status: Optional[str], trial_ends_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if status != "trial" or trial_ends_at is None:
        return False
    now = now or datetime.now(timezone.utc)
    return _aware(trial_ends_at) > now


def effective_plan(plan: Optional[str], status: Optional[str], trial_ends_at: Optional[datetime],
                   now: Optional[datetime] = None) -> str:
    """Active trials get premium; cancelled / past_due keep their last plan."""
    if is_trial_active(status, trial_ends_at, now):
        return "premium"
    return plan if plan in PLAN_FEATURES else DEFAULT_PLAN


def can_access_feature(feature: str, plan: Optional[str], status: Optional[str],
                       trial_ends_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    features = PLAN_FEATURES[effective_plan(plan, status, trial_ends_at, now)]
    return bool(getattr(features, feature))


def is_subscription_usable(status: Optional[str], trial_ends_at: Optional[datetime] = None,
                           now: Optional[datetime] = None) -> bool:
    if status not in USABLE_STATUSES:
        return False
    if status == "trial" and trial_ends_at is not None:
        return is_trial_active(status, trial_ends_at, now)
    return True


def tenant_can_access(tenant, feature: str, now: Optional[datetime] = None) -> bool:
    """can_access_feature for anything carrying the tenant's subscription fields."""
    return can_access_feature(
        feature, tenant.subscription_plan, tenant.subscription_status, tenant.trial_ends_at, now,
    )
