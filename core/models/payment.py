# =============================================================================
# core/models/payment.py - Payment Schemas
# =============================================================================

from enum import Enum

from pydantic import BaseModel, Field


class PlanType(str, Enum):
    """Paid plans that can be purchased."""
    INDIVIDUAL = "individual"
    BUSINESS = "business"


class ManageAction(str, Enum):
    CHANGE_PLAN = "change_plan"
    CANCEL = "cancel"
    REACTIVATE = "reactivate"


class CreatePaymentRequest(BaseModel):
    plan: PlanType


class ManageSubscriptionRequest(BaseModel):
    action: ManageAction
    new_plan: PlanType | None = Field(default=None, description="Required for change_plan")


class PortalRequest(BaseModel):
    return_url: str | None = None
