# =============================================================================
# app/routers/payments.py - Payment Endpoints
# =============================================================================
# Subscription checkout, management and the provider webhook.
# The webhook is the only unauthenticated route here; it is verified by
# signature instead.
# =============================================================================

from fastapi import APIRouter, Depends, Request

from app.auth import get_current_user, AuthUser
from core.models.payment import CreatePaymentRequest, ManageSubscriptionRequest, PortalRequest
from core.services.payment_service import PaymentService
from core.services.webhook_service import WebhookService

router = APIRouter()


@router.post("/create")
async def create_payment(
    request: CreatePaymentRequest,
    user: AuthUser = Depends(get_current_user),
):
    """Create a hosted payment link for a plan."""
    return PaymentService.create_payment_link(user.id, user.email or "", request.plan)


@router.get("/manage")
async def get_subscription(user: AuthUser = Depends(get_current_user)):
    """The caller's active subscription with provider details."""
    return PaymentService.get_subscription(user.id)


@router.post("/manage")
async def manage_subscription(
    request: ManageSubscriptionRequest,
    user: AuthUser = Depends(get_current_user),
):
    """Change plan, cancel at period end, or reactivate."""
    new_plan = request.new_plan.value if request.new_plan else None
    return PaymentService.manage(user.id, user.email or "", request.action, new_plan)


@router.post("/portal")
async def create_portal_session(
    user: AuthUser = Depends(get_current_user),
    request: PortalRequest | None = None,
):
    """Open the billing portal."""
    return PaymentService.create_portal_session(user.id, request.return_url if request else None)


@router.post("/webhook")
async def payment_webhook(request: Request):
    """
    Dodo Payments webhook receiver.

    Returns 401 for bad signatures. Every verified event is acknowledged.
    """
    body = await request.body()
    return WebhookService.process(request.headers, body)
