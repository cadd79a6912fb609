"""Payment router - payment intents, subscriptions and saved cards.

Every endpoint requires an authenticated session and acts on the caller's
own Stripe customer.
"""

from fastapi import APIRouter, Body, Depends, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from fertility_api.core.deps import get_current_user, get_db, get_payment_client
from fertility_api.core.errors import (
    NotFoundError,
    UnexpectedError,
    ValidationError,
    format_validation_errors,
)
from fertility_api.db.enums import ActivityActionType as Action, ActivityStatus
from fertility_api.db.models import User
from fertility_api.schemas.common import ApiResponse
from fertility_api.schemas.payment import (
    PaymentIntentCreate,
    PaymentIntentRead,
    PaymentMethodAction,
    PaymentMethodRead,
    SubscriptionCreate,
    SubscriptionRead,
)
from fertility_api.services import payment_service
from fertility_api.services.activity_log_service import log_activity

router = APIRouter(tags=["payments"])


def _log(db, request, user: User, action: Action, status: ActivityStatus,
         target_type: str, target_id=None, details=None, description=None) -> None:
    log_activity(
        db,
        action,
        user_id=user.id,
        user_email=user.email,
        target_entity_type=target_type,
        target_entity_id=target_id,
        status=status,
        details=details,
        description=description,
        request=request,
    )


# =============================================================================
# Payment intents
# =============================================================================

@router.post("/payments/intent", response_model=ApiResponse[PaymentIntentRead])
def create_payment_intent(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    client=Depends(get_payment_client),
):
    """
    Create a payment intent and return its client secret.

    A charge amount that differs from the package's cost is logged but not
    rejected.
    """
    try:
        data = PaymentIntentCreate.model_validate(payload)
    except PydanticValidationError as exc:
        errors = format_validation_errors(exc.errors())
        summary = ", ".join(f"{e['field']} - {e['message']}" for e in errors)
        _log(db, request, user, Action.PAYMENT_INTENT_CREATE_VALIDATION_FAILED,
             ActivityStatus.FAILURE, "payment_intent",
             details={"submitted": payload, "errors": errors})
        raise ValidationError(f"Invalid payment data: {summary}", errors=errors)

    submitted = data.model_dump()
    try:
        outcome = payment_service.create_payment_intent(db, client, user, data)
    except NotFoundError as exc:
        _log(db, request, user, Action.PAYMENT_INTENT_CREATE_NOT_FOUND, ActivityStatus.FAILURE,
             "package", data.package_id, {"submitted": submitted}, exc.message)
        raise
    except UnexpectedError as exc:
        _log(db, request, user, Action.PAYMENT_INTENT_CREATE_FAILED, ActivityStatus.FAILURE,
             "payment_intent", None, {"submitted": submitted}, exc.message)
        raise

    if outcome.customer_created:
        _log(db, request, user, Action.PAYMENT_CUSTOMER_CREATE, ActivityStatus.SUCCESS,
             "stripe_customer", outcome.customer_id)
    if outcome.amount_mismatch:
        _log(db, request, user, Action.PAYMENT_AMOUNT_MISMATCH, ActivityStatus.INFO,
             "package", outcome.amount_mismatch["package_id"], outcome.amount_mismatch,
             "Requested amount does not match package cost.")
    _log(db, request, user, Action.PAYMENT_INTENT_CREATE, ActivityStatus.SUCCESS,
         "payment_intent", outcome.payment_intent_id,
         {"amount": data.amount, "currency": data.currency, "package_id": data.package_id})

    return ApiResponse(
        data=PaymentIntentRead(
            client_secret=outcome.client_secret,
            payment_intent_id=outcome.payment_intent_id,
        )
    )


# =============================================================================
# Subscriptions
# =============================================================================

@router.post("/api/subscriptions", response_model=ApiResponse[SubscriptionRead])
def create_subscription(
    payload: SubscriptionCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    client=Depends(get_payment_client),
):
    try:
        subscription, client_secret = payment_service.create_subscription(
            db, client, user, payload.price_id
        )
    except UnexpectedError as exc:
        _log(db, request, user, Action.SUBSCRIPTION_CREATE_FAILED, ActivityStatus.FAILURE,
             "subscription", None, {"price_id": payload.price_id}, exc.message)
        raise

    _log(db, request, user, Action.SUBSCRIPTION_CREATE, ActivityStatus.SUCCESS,
         "subscription", subscription.id,
         {"price_id": payload.price_id, "status": subscription.status})
    return ApiResponse(
        data=SubscriptionRead(
            subscription_id=subscription.id,
            status=subscription.status,
            client_secret=client_secret,
        )
    )


# =============================================================================
# Payment methods
# =============================================================================

@router.get("/api/payment-methods", response_model=ApiResponse[list[PaymentMethodRead]])
def list_payment_methods(
    user: User = Depends(get_current_user),
    client=Depends(get_payment_client),
):
    return ApiResponse(data=payment_service.list_payment_methods(client, user))


@router.post("/api/payment-methods/attach", response_model=ApiResponse[None])
def attach_payment_method(
    payload: PaymentMethodAction,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    client=Depends(get_payment_client),
):
    try:
        payment_service.attach_payment_method(db, client, user, payload.payment_method_id)
    except UnexpectedError as exc:
        _log(db, request, user, Action.PAYMENT_METHOD_FAILED, ActivityStatus.FAILURE,
             "payment_method", payload.payment_method_id, {"operation": "attach"}, exc.message)
        raise

    _log(db, request, user, Action.PAYMENT_METHOD_ATTACH, ActivityStatus.SUCCESS,
         "payment_method", payload.payment_method_id)
    return ApiResponse(message="Payment method attached.")


@router.post("/api/payment-methods/default", response_model=ApiResponse[None])
def set_default_payment_method(
    payload: PaymentMethodAction,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    client=Depends(get_payment_client),
):
    try:
        payment_service.set_default_payment_method(client, user, payload.payment_method_id)
    except (NotFoundError, UnexpectedError) as exc:
        _log(db, request, user, Action.PAYMENT_METHOD_FAILED, ActivityStatus.FAILURE,
             "payment_method", payload.payment_method_id, {"operation": "default"}, exc.message)
        raise

    _log(db, request, user, Action.PAYMENT_METHOD_DEFAULT, ActivityStatus.SUCCESS,
         "payment_method", payload.payment_method_id)
    return ApiResponse(message="Default payment method updated.")


@router.post("/api/payment-methods/delete", response_model=ApiResponse[None])
def delete_payment_method(
    payload: PaymentMethodAction,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    client=Depends(get_payment_client),
):
    try:
        payment_service.detach_payment_method(client, user, payload.payment_method_id)
    except (NotFoundError, UnexpectedError) as exc:
        _log(db, request, user, Action.PAYMENT_METHOD_FAILED, ActivityStatus.FAILURE,
             "payment_method", payload.payment_method_id, {"operation": "detach"}, exc.message)
        raise

    _log(db, request, user, Action.PAYMENT_METHOD_DETACH, ActivityStatus.SUCCESS,
         "payment_method", payload.payment_method_id)
    return ApiResponse(message="Payment method deleted.")
