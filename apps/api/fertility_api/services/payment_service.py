"""Payment service - Stripe customers, payment intents, subscriptions and cards.

The Stripe client is passed in by the caller (built once at start-up and
injected through `get_payment_client`); this module never constructs one.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import stripe
from sqlalchemy.orm import Session

from fertility_api.core.config import settings
from fertility_api.core.errors import NotFoundError, UnexpectedError
from fertility_api.db.models import Package, User
from fertility_api.schemas.payment import PaymentIntentCreate, PaymentMethodRead

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Benefit Plan Purchase"


def build_client() -> stripe.StripeClient | None:
    """Construct the process-wide Stripe client, or None when unconfigured."""
    if not settings.payments_enabled:
        logger.warning("STRIPE_SECRET_KEY not set; payment endpoints are disabled")
        return None
    if settings.STRIPE_API_VERSION:
        return stripe.StripeClient(
            settings.STRIPE_SECRET_KEY, stripe_version=settings.STRIPE_API_VERSION
        )
    return stripe.StripeClient(settings.STRIPE_SECRET_KEY)


@dataclass
class PaymentIntentOutcome:
    """Result of create_payment_intent, with what the caller should log."""
    client_secret: str
    payment_intent_id: str
    customer_id: str
    customer_created: bool
    package: Package | None
    amount_mismatch: dict[str, Any] | None = None


# =============================================================================
# Customers
# =============================================================================

def _customer_name(user: User) -> str:
    return user.full_name or user.email


def _customer_address(user: User) -> dict[str, str]:
    """Billing address with placeholder fallbacks for fields Stripe requires."""
    if not all(
        [
            user.address_line1,
            user.address_city,
            user.address_state,
            user.address_postal_code,
            user.address_country,
        ]
    ):
        logger.warning("User %s is missing address details; using placeholders", user.id)

    address = {
        "line1": user.address_line1 or "N/A",
        "city": user.address_city or "N/A",
        "state": user.address_state or "N/A",
        "postal_code": user.address_postal_code or "00000",
        "country": user.address_country or "US",
    }
    if user.address_line2:
        address["line2"] = user.address_line2
    return address


def ensure_customer(db: Session, client, user: User) -> tuple[str, bool]:
    """
    Return the user's Stripe customer id, creating the customer on first use.

    An existing customer gets its name/address refreshed; a failed refresh is
    logged and ignored.

    Returns:
        (customer_id, created)
    """
    if user.stripe_customer_id:
        try:
            client.v1.customers.update(
                user.stripe_customer_id,
                params={"name": _customer_name(user), "address": _customer_address(user)},
            )
        except stripe.StripeError:
            logger.warning(
                "Could not refresh Stripe customer %s", user.stripe_customer_id, exc_info=True
            )
        return user.stripe_customer_id, False

    customer = client.v1.customers.create(
        params={
            "email": user.email,
            "name": _customer_name(user),
            "address": _customer_address(user),
            "metadata": {"user_id": str(user.id)},
        }
    )
    user.stripe_customer_id = customer.id
    db.commit()
    logger.info("Created Stripe customer %s for user %s", customer.id, user.id)
    return customer.id, True


# =============================================================================
# Payment intents & subscriptions
# =============================================================================

def _to_cents(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value())


def create_payment_intent(
    db: Session, client, user: User, data: PaymentIntentCreate
) -> PaymentIntentOutcome:
    """
    Create a payment intent for the caller.

    A charge amount that differs from the package's stored cost is reported
    in `amount_mismatch` but does not block the intent.

    Raises:
        NotFoundError: package_id given but unknown
        UnexpectedError: Stripe failure
    """
    package = None
    if data.package_id:
        package = db.query(Package).filter(Package.id == data.package_id).first()
        if not package:
            raise NotFoundError("Package not found.")

    amount_mismatch = None
    if package is not None:
        expected = _to_cents(package.monthly_cost)
        if expected != data.amount:
            logger.warning(
                "Payment amount %s does not match package %s cost %s",
                data.amount, package.id, expected,
            )
            amount_mismatch = {
                "package_id": str(package.id),
                "expected_amount": expected,
                "requested_amount": data.amount,
            }

    try:
        customer_id, created = ensure_customer(db, client, user)
        intent = client.v1.payment_intents.create(
            params={
                "amount": data.amount,
                "currency": data.currency,
                "customer": customer_id,
                "automatic_payment_methods": {"enabled": True},
                "description": package.name if package else DEFAULT_DESCRIPTION,
                "metadata": {
                    "user_id": str(user.id),
                    "package_id": str(package.id) if package else "",
                },
            }
        )
    except stripe.StripeError:
        logger.exception("Stripe payment intent creation failed for user %s", user.id)
        raise UnexpectedError("Failed to create payment intent.")

    return PaymentIntentOutcome(
        client_secret=intent.client_secret,
        payment_intent_id=intent.id,
        customer_id=customer_id,
        customer_created=created,
        package=package,
        amount_mismatch=amount_mismatch,
    )


def _subscription_client_secret(subscription) -> str | None:
    invoice = getattr(subscription, "latest_invoice", None)
    intent = getattr(invoice, "payment_intent", None) if invoice else None
    return getattr(intent, "client_secret", None) if intent else None


def create_subscription(db: Session, client, user: User, price_id: str):
    """
    Subscribe the caller's customer to a price.

    Returns:
        (subscription, client_secret or None)
    """
    try:
        customer_id, _ = ensure_customer(db, client, user)
        subscription = client.v1.subscriptions.create(
            params={
                "customer": customer_id,
                "items": [{"price": price_id}],
                "payment_behavior": "default_incomplete",
                "expand": ["latest_invoice.payment_intent"],
                "metadata": {"user_id": str(user.id)},
            }
        )
    except stripe.StripeError:
        logger.exception("Stripe subscription creation failed for user %s", user.id)
        raise UnexpectedError("Failed to create subscription.")

    return subscription, _subscription_client_secret(subscription)


# =============================================================================
# Payment methods
# =============================================================================

def _owned_payment_method(client, user: User, payment_method_id: str):
    """Retrieve a payment method, NotFound unless it belongs to the caller."""
    not_found = NotFoundError("Payment method not found.")
    if not user.stripe_customer_id:
        raise not_found
    try:
        method = client.v1.payment_methods.retrieve(payment_method_id)
    except stripe.InvalidRequestError:
        raise not_found
    except stripe.StripeError:
        logger.exception("Failed to retrieve payment method %s", payment_method_id)
        raise UnexpectedError("Failed to retrieve payment method.")
    if getattr(method, "customer", None) != user.stripe_customer_id:
        raise not_found
    return method


def list_payment_methods(client, user: User) -> list[PaymentMethodRead]:
    """Cards on file for the caller, flagging the invoice default."""
    if not user.stripe_customer_id:
        return []

    try:
        methods = client.v1.payment_methods.list(
            params={"customer": user.stripe_customer_id, "type": "card"}
        )
        customer = client.v1.customers.retrieve(user.stripe_customer_id)
    except stripe.StripeError:
        logger.exception("Listing payment methods failed for user %s", user.id)
        raise UnexpectedError("Failed to fetch payment methods.")

    invoice_settings = getattr(customer, "invoice_settings", None)
    default_id = getattr(invoice_settings, "default_payment_method", None)

    results = []
    for method in methods.data:
        card = getattr(method, "card", None)
        results.append(
            PaymentMethodRead(
                id=method.id,
                brand=getattr(card, "brand", None),
                last4=getattr(card, "last4", None),
                exp_month=getattr(card, "exp_month", None),
                exp_year=getattr(card, "exp_year", None),
                is_default=method.id == default_id,
            )
        )
    return results


def attach_payment_method(db: Session, client, user: User, payment_method_id: str) -> str:
    """Attach a card to the caller's customer. Returns the customer id."""
    try:
        customer_id, _ = ensure_customer(db, client, user)
        client.v1.payment_methods.attach(payment_method_id, params={"customer": customer_id})
    except stripe.StripeError:
        logger.exception("Attaching payment method failed for user %s", user.id)
        raise UnexpectedError("Failed to attach payment method.")
    return customer_id


def set_default_payment_method(client, user: User, payment_method_id: str) -> None:
    _owned_payment_method(client, user, payment_method_id)
    try:
        client.v1.customers.update(
            user.stripe_customer_id,
            params={"invoice_settings": {"default_payment_method": payment_method_id}},
        )
    except stripe.StripeError:
        logger.exception("Setting default payment method failed for user %s", user.id)
        raise UnexpectedError("Failed to set default payment method.")


def detach_payment_method(client, user: User, payment_method_id: str) -> None:
    _owned_payment_method(client, user, payment_method_id)
    try:
        client.v1.payment_methods.detach(payment_method_id)
    except stripe.StripeError:
        logger.exception("Detaching payment method failed for user %s", user.id)
        raise UnexpectedError("Failed to delete payment method.")
