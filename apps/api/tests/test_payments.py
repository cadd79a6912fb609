"""
Payment endpoint tests.

The Stripe client is replaced by the recording fake from conftest, so these
tests assert on the parameters sent to Stripe rather than on network calls.
"""

import uuid
from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe

from fertility_api.db.models import ActivityLog, Package


@pytest.fixture
def package(db):
    pkg = Package(name="Acme Basic", tier="basic", monthly_cost=Decimal("199.99"))
    db.add(pkg)
    db.commit()
    return pkg


def _actions(db) -> set[str]:
    return {row.action_type for row in db.query(ActivityLog).all()}


# =============================================================================
# Payment intents
# =============================================================================

@pytest.mark.asyncio
async def test_create_intent_creates_customer_once(db, patient_client, patient_user, fake_stripe, package):
    payload = {"amount": 19999, "currency": "USD", "package_id": str(package.id)}

    first = await patient_client.post("/payments/intent", json=payload)
    second = await patient_client.post("/payments/intent", json=payload)

    assert first.status_code == 200
    data = first.json()["data"]
    assert data["client_secret"].endswith("_secret_test")
    assert data["payment_intent_id"].startswith("pi_")
    assert second.status_code == 200

    assert len(fake_stripe.calls_for("customers", "create")) == 1
    assert len(fake_stripe.calls_for("customers", "update")) == 1

    _, _, _, kwargs = fake_stripe.calls_for("payment_intents", "create")[0]
    params = kwargs["params"]
    assert params["amount"] == 19999
    assert params["currency"] == "usd"
    assert params["description"] == "Acme Basic"
    assert params["automatic_payment_methods"] == {"enabled": True}
    assert params["metadata"] == {"user_id": str(patient_user.id), "package_id": str(package.id)}

    db.expire_all()
    assert patient_user.stripe_customer_id is not None
    assert {"PAYMENT_CUSTOMER_CREATE", "PAYMENT_INTENT_CREATE"} <= _actions(db)


@pytest.mark.asyncio
async def test_customer_address_falls_back_to_placeholders(patient_client, fake_stripe):
    await patient_client.post("/payments/intent", json={"amount": 5000, "currency": "usd"})

    _, _, _, kwargs = fake_stripe.calls_for("customers", "create")[0]
    assert kwargs["params"]["name"] == "Pat Lee"
    assert kwargs["params"]["address"] == {
        "line1": "N/A",
        "city": "N/A",
        "state": "N/A",
        "postal_code": "00000",
        "country": "US",
    }
    _, _, _, kwargs = fake_stripe.calls_for("payment_intents", "create")[0]
    assert kwargs["params"]["description"] == "Benefit Plan Purchase"


@pytest.mark.asyncio
async def test_amount_mismatch_is_logged_not_rejected(db, patient_client, package):
    response = await patient_client.post(
        "/payments/intent",
        json={"amount": 100, "currency": "usd", "package_id": str(package.id)},
    )

    assert response.status_code == 200
    entry = db.query(ActivityLog).filter(ActivityLog.action_type == "PAYMENT_AMOUNT_MISMATCH").one()
    assert entry.details == {
        "package_id": str(package.id),
        "expected_amount": 19999,
        "requested_amount": 100,
    }


@pytest.mark.asyncio
async def test_unknown_package(db, patient_client, fake_stripe):
    response = await patient_client.post(
        "/payments/intent",
        json={"amount": 100, "currency": "usd", "package_id": str(uuid.uuid4())},
    )

    assert response.status_code == 404
    assert response.json()["message"] == "Package not found."
    assert fake_stripe.calls == []
    assert "PAYMENT_INTENT_CREATE_NOT_FOUND" in _actions(db)


@pytest.mark.asyncio
async def test_invalid_payment_data(db, patient_client, fake_stripe):
    response = await patient_client.post("/payments/intent", json={"amount": 0, "currency": "usd"})

    assert response.status_code == 400
    message = response.json()["message"]
    assert message.startswith("Invalid payment data: amount - ")
    assert fake_stripe.calls == []
    assert "PAYMENT_INTENT_CREATE_VALIDATION_FAILED" in _actions(db)


@pytest.mark.asyncio
async def test_stripe_failure_is_500(db, patient_client, fake_stripe):
    def fail(*args, **kwargs):
        raise stripe.APIConnectionError("network down")

    fake_stripe.handlers[("payment_intents", "create")] = fail

    response = await patient_client.post("/payments/intent", json={"amount": 5000, "currency": "usd"})

    assert response.status_code == 500
    assert response.json()["message"] == "Failed to create payment intent."
    assert "PAYMENT_INTENT_CREATE_FAILED" in _actions(db)


@pytest.mark.asyncio
async def test_payment_intent_requires_session(client):
    response = await client.post("/payments/intent", json={"amount": 5000, "currency": "usd"})

    assert response.status_code == 401


# =============================================================================
# Subscriptions & payment methods
# =============================================================================

@pytest.mark.asyncio
async def test_create_subscription(patient_client, fake_stripe):
    response = await patient_client.post("/api/subscriptions", json={"price_id": "price_123"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "incomplete"
    assert data["client_secret"].endswith("_secret")

    _, _, _, kwargs = fake_stripe.calls_for("subscriptions", "create")[0]
    assert kwargs["params"]["items"] == [{"price": "price_123"}]
    assert kwargs["params"]["payment_behavior"] == "default_incomplete"


@pytest.mark.asyncio
async def test_list_payment_methods_without_customer(patient_client, fake_stripe):
    response = await patient_client.get("/api/payment-methods")

    assert response.json()["data"] == []
    assert fake_stripe.calls == []


@pytest.mark.asyncio
async def test_list_payment_methods_flags_default(db, patient_client, patient_user, fake_stripe):
    patient_user.stripe_customer_id = "cus_existing"
    db.commit()

    card = SimpleNamespace(brand="visa", last4="4242", exp_month=12, exp_year=2030)
    fake_stripe.handlers[("payment_methods", "list")] = lambda **kw: SimpleNamespace(
        data=[
            SimpleNamespace(id="pm_1", card=card),
            SimpleNamespace(id="pm_2", card=card),
        ]
    )
    fake_stripe.handlers[("customers", "retrieve")] = lambda *a, **kw: SimpleNamespace(
        id="cus_existing",
        invoice_settings=SimpleNamespace(default_payment_method="pm_2"),
    )

    response = await patient_client.get("/api/payment-methods")

    methods = response.json()["data"]
    assert [(m["id"], m["is_default"]) for m in methods] == [("pm_1", False), ("pm_2", True)]
    assert methods[0]["last4"] == "4242"


@pytest.mark.asyncio
async def test_set_default_requires_ownership(db, patient_client, patient_user, fake_stripe):
    patient_user.stripe_customer_id = "cus_existing"
    db.commit()
    fake_stripe.handlers[("payment_methods", "retrieve")] = lambda pm_id: SimpleNamespace(
        id=pm_id, customer="cus_someone_else"
    )

    response = await patient_client.post(
        "/api/payment-methods/default", json={"payment_method_id": "pm_1"}
    )

    assert response.status_code == 404
    assert response.json()["message"] == "Payment method not found."
    assert fake_stripe.calls_for("customers", "update") == []


@pytest.mark.asyncio
async def test_delete_owned_payment_method(db, patient_client, patient_user, fake_stripe):
    patient_user.stripe_customer_id = "cus_existing"
    db.commit()
    fake_stripe.handlers[("payment_methods", "retrieve")] = lambda pm_id: SimpleNamespace(
        id=pm_id, customer="cus_existing"
    )

    response = await patient_client.post(
        "/api/payment-methods/delete", json={"payment_method_id": "pm_1"}
    )

    assert response.status_code == 200
    assert len(fake_stripe.calls_for("payment_methods", "detach")) == 1
    assert "PAYMENT_METHOD_DETACH" in _actions(db)


@pytest.mark.asyncio
async def test_attach_payment_method(patient_client, fake_stripe):
    response = await patient_client.post(
        "/api/payment-methods/attach", json={"payment_method_id": "pm_new"}
    )

    assert response.status_code == 200
    _, _, args, kwargs = fake_stripe.calls_for("payment_methods", "attach")[0]
    assert args == ("pm_new",)
    assert kwargs["params"]["customer"].startswith("cus_")


@pytest.mark.asyncio
async def test_unknown_payment_method_is_not_found(db, patient_client, patient_user, fake_stripe):
    patient_user.stripe_customer_id = "cus_existing"
    db.commit()

    def missing(pm_id):
        raise stripe.InvalidRequestError("No such PaymentMethod", param="id")

    fake_stripe.handlers[("payment_methods", "retrieve")] = missing

    response = await patient_client.post(
        "/api/payment-methods/delete", json={"payment_method_id": "pm_missing"}
    )

    assert response.status_code == 404
    assert fake_stripe.calls_for("payment_methods", "detach") == []


@pytest.mark.asyncio
async def test_payment_method_lookup_outage_is_500(db, patient_client, patient_user, fake_stripe):
    patient_user.stripe_customer_id = "cus_existing"
    db.commit()

    def outage(pm_id):
        raise stripe.APIConnectionError("network down")

    fake_stripe.handlers[("payment_methods", "retrieve")] = outage

    response = await patient_client.post(
        "/api/payment-methods/default", json={"payment_method_id": "pm_1"}
    )

    assert response.status_code == 500
    assert response.json()["message"] == "Failed to retrieve payment method."
    assert "PAYMENT_METHOD_FAILED" in _actions(db)
    assert fake_stripe.calls_for("customers", "update") == []
