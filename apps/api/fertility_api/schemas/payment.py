"""Payment and subscription Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class PaymentIntentCreate(BaseModel):
    """
    Request schema for creating a payment intent.

    `amount` is in the smallest currency unit (cents).
    """
    amount: int = Field(gt=0)
    currency: str = Field(min_length=3, max_length=3)
    package_id: UUID | None = None

    @field_validator("currency")
    @classmethod
    def lowercase_currency(cls, v: str) -> str:
        if not v.isalpha():
            raise ValueError("Currency must be a 3-letter code")
        return v.lower()


class PaymentIntentRead(BaseModel):
    client_secret: str
    payment_intent_id: str


class SubscriptionCreate(BaseModel):
    price_id: str = Field(min_length=1)


class SubscriptionRead(BaseModel):
    subscription_id: str
    status: str
    client_secret: str | None = None


class PaymentMethodAction(BaseModel):
    """Body for attach, set-default and delete."""
    payment_method_id: str = Field(min_length=1)


class PaymentMethodRead(BaseModel):
    id: str
    brand: str | None = None
    last4: str | None = None
    exp_month: int | None = None
    exp_year: int | None = None
    is_default: bool = False
