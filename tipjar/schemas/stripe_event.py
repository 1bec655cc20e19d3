from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator


class StripeEventEnvelope(BaseModel):
    """Outer shape of every Stripe webhook event."""

    id: StrictStr = Field(..., min_length=1)
    type: StrictStr = Field(..., min_length=1)
    data: dict[str, Any]


class CheckoutSessionMetadata(BaseModel):
    """
    Metadata we attach when creating the tip checkout session.
    Stripe returns every metadata value as a string.
    """
    model_config = ConfigDict(extra="ignore")

    user_id: StrictStr = Field(..., min_length=1)
    username: StrictStr = Field(..., min_length=1)
    message: StrictStr | None = None
    anonymous: bool

    @field_validator("message")
    @classmethod
    def blank_message_is_none(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v

    @field_validator("anonymous", mode="before")
    @classmethod
    def parse_anonymous_flag(cls, v: Any) -> bool:
        # Only the two values checkout creation writes are accepted
        if v == "true":
            return True
        if v == "false":
            return False
        raise ValueError("anonymous must be 'true' or 'false'")


class CustomerDetails(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: StrictStr | None = None


class CheckoutSession(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: StrictStr = Field(..., min_length=1)
    amount_total: StrictInt = Field(..., ge=0)
    currency: StrictStr = Field(..., min_length=3, max_length=3)
    payment_status: StrictStr | None = None
    customer_details: CustomerDetails | None = None
    metadata: CheckoutSessionMetadata

    @field_validator("currency")
    @classmethod
    def lowercase_currency(cls, v: str) -> str:
        return v.lower()
