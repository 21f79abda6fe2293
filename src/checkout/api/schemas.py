"""Pydantic request/response schemas for the Checkout API."""

from __future__ import annotations

from pydantic import BaseModel, Field

# --- Request Schemas ---


class SaveAddressRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "label": "Home",
                    "full_name": "Asha Rao",
                    "phone": "9876543210",
                    "country_code": "+91",
                    "street": "12 MG Road, Indiranagar",
                    "city": "Bengaluru",
                    "state": "Karnataka",
                    "postal_code": "560038",
                    "country": "India",
                }
            ]
        }
    }

    label: str | None = Field(None, max_length=50)
    full_name: str = Field(..., max_length=100)
    phone: str = Field(..., max_length=25)
    country_code: str = Field("+91", max_length=5)
    street: str = Field(..., max_length=500)
    city: str = Field(..., max_length=100)
    state: str = Field(..., max_length=100)
    postal_code: str = Field(..., max_length=10)
    country: str = Field("India", max_length=100)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    make_primary: bool = False


class UpdateAddressRequest(BaseModel):
    model_config = {"json_schema_extra": {"examples": [{"label": "Work", "street": "4th Floor, Prestige Tech Park"}]}}

    label: str | None = Field(None, max_length=50)
    full_name: str | None = Field(None, max_length=100)
    phone: str | None = Field(None, max_length=25)
    street: str | None = Field(None, max_length=500)
    city: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=100)
    postal_code: str | None = Field(None, max_length=10)
    country: str | None = Field(None, max_length=100)


class CartLineRequest(BaseModel):
    product_id: str = Field(..., max_length=100)
    name: str = Field(..., max_length=255)
    unit_price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    brand: str = Field("", max_length=100)
    variant_id: str | None = None
    bundle_id: str | None = None


class ValidateCouponRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "code": "WELCOME10",
                    "user_id": "user-001",
                    "items": [{"product_id": "p-1", "name": "Classic Tin", "unit_price": 500.0, "quantity": 2}],
                }
            ]
        }
    }

    code: str = Field("", max_length=50)
    user_id: str | None = None
    items: list[CartLineRequest] = Field(default_factory=list)


# --- Response Schemas ---


class StatusResponse(BaseModel):
    model_config = {"json_schema_extra": {"examples": [{"status": "ok"}]}}

    status: str = "ok"


class SaveAddressResponse(BaseModel):
    address_id: str | None = None
    saved: bool


class AddressResponse(BaseModel):
    address_id: str
    label: str | None = None
    full_name: str
    phone: str
    street: str
    city: str
    state: str
    postal_code: str
    country: str
    latitude: float | None = None
    longitude: float | None = None
    is_primary: bool


class PostalCodeResponse(BaseModel):
    postal_code: str
    city: str
    state: str
    country: str
    shipping_option: str | None = None


class CouponResponse(BaseModel):
    code: str
    is_applicable: bool
    amount: float
    reason: str | None = None


class OrderItemResponse(BaseModel):
    product_id: str
    name: str
    brand: str | None = None
    unit_price: float
    quantity: int
    variant_id: str | None = None
    bundle_id: str | None = None


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    status: str
    user_id: str
    subtotal: float
    shipping_cost: float
    discount_total: float
    grand_total: float
    currency: str
    payment_method: str
    payment_reference: str | None = None
    payment_confirmed: bool
    payment_verification: str
    coupon_code: str | None = None
    shipping_name: str
    shipping_city: str
    shipping_postal_code: str
    items: list[OrderItemResponse]
