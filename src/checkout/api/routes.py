"""FastAPI endpoints for the Checkout domain."""

from fastapi import APIRouter, HTTPException
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from checkout.addressbook.address_book import AddressBook
from checkout.addressbook.management import RemoveAddress, SaveAddress, SetPrimaryAddress, UpdateAddress
from checkout.api.schemas import (
    AddressResponse,
    CouponResponse,
    OrderItemResponse,
    OrderResponse,
    PostalCodeResponse,
    SaveAddressRequest,
    SaveAddressResponse,
    StatusResponse,
    UpdateAddressRequest,
    ValidateCouponRequest,
)
from checkout.cart.port import CartLineItem
from checkout.discount.engine import compute_discount
from checkout.location.resolver import NOT_SERVICEABLE, lookup_postal_code
from checkout.order.order import Order
from checkout.validation.fields import shipping_rules, validate_form

address_router = APIRouter(prefix="/addresses", tags=["addresses"])
postal_code_router = APIRouter(prefix="/postal-codes", tags=["postal-codes"])
coupon_router = APIRouter(prefix="/coupons", tags=["coupons"])
order_router = APIRouter(prefix="/orders", tags=["orders"])


def _address_rules(country_code: str) -> dict:
    rules = shipping_rules(country_code)
    rules.pop("email")
    return rules


def _to_address_response(address) -> AddressResponse:
    return AddressResponse(
        address_id=str(address.id),
        label=address.label,
        full_name=address.full_name,
        phone=address.phone,
        street=address.street,
        city=address.city,
        state=address.state,
        postal_code=address.postal_code,
        country=address.country,
        latitude=address.coordinates.latitude if address.coordinates else None,
        longitude=address.coordinates.longitude if address.coordinates else None,
        is_primary=bool(address.is_primary),
    )


def _process(command):
    try:
        return current_domain.process(command, asynchronous=False)
    except ObjectNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.messages) from exc


# ---------------------------------------------------------------------------
# Address book
# ---------------------------------------------------------------------------
@address_router.get("/{user_id}", response_model=list[AddressResponse])
async def list_addresses(user_id: str) -> list[AddressResponse]:
    try:
        book = current_domain.repository_for(AddressBook).get(user_id)
    except ObjectNotFoundError:
        return []
    return [_to_address_response(address) for address in book.ordered()]


@address_router.post("/{user_id}", status_code=201, response_model=SaveAddressResponse)
async def save_address(user_id: str, body: SaveAddressRequest) -> SaveAddressResponse:
    fields = body.model_dump(include={"full_name", "phone", "street", "city", "state", "postal_code"})
    validation = validate_form(fields, _address_rules(body.country_code))
    if not validation.is_valid:
        raise HTTPException(status_code=422, detail=validation.errors)

    clean = validation.sanitized
    command = SaveAddress(
        user_id=user_id,
        label=body.label,
        full_name=clean["full_name"],
        phone=clean["phone"],
        street=clean["street"],
        city=clean["city"],
        state=clean["state"],
        postal_code=clean["postal_code"],
        country=body.country,
        latitude=body.latitude,
        longitude=body.longitude,
        make_primary=body.make_primary,
    )
    address_id = _process(command)
    return SaveAddressResponse(address_id=address_id, saved=address_id is not None)


@address_router.put("/{user_id}/{address_id}", response_model=StatusResponse)
async def update_address(user_id: str, address_id: str, body: UpdateAddressRequest) -> StatusResponse:
    command = UpdateAddress(user_id=user_id, address_id=address_id, **body.model_dump(exclude_none=True))
    _process(command)
    return StatusResponse()


@address_router.delete("/{user_id}/{address_id}", response_model=StatusResponse)
async def delete_address(user_id: str, address_id: str) -> StatusResponse:
    _process(RemoveAddress(user_id=user_id, address_id=address_id))
    return StatusResponse(status="removed")


@address_router.put("/{user_id}/{address_id}/primary", response_model=StatusResponse)
async def set_primary_address(user_id: str, address_id: str) -> StatusResponse:
    _process(SetPrimaryAddress(user_id=user_id, address_id=address_id))
    return StatusResponse()


# ---------------------------------------------------------------------------
# Postal codes
# ---------------------------------------------------------------------------
@postal_code_router.get("/{postal_code}", response_model=PostalCodeResponse)
async def get_postal_code(postal_code: str) -> PostalCodeResponse:
    result = lookup_postal_code(postal_code)
    if result.unavailable:
        raise HTTPException(status_code=503, detail=result.error)
    if result.place is None:
        status_code = 404 if result.error == NOT_SERVICEABLE else 422
        raise HTTPException(status_code=status_code, detail=result.error)

    return PostalCodeResponse(
        postal_code=result.postal_code,
        city=result.place.city,
        state=result.place.state,
        country=result.place.country,
        shipping_option=result.place.shipping_option,
    )


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
@coupon_router.post("/validate", response_model=CouponResponse)
async def validate_coupon_code(body: ValidateCouponRequest) -> CouponResponse:
    lines = [CartLineItem(**item.model_dump()) for item in body.items]
    result = compute_discount(lines, body.code, user_id=body.user_id)
    return CouponResponse(
        code=result.code,
        is_applicable=result.is_applicable,
        amount=float(result.amount),
        reason=result.reason,
    )


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    try:
        order = current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Order not found") from exc

    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        status=order.status,
        user_id=str(order.user_id),
        subtotal=order.pricing.subtotal,
        shipping_cost=order.pricing.shipping_cost,
        discount_total=order.pricing.discount_total,
        grand_total=order.pricing.grand_total,
        currency=order.pricing.currency,
        payment_method=order.payment_method,
        payment_reference=order.payment_reference,
        payment_confirmed=bool(order.payment_confirmed),
        payment_verification=order.payment_verification,
        coupon_code=order.coupon_code,
        shipping_name=order.shipping.full_name,
        shipping_city=order.shipping.city,
        shipping_postal_code=order.shipping.postal_code,
        items=[
            OrderItemResponse(
                product_id=item.product_id,
                name=item.name,
                brand=item.brand,
                unit_price=item.unit_price,
                quantity=item.quantity,
                variant_id=item.variant_id,
                bundle_id=item.bundle_id,
            )
            for item in order.items
        ],
    )
