"""Storefront checkout FastAPI application.

Serves the address book, postal code lookup, coupon validation and order
endpoints of the checkout domain. Every request runs inside the checkout
domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# PROTEAN_ENV selects the configuration overlay applied by init()
from checkout.domain import checkout  # noqa: E402
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

checkout.init()

app = FastAPI(
    title="Storefront Checkout API",
    description="Checkout domain: address book, postal codes, coupons and orders",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_DOMAIN_PREFIXES = ("/addresses", "/postal-codes", "/coupons", "/orders")


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the checkout domain context for domain routes."""
    if request.url.path.startswith(_DOMAIN_PREFIXES):
        with checkout.domain_context():
            response = await call_next(request)
        return response
    return await call_next(request)


from checkout.api import address_router, coupon_router, order_router, postal_code_router  # noqa: E402

app.include_router(address_router)
app.include_router(postal_code_router)
app.include_router(coupon_router)
app.include_router(order_router)


@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": checkout.name})
