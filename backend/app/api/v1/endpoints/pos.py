from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from backend.app.api.permission_deps import require_merchant_role
from backend.app.core.database import get_db
from backend.app.models.pos import SalesTransaction
from backend.app.models.user import RoleEnum
from backend.app.schemas.pos import (
    CartAddIn,
    CartOut,
    CartQuantityIn,
    PaymentIn,
    TransactionOut,
)
from backend.app.services.access import SessionContext
from backend.app.services.cart import (
    CheckoutSession,
    cart_store,
    coerce_quantity,
    compute_pricing,
)
from backend.app.services.pos import (
    add_to_cart,
    complete_sale,
    get_merchant_rates,
    get_transaction,
)

router = APIRouter()

_seller = require_merchant_role(RoleEnum.ADMIN, RoleEnum.KASIR)


@contextmanager
def _checkout_for(session: SessionContext) -> Iterator[CheckoutSession]:
    """Yield the user's checkout session with its lock held."""
    checkout = cart_store.get(session.user_id)
    with checkout.lock:
        if checkout.outlet_id != session.outlet_id:
            # Token was reissued for another outlet since the cart was opened
            checkout.reset()
            checkout.outlet_id = session.outlet_id
        yield checkout


def _cart_out(
    db: Session,
    session: SessionContext,
    checkout: CheckoutSession,
    stock_capped: bool = False,
) -> CartOut:
    tax_rate, discount_rate = get_merchant_rates(db, session.merchant_id)
    pricing = compute_pricing(
        checkout.cart,
        tax_rate,
        discount_rate,
        payment_method=checkout.payment_method,
        cash_received=checkout.cash_received,
    )
    return CartOut.build(checkout, pricing, tax_rate, discount_rate, stock_capped=stock_capped)


# ─── Cart ────────────────────────────────────────────────────────────────────


@router.get("/cart", response_model=CartOut)
def get_cart(
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_seller),
) -> CartOut:
    with _checkout_for(session) as checkout:
        return _cart_out(db, session, checkout)


@router.post("/cart/items", response_model=CartOut)
def post_cart_item(
    payload: CartAddIn,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_seller),
) -> CartOut:
    with _checkout_for(session) as checkout:
        added = add_to_cart(db, session, checkout, payload.product_id)
        return _cart_out(db, session, checkout, stock_capped=not added)


@router.put("/cart/items/{product_id}", response_model=CartOut)
def put_cart_item(
    product_id: UUID,
    payload: CartQuantityIn,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_seller),
) -> CartOut:
    requested = coerce_quantity(payload.quantity)
    with _checkout_for(session) as checkout:
        applied = checkout.cart.set_quantity(product_id, payload.quantity)
        capped = 0 < applied < requested
        return _cart_out(db, session, checkout, stock_capped=capped)


@router.delete("/cart/items/{product_id}", response_model=CartOut)
def delete_cart_item(
    product_id: UUID,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_seller),
) -> CartOut:
    with _checkout_for(session) as checkout:
        checkout.cart.remove_item(product_id)
        return _cart_out(db, session, checkout)


@router.delete("/cart", response_model=CartOut)
def clear_cart(
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_seller),
) -> CartOut:
    with _checkout_for(session) as checkout:
        checkout.reset()
        return _cart_out(db, session, checkout)


@router.put("/cart/payment", response_model=CartOut)
def put_payment(
    payload: PaymentIn,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_seller),
) -> CartOut:
    cash = payload.cash_received if payload.cash_received is not None else Decimal("0")
    with _checkout_for(session) as checkout:
        checkout.payment_method = payload.payment_method
        checkout.cash_received = cash
        return _cart_out(db, session, checkout)


# ─── Checkout ────────────────────────────────────────────────────────────────


@router.post("/checkout", response_model=TransactionOut, status_code=status.HTTP_201_CREATED)
def checkout(
    request: Request,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_seller),
) -> SalesTransaction:
    ip_address = request.client.host if request.client else None
    with _checkout_for(session) as current:
        return complete_sale(db, session, current, ip_address=ip_address)


@router.get("/transactions/{transaction_id}", response_model=TransactionOut)
def read_transaction(
    transaction_id: UUID,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_seller),
) -> SalesTransaction:
    return get_transaction(db, session, transaction_id)
