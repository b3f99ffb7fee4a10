from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, field_validator

from backend.app.models.pos import PaymentMethod
from backend.app.services.cart import CartState, CheckoutSession, PricingResult


# ─── Request ──────────────────────────────────────────────────────────────────


class CartAddIn(BaseModel):
    product_id: UUID


class CartQuantityIn(BaseModel):
    # Raw text-box value; coerced by the cart, invalid input removes the line
    quantity: int | float | str | None = None


class PaymentIn(BaseModel):
    payment_method: PaymentMethod
    cash_received: Decimal | None = None

    @field_validator("cash_received")
    @classmethod
    def cash_non_negative(cls, v: Decimal | None) -> Decimal | None:
        if v is not None and v < 0:
            raise ValueError("Cash received must be non-negative")
        return v


# ─── Response ─────────────────────────────────────────────────────────────────


class CartLineOut(BaseModel):
    product_id: UUID
    product_name: str
    unit_name: str
    unit_price: Decimal
    quantity: int
    available_stock: int | None
    line_total: Decimal


class PricingOut(BaseModel):
    subtotal: Decimal
    discount_amount: Decimal
    subtotal_after_discount: Decimal
    tax_amount: Decimal
    total: Decimal
    change_given: Decimal


class CartOut(BaseModel):
    state: CartState
    lines: list[CartLineOut]
    pricing: PricingOut
    tax_rate: Decimal
    discount_rate: Decimal
    payment_method: PaymentMethod
    cash_received: Decimal
    can_checkout: bool
    stock_capped: bool = False

    @classmethod
    def build(
        cls,
        checkout: CheckoutSession,
        pricing: PricingResult,
        tax_rate: Decimal,
        discount_rate: Decimal,
        stock_capped: bool = False,
    ) -> "CartOut":
        cart = checkout.cart
        return cls(
            state=cart.state,
            lines=[
                CartLineOut(
                    product_id=line.product_id,
                    product_name=line.product_name,
                    unit_name=line.unit_name,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                    available_stock=line.available_stock,
                    line_total=line.line_total,
                )
                for line in cart.lines
            ],
            pricing=PricingOut(
                subtotal=pricing.subtotal,
                discount_amount=pricing.discount_amount,
                subtotal_after_discount=pricing.subtotal_after_discount,
                tax_amount=pricing.tax_amount,
                total=pricing.total,
                change_given=pricing.change_given,
            ),
            tax_rate=tax_rate,
            discount_rate=discount_rate,
            payment_method=checkout.payment_method,
            cash_received=checkout.cash_received,
            can_checkout=cart.state == CartState.NON_EMPTY and pricing.total > 0,
            stock_capped=stock_capped,
        )


class TransactionItemOut(BaseModel):
    product_id: UUID
    product_name: str
    unit_name: str
    quantity: int
    price_per_unit: Decimal
    total_price: Decimal

    class Config:
        from_attributes = True


class TransactionOut(BaseModel):
    id: UUID
    merchant_id: UUID
    outlet_id: UUID
    outlet_name: str | None
    kasir_id: UUID
    kasir_name: str | None
    items: list[TransactionItemOut]
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    payment_method: PaymentMethod
    cash_received: Decimal | None
    change_given: Decimal | None
    timestamp: datetime

    class Config:
        from_attributes = True
