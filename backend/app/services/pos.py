from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from backend.app.core.exceptions import FetchError, ValidationError, WriteError
from backend.app.models.inventory import Product, ProductUnit
from backend.app.models.merchant import MerchantSettings
from backend.app.models.outlet import Outlet
from backend.app.models.pos import PaymentMethod, SalesTransaction, TransactionItem
from backend.app.services.access import SessionContext
from backend.app.services.audit import log_action
from backend.app.services.cart import (
    CheckoutSession,
    PricingResult,
    SellableProduct,
    compute_pricing,
)

logger = logging.getLogger(__name__)

Q = Decimal("0.0001")
ZERO = Decimal("0")


def _q(value: Decimal) -> Decimal:
    return value.quantize(Q, rounding=ROUND_HALF_UP)


def get_merchant_rates(db: Session, merchant_id: UUID | None) -> tuple[Decimal, Decimal]:
    """Return ``(tax_rate, discount_rate)`` in percent; 0/0 when unset."""
    if merchant_id is None:
        return ZERO, ZERO
    try:
        row = db.get(MerchantSettings, merchant_id)
    except SQLAlchemyError as exc:
        logger.exception("Failed to load settings for merchant %s", merchant_id)
        raise FetchError("Could not load merchant settings") from exc
    if row is None:
        return ZERO, ZERO
    return Decimal(str(row.tax_rate)), Decimal(str(row.discount_rate))


def _get_product(db: Session, session: SessionContext, product_id: UUID) -> Product:
    product = (
        db.query(Product)
        .options(selectinload(Product.units))
        .filter(Product.id == product_id, Product.merchant_id == session.merchant_id)
        .first()
    )
    if not product:
        raise ValidationError(f"Product {product_id} not found")
    return product


def add_to_cart(
    db: Session, session: SessionContext, checkout: CheckoutSession, product_id: UUID
) -> bool:
    """Add one sellable unit of a product. Returns False when capped at stock."""
    product = _get_product(db, session, product_id)
    sellable = SellableProduct.from_product(product)
    if sellable is None:
        raise ValidationError(f"'{product.name}' has no sellable unit")
    if sellable.stock <= 0:
        raise ValidationError(f"'{product.name}' is out of stock")
    added = checkout.cart.add_item(sellable)
    if not added:
        logger.info(
            "Stock cap reached for product %s (%s available)", product_id, sellable.stock
        )
    return added


def quote(db: Session, session: SessionContext, checkout: CheckoutSession) -> PricingResult:
    tax_rate, discount_rate = get_merchant_rates(db, session.merchant_id)
    return compute_pricing(
        checkout.cart,
        tax_rate,
        discount_rate,
        payment_method=checkout.payment_method,
        cash_received=checkout.cash_received,
    )


def complete_sale(
    db: Session,
    session: SessionContext,
    checkout: CheckoutSession,
    ip_address: str | None = None,
) -> SalesTransaction:
    """Persist the cart as one immutable sales transaction.

    Stock of every sold unit is decremented in the same database transaction.
    The cart and cash field are cleared only after the commit succeeds; on a
    failed write the session is rolled back and the cart is left untouched so
    the kasir can retry.

    The checkout lock is held throughout, so a second request for the same
    cart waits and then finds it empty.
    """
    with checkout.lock:
        return _complete_sale(db, session, checkout, ip_address)


def _complete_sale(
    db: Session,
    session: SessionContext,
    checkout: CheckoutSession,
    ip_address: str | None,
) -> SalesTransaction:
    if session.outlet_id is None:
        raise ValidationError("Select an outlet before completing a sale")
    if checkout.cart.is_empty():
        raise ValidationError("Cart must contain at least one item")

    outlet = (
        db.query(Outlet)
        .filter(Outlet.id == session.outlet_id, Outlet.merchant_id == session.merchant_id)
        .first()
    )
    if outlet is None or not session.policy.can_select_outlet(session, outlet.id):
        raise ValidationError("Selected outlet is not available")

    pricing = quote(db, session, checkout)
    if pricing.total <= 0:
        raise ValidationError("Sale total must be greater than zero")

    method = PaymentMethod(checkout.payment_method)
    cash_received: Decimal | None = None
    if method == PaymentMethod.CASH:
        cash_received = Decimal(str(checkout.cash_received))
        if cash_received < pricing.total:
            raise ValidationError("Cash received is less than the total amount")

    # ── Validate stock for every line before touching anything ──────────
    units: list[tuple[ProductUnit, int]] = []
    names: dict[UUID, str] = {}
    for line in checkout.cart.lines:
        unit = (
            db.query(ProductUnit)
            .join(Product, Product.id == ProductUnit.product_id)
            .filter(
                ProductUnit.product_id == line.product_id,
                ProductUnit.name == line.unit_name,
                Product.merchant_id == session.merchant_id,
            )
            .first()
        )
        if unit is None:
            raise ValidationError(f"'{line.product_name}' is no longer available")
        if unit.stock < line.quantity:
            raise ValidationError(
                f"Insufficient stock for '{line.product_name}': "
                f"{unit.stock} available, {line.quantity} requested"
            )
        units.append((unit, line.quantity))
        names[unit.id] = line.product_name

    txn = SalesTransaction(
        merchant_id=session.merchant_id,
        outlet_id=outlet.id,
        kasir_id=session.user_id,
        outlet_name=outlet.name,
        kasir_name=session.name,
        subtotal=_q(pricing.subtotal),
        discount_amount=_q(pricing.discount_amount),
        tax_amount=_q(pricing.tax_amount),
        total_amount=_q(pricing.total),
        payment_method=method,
        cash_received=_q(cash_received) if cash_received is not None else None,
        change_given=_q(pricing.change_given) if method == PaymentMethod.CASH else None,
        timestamp=datetime.now(timezone.utc),
    )
    for position, line in enumerate(checkout.cart.lines):
        txn.items.append(
            TransactionItem(
                position=position,
                product_id=line.product_id,
                product_name=line.product_name,
                unit_name=line.unit_name,
                quantity=line.quantity,
                price_per_unit=_q(line.unit_price),
                total_price=_q(line.line_total),
            )
        )

    try:
        for unit, quantity in units:
            # Guarded decrement; another outlet may have sold the stock meanwhile
            result = db.execute(
                update(ProductUnit)
                .where(ProductUnit.id == unit.id, ProductUnit.stock >= quantity)
                .values(stock=ProductUnit.stock - quantity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                message = f"Insufficient stock for '{names[unit.id]}': {quantity} requested"
                db.rollback()
                raise ValidationError(message)
        db.add(txn)
        db.flush()
        log_action(
            db,
            user_id=session.user_id,
            action="SALE_COMPLETED",
            resource_type="sales_transactions",
            resource_id=str(txn.id),
            changes={
                "outlet_id": str(outlet.id),
                "total_amount": str(txn.total_amount),
                "payment_method": method.value,
                "items": len(txn.items),
            },
            merchant_id=session.merchant_id,
            ip_address=ip_address,
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to save sale for kasir %s", session.user_id)
        raise WriteError("Could not save the transaction, please try again") from exc

    db.refresh(txn)
    checkout.reset()
    logger.info("Sale %s completed at outlet %s: %s", txn.id, outlet.id, txn.total_amount)
    return txn


def get_transaction(db: Session, session: SessionContext, transaction_id: UUID) -> SalesTransaction:
    txn = (
        db.query(SalesTransaction)
        .options(selectinload(SalesTransaction.items))
        .filter(
            SalesTransaction.id == transaction_id,
            SalesTransaction.merchant_id == session.merchant_id,
        )
        .first()
    )
    if txn is None:
        raise ValidationError("Transaction not found")
    allowed = session.policy.allowed_outlets(session)
    if allowed is not None and txn.outlet_id not in allowed:
        raise ValidationError("Transaction not found")
    return txn
