"""POS cart and pricing engine.

Pure, in-memory logic: no database access happens here. The checkout
service (``services.pos``) loads products, feeds them into a :class:`Cart`
and persists the result.
"""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Iterable
from uuid import UUID

from backend.app.models.inventory import Product
from backend.app.models.pos import PaymentMethod

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class CartState(str, enum.Enum):
    EMPTY = "EMPTY"
    NON_EMPTY = "NON_EMPTY"


@dataclass(frozen=True)
class SellableProduct:
    """The product unit a POS button adds to the cart."""

    product_id: UUID
    name: str
    unit_name: str
    unit_price: Decimal
    stock: int

    @classmethod
    def from_product(cls, product: Product) -> SellableProduct | None:
        unit = product.display_unit
        if unit is None:
            return None
        return cls(
            product_id=product.id,
            name=product.name,
            unit_name=unit.name,
            unit_price=Decimal(str(unit.price)),
            stock=unit.stock,
        )


@dataclass
class CartLine:
    product_id: UUID
    product_name: str
    unit_name: str
    unit_price: Decimal
    quantity: int
    available_stock: int | None = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class PricingResult:
    subtotal: Decimal
    discount_amount: Decimal
    subtotal_after_discount: Decimal
    tax_amount: Decimal
    total: Decimal
    change_given: Decimal


def coerce_quantity(raw: object) -> int:
    """Turn user input into a quantity; anything unusable becomes 0.

    Fractions are truncated the way a numeric text box reads them
    ("2.7" -> 2). Negative values are returned as-is and mean removal.
    """
    if isinstance(raw, bool) or raw is None:
        return 0
    if isinstance(raw, int):
        return raw
    text = str(raw).strip()
    if not text:
        return 0
    try:
        value = Decimal(text)
    except InvalidOperation:
        return 0
    if not value.is_finite():
        return 0
    return int(value)


class Cart:
    """Ordered cart lines keyed by product; at most one line per product."""

    def __init__(self) -> None:
        self._lines: dict[UUID, CartLine] = {}

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    @property
    def state(self) -> CartState:
        return CartState.NON_EMPTY if self._lines else CartState.EMPTY

    def is_empty(self) -> bool:
        return not self._lines

    def get(self, product_id: UUID) -> CartLine | None:
        return self._lines.get(product_id)

    def add_item(self, product: SellableProduct) -> bool:
        """Add one of *product*. Returns False when the stock cap was hit."""
        line = self._lines.get(product.product_id)
        if line is None:
            self._lines[product.product_id] = CartLine(
                product_id=product.product_id,
                product_name=product.name,
                unit_name=product.unit_name,
                unit_price=product.unit_price,
                quantity=1,
                available_stock=product.stock,
            )
            return True
        line.available_stock = product.stock
        if line.quantity >= product.stock:
            return False
        line.quantity += 1
        return True

    def remove_item(self, product_id: UUID) -> bool:
        return self._lines.pop(product_id, None) is not None

    def set_quantity(self, product_id: UUID, quantity: object) -> int:
        """Replace the quantity of a line and return the quantity applied.

        Invalid or non-positive input removes the line (returns 0). A request
        above the known stock is capped at that stock.
        """
        line = self._lines.get(product_id)
        if line is None:
            return 0
        qty = coerce_quantity(quantity)
        if qty <= 0:
            self.remove_item(product_id)
            return 0
        if line.available_stock is not None and qty > line.available_stock:
            qty = line.available_stock
            if qty <= 0:
                self.remove_item(product_id)
                return 0
        line.quantity = qty
        return qty

    def clear(self) -> None:
        self._lines.clear()

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self):
        return iter(self.lines)


def _pct(rate: object) -> Decimal:
    return Decimal(str(rate)) / HUNDRED


def compute_pricing(
    cart: Cart | Iterable[CartLine],
    tax_rate_percent: object,
    discount_rate_percent: object,
    payment_method: PaymentMethod | str = PaymentMethod.CASH,
    cash_received: object = None,
) -> PricingResult:
    """Compute the monetary breakdown of a cart.

    Order is fixed: discount on the subtotal first, then tax on the
    discounted amount. No intermediate rounding.
    """
    lines = cart.lines if isinstance(cart, Cart) else list(cart)

    subtotal = sum((line.unit_price * line.quantity for line in lines), ZERO)
    discount_amount = subtotal * _pct(discount_rate_percent)
    subtotal_after_discount = subtotal - discount_amount
    tax_amount = subtotal_after_discount * _pct(tax_rate_percent)
    total = subtotal_after_discount + tax_amount

    change_given = ZERO
    if cash_received is not None and PaymentMethod(payment_method) == PaymentMethod.CASH:
        cash = Decimal(str(cash_received))
        if cash > total:
            change_given = cash - total

    return PricingResult(
        subtotal=subtotal,
        discount_amount=discount_amount,
        subtotal_after_discount=subtotal_after_discount,
        tax_amount=tax_amount,
        total=total,
        change_given=change_given,
    )


# ─── Per-user checkout sessions ─────────────────────────────────────────────


@dataclass
class CheckoutSession:
    """The active cart of one user plus the payment fields of the POS screen.

    Hold ``lock`` while reading or changing the cart; checkout keeps it for
    the whole sale so two requests can never sell the same cart twice.
    """

    cart: Cart = field(default_factory=Cart)
    payment_method: PaymentMethod = PaymentMethod.CASH
    cash_received: Decimal = ZERO
    outlet_id: UUID | None = None
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def reset(self) -> None:
        self.cart.clear()
        self.cash_received = ZERO


class CartStore:
    """Process-local checkout sessions keyed by user id.

    For multi-replica deployments, move this to Redis.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[UUID, CheckoutSession] = {}

    def get(self, user_id: UUID) -> CheckoutSession:
        with self._lock:
            session = self._sessions.get(user_id)
            if session is None:
                session = CheckoutSession()
                self._sessions[user_id] = session
            return session

    def discard(self, user_id: UUID) -> None:
        with self._lock:
            self._sessions.pop(user_id, None)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()


cart_store = CartStore()
