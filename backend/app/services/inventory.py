from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from backend.app.core.exceptions import ValidationError
from backend.app.models.inventory import Product, ProductUnit, StockAdjustment
from backend.app.models.supplier import Supplier
from backend.app.schemas.inventory import ProductCreate, ProductUnitIn, ProductUpdate
from backend.app.services.audit import log_action

logger = logging.getLogger(__name__)


def _check_supplier(db: Session, merchant_id: UUID, supplier_id: UUID | None) -> None:
    if supplier_id is None:
        return
    exists = (
        db.query(Supplier.id)
        .filter(Supplier.id == supplier_id, Supplier.merchant_id == merchant_id)
        .first()
    )
    if not exists:
        raise ValidationError("Supplier not found")


def _build_units(units: list[ProductUnitIn]) -> list[ProductUnit]:
    return [
        ProductUnit(
            position=position,
            name=u.name.strip(),
            price=u.price,
            stock=u.stock,
            is_base_unit=u.is_base_unit,
            conversion_factor=1 if u.is_base_unit else u.conversion_factor,
        )
        for position, u in enumerate(units)
    ]


def _unit_snapshot(product: Product) -> list[dict[str, object]]:
    return [
        {"name": u.name, "price": str(u.price), "stock": u.stock, "base": u.is_base_unit}
        for u in product.units
    ]


# ─── Products ─────────────────────────────────────────────────────────────────


def get_product(db: Session, merchant_id: UUID, product_id: UUID) -> Product:
    product = (
        db.query(Product)
        .options(selectinload(Product.units))
        .filter(Product.id == product_id, Product.merchant_id == merchant_id)
        .first()
    )
    if not product:
        raise ValidationError("Product not found")
    return product


def list_products(db: Session, merchant_id: UUID, search: str | None = None) -> list[Product]:
    """Products of a merchant ordered by name; *search* matches name, SKU or barcode."""
    query = (
        db.query(Product)
        .options(selectinload(Product.units))
        .filter(Product.merchant_id == merchant_id)
    )
    if search:
        term = f"%{search.strip().lower()}%"
        query = query.filter(
            func.lower(Product.name).like(term)
            | func.lower(func.coalesce(Product.sku, "")).like(term)
            | func.lower(func.coalesce(Product.barcode, "")).like(term)
        )
    return query.order_by(Product.name).all()


def find_by_barcode(db: Session, merchant_id: UUID, barcode: str) -> Product:
    product = (
        db.query(Product)
        .options(selectinload(Product.units))
        .filter(Product.merchant_id == merchant_id, Product.barcode == barcode.strip())
        .first()
    )
    if not product:
        raise ValidationError(f"No product with barcode {barcode}")
    return product


def create_product(
    db: Session, *, merchant_id: UUID, payload: ProductCreate, user_id: UUID
) -> Product:
    _check_supplier(db, merchant_id, payload.supplier_id)
    product = Product(
        name=payload.name.strip(),
        sku=payload.sku,
        barcode=payload.barcode,
        supplier_id=payload.supplier_id,
        buy_own=payload.buy_own,
        merchant_id=merchant_id,
    )
    product.units = _build_units(payload.units)
    db.add(product)
    db.flush()

    log_action(
        db,
        user_id=user_id,
        action="PRODUCT_CREATED",
        resource_type="products",
        resource_id=str(product.id),
        changes={"name": product.name, "units": _unit_snapshot(product)},
        merchant_id=merchant_id,
    )
    return product


def update_product(
    db: Session,
    *,
    merchant_id: UUID,
    product_id: UUID,
    payload: ProductUpdate,
    user_id: UUID,
) -> Product:
    product = get_product(db, merchant_id, product_id)
    data = payload.model_dump(exclude_unset=True, exclude={"units"})
    if "supplier_id" in data:
        _check_supplier(db, merchant_id, data["supplier_id"])

    old_values: dict[str, object] = {}
    changes: dict[str, object] = {}
    for field, value in data.items():
        if field == "name" and value is not None:
            value = value.strip()
        if field == "name" and value is None:
            continue
        if getattr(product, field) != value:
            old_values[field] = str(getattr(product, field))
            changes[field] = str(value)
            setattr(product, field, value)

    if payload.units is not None:
        old_values["units"] = _unit_snapshot(product)
        product.units.clear()
        db.flush()
        product.units.extend(_build_units(payload.units))
        changes["units"] = _unit_snapshot(product)

    if changes:
        db.flush()
        log_action(
            db,
            user_id=user_id,
            action="PRODUCT_UPDATED",
            resource_type="products",
            resource_id=str(product.id),
            changes=changes,
            old_values=old_values,
            merchant_id=merchant_id,
        )
    return product


def delete_product(db: Session, *, merchant_id: UUID, product_id: UUID, user_id: UUID) -> None:
    product = get_product(db, merchant_id, product_id)
    log_action(
        db,
        user_id=user_id,
        action="PRODUCT_DELETED",
        resource_type="products",
        resource_id=str(product.id),
        old_values={"name": product.name, "units": _unit_snapshot(product)},
        merchant_id=merchant_id,
    )
    db.delete(product)
    db.flush()


# ─── Stock Adjustments ──────────────────────────────────────────────────────


def adjust_stock(
    db: Session,
    *,
    merchant_id: UUID,
    product_id: UUID,
    new_stock: int,
    user_id: UUID,
    unit_name: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
) -> StockAdjustment:
    """Set a unit's stock to an absolute value and record the correction.

    Without *unit_name* the sellable unit (base unit, else first unit) is
    adjusted. The caller commits.
    """
    if new_stock < 0:
        raise ValidationError("Stock cannot be negative")
    if reason is not None and len(reason.strip()) < 3:
        raise ValidationError("Reason must be at least 3 characters")

    product = get_product(db, merchant_id, product_id)
    if unit_name is None:
        unit = product.display_unit
    else:
        unit = next((u for u in product.units if u.name == unit_name), None)
    if unit is None:
        raise ValidationError("Product unit not found")

    previous = unit.stock
    unit.stock = new_stock
    adjustment = StockAdjustment(
        product_id=product.id,
        unit_name=unit.name,
        previous_stock=previous,
        new_stock=new_stock,
        reason=reason.strip() if reason else None,
        merchant_id=merchant_id,
        created_by=user_id,
    )
    db.add(adjustment)
    db.flush()

    log_action(
        db,
        user_id=user_id,
        action="STOCK_ADJUSTMENT",
        resource_type="products",
        resource_id=str(product.id),
        ip_address=ip_address,
        changes={
            "product": product.name,
            "unit": unit.name,
            "new_stock": new_stock,
            "difference": new_stock - previous,
            "reason": adjustment.reason,
        },
        old_values={"stock": previous},
        merchant_id=merchant_id,
    )
    logger.info(
        "Stock of %s/%s adjusted %s -> %s", product.id, unit.name, previous, new_stock
    )
    return adjustment


def list_adjustments(
    db: Session, merchant_id: UUID, product_id: UUID | None = None
) -> list[StockAdjustment]:
    query = db.query(StockAdjustment).filter(StockAdjustment.merchant_id == merchant_id)
    if product_id is not None:
        query = query.filter(StockAdjustment.product_id == product_id)
    return query.order_by(StockAdjustment.created_at.desc()).all()
