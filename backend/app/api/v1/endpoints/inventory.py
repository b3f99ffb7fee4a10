from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from backend.app.api.permission_deps import require_merchant_role
from backend.app.core.database import commit_or_raise, get_db
from backend.app.models.inventory import Product, StockAdjustment
from backend.app.models.user import RoleEnum
from backend.app.schemas.inventory import (
    CatalogItemOut,
    ProductCreate,
    ProductOut,
    ProductUpdate,
    StockAdjustmentIn,
    StockAdjustmentOut,
)
from backend.app.services.access import SessionContext
from backend.app.services.inventory import (
    adjust_stock,
    create_product,
    delete_product,
    find_by_barcode,
    get_product,
    list_adjustments,
    list_products,
    update_product,
)

router = APIRouter()

_admin = require_merchant_role(RoleEnum.ADMIN)
_any_member = require_merchant_role(RoleEnum.ADMIN, RoleEnum.KASIR)


def _catalog_item(product: Product) -> CatalogItemOut | None:
    unit = product.display_unit
    if unit is None:
        return None
    return CatalogItemOut(
        product_id=product.id,
        name=product.name,
        barcode=product.barcode,
        unit_name=unit.name,
        price=unit.price,
        stock=unit.stock,
    )


# ─── Products ─────────────────────────────────────────────────────────────────


@router.get("/products", response_model=list[ProductOut])
def get_products(
    search: str | None = Query(None, max_length=100),
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_any_member),
) -> list[Product]:
    return list_products(db, session.merchant_id, search)


@router.get("/catalog", response_model=list[CatalogItemOut])
def get_catalog(
    search: str | None = Query(None, max_length=100),
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_any_member),
) -> list[CatalogItemOut]:
    """POS product grid: one sellable unit per product, products without units skipped."""
    items = (_catalog_item(p) for p in list_products(db, session.merchant_id, search))
    return [item for item in items if item is not None]


@router.get("/products/barcode/{barcode}", response_model=ProductOut)
def get_product_by_barcode(
    barcode: str,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_any_member),
) -> Product:
    return find_by_barcode(db, session.merchant_id, barcode)


@router.get("/products/{product_id}", response_model=ProductOut)
def get_single_product(
    product_id: UUID,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_any_member),
) -> Product:
    return get_product(db, session.merchant_id, product_id)


@router.post("/products", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def post_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_admin),
) -> Product:
    product = create_product(
        db, merchant_id=session.merchant_id, payload=payload, user_id=session.user_id
    )
    commit_or_raise(db, "the product")
    db.refresh(product)
    return product


@router.put("/products/{product_id}", response_model=ProductOut)
def put_product(
    product_id: UUID,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_admin),
) -> Product:
    product = update_product(
        db,
        merchant_id=session.merchant_id,
        product_id=product_id,
        payload=payload,
        user_id=session.user_id,
    )
    commit_or_raise(db, "the product")
    db.refresh(product)
    return product


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_product(
    product_id: UUID,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_admin),
) -> None:
    delete_product(db, merchant_id=session.merchant_id, product_id=product_id, user_id=session.user_id)
    commit_or_raise(db, "the product deletion")


# ─── Stock Adjustments ──────────────────────────────────────────────────────


@router.post(
    "/products/{product_id}/adjust",
    response_model=StockAdjustmentOut,
    status_code=status.HTTP_201_CREATED,
)
def post_adjustment(
    product_id: UUID,
    payload: StockAdjustmentIn,
    request: Request,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_admin),
) -> StockAdjustment:
    adjustment = adjust_stock(
        db,
        merchant_id=session.merchant_id,
        product_id=product_id,
        new_stock=payload.new_stock,
        user_id=session.user_id,
        unit_name=payload.unit_name,
        reason=payload.reason,
        ip_address=request.client.host if request.client else None,
    )
    commit_or_raise(db, "the stock adjustment")
    db.refresh(adjustment)
    return adjustment


@router.get("/adjustments", response_model=list[StockAdjustmentOut])
def get_adjustments(
    product_id: UUID | None = None,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(_admin),
) -> list[StockAdjustment]:
    return list_adjustments(db, session.merchant_id, product_id)
