# Import every model module so Base.metadata is complete for Alembic and
# create_all(), and string relationships resolve on first mapper use.

from backend.app.models.audit import AuditLog
from backend.app.models.inventory import Product, ProductUnit, StockAdjustment
from backend.app.models.merchant import Merchant, MerchantSettings
from backend.app.models.outlet import Outlet
from backend.app.models.pos import PaymentMethod, SalesTransaction, TransactionItem
from backend.app.models.supplier import Supplier
from backend.app.models.user import RoleEnum, User, UserStatus, kasir_outlets

__all__ = [
    "AuditLog",
    "Merchant",
    "MerchantSettings",
    "Outlet",
    "PaymentMethod",
    "Product",
    "ProductUnit",
    "RoleEnum",
    "SalesTransaction",
    "StockAdjustment",
    "Supplier",
    "TransactionItem",
    "User",
    "UserStatus",
    "kasir_outlets",
]
