from .branches import Branch
from .inventory import InventoryItem
from .customers import Customer
from .sales import Sale, SaleLine, SaleLineMaterial, SALE_KIND_GOODS, SALE_KIND_SERVICE_ORDER
from .stats import DailyStat, Counter
from .catalog import Service
from .auth import User, SessionToken, USER_ROLES

__all__ = [
    'Branch',
    'InventoryItem',
    'Customer',
    'Sale', 'SaleLine', 'SaleLineMaterial', 'SALE_KIND_GOODS', 'SALE_KIND_SERVICE_ORDER',
    'DailyStat', 'Counter',
    'Service',
    'User', 'SessionToken', 'USER_ROLES',
]
