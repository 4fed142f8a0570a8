"""Storefront services: cart and wishlist, wishlist sync, promotions, orders,
catalog, search, auth and reports."""
from .store_service import StoreService
from .wishlist_sync_service import WishlistSyncService
from .promotion_service import PromotionService
from .order_service import OrderService
from .search_service import SearchService, DebouncedSearch
from .catalog_service import CatalogService
from .auth_service import AuthService
from .report_service import ReportService

__all__ = [
    'StoreService',
    'WishlistSyncService',
    'PromotionService',
    'OrderService',
    'SearchService',
    'DebouncedSearch',
    'CatalogService',
    'AuthService',
    'ReportService',
]
