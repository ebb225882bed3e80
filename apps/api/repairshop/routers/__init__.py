"""API routers."""

from repairshop.routers.internal import router as internal_router
from repairshop.routers.notifications import router as notifications_router
from repairshop.routers.orders import router as orders_router

__all__ = [
    "internal_router",
    "notifications_router",
    "orders_router",
]
