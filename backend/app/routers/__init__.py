"""
API routers package.
"""
from app.routers.auth import router as auth_router
from app.routers.health import router as health_router
from app.routers.metafields import router as metafields_router
from app.routers.products import router as products_router
from app.routers.stores import router as stores_router
from app.routers.webhooks import router as webhooks_router

__all__ = [
    "auth_router",
    "health_router",
    "metafields_router",
    "products_router",
    "stores_router",
    "webhooks_router",
]
