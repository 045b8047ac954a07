"""
SQLAlchemy models package.
All models are imported here for easy access and Alembic discovery.
"""
from app.models.linkage import ProductLinkage
from app.models.store import Store

__all__ = [
    "Store",
    "ProductLinkage",
]
