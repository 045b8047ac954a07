"""
Repository package for data access layer.
"""
from app.repositories.base import BaseRepository
from app.repositories.linkage import LinkageRepository
from app.repositories.store import StoreRepository

__all__ = [
    "BaseRepository",
    "StoreRepository",
    "LinkageRepository",
]
