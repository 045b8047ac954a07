"""
Store model - represents an installed Shopify store.
"""
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.linkage import ProductLinkage


class Store(Base):
    """Shopify store with encrypted access token storage."""

    __tablename__ = "stores"

    # Platform-assigned shop id, immutable for the life of the store
    shop_id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
    )
    domain: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    access_token_encrypted: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    scopes: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    linkages: Mapped[list["ProductLinkage"]] = relationship(
        "ProductLinkage",
        back_populates="store",
        cascade="all, delete-orphan",
    )

    @property
    def namespace(self) -> str:
        """Metafield namespace for this store."""
        from app.services.namespacing import namespace_for

        return namespace_for(self.shop_id)

    def __repr__(self) -> str:
        return f"<Store {self.domain}>"
