"""
ProductLinkage model - local ledger of master/child linkages.

The product metafields on Shopify are the source of truth for which
children belong to a master. This table records what this service last
wrote there, with a version that moves on every relink and every sync.
"""
from datetime import datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.store import Store


class ProductLinkage(Base):
    """Master product and its ordered child product ids for one store."""

    __tablename__ = "product_linkages"
    __table_args__ = (
        UniqueConstraint("shop_id", "master_product_id", name="uq_product_linkages_shop_master"),
    )

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    shop_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("stores.shop_id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    master_product_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # Ordered list of numeric product ids, as strings
    child_product_ids: Mapped[list[str]] = mapped_column(JSON, default=list)

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    # Last propagated quantity
    last_synced_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
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
    store: Mapped["Store"] = relationship("Store", back_populates="linkages")

    def __repr__(self) -> str:
        return f"<ProductLinkage {self.master_product_id} -> {len(self.child_product_ids or [])}>"
