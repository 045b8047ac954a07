"""
Store Pydantic schemas for request/response validation.
"""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class StoreBase(BaseModel):
    """Base store schema with common fields."""

    domain: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-zA-Z0-9][a-zA-Z0-9-]*\.myshopify\.com$")


class StoreCreate(StoreBase):
    """Schema for registering a store with an existing token."""

    shop_id: str = Field(..., min_length=1, max_length=64, alias="shopId")
    access_token: str = Field(..., min_length=1, alias="accessToken")
    scopes: str = ""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class StoreResponse(StoreBase):
    """Schema for store API responses. Never includes the token."""

    shop_id: str = Field(alias="shopId")
    scopes: str
    namespace: str
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class MetafieldSchemaResponse(BaseModel):
    """Result of checking the store's metafield definitions."""

    namespace: str
    existing: list[str]
    created: list[str]

    model_config = ConfigDict(from_attributes=True)
