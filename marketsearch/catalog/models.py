"""SQLAlchemy models for the listing catalog.

Defines Category and Listing tables. Dynamic per-category attributes live in
JSON columns; nested listing value objects (location, supplier, inventory)
are flattened into columns and re-nested by ``to_dict``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketsearch.catalog.schema import Category as CategoryRecord
from marketsearch.catalog.schema import parse_attribute_schema
from marketsearch.infrastructure.database import Base

PLACEHOLDER_IMAGE = "/placeholder-product.jpg"


class ListingStatus(str, Enum):
    """Listing lifecycle states. Only active listings are searchable."""

    DRAFT = "draft"
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"


class Category(Base):
    """Category row with its attribute schema.

    Attributes:
        id: Unique category identifier (UUID string).
        name: Display name (e.g., "Televisions").
        slug: Unique lowercase key (e.g., "televisions").
        description: Optional description.
        attribute_schema: JSON object of attribute definitions.
        is_active: Whether the category is visible to search.
        sort_order: Display position.
    """

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    attribute_schema: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Category(id={self.id}, slug={self.slug})>"

    def to_record(self) -> CategoryRecord:
        """Convert to a detached category with a parsed schema.

        Returns:
            Category record usable after the session closes.
        """
        return CategoryRecord(
            id=self.id,
            name=self.name,
            slug=self.slug,
            description=self.description,
            attribute_schema=parse_attribute_schema(self.attribute_schema, self.slug),
            is_active=self.is_active,
            sort_order=self.sort_order,
        )


class Listing(Base):
    """Product listing offered by a supplier.

    Attributes:
        id: Unique listing identifier (UUID string).
        title: Listing title (text search weight 10).
        description: Listing description (text search weight 5).
        price: Unit price in major currency units.
        currency: Currency code (default INR).
        city, state, country: Listing location.
        latitude, longitude: Optional coordinates.
        category_id: Owning category.
        attributes: Dynamic attributes keyed by the category's schema.
        images: Image URLs.
        supplier_*: Supplier details (name has text search weight 3).
        inventory_*: Stock quantity, unit and minimum order quantity.
        status: Lifecycle status.
        featured: Whether the listing is promoted.
        views: View counter.
        inquiries: Inquiry counter.
    """

    __tablename__ = "listings"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")

    city: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    country: Mapped[str] = mapped_column(String(100), nullable=False, default="India")
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    category_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("categories.id"),
        nullable=False,
        index=True,
    )
    attributes: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    images: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    supplier_name: Mapped[str] = mapped_column(String(200), nullable=False)
    supplier_email: Mapped[str] = mapped_column(String(200), nullable=False)
    supplier_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    supplier_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    supplier_rating: Mapped[float | None] = mapped_column(Float, nullable=True)

    inventory_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    inventory_unit: Mapped[str] = mapped_column(String(50), nullable=False, default="pieces")
    inventory_moq: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ListingStatus.ACTIVE.value,
        index=True,
    )
    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    inquiries: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    category: Mapped["Category"] = relationship("Category")

    def __repr__(self) -> str:
        """String representation."""
        return f"<Listing(id={self.id}, title={self.title[:30]}...)>"

    @property
    def is_available(self) -> bool:
        """Whether the listing can be ordered right now."""
        return self.status == ListingStatus.ACTIVE.value and self.inventory_quantity > 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        The category is included only when it was loaded with the listing.

        Returns:
            Dictionary representation with nested value objects.
        """
        coordinates = None
        if self.latitude is not None and self.longitude is not None:
            coordinates = {"lat": self.latitude, "lng": self.longitude}

        category = self.__dict__.get("category")

        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "currency": self.currency,
            "location": {
                "city": self.city,
                "state": self.state,
                "country": self.country,
                "coordinates": coordinates,
            },
            "category_id": self.category_id,
            "category": (
                {"id": category.id, "name": category.name, "slug": category.slug}
                if category is not None
                else None
            ),
            "attributes": dict(self.attributes or {}),
            "images": list(self.images) if self.images else [PLACEHOLDER_IMAGE],
            "supplier": {
                "name": self.supplier_name,
                "email": self.supplier_email,
                "phone": self.supplier_phone,
                "verified": self.supplier_verified,
                "rating": self.supplier_rating,
            },
            "inventory": {
                "quantity": self.inventory_quantity,
                "unit": self.inventory_unit,
                "moq": self.inventory_moq,
            },
            "status": self.status,
            "featured": self.featured,
            "views": self.views,
            "inquiries": self.inquiries,
            "is_available": self.is_available,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
