"""Per-category attribute schemas.

Each category declares its own dynamic attributes (brand, screen size,
material, ...) instead of the listing table having a column per field.
The declaration is stored as a JSON object on the category row:

    {
        "brand": {"type": "enum", "label": "Brand", "values": ["Sony", "LG"]},
        "screenSize": {"type": "range", "label": "Screen Size", "unit": "inches"},
        "smartTv": {"type": "boolean", "label": "Smart TV"}
    }

Key order is declaration order and drives facet ordering.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger()

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")


class AttributeType(str, Enum):
    """Attribute value kinds a category can declare."""

    ENUM = "enum"
    RANGE = "range"
    BOOLEAN = "boolean"
    TEXT = "text"
    NUMBER = "number"

    @property
    def is_numeric(self) -> bool:
        """Whether facets for this type report min/max bounds."""
        return self in (AttributeType.RANGE, AttributeType.NUMBER)


@dataclass(frozen=True)
class AttributeDefinition:
    """Declaration of one dynamic attribute.

    Attributes:
        type: Value kind, selects the facet strategy.
        label: Display label.
        values: Allowed values (enum only, never empty for enums).
        unit: Display unit (e.g. "inches", "GB").
        min: Declared lower bound. Facet bounds come from data instead.
        max: Declared upper bound. Facet bounds come from data instead.
        required: Whether listings must carry the attribute.
        searchable: Whether the attribute is meant for text search.
        filterable: Whether a facet is generated for the attribute.
    """

    type: AttributeType
    label: str
    values: tuple[str, ...] = ()
    unit: str | None = None
    min: float | None = None
    max: float | None = None
    required: bool = False
    searchable: bool = True
    filterable: bool = True

    @classmethod
    def from_dict(cls, key: str, data: dict[str, Any]) -> "AttributeDefinition":
        """Build a definition from its stored JSON form.

        Args:
            key: Attribute key (used for the default label and errors).
            data: Stored definition.

        Returns:
            Parsed definition.

        Raises:
            ValueError: If the definition is malformed.
        """
        if not isinstance(data, dict):
            raise ValueError(f"definition for '{key}' is not an object")

        try:
            attr_type = AttributeType(data.get("type"))
        except ValueError:
            raise ValueError(f"unknown attribute type {data.get('type')!r} for '{key}'")

        raw_values = data.get("values") or []
        if not isinstance(raw_values, list):
            raise ValueError(f"values for '{key}' must be a list")
        values = tuple(str(v) for v in raw_values)

        if attr_type is AttributeType.ENUM and not values:
            raise ValueError(f"enum attribute '{key}' declares no values")

        return cls(
            type=attr_type,
            label=str(data.get("label") or key),
            values=values,
            unit=data.get("unit"),
            min=data.get("min"),
            max=data.get("max"),
            required=bool(data.get("required", False)),
            searchable=bool(data.get("searchable", True)),
            filterable=bool(data.get("filterable", True)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the stored JSON form."""
        data: dict[str, Any] = {
            "type": self.type.value,
            "label": self.label,
            "required": self.required,
            "searchable": self.searchable,
            "filterable": self.filterable,
        }
        if self.values:
            data["values"] = list(self.values)
        if self.unit is not None:
            data["unit"] = self.unit
        if self.min is not None:
            data["min"] = self.min
        if self.max is not None:
            data["max"] = self.max
        return data


def parse_attribute_schema(
    raw: dict[str, Any] | None,
    category_slug: str = "",
) -> dict[str, AttributeDefinition]:
    """Parse a stored attribute schema into an ordered mapping.

    Malformed definitions are skipped so one bad entry does not hide the
    rest of the category's facets.

    Args:
        raw: Stored schema object (key -> definition).
        category_slug: Owning category, for log context.

    Returns:
        Definitions keyed by attribute key, in declaration order.
    """
    if not raw:
        return {}
    if not isinstance(raw, dict):
        logger.warning(
            "Attribute schema is not an object",
            category=category_slug,
        )
        return {}

    schema: dict[str, AttributeDefinition] = {}
    for key, data in raw.items():
        try:
            schema[key] = AttributeDefinition.from_dict(key, data)
        except ValueError as e:
            logger.warning(
                "Skipping malformed attribute definition",
                category=category_slug,
                attribute=key,
                error=str(e),
            )
    return schema


@dataclass(frozen=True)
class Category:
    """A listing category with its attribute schema.

    Attributes:
        id: Category ID.
        name: Display name.
        slug: URL-safe unique key.
        description: Optional description.
        attribute_schema: Attribute definitions in declaration order.
        is_active: Whether the category is visible to search.
        sort_order: Display position among categories.
    """

    id: str
    name: str
    slug: str
    description: str | None = None
    attribute_schema: dict[str, AttributeDefinition] = field(default_factory=dict)
    is_active: bool = True
    sort_order: int = 0

    def attribute_keys(self) -> list[str]:
        """Get declared attribute keys in declaration order."""
        return list(self.attribute_schema)

    def filterable_attributes(self) -> dict[str, AttributeDefinition]:
        """Get the definitions that produce facets."""
        return {
            key: definition
            for key, definition in self.attribute_schema.items()
            if definition.filterable
        }
