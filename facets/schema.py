"""Attribute schema and catalog item parsing for a single category."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from facets.sorting import SortFields, coerce_price


class SchemaViolation(ValueError):
    """Raised when a filter key or value is not declared by the category schema."""


def slugify(text: str) -> str:
    """Normalize attribute names and values to URL-safe slugs."""
    normalized = unicodedata.normalize("NFKD", text)
    ascii_text = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    ascii_text = ascii_text.lower()
    ascii_text = re.sub(r"[^a-z0-9]+", "-", ascii_text)
    return ascii_text.strip("-")


@dataclass(frozen=True)
class CatalogItem:
    id: str
    title: str
    price: float | None
    filters: dict[str, str]
    labels: dict[str, str]
    position: int
    url: str = ""

    @property
    def sort_fields(self) -> SortFields:
        return SortFields(self.title, self.price, self.position)

    def payload(self) -> dict[str, Any]:
        """JSON payload embedded in the item's data-filter-item attribute."""
        return {"id": self.id, "filters": dict(self.filters), "price": self.price, "title": self.title}


def parse_filter_attributes(raw: object) -> tuple[dict[str, str], dict[str, str]]:
    """[{"name": "Size", "value": "Small"}] -> ({"size": "small"}, {"size": "Size", "small": "Small"})."""
    filters: dict[str, str] = {}
    labels: dict[str, str] = {}
    if not isinstance(raw, list):
        return filters, labels

    for attr in raw:
        if not isinstance(attr, dict):
            continue
        name = str(attr.get("name") or "").strip()
        value = str(attr.get("value") or "").strip()
        key_slug = slugify(name)
        value_slug = slugify(value)
        if not key_slug or not value_slug:
            continue
        filters[key_slug] = value_slug
        labels.setdefault(key_slug, name)
        labels.setdefault(value_slug, value)
    return filters, labels


def parse_catalog_item(record: Mapping[str, Any], position: int) -> CatalogItem:
    nested = record.get("data")
    data = nested if isinstance(nested, dict) else record
    filters, labels = parse_filter_attributes(data.get("filter_attributes"))
    item_id = record.get("id") or data.get("id") or f"item-{position}"
    return CatalogItem(
        id=str(item_id),
        title=str(data.get("title") or ""),
        price=coerce_price(data.get("price")),
        filters=filters,
        labels=labels,
        position=position,
        url=str(record.get("url") or data.get("url") or ""),
    )


def parse_catalog_items(records: Iterable[Mapping[str, Any]]) -> list[CatalogItem]:
    return [parse_catalog_item(record, position) for position, record in enumerate(records)]


@dataclass(frozen=True)
class AttributeSchema:
    attributes: dict[str, tuple[str, ...]]
    labels: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_items(cls, items: Iterable[CatalogItem]) -> AttributeSchema:
        values_by_key: dict[str, set[str]] = {}
        labels: dict[str, str] = {}
        for item in items:
            for key, value in item.filters.items():
                values_by_key.setdefault(key, set()).add(value)
            for slug, label in item.labels.items():
                labels.setdefault(slug, label)

        attributes = {key: tuple(sorted(values_by_key[key])) for key in sorted(values_by_key)}
        return cls(attributes=attributes, labels=labels)

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(self.attributes)

    def label(self, slug: str) -> str:
        return self.labels.get(slug, slug)

    def declares(self, key: str, value: str) -> bool:
        return value in self.attributes.get(key, ())

    def validate_filters(self, filters: Mapping[str, str], *, source: str = "filters") -> None:
        for key, value in filters.items():
            if key not in self.attributes:
                raise SchemaViolation(f"{source}: unknown attribute {key!r}")
            if value not in self.attributes[key]:
                raise SchemaViolation(f"{source}: value {value!r} is not declared for attribute {key!r}")
