"""Sort catalog shared by generated pages and the hydration engine."""

from __future__ import annotations

import math
import unicodedata
from dataclasses import dataclass
from typing import Callable, Iterable, NamedTuple, TypeVar

T = TypeVar("T")

DEFAULT_SORT = "default"


@dataclass(frozen=True)
class SortOption:
    key: str
    label: str


SORT_OPTIONS = (
    SortOption("default", "Featured"),
    SortOption("price-asc", "Price: low to high"),
    SortOption("price-desc", "Price: high to low"),
    SortOption("name-asc", "Name: A to Z"),
    SortOption("name-desc", "Name: Z to A"),
)
SORT_KEYS = tuple(option.key for option in SORT_OPTIONS)
SORT_LABELS = {option.key: option.label for option in SORT_OPTIONS}


class SortFields(NamedTuple):
    title: str
    price: float | None
    index: int


def is_sort_key(value: object) -> bool:
    return isinstance(value, str) and value in SORT_LABELS


def coerce_price(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(number) else number


def _fold_title(title: str) -> str:
    normalized = unicodedata.normalize("NFKD", title)
    stripped = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    return stripped.casefold()


def sort_records(records: Iterable[T], sort_key: str, fields_of: Callable[[T], SortFields]) -> list[T]:
    """Order records for a sort key; ties and unknown keys keep catalog order.

    Items without a price go last for both price directions.
    """
    ordered = sorted(records, key=lambda record: fields_of(record).index)

    if sort_key == "price-asc":
        return sorted(ordered, key=lambda record: _price_key(fields_of(record), descending=False))
    if sort_key == "price-desc":
        return sorted(ordered, key=lambda record: _price_key(fields_of(record), descending=True))
    if sort_key == "name-asc":
        return sorted(ordered, key=lambda record: _fold_title(fields_of(record).title))
    if sort_key == "name-desc":
        return sorted(ordered, key=lambda record: _fold_title(fields_of(record).title), reverse=True)
    return ordered


def _price_key(fields: SortFields, *, descending: bool) -> tuple[int, float]:
    if fields.price is None:
        return (1, 0.0)
    return (0, -fields.price if descending else fields.price)
