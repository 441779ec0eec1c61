"""Enumerate every reachable filter/sort combination for one category.

Counts come from intersecting per-value position sets (an inverted index), and
only combinations that still match something are expanded further, so the work
is bounded by what the catalog actually contains rather than by the full
cross product of attributes.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Sequence

from facets.path_codec import SEARCH_SEGMENT, encode, quote_component
from facets.schema import AttributeSchema, CatalogItem
from facets.sorting import DEFAULT_SORT, SORT_KEYS

logger = logging.getLogger(__name__)

InvertedIndex = dict[str, dict[str, frozenset[int]]]


@dataclass(frozen=True)
class Combination:
    filters: dict[str, str]
    sort_key: str
    path: str
    count: int


@dataclass(frozen=True)
class Redirect:
    from_url: str
    to_url: str


def build_inverted_index(schema: AttributeSchema, items: Sequence[CatalogItem]) -> InvertedIndex:
    """attribute -> value -> positions of the items carrying that value.

    Raises SchemaViolation when an item uses something the schema does not declare.
    """
    positions: dict[str, dict[str, set[int]]] = {
        key: {value: set() for value in values} for key, values in schema.attributes.items()
    }
    for position, item in enumerate(items):
        schema.validate_filters(item.filters, source=f"item {item.id!r}")
        for key, value in item.filters.items():
            positions[key][value].add(position)

    return {
        key: {value: frozenset(found) for value, found in values.items()}
        for key, values in positions.items()
    }


def observed_depth(items: Iterable[CatalogItem]) -> int:
    return max((len(item.filters) for item in items), default=0)


def enumerate_filter_combinations(
    schema: AttributeSchema,
    items: Iterable[CatalogItem],
    max_depth: int | None = None,
) -> list[Combination]:
    items = list(items)
    index = build_inverted_index(schema, items)
    keys = schema.keys

    depth_limit = observed_depth(items)
    if max_depth is not None:
        depth_limit = min(depth_limit, max_depth)
    if depth_limit <= 0 or not keys:
        return []

    combinations: list[Combination] = []
    seen: set[str] = set()
    # (filters so far, first key index still free, positions matching the filters; None = every item)
    queue: deque[tuple[dict[str, str], int, frozenset[int] | None]] = deque([({}, 0, None)])

    while queue:
        filters, start, matching = queue.popleft()
        if len(filters) >= depth_limit:
            continue

        for key_index in range(start, len(keys)):
            key = keys[key_index]
            for value in schema.attributes[key]:
                candidates = index[key][value]
                matched = candidates if matching is None else matching & candidates
                if not matched:
                    continue

                combo_filters = {**filters, key: value}
                path = encode(combo_filters)
                if path in seen:
                    continue
                seen.add(path)
                combinations.append(Combination(combo_filters, DEFAULT_SORT, path, len(matched)))
                queue.append((combo_filters, key_index + 1, matched))

    return combinations


def expand_with_sort_variants(combinations: Iterable[Combination]) -> list[Combination]:
    """One combination per sort key; sorting never changes membership."""
    return [
        Combination(combo.filters, sort_key, encode(combo.filters, sort_key), combo.count)
        for combo in combinations
        for sort_key in SORT_KEYS
    ]


def generate_sort_only_pages(total_count: int) -> list[Combination]:
    if total_count <= 0:
        return []
    return [
        Combination({}, sort_key, encode({}, sort_key), total_count)
        for sort_key in SORT_KEYS
        if sort_key != DEFAULT_SORT
    ]


def enumerate_combinations(
    schema: AttributeSchema,
    items: Iterable[CatalogItem],
    max_depth: int | None = None,
) -> list[Combination]:
    items = list(items)
    filter_combinations = enumerate_filter_combinations(schema, items, max_depth)
    combinations = expand_with_sort_variants(filter_combinations) + generate_sort_only_pages(len(items))
    logger.debug(
        "Enumerated %d filter combinations (%d pages) over %d items",
        len(filter_combinations),
        len(combinations),
        len(items),
    )
    return combinations


def generate_filter_redirects(
    schema: AttributeSchema,
    combinations: Iterable[Combination],
    base_url: str,
) -> list[Redirect]:
    """Send truncated filter paths (a key with no value) back to the last valid page."""
    keys = schema.keys
    if not keys:
        return []

    base = base_url.rstrip("/")
    search = f"{base}/{SEARCH_SEGMENT}"
    redirects: dict[str, str] = {}

    for key in keys:
        redirects[f"{search}/{quote_component(key)}/"] = f"{base}/#content"

    for combo in combinations:
        if combo.sort_key != DEFAULT_SORT or not combo.filters:
            continue
        for key in keys:
            if key in combo.filters:
                continue
            redirects[f"{search}/{combo.path}/{quote_component(key)}/"] = f"{search}/{combo.path}/#content"

    return [Redirect(from_url, to_url) for from_url, to_url in redirects.items()]
