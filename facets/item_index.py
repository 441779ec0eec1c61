"""Canonical path -> page exists, built once per category and reused by every page."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator

from facets.combinations import Combination, enumerate_combinations
from facets.schema import AttributeSchema, CatalogItem

logger = logging.getLogger(__name__)


class PathLookup:
    __slots__ = ("_paths",)

    def __init__(self, paths: Iterable[str]):
        self._paths = frozenset(paths)

    def __contains__(self, path: object) -> bool:
        return path in self._paths

    def __len__(self) -> int:
        return len(self._paths)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._paths))


def build_lookup(combinations: Iterable[Combination]) -> PathLookup:
    return PathLookup(combo.path for combo in combinations)


def is_valid(lookup: PathLookup, path: str) -> bool:
    return path in lookup


@dataclass(frozen=True)
class CategoryIndex:
    slug: str
    schema: AttributeSchema
    items: tuple[CatalogItem, ...]
    combinations: tuple[Combination, ...]
    lookup: PathLookup


class BuildCache:
    """Per-build memo of category schemas, combinations and lookups.

    Call ``reset()`` at the start of every build so nothing leaks between builds.
    """

    def __init__(self, *, max_depth: int | None = None):
        self.max_depth = max_depth
        self._categories: dict[str, CategoryIndex] = {}

    def reset(self) -> None:
        self._categories.clear()

    def __contains__(self, slug: object) -> bool:
        return slug in self._categories

    def __len__(self) -> int:
        return len(self._categories)

    def category(
        self,
        slug: str,
        items: Iterable[CatalogItem],
        schema: AttributeSchema | None = None,
    ) -> CategoryIndex:
        cached = self._categories.get(slug)
        if cached is not None:
            return cached

        items = tuple(items)
        schema = schema or AttributeSchema.from_items(items)
        combinations = tuple(enumerate_combinations(schema, items, self.max_depth))
        entry = CategoryIndex(
            slug=slug,
            schema=schema,
            items=items,
            combinations=combinations,
            lookup=build_lookup(combinations),
        )
        self._categories[slug] = entry
        logger.info("Indexed category %s: %d items, %d pages", slug, len(items), len(combinations))
        return entry
