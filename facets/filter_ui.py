"""Render-ready filter UI data for one page: active pills, option groups, sort.

An option is only offered when it is the current selection or when selecting
it lands on a page that exists in the category lookup, so generated pages never
link to empty results. Output depends only on the inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from facets.item_index import PathLookup, is_valid
from facets.path_codec import encode, search_url
from facets.schema import AttributeSchema, SchemaViolation
from facets.sorting import DEFAULT_SORT, SORT_OPTIONS, is_sort_key


@dataclass(frozen=True)
class ActiveFilter:
    key: str
    value: str
    key_label: str
    value_label: str
    remove_path: str
    remove_url: str


@dataclass(frozen=True)
class FilterOption:
    filter_key: str
    filter_value: str
    filter_key_label: str
    filter_value_label: str
    path: str
    url: str
    active: bool


@dataclass(frozen=True)
class FilterGroup:
    name: str
    label: str
    options: tuple[FilterOption, ...]


@dataclass(frozen=True)
class SortChoice:
    sort_key: str
    label: str
    path: str
    url: str
    active: bool


@dataclass(frozen=True)
class SortGroup:
    options: tuple[SortChoice, ...]


@dataclass(frozen=True)
class UIModel:
    active_filters: tuple[ActiveFilter, ...]
    groups: tuple[FilterGroup, ...]
    sort_group: SortGroup | None
    clear_all_url: str
    description: tuple[tuple[str, str], ...]

    @property
    def has_filters(self) -> bool:
        return bool(self.groups)

    @property
    def has_active_filters(self) -> bool:
        return bool(self.active_filters)


def describe_filters(filters: Mapping[str, str], schema: AttributeSchema) -> tuple[tuple[str, str], ...]:
    """{"size": "small"} -> (("Size", "Small"),) for page headings."""
    return tuple((schema.label(key), schema.label(filters[key])) for key in sorted(filters))


def _active_filters(
    schema: AttributeSchema,
    filters: dict[str, str],
    sort_key: str,
    base_url: str,
) -> tuple[ActiveFilter, ...]:
    pills: list[ActiveFilter] = []
    for key in sorted(filters):
        remaining = {other: value for other, value in filters.items() if other != key}
        pills.append(
            ActiveFilter(
                key=key,
                value=filters[key],
                key_label=schema.label(key),
                value_label=schema.label(filters[key]),
                remove_path=encode(remaining, sort_key),
                remove_url=search_url(base_url, remaining, sort_key),
            )
        )
    return tuple(pills)


def _filter_groups(
    schema: AttributeSchema,
    lookup: PathLookup,
    filters: dict[str, str],
    sort_key: str,
    base_url: str,
) -> tuple[FilterGroup, ...]:
    groups: list[FilterGroup] = []
    for name, values in schema.attributes.items():
        options: list[FilterOption] = []
        for value in values:
            active = filters.get(name) == value
            candidate = {**filters, name: value}
            if not active and not is_valid(lookup, encode(candidate)):
                continue
            options.append(
                FilterOption(
                    filter_key=name,
                    filter_value=value,
                    filter_key_label=schema.label(name),
                    filter_value_label=schema.label(value),
                    path=encode(candidate, sort_key),
                    url=search_url(base_url, candidate, sort_key),
                    active=active,
                )
            )
        if len(options) > 1:
            groups.append(FilterGroup(name=name, label=schema.label(name), options=tuple(options)))
    return tuple(groups)


def _sort_group(filters: dict[str, str], sort_key: str, base_url: str) -> SortGroup:
    return SortGroup(
        options=tuple(
            SortChoice(
                sort_key=option.key,
                label=option.label,
                path=encode(filters, option.key),
                url=search_url(base_url, filters, option.key),
                active=option.key == sort_key,
            )
            for option in SORT_OPTIONS
        )
    )


def project(
    schema: AttributeSchema,
    lookup: PathLookup,
    current_filters: Mapping[str, str] | None,
    current_sort_key: str,
    current_count: int,
    *,
    base_url: str = "",
    clear_resets_sort: bool = True,
) -> UIModel:
    filters = dict(current_filters or {})
    schema.validate_filters(filters, source="current filters")
    if not is_sort_key(current_sort_key):
        raise SchemaViolation(f"current sort: unknown sort key {current_sort_key!r}")

    clear_sort = DEFAULT_SORT if clear_resets_sort else current_sort_key
    return UIModel(
        active_filters=_active_filters(schema, filters, current_sort_key, base_url),
        groups=_filter_groups(schema, lookup, filters, current_sort_key, base_url),
        sort_group=_sort_group(filters, current_sort_key, base_url) if current_count > 1 else None,
        clear_all_url=search_url(base_url, {}, clear_sort),
        description=describe_filters(filters, schema),
    )
