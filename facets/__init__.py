"""Reexports the faceted-navigation building blocks."""

from facets.sorting import DEFAULT_SORT, SORT_KEYS, SORT_OPTIONS, sort_records
from facets.path_codec import UrlMode, decode, encode, search_url
from facets.schema import AttributeSchema, CatalogItem, SchemaViolation, parse_catalog_items
from facets.combinations import Combination, enumerate_combinations, generate_filter_redirects
from facets.item_index import BuildCache, PathLookup, build_lookup, is_valid
from facets.filter_ui import UIModel, project
from facets.hydration import FacetNavigator, apply_filters_and_sort, hydrate

__all__ = [
    "AttributeSchema",
    "BuildCache",
    "CatalogItem",
    "Combination",
    "DEFAULT_SORT",
    "FacetNavigator",
    "PathLookup",
    "SORT_KEYS",
    "SORT_OPTIONS",
    "SchemaViolation",
    "UIModel",
    "UrlMode",
    "apply_filters_and_sort",
    "build_lookup",
    "decode",
    "encode",
    "enumerate_combinations",
    "generate_filter_redirects",
    "hydrate",
    "is_valid",
    "parse_catalog_items",
    "project",
    "search_url",
    "sort_records",
]
