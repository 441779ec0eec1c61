"""Canonical encoding between a filter set plus sort key and URL path segments.

``encode`` sorts filter keys so equal filter sets always share one path, which
lets the item index be a flat set of strings. ``decode`` never raises: anything
it cannot parse comes back as "no filters, default sort".
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Mapping, NamedTuple
from urllib.parse import quote, unquote

from facets.sorting import DEFAULT_SORT, is_sort_key

logger = logging.getLogger(__name__)

SEARCH_SEGMENT = "search"
SAFE_COMPONENT_CHARS = "~!*()'"
_SEARCH_PATH_RE = re.compile(r"^(?P<base>.*?)/" + SEARCH_SEGMENT + r"(?:/(?P<encoded>.*))?$")


class UrlMode(str, Enum):
    PATH = "path"
    HASH = "hash"


class DecodedState(NamedTuple):
    filters: dict[str, str]
    sort_key: str


def empty_state() -> DecodedState:
    return DecodedState({}, DEFAULT_SORT)


def quote_component(value: str) -> str:
    return quote(value, safe=SAFE_COMPONENT_CHARS)


def encode(filters: Mapping[str, str] | None, sort_key: str = DEFAULT_SORT) -> str:
    """{"size": "small", "colour": "red"}, "price-asc" -> "colour/red/size/small/price-asc"."""
    if not is_sort_key(sort_key):
        raise ValueError(f"Unknown sort key: {sort_key!r}")

    segments: list[str] = []
    for key in sorted(filters or {}):
        segments.append(quote_component(key))
        segments.append(quote_component(filters[key]))
    if sort_key != DEFAULT_SORT:
        segments.append(sort_key)
    return "/".join(segments)


def _malformed(path: object, reason: str) -> DecodedState:
    logger.debug("Ignoring malformed filter path %r: %s", path, reason)
    return empty_state()


def decode(path: object) -> DecodedState:
    if not isinstance(path, str):
        return _malformed(path, "not a string")

    trimmed = path.strip().strip("/")
    if not trimmed:
        return empty_state()

    try:
        segments = [unquote(segment, errors="strict") for segment in trimmed.split("/")]
    except UnicodeDecodeError:
        return _malformed(path, "invalid percent-encoding")

    sort_key = DEFAULT_SORT
    if len(segments) % 2 == 1:
        tail = segments.pop()
        if not is_sort_key(tail):
            return _malformed(path, f"unpaired segment {tail!r}")
        sort_key = tail

    filters: dict[str, str] = {}
    for key, value in zip(segments[0::2], segments[1::2]):
        if not key or not value:
            return _malformed(path, "empty key or value")
        if key in filters:
            return _malformed(path, f"repeated key {key!r}")
        filters[key] = value
    return DecodedState(filters, sort_key)


def split_search_path(pathname: str) -> tuple[str, str]:
    """'/categories/widgets/search/colour/red/' -> ('/categories/widgets', 'colour/red')."""
    value = (pathname or "").rstrip("/")
    match = _SEARCH_PATH_RE.match(value)
    if not match:
        return value, ""
    return match.group("base"), (match.group("encoded") or "").strip("/")


def search_url(base_url: str, filters: Mapping[str, str] | None, sort_key: str = DEFAULT_SORT) -> str:
    base = base_url.rstrip("/")
    encoded = encode(filters, sort_key)
    if encoded:
        return f"{base}/{SEARCH_SEGMENT}/{encoded}/"
    return f"{base}/"


def build_filter_url(pathname: str, filters: Mapping[str, str] | None, sort_key: str = DEFAULT_SORT) -> str:
    base, _ = split_search_path(pathname)
    return search_url(base, filters, sort_key)


def hash_for(filters: Mapping[str, str] | None, sort_key: str = DEFAULT_SORT) -> str:
    encoded = encode(filters, sort_key)
    return f"#{encoded}" if encoded else ""


def encoded_fragment(pathname: str, hash_value: str, mode: UrlMode | str) -> str:
    if UrlMode(mode) is UrlMode.HASH:
        return (hash_value or "").lstrip("#")
    return split_search_path(pathname)[1]


def has_encoded_state(pathname: str, hash_value: str, mode: UrlMode | str) -> bool:
    return bool(encoded_fragment(pathname, hash_value, mode))


def decode_location(pathname: str, hash_value: str, mode: UrlMode | str) -> DecodedState:
    return decode(encoded_fragment(pathname, hash_value, mode))
