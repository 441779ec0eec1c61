"""HTML for the filter panel and item list, matching the hydration engine's DOM contract.

Contract:
- ``[data-filter-container]`` wraps the whole panel and the item list.
- ``ul[data-active-filters]`` holds pills with ``[data-remove-filter]`` links and
  a ``[data-clear-filters]`` link. Remove links also carry the value and labels,
  since a page may omit the group its active option belongs to.
- ``ul.filter-groups`` holds option links with ``data-filter-key``/``data-filter-value``
  and their labels, plus ``select.sort-select`` whose options carry ``data-sort-key``.
- ``ul.items`` holds ``li[data-filter-item]`` with a JSON payload.
"""

from __future__ import annotations

import html
import json
from typing import Iterable

from facets.filter_ui import ActiveFilter, FilterGroup, SortGroup, UIModel
from facets.schema import CatalogItem

CONTAINER_ATTR = "data-filter-container"
ACTIVE_FILTERS_ATTR = "data-active-filters"
ITEM_ATTR = "data-filter-item"
FILTER_KEY_ATTR = "data-filter-key"
FILTER_VALUE_ATTR = "data-filter-value"
FILTER_KEY_LABEL_ATTR = "data-filter-key-label"
FILTER_VALUE_LABEL_ATTR = "data-filter-value-label"
REMOVE_FILTER_ATTR = "data-remove-filter"
CLEAR_FILTERS_ATTR = "data-clear-filters"
SORT_KEY_ATTR = "data-sort-key"
GROUP_ATTR = "data-filter-group"
SORT_GROUP_NAME = "sort"


def _attr(value: str) -> str:
    return html.escape(value, quote=True)


def _render_pill(pill: ActiveFilter) -> str:
    return (
        f"<li><span>{html.escape(pill.key_label)}: {html.escape(pill.value_label)}</span>"
        f"<a href=\"{_attr(pill.remove_url)}\" {REMOVE_FILTER_ATTR}=\"{_attr(pill.key)}\" "
        f"{FILTER_VALUE_ATTR}=\"{_attr(pill.value)}\" "
        f"{FILTER_KEY_LABEL_ATTR}=\"{_attr(pill.key_label)}\" "
        f"{FILTER_VALUE_LABEL_ATTR}=\"{_attr(pill.value_label)}\" aria-label=\"Remove {_attr(pill.key_label)} filter\">×</a></li>"
    )


def render_active_filters(ui: UIModel) -> str:
    if not ui.has_active_filters:
        return ""
    rows = [f"<ul class='filter-active' {ACTIVE_FILTERS_ATTR}>"]
    rows.extend(_render_pill(pill) for pill in ui.active_filters)
    rows.append(f"<li><a href=\"{_attr(ui.clear_all_url)}\" {CLEAR_FILTERS_ATTR}>Clear all</a></li>")
    rows.append("</ul>")
    return "".join(rows)


def _render_group(group: FilterGroup) -> str:
    rows = [f"<li {GROUP_ATTR}=\"{_attr(group.name)}\"><strong>{html.escape(group.label)}</strong><ul>"]
    for option in group.options:
        cls_attr = " class='active'" if option.active else ""
        rows.append(
            f"<li{cls_attr}><a href=\"{_attr(option.url)}\" "
            f"{FILTER_KEY_ATTR}=\"{_attr(option.filter_key)}\" "
            f"{FILTER_VALUE_ATTR}=\"{_attr(option.filter_value)}\" "
            f"{FILTER_KEY_LABEL_ATTR}=\"{_attr(option.filter_key_label)}\" "
            f"{FILTER_VALUE_LABEL_ATTR}=\"{_attr(option.filter_value_label)}\">"
            f"{html.escape(option.filter_value_label)}</a></li>"
        )
    rows.append("</ul></li>")
    return "".join(rows)


def _render_sort_group(sort_group: SortGroup) -> str:
    rows = [f"<li {GROUP_ATTR}=\"{SORT_GROUP_NAME}\"><label>Sort by <select class='sort-select'>"]
    for option in sort_group.options:
        selected = " selected" if option.active else ""
        rows.append(
            f"<option value=\"{_attr(option.url)}\" {SORT_KEY_ATTR}=\"{_attr(option.sort_key)}\"{selected}>"
            f"{html.escape(option.label)}</option>"
        )
    rows.append("</select></label></li>")
    return "".join(rows)


def render_filter_groups(ui: UIModel) -> str:
    if not ui.has_filters and ui.sort_group is None:
        return ""
    rows = ["<ul class='filter-groups'>"]
    rows.extend(_render_group(group) for group in ui.groups)
    if ui.sort_group is not None:
        rows.append(_render_sort_group(ui.sort_group))
    rows.append("</ul>")
    return "".join(rows)


def _format_price(price: float | None) -> str:
    if price is None:
        return ""
    return f" <span class='price'>{price:.2f}</span>"


def render_item(item: CatalogItem) -> str:
    payload = json.dumps(item.payload(), ensure_ascii=False, sort_keys=True)
    title = html.escape(item.title)
    label = f"<a href=\"{_attr(item.url)}\">{title}</a>" if item.url else title
    return f"<li {ITEM_ATTR}=\"{_attr(payload)}\">{label}{_format_price(item.price)}</li>"


def render_item_list(items: Iterable[CatalogItem]) -> str:
    rows = ["<ul class='items'>"]
    rows.extend(render_item(item) for item in items)
    rows.append("</ul>")
    return "\n".join(rows)


def render_filter_panel(ui: UIModel, items: Iterable[CatalogItem]) -> str:
    return (
        f"<div class='filter-panel' id='content' {CONTAINER_ATTR}>"
        f"{render_active_filters(ui)}"
        f"{render_filter_groups(ui)}"
        f"{render_item_list(items)}"
        "</div>"
    )
