"""Client-side faceted navigation over a parsed catalog page.

The engine takes a page produced by the build (see ``facets.markup``), reads
the item payloads embedded in the list, and from then on filters and re-sorts
the list in place while keeping the URL and session history in step.

States: the page starts server-rendered; the first filter/sort/remove action
flips ``has_taken_over`` and the engine owns the active-filter pills from then
on. The flag never flips back.

URL sync has two modes (``FacetSettings.url_mode``):
- ``path``: ``history.push_state`` with ``.../search/<filters>/`` URLs; back and
  forward arrive as ``popstate`` with the pushed state.
- ``hash``: the encoded state lives in the fragment; our own hash writes echo
  back as ``hashchange`` and are skipped through ``_own_url_change``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from bs4 import BeautifulSoup, Tag

from config import FacetSettings
from facets.browser import Event, Window
from facets.markup import (
    ACTIVE_FILTERS_ATTR,
    CLEAR_FILTERS_ATTR,
    CONTAINER_ATTR,
    FILTER_KEY_ATTR,
    FILTER_KEY_LABEL_ATTR,
    FILTER_VALUE_ATTR,
    FILTER_VALUE_LABEL_ATTR,
    GROUP_ATTR,
    ITEM_ATTR,
    REMOVE_FILTER_ATTR,
    SORT_GROUP_NAME,
    SORT_KEY_ATTR,
)
from facets.path_codec import (
    DecodedState,
    UrlMode,
    build_filter_url,
    decode_location,
    empty_state,
    has_encoded_state,
    hash_for,
)
from facets.sorting import DEFAULT_SORT, SortFields, coerce_price, is_sort_key, sort_records

logger = logging.getLogger(__name__)

UrlBuilder = Callable[[Mapping[str, str], str], str]


@dataclass(frozen=True, eq=False)
class FilterableItem:
    element: Tag
    data: dict[str, Any]
    original_index: int

    @property
    def filters(self) -> dict[str, Any]:
        raw = self.data.get("filters")
        return raw if isinstance(raw, dict) else {}

    @property
    def sort_fields(self) -> SortFields:
        return SortFields(str(self.data.get("title") or ""), coerce_price(self.data.get("price")), self.original_index)


@dataclass
class NavigationState:
    active_filters: dict[str, str] = field(default_factory=dict)
    active_sort_key: str = DEFAULT_SORT
    has_taken_over: bool = False

    def as_history_state(self) -> dict[str, Any]:
        return {"filters": dict(self.active_filters), "sortKey": self.active_sort_key}


# ---------------------------------------------------------------------------
# DOM helpers
# ---------------------------------------------------------------------------


def _style_declarations(tag: Tag) -> list[tuple[str, str]]:
    declarations: list[tuple[str, str]] = []
    for chunk in (tag.get("style") or "").split(";"):
        name, sep, value = chunk.partition(":")
        if sep and name.strip():
            declarations.append((name.strip().lower(), value.strip()))
    return declarations


def get_display(tag: Tag) -> str:
    for name, value in _style_declarations(tag):
        if name == "display":
            return value
    return ""


def set_display(tag: Tag, value: str) -> None:
    """Write the inline display property; an empty value removes it."""
    declarations = [(name, current) for name, current in _style_declarations(tag) if name != "display"]
    if value:
        declarations.append(("display", value))
    if declarations:
        tag["style"] = "; ".join(f"{name}: {current}" for name, current in declarations)
    else:
        tag.attrs.pop("style", None)


def _toggle_class(tag: Tag, name: str, on: bool) -> None:
    classes = [cls for cls in tag.get("class", []) if cls != name]
    if on:
        classes.append(name)
    if classes:
        tag["class"] = classes
    else:
        tag.attrs.pop("class", None)


def _closest(node: Tag | None, attr: str, stop: Tag) -> Tag | None:
    while node is not None:
        if isinstance(node, Tag) and node.has_attr(attr):
            return node
        if node is stop:
            return None
        node = node.parent
    return None


def _selected_option(select: Tag) -> Tag | None:
    options = select.find_all("option")
    for option in options:
        if option.has_attr("selected"):
            return option
    return options[0] if options else None


# ---------------------------------------------------------------------------
# Item parsing, matching and rendering
# ---------------------------------------------------------------------------


def parse_filterable_items(items_list: Tag) -> list[FilterableItem]:
    """Read every ``li[data-filter-item]``; items with a broken payload are left out."""
    items: list[FilterableItem] = []
    for index, element in enumerate(items_list.find_all("li", attrs={ITEM_ATTR: True}, recursive=False)):
        raw = element.get(ITEM_ATTR)
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("Skipping item %d with malformed payload: %s", index, exc)
            continue
        if not isinstance(data, dict):
            logger.warning("Skipping item %d: payload is not an object", index)
            continue
        items.append(FilterableItem(element=element, data=data, original_index=index))
    return items


def item_matches_filters(item: FilterableItem, filters: Mapping[str, str]) -> bool:
    item_filters = item.filters
    return all(key in item_filters and item_filters[key] == value for key, value in filters.items())


def apply_filters_and_sort(
    items: list[FilterableItem],
    items_list: Tag,
    filters: Mapping[str, str],
    sort_key: str,
) -> int:
    """Hide non-matching items, append matching ones in sorted order; return the match count."""
    if not is_sort_key(sort_key):
        sort_key = DEFAULT_SORT

    matched: list[FilterableItem] = []
    for item in items:
        if item_matches_filters(item, filters):
            set_display(item.element, "")
            matched.append(item)
        else:
            set_display(item.element, "none")

    for item in sort_records(matched, sort_key, lambda record: record.sort_fields):
        items_list.append(item.element)
    return len(matched)


# ---------------------------------------------------------------------------
# Filter panel helpers
# ---------------------------------------------------------------------------


def build_label_lookup(container: Tag) -> dict[str, str]:
    labels: dict[str, str] = {}
    for element in container.select(f"[{FILTER_KEY_LABEL_ATTR}]"):
        key = element.get(FILTER_KEY_ATTR) or element.get(REMOVE_FILTER_ATTR)
        value = element.get(FILTER_VALUE_ATTR)
        if key:
            labels.setdefault(key, element.get(FILTER_KEY_LABEL_ATTR) or key)
        if value:
            labels.setdefault(value, element.get(FILTER_VALUE_LABEL_ATTR) or value)
    return labels


def _option_is_active(link: Tag) -> bool:
    if "active" in link.get("class", []):
        return True
    parent = link.find_parent("li")
    return parent is not None and "active" in parent.get("class", [])


def read_initial_filters(container: Tag) -> dict[str, str]:
    """Active filters as the server rendered them: one pill per key, value from the pill or the active option."""
    filters: dict[str, str] = {}
    for pill in container.select(f"[{REMOVE_FILTER_ATTR}]"):
        key = pill.get(REMOVE_FILTER_ATTR)
        if not key:
            continue
        if pill.get(FILTER_VALUE_ATTR):
            filters[key] = pill.get(FILTER_VALUE_ATTR)
            continue
        for link in container.select(f"[{FILTER_KEY_ATTR}]"):
            if link.get(FILTER_KEY_ATTR) == key and _option_is_active(link):
                filters[key] = link.get(FILTER_VALUE_ATTR)
                break
    return filters


def read_initial_sort(container: Tag) -> str:
    select = container.select_one("select.sort-select")
    if select is None:
        return DEFAULT_SORT
    option = _selected_option(select)
    sort_key = option.get(SORT_KEY_ATTR) if option is not None else None
    return sort_key if is_sort_key(sort_key) else DEFAULT_SORT


def rebuild_pills(
    document: BeautifulSoup,
    pill_container: Tag,
    filters: Mapping[str, str],
    labels: Mapping[str, str],
    url_for: UrlBuilder,
    sort_key: str,
    clear_sort_key: str,
) -> None:
    pill_container.clear()

    for key in sorted(filters):
        value = filters[key]
        key_label = labels.get(key, key)
        remaining = {other: current for other, current in filters.items() if other != key}

        li = document.new_tag("li")
        span = document.new_tag("span")
        span.string = f"{key_label}: {labels.get(value, value)}"
        link = document.new_tag(
            "a",
            attrs={
                "href": url_for(remaining, sort_key),
                REMOVE_FILTER_ATTR: key,
                FILTER_VALUE_ATTR: value,
                FILTER_KEY_LABEL_ATTR: key_label,
                FILTER_VALUE_LABEL_ATTR: labels.get(value, value),
                "aria-label": f"Remove {key_label} filter",
            },
        )
        link.string = "×"
        li.append(span)
        li.append(link)
        pill_container.append(li)

    if filters:
        li = document.new_tag("li")
        clear_link = document.new_tag("a", attrs={"href": url_for({}, clear_sort_key), CLEAR_FILTERS_ATTR: ""})
        clear_link.string = "Clear all"
        li.append(clear_link)
        pill_container.append(li)


def update_option_active_states(container: Tag, filters: Mapping[str, str]) -> None:
    for link in container.select(f"[{FILTER_KEY_ATTR}]"):
        li = link.find_parent("li")
        if li is not None:
            _toggle_class(li, "active", filters.get(link.get(FILTER_KEY_ATTR)) == link.get(FILTER_VALUE_ATTR))


def is_option_offered(key: str, value: str, items: list[FilterableItem], filters: Mapping[str, str]) -> bool:
    """Active options always show; others only when selecting them still matches something."""
    if filters.get(key) == value:
        return True
    candidate = {**filters, key: value}
    return any(item_matches_filters(item, candidate) for item in items)


def update_option_visibility(container: Tag, items: list[FilterableItem], filters: Mapping[str, str]) -> None:
    for group in container.select("ul.filter-groups > li"):
        if group.get(GROUP_ATTR) == SORT_GROUP_NAME or group.select_one("select.sort-select") is not None:
            continue
        offered = 0
        for link in group.select(f"[{FILTER_KEY_ATTR}]"):
            show = is_option_offered(link.get(FILTER_KEY_ATTR), link.get(FILTER_VALUE_ATTR), items, filters)
            option_li = link.find_parent("li")
            if option_li is not None:
                set_display(option_li, "" if show else "none")
            offered += 1 if show else 0
        set_display(group, "" if offered > 1 else "none")


def update_sort_control(container: Tag, sort_key: str, match_count: int) -> None:
    select = container.select_one("select.sort-select")
    if select is None:
        return
    for option in select.find_all("option"):
        if option.get(SORT_KEY_ATTR) == sort_key:
            option["selected"] = ""
        else:
            option.attrs.pop("selected", None)
    group = select.find_parent("li")
    if group is not None:
        set_display(group, "" if match_count > 1 else "none")


def _state_from_history(carried: object) -> DecodedState | None:
    if not isinstance(carried, dict):
        return None
    filters = carried.get("filters")
    sort_key = carried.get("sortKey", DEFAULT_SORT)
    if not isinstance(filters, dict) or not is_sort_key(sort_key):
        return None
    if not all(isinstance(key, str) and isinstance(value, str) for key, value in filters.items()):
        return None
    return DecodedState(dict(filters), sort_key)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class FacetNavigator:
    def __init__(
        self,
        document: BeautifulSoup,
        window: Window,
        container: Tag,
        items_list: Tag,
        items: list[FilterableItem],
        settings: FacetSettings,
    ):
        self.document = document
        self.window = window
        self.container = container
        self.items_list = items_list
        self.items = items
        self.url_mode = UrlMode(settings.url_mode)
        self.clear_resets_sort = settings.clear_resets_sort
        self.labels = build_label_lookup(container)
        self.pill_container = container.select_one(f"[{ACTIVE_FILTERS_ATTR}]")
        self.match_count = 0
        self._own_url_change = False

        initial = self._initial_state()
        self.state = NavigationState(active_filters=dict(initial.filters), active_sort_key=initial.sort_key)

    def _initial_state(self) -> DecodedState:
        location = self.window.location
        if has_encoded_state(location.pathname, location.hash, self.url_mode):
            decoded = decode_location(location.pathname, location.hash, self.url_mode)
            if decoded != empty_state():
                return decoded
        return DecodedState(read_initial_filters(self.container), read_initial_sort(self.container))

    def start(self) -> None:
        if self.url_mode is UrlMode.HASH:
            self.window.add_event_listener("hashchange", self.on_hashchange)
        else:
            self.window.add_event_listener("popstate", self.on_popstate)
        # The opening entry keeps its state so traversal back to it restores this view.
        self.window.history.replace_state(self.state.as_history_state(), self.window.location.href)
        self.render()

    @property
    def has_taken_over(self) -> bool:
        return self.state.has_taken_over

    def url_for(self, filters: Mapping[str, str], sort_key: str) -> str:
        pathname = self.window.location.pathname
        if self.url_mode is UrlMode.HASH:
            return f"{pathname}{hash_for(filters, sort_key)}"
        return build_filter_url(pathname, filters, sort_key)

    def _clear_sort_key(self) -> str:
        return DEFAULT_SORT if self.clear_resets_sort else self.state.active_sort_key

    def render(self) -> int:
        state = self.state
        self.match_count = apply_filters_and_sort(
            self.items,
            self.items_list,
            state.active_filters,
            state.active_sort_key,
        )

        if state.has_taken_over and self.pill_container is not None:
            rebuild_pills(
                self.document,
                self.pill_container,
                state.active_filters,
                self.labels,
                self.url_for,
                state.active_sort_key,
                self._clear_sort_key(),
            )

        update_option_active_states(self.container, state.active_filters)
        update_option_visibility(self.container, self.items, state.active_filters)
        update_sort_control(self.container, state.active_sort_key, self.match_count)
        return self.match_count

    def take_over(self) -> None:
        if self.state.has_taken_over:
            return
        self.state.has_taken_over = True
        if self.pill_container is None:
            pill_container = self.document.new_tag("ul", attrs={"class": "filter-active", ACTIVE_FILTERS_ATTR: ""})
            self.container.insert(0, pill_container)
            self.pill_container = pill_container

    # -- user actions -------------------------------------------------------

    def handle_click(self, target: Tag) -> bool:
        """Dispatch a click inside the container; True means it was handled (prevent default)."""
        link = _closest(target, FILTER_KEY_ATTR, self.container)
        if link is not None and link.name == "a":
            self.toggle_filter(link.get(FILTER_KEY_ATTR), link.get(FILTER_VALUE_ATTR))
            return True

        remove_link = _closest(target, REMOVE_FILTER_ATTR, self.container)
        if remove_link is not None:
            self.remove_filter(remove_link.get(REMOVE_FILTER_ATTR))
            return True

        if _closest(target, CLEAR_FILTERS_ATTR, self.container) is not None:
            self.clear_filters()
            return True
        return False

    def handle_sort_change(self, select: Tag) -> bool:
        option = _selected_option(select)
        sort_key = option.get(SORT_KEY_ATTR) if option is not None else None
        if not is_sort_key(sort_key):
            return False
        self.take_over()
        self._commit(self.state.active_filters, sort_key)
        return True

    def change_sort(self, sort_key: str) -> bool:
        """Select the option for ``sort_key`` in the sort control and handle the change."""
        select = self.container.select_one("select.sort-select")
        if select is None:
            return False
        for option in select.find_all("option"):
            if option.get(SORT_KEY_ATTR) == sort_key:
                option["selected"] = ""
            else:
                option.attrs.pop("selected", None)
        return self.handle_sort_change(select)

    def toggle_filter(self, key: str, value: str) -> None:
        self.take_over()
        filters = dict(self.state.active_filters)
        if filters.get(key) == value:
            del filters[key]
        else:
            filters[key] = value
        self._commit(filters, self.state.active_sort_key)

    def remove_filter(self, key: str) -> None:
        self.take_over()
        filters = {other: value for other, value in self.state.active_filters.items() if other != key}
        self._commit(filters, self.state.active_sort_key)

    def clear_filters(self) -> None:
        self.take_over()
        self._commit({}, self._clear_sort_key())

    def _commit(self, filters: Mapping[str, str], sort_key: str) -> None:
        self.state.active_filters = dict(filters)
        self.state.active_sort_key = sort_key
        self.render()
        self._write_url()

    def _write_url(self) -> None:
        state = self.state
        if self.url_mode is UrlMode.HASH:
            new_hash = hash_for(state.active_filters, state.active_sort_key)
            if new_hash == self.window.location.hash:
                return
            # Cleared by the hashchange this assignment fires.
            self._own_url_change = True
            self.window.assign_hash(new_hash)
            return

        url = build_filter_url(self.window.location.pathname, state.active_filters, state.active_sort_key)
        self.window.history.push_state(state.as_history_state(), url)

    # -- navigation ---------------------------------------------------------

    def on_popstate(self, event: Event) -> None:
        if self._own_url_change:
            self._own_url_change = False
            return
        self._restore(event.state)

    def on_hashchange(self, event: Event) -> None:
        if self._own_url_change:
            self._own_url_change = False
            return
        self._restore(self.window.history.state)

    def _restore(self, carried: object) -> None:
        decoded = _state_from_history(carried)
        if decoded is None:
            location = self.window.location
            decoded = decode_location(location.pathname, location.hash, self.url_mode)
        self.state.active_filters = dict(decoded.filters)
        self.state.active_sort_key = decoded.sort_key
        self.render()


def hydrate(document: BeautifulSoup, window: Window, settings: FacetSettings | None = None) -> FacetNavigator | None:
    """Take over the page's filter container; None when there is nothing to filter."""
    container = document.select_one(f"[{CONTAINER_ATTR}]")
    if container is None:
        return None

    first_item = container.find("li", attrs={ITEM_ATTR: True})
    if first_item is None or first_item.parent is None:
        return None

    items_list = first_item.parent
    items = parse_filterable_items(items_list)
    if not items:
        logger.info("No usable items under the filter container; leaving the page as rendered")
        return None

    navigator = FacetNavigator(document, window, container, items_list, items, settings or FacetSettings())
    navigator.start()
    return navigator
