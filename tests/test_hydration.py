import logging

import pytest
from bs4 import BeautifulSoup

from config import FacetSettings
from facets.browser import Event, Window
from facets.build_site import Category, category_url, page_items, render_page, visible_item_ids
from facets.filter_ui import project
from facets.hydration import apply_filters_and_sort, get_display, hydrate, parse_filterable_items
from facets.item_index import BuildCache
from facets.schema import parse_catalog_items

SHIRTS = [
    {"id": "1", "title": "A", "price": 10, "filter_attributes": [{"name": "Size", "value": "S"}, {"name": "Color", "value": "Red"}]},
    {"id": "2", "title": "B", "price": 5, "filter_attributes": [{"name": "Size", "value": "S"}, {"name": "Color", "value": "Blue"}]},
    {"id": "3", "title": "C", "price": 7, "filter_attributes": [{"name": "Size", "value": "M"}, {"name": "Color", "value": "Red"}]},
]


def render_category_page(records, filters=None, sort_key="default", slug="shirts"):
    items = tuple(parse_catalog_items(records))
    index = BuildCache().category(slug, items)
    shown = page_items(index, filters or {}, sort_key)
    ui = project(index.schema, index.lookup, filters or {}, sort_key, len(shown), base_url=category_url(slug))
    return render_page(Category(slug, slug.title(), items), ui, shown)


def open_page(html_text, url="/categories/shirts/", **settings):
    document = BeautifulSoup(html_text, "html.parser")
    window = Window(url)
    navigator = hydrate(document, window, FacetSettings(**settings))
    return document, window, navigator


def _option(document, key, value):
    return document.find("a", attrs={"data-filter-key": key, "data-filter-value": value})


def test_and_filter_matches_exactly_the_first_item():
    document = BeautifulSoup(render_category_page(SHIRTS), "html.parser")
    items_list = document.find("ul", class_="items")
    items = parse_filterable_items(items_list)

    count = apply_filters_and_sort(items, items_list, {"size": "s", "color": "red"}, "default")

    assert count == 1
    assert [get_display(item.element) for item in items] == ["", "none", "none"]
    assert items[1].element["style"] == "display: none"
    assert not items[0].element.has_attr("style")


def test_price_scenario_orders_dom_and_default_restores_it():
    html_text = render_category_page([{"id": "A", "title": "A", "price": 10}, {"id": "B", "title": "B", "price": 5}])
    _, _, navigator = open_page(html_text)

    assert visible_item_ids(navigator) == ["A", "B"]
    navigator.change_sort("price-asc")
    assert visible_item_ids(navigator) == ["B", "A"]
    navigator.change_sort("default")
    assert visible_item_ids(navigator) == ["A", "B"]


@pytest.mark.parametrize("sort_first", [True, False])
def test_default_sort_keeps_original_order_of_survivors(sort_first):
    _, _, navigator = open_page(render_category_page(SHIRTS))

    if sort_first:
        navigator.change_sort("price-asc")
        navigator.toggle_filter("color", "red")
        assert visible_item_ids(navigator) == ["3", "1"]
    else:
        navigator.toggle_filter("color", "red")
        navigator.change_sort("price-asc")
    navigator.change_sort("default")

    assert visible_item_ids(navigator) == ["1", "3"]


def test_clicking_the_active_option_removes_the_filter():
    document, _, navigator = open_page(render_category_page(SHIRTS))
    link = _option(document, "color", "red")

    assert navigator.handle_click(link) is True
    assert navigator.state.active_filters == {"color": "red"}
    assert "active" in link.find_parent("li")["class"]
    assert visible_item_ids(navigator) == ["1", "3"]

    assert navigator.handle_click(link) is True
    assert navigator.state.active_filters == {}
    assert "class" not in link.find_parent("li").attrs
    assert visible_item_ids(navigator) == ["1", "2", "3"]


def test_clicks_outside_facet_controls_are_ignored():
    document, window, navigator = open_page(render_category_page(SHIRTS))

    assert navigator.handle_click(document.find("h2")) is False
    assert navigator.handle_click(document.find("li", attrs={"data-filter-item": True})) is False
    assert window.history.push_count == 0


def test_popstate_restores_without_pushing():
    _, window, navigator = open_page(render_category_page(SHIRTS))

    navigator.toggle_filter("color", "red")
    assert window.history.push_count == 1
    assert window.location.pathname == "/categories/shirts/search/color/red/"
    assert window.history.state == {"filters": {"color": "red"}, "sortKey": "default"}

    window.history.back()
    assert window.history.push_count == 1
    assert navigator.state.active_filters == {}
    assert visible_item_ids(navigator) == ["1", "2", "3"]

    window.history.forward()
    assert window.history.push_count == 1
    assert window.history.length == 2
    assert navigator.state.active_filters == {"color": "red"}
    assert visible_item_ids(navigator) == ["1", "3"]


def test_popstate_with_foreign_state_falls_back_to_the_url():
    _, window, navigator = open_page(render_category_page(SHIRTS))
    window.location.pathname = "/categories/shirts/search/size/m/"

    navigator.on_popstate(Event("popstate", {"unexpected": True}))

    assert navigator.state.active_filters == {"size": "m"}
    assert visible_item_ids(navigator) == ["3"]


def test_render_is_idempotent():
    document, _, navigator = open_page(render_category_page(SHIRTS))
    navigator.toggle_filter("size", "s")
    navigator.change_sort("name-desc")

    navigator.render()
    first = str(document)
    navigator.render()

    assert str(document) == first


def test_takeover_creates_pills_once_and_never_reverts():
    document, _, navigator = open_page(render_category_page(SHIRTS))
    container = document.find(attrs={"data-filter-container": True})
    assert container.find(attrs={"data-active-filters": True}) is None
    assert navigator.has_taken_over is False

    navigator.toggle_filter("color", "red")

    pills = container.find(attrs={"data-active-filters": True})
    assert container.contents[0] is pills
    assert pills.find("span").get_text() == "Color: Red"
    remove_link = pills.find("a", attrs={"data-remove-filter": "color"})
    assert remove_link["aria-label"] == "Remove Color filter"
    assert remove_link["href"] == "/categories/shirts/"
    assert pills.find("a", attrs={"data-clear-filters": True}) is not None

    navigator.handle_click(remove_link)

    assert navigator.state.active_filters == {}
    assert navigator.has_taken_over is True
    assert container.find(attrs={"data-active-filters": True}).find_all("li") == []


def test_dead_end_options_and_groups_are_hidden():
    document, _, navigator = open_page(render_category_page(SHIRTS))

    navigator.toggle_filter("color", "red")
    navigator.toggle_filter("size", "m")

    blue = _option(document, "color", "blue").find_parent("li")
    color_group = document.find("li", attrs={"data-filter-group": "color"})
    sort_group = document.find("li", attrs={"data-filter-group": "sort"})
    assert get_display(blue) == "none"
    assert get_display(color_group) == "none"
    assert get_display(sort_group) == "none"

    navigator.remove_filter("size")

    assert get_display(blue) == ""
    assert get_display(color_group) == ""
    assert get_display(sort_group) == ""


@pytest.mark.parametrize("clear_resets_sort, expected", [(True, "default"), (False, "price-desc")])
def test_clear_all(clear_resets_sort, expected):
    document, _, navigator = open_page(render_category_page(SHIRTS), clear_resets_sort=clear_resets_sort)
    navigator.change_sort("price-desc")
    navigator.toggle_filter("color", "red")

    navigator.handle_click(document.find("a", attrs={"data-clear-filters": True}))

    assert navigator.state.active_filters == {}
    assert navigator.state.active_sort_key == expected
    selected = document.find("option", attrs={"selected": True})
    assert selected["data-sort-key"] == expected


def test_sort_change_ignores_unknown_keys():
    document, window, navigator = open_page(render_category_page(SHIRTS))
    select = document.find("select", class_="sort-select")
    for option in select.find_all("option"):
        option.attrs.pop("selected", None)
    select.find_all("option")[2]["selected"] = ""
    select.find_all("option")[2]["data-sort-key"] = "popularity"

    assert navigator.handle_sort_change(select) is False
    assert window.history.push_count == 0
    assert navigator.has_taken_over is False


def test_initial_state_prefers_the_url_over_markup():
    html_text = render_category_page(SHIRTS)

    _, _, navigator = open_page(html_text, url="/categories/shirts/search/color/red/price-asc/")

    assert navigator.state.active_filters == {"color": "red"}
    assert navigator.state.active_sort_key == "price-asc"
    assert visible_item_ids(navigator) == ["3", "1"]


def test_initial_state_reads_server_rendered_pills_and_select():
    html_text = render_category_page(SHIRTS, {"color": "red"}, "name-desc")

    _, window, navigator = open_page(html_text, url="/categories/shirts/search/color/red/name-desc/", url_mode="hash")

    assert navigator.state.active_filters == {"color": "red"}
    assert navigator.state.active_sort_key == "name-desc"
    assert visible_item_ids(navigator) == ["3", "1"]
    assert window.history.push_count == 0


def test_hash_mode_skips_its_own_hashchange_and_follows_back():
    _, window, navigator = open_page(render_category_page(SHIRTS), url_mode="hash")

    navigator.toggle_filter("color", "red")
    assert window.location.hash == "#color/red"
    assert window.location.pathname == "/categories/shirts/"
    assert navigator._own_url_change is False

    navigator.change_sort("price-asc")
    assert window.location.hash == "#color/red/price-asc"
    assert visible_item_ids(navigator) == ["3", "1"]

    window.history.back()
    assert navigator.state.active_sort_key == "default"
    assert visible_item_ids(navigator) == ["1", "3"]

    window.history.back()
    assert navigator.state.active_filters == {}
    assert visible_item_ids(navigator) == ["1", "2", "3"]
    assert window.history.length == 3


def test_hash_mode_reads_initial_state_from_the_fragment():
    _, _, navigator = open_page(render_category_page(SHIRTS), url="/categories/shirts/#size/s/name-desc", url_mode="hash")

    assert navigator.state.active_filters == {"size": "s"}
    assert visible_item_ids(navigator) == ["2", "1"]


def test_malformed_payloads_are_skipped(caplog):
    html_text = (
        "<div data-filter-container><ul class='items'>"
        "<li data-filter-item='{broken'>Broken</li>"
        "<li data-filter-item='[1, 2]'>List</li>"
        "<li data-filter-item='{\"id\": \"ok\", \"title\": \"Fine\", \"filters\": {}}'>Fine</li>"
        "</ul></div>"
    )

    with caplog.at_level(logging.WARNING, logger="facets.hydration"):
        _, _, navigator = open_page(html_text)

    assert [item.data["id"] for item in navigator.items] == ["ok"]
    assert navigator.items[0].original_index == 2
    assert "malformed payload" in caplog.text
    assert visible_item_ids(navigator) == ["ok"]


def test_pages_without_a_container_are_left_alone():
    document = BeautifulSoup("<ul><li data-filter-item='{}'>x</li></ul>", "html.parser")

    assert hydrate(document, Window("/")) is None


def test_hash_mode_back_returns_to_the_server_rendered_view():
    html_text = render_category_page(SHIRTS, {"color": "red"}, "name-desc")
    document, window, navigator = open_page(
        html_text, url="/categories/shirts/search/color/red/name-desc/", url_mode="hash"
    )
    assert window.history.state == {"filters": {"color": "red"}, "sortKey": "name-desc"}
    assert window.history.length == 1

    navigator.change_sort("price-asc")
    assert window.location.hash == "#color/red/price-asc"

    window.history.back()

    assert window.location.hash == ""
    assert navigator.state.active_filters == {"color": "red"}
    assert navigator.state.active_sort_key == "name-desc"
    assert visible_item_ids(navigator) == ["3", "1"]
    selected = document.find("select", class_="sort-select").find("option", attrs={"selected": True})
    assert selected["data-sort-key"] == "name-desc"
    pills = document.find(attrs={"data-active-filters": True})
    assert pills.find("a", attrs={"data-remove-filter": "color"}) is not None
