"""Generate static category pages under <out>/categories/<slug>/.

Every category gets a root index listing all items, plus one page per
reachable filter/sort combination under ``search/<path>/``. Truncated filter
paths are collected into ``redirects.json`` for the web server.
"""

from __future__ import annotations

import html
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping
from urllib.parse import unquote

from bs4 import BeautifulSoup

from config import FacetSettings
from facets.browser import Window
from facets.combinations import Redirect, generate_filter_redirects
from facets.filter_ui import UIModel, project
from facets.hydration import FacetNavigator, get_display, hydrate
from facets.item_index import BuildCache, CategoryIndex
from facets.markup import ITEM_ATTR, render_filter_panel
from facets.path_codec import SEARCH_SEGMENT, search_url
from facets.schema import CatalogItem, parse_catalog_items, slugify
from facets.sorting import DEFAULT_SORT, sort_records

logger = logging.getLogger(__name__)

CATEGORIES_DIR = "categories"
REDIRECTS_FILE = "redirects.json"


@dataclass(frozen=True)
class Category:
    slug: str
    title: str
    items: tuple[CatalogItem, ...]


def category_url(slug: str) -> str:
    return f"/{CATEGORIES_DIR}/{slug}"


def load_catalog(path: Path) -> list[Category]:
    """Read ``{"categories": [{"slug", "title", "items": [...]}]}``.

    Raises ValueError (including json.JSONDecodeError) for anything that is not
    a usable catalog, and OSError when the file cannot be read.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    raw_categories = data.get("categories") if isinstance(data, dict) else None
    if not isinstance(raw_categories, list):
        raise ValueError(f"{path}: expected an object with a 'categories' list")

    categories: list[Category] = []
    seen: set[str] = set()
    for position, raw in enumerate(raw_categories):
        if not isinstance(raw, dict):
            raise ValueError(f"{path}: category #{position} is not an object")
        title = str(raw.get("title") or raw.get("slug") or "").strip()
        slug = slugify(str(raw.get("slug") or title))
        if not slug:
            raise ValueError(f"{path}: category #{position} has no slug or title")
        if slug == SEARCH_SEGMENT:
            # "/categories/search/search/..." could not be split back into base and filters.
            raise ValueError(f"{path}: category slug {slug!r} is reserved")
        if slug in seen:
            raise ValueError(f"{path}: duplicate category slug {slug!r}")
        seen.add(slug)

        raw_items = raw.get("items")
        records = [record for record in raw_items if isinstance(record, dict)] if isinstance(raw_items, list) else []
        categories.append(Category(slug=slug, title=title or slug, items=tuple(parse_catalog_items(records))))
    return categories


def _base_head(title: str) -> str:
    return (
        f"<html><head><meta charset='utf-8'><meta name='viewport' content='width=device-width, initial-scale=1'><title>{html.escape(title)}</title>"
        "<style>"
        "body{margin:14px 18px;font:14px -apple-system,system-ui,Segoe UI,Roboto,Helvetica,Arial;color:#222}"
        "h2{margin:6px 0 10px;font-weight:600}"
        "hr{border:0;border-top:1px solid #e6e6e6;margin:8px 0}"
        ".ff-nav{color:#666;font:13px -apple-system,system-ui,Segoe UI,Roboto,Helvetica,Arial;margin-bottom:8px}"
        ".ff-nav a{text-decoration:none;color:#0a7}"
        ".ff-count{color:#666;margin-left:8px;white-space:nowrap}"
        "ul.filter-active,ul.filter-groups,ul.items{list-style:none;padding-left:0}"
        ".filter-active li{display:inline-flex;gap:4px;margin-right:8px}"
        ".filter-active a{text-decoration:none;color:#0a7}"
        ".filter-groups ul{list-style:none;padding-left:0;display:flex;flex-wrap:wrap;gap:6px}"
        ".filter-groups li.active a{font-weight:600;color:#0a7}"
        ".items li{padding:2px 6px;margin:2px 0;display:flex;justify-content:space-between;gap:10px}"
        ".price{color:#666;white-space:nowrap}"
        "</style>"
        "</head><body>"
    )


def _page_title(category: Category, ui: UIModel) -> str:
    if not ui.description:
        return category.title
    summary = ", ".join(f"{key}: {value}" for key, value in ui.description)
    return f"{category.title} · {summary}"


def render_page(category: Category, ui: UIModel, items: list[CatalogItem]) -> str:
    title = _page_title(category, ui)
    rows: list[str] = [_base_head(title)]
    rows.append(
        f"<div class='ff-nav'><a href='/'>Home</a> · "
        f"<a href='{html.escape(category_url(category.slug), quote=True)}/'>{html.escape(category.title)}</a></div>"
    )
    rows.append(f"<h2>{html.escape(title)}<span class='ff-count'>{len(items)} items</span></h2><hr>")
    rows.append(render_filter_panel(ui, items))
    rows.append("<hr></body></html>")
    return "\n".join(rows)


def _matches(item: CatalogItem, filters: Mapping[str, str]) -> bool:
    return all(item.filters.get(key) == value for key, value in filters.items())


def page_items(index: CategoryIndex, filters: Mapping[str, str], sort_key: str) -> list[CatalogItem]:
    matching = [item for item in index.items if _matches(item, filters)]
    return sort_records(matching, sort_key, lambda item: item.sort_fields)


def page_dir(out_dir: Path, slug: str, path: str = "") -> Path:
    root = Path(out_dir) / CATEGORIES_DIR / slug
    if not path:
        return root
    return root.joinpath(SEARCH_SEGMENT, *(unquote(segment) for segment in path.split("/")))


def _write_page(
    *,
    out_dir: Path,
    category: Category,
    index: CategoryIndex,
    filters: Mapping[str, str],
    sort_key: str,
    path: str,
    settings: FacetSettings,
) -> None:
    items = page_items(index, filters, sort_key)
    ui = project(
        index.schema,
        index.lookup,
        filters,
        sort_key,
        len(items),
        base_url=category_url(category.slug),
        clear_resets_sort=settings.clear_resets_sort,
    )
    target = page_dir(out_dir, category.slug, path)
    target.mkdir(parents=True, exist_ok=True)
    (target / "index.html").write_text(render_page(category, ui, items), encoding="utf-8")


def build_category(out_dir: Path, category: Category, cache: BuildCache, settings: FacetSettings) -> int:
    """Write the root page and every combination page for one category; return the page count."""
    index = cache.category(category.slug, category.items)

    _write_page(
        out_dir=out_dir,
        category=category,
        index=index,
        filters={},
        sort_key=DEFAULT_SORT,
        path="",
        settings=settings,
    )
    for combo in index.combinations:
        _write_page(
            out_dir=out_dir,
            category=category,
            index=index,
            filters=combo.filters,
            sort_key=combo.sort_key,
            path=combo.path,
            settings=settings,
        )

    pages = len(index.combinations) + 1
    logger.info("Wrote %d pages for category %s", pages, category.slug)
    return pages


def write_redirects(out_dir: Path, redirects: Iterable[Redirect]) -> Path:
    payload: dict[str, Any] = {
        "redirects": [
            {"from": redirect.from_url, "to": redirect.to_url}
            for redirect in sorted(redirects, key=lambda redirect: redirect.from_url)
        ]
    }
    target = Path(out_dir) / REDIRECTS_FILE
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    return target


def build_site(
    catalog: Iterable[Category],
    out_dir: Path,
    settings: FacetSettings | None = None,
    cache: BuildCache | None = None,
) -> dict[str, int]:
    settings = settings or FacetSettings()
    cache = cache if cache is not None else BuildCache(max_depth=settings.max_depth)
    cache.reset()

    counts: dict[str, int] = {}
    redirects: list[Redirect] = []
    for category in catalog:
        counts[category.slug] = build_category(out_dir, category, cache, settings)
        index = cache.category(category.slug, category.items)
        redirects.extend(generate_filter_redirects(index.schema, index.combinations, category_url(category.slug)))

    write_redirects(out_dir, redirects)
    logger.info("Wrote %d redirects", len(redirects))
    return counts


def visible_item_ids(navigator: FacetNavigator) -> list[str]:
    """Ids of the items a reader would see, in on-screen order."""
    by_element = {id(item.element): item for item in navigator.items}
    ids: list[str] = []
    for element in navigator.items_list.find_all("li", attrs={ITEM_ATTR: True}, recursive=False):
        item = by_element.get(id(element))
        if item is None or get_display(element) == "none":
            continue
        ids.append(str(item.data.get("id")))
    return ids


def verify_page(html_text: str, url: str, settings: FacetSettings | None = None) -> list[str]:
    """Hydrate a generated page at ``url`` and return what the engine shows."""
    document = BeautifulSoup(html_text, "html.parser")
    navigator = hydrate(document, Window(url), settings)
    if navigator is None:
        return []
    return visible_item_ids(navigator)


def verify_category(out_dir: Path, category: Category, cache: BuildCache, settings: FacetSettings) -> list[str]:
    """Compare each written page with its hydrated rendition; return one message per mismatch."""
    index = cache.category(category.slug, category.items)
    base_url = category_url(category.slug)
    pages = [({}, DEFAULT_SORT, "")] + [(combo.filters, combo.sort_key, combo.path) for combo in index.combinations]

    mismatches: list[str] = []
    for filters, sort_key, path in pages:
        url = search_url(base_url, filters, sort_key)
        expected = [item.id for item in page_items(index, filters, sort_key)]
        html_text = (page_dir(out_dir, category.slug, path) / "index.html").read_text(encoding="utf-8")
        actual = verify_page(html_text, url, settings)
        if actual != expected:
            mismatches.append(f"{url}: expected {expected}, hydrated {actual}")
    return mismatches


def verify_site(
    catalog: Iterable[Category],
    out_dir: Path,
    settings: FacetSettings | None = None,
    cache: BuildCache | None = None,
) -> list[str]:
    settings = settings or FacetSettings()
    cache = cache if cache is not None else BuildCache(max_depth=settings.max_depth)
    mismatches: list[str] = []
    for category in catalog:
        mismatches.extend(verify_category(out_dir, category, cache, settings))
    if mismatches:
        logger.warning("%d pages disagree with their hydrated rendition", len(mismatches))
    return mismatches
