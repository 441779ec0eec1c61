#!/usr/bin/env python3
"""
Build the faceted category pages for a catalog.

Usage:
    python build_catalog.py --catalog catalog.json [--out DIR] [--url-mode path|hash]
                            [--max-depth N] [--verify]

Notes:
- Output goes to --out, else FACETFLOW_BASE_DIR, else ./_site.
- --verify replays every generated page through the hydration engine and
  fails when what it shows differs from what the page was built with.
"""
import argparse
from dataclasses import replace
from pathlib import Path

import config as cfg
from facets.build_site import build_site, load_catalog, verify_site
from facets.item_index import BuildCache
from facets.schema import SchemaViolation


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Generate static category pages with every reachable filter/sort combination.",
    )
    p.add_argument("--catalog", required=True, help="Catalog JSON with a 'categories' list")
    p.add_argument("--out", help="Output directory (default: FACETFLOW_BASE_DIR or ./_site)")
    p.add_argument("--url-mode", choices=cfg.URL_MODES,
                   help="URL sync mode used when verifying pages (default: FACETFLOW_URL_MODE or path)")
    p.add_argument("--max-depth", type=int,
                   help="Cap on the number of filters combined in one page (default: FACETFLOW_MAX_DEPTH)")
    p.add_argument("--verify", action="store_true", help="Replay generated pages through the hydration engine")
    p.add_argument("--log-level", type=str.upper, choices=cfg.LOG_LEVELS,
                   help="Logging level (default: FACETFLOW_LOG_LEVEL or INFO)")
    return p.parse_args(argv)


def settings_from_args(args) -> cfg.FacetSettings:
    """CLI flags win over environment values."""
    settings = cfg.load_settings()
    overrides = {}
    if args.out:
        overrides["base_dir"] = Path(args.out).expanduser()
    if args.url_mode:
        overrides["url_mode"] = args.url_mode
    if args.max_depth is not None:
        overrides["max_depth"] = args.max_depth
    return replace(settings, **overrides) if overrides else settings


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        cfg.setup_logging(args.log_level)
        settings = settings_from_args(args)
    except ValueError as exc:
        print(f"❌ Invalid configuration: {exc}")
        return 1

    catalog_path = Path(args.catalog).expanduser()
    try:
        catalog = load_catalog(catalog_path)
    except FileNotFoundError:
        print(f"❌ Catalog not found: {catalog_path}")
        return 1
    except (OSError, ValueError) as exc:
        print(f"❌ Could not read catalog {catalog_path}: {exc}")
        return 1

    cache = BuildCache(max_depth=settings.max_depth)
    try:
        counts = build_site(catalog, settings.base_dir, settings, cache)
    except SchemaViolation as exc:
        print(f"❌ Schema violation: {exc}")
        return 1

    print(f"✓ Generated category pages in {settings.base_dir} ({counts})")

    if args.verify:
        mismatches = verify_site(catalog, settings.base_dir, settings, cache)
        for message in mismatches:
            print(f"❌ {message}")
        if mismatches:
            return 1
        print(f"✓ Verified {sum(counts.values())} pages")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
