from dataclasses import dataclass
from pathlib import Path
import logging
import os

BASE_DIR_ENV = "FACETFLOW_BASE_DIR"
URL_MODE_ENV = "FACETFLOW_URL_MODE"
CLEAR_RESETS_SORT_ENV = "FACETFLOW_CLEAR_RESETS_SORT"
MAX_DEPTH_ENV = "FACETFLOW_MAX_DEPTH"
LOG_LEVEL_ENV = "FACETFLOW_LOG_LEVEL"

URL_MODES = ("path", "hash")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class FacetSettings:
    """Settings shared by the build driver and the hydration engine."""

    base_dir: Path = Path("_site")
    url_mode: str = "path"
    clear_resets_sort: bool = True
    max_depth: int | None = None


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() not in ("0", "false", "no", "off")


def _env_int(name: str) -> int | None:
    value = os.getenv(name)
    if not value:
        return None
    return int(value)


def get_url_mode() -> str:
    """
    URL sync mode for the hydration engine.

    Priority:
    - FACETFLOW_URL_MODE if set
    - "path" (history.pushState over path segments)
    """
    value = (os.getenv(URL_MODE_ENV) or "path").strip().lower()
    if value not in URL_MODES:
        raise ValueError(f"{URL_MODE_ENV} must be one of {', '.join(URL_MODES)}, got {value!r}")
    return value


def load_settings() -> FacetSettings:
    return FacetSettings(
        base_dir=Path(os.getenv(BASE_DIR_ENV, "_site")).expanduser(),
        url_mode=get_url_mode(),
        clear_resets_sort=_env_flag(CLEAR_RESETS_SORT_ENV, True),
        max_depth=_env_int(MAX_DEPTH_ENV),
    )


def setup_logging(level=None):
    level = (level or os.getenv(LOG_LEVEL_ENV) or "INFO").strip().upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"{LOG_LEVEL_ENV} must be one of {', '.join(LOG_LEVELS)}, got {level!r}")
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s | %(levelname)s | %(message)s",
    )
