import hashlib
from collections import OrderedDict
from threading import Lock

import pandas as pd

from publication_core import parse_csv
from services.session_service import PipelineView
from utils.i18n import t
from utils.logging_utils import get_logger

_PARSE_CACHE_CAP = 5
_PARSE_CACHE = OrderedDict()
_PARSE_CACHE_LOCK = Lock()
_LOGGER = get_logger("report_service")

LISTING_COL_YEAR = "年"
LISTING_COL_AUTHORS = "著者"
LISTING_COL_TITLE = "タイトル"
LISTING_COL_CITATION = "掲載情報"


def _build_parse_cache_key(file_bytes: bytes):
    return hashlib.sha256(file_bytes).hexdigest()


def _get_cached_records(key):
    with _PARSE_CACHE_LOCK:
        cached = _PARSE_CACHE.get(key)
        if cached is None:
            return None
        _PARSE_CACHE.move_to_end(key)
        return list(cached)


def _set_cached_records(key, records):
    with _PARSE_CACHE_LOCK:
        _PARSE_CACHE[key] = tuple(records)
        _PARSE_CACHE.move_to_end(key)
        while len(_PARSE_CACHE) > _PARSE_CACHE_CAP:
            _PARSE_CACHE.popitem(last=False)


def decode_csv_bytes(file_bytes: bytes) -> str:
    # utf-8-sig drops a spreadsheet BOM; undecodable bytes become U+FFFD
    return (file_bytes or b"").decode("utf-8-sig", errors="replace")


def load_records_from_bytes(file_bytes: bytes, filename: str | None = None):
    """Parse uploaded CSV bytes, reusing the result for identical uploads."""
    cache_key = _build_parse_cache_key(file_bytes or b"")
    cached = _get_cached_records(cache_key)
    if cached is not None:
        _LOGGER.debug("csv.cache.hit file=%s", filename)
        return cached

    records = parse_csv(decode_csv_bytes(file_bytes))
    _LOGGER.info("csv.parsed file=%s rows=%s", filename, len(records))
    _set_cached_records(cache_key, records)
    return list(records)


def build_summary_df(view: PipelineView, lang: str | None = None) -> pd.DataFrame:
    """Aggregate table: one overall row plus one row per selected author, years as columns."""
    years = view.table_years()
    corner = t(lang, "table_corner")
    total_col = t(lang, "table_total")

    rows = []
    overall = {corner: t(lang, "table_overall")}
    for year in years:
        overall[year] = view.aggregates[year].total
    overall[total_col] = sum(view.aggregates[year].total for year in years)
    rows.append(overall)

    for name in view.selected_authors:
        row = {corner: name}
        for year in years:
            row[year] = view.aggregates[year].authors.get(name, 0)
        row[total_col] = sum(view.aggregates[year].authors.get(name, 0) for year in years)
        rows.append(row)

    return pd.DataFrame(rows, columns=[corner, *years, total_col])


def build_listing_df(view: PipelineView) -> pd.DataFrame:
    rows = []
    for group in view.year_groups:
        for entry in group.entries:
            rows.append(
                {
                    LISTING_COL_YEAR: entry.year,
                    LISTING_COL_AUTHORS: entry.authors,
                    LISTING_COL_TITLE: entry.title,
                    LISTING_COL_CITATION: entry.citation,
                }
            )
    return pd.DataFrame(rows, columns=[LISTING_COL_YEAR, LISTING_COL_AUTHORS, LISTING_COL_TITLE, LISTING_COL_CITATION])


def clear_parse_cache():
    with _PARSE_CACHE_LOCK:
        _PARSE_CACHE.clear()
