# -*- coding: utf-8 -*-

import html
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from utils.logging_utils import get_logger

_LOGGER = get_logger("publication_core")

# -------------------------
# Config
# -------------------------

FIELD_YEAR = "Publication Year"
FIELD_AUTHORS = "Authors"
FIELD_TITLE = "Title"
FIELD_CITATION = "Citation"

AUTHOR_SEPARATOR = ","

HIGHLIGHT_BOLD = "bold"
HIGHLIGHT_UNDERLINE = "underline"
HIGHLIGHT_BOTH = "both"
HIGHLIGHT_STYLES = (HIGHLIGHT_BOLD, HIGHLIGHT_UNDERLINE, HIGHLIGHT_BOTH)

# CSS class list used for each highlight style
HIGHLIGHT_CLASSES = {
    HIGHLIGHT_BOLD: "bold",
    HIGHLIGHT_UNDERLINE: "underline",
    HIGHLIGHT_BOTH: "bold underline",
}

_LINE_SPLIT_PATTERN = re.compile(r"\r?\n")
_LEADING_INT_PATTERN = re.compile(r"^\s*([+-]?\d+)")

Record = Mapping[str, str]

# -------------------------
# Data structures
# -------------------------

@dataclass
class YearAggregate:
    total: int = 0
    authors: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class HighlightSpan:
    """A selected author found in the untouched author string: text[start:end] == name."""
    start: int
    end: int
    name: str


# -------------------------
# CSV parsing
# -------------------------

def split_csv_line(line: str) -> List[str]:
    """Split one physical CSV line into fields, honouring double quotes.

    A doubled quote inside a quoted field yields one literal quote. Commas inside
    quotes are literal. The last field is always emitted, even when empty.
    """
    out: List[str] = []
    cur: List[str] = []
    in_quotes = False

    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if ch == '"':
            if in_quotes and i + 1 < n and line[i + 1] == '"':
                cur.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            out.append("".join(cur))
            cur = []
        else:
            cur.append(ch)
        i += 1
    out.append("".join(cur))
    return out


def parse_csv(text: str) -> List[Record]:
    """Parse CSV text into read-only records keyed by the header line.

    Blank lines are skipped everywhere. Without at least a header and one data
    line the result is empty. Short rows are padded with "", extra fields dropped.
    Quoted fields spanning several physical lines are not supported.
    """
    lines = [line for line in _LINE_SPLIT_PATTERN.split(text or "") if line.strip() != ""]
    if len(lines) <= 1:
        _LOGGER.debug("csv.parse.empty lines=%s", len(lines))
        return []

    header = split_csv_line(lines[0])
    records: List[Record] = []
    for line in lines[1:]:
        cols = split_csv_line(line)
        row = {}
        for idx, name in enumerate(header):
            row[name] = cols[idx] if idx < len(cols) else ""
        records.append(MappingProxyType(row))

    _LOGGER.debug("csv.parse.done columns=%s rows=%s", len(header), len(records))
    return records


# -------------------------
# Field helpers
# -------------------------

def parse_year(value: Optional[str]) -> Optional[int]:
    """Leading-integer parse: " 2020" -> 2020, "2020a" -> 2020, "n/a" -> None."""
    if value is None:
        return None
    m = _LEADING_INT_PATTERN.match(str(value))
    if not m:
        return None
    return int(m.group(1))


def record_year(record: Record) -> str:
    return record.get(FIELD_YEAR) or ""


def normalize_author_name(raw: str) -> str:
    name = (raw or "").strip()
    if name.endswith("."):
        name = name[:-1]
    return name


def split_authors(authors_field: Optional[str]) -> List[str]:
    """Split an Authors field on commas and normalize every piece (empties kept)."""
    return [normalize_author_name(piece) for piece in (authors_field or "").split(AUTHOR_SEPARATOR)]


# -------------------------
# Year filter
# -------------------------

def filter_by_year(
    records: Iterable[Record],
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
) -> List[Record]:
    out = []
    for record in records:
        year = parse_year(record.get(FIELD_YEAR))
        if year is None:
            continue
        if start_year is not None and year < start_year:
            continue
        if end_year is not None and year > end_year:
            continue
        out.append(record)
    return out


# -------------------------
# Aggregation
# -------------------------

def aggregate_by_year_and_author(
    records: Iterable[Record],
    selected_authors: Sequence[str],
) -> Dict[str, YearAggregate]:
    """Count records per year, and per selected author within each year.

    Every bucket carries a zero entry for each selected author. Year keys are
    the raw field strings; records with an empty year are skipped.
    """
    selected = list(dict.fromkeys(selected_authors))
    result: Dict[str, YearAggregate] = {}

    for record in records:
        year = record_year(record)
        if not year:
            continue

        bucket = result.get(year)
        if bucket is None:
            bucket = YearAggregate(total=0, authors={name: 0 for name in selected})
            result[year] = bucket

        bucket.total += 1

        row_authors = set(split_authors(record.get(FIELD_AUTHORS)))
        for name in selected:
            if name in row_authors:
                bucket.authors[name] += 1

    return result


def count_by_year(records: Iterable[Record]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for record in records:
        year = record_year(record)
        if not year:
            continue
        counts[year] = counts.get(year, 0) + 1
    return counts


def year_sort_key(year: str):
    parsed = parse_year(year)
    # non-numeric keys sort after numeric ones
    return (parsed is None, parsed if parsed is not None else 0, year)


# -------------------------
# Author extraction
# -------------------------

def extract_authors(records: Iterable[Record]) -> List[str]:
    names = set()
    for record in records:
        for name in split_authors(record.get(FIELD_AUTHORS)):
            if name:
                names.add(name)
    return sorted(names)


def author_matches_query(name: str, query: Optional[str]) -> bool:
    needle = (query or "").strip().lower()
    if not needle:
        return True
    return needle in (name or "").lower()


# -------------------------
# Highlighting
# -------------------------

def _author_pattern(name: str) -> "re.Pattern[str]":
    # whole-token match: no word character directly before or after the name
    return re.compile(r"(?<!\w)" + re.escape(name) + r"(?!\w)")


def find_highlight_spans(authors_field: str, selected_authors: Sequence[str]) -> List[HighlightSpan]:
    """Locate selected author names in the original author string.

    Candidates from every name are collected first; overlapping candidates are
    resolved leftmost-longest, ties going to the earlier selected name.
    """
    text = authors_field or ""
    candidates = []
    for order, name in enumerate(dict.fromkeys(selected_authors)):
        if not name:
            continue
        for m in _author_pattern(name).finditer(text):
            candidates.append((m.start(), -(m.end() - m.start()), order, HighlightSpan(m.start(), m.end(), name)))

    candidates.sort(key=lambda c: c[:3])

    spans: List[HighlightSpan] = []
    cursor = 0
    for _, _, _, span in candidates:
        if span.start < cursor:
            continue
        spans.append(span)
        cursor = span.end
    return spans


def highlight_class(style: Optional[str]) -> str:
    return HIGHLIGHT_CLASSES.get(style or HIGHLIGHT_BOLD, HIGHLIGHT_CLASSES[HIGHLIGHT_BOLD])


def render_highlight_markup(text: str, spans: Sequence[HighlightSpan], style: Optional[str] = HIGHLIGHT_BOLD) -> str:
    cls = highlight_class(style)
    parts = []
    cursor = 0
    for span in spans:
        parts.append(html.escape(text[cursor:span.start]))
        parts.append(f'<span class="{cls}">{html.escape(text[span.start:span.end])}</span>')
        cursor = span.end
    parts.append(html.escape(text[cursor:]))
    return "".join(parts)


def highlight_authors(
    authors_field: str,
    selected_authors: Sequence[str],
    style: Optional[str] = HIGHLIGHT_BOLD,
) -> str:
    """Return HTML for an author list with every selected name wrapped in a styled span."""
    text = authors_field or ""
    spans = find_highlight_spans(text, selected_authors)
    return render_highlight_markup(text, spans, style)
