import html
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from publication_core import (
    FIELD_AUTHORS,
    FIELD_CITATION,
    FIELD_TITLE,
    HIGHLIGHT_BOLD,
    HIGHLIGHT_STYLES,
    HighlightSpan,
    Record,
    YearAggregate,
    aggregate_by_year_and_author,
    author_matches_query,
    count_by_year,
    extract_authors,
    filter_by_year,
    find_highlight_spans,
    parse_csv,
    parse_year,
    record_year,
    render_highlight_markup,
    year_sort_key,
)
from utils.logging_utils import get_logger

_LOGGER = get_logger("session_service")


@dataclass(frozen=True)
class PipelineParams:
    start_year: Optional[int] = None
    end_year: Optional[int] = None
    author_query: str = ""
    highlight_style: str = HIGHLIGHT_BOLD


@dataclass(frozen=True)
class ListingEntry:
    year: str
    authors: str
    spans: Tuple[HighlightSpan, ...]
    authors_markup: str
    title: str
    citation: str

    def plain_text(self) -> str:
        return f"{self.authors} {self.title}. {self.citation}"

    def markup(self) -> str:
        return f"{self.authors_markup} {_escape(self.title)}. {_escape(self.citation)}"


@dataclass(frozen=True)
class YearGroup:
    year: str
    entries: Tuple[ListingEntry, ...]


@dataclass(frozen=True)
class PipelineView:
    """Everything the presentation and export layers need for one render pass."""
    filtered_records: Tuple[Record, ...]
    selected_authors: Tuple[str, ...]
    aggregates: Dict[str, YearAggregate]
    yearly_totals: Dict[str, int]
    year_groups: Tuple[YearGroup, ...]
    highlight_style: str

    @property
    def is_empty(self) -> bool:
        return not self.filtered_records

    def table_years(self) -> List[str]:
        return sorted(self.aggregates, key=year_sort_key)


def _escape(text: str) -> str:
    return html.escape(text or "")


def pipeline_params_from_ui(
    start_text: Optional[str],
    end_text: Optional[str],
    author_query: Optional[str] = "",
    highlight_style: Optional[str] = HIGHLIGHT_BOLD,
) -> PipelineParams:
    """Map raw widget values to pipeline parameters.

    Blank or non-numeric year text means the bound is absent. Unknown styles fall
    back to bold.
    """
    style = highlight_style if highlight_style in HIGHLIGHT_STYLES else HIGHLIGHT_BOLD
    return PipelineParams(
        start_year=parse_year(start_text),
        end_year=parse_year(end_text),
        author_query=(author_query or "").strip().lower(),
        highlight_style=style,
    )


@dataclass
class PublicationSession:
    records: List[Record] = field(default_factory=list)
    all_authors: List[str] = field(default_factory=list)
    selected: set = field(default_factory=set)
    params: PipelineParams = field(default_factory=PipelineParams)
    source_name: Optional[str] = None
    load_generation: int = 0

    def load_records(self, records: Sequence[Record], source_name: Optional[str] = None):
        """Replace the record set; the author list is rebuilt and the selection cleared."""
        self.records = list(records)
        self.all_authors = extract_authors(self.records)
        self.selected = set()
        self.source_name = source_name
        self.load_generation += 1
        _LOGGER.info(
            "session.load source=%s records=%s authors=%s",
            source_name,
            len(self.records),
            len(self.all_authors),
        )

    def load_csv_text(self, text: str, source_name: Optional[str] = None):
        self.load_records(parse_csv(text), source_name=source_name)

    def apply_params(self, params: PipelineParams):
        self.params = params

    def visible_authors(self) -> List[str]:
        return [name for name in self.all_authors if author_matches_query(name, self.params.author_query)]

    def selected_authors(self) -> Tuple[str, ...]:
        # ordered like the author list
        return tuple(name for name in self.all_authors if name in self.selected)

    def set_selected(self, names):
        known = set(self.all_authors)
        self.selected = {name for name in names if name in known}

    def toggle_author(self, name: str, checked: bool):
        if name not in self.all_authors:
            return
        if checked:
            self.selected.add(name)
        else:
            self.selected.discard(name)

    def update_visible_selection(self, visible: Sequence[str], checked: Sequence[str]):
        """Apply checkbox state for the rendered names only; hidden selections are kept."""
        visible_set = set(visible)
        checked_set = set(checked) & visible_set
        kept = {name for name in self.selected if name not in visible_set}
        self.set_selected(kept | checked_set)

    def view_signature(self) -> Tuple:
        """Everything build_view depends on; equal signatures give equal views."""
        return (self.load_generation, self.selected_authors(), self.params)

    def build_view(self) -> PipelineView:
        params = self.params
        selected = self.selected_authors()
        filtered = filter_by_year(self.records, params.start_year, params.end_year)
        aggregates = aggregate_by_year_and_author(filtered, selected)
        yearly_totals = count_by_year(filtered)
        groups = build_year_groups(filtered, selected, params.highlight_style)
        _LOGGER.debug(
            "session.view filtered=%s years=%s selected=%s",
            len(filtered),
            len(aggregates),
            len(selected),
        )
        return PipelineView(
            filtered_records=tuple(filtered),
            selected_authors=selected,
            aggregates=aggregates,
            yearly_totals=yearly_totals,
            year_groups=groups,
            highlight_style=params.highlight_style,
        )


def build_listing_entry(record: Record, selected_authors: Sequence[str], style: str) -> ListingEntry:
    authors = record.get(FIELD_AUTHORS) or ""
    spans = find_highlight_spans(authors, selected_authors)
    return ListingEntry(
        year=record_year(record),
        authors=authors,
        spans=tuple(spans),
        authors_markup=render_highlight_markup(authors, spans, style),
        title=record.get(FIELD_TITLE) or "",
        citation=record.get(FIELD_CITATION) or "",
    )


def build_year_groups(records: Sequence[Record], selected_authors: Sequence[str], style: str) -> Tuple[YearGroup, ...]:
    """Group records by year, newest year first, keeping input order inside a year."""
    by_year: Dict[str, List[ListingEntry]] = {}
    for record in records:
        year = record_year(record)
        if not year:
            continue
        by_year.setdefault(year, []).append(build_listing_entry(record, selected_authors, style))

    years = sorted(by_year, key=year_sort_key, reverse=True)
    return tuple(YearGroup(year=y, entries=tuple(by_year[y])) for y in years)
