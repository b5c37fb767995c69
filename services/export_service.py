import base64
import html
import io
from dataclasses import dataclass

import pandas as pd
from docx import Document
from docx.shared import Inches

from publication_core import HIGHLIGHT_BOLD, HIGHLIGHT_BOTH, HIGHLIGHT_UNDERLINE
from services.report_service import build_listing_df, build_summary_df
from services.session_service import ListingEntry, PipelineView
from utils.errors import ExportError, PdfExportUnavailableError
from utils.i18n import localize_df_columns, normalize_lang, sheet_name_for, t
from utils.logging_utils import get_logger, log_exception

try:
    import fitz  # PyMuPDF, need `pip install pymupdf`
except ImportError:
    fitz = None

_LOGGER = get_logger("export_service")

FORMAT_HTML = "html"
FORMAT_PDF = "pdf"
FORMAT_DOCX = "docx"
FORMAT_TXT = "txt"
FORMAT_XLSX = "xlsx"
EXPORT_FORMATS = (FORMAT_HTML, FORMAT_PDF, FORMAT_DOCX, FORMAT_TXT, FORMAT_XLSX)

DEFAULT_OUTPUT_NAME = "publications"

_MIME_TYPES = {
    FORMAT_HTML: "text/html",
    FORMAT_PDF: "application/pdf",
    FORMAT_DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    FORMAT_TXT: "text/plain",
    FORMAT_XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

_DOCUMENT_CSS = """
body {
  font-family: system-ui, -apple-system, BlinkMacSystemFont, sans-serif;
  margin: 24px;
}
table {
  border-collapse: collapse;
}
th, td {
  border: 1px solid #888;
  padding: 4px 8px;
}
.bold {
  font-weight: 700;
}
.underline {
  text-decoration: underline;
}
"""

_PDF_CSS = """
* { font-family: sans-serif; font-size: 10pt; }
h2 { font-size: 16pt; }
h3 { font-size: 12pt; }
td, th { border: 1px solid #888; padding: 2px 4px; }
.bold { font-weight: bold; }
.underline { text-decoration: underline; }
"""

_PDF_CHART_NAME = "chart.png"


@dataclass(frozen=True)
class ExportArtifact:
    fmt: str
    filename: str
    mime: str
    data: bytes


def resolve_output_name(name: str | None) -> str:
    stem = (name or "").strip()
    return stem or DEFAULT_OUTPUT_NAME


def has_export_content(view: PipelineView | None) -> bool:
    return view is not None and not view.is_empty


# -------------------------
# HTML
# -------------------------

def _table_html(view: PipelineView, lang: str | None) -> str:
    years = view.table_years()
    if not years:
        return f"<p>{html.escape(t(lang, 'table_empty'))}</p>"

    df = build_summary_df(view, lang)
    parts = ["<table>", "<tr>"]
    for col in df.columns:
        parts.append(f"<th>{html.escape(str(col))}</th>")
    parts.append("</tr>")
    for _, row in df.iterrows():
        values = list(row)
        parts.append("<tr>")
        parts.append(f"<td class='year'>{html.escape(str(values[0]))}</td>")
        for value in values[1:-1]:
            parts.append(f"<td>{int(value)}</td>")
        parts.append(f"<td class='total'>{int(values[-1])}</td>")
        parts.append("</tr>")
    parts.append("</table>")
    return "".join(parts)


def _listing_html(view: PipelineView, lang: str | None) -> str:
    parts = []
    for group in view.year_groups:
        heading = t(lang, "year_heading", year=group.year, count=len(group.entries))
        parts.append("<div class='yearBlock'>")
        parts.append(f"<h3>{html.escape(heading)}</h3>")
        parts.append("<ol>")
        for entry in group.entries:
            parts.append(f"<li>{entry.markup()}</li>")
        parts.append("</ol>")
        parts.append("</div>")
    return "\n".join(parts)


def build_body_html(view: PipelineView, lang: str | None = None, chart_src: str | None = None) -> str:
    parts = [f"<h2>{html.escape(t(lang, 'results_title'))}</h2>"]
    parts.append(f"<h3>{html.escape(t(lang, 'table_title'))}</h3>")
    parts.append(_table_html(view, lang))
    if chart_src:
        parts.append(f"<h3>{html.escape(t(lang, 'chart_title'))}</h3>")
        parts.append(f'<img src="{chart_src}" style="max-width:100%;height:auto" width="500">')
    parts.append(f"<h3>{html.escape(t(lang, 'list_title'))}</h3>")
    parts.append(_listing_html(view, lang))
    return "\n".join(parts)


def build_html_document(view: PipelineView, lang: str | None = None, chart_png: bytes | None = None) -> str:
    chart_src = None
    if chart_png:
        chart_src = "data:image/png;base64," + base64.b64encode(chart_png).decode("ascii")
    body = build_body_html(view, lang, chart_src)
    return f"""<!DOCTYPE html>
<html lang="{normalize_lang(lang)}">
<head>
<meta charset="UTF-8">
<title>{html.escape(t(lang, 'results_title'))}</title>
<style>{_DOCUMENT_CSS}</style>
</head>
<body>
{body}
</body>
</html>"""


# -------------------------
# Plain text
# -------------------------

def build_text_export(view: PipelineView, lang: str | None = None) -> str:
    lines = [t(lang, "results_title"), ""]

    if view.table_years():
        df = build_summary_df(view, lang)
        lines.append("\t".join(str(col) for col in df.columns))
        for _, row in df.iterrows():
            lines.append("\t".join(str(value) for value in row))
    else:
        lines.append(t(lang, "table_empty"))
    lines.append("")

    for group in view.year_groups:
        lines.append(t(lang, "year_heading", year=group.year, count=len(group.entries)))
        for entry in group.entries:
            lines.append("- " + " ".join(entry.plain_text().split()))
        lines.append("")

    return "\n".join(lines)


# -------------------------
# Word
# -------------------------

def _add_entry_runs(paragraph, entry: ListingEntry, style: str):
    bold = style in (HIGHLIGHT_BOLD, HIGHLIGHT_BOTH)
    underline = style in (HIGHLIGHT_UNDERLINE, HIGHLIGHT_BOTH)
    cursor = 0
    for span in entry.spans:
        if span.start > cursor:
            paragraph.add_run(entry.authors[cursor:span.start])
        run = paragraph.add_run(entry.authors[span.start:span.end])
        run.bold = bold
        run.underline = underline
        cursor = span.end
    if cursor < len(entry.authors):
        paragraph.add_run(entry.authors[cursor:])
    paragraph.add_run(f" {entry.title}. {entry.citation}")


def build_docx_bytes(view: PipelineView, lang: str | None = None, chart_png: bytes | None = None) -> bytes:
    doc = Document()
    doc.add_heading(t(lang, "results_title"), level=1)

    doc.add_heading(t(lang, "table_title"), level=2)
    if view.table_years():
        df = build_summary_df(view, lang)
        table = doc.add_table(rows=len(df) + 1, cols=len(df.columns))
        table.style = "Table Grid"
        for c, col in enumerate(df.columns):
            table.cell(0, c).text = str(col)
        for r, (_, row) in enumerate(df.iterrows(), start=1):
            for c, value in enumerate(row):
                table.cell(r, c).text = str(value)
    else:
        doc.add_paragraph(t(lang, "table_empty"))

    if chart_png:
        doc.add_heading(t(lang, "chart_title"), level=2)
        doc.add_picture(io.BytesIO(chart_png), width=Inches(6))

    doc.add_heading(t(lang, "list_title"), level=2)
    for group in view.year_groups:
        doc.add_heading(t(lang, "year_heading", year=group.year, count=len(group.entries)), level=3)
        # numbering restarts in every year block, like the HTML <ol>
        for i, entry in enumerate(group.entries, 1):
            paragraph = doc.add_paragraph()
            paragraph.add_run(f"{i}. ")
            _add_entry_runs(paragraph, entry, view.highlight_style)

    out = io.BytesIO()
    doc.save(out)
    return out.getvalue()


# -------------------------
# PDF
# -------------------------

def build_pdf_bytes(view: PipelineView, lang: str | None = None, chart_png: bytes | None = None) -> bytes:
    entry_count = sum(len(group.entries) for group in view.year_groups)
    context = f"years={len(view.year_groups)} entries={entry_count} chart={bool(chart_png)}"
    if fitz is None:
        app_err = PdfExportUnavailableError(detail=f"PyMuPDF (fitz) import failed; {context}")
        log_exception("export.pdf.missing_fitz", app_err, _LOGGER)
        raise app_err

    archive = None
    chart_src = None
    if chart_png:
        archive = fitz.Archive()
        archive.add(chart_png, _PDF_CHART_NAME)
        chart_src = _PDF_CHART_NAME

    body = build_body_html(view, lang, chart_src)
    out = io.BytesIO()
    try:
        story = fitz.Story(html=body, user_css=_PDF_CSS, archive=archive)
        writer = fitz.DocumentWriter(out)
        mediabox = fitz.paper_rect("a4")
        where = mediabox + (36, 36, -36, -36)
        more = 1
        while more:
            device = writer.begin_page(mediabox)
            more, _ = story.place(where)
            story.draw(device)
            writer.end_page()
        writer.close()
    except Exception as e:
        app_err = ExportError(detail=f"PyMuPDF failed to lay out the document; {context}", cause=e)
        log_exception("export.pdf.render", app_err, _LOGGER)
        raise app_err from e
    return out.getvalue()


# -------------------------
# Excel
# -------------------------

def build_excel_report_bytes(view: PipelineView, lang: str | None = None) -> bytes:
    out = io.BytesIO()
    with pd.ExcelWriter(out, engine="openpyxl") as writer:
        build_summary_df(view, lang).to_excel(
            writer,
            index=False,
            sheet_name=sheet_name_for("table", lang),
        )
        localize_df_columns(build_listing_df(view), "listing", lang).to_excel(
            writer,
            index=False,
            sheet_name=sheet_name_for("listing", lang),
        )
        # openpyxl turns any string starting with "=" into a formula
        for sheet in writer.sheets.values():
            for row in sheet.iter_rows():
                for cell in row:
                    if isinstance(cell.value, str) and cell.value.startswith("="):
                        cell.data_type = "s"
    return out.getvalue()


# -------------------------
# Dispatch
# -------------------------

def export_documents(
    view: PipelineView,
    formats,
    output_name: str | None = None,
    lang: str | None = None,
    chart_png: bytes | None = None,
) -> list[ExportArtifact]:
    """Build every requested document from the same view.

    Callers check for an empty format list or an empty view beforehand.
    """
    stem = resolve_output_name(output_name)
    artifacts = []
    for fmt in formats:
        if fmt == FORMAT_HTML:
            data = build_html_document(view, lang, chart_png).encode("utf-8")
        elif fmt == FORMAT_PDF:
            data = build_pdf_bytes(view, lang, chart_png)
        elif fmt == FORMAT_DOCX:
            data = build_docx_bytes(view, lang, chart_png)
        elif fmt == FORMAT_TXT:
            data = build_text_export(view, lang).encode("utf-8")
        elif fmt == FORMAT_XLSX:
            data = build_excel_report_bytes(view, lang)
        else:
            app_err = ExportError(detail=f"Unsupported export format: {fmt}")
            log_exception("export.unsupported_format", app_err, _LOGGER)
            raise app_err
        artifacts.append(ExportArtifact(fmt=fmt, filename=f"{stem}.{fmt}", mime=_MIME_TYPES[fmt], data=data))
        _LOGGER.info("export.built fmt=%s bytes=%s", fmt, len(data))
    return artifacts
