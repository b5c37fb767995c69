import io
import logging
import sys
from pathlib import Path
from unittest import mock

import pandas as pd
import pytest
from docx import Document
from matplotlib.figure import Figure
from openpyxl import load_workbook

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from services import export_service
from services.chart_service import render_bar_chart, render_bar_chart_png
from services.export_service import (
    ExportArtifact,
    build_docx_bytes,
    build_excel_report_bytes,
    build_html_document,
    build_pdf_bytes,
    build_text_export,
    export_documents,
    has_export_content,
    resolve_output_name,
)
from services.report_service import (
    build_summary_df,
    clear_parse_cache,
    decode_csv_bytes,
    load_records_from_bytes,
)
from services.session_service import PublicationSession, pipeline_params_from_ui
from utils.errors import ExportError, PdfExportUnavailableError
from utils.logging_utils import get_logger

SAMPLE_CSV = (
    "Publication Year,Authors,Title,Citation\n"
    '2020,"Smith, Doe",First,J. A 1\n'
    '2021,"Smith, Lee.",Second,J. B 2\n'
    '2021,"Lee",Third,J. C 3\n'
)


def _view(style: str = "bold"):
    session = PublicationSession()
    session.load_csv_text(SAMPLE_CSV)
    session.set_selected(["Smith"])
    session.apply_params(pipeline_params_from_ui("", "", "", style))
    return session.build_view()


def test_summary_df_matches_aggregates():
    df = build_summary_df(_view())
    assert list(df.columns) == ["著者 / 年", "2020", "2021", "合計"]
    assert df.iloc[0].tolist() == ["全体", 1, 2, 3]
    assert df.iloc[1].tolist() == ["Smith", 1, 1, 2]


def test_summary_df_english_labels():
    df = build_summary_df(_view(), "en")
    assert list(df.columns) == ["Author / Year", "2020", "2021", "Total"]
    assert df.iloc[0, 0] == "All"


def test_text_export_layout():
    text = build_text_export(_view())
    lines = text.split("\n")
    assert lines[0] == "業績リスト"
    assert "著者 / 年\t2020\t2021\t合計" in lines
    assert "全体\t1\t2\t3" in lines
    assert "Smith\t1\t1\t2" in lines
    assert lines.index("2021年（2件）") < lines.index("2020年（1件）")
    assert "- Smith, Lee. Second. J. B 2" in lines
    assert "<span" not in text


def test_html_document_contents():
    chart_png = render_bar_chart_png(_view().yearly_totals)
    doc = build_html_document(_view(), chart_png=chart_png)
    assert doc.startswith("<!DOCTYPE html>")
    assert '<html lang="ja">' in doc
    assert "<td class='total'>3</td>" in doc
    assert '<span class="bold">Smith</span>, Doe First. J. A 1' in doc
    assert "data:image/png;base64," in doc
    assert ".underline" in doc


def test_html_document_without_chart():
    doc = build_html_document(_view("both"), lang="en")
    assert "<img" not in doc
    assert '<span class="bold underline">Smith</span>' in doc
    assert "2021 (2 items)" in doc


def test_docx_export_runs():
    data = build_docx_bytes(_view("both"), chart_png=render_bar_chart_png({"2020": 1}))
    assert data[:2] == b"PK"
    doc = Document(io.BytesIO(data))
    texts = [p.text for p in doc.paragraphs]
    assert "1. Smith, Doe First. J. A 1" in texts
    highlighted = [
        run.text
        for p in doc.paragraphs
        for run in p.runs
        if run.bold and run.underline
    ]
    assert highlighted == ["Smith", "Smith"]
    assert doc.tables[0].cell(1, 3).text == "3"


def test_docx_numbering_restarts_per_year():
    doc = Document(io.BytesIO(build_docx_bytes(_view())))
    numbered = [p.text for p in doc.paragraphs if p.text[:1].isdigit() and ". " in p.text]
    assert numbered == [
        "1. Smith, Lee. Second. J. B 2",
        "2. Lee Third. J. C 3",
        "1. Smith, Doe First. J. A 1",
    ]


def test_excel_export_sheets():
    data = build_excel_report_bytes(_view(), "en")
    sheets = pd.read_excel(io.BytesIO(data), sheet_name=None)
    assert set(sheets) == {"Yearly Summary", "Listing"}
    summary = sheets["Yearly Summary"]
    assert summary["Total"].tolist() == [3, 2]
    listing = sheets["Listing"]
    assert listing["Title"].tolist() == ["Second", "Third", "First"]


def test_excel_keeps_formula_like_text_as_strings():
    session = PublicationSession()
    session.load_csv_text(
        "Publication Year,Authors,Title,Citation\n"
        '2020,"=1+1","=HYPERLINK(""http://x"",""click"")",=SUM(A1:A2)\n'
    )
    data = build_excel_report_bytes(session.build_view(), "en")
    sheet = load_workbook(io.BytesIO(data))["Listing"]
    header = [cell.value for cell in sheet[1]]
    assert header == ["Year", "Authors", "Title", "Citation"]
    expected = ["2020", "=1+1", '=HYPERLINK("http://x","click")', "=SUM(A1:A2)"]
    for cell, value in zip(sheet[2], expected):
        assert cell.value == value, cell.coordinate
        assert cell.data_type != "f", cell.coordinate


def test_pdf_export():
    data = build_pdf_bytes(_view(), chart_png=render_bar_chart_png({"2020": 1, "2021": 2}))
    assert data.startswith(b"%PDF")


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.messages = []

    def emit(self, record):
        self.messages.append(record.getMessage())


def test_pdf_export_without_pymupdf():
    handler = _ListHandler()
    logger = get_logger("export_service")
    logger.addHandler(handler)
    try:
        with mock.patch.object(export_service, "fitz", None):
            with pytest.raises(PdfExportUnavailableError) as excinfo:
                build_pdf_bytes(_view())
    finally:
        logger.removeHandler(handler)
    assert "years=2 entries=3" in excinfo.value.detail
    assert len(handler.messages) == 1
    message = handler.messages[0]
    assert message.startswith("export.pdf.missing_fitz | PdfExportUnavailableError[")
    assert "entries=3" in message


def test_chart_png():
    png = render_bar_chart_png({"2021": 2, "2020": 1})
    assert png.startswith(b"\x89PNG")
    assert render_bar_chart_png({}) is None


def test_chart_figure_orders_years():
    fig = render_bar_chart({"2021": 2, "2019": 5, "2020": 1}, title="Yearly")
    assert isinstance(fig, Figure)
    ax = fig.axes[0]
    assert [label.get_text() for label in ax.get_xticklabels()] == ["2019", "2020", "2021"]
    assert [bar.get_height() for bar in ax.patches] == [5, 1, 2]
    assert ax.get_title() == "Yearly"


def test_export_documents_names_and_formats():
    artifacts = export_documents(_view(), ["txt", "html"], output_name="  ")
    assert [a.filename for a in artifacts] == ["publications.txt", "publications.html"]
    assert all(isinstance(a, ExportArtifact) for a in artifacts)
    assert artifacts[0].mime == "text/plain"
    assert artifacts[0].data.decode("utf-8") == build_text_export(_view())


def test_export_documents_rejects_unknown_format():
    with pytest.raises(ExportError):
        export_documents(_view(), ["rtf"], output_name="out")


def test_export_preconditions():
    assert resolve_output_name(None) == "publications"
    assert resolve_output_name(" mylist ") == "mylist"
    assert has_export_content(_view())
    assert not has_export_content(PublicationSession().build_view())
    assert not has_export_content(None)


def test_upload_bytes_decoding_and_cache():
    clear_parse_cache()
    raw = b"\xef\xbb\xbfPublication Year,Authors\n2020,Doe\n"
    assert decode_csv_bytes(raw).startswith("Publication Year")
    first = load_records_from_bytes(raw, "a.csv")
    second = load_records_from_bytes(raw, "a.csv")
    assert [dict(r) for r in first] == [{"Publication Year": "2020", "Authors": "Doe"}]
    assert second == first
    assert load_records_from_bytes(b"\xff\xfe", "bad.csv") == []


def main():
    tests = [
        test_summary_df_matches_aggregates,
        test_summary_df_english_labels,
        test_text_export_layout,
        test_html_document_contents,
        test_html_document_without_chart,
        test_docx_export_runs,
        test_docx_numbering_restarts_per_year,
        test_excel_export_sheets,
        test_excel_keeps_formula_like_text_as_strings,
        test_pdf_export,
        test_pdf_export_without_pymupdf,
        test_chart_png,
        test_chart_figure_orders_years,
        test_export_documents_names_and_formats,
        test_export_documents_rejects_unknown_format,
        test_export_preconditions,
        test_upload_bytes_decoding_and_cache,
    ]
    failed = 0
    for test in tests:
        try:
            test()
            print(f"[PASS] {test.__name__}")
        except AssertionError as e:
            failed += 1
            print(f"[FAIL] {test.__name__}: {e}")

    print("---")
    print(f"Total: {len(tests)}")
    print(f"Passed: {len(tests) - failed}")
    print(f"Failed: {failed}")


if __name__ == "__main__":
    main()
