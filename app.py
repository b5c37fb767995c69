# -*- coding: utf-8 -*-

import hashlib
import html

import streamlit as st

from publication_core import HIGHLIGHT_STYLES
from services.chart_service import render_bar_chart_png
from services.export_service import (
    EXPORT_FORMATS,
    FORMAT_PDF,
    export_documents,
    fitz,
    has_export_content,
)
from services.report_service import build_summary_df, load_records_from_bytes
from services.session_service import PublicationSession, pipeline_params_from_ui
from utils.errors import AppError, PdfExportUnavailableError
from utils.i18n import LANG_JA, SUPPORTED_LANGS, t
from utils.logging_utils import get_logger

_LOGGER = get_logger("app")

st.set_page_config(page_title=t(LANG_JA, "page_title"), layout="wide")

st.markdown("""
<style>
    .bold { font-weight: 700; }
    .underline { text-decoration: underline; }
    .yearBlock h3 { margin-top: 1.2rem; }
    .yearBlock ol { margin-top: 0.2rem; }

    .stDeployButton, [data-testid="stToolbar"] {
        display: none !important;
    }
    footer {
        display: none !important;
    }
    .block-container {
        padding-top: 2rem;
        padding-bottom: 5rem;
    }
</style>
""", unsafe_allow_html=True)

if "session" not in st.session_state:
    st.session_state.session = PublicationSession()
if "loaded_key" not in st.session_state:
    st.session_state.loaded_key = None
if "export_artifacts" not in st.session_state:
    st.session_state.export_artifacts = []
if "export_signature" not in st.session_state:
    st.session_state.export_signature = None
if "lang" not in st.session_state:
    st.session_state.lang = LANG_JA

session: PublicationSession = st.session_state.session

lang = st.radio(
    t(st.session_state.lang, "language_label"),
    options=list(SUPPORTED_LANGS),
    format_func=lambda code: "日本語" if code == LANG_JA else "English",
    horizontal=True,
    key="lang",
)

st.title(t(lang, "app_title"))

tab_main, tab_input, tab_output, tab_howtouse = st.tabs([
    t(lang, "nav_main"),
    t(lang, "nav_input"),
    t(lang, "nav_output"),
    t(lang, "nav_howtouse"),
])

# ----------------------------------------------------------------
# Input: CSV, year range, authors, highlight style
# ----------------------------------------------------------------
with tab_input:
    uploaded = st.file_uploader(t(lang, "uploader_label"), type=["csv"])
    if uploaded is not None:
        raw_bytes = uploaded.getvalue()
        current_key = f"{uploaded.name}_{hashlib.sha256(raw_bytes).hexdigest()}"
        if st.session_state.loaded_key != current_key:
            records = load_records_from_bytes(raw_bytes, uploaded.name)
            session.load_records(records, source_name=uploaded.name)
            st.session_state.loaded_key = current_key

        if session.records:
            st.success(t(lang, "status_loaded", count=len(session.records)))
        else:
            st.warning(t(lang, "status_empty"))

    col_start, col_end = st.columns(2)
    with col_start:
        start_text = st.text_input(t(lang, "start_year_label"), key="start_year_text")
    with col_end:
        end_text = st.text_input(t(lang, "end_year_label"), key="end_year_text")

    highlight_style = st.radio(
        t(lang, "highlight_style_label"),
        options=list(HIGHLIGHT_STYLES),
        format_func=lambda style: t(lang, f"highlight_{style}"),
        horizontal=True,
        key="highlight_style",
    )

    author_query = st.text_input(t(lang, "author_filter_label"), key="author_filter_text")
    session.apply_params(pipeline_params_from_ui(start_text, end_text, author_query, highlight_style))

    st.subheader(t(lang, "author_list_label"))
    visible = session.visible_authors()
    if session.all_authors and not visible:
        st.caption(t(lang, "author_list_empty"))

    checked = []
    with st.container(height=320):
        for name in visible:
            # widget keys are tied to the load so a new CSV starts unchecked
            if st.checkbox(name, value=name in session.selected, key=f"author_{session.load_generation}_{name}"):
                checked.append(name)
    session.update_visible_selection(visible, checked)
    st.caption(t(lang, "author_selected_caption", count=len(session.selected)))

view = session.build_view()

# downloads belong to the view they were built from
export_signature = (session.view_signature(), lang)
if st.session_state.export_signature != export_signature:
    st.session_state.export_artifacts = []
    st.session_state.export_signature = export_signature

# ----------------------------------------------------------------
# Results: table, chart, listing
# ----------------------------------------------------------------
with tab_main:
    st.header(t(lang, "results_title"))
    if not session.records:
        st.info(t(lang, "no_data_info"))
    else:
        st.subheader(t(lang, "table_title"))
        if view.table_years():
            st.dataframe(build_summary_df(view, lang), use_container_width=True, hide_index=True)
        else:
            st.write(t(lang, "table_empty"))

        st.subheader(t(lang, "chart_title"))
        try:
            chart_png = render_bar_chart_png(view.yearly_totals)
        except AppError as e:
            chart_png = None
            st.error(e.message)
        if chart_png is not None:
            st.image(chart_png, use_container_width=True)

        st.subheader(t(lang, "list_title"))
        for group in view.year_groups:
            heading = html.escape(t(lang, "year_heading", year=group.year, count=len(group.entries)))
            items = "".join(f"<li>{entry.markup()}</li>" for entry in group.entries)
            st.markdown(
                f"<div class='yearBlock'><h3>{heading}</h3><ol>{items}</ol></div>",
                unsafe_allow_html=True,
            )

# ----------------------------------------------------------------
# Export
# ----------------------------------------------------------------
with tab_output:
    output_name = st.text_input(t(lang, "output_name_label"), value="publications", key="output_name")
    st.write(t(lang, "format_label"))
    selected_formats = []
    format_cols = st.columns(len(EXPORT_FORMATS))
    for col, fmt in zip(format_cols, EXPORT_FORMATS):
        with col:
            if st.checkbox(t(lang, f"format_{fmt}"), value=False, key=f"fmt_{fmt}"):
                selected_formats.append(fmt)
    if FORMAT_PDF in selected_formats and fitz is None:
        st.caption(t(lang, "export_pdf_unavailable"))

    if st.button(t(lang, "export_button"), type="primary"):
        st.session_state.export_artifacts = []
        if not selected_formats:
            st.warning(t(lang, "export_no_format"))
        elif not has_export_content(view):
            st.warning(t(lang, "export_no_content"))
        else:
            try:
                chart_png = render_bar_chart_png(view.yearly_totals)
                st.session_state.export_artifacts = export_documents(
                    view,
                    selected_formats,
                    output_name=output_name,
                    lang=lang,
                    chart_png=chart_png,
                )
            except PdfExportUnavailableError:
                st.error(t(lang, "export_pdf_unavailable"))
            except AppError as e:
                st.error(t(lang, "export_error", error=e.message))
            except Exception as e:
                _LOGGER.exception("app.export.unexpected")
                st.error(t(lang, "export_error", error=e))

    for artifact in st.session_state.export_artifacts:
        st.download_button(
            t(lang, "download_label", fmt=artifact.filename),
            data=artifact.data,
            file_name=artifact.filename,
            mime=artifact.mime,
            key=f"download_{artifact.fmt}",
        )

with tab_howtouse:
    st.markdown(t(lang, "howtouse"))
