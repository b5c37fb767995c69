from __future__ import annotations

from typing import Any

import pandas as pd

LANG_JA = "ja"
LANG_EN = "en"
SUPPORTED_LANGS = (LANG_JA, LANG_EN)

_TEXTS: dict[str, dict[str, str]] = {
    LANG_JA: {
        "page_title": "業績リスト作成ツール",
        "app_title": "業績リスト作成ツール",
        "language_label": "Language / 言語",
        "nav_main": "集計結果",
        "nav_input": "入力・条件",
        "nav_output": "出力",
        "nav_howtouse": "使い方",
        "uploader_label": "CSVファイルを選択してください",
        "status_loaded": "CSVを読み込みました。件数：{count} 件",
        "status_empty": "CSVにデータ行がありません。",
        "start_year_label": "開始年",
        "end_year_label": "終了年",
        "author_filter_label": "著者を絞り込み",
        "author_list_label": "著者一覧",
        "author_list_empty": "該当する著者がいません。",
        "author_selected_caption": "選択中の著者：{count} 名",
        "highlight_style_label": "強調表示",
        "highlight_bold": "太字",
        "highlight_underline": "下線",
        "highlight_both": "太字＋下線",
        "results_title": "業績リスト",
        "table_title": "年次集計表",
        "table_corner": "著者 / 年",
        "table_total": "合計",
        "table_overall": "全体",
        "table_empty": "該当する年のデータがありません。",
        "chart_title": "年別件数",
        "list_title": "年別一覧",
        "year_heading": "{year}年（{count}件）",
        "no_data_info": "CSVを読み込むと集計結果が表示されます。",
        "output_name_label": "出力ファイル名",
        "format_label": "出力形式",
        "format_html": "HTML",
        "format_pdf": "PDF",
        "format_docx": "Word (.docx)",
        "format_txt": "テキスト (.txt)",
        "format_xlsx": "Excel (.xlsx)",
        "export_button": "出力ファイルを作成",
        "export_no_format": "出力形式を1つ以上選択してください。",
        "export_no_content": "出力対象が見つかりません。",
        "export_pdf_unavailable": "PDF出力にはPyMuPDFが必要です。",
        "export_error": "出力に失敗しました：{error}",
        "download_label": "{fmt} をダウンロード",
        "howtouse": "1. 「入力・条件」でCSVを選択します。\n2. 年の範囲と著者を指定します。\n3. 「集計結果」で表・グラフ・一覧を確認します。\n4. 「出力」で形式を選んでダウンロードします。",
        "sheet_table": "年次集計",
        "sheet_listing": "一覧",
    },
    LANG_EN: {
        "page_title": "Publication List Builder",
        "app_title": "Publication List Builder",
        "language_label": "Language / 言語",
        "nav_main": "Results",
        "nav_input": "Input & Filters",
        "nav_output": "Export",
        "nav_howtouse": "How to use",
        "uploader_label": "Choose a CSV file",
        "status_loaded": "CSV loaded. Records: {count}",
        "status_empty": "The CSV contains no data rows.",
        "start_year_label": "Start year",
        "end_year_label": "End year",
        "author_filter_label": "Filter authors",
        "author_list_label": "Authors",
        "author_list_empty": "No matching authors.",
        "author_selected_caption": "Selected authors: {count}",
        "highlight_style_label": "Highlight style",
        "highlight_bold": "Bold",
        "highlight_underline": "Underline",
        "highlight_both": "Bold + underline",
        "results_title": "Publication List",
        "table_title": "Yearly Summary",
        "table_corner": "Author / Year",
        "table_total": "Total",
        "table_overall": "All",
        "table_empty": "No data for the selected years.",
        "chart_title": "Publications per Year",
        "list_title": "Publications by Year",
        "year_heading": "{year} ({count} items)",
        "no_data_info": "Load a CSV file to see the results.",
        "output_name_label": "Output file name",
        "format_label": "Output formats",
        "format_html": "HTML",
        "format_pdf": "PDF",
        "format_docx": "Word (.docx)",
        "format_txt": "Plain text (.txt)",
        "format_xlsx": "Excel (.xlsx)",
        "export_button": "Build output files",
        "export_no_format": "Select at least one output format.",
        "export_no_content": "Nothing to export.",
        "export_pdf_unavailable": "PDF export requires PyMuPDF.",
        "export_error": "Export failed: {error}",
        "download_label": "Download {fmt}",
        "howtouse": "1. Choose a CSV file under \"Input & Filters\".\n2. Set the year range and pick authors.\n3. Review the table, chart and list under \"Results\".\n4. Pick formats under \"Export\" and download.",
        "sheet_table": "Yearly Summary",
        "sheet_listing": "Listing",
    },
}

_COLUMN_MAPS: dict[str, dict[str, str]] = {
    "listing": {
        "年": "Year",
        "著者": "Authors",
        "タイトル": "Title",
        "掲載情報": "Citation",
    },
}


def normalize_lang(lang: str | None) -> str:
    if lang in SUPPORTED_LANGS:
        return str(lang)
    return LANG_JA


def t(lang: str | None, key: str, **kwargs: Any) -> str:
    language = normalize_lang(lang)
    table = _TEXTS.get(language, _TEXTS[LANG_JA])
    template = table.get(key) or _TEXTS[LANG_JA].get(key, key)
    if kwargs:
        return template.format(**kwargs)
    return template


def localize_df_columns(df: pd.DataFrame, table_kind: str, lang: str | None) -> pd.DataFrame:
    if normalize_lang(lang) == LANG_JA:
        return df.copy()
    col_map = _COLUMN_MAPS.get(table_kind, {})
    return df.rename(columns=col_map).copy()


def sheet_name_for(table_kind: str, lang: str | None) -> str:
    return t(lang, f"sheet_{table_kind}")
