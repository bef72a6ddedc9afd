from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from column_preferences import ColumnPreferences, JsonFileStore, KeyValueStore
from feedback_analysis import CompletionFn, Theme, analyze_feedback
from feedback_collection import FeedbackContext
from feedback_ingestion import (
    MergeResult,
    MergeStats,
    decode_csv_bytes,
    extract_text_from_csv,
    merge_inputs,
    parse_csv_text,
    select_column,
    split_text_lines,
    validate_upload,
)
from generate_artifacts import create_labeled_csv, to_markdown

from .schemas import AnalyzeResponse, CSVPreviewResponse, MergeStatsModel, ThemeModel

logger = logging.getLogger(__name__)

DEFAULT_PREFS_PATH = ".chorus/preferences.json"


@dataclass
class AnalysisRun:
    """The last completed analysis, kept so exports and renames can refer to it."""

    lines: list[str] = field(default_factory=list)
    themes: list[Theme] = field(default_factory=list)
    stats: MergeStats | None = None

    def markdown(self) -> str:
        return to_markdown(self.themes)

    def labeled_csv(self) -> str:
        return create_labeled_csv(self.lines, self.themes)

    def feedback_context(self) -> FeedbackContext | None:
        if self.stats is None:
            return None
        return FeedbackContext(
            text_line_count=self.stats.text_count,
            csv_row_count=self.stats.csv_count,
            unique_used_count=self.stats.unique_count,
            theme_count=len(self.themes),
            theme_titles=[theme.effective_title for theme in self.themes],
        )


def default_store() -> KeyValueStore:
    return JsonFileStore(os.getenv("CHORUS_PREFS_PATH", DEFAULT_PREFS_PATH))


def preview_csv(
    filename: str,
    content: bytes,
    preferences: ColumnPreferences | None = None,
    column_index: int | None = None,
    remember: bool = True,
) -> CSVPreviewResponse:
    """Validate and parse an upload, then extract lines from the chosen column.

    Without ``column_index`` the column comes from remembered preferences or
    scoring; an explicit choice is remembered when ``remember`` is set.
    """
    validate_upload(filename, len(content))
    table = parse_csv_text(decode_csv_bytes(content))

    auto_selected: str | None = None
    if column_index is None:
        column_index, auto_selected = select_column(table, preferences)
    elif remember and preferences is not None and table.headers and column_index < len(table.headers):
        preferences.remember(table.headers, table.headers[column_index])

    extraction = extract_text_from_csv(table, column_index)
    return CSVPreviewResponse(
        filename=filename,
        delimiter=table.delimiter,
        headers=table.headers,
        column_index=extraction.column_index,
        auto_selected_column=auto_selected,
        total_rows=extraction.total_rows,
        non_empty_rows=extraction.non_empty_rows,
        text_lines=extraction.text_lines,
    )


def theme_to_model(theme: Theme) -> ThemeModel:
    return ThemeModel(
        title=theme.title,
        custom_title=theme.custom_title,
        display_title=theme.effective_title,
        summary=theme.summary,
        quotes=theme.quotes,
        impact=theme.impact,
        effort=theme.effort,
    )


def run_analysis(
    text: str,
    csv_lines: list[str],
    complete: CompletionFn | None = None,
) -> tuple[MergeResult, AnalysisRun]:
    merge = merge_inputs(split_text_lines(text), csv_lines)
    themes = analyze_feedback(merge.merged, complete=complete)
    logger.info("Analysis produced %d themes from %d unique lines", len(themes), merge.stats.unique_count)
    return merge, AnalysisRun(lines=merge.merged, themes=themes, stats=merge.stats)


def build_analyze_response(merge: MergeResult, run: AnalysisRun) -> AnalyzeResponse:
    stats = merge.stats
    return AnalyzeResponse(
        stats=MergeStatsModel(
            text_count=stats.text_count,
            csv_count=stats.csv_count,
            unique_count=stats.unique_count,
            capped=stats.capped,
            total_before_cap=stats.total_before_cap,
        ),
        theme_count=len(run.themes),
        themes=[theme_to_model(theme) for theme in run.themes],
    )
