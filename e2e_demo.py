"""Simple end-to-end demo for feedback ingestion, theming, tagging and export output."""

from __future__ import annotations

import sys

try:
    sys.stdout.reconfigure(encoding="utf-8")
except Exception:
    pass

from feedback_analysis import SAMPLE_FEEDBACK, CompletionFn, analyze_feedback
from feedback_ingestion import SAMPLE_CSV, extract_text_from_csv, merge_inputs, parse_csv_text, select_column, split_text_lines
from generate_artifacts import create_labeled_csv, to_markdown


def _divider(title: str) -> str:
    return f"\n{'=' * 20} {title} {'=' * 20}"


def run_demo(
    text: str = SAMPLE_FEEDBACK,
    csv_text: str | None = SAMPLE_CSV,
    complete: CompletionFn | None = None,
) -> None:
    print("\n" + "=" * 78)
    print("CHORUS - FEEDBACK THEMES DEMO OUTPUT")
    print("=" * 78)

    print(_divider("1) DATA INGESTION"))
    text_lines = split_text_lines(text)
    print(f"Pasted lines       : {len(text_lines)}")

    csv_lines: list[str] = []
    if csv_text:
        table = parse_csv_text(csv_text)
        column_index, _ = select_column(table)
        extraction = extract_text_from_csv(table, column_index)
        csv_lines = extraction.text_lines
        column_name = table.headers[column_index] if table.headers else f"column {column_index}"
        print(f"CSV delimiter      : {table.delimiter!r}")
        print(f"CSV column         : {column_name}")
        print(f"CSV rows           : {extraction.non_empty_rows} of {extraction.total_rows} non-empty")

    print(_divider("2) MERGE"))
    merge = merge_inputs(text_lines, csv_lines)
    stats = merge.stats
    print(f"Unique lines       : {stats.unique_count}")
    if stats.capped:
        print(f"Capped             : showing {stats.unique_count} of {stats.total_before_cap}")

    print(_divider("3) THEMES"))
    themes = analyze_feedback(merge.merged, complete=complete)
    print(f"Themes generated   : {len(themes)}")
    for index, theme in enumerate(themes, start=1):
        print(
            f"  {index}. {theme.effective_title}\n"
            f"     - Summary : {theme.summary}\n"
            f"     - Impact  : {theme.impact}\n"
            f"     - Effort  : {theme.effort}"
        )
        for quote in theme.quotes:
            print(f'       "{quote}"')

    print(_divider("4) EXPORTS"))
    labeled_rows = create_labeled_csv(merge.merged, themes).count("\n")
    print(f"Labeled CSV rows   : {labeled_rows}")
    print(to_markdown(themes))

    print("-" * 78)
    print("Demo complete.")
    print("-" * 78)


if __name__ == "__main__":
    run_demo()
