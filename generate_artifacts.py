"""Render analyzed themes as Markdown, a labeled CSV, or plain copy text."""

from __future__ import annotations

import argparse
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from feedback_analysis import CompletionFn, Theme, analyze_feedback
from feedback_ingestion import (
    decode_csv_bytes,
    extract_text_from_csv,
    merge_inputs,
    parse_csv_text,
    select_column,
    split_text_lines,
    validate_upload,
)

logger = logging.getLogger(__name__)

MARKDOWN_FILENAME = "chorus-themes.md"
LABELED_CSV_FILENAME = "chorus-labeled.csv"


def iso_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_markdown(themes: Sequence[Theme], now: datetime | None = None) -> str:
    lines = [
        "---",
        "generated_by: Chorus",
        f"theme_count: {len(themes)}",
        f"date: {iso_timestamp(now or datetime.now(timezone.utc))}",
        "---",
        "",
        "# Feedback Themes",
        "",
    ]
    for idx, theme in enumerate(themes, start=1):
        lines.extend([f"## {idx}. {theme.effective_title}", ""])
        if theme.impact or theme.effort:
            lines.extend([f"**Impact:** {theme.impact or 'N/A'} | **Effort:** {theme.effort or 'N/A'}", ""])
        lines.extend([theme.summary, "", "**Supporting Quotes:**", ""])
        lines.extend([f'- "{quote}"' for quote in theme.quotes])
        lines.append("")
    return "\n".join(lines) + "\n"


def _csv_field(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def create_labeled_csv(feedback_lines: Sequence[str], themes: Sequence[Theme]) -> str:
    """Pair each feedback line with the theme that quotes it.

    Lines are matched case-insensitively after trimming; the first theme that
    quotes a line claims it and lines no theme quotes are left out.
    """
    theme_by_quote: dict[str, str] = {}
    for theme in themes:
        for quote in theme.quotes:
            theme_by_quote.setdefault(quote.lower().strip(), theme.effective_title)

    rows = ["original_text,theme_title"]
    for line in feedback_lines:
        title = theme_by_quote.get(line.lower().strip())
        if title:
            rows.append(f"{_csv_field(line)},{_csv_field(title)}")
    return "\n".join(rows)


def theme_to_text(theme: Theme) -> str:
    quotes = "\n".join(f'• "{quote}"' for quote in theme.quotes)
    return f"{theme.effective_title}\n\n{theme.summary}\n\nQuotes:\n{quotes}"


def build_artifact_content(lines: Sequence[str], themes: Sequence[Theme]) -> tuple[str, str]:
    if not themes:
        raise RuntimeError("No themes available, unable to generate artifacts.")
    return to_markdown(themes), create_labeled_csv(lines, themes)


def generate_artifacts(
    text: str = "",
    csv_text: str | None = None,
    column_index: int | None = None,
    out_dir: str | Path = "docs",
    complete: CompletionFn | None = None,
) -> tuple[Path, Path]:
    csv_lines: list[str] = []
    if csv_text is not None:
        table = parse_csv_text(csv_text)
        if column_index is None:
            column_index, _ = select_column(table)
        csv_lines = extract_text_from_csv(table, column_index).text_lines

    merge = merge_inputs(split_text_lines(text), csv_lines)
    if merge.stats.capped:
        logger.info("Showing %d of %d unique lines", merge.stats.unique_count, merge.stats.total_before_cap)
    themes = analyze_feedback(merge.merged, complete=complete)

    docs_dir = Path(out_dir)
    docs_dir.mkdir(parents=True, exist_ok=True)
    markdown_path = docs_dir / MARKDOWN_FILENAME
    labeled_path = docs_dir / LABELED_CSV_FILENAME

    markdown_content, labeled_content = build_artifact_content(merge.merged, themes)

    markdown_path.write_text(markdown_content, encoding="utf-8", newline="\n")
    labeled_path.write_text(labeled_content, encoding="utf-8", newline="\n")
    return markdown_path, labeled_path


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate Markdown and labeled CSV theme exports from feedback.")
    parser.add_argument("--text", help="Path to a text file with one feedback comment per line")
    parser.add_argument("--csv", help="Path to a feedback CSV file (max 5MB)")
    parser.add_argument("--column", type=int, help="CSV column index to read (default: auto-detect)")
    parser.add_argument("--out-dir", default="docs", help="Directory for the exports (default: docs)")
    parser.add_argument("--offline", action="store_true", help="Skip the theming service and use keyword themes")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if not args.text and not args.csv:
        parser.error("provide --text and/or --csv")

    text = Path(args.text).read_text(encoding="utf-8") if args.text else ""
    csv_text = None
    if args.csv:
        csv_path = Path(args.csv)
        payload = csv_path.read_bytes()
        validate_upload(csv_path.name, len(payload))
        csv_text = decode_csv_bytes(payload)

    complete = None
    if not args.offline:
        from backend.app.openai_client import complete_prompt

        complete = complete_prompt

    markdown_path, labeled_path = generate_artifacts(
        text=text,
        csv_text=csv_text,
        column_index=args.column,
        out_dir=args.out_dir,
        complete=complete,
    )
    print(f"Generated: {markdown_path}")
    print(f"Generated: {labeled_path}")


if __name__ == "__main__":
    main()
