"""Feedback ingestion: CSV parsing, text-column selection, upload checks and input merging."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Sequence

import pandas as pd

from column_preferences import ColumnPreferences

logger = logging.getLogger(__name__)

MAX_LINES = 500
MAX_UPLOAD_BYTES = 5 * 1024 * 1024
DELIMITER_SAMPLE_LINES = 5
COLUMN_SAMPLE_ROWS = 10
MAX_HEADER_LENGTH = 50

LINE_BREAK_RE = re.compile(r"\r?\n")
DIGITS_RE = re.compile(r"[0-9]+")
ALPHA_PATTERN = r"[a-zA-Z]"


class EmptyInputError(ValueError):
    """Raised when a CSV file has no usable lines."""


class UploadRejectedError(ValueError):
    """Raised when an uploaded file is refused before parsing."""


class OversizedFileError(UploadRejectedError):
    pass


class WrongExtensionError(UploadRejectedError):
    pass


@dataclass
class ParsedTable:
    """Rows of a parsed CSV file, with the header row split off when detected."""

    rows: List[List[str]]
    headers: List[str] | None
    delimiter: str

    @property
    def has_headers(self) -> bool:
        return bool(self.headers)


@dataclass(frozen=True)
class ExtractionResult:
    """Non-empty lines pulled from one column of a ParsedTable."""

    text_lines: List[str]
    column_index: int
    total_rows: int
    non_empty_rows: int


@dataclass(frozen=True)
class MergeStats:
    text_count: int
    csv_count: int
    unique_count: int
    capped: bool
    total_before_cap: int


@dataclass(frozen=True)
class MergeResult:
    merged: List[str]
    stats: MergeStats


def detect_delimiter(sample: str) -> str:
    first_lines = "\n".join(sample.split("\n")[:DELIMITER_SAMPLE_LINES])
    comma_count = first_lines.count(",")
    semicolon_count = first_lines.count(";")
    return ";" if semicolon_count > comma_count else ","


def parse_csv_line(line: str, delimiter: str) -> List[str]:
    """Split one CSV line, honouring double-quoted fields and ``""`` escapes."""
    result: List[str] = []
    current: List[str] = []
    in_quotes = False
    idx = 0

    while idx < len(line):
        char = line[idx]
        if char == '"':
            if in_quotes and idx + 1 < len(line) and line[idx + 1] == '"':
                current.append('"')
                idx += 1
            else:
                in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            result.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        idx += 1

    result.append("".join(current).strip())
    return result


def _looks_like_header(row: Sequence[str]) -> bool:
    for cell in row:
        trimmed = cell.strip()
        if not trimmed or len(trimmed) >= MAX_HEADER_LENGTH or DIGITS_RE.fullmatch(trimmed):
            return False
    return True


class CSVFeedbackParser:
    """Parses raw CSV text into a ParsedTable."""

    def parse(self, text: str) -> ParsedTable:
        delimiter = detect_delimiter(text)
        lines = [line for line in LINE_BREAK_RE.split(text) if line.strip()]
        if not lines:
            raise EmptyInputError("CSV file is empty")

        parsed_lines = [parse_csv_line(line, delimiter) for line in lines]
        first_row = parsed_lines[0]

        if _looks_like_header(first_row) and len(parsed_lines) > 1:
            table = ParsedTable(rows=parsed_lines[1:], headers=first_row, delimiter=delimiter)
        else:
            table = ParsedTable(rows=parsed_lines, headers=None, delimiter=delimiter)

        logger.info(
            "Parsed %d rows (delimiter %r, headers %s)",
            len(table.rows),
            delimiter,
            "detected" if table.has_headers else "absent",
        )
        return table


def parse_csv_text(text: str) -> ParsedTable:
    return CSVFeedbackParser().parse(text)


def decode_csv_bytes(payload: bytes) -> str:
    for encoding in ("utf-8-sig", "utf-8"):
        try:
            return payload.decode(encoding)
        except UnicodeDecodeError:
            continue
    return payload.decode("latin-1")


def validate_upload(filename: str, size: int) -> None:
    """Reject uploads that are too large or not named ``*.csv``."""
    if size > MAX_UPLOAD_BYTES:
        raise OversizedFileError("File size exceeds 5MB limit")
    if not filename.endswith(".csv"):
        raise WrongExtensionError("Please upload a .csv file")


def choose_text_column(headers: Sequence[str] | None, rows: Sequence[Sequence[str]]) -> int:
    """Guess which column holds free-text feedback.

    Each column scores ``0.7 * mean length + 0.3 * mean letter count`` over its
    non-empty cells in the first ten rows. The first highest score wins.
    """
    if not headers:
        return 0

    sample = pd.DataFrame([list(row) for row in rows[:COLUMN_SAMPLE_ROWS]], dtype=object)
    scores: List[float] = []
    for col_index in range(len(headers)):
        if col_index not in sample.columns:
            scores.append(0.0)
            continue

        cells = sample[col_index]
        cells = cells[cells.notna() & (cells != "")].astype(str)
        if cells.empty:
            scores.append(0.0)
            continue

        avg_length = float(cells.str.len().mean())
        avg_alpha = float(cells.str.count(ALPHA_PATTERN).mean())
        scores.append(avg_length * 0.7 + avg_alpha * 0.3)

    return scores.index(max(scores))


def select_column(table: ParsedTable, preferences: ColumnPreferences | None = None) -> tuple[int, str | None]:
    """Pick the column to extract, returning ``(index, remembered column name)``.

    A remembered column for this header set takes precedence over scoring; the
    second element is ``None`` when the choice came from scoring.
    """
    if table.headers and preferences is not None:
        saved_column = preferences.saved_column_for(table.headers)
        if saved_column is not None:
            return table.headers.index(saved_column), saved_column

    return choose_text_column(table.headers, table.rows), None


def extract_text_from_csv(table: ParsedTable, column_index: int) -> ExtractionResult:
    text_lines: List[str] = []
    for row in table.rows:
        if column_index < len(row):
            text = row[column_index].strip()
            if text:
                text_lines.append(text)

    return ExtractionResult(
        text_lines=text_lines,
        column_index=column_index,
        total_rows=len(table.rows),
        non_empty_rows=len(text_lines),
    )


def split_text_lines(text: str) -> List[str]:
    return [line for line in (text or "").split("\n") if line.strip()]


def merge_inputs(text_lines: Sequence[str], csv_lines: Sequence[str]) -> MergeResult:
    """Merge pasted and CSV lines, dropping case-insensitive duplicates.

    Pasted lines come first and the first occurrence of each key is kept. The
    result is capped at ``MAX_LINES`` entries.
    """
    unique: dict[str, str] = {}
    for line in [*text_lines, *csv_lines]:
        key = line.lower().strip()
        if key and key not in unique:
            unique[key] = line

    deduplicated = list(unique.values())
    total_before_cap = len(deduplicated)
    merged = deduplicated[:MAX_LINES]

    if total_before_cap > MAX_LINES:
        logger.info("Capped feedback at %d of %d unique lines", MAX_LINES, total_before_cap)

    return MergeResult(
        merged=merged,
        stats=MergeStats(
            text_count=len(text_lines),
            csv_count=len(csv_lines),
            unique_count=len(merged),
            capped=total_before_cap > MAX_LINES,
            total_before_cap=total_before_cap,
        ),
    )


SAMPLE_CSV = """feedback
"Signup asks for credit card before I can try anything."
"I couldn't find pricing - had to click three pages deep."
"The dashboard loads slowly on mobile."
"Confusing error when I upload a CSV; doesn't say what's wrong."
"Search results feel irrelevant; I typed 'invoices' and got 'reports'."
"Two-factor setup is hidden; security page should recommend it."
"Trial length feels short for evaluation."
"Customer support replied fast on chat, thanks!\""""
