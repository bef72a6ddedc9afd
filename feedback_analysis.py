"""Group feedback lines into themes and tag each theme with impact and effort."""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import asdict, dataclass, field, replace
from typing import Callable, Iterable, List, Sequence

logger = logging.getLogger(__name__)

MIN_LINES = 3
MAX_THEMES = 5
MAX_QUOTES = 3
MIN_BUCKET_MATCHES = 2
FALLBACK_CHUNKS = 3
MIN_TITLE_LENGTH = 2
MAX_TITLE_LENGTH = 48

JSON_ARRAY_RE = re.compile(r"\[.*\]", re.DOTALL)
PUNCTUATION_ONLY_RE = re.compile(r"[^\w\s]+")

CompletionFn = Callable[[str], str]


class InsufficientInputError(ValueError):
    """Raised when fewer than MIN_LINES non-empty lines are given for analysis."""


class RemoteCallFailure(RuntimeError):
    """The clustering service did not return usable themes."""


@dataclass
class Theme:
    title: str
    summary: str
    quotes: List[str] = field(default_factory=list)
    impact: str | None = None
    effort: str | None = None
    custom_title: str | None = None

    @property
    def effective_title(self) -> str:
        if self.custom_title and self.custom_title.strip():
            return self.custom_title.strip()
        return self.title

    def rename(self, new_title: str) -> None:
        """Set a user title; the generated title is kept for ``reset_title``."""
        trimmed = (new_title or "").strip()
        if len(trimmed) < MIN_TITLE_LENGTH:
            raise ValueError(f"Title must be at least {MIN_TITLE_LENGTH} characters")
        if len(trimmed) > MAX_TITLE_LENGTH:
            raise ValueError(f"Title must be {MAX_TITLE_LENGTH} characters or less")
        if PUNCTUATION_ONLY_RE.fullmatch(trimmed):
            raise ValueError("Title cannot contain only punctuation")
        if trimmed != self.effective_title:
            self.custom_title = trimmed

    def reset_title(self) -> None:
        self.custom_title = None


@dataclass(frozen=True)
class KeywordBucket:
    name: str
    keywords: tuple[str, ...]
    title: str
    summary: str

    def matches(self, line: str) -> bool:
        lowered = line.lower()
        return any(keyword in lowered for keyword in self.keywords)


FALLBACK_BUCKETS = (
    KeywordBucket(
        name="usability",
        keywords=("confus", "find", "navigat", "unclear", "settings", "preferences"),
        title="Navigation and Usability Issues",
        summary="Users struggle to find key features and navigate the interface effectively.",
    ),
    KeywordBucket(
        name="design",
        keywords=("dark mode", "color", "beautiful", "design", "look"),
        title="Positive Design Feedback",
        summary="Users appreciate the visual design and aesthetic choices.",
    ),
    KeywordBucket(
        name="performance",
        keywords=("slow", "performance", "load", "crash", "forever"),
        title="Performance and Stability Concerns",
        summary="Users report slow loading times and reliability issues.",
    ),
    KeywordBucket(
        name="features",
        keywords=("export", "download", "data", "csv", "feature"),
        title="Export Functionality Praised",
        summary="Users value the ability to export and download their data.",
    ),
    KeywordBucket(
        name="visualization",
        keywords=("chart", "visualiz", "graph", "basic"),
        title="Visualization Enhancement Requests",
        summary="Users want more advanced charting and data visualization options.",
    ),
    KeywordBucket(
        name="support",
        keywords=("support", "team", "help", "friendly", "responded"),
        title="Customer Support Excellence",
        summary="Users report positive experiences with customer support team.",
    ),
)

GENERIC_THEME_SUMMARY = "User feedback grouped by similarity."

HIGH_IMPACT_TERMS = ("crash", "broken", "fail", "error", "critical", "urgent", "blocker", "security", "data loss")
MED_IMPACT_TERMS = ("slow", "confus", "unclear", "difficult", "problem", "issue", "concern")
LOW_IMPACT_TERMS = ("nice", "would love", "wish", "suggestion", "prefer", "minor")

HIGH_EFFORT_TERMS = ("redesign", "rebuild", "architecture", "refactor", "infrastructure", "migration")
MED_EFFORT_TERMS = ("add", "implement", "create", "develop", "build", "feature")
LOW_EFFORT_TERMS = ("fix", "update", "change", "adjust", "tweak", "improve", "polish")


def _clean_lines(lines: Iterable[str]) -> List[str]:
    return [line.strip() for line in lines if line and line.strip()]


def build_prompt(lines: Sequence[str]) -> str:
    numbered = "\n".join(f"{idx}. {line}" for idx, line in enumerate(lines, start=1))
    return f"""You are an expert at analyzing user feedback and identifying themes.

Given the following feedback comments (one per line), cluster them into 3-5 distinct themes based on semantic similarity.

For each theme:
1. Create a short, concrete title (3-6 words, neutral tone)
2. Write a one-sentence summary (maximum 25 words)
3. Select 2-4 representative quotes from the feedback that best illustrate this theme (use the exact text verbatim)

Feedback:
{numbered}

Return ONLY a valid JSON array with this exact structure, no other text:
[
  {{
    "title": "Theme Title Here",
    "summary": "Brief summary of the theme.",
    "quotes": ["exact quote 1", "exact quote 2", "exact quote 3"]
  }}
]"""


def parse_theme_response(content: str) -> List[Theme]:
    """Read the themes array embedded anywhere in a service response."""
    match = JSON_ARRAY_RE.search(content or "")
    if not match:
        raise RemoteCallFailure("Response did not contain a JSON array")

    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise RemoteCallFailure(f"Response array is not valid JSON: {exc}") from exc

    if not isinstance(payload, list) or not payload:
        raise RemoteCallFailure("Response array is empty")

    themes: List[Theme] = []
    for item in payload:
        if not isinstance(item, dict):
            raise RemoteCallFailure("Theme entries must be objects")
        title = item.get("title")
        summary = item.get("summary")
        quotes = item.get("quotes")
        if not isinstance(title, str) or not isinstance(summary, str):
            raise RemoteCallFailure("Theme entries need a string title and summary")
        if not isinstance(quotes, list) or not all(isinstance(quote, str) for quote in quotes):
            raise RemoteCallFailure("Theme quotes must be a list of strings")
        themes.append(Theme(title=title, summary=summary, quotes=list(quotes)))
    return themes


def fallback_themes(lines: Sequence[str]) -> List[Theme]:
    """Network-free themes from fixed keyword buckets.

    A line may match several buckets. When no bucket collects two lines the
    input is split into three contiguous chunks instead.
    """
    themes: List[Theme] = []
    for bucket in FALLBACK_BUCKETS:
        matched = [line for line in lines if bucket.matches(line)]
        if len(matched) >= MIN_BUCKET_MATCHES:
            themes.append(Theme(title=bucket.title, summary=bucket.summary, quotes=matched[:MAX_QUOTES]))

    if not themes:
        chunk_size = math.ceil(len(lines) / FALLBACK_CHUNKS)
        for idx in range(FALLBACK_CHUNKS):
            chunk = list(lines[idx * chunk_size:(idx + 1) * chunk_size])
            if not chunk:
                break
            themes.append(
                Theme(title=f"Theme {idx + 1}", summary=GENERIC_THEME_SUMMARY, quotes=chunk[:MAX_QUOTES])
            )

    return themes[:MAX_THEMES]


def extract_themes(lines: Iterable[str], complete: CompletionFn | None = None) -> List[Theme]:
    """Cluster feedback lines into themes.

    ``complete`` sends a prompt to the clustering service and returns its text.
    Any failure there, including a missing or malformed themes array, yields
    the keyword fallback instead of an error.
    """
    cleaned = _clean_lines(lines)
    if len(cleaned) < MIN_LINES:
        raise InsufficientInputError(f"Please provide at least {MIN_LINES} lines of feedback to analyze.")

    if complete is None:
        logger.info("No clustering service configured; using keyword themes for %d lines", len(cleaned))
        return fallback_themes(cleaned)

    try:
        themes = parse_theme_response(complete(build_prompt(cleaned)))
    except Exception as exc:
        logger.warning("Clustering service unavailable, using keyword themes: %s", exc)
        return fallback_themes(cleaned)

    logger.info("Clustering service returned %d themes for %d lines", len(themes), len(cleaned))
    return themes


def _first_tier(text: str, high: Sequence[str], low: Sequence[str], med: Sequence[str]) -> str:
    if any(term in text for term in high):
        return "High"
    if any(term in text for term in low):
        return "Low"
    if any(term in text for term in med):
        return "Med"
    return "Med"


def guess_impact_effort(theme: Theme) -> tuple[str, str]:
    """Label impact and effort from keywords in the title and summary.

    Checks run High, then Low, then Med and the first hit wins, so a text with
    both a high and a low keyword is High.
    """
    text = f"{theme.title} {theme.summary}".lower()
    impact = _first_tier(text, HIGH_IMPACT_TERMS, LOW_IMPACT_TERMS, MED_IMPACT_TERMS)
    effort = _first_tier(text, HIGH_EFFORT_TERMS, LOW_EFFORT_TERMS, MED_EFFORT_TERMS)
    return impact, effort


def tag_themes(themes: Iterable[Theme]) -> List[Theme]:
    tagged = []
    for theme in themes:
        impact, effort = guess_impact_effort(theme)
        tagged.append(replace(theme, impact=impact, effort=effort))
    return tagged


def analyze_feedback(lines: Iterable[str], complete: CompletionFn | None = None) -> List[Theme]:
    return tag_themes(extract_themes(lines, complete=complete))


SAMPLE_FEEDBACK = """The interface is really confusing
I can't find the settings page
Navigation menu is unclear
Where do I go to change my preferences?
The dark mode looks amazing
Love the color scheme
Beautiful design overall
The app loads way too slowly
Performance is terrible on mobile
Takes forever to open
Experiencing frequent crashes
The export feature is exactly what I needed
Finally can download my data
Great addition with the CSV export
Would love to see more chart types
Needs better visualization options
Graphs are too basic
Customer support responded quickly
Great help from the team
Support was very friendly"""


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description="Group feedback lines into tagged themes.")
    parser.add_argument("--feedback", required=True, help="Path to a text file with one feedback comment per line.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    with open(args.feedback, "r", encoding="utf-8") as fh:
        lines = fh.read().split("\n")

    from backend.app.openai_client import complete_prompt

    themes = analyze_feedback(lines, complete=complete_prompt)
    print(json.dumps([asdict(theme) for theme in themes], indent=2))


if __name__ == "__main__":
    main()
