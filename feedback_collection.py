"""Feedback about Chorus itself: issue/email drafts and a local outbox."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, List
from urllib.parse import quote

from column_preferences import KeyValueStore
from generate_artifacts import iso_timestamp

logger = logging.getLogger(__name__)

APP_VERSION = "v0.1.0"
FEEDBACK_KEY = "chorus.feedback"
ISSUES_URL_KEY = "chorus.repoIssuesUrl"
DEFAULT_ISSUES_URL = "https://github.com/YOUR_USERNAME/chorus/issues/new"
GITHUB_PREFIX = "https://github.com/"
MIN_MESSAGE_CHARS = 10
TITLE_WORDS = 5

INTENTS = (
    "Analyze feedback",
    "Upload CSV",
    "Export results",
    "Rename themes",
    "Something else",
)

# Characters encodeURIComponent leaves alone.
URI_SAFE = "-_.!~*'()"
MARKDOWN_MARKS_RE = re.compile(r"[#*_`]")


@dataclass
class FeedbackContext:
    """Counts from the last analysis, attached when the user opts in."""

    text_line_count: int
    csv_row_count: int
    unique_used_count: int
    theme_count: int
    theme_titles: List[str] = field(default_factory=list)


@dataclass
class FeedbackPayload:
    timestamp: str
    intent: str
    message: str
    rating: int | None = None
    email: str = ""
    app_version: str = APP_VERSION
    page_url: str = ""
    user_agent: str = ""
    include_context: bool = False
    context: FeedbackContext | None = None


def build_payload(
    message: str,
    intent: str = INTENTS[0],
    rating: int | None = None,
    email: str = "",
    page_url: str = "",
    user_agent: str = "",
    include_context: bool = False,
    context: FeedbackContext | None = None,
    now: datetime | None = None,
) -> FeedbackPayload:
    """Validate a submission and stamp it.

    The message needs at least ten non-whitespace characters. ``context`` is
    dropped unless ``include_context`` is set.
    """
    trimmed = message.strip()
    if len(re.sub(r"\s", "", trimmed)) < MIN_MESSAGE_CHARS:
        raise ValueError("Please provide at least 10 characters of feedback")

    return FeedbackPayload(
        timestamp=iso_timestamp(now or datetime.now(timezone.utc)),
        intent=intent,
        message=trimmed,
        rating=rating,
        email=email.strip(),
        page_url=page_url,
        user_agent=user_agent,
        include_context=include_context,
        context=context if include_context else None,
    )


def encode_uri_component(value: str) -> str:
    return quote(value, safe=URI_SAFE)


def fenced_json(obj: Any) -> str:
    return "```json\n" + json.dumps(obj, indent=2, ensure_ascii=False) + "\n```"


def plain_text(body_markdown: str) -> str:
    return MARKDOWN_MARKS_RE.sub("", body_markdown)


def feedback_title(payload: FeedbackPayload) -> str:
    words = payload.message.split()
    suffix = "..." if len(words) > TITLE_WORDS else ""
    return f"Feedback: {' '.join(words[:TITLE_WORDS])}{suffix}"


def feedback_body(payload: FeedbackPayload) -> str:
    rating = payload.rating if payload.rating is not None else "n/a"
    body = f"### Feedback\n{payload.message}\n\n"
    body += f"### Intent\n{payload.intent} | Rating: {rating}\n\n"
    body += f"### Contact (optional)\n{payload.email or 'n/a'}\n\n"
    body += f"### App\nChorus {payload.app_version}\n\n"
    body += f"### Environment\nURL: {payload.page_url}\nUA: {payload.user_agent}\n\n"

    if payload.include_context and payload.context is not None:
        body += f"### Context\n{fenced_json(asdict(payload.context))}\n"
    return body


def issue_url(base_url: str, title: str, body: str) -> str:
    return f"{base_url}?title={encode_uri_component(title)}&body={encode_uri_component(body)}"


def mailto_url(payload: FeedbackPayload) -> str:
    subject = encode_uri_component("Chorus feedback")
    body = encode_uri_component(plain_text(feedback_body(payload)))
    return f"mailto:?subject={subject}&body={body}"


class FeedbackOutbox:
    """Keeps submitted feedback and the issue tracker URL in a key-value store."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def saved(self) -> list[dict[str, Any]]:
        stored = self.store.get(FEEDBACK_KEY) or []
        return stored if isinstance(stored, list) else []

    def save(self, payload: FeedbackPayload) -> int:
        feedbacks = self.saved()
        feedbacks.append(asdict(payload))
        self.store.set(FEEDBACK_KEY, feedbacks)
        logger.info("Saved feedback (%d stored)", len(feedbacks))
        return len(feedbacks)

    def issues_url(self) -> str:
        return self.store.get(ISSUES_URL_KEY) or DEFAULT_ISSUES_URL

    def set_issues_url(self, url: str) -> str:
        trimmed = url.strip()
        if not trimmed.startswith(GITHUB_PREFIX):
            raise ValueError(f"URL must start with {GITHUB_PREFIX}")
        self.store.set(ISSUES_URL_KEY, trimmed)
        return trimmed

    def draft_links(self, payload: FeedbackPayload) -> tuple[str, str, str, str]:
        """Return ``(title, body, issue URL, mailto URL)`` for a saved submission."""
        title = feedback_title(payload)
        body = feedback_body(payload)
        return title, body, issue_url(self.issues_url(), title, body), mailto_url(payload)
