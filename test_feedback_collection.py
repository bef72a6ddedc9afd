import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from column_preferences import InMemoryStore, JsonFileStore
from feedback_collection import (
    DEFAULT_ISSUES_URL,
    FeedbackContext,
    FeedbackOutbox,
    build_payload,
    feedback_body,
    feedback_title,
    issue_url,
    mailto_url,
    plain_text,
)

FIXED_NOW = datetime(2026, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)


def _context():
    return FeedbackContext(
        text_line_count=2,
        csv_row_count=8,
        unique_used_count=10,
        theme_count=1,
        theme_titles=["Slow dashboard"],
    )


class PayloadTests(unittest.TestCase):
    def test_message_is_trimmed_and_stamped(self):
        payload = build_payload("  The export button is hidden  ", email=" me@example.com ", now=FIXED_NOW)

        self.assertEqual(payload.message, "The export button is hidden")
        self.assertEqual(payload.email, "me@example.com")
        self.assertEqual(payload.timestamp, "2026-01-02T03:04:05.678Z")
        self.assertEqual(payload.intent, "Analyze feedback")
        self.assertEqual(payload.app_version, "v0.1.0")

    def test_short_message_is_rejected(self):
        with self.assertRaises(ValueError) as ctx:
            build_payload("a b c d e f g h i")
        self.assertEqual(str(ctx.exception), "Please provide at least 10 characters of feedback")

    def test_context_dropped_without_opt_in(self):
        payload = build_payload("Exports work really well", context=_context())
        self.assertIsNone(payload.context)


class DraftTests(unittest.TestCase):
    def test_title_keeps_first_five_words(self):
        long_payload = build_payload("The export button is hidden behind settings")
        short_payload = build_payload("Search results feel irrelevant today")

        self.assertEqual(feedback_title(long_payload), "Feedback: The export button is hidden...")
        self.assertEqual(feedback_title(short_payload), "Feedback: Search results feel irrelevant today")

    def test_body_sections_without_context(self):
        payload = build_payload(
            "Search results feel irrelevant today",
            rating=4,
            page_url="http://localhost/",
            user_agent="agent/1.0",
        )

        self.assertEqual(
            feedback_body(payload),
            "### Feedback\nSearch results feel irrelevant today\n\n"
            "### Intent\nAnalyze feedback | Rating: 4\n\n"
            "### Contact (optional)\nn/a\n\n"
            "### App\nChorus v0.1.0\n\n"
            "### Environment\nURL: http://localhost/\nUA: agent/1.0\n\n",
        )

    def test_body_includes_fenced_context(self):
        payload = build_payload("Search results feel irrelevant today", include_context=True, context=_context())
        body = feedback_body(payload)

        self.assertIn("Rating: n/a", body)
        self.assertIn("### Context\n```json\n{\n  \"text_line_count\": 2,", body)
        self.assertIn('  "theme_titles": [\n    "Slow dashboard"\n  ]\n}\n```\n', body)
        self.assertTrue(body.endswith("```\n"))

    def test_issue_url_encodes_like_uri_components(self):
        url = issue_url("https://github.com/acme/chorus/issues/new", "Feedback: a b", "x&y (z)")
        self.assertEqual(url, "https://github.com/acme/chorus/issues/new?title=Feedback%3A%20a%20b&body=x%26y%20(z)")

    def test_mailto_strips_markdown_marks(self):
        payload = build_payload("Search results feel irrelevant today")

        self.assertEqual(plain_text("### **bold** _it_ `code`"), " bold it code")
        self.assertTrue(mailto_url(payload).startswith("mailto:?subject=Chorus%20feedback&body=%20Feedback%0ASearch"))


class OutboxTests(unittest.TestCase):
    def test_saves_append_to_list(self):
        outbox = FeedbackOutbox(InMemoryStore())

        self.assertEqual(outbox.save(build_payload("First piece of feedback")), 1)
        self.assertEqual(outbox.save(build_payload("Second piece of feedback", include_context=True, context=_context())), 2)

        saved = outbox.saved()
        self.assertEqual([item["message"] for item in saved], ["First piece of feedback", "Second piece of feedback"])
        self.assertEqual(saved[1]["context"]["theme_titles"], ["Slow dashboard"])

    def test_saved_feedback_survives_in_json_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "prefs.json"
            FeedbackOutbox(JsonFileStore(path)).save(build_payload("Persisted feedback message"))

            self.assertEqual(len(FeedbackOutbox(JsonFileStore(path)).saved()), 1)

    def test_issues_url_must_point_at_github(self):
        outbox = FeedbackOutbox(InMemoryStore())
        self.assertEqual(outbox.issues_url(), DEFAULT_ISSUES_URL)

        with self.assertRaises(ValueError):
            outbox.set_issues_url("http://example.com/issues")

        outbox.set_issues_url(" https://github.com/acme/chorus/issues/new ")
        title, _, url, _ = outbox.draft_links(build_payload("Search results feel irrelevant today"))
        self.assertEqual(title, "Feedback: Search results feel irrelevant today")
        self.assertTrue(url.startswith("https://github.com/acme/chorus/issues/new?title=Feedback%3A%20Search"))


if __name__ == "__main__":
    unittest.main()
