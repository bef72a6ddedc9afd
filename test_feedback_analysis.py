import unittest
from unittest.mock import Mock

from feedback_analysis import (
    FALLBACK_BUCKETS,
    SAMPLE_FEEDBACK,
    InsufficientInputError,
    RemoteCallFailure,
    Theme,
    analyze_feedback,
    build_prompt,
    extract_themes,
    fallback_themes,
    guess_impact_effort,
    parse_theme_response,
)

REMOTE_RESPONSE = """Sure! Here are the themes:
[
  {"title": "Onboarding friction", "summary": "Signup asks too much up front.", "quotes": ["Signup needs a card", "Trial is short"]},
  {"title": "Search relevance", "summary": "Results miss obvious matches.", "quotes": ["Search is irrelevant"]}
]
Let me know if you need anything else."""

LINES = [
    "Signup needs a card",
    "Trial is short",
    "Search is irrelevant",
    "Pricing page is hidden",
]


class ThemeExtractionTests(unittest.TestCase):
    def test_fewer_than_three_lines_is_rejected_without_calling_service(self):
        complete = Mock(return_value=REMOTE_RESPONSE)

        with self.assertRaises(InsufficientInputError):
            extract_themes(["first", "   ", "second", ""], complete=complete)

        complete.assert_not_called()

    def test_remote_themes_are_read_from_surrounding_prose(self):
        complete = Mock(return_value=REMOTE_RESPONSE)

        themes = extract_themes(LINES, complete=complete)

        self.assertEqual([theme.title for theme in themes], ["Onboarding friction", "Search relevance"])
        self.assertEqual(themes[0].quotes, ["Signup needs a card", "Trial is short"])
        prompt = complete.call_args[0][0]
        self.assertIn("1. Signup needs a card", prompt)
        self.assertIn("4. Pricing page is hidden", prompt)

    def test_any_remote_failure_falls_back_silently(self):
        expected = fallback_themes(LINES)
        failures = [
            Mock(side_effect=RuntimeError("OPENAI_API_KEY is not set")),
            Mock(side_effect=TimeoutError("timed out")),
            Mock(return_value="I could not find any themes."),
            Mock(return_value="[not valid json]"),
            Mock(return_value="[]"),
            Mock(return_value='[{"title": 3, "summary": "x", "quotes": []}]'),
            Mock(return_value='[{"title": "t", "summary": "s", "quotes": "single"}]'),
        ]

        for complete in failures:
            with self.subTest(complete=complete):
                self.assertEqual(extract_themes(LINES, complete=complete), expected)
                complete.assert_called_once()

    def test_without_service_uses_keyword_themes(self):
        self.assertEqual(extract_themes(LINES), fallback_themes(LINES))

    def test_prompt_numbers_lines_from_one(self):
        prompt = build_prompt(["first", "second", "third"])
        self.assertIn("Feedback:\n1. first\n2. second\n3. third\n", prompt)

    def test_parse_rejects_non_object_entries(self):
        with self.assertRaises(RemoteCallFailure):
            parse_theme_response('["just a string"]')


class FallbackClassifierTests(unittest.TestCase):
    def test_two_performance_matches_make_one_theme(self):
        themes = fallback_themes(["App crashes on load", "Frequent crashes reported"])

        self.assertEqual(len(themes), 1)
        self.assertEqual(themes[0].title, "Performance and Stability Concerns")
        self.assertEqual(themes[0].quotes, ["App crashes on load", "Frequent crashes reported"])

    def test_line_can_land_in_several_buckets(self):
        lines = [
            "Export is slow",
            "Download takes forever",
            "Nothing else here",
        ]

        titles = [theme.title for theme in fallback_themes(lines)]

        self.assertEqual(titles, ["Performance and Stability Concerns", "Export Functionality Praised"])

    def test_sample_feedback_is_truncated_to_five_themes_in_bucket_order(self):
        lines = SAMPLE_FEEDBACK.split("\n")

        themes = fallback_themes(lines)

        self.assertEqual([theme.title for theme in themes], [bucket.title for bucket in FALLBACK_BUCKETS[:5]])
        self.assertEqual(
            themes[0].quotes,
            ["The interface is really confusing", "I can't find the settings page", "Navigation menu is unclear"],
        )

    def test_unmatched_lines_are_chunked_into_generic_themes(self):
        lines = ["Alpha one", "Beta two", "Gamma three", "Delta four", "Epsilon five"]

        themes = fallback_themes(lines)

        self.assertEqual([theme.title for theme in themes], ["Theme 1", "Theme 2", "Theme 3"])
        self.assertEqual(themes[0].quotes, ["Alpha one", "Beta two"])
        self.assertEqual(themes[2].quotes, ["Epsilon five"])
        self.assertTrue(all(theme.summary == "User feedback grouped by similarity." for theme in themes))

    def test_chunking_skips_empty_trailing_chunk(self):
        themes = fallback_themes(["Alpha one", "Beta two", "Gamma three", "Delta four"])

        self.assertEqual([theme.quotes for theme in themes], [["Alpha one", "Beta two"], ["Gamma three", "Delta four"]])


class ImpactEffortTests(unittest.TestCase):
    def test_high_impact_keyword_wins(self):
        theme = Theme(title="Account safety", summary="The app has a critical security issue")
        self.assertEqual(guess_impact_effort(theme), ("High", "Med"))

    def test_high_impact_beats_low_impact(self):
        theme = Theme(title="Crash suggestion", summary="A minor suggestion about a crash")
        self.assertEqual(guess_impact_effort(theme)[0], "High")

    def test_low_impact_keyword(self):
        theme = Theme(title="Dark palette", summary="Users would love a darker palette")
        self.assertEqual(guess_impact_effort(theme)[0], "Low")

    def test_defaults_to_med(self):
        theme = Theme(title="Pricing page", summary="Users mention the pricing page.")
        self.assertEqual(guess_impact_effort(theme), ("Med", "Med"))

    def test_effort_priority_is_high_then_low_then_med(self):
        self.assertEqual(guess_impact_effort(Theme("Redesign navigation", "Fix the menus"))[1], "High")
        self.assertEqual(guess_impact_effort(Theme("Fix and add export", "Users want it"))[1], "Low")
        self.assertEqual(guess_impact_effort(Theme("Implement export", "Users want it"))[1], "Med")

    def test_analyze_feedback_tags_every_theme(self):
        themes = analyze_feedback(SAMPLE_FEEDBACK.split("\n"))

        self.assertEqual(len(themes), 5)
        for theme in themes:
            self.assertIn(theme.impact, {"Low", "Med", "High"})
            self.assertIn(theme.effort, {"Low", "Med", "High"})


class ThemeRenameTests(unittest.TestCase):
    def test_custom_title_overrides_and_resets(self):
        theme = Theme(title="Generated title", summary="s")

        theme.rename("  My title  ")
        self.assertEqual(theme.effective_title, "My title")
        self.assertEqual(theme.title, "Generated title")

        theme.reset_title()
        self.assertEqual(theme.effective_title, "Generated title")

    def test_invalid_titles_are_rejected(self):
        theme = Theme(title="Generated title", summary="s")
        for value in ["a", "x" * 49, "?!..."]:
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    theme.rename(value)
        self.assertIsNone(theme.custom_title)


if __name__ == "__main__":
    unittest.main()
