"""Tests for the page digest formatter."""

from __future__ import annotations

from ai_webscraper.scraper.digest import format_digest, truncate
from tests.factories.pages import PageDigestFactory


def _full_digest() -> dict:
    return {
        "title": "PyCon 2025",
        "url": "https://pycon.example/",
        "meta": {"description": "Annual conference", "keywords": "python, talks"},
        "eventContent": {
            "cards": [{"text": "Keynote"}, "Sprints"],
            "schedule": [],
            "sessions": ["Async in practice"],
            "speakers": ["Ada"],
            "times": [],
        },
        "headings": {"h1": ["PyCon 2025"], "h2": ["Schedule", "Venue"]},
        "contentSections": ["Talks run all week."],
        "links": [{"text": "Tickets", "href": "https://pycon.example/tickets"}],
        "stats": {"paragraphs": 12, "links": 40},
        "bodyText": "Welcome to PyCon.",
    }


class TestTruncate:
    def test_short_text_unchanged(self) -> None:
        assert truncate("abc", 5) == "abc"

    def test_long_text_cut_with_marker(self) -> None:
        assert truncate("abcdef", 3) == "abc..."


class TestFormatDigest:
    def test_sections_appear_in_fixed_order(self) -> None:
        text = format_digest(_full_digest())

        headers = [line for line in text.splitlines() if line.startswith("=== ")]
        assert headers == [
            "=== PAGE INFORMATION ===",
            "=== META DATA ===",
            "=== EVENT CONTENT ===",
            "=== HEADINGS ===",
            "=== CONTENT SECTIONS ===",
            "=== LINKS ===",
            "=== PAGE STATISTICS ===",
            "=== FULL PAGE TEXT ===",
        ]
        assert "\n\n=== META DATA ===" in text

    def test_section_bodies(self) -> None:
        text = format_digest(_full_digest())

        assert "Title: PyCon 2025\nURL: https://pycon.example/" in text
        assert "Description: Annual conference" in text
        assert "Cards:\n  - Keynote\n  - Sprints" in text
        assert "H2:\n  - Schedule\n  - Venue" in text
        assert "[1] Talks run all week." in text
        assert "Tickets -> https://pycon.example/tickets" in text
        assert "paragraphs: 12" in text
        assert text.endswith("=== FULL PAGE TEXT ===\nWelcome to PyCon.")

    def test_empty_sub_lists_are_omitted(self) -> None:
        text = format_digest(_full_digest())

        assert "Schedule:" not in text
        assert "Times:" not in text

    def test_empty_sections_are_omitted_entirely(self) -> None:
        text = format_digest({"title": "Only a title", "headings": {"h1": []}, "links": []})

        assert text == "=== PAGE INFORMATION ===\nTitle: Only a title"

    def test_empty_digest_renders_empty_string(self) -> None:
        assert format_digest({}) == ""

    def test_limits_are_applied(self) -> None:
        digest = {
            "headings": {"h2": [f"heading {i}" for i in range(15)]},
            "contentSections": ["x" * 600] + [f"section {i}" for i in range(30)],
            "links": [{"text": f"l{i}", "href": f"/p{i}"} for i in range(60)],
            "bodyText": "y" * 6000,
        }

        text = format_digest(digest)

        assert "  - heading 9" in text
        assert "heading 10" not in text
        assert "[1] " + "x" * 500 + "..." in text
        assert "[20] section 18" in text
        assert "[21]" not in text
        assert "l49 -> /p49" in text
        assert "l50 -> /p50" not in text
        assert text.endswith("y" * 5000 + "...")

    def test_malformed_values_are_ignored(self) -> None:
        digest = {"meta": "oops", "links": [None, "bad", {"text": "", "href": ""}], "title": None}

        assert format_digest(digest) == ""

    def test_factory_digest_without_event_content(self) -> None:
        digest = PageDigestFactory.build(title="Release notes")

        text = format_digest(digest)

        assert "=== EVENT CONTENT ===" not in text
        assert "H1:\n  - Release notes" in text
        assert "Home -> " + digest["url"] in text
