# tests/test_text_cleaner.py

"""Tests for plain-text rules, markup sanitising and URL normalising."""

import unittest

from src.filters.text_cleaner import (
    PLAIN_TEXT_RULES,
    clean_plain_text,
    content_images,
    first_content_image,
    make_excerpt,
    normalize_media_url,
    sanitize_html,
)


class TestPlainTextRules(unittest.TestCase):
    """Ordered rule list behaviour."""

    def test_rule_names_are_unique_and_whitespace_runs_last(self) -> None:
        names = [r.name for r in PLAIN_TEXT_RULES]
        self.assertEqual(len(names), len(set(names)))
        self.assertEqual(names[0], "strip_tags")
        self.assertEqual(names[-1], "collapse_whitespace")

    def test_entities_and_markers(self) -> None:
        raw = "<p>Vive&nbsp;Cali &amp; disfruta &#8220;el sabor&#8221; [&hellip;]</p>"
        self.assertEqual(
            clean_plain_text(raw), 'Vive Cali & disfruta "el sabor" ...'
        )

    def test_apostrophe_and_numeric_entities(self) -> None:
        self.assertEqual(clean_plain_text("It&#8217;s &#231;a"), "It's ça")

    def test_filler_separator_removed(self) -> None:
        self.assertEqual(clean_plain_text("Hola ㅤ-ㅤ mundo"), "Hola mundo")

    def test_continue_reading_link_removed(self) -> None:
        raw = (
            '<p>Great flat in Cali &hellip; <a class="more-link">'
            "Continue reading<span> Flat</span></a></p>"
        )
        self.assertEqual(clean_plain_text(raw), "Great flat in Cali ...")

    def test_read_more_removed(self) -> None:
        self.assertEqual(
            clean_plain_text("Vista al río. READ MORE &raquo;"), "Vista al río."
        )

    def test_leer_mas_removed(self) -> None:
        self.assertEqual(
            clean_plain_text("<p>Cerca al parque</p>\n<p>Leer más</p>"),
            "Cerca al parque",
        )

    def test_more_link_rules_run_before_whitespace_collapse(self) -> None:
        names = [r.name for r in PLAIN_TEXT_RULES]
        for name in ("continue_reading", "read_more", "leer_mas"):
            self.assertGreater(names.index(name), names.index("other_entities"))
            self.assertLess(names.index(name), names.index("collapse_whitespace"))

    def test_escaped_tags_are_not_reparsed(self) -> None:
        """Entity-encoded angle brackets survive as literal text."""
        self.assertEqual(clean_plain_text("a &lt;b&gt; c"), "a <b> c")

    def test_empty(self) -> None:
        self.assertEqual(clean_plain_text(None), "")
        self.assertEqual(clean_plain_text("   "), "")

    def test_single_rule_subset(self) -> None:
        only_tags = [r for r in PLAIN_TEXT_RULES if r.name == "strip_tags"]
        self.assertEqual(clean_plain_text("<b>x</b>&amp;", only_tags), "x&amp;")


class TestNormalizeMediaUrl(unittest.TestCase):

    def test_legacy_host_rewritten(self) -> None:
        self.assertEqual(
            normalize_media_url("http://hospelia.co/wp-content/uploads/x.jpg"),
            "https://wp.hospelia.co/wp-content/uploads/x.jpg",
        )

    def test_other_hosts_only_upgraded(self) -> None:
        self.assertEqual(
            normalize_media_url("http://cdn.example.com/a.png?v=2"),
            "https://cdn.example.com/a.png?v=2",
        )

    def test_relative_and_protocol_relative(self) -> None:
        self.assertEqual(
            normalize_media_url("/wp-content/a.jpg"),
            "https://wp.hospelia.co/wp-content/a.jpg",
        )
        self.assertEqual(
            normalize_media_url("//cdn.example.com/a.jpg"),
            "https://cdn.example.com/a.jpg",
        )

    def test_empty(self) -> None:
        self.assertEqual(normalize_media_url(None), "")


class TestSanitizeHtml(unittest.TestCase):

    def test_scripts_styles_comments_and_attributes_removed(self) -> None:
        markup = (
            '<style>p{color:red}</style><p class="lead" style="x">Hola'
            " <strong>Cali</strong></p><!-- editor --><script>alert(1)</script>"
        )
        cleaned = sanitize_html(markup)
        self.assertEqual(cleaned, "<p>Hola <strong>Cali</strong></p>")

    def test_entities_decoded_and_images_normalised(self) -> None:
        markup = '<p>Caf&eacute;</p><img src="http://hospelia.co/wp-content/u/a.jpg" alt="a">'
        cleaned = sanitize_html(markup)
        self.assertIn("Café", cleaned)
        self.assertIn('src="https://wp.hospelia.co/wp-content/u/a.jpg"', cleaned)

    def test_empty(self) -> None:
        self.assertEqual(sanitize_html(""), "")


class TestContentImages(unittest.TestCase):

    def test_logos_and_foreign_hosts_skipped(self) -> None:
        markup = (
            '<img src="https://wp.hospelia.co/wp-content/logo.png">'
            '<img src="https://other.example.com/pic.jpg">'
            '<img src="https://wp.hospelia.co/wp-content/uploads/room.jpg">'
            '<img src="https://wp.hospelia.co/wp-content/uploads/room.jpg">'
        )
        self.assertEqual(
            content_images(markup),
            ["https://wp.hospelia.co/wp-content/uploads/room.jpg"],
        )
        self.assertEqual(
            first_content_image(markup),
            "https://wp.hospelia.co/wp-content/uploads/room.jpg",
        )

    def test_none_found(self) -> None:
        self.assertIsNone(first_content_image("<p>sin fotos</p>"))


class TestMakeExcerpt(unittest.TestCase):

    def test_long_excerpt_kept(self) -> None:
        excerpt = "<p>" + "palabra " * 10 + "</p>"
        self.assertEqual(make_excerpt(excerpt, "<p>cuerpo</p>"), ("palabra " * 10).strip())

    def test_short_excerpt_rebuilt_from_body(self) -> None:
        body = "<p>" + "x" * 300 + "</p>"
        result = make_excerpt("Corto", body)
        self.assertEqual(result, "x" * 200 + "...")

    def test_short_excerpt_without_body_kept(self) -> None:
        self.assertEqual(make_excerpt("Corto", ""), "Corto")


if __name__ == "__main__":
    unittest.main()
