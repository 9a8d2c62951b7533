"""Tests for a11ycheck.rules: rule predicates, forms and fixes."""

from __future__ import annotations

import pytest

from a11ycheck.config import Config
from a11ycheck.dom import Element, parse_fragment, serialize
from a11ycheck.rules import (
    RULES,
    FixError,
    Rule,
    RuleSettings,
    build_rule,
    build_rules,
    get_rule_class,
)
from a11ycheck.rules.base import register
from a11ycheck.rules.contrast import LargeTextContrastRule, SmallTextContrastRule
from a11ycheck.rules.headings import (
    HeadingsSequenceRule,
    HeadingsStartAtH2Rule,
    ParagraphsForHeadingsRule,
)
from a11ycheck.rules.images import (
    FILENAME_ERROR,
    ImgAltFilenameRule,
    ImgAltLengthRule,
    ImgAltRule,
)
from a11ycheck.rules.links import AdjacentLinksRule
from a11ycheck.rules.lists import ListStructureRule
from a11ycheck.rules.tables import TableCaptionRule, TableHeaderRule, TableHeaderScopeRule


def _parse(source: str) -> tuple[Element, Element]:
    """Return (root, first element) of *source*."""
    root = parse_fragment(source)
    return root, root.element_children()[0]


def _find(root: Element, tag: str, index: int = 0) -> Element:
    return root.find_all(tag)[index]


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_all_rules_registered(self) -> None:
        assert set(RULES) == {
            "img-alt",
            "img-alt-filename",
            "img-alt-length",
            "headings-start-at-h2",
            "headings-sequence",
            "paragraphs-for-headings",
            "table-caption",
            "table-header",
            "table-header-scope",
            "adjacent-links",
            "list-structure",
            "small-text-contrast",
            "large-text-contrast",
        }

    def test_every_rule_has_metadata(self) -> None:
        for cls in RULES.values():
            assert cls.display_name
            assert cls.message
            assert cls.why
            assert cls.link.startswith("https://")

    def test_duplicate_id_rejected(self) -> None:
        class Duplicate(Rule):
            id = "img-alt"

        with pytest.raises(ValueError, match="Duplicate rule id"):
            register(Duplicate)

    def test_missing_id_rejected(self) -> None:
        class Anonymous(Rule):
            pass

        with pytest.raises(ValueError, match="has no id"):
            register(Anonymous)

    def test_get_rule_class(self) -> None:
        assert get_rule_class("img-alt") is ImgAltRule
        assert get_rule_class("nope") is None
        assert build_rule("nope") is None

    def test_build_rules_sorted_by_id(self) -> None:
        ids = [r.id for r in build_rules()]
        assert ids == sorted(RULES)

    def test_build_rules_honours_disabled(self) -> None:
        config = Config(disabled_rules=frozenset({"img-alt", "table-caption"}))
        ids = {r.id for r in build_rules(config)}
        assert "img-alt" not in ids
        assert "table-caption" not in ids
        assert "img-alt-filename" in ids

    def test_build_rule_uses_config_settings(self) -> None:
        rule = build_rule("img-alt-length", Config(max_alt_length=10))
        assert rule is not None
        assert rule.settings.max_alt_length == 10
        assert rule.settings.generate_alt_text is None


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


class TestImgAlt:
    @pytest.mark.parametrize(
        ("source", "fails"),
        [
            ('<img src="a.png">', True),
            ('<img src="a.png" alt="">', True),
            ('<img src="a.png" alt="   ">', True),
            ('<img src="a.png" alt="" role="presentation">', False),
            ('<img src="a.png" alt="A cat">', False),
            ("<p>no image</p>", False),
        ],
    )
    def test_predicate(self, source: str, fails: bool) -> None:
        _root, elem = _parse(source)
        assert (ImgAltRule().test(elem) is not None) is fails

    def test_blank_value_marks_decorative(self) -> None:
        _root, img = _parse('<img src="a.png">')
        ImgAltRule().fix(img, "")
        assert img["alt"] == ""
        assert img["role"] == "presentation"

    def test_value_sets_alt_and_clears_decorative(self) -> None:
        _root, img = _parse('<img src="a.png" alt="" role="presentation">')
        ImgAltRule().fix(img, "A cat on a mat")
        assert img["alt"] == "A cat on a mat"
        assert not img.has_attribute("role")

    def test_filename_value_rejected(self) -> None:
        _root, img = _parse('<img src="a.png">')
        with pytest.raises(FixError, match="filenames"):
            ImgAltRule().fix(img, "cat.png")

    def test_long_value_rejected(self) -> None:
        _root, img = _parse('<img src="a.png">')
        rule = ImgAltRule(RuleSettings(max_alt_length=5))
        with pytest.raises(FixError, match="under 5 characters"):
            rule.fix(img, "A very long description")

    def test_form(self) -> None:
        _root, img = _parse('<img src="a.png" alt="old">')
        data = ImgAltRule().form(img).to_dict()
        assert data["type"] == "checkbox_text_input"
        assert data["value"] == "old"
        assert data["inputMaxLength"] == 120
        assert "canGenerateFix" not in data

    def test_generate_fix_uses_generator(self) -> None:
        _root, img = _parse('<img src="a.png">')
        rule = ImgAltRule(RuleSettings(generate_alt_text=lambda src: f"described {src}"))
        assert rule.form(img).to_dict()["canGenerateFix"] is True
        assert rule.generate_fix(img) == "described a.png"

    def test_generate_fix_without_generator(self) -> None:
        _root, img = _parse('<img src="a.png">')
        assert ImgAltRule().generate_fix(img) is None


class TestImgAltFilename:
    @pytest.mark.parametrize(
        ("alt", "fails"),
        [
            ("IMG_0001.JPG", True),
            ("photo of cat.png", True),
            ("diagram.webp", True),
            ("A cat", False),
            ("Figure 2. Results", False),
            ("", False),
        ],
    )
    def test_predicate(self, alt: str, fails: bool) -> None:
        _root, img = _parse(f'<img src="a.png" alt="{alt}">')
        result = ImgAltFilenameRule().test(img)
        assert (result is not None) is fails
        if fails:
            assert result == FILENAME_ERROR

    def test_decorative_exempt(self) -> None:
        _root, img = _parse('<img src="a.png" alt="" role="presentation">')
        assert ImgAltFilenameRule().test(img) is None

    def test_fix_replaces_filename(self) -> None:
        root, img = _parse('<img src="a.png" alt="a.png">')
        ImgAltFilenameRule().fix(img, "Bar chart of grades")
        assert serialize(root) == '<img src="a.png" alt="Bar chart of grades">'


class TestImgAltLength:
    def test_predicate(self) -> None:
        _root, short = _parse(f'<img src="a.png" alt="{"x" * 120}">')
        _root, long = _parse(f'<img src="a.png" alt="{"x" * 121}">')
        rule = ImgAltLengthRule()
        assert rule.test(short) is None
        assert rule.test(long) is not None

    def test_custom_limit(self) -> None:
        _root, img = _parse('<img src="a.png" alt="A cat on a mat">')
        assert ImgAltLengthRule(RuleSettings(max_alt_length=5)).test(img) is not None


# ---------------------------------------------------------------------------
# Headings
# ---------------------------------------------------------------------------


class TestHeadingsStartAtH2:
    def test_predicate(self) -> None:
        root = parse_fragment("<h1>Title</h1><h2>Section</h2>")
        rule = HeadingsStartAtH2Rule()
        assert rule.test(_find(root, "h1")) is not None
        assert rule.test(_find(root, "h2")) is None

    def test_change_to_h2(self) -> None:
        root, h1 = _parse("<h1>Title</h1>")
        HeadingsStartAtH2Rule().fix(h1, "Change it to Heading 2")
        assert serialize(root) == "<h2>Title</h2>"

    def test_turn_into_paragraph(self) -> None:
        root, h1 = _parse("<h1>Title</h1>")
        HeadingsStartAtH2Rule().fix(h1, "Turn into paragraph")
        assert serialize(root) == "<p>Title</p>"

    def test_invalid_value(self) -> None:
        _root, h1 = _parse("<h1>Title</h1>")
        with pytest.raises(FixError, match="Invalid value for form: Invalid value"):
            HeadingsStartAtH2Rule().fix(h1, "Invalid value")

    def test_form(self) -> None:
        _root, h1 = _parse("<h1>Title</h1>")
        data = HeadingsStartAtH2Rule().form(h1).to_dict()
        assert data["type"] == "radio_input_group"
        assert data["options"] == ["Change it to Heading 2", "Turn into paragraph"]


class TestHeadingsSequence:
    def test_skipped_level(self) -> None:
        root = parse_fragment("<h2>a</h2><p>x</p><h4>b</h4>")
        rule = HeadingsSequenceRule()
        assert rule.test(_find(root, "h2")) is None
        assert rule.test(_find(root, "h4")) is not None

    def test_one_step_and_going_back_up(self) -> None:
        root = parse_fragment("<h2>a</h2><h3>b</h3><h2>c</h2>")
        rule = HeadingsSequenceRule()
        assert all(rule.test(h) is None for h in root.iter_elements())

    def test_first_heading_is_never_skipped(self) -> None:
        _root, h4 = _parse("<h4>first</h4>")
        assert HeadingsSequenceRule().test(h4) is None

    def test_fix_hierarchy(self) -> None:
        root = parse_fragment("<h2>a</h2><div><h5>b</h5></div>")
        HeadingsSequenceRule().fix(_find(root, "h5"), "Fix heading hierarchy")
        assert serialize(root) == "<h2>a</h2><div><h3>b</h3></div>"

    def test_fix_turn_into_paragraph(self) -> None:
        root = parse_fragment("<h2>a</h2><h4>b</h4>")
        HeadingsSequenceRule().fix(_find(root, "h4"), "Turn into paragraph")
        assert serialize(root) == "<h2>a</h2><p>b</p>"


class TestParagraphsForHeadings:
    def test_predicate(self) -> None:
        root = parse_fragment(f"<h2>{'x' * 121}</h2><h3>{'x' * 120}</h3>")
        rule = ParagraphsForHeadingsRule()
        assert rule.test(_find(root, "h2")) is not None
        assert rule.test(_find(root, "h3")) is None

    def test_fix_makes_paragraph(self) -> None:
        root, h2 = _parse("<h2>long text</h2>")
        ParagraphsForHeadingsRule().fix(h2, "true")
        assert serialize(root) == "<p>long text</p>"


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

_TABLE = "<table><tr><td>Name</td><td>Grade</td></tr><tr><td>Ann</td><td>A</td></tr></table>"


class TestTableCaption:
    def test_predicate(self) -> None:
        rule = TableCaptionRule()
        _root, bare = _parse(_TABLE)
        _root, empty = _parse("<table><caption> </caption><tr><td>1</td></tr></table>")
        _root, ok = _parse("<table><caption>Grades</caption><tr><td>1</td></tr></table>")
        assert rule.test(bare) is not None
        assert rule.test(empty) is not None
        assert rule.test(ok) is None

    def test_fix_adds_caption(self) -> None:
        _root, table = _parse(_TABLE)
        TableCaptionRule().fix(table, " Grades ")
        assert table.outer_html.startswith("<table><caption>Grades</caption><tr>")

    def test_fix_replaces_empty_caption(self) -> None:
        _root, table = _parse("<table><caption></caption><tr><td>1</td></tr></table>")
        TableCaptionRule().fix(table, "Q & A")
        assert table.outer_html == (
            "<table><caption>Q &amp; A</caption><tr><td>1</td></tr></table>"
        )

    def test_empty_value_rejected(self) -> None:
        _root, table = _parse(_TABLE)
        with pytest.raises(FixError, match="Caption cannot be empty."):
            TableCaptionRule().fix(table, "  ")


class TestTableHeader:
    def test_predicate(self) -> None:
        rule = TableHeaderRule()
        _root, plain = _parse(_TABLE)
        _root, headed = _parse("<table><tr><th>Name</th></tr><tr><td>Ann</td></tr></table>")
        assert rule.test(plain) is not None
        assert rule.test(headed) is None

    def test_fix_top_row(self) -> None:
        _root, table = _parse(_TABLE)
        TableHeaderRule().fix(table, "The top row")
        assert table.outer_html == (
            '<table><tr><th scope="col">Name</th><th scope="col">Grade</th></tr>'
            "<tr><td>Ann</td><td>A</td></tr></table>"
        )

    def test_fix_first_column(self) -> None:
        _root, table = _parse(_TABLE)
        TableHeaderRule().fix(table, "The first column")
        assert table.outer_html == (
            '<table><tr><th scope="row">Name</th><td>Grade</td></tr>'
            '<tr><th scope="row">Ann</th><td>A</td></tr></table>'
        )

    def test_fix_both(self) -> None:
        _root, table = _parse(_TABLE)
        TableHeaderRule().fix(table, "Both")
        assert table.outer_html == (
            '<table><tr><th scope="col">Name</th><th scope="col">Grade</th></tr>'
            '<tr><th scope="row">Ann</th><td>A</td></tr></table>'
        )

    def test_nested_table_rows_ignored(self) -> None:
        root = parse_fragment(
            "<table><tr><td><table><tr><th>x</th></tr></table></td></tr></table>"
        )
        outer = _find(root, "table")
        assert TableHeaderRule().test(outer) is not None


class TestTableHeaderScope:
    @pytest.mark.parametrize(
        ("source", "fails"),
        [
            ("<th>x</th>", True),
            ('<th scope="bogus">x</th>', True),
            ('<th scope="col">x</th>', False),
            ('<th scope="ROWGROUP">x</th>', False),
        ],
    )
    def test_predicate(self, source: str, fails: bool) -> None:
        root = parse_fragment(f"<table><tr>{source}</tr></table>")
        assert (TableHeaderScopeRule().test(_find(root, "th")) is not None) is fails

    def test_fix_sets_scope(self) -> None:
        root = parse_fragment("<table><tr><th>x</th></tr></table>")
        th = _find(root, "th")
        TableHeaderScopeRule().fix(th, "Row group")
        assert th["scope"] == "rowgroup"

    def test_invalid_value(self) -> None:
        root = parse_fragment("<table><tr><th>x</th></tr></table>")
        with pytest.raises(FixError, match="Invalid value for form: Sideways"):
            TableHeaderScopeRule().fix(_find(root, "th"), "Sideways")


# ---------------------------------------------------------------------------
# Links and lists
# ---------------------------------------------------------------------------


class TestAdjacentLinks:
    def test_predicate(self) -> None:
        root = parse_fragment('<p><a href="/x">Read</a> <a href="/x">more</a></p>')
        rule = AdjacentLinksRule()
        assert rule.test(_find(root, "a", 0)) is not None
        assert rule.test(_find(root, "a", 1)) is None

    @pytest.mark.parametrize(
        "source",
        [
            '<p><a href="/x">Read</a><a href="/y">more</a></p>',
            '<p><a href="/x">Read</a> and <a href="/x">more</a></p>',
            "<p><a>Read</a><a>more</a></p>",
        ],
    )
    def test_not_adjacent_duplicates(self, source: str) -> None:
        root = parse_fragment(source)
        assert AdjacentLinksRule().test(_find(root, "a")) is None

    def test_fix_merges(self) -> None:
        root = parse_fragment(
            '<p><a href="/x"><img src="i.png" alt="">\n</a> <a href="/x">Next</a></p>'
        )
        fixed = AdjacentLinksRule().fix(_find(root, "a"), "true")
        assert len(root.find_all("a")) == 1
        assert fixed.text_content.strip() == "Next"

    def test_fix_joins_text_with_space(self) -> None:
        root = parse_fragment('<p><a href="/x">Read</a> <a href="/x">more</a></p>')
        AdjacentLinksRule().fix(_find(root, "a"), "true")
        assert serialize(root) == '<p><a href="/x">Read more</a></p>'


class TestListStructure:
    def test_predicate_reports_first_paragraph_only(self) -> None:
        root = parse_fragment("<p>- one</p><p>- two</p><p>after</p>")
        rule = ListStructureRule()
        paragraphs = root.find_all("p")
        assert rule.test(paragraphs[0]) is not None
        assert rule.test(paragraphs[1]) is None
        assert rule.test(paragraphs[2]) is None

    def test_single_marker_paragraph_ignored(self) -> None:
        _root, p = _parse("<p>- only one</p>")
        assert ListStructureRule().test(p) is None

    def test_fix_bullets(self) -> None:
        root = parse_fragment("<p>- one</p>\n<p>- two</p><p>after</p>")
        fixed = ListStructureRule().fix(_find(root, "p"), "true")
        assert fixed.tag_name == "ul"
        assert serialize(root) == "<ul><li>one</li><li>two</li></ul><p>after</p>"

    def test_fix_numbers(self) -> None:
        root = parse_fragment("<p>1. <b>a</b></p><p>2) b</p>")
        ListStructureRule().fix(_find(root, "p"), "true")
        assert serialize(root) == "<ol><li><b>a</b></li><li>b</li></ol>"

    def test_fix_strips_entity_bullets(self) -> None:
        root = parse_fragment("<p>&bull; Q &amp; A</p><p>&bull; two</p>")
        assert ListStructureRule().test(_find(root, "p")) is not None
        ListStructureRule().fix(_find(root, "p"), "true")
        assert serialize(root) == "<ul><li>Q &amp; A</li><li>two</li></ul>"


# ---------------------------------------------------------------------------
# Contrast
# ---------------------------------------------------------------------------


class TestTextContrast:
    def test_small_text(self) -> None:
        _root, p = _parse('<p style="color: #777777">Grey</p>')
        assert SmallTextContrastRule().test(p) is not None
        assert LargeTextContrastRule().test(p) is None

    def test_large_text(self) -> None:
        _root, ok = _parse('<h1 style="color: #777777">Big</h1>')
        _root, faint = _parse('<h1 style="color: #AAAAAA">Big</h1>')
        assert LargeTextContrastRule().test(ok) is None
        assert LargeTextContrastRule().test(faint) is not None
        assert SmallTextContrastRule().test(faint) is None

    def test_elements_without_own_text_skipped(self) -> None:
        root = parse_fragment('<div style="color: #eee"><p style="color: #000">x</p></div>')
        assert SmallTextContrastRule().test(_find(root, "div")) is None

    def test_form(self) -> None:
        _root, p = _parse('<p style="color: #777777">Grey</p>')
        data = SmallTextContrastRule().form(p).to_dict()
        assert data["type"] == "colorpicker"
        assert data["backgroundColor"] == "#FFFFFF"
        assert data["contrastRatio"] == 4.48
        assert data["value"] == "#777777"

    def test_fix_sets_color(self) -> None:
        _root, p = _parse('<p style="color: #777777; font-style: italic">Grey</p>')
        SmallTextContrastRule().fix(p, "#000000")
        assert p["style"] == "color: #000000; font-style: italic;"

    def test_fix_rejects_low_contrast(self) -> None:
        _root, p = _parse('<p style="color: #777777">Grey</p>')
        with pytest.raises(FixError, match="still below"):
            SmallTextContrastRule().fix(p, "#EEEEEE")

    def test_fix_rejects_invalid_color(self) -> None:
        _root, p = _parse('<p style="color: #777777">Grey</p>')
        with pytest.raises(FixError, match="Invalid color value"):
            SmallTextContrastRule().fix(p, "not-a-color")
