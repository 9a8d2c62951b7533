"""Data table rules: captions, header cells, header scope."""

from __future__ import annotations

from typing import TYPE_CHECKING

from a11ycheck import forms
from a11ycheck.dom import Element, Text
from a11ycheck.rules.base import FixError, Rule, register

if TYPE_CHECKING:
    from a11ycheck.forms import Form

TOP_ROW = "The top row"
FIRST_COLUMN = "The first column"
BOTH = "Both"

SCOPE_OPTIONS: dict[str, str] = {
    "Row": "row",
    "Column": "col",
    "Row group": "rowgroup",
    "Column group": "colgroup",
}
VALID_SCOPES: frozenset[str] = frozenset(SCOPE_OPTIONS.values())


def _owning_table(elem: Element) -> Element | None:
    for node in elem.ancestors():
        if node.tag_name == "table":
            return node
    return None


def table_rows(table: Element) -> list[Element]:
    """Rows belonging to *table*, excluding rows of nested tables."""
    return [e for e in table.find_all("tr") if _owning_table(e) is table]


def row_cells(row: Element) -> list[Element]:
    return [c for c in row.element_children() if c.tag_name in ("td", "th")]


def _to_header(cell: Element, scope: str) -> None:
    cell.rename("th")
    cell["scope"] = scope


@register
class TableCaptionRule(Rule):
    id = "table-caption"
    link = "https://www.w3.org/TR/WCAG20-TECHS/H39.html"
    display_name = "Missing table caption"
    message = "Tables should have a caption describing their content."
    why = (
        "Screen readers announce the caption when entering a table, so users "
        "can decide whether to read it."
    )

    def test(self, elem: Element) -> str | None:
        if elem.tag_name != "table":
            return None
        captions = [c for c in elem.element_children() if c.tag_name == "caption"]
        if not captions or not captions[0].text_content.strip():
            return "Tables should include a caption describing the contents of the table."
        return None

    def form(self, elem: Element) -> Form:
        return forms.text_input(
            label="Table caption",
            undo_text="Caption added",
            value="",
        )

    def fix(self, elem: Element, value: str | None) -> Element:
        if value is None or not value.strip():
            msg = "Caption cannot be empty."
            raise FixError(msg)
        captions = [c for c in elem.element_children() if c.tag_name == "caption"]
        if captions:
            caption = captions[0]
            for child in list(caption.children):
                caption.remove(child)
        else:
            caption = Element("caption")
            elem.insert(0, caption)
        caption.append(Text.from_plain(value.strip()))
        return elem


@register
class TableHeaderRule(Rule):
    id = "table-header"
    link = "https://www.w3.org/TR/WCAG20-TECHS/H43.html"
    display_name = "Missing table headers"
    message = "Tables should have header cells for their rows or columns."
    why = (
        "Header cells let screen readers announce which row and column a data "
        "cell belongs to."
    )

    def test(self, elem: Element) -> str | None:
        if elem.tag_name != "table":
            return None
        rows = table_rows(elem)
        if not rows:
            return None
        if any(cell.tag_name == "th" for row in rows for cell in row_cells(row)):
            return None
        return "Tables should include at least one header."

    def form(self, elem: Element) -> Form:
        return forms.radio_input_group(
            TOP_ROW,
            FIRST_COLUMN,
            BOTH,
            label="Which part of the table should contain the headings?",
            undo_text="Table headers set",
            value=TOP_ROW,
        )

    def fix(self, elem: Element, value: str | None) -> Element:
        self.check_form_value(elem, value)
        rows = table_rows(elem)
        if not rows:
            msg = "Table has no rows."
            raise FixError(msg)
        if value in (TOP_ROW, BOTH):
            for cell in row_cells(rows[0]):
                _to_header(cell, "col")
        if value in (FIRST_COLUMN, BOTH):
            start = 1 if value == BOTH else 0
            for row in rows[start:]:
                cells = row_cells(row)
                if cells:
                    _to_header(cells[0], "row")
        return elem


@register
class TableHeaderScopeRule(Rule):
    id = "table-header-scope"
    link = "https://www.w3.org/TR/WCAG20-TECHS/H63.html"
    display_name = "Missing header scope"
    message = "Header cells should say whether they label a row or a column."
    why = (
        "The scope attribute tells screen readers which cells a header applies to. "
        "Without it, complex tables are announced ambiguously."
    )

    def test(self, elem: Element) -> str | None:
        if elem.tag_name != "th":
            return None
        scope = (elem.get_attribute("scope") or "").strip().lower()
        if scope in VALID_SCOPES:
            return None
        return "Table header cells should have a valid scope attribute."

    def form(self, elem: Element) -> Form:
        return forms.radio_input_group(
            *SCOPE_OPTIONS,
            label="Set header scope",
            undo_text="Header scope set",
            value="Column",
        )

    def fix(self, elem: Element, value: str | None) -> Element:
        self.check_form_value(elem, value)
        elem["scope"] = SCOPE_OPTIONS[value or ""]
        return elem
