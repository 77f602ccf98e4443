"""
Auto-rule rewriter tests

Tests chapter starts, page breaks, full-bleed images, directive markers and
the rule that explicit directives beat automatic ones.
"""

import copy

import pytest

from pagedmd.lib.errors import DirectiveValidationError
from pagedmd.lib.rewriter import AutoRuleRewriter, PAGE_BREAK_HTML
from pagedmd.models import Directive, DirectiveKind, EngineConfig, PAGE_TEMPLATES


def heading(tokens):
    return next(t for t in tokens if t.type == "heading_open" and t.tag == "h1")


class TestChapterStart:
    """Test the level-1 heading rule"""

    def test_h1_marked(self, engine):
        """A lone H1 becomes a chapter start"""
        tokens = engine.parse("# Chapter One\n\nText.\n")
        h1 = heading(tokens)
        assert "auto-chapter-start" in h1.attrGet("class").split()
        assert h1.meta["auto_chapter_start"] is True

    def test_h2_untouched(self, engine):
        """Only level-1 headings are chapter starts"""
        html = engine.render("## Section\n")
        assert "auto-chapter-start" not in html

    def test_setext_h1_marked(self, engine):
        """Setext headings are level-1 headings too"""
        html = engine.render("Chapter\n=======\n")
        assert 'class="auto-chapter-start"' in html

    def test_explicit_page_before_suppresses(self, engine):
        """@page right before an H1 wins over the auto-rule"""
        tokens = engine.parse("<!-- @page: chapter -->\n\n# Title\n")
        assert heading(tokens).attrGet("class") is None

    def test_explicit_break_before_suppresses(self, engine):
        """@break right before an H1 wins over the auto-rule"""
        html = engine.render("Intro.\n\n<!-- @break -->\n\n# Title\n")
        assert "auto-chapter-start" not in html

    def test_inline_directive_in_heading_suppresses(self, engine):
        """A raw directive just after the heading open is seen before rewriting"""
        tokens = engine.parse("# Title <!-- @page: art -->\n")
        assert heading(tokens).attrGet("class") is None

    def test_spread_does_not_suppress(self, engine):
        """Only @page and @break count as explicit chapter intent"""
        html = engine.render("<!-- @spread: right -->\n\n# Title\n")
        assert 'class="auto-chapter-start"' in html

    def test_directive_outside_window(self, engine):
        """A directive more than ten tokens back does not suppress"""
        paragraphs = "\n\n".join(f"Paragraph {n}." for n in range(4))
        tokens = engine.parse(f"<!-- @page: body -->\n\n{paragraphs}\n\n# Title\n")
        assert "auto-chapter-start" in heading(tokens).attrGet("class")

    def test_configurable_window(self):
        """The backward window comes from the engine configuration"""
        from pagedmd.lib.engine import engine_create

        wide = engine_create(EngineConfig(chapter_window_back=20))
        paragraphs = "\n\n".join(f"Paragraph {n}." for n in range(4))
        tokens = wide.parse(f"<!-- @page: body -->\n\n{paragraphs}\n\n# Title\n")
        assert heading(tokens).attrGet("class") is None

    def test_existing_class_preserved(self, engine):
        """Chapter class is appended to classes set with attributes"""
        tokens = engine.parse("# Title\n")
        h1 = heading(tokens)
        h1.attrSet("class", "intro")
        AutoRuleRewriter(EngineConfig()).tokens_rewrite(tokens, engine.md)
        assert h1.attrGet("class") == "intro auto-chapter-start"


class TestPageBreak:
    """Test the thematic break rule"""

    def test_hr_becomes_page_break(self, engine):
        """--- renders as a page-break div, not <hr>"""
        html = engine.render("Before.\n\n---\n\nAfter.\n")
        assert '<div class="page-break"></div>' in html
        assert "<hr" not in html

    def test_auto_break_meta(self, engine):
        """Converted rules are flagged as automatic"""
        tokens = engine.parse("---\n")
        assert tokens[0].type == "html_block"
        assert tokens[0].content == PAGE_BREAK_HTML
        assert tokens[0].meta["auto_break"] is True

    def test_auto_break_does_not_suppress_chapter(self, engine):
        """An automatic break is not an explicit directive"""
        html = engine.render("---\n\n# Title\n")
        assert 'class="auto-chapter-start"' in html


class TestFullBleedImage:
    """Test the full-bleed image rule"""

    def test_full_bleed_gains_art_page(self, engine):
        """Images with .full-bleed become art pages"""
        html = engine.render("![Map](map.png){.full-bleed}\n")
        assert 'class="full-bleed auto-art-page"' in html

    def test_plain_image_untouched(self, engine):
        """Other images keep their classes"""
        html = engine.render("![Map](map.png){.inline}\n")
        assert "auto-art-page" not in html


class TestDirectiveMarkers:
    """Test directive comment rewriting"""

    def test_block_directive_rewritten(self, engine):
        """Block-level comments become markers with structured meta"""
        tokens = engine.parse("<!-- @page: art -->\n")
        marker = tokens[0]
        assert 'data-directive="page"' in marker.content
        assert 'data-value="art"' in marker.content
        assert marker.meta["directives"] == [Directive(DirectiveKind.PAGE, "art")]
        assert marker.content.endswith("></div>\n")

    def test_every_directive_in_block_rewritten(self, engine):
        """Several comments in one block each become a marker"""
        tokens = engine.parse("<!-- @page: art --> <!-- @spread: left -->\n")
        marker = tokens[0]
        assert 'data-value="art"' in marker.content
        assert 'data-spread="left"' in marker.content
        assert "<!--" not in marker.content
        assert marker.meta["directives"] == [
            Directive(DirectiveKind.PAGE, "art"),
            Directive(DirectiveKind.SPREAD, "left"),
        ]

    def test_second_invalid_directive_in_block_raises(self, engine):
        """A bad value after a good directive in the same block is still fatal"""
        with pytest.raises(DirectiveValidationError) as excinfo:
            engine.render("<!-- @page: art --> <!-- @columns: 9 -->\n")
        assert excinfo.value.directive == "columns"
        assert excinfo.value.line == 1

    def test_invalid_directive_line_within_block(self, engine):
        """The reported line points at the comment, not the block start"""
        source = "<div>\n<!-- @page: art -->\n<!-- @columns: 9 -->\n</div>\n"
        with pytest.raises(DirectiveValidationError) as excinfo:
            engine.render(source)
        assert excinfo.value.line == 3

    def test_surrounding_html_kept(self, engine):
        """Only the comment is replaced; the author's wrapper survives"""
        html = engine.render('<div class="x">\n<!-- @page: art -->\n</div>\n')
        assert html.startswith('<div class="x">\n<div class="directive-marker" data-directive="page"')
        assert html.endswith("</div>\n</div>\n")

    def test_unknown_directive_kept_beside_valid_one(self, engine):
        """An unknown name stays a comment while its neighbour is rewritten"""
        html = engine.render("<!-- @pgae: art --> <!-- @break -->\n")
        assert "<!-- @pgae: art -->" in html
        assert 'data-directive="break"' in html

    def test_inline_directive_rewritten(self, engine):
        """Comments inside a paragraph are rewritten too"""
        html = engine.render("Text <!-- @columns: 2 --> more.\n")
        assert 'data-columns="2"' in html
        assert "@columns" not in html

    def test_break_directive(self, engine):
        """@break renders as an explicit page break"""
        html = engine.render("<!-- @break -->\n")
        assert '<div class="page-break" data-directive="break"></div>' in html

    def test_unknown_directive_left_alone(self, engine, log_messages):
        """Unknown names keep the original comment and are logged"""
        html = engine.render("<!-- @pgae: art -->\n")
        assert "<!-- @pgae: art -->" in html
        assert any('Did you mean "@page"?' in message for message in log_messages)

    def test_comment_without_space_left_alone(self, engine):
        """<!--@page--> is not interpreted"""
        html = engine.render("<!--@page: art-->\n")
        assert "<!--@page: art-->" in html
        assert "directive-marker" not in html

    def test_invalid_value_reports_line_and_source(self, engine):
        """Validation errors carry the 1-based line and the file"""
        source = "Intro.\n\n<!-- @page: chaptr -->\n"
        with pytest.raises(DirectiveValidationError) as excinfo:
            engine.render(source, source_path="book/01-intro.md")

        error = excinfo.value
        assert error.line == 3
        assert error.source == "book/01-intro.md"
        assert error.valid_values == list(PAGE_TEMPLATES)
        assert str(error).startswith("Directive parsing error at book/01-intro.md, line 3:")


class TestIdempotence:
    """Test that a second pass changes nothing"""

    def test_second_pass_is_noop(self, engine):
        """Re-running the rewriter over its own output is a no-op"""
        source = "# One\n\nText.\n\n---\n\n![Art](a.png){.full-bleed}\n\n# Two\n"
        tokens = engine.parse(source)
        before = copy.deepcopy([t.as_dict() for t in tokens])

        AutoRuleRewriter(EngineConfig()).tokens_rewrite(tokens, engine.md)

        assert [t.as_dict() for t in tokens] == before

    def test_chapter_class_never_duplicated(self, engine):
        """The chapter class appears once after repeated passes"""
        tokens = engine.parse("# Title\n")
        rewriter = AutoRuleRewriter(EngineConfig())
        rewriter.tokens_rewrite(tokens, engine.md)
        rewriter.tokens_rewrite(tokens, engine.md)
        assert heading(tokens).attrGet("class") == "auto-chapter-start"


class TestLegacyContainers:
    """Test deprecation reporting for ::: containers"""

    def test_page_container_warns_once(self, engine, log_messages):
        """Legacy containers render and produce one deprecation warning"""
        html = engine.render("::: page\nA\n:::\n\n::: page\nB\n:::\n")
        assert '<div class="page">' in html
        warnings = [m for m in log_messages if "Deprecated container syntax" in m]
        assert len(warnings) == 1
        assert "2 time(s)" in warnings[0]
