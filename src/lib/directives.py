"""
Layout directives for pagedmd

Authors override the automatic layout rules with HTML comments:

    <!-- @page: art -->       apply a page template
    <!-- @break -->           force a page break
    <!-- @spread: right -->   force the next page onto a spread side
    <!-- @columns: 2 -->      switch column layout

Grammar (one compiled regex):

    comment   := "<!--" WS+ "@" name [ ":" WS* value ] WS* "-->"
    name      := [A-Za-z0-9_]+
    value     := [A-Za-z0-9_-]+

``<!--@page: art-->`` (no whitespace after ``<!--``) and ``@ page`` are not
directives. Recognized comments are validated against DirectiveSpec
vocabularies and rewritten into zero-footprint marker elements.
"""

import re
from typing import Dict, List, Optional, Union

from ..models.directives import (
    Directive,
    DirectiveKind,
    DirectiveSpec,
    PAGE_TEMPLATES,
    SPREAD_VALUES,
    COLUMN_COUNTS,
)
from ..models.parser import DirectiveMatch
from .errors import DirectiveValidationError, UnknownDirectiveWarning
from .suggest import closestMatch_find
from .log import LOG, WARN


DIRECTIVE_PATTERN = re.compile(r'<!--\s+@(\w+)(?::\s*([\w-]+))?\s*-->')

# Raw (not yet rewritten) comments that count as explicit page/break intent
EXPLICIT_COMMENT_PATTERN = re.compile(r'<!--\s+@(?:page|break)\b')

# Invisible, non-rendering placeholder style
MARKER_STYLE = 'height:0;line-height:0;overflow:hidden;position:absolute;width:0;'


def directive_match(text: str) -> Optional[DirectiveMatch]:
    """
    Recognize a directive comment in text without validating it.

    Args:
        text: Content of an html_block / html_inline token

    Returns:
        DirectiveMatch, or None when the text holds no directive comment

    Example:
        >>> directive_match("<!-- @spread: left -->\\n").value
        'left'
        >>> directive_match("<!-- just a comment -->") is None
        True
    """
    match = DIRECTIVE_PATTERN.search(text)
    if not match:
        return None
    return DirectiveMatch(name=match.group(1), value=match.group(2), position=match.start())


def _columns_convert(value: str) -> int:
    return int(value, 10)


class DirectiveRegistry:
    """
    Registry of layout directive specifications

    Maps directive names to DirectiveSpec objects and validates parsed
    directive comments against them.
    """

    def __init__(self) -> None:
        """Initialize the registry with the four layout directives"""
        self.specs: Dict[str, DirectiveSpec] = {}
        self.layoutDirectives_register()

    def register(self, spec: DirectiveSpec) -> None:
        """Register a directive specification"""
        self.specs[spec.name] = spec

    def spec_get(self, name: str) -> Optional[DirectiveSpec]:
        """Get full directive specification by name"""
        return self.specs.get(name)

    def names_list(self) -> List[str]:
        """Registered directive names, in registration order"""
        return list(self.specs)

    def layoutDirectives_register(self) -> None:
        """Register @page, @break, @spread and @columns"""

        self.register(DirectiveSpec(
            kind=DirectiveKind.PAGE,
            description='Apply a named page template',
            valid_values=PAGE_TEMPLATES,
            requires_value=True,
            examples=['<!-- @page: chapter -->', '<!-- @page: art -->'],
        ))

        self.register(DirectiveSpec(
            kind=DirectiveKind.BREAK,
            description='Force a page break',
            examples=['<!-- @break -->'],
        ))

        self.register(DirectiveSpec(
            kind=DirectiveKind.SPREAD,
            description='Force the following content onto a spread side',
            valid_values=SPREAD_VALUES,
            requires_value=True,
            examples=['<!-- @spread: right -->'],
        ))

        # Column counts are numbers: a "did you mean" between digits is noise
        self.register(DirectiveSpec(
            kind=DirectiveKind.COLUMNS,
            description='Set the column layout',
            valid_values=COLUMN_COUNTS,
            requires_value=True,
            convert=_columns_convert,
            suggest=False,
            examples=['<!-- @columns: 2 -->'],
            note='Columns must be a number (1, 2, or 3)',
        ))

    def directive_parse(self, text: str) -> Optional[Directive]:
        """
        Parse and validate a directive comment.

        Args:
            text: Literal content of a comment token

        Returns:
            Directive on success; None when the text is not a directive or
            names an unknown directive (the latter is logged with a
            suggestion and the comment is left alone)

        Raises:
            DirectiveValidationError: value missing or outside the
                directive's vocabulary

        Example:
            >>> DirectiveRegistry().directive_parse("<!-- @columns: 2 -->")
            Directive(kind=<DirectiveKind.COLUMNS: 'columns'>, value=2)
        """
        match = directive_match(text)
        if match is None:
            return None

        spec = self.spec_get(match.name)
        if spec is None:
            suggestion = closestMatch_find(match.name, self.names_list())
            WARN(str(UnknownDirectiveWarning(match.name, self.names_list(), suggestion)))
            return None

        directive = self.directive_validate(spec, match.value)
        LOG(f"Parsed directive @{spec.name} = {directive.value!r}", level=3)
        return directive

    def directive_validate(self, spec: DirectiveSpec, raw_value: Optional[str]) -> Directive:
        """
        Check a raw value against a spec and build the typed Directive.

        Raises:
            DirectiveValidationError: see directive_parse()
        """
        if not spec.requires_value:
            return Directive(kind=spec.kind, value=None)

        if not raw_value:
            raise DirectiveValidationError(
                directive=spec.name,
                value=None,
                valid_values=spec.valid_values,
                example=spec.example_get(),
            )

        value: Union[str, int, None]
        try:
            value = spec.convert(raw_value)
        except ValueError:
            value = None

        if value is None or not spec.value_accepts(value):
            suggestion = None
            if spec.suggest:
                suggestion = closestMatch_find(raw_value, [str(v) for v in spec.valid_values])
            raise DirectiveValidationError(
                directive=spec.name,
                value=raw_value,
                valid_values=spec.valid_values,
                suggestion=suggestion,
                example=spec.example_get(),
                note=spec.note,
            )

        return Directive(kind=spec.kind, value=value)


def marker_make(directive: Directive) -> str:
    """
    Render the zero-footprint marker element for a directive.

    Break markers reuse the page-break class but keep data-directive, which
    is what distinguishes them from breaks produced by the --- auto-rule.

    Example:
        >>> marker_make(Directive(DirectiveKind.BREAK))
        '<div class="page-break" data-directive="break"></div>\\n'
    """
    if directive.kind is DirectiveKind.BREAK:
        return '<div class="page-break" data-directive="break"></div>\n'

    if directive.kind is DirectiveKind.PAGE:
        data = f'data-value="{directive.value}"'
    else:
        data = f'data-{directive.kind.value}="{directive.value}"'

    return (
        f'<div class="directive-marker" data-directive="{directive.kind.value}" '
        f'{data} style="{MARKER_STYLE}"></div>\n'
    )
