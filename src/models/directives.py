"""
Directive specification and metadata models

Defines the four layout directives authors can embed in HTML comments,
their value vocabularies, and the typed Directive record produced by
validation.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple, Union


class DirectiveKind(Enum):
    """
    Kinds of layout directives

    The value is the name authors write after '@'.
    """
    PAGE = "page"          # <!-- @page: chapter -->
    BREAK = "break"        # <!-- @break -->
    SPREAD = "spread"      # <!-- @spread: right -->
    COLUMNS = "columns"    # <!-- @columns: 2 -->


# Page template names understood by the print stylesheet
PAGE_TEMPLATES: Tuple[str, ...] = (
    'chapter',      # Chapter openings (auto-applied to H1)
    'body',         # Body content (default)
    'art',          # Full-bleed artwork
    'appendix',     # Back matter
    'frontmatter',  # Title page, TOC (roman numerals)
    'cover',        # Book cover (full-bleed, no page numbers)
    'title-page',   # Title page (no page numbers)
    'credits',      # Credits page
    'toc',          # Table of contents
    'glossary',     # Glossary/index (two-column friendly)
    'blank',        # Intentionally blank pages
)

SPREAD_VALUES: Tuple[str, ...] = ('left', 'right', 'blank')

COLUMN_COUNTS: Tuple[int, ...] = (1, 2, 3)

DirectiveValue = Union[str, int, None]


@dataclass(frozen=True)
class Directive:
    """
    A validated layout directive

    Transient: parsed from one comment token and consumed immediately to
    rewrite that token into a marker.

    Attributes:
        kind: Which directive this is
        value: Template name (PAGE), spread side (SPREAD), column count
               (COLUMNS) or None (BREAK)

    Example:
        <!-- @columns: 2 --> -> Directive(kind=DirectiveKind.COLUMNS, value=2)
    """
    kind: DirectiveKind
    value: DirectiveValue = None


@dataclass
class DirectiveSpec:
    """
    Specification for a layout directive

    Used by DirectiveRegistry to validate values and build error messages.

    Attributes:
        kind: DirectiveKind handled by this spec
        description: Human-readable description
        valid_values: Accepted values (empty when the directive takes none)
        requires_value: Whether a value must be supplied
        convert: Turns the raw string value into the typed value
                 (raises ValueError when it cannot)
        suggest: Whether to offer a fuzzy "did you mean" for bad values
        examples: Example usage strings (the first one is shown in errors)
        note: Extra hint appended to validation errors
    """
    kind: DirectiveKind
    description: str
    valid_values: Tuple[Union[str, int], ...] = ()
    requires_value: bool = False
    convert: Callable[[str], Union[str, int]] = str
    suggest: bool = True
    examples: List[str] = field(default_factory=list)
    note: str = ""

    @property
    def name(self) -> str:
        """Directive name as written by authors (without '@')"""
        return self.kind.value

    def example_get(self) -> str:
        """First usage example, or a generic one"""
        if self.examples:
            return self.examples[0]
        return f"<!-- @{self.name} -->"

    def value_accepts(self, value: Optional[Union[str, int]]) -> bool:
        """Check a converted value against the vocabulary"""
        if not self.valid_values:
            return True
        return value in self.valid_values
