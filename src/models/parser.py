"""
Parser-specific data models

Type-safe structures returned by the directive grammar recognizer.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class DirectiveMatch:
    """
    Result of recognizing a directive comment

    Returned by directive_match() when text contains ``<!-- @name -->`` or
    ``<!-- @name: value -->``. Nothing is validated yet: ``name`` may be
    unknown and ``value`` may be outside the directive's vocabulary.

    Attributes:
        name: Directive name as written (e.g., "page", "colums")
        value: Raw value string, or None when absent
        position: Character offset of the comment in the scanned text

    Example:
        For "<!-- @page: art -->":
        DirectiveMatch(name="page", value="art", position=0)
    """
    name: str
    value: Optional[str]
    position: int = 0
