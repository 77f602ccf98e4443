"""
Callout models

Callouts are typed admonitions written as blockquotes whose first line is
``[!type]`` or ``[!type] Custom Title``.
"""

from dataclasses import dataclass
from typing import Dict, Tuple


# Callout types with their default titles
CALLOUT_TITLES: Dict[str, str] = {
    'note': 'Note',
    'tip': 'Tip',
    'warning': 'Warning',
    'danger': 'Danger',
    'info': 'Info',
}


@dataclass
class CalloutData:
    """
    Callout recognized at the start of a blockquote

    Attributes:
        callout_type: One of CALLOUT_TITLES keys
        title: Custom title, or the type's default title
        body_range: (open_index, close_index) of the blockquote tokens,
                    inclusive on both ends
        paragraph_index: Index of the paragraph_open holding the [!type] marker
    """
    callout_type: str
    title: str
    body_range: Tuple[int, int]
    paragraph_index: int
