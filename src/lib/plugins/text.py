"""
Text-run pattern rules

markdown-it's inline ``text`` rule swallows every run of ordinary characters,
so inline rules only fire at terminator characters ({, @, :, #, ...).
Syntax that starts with a letter or digit (``2d6+3``, ``CR:4``,
``ROLL A DIE!``) is instead found by a core rule that splits the text
children of inline tokens around regex matches.
"""

import re
from typing import Callable, List

from markdown_it.rules_core import StateCore
from markdown_it.token import Token


def text_split(token: Token, pattern: "re.Pattern[str]", token_type: str, tag: str = 'span') -> List[Token]:
    """
    Split one text token around every match of pattern.

    Matched pieces become ``token_type`` tokens whose ``content`` is the
    matched text and whose ``meta`` holds the named groups.

    Returns:
        Replacement tokens (``[token]`` unchanged when nothing matched)
    """
    content = token.content
    pieces: List[Token] = []
    last = 0

    for match in pattern.finditer(content):
        if match.start() > last:
            plain = Token('text', '', 0)
            plain.content = content[last:match.start()]
            plain.level = token.level
            pieces.append(plain)

        special = Token(token_type, tag, 0)
        special.content = match.group(0)
        special.meta = {k: v for k, v in match.groupdict().items() if v is not None}
        special.level = token.level
        pieces.append(special)
        last = match.end()

    if not pieces:
        return [token]

    if last < len(content):
        tail = Token('text', '', 0)
        tail.content = content[last:]
        tail.level = token.level
        pieces.append(tail)

    return pieces


def textPattern_rule(pattern: "re.Pattern[str]", token_type: str) -> Callable[[StateCore], None]:
    """
    Build a core rule applying text_split() to every inline token.

    Usage:
        md.core.ruler.after('inline', 'dice_notation',
                            textPattern_rule(DICE_PATTERN, 'dice_notation'))
    """

    def rule(state: StateCore) -> None:
        for block in state.tokens:
            if block.type != 'inline' or not block.children:
                continue
            children: List[Token] = []
            for child in block.children:
                if child.type == 'text':
                    children.extend(text_split(child, pattern, token_type))
                else:
                    children.append(child)
            block.children = children

    return rule
