"""
Callout extraction and transformation

A blockquote whose first paragraph starts with ``[!type]`` (optionally
followed by a title on the same line) becomes a semantic admonition:

    > [!warning] Mind the gap
    > The platform edge is slippery.

    <aside class="callout callout-warning" role="note" aria-label="warning">
    ...
    </aside>

Only the outer blockquote is interpreted; nested blockquotes inside the body
render unchanged. Any other blockquote is left alone.
"""

import re
from typing import Any, List, MutableMapping, Optional

from markdown_it import MarkdownIt
from markdown_it.common.utils import escapeHtml
from markdown_it.token import Token

from ..models.callouts import CalloutData, CALLOUT_TITLES
from .log import LOG


CALLOUT_PATTERN = re.compile(r'^\[!(\w+)\](?:\s+(.+))?$')

LINE_BREAKS = ('softbreak', 'hardbreak')


def firstLine_end(children: List[Token]) -> int:
    """Index of the first line-break child, or len(children)"""
    for position, child in enumerate(children):
        if child.type in LINE_BREAKS:
            return position
    return len(children)


def firstLine_text(children: List[Token]) -> str:
    """
    Plain text of the first line of an inline run.

    Markup tokens contribute nothing, so ``[!note] A *big* deal`` reads as
    ``[!note] A big deal``.
    """
    return ''.join(child.content for child in children[:firstLine_end(children)])


def blockquote_findClose(tokens: List[Token], index: int) -> int:
    """
    Index of the blockquote_close matching the blockquote_open at ``index``.

    Depth tracking keeps nested blockquotes inside the range. If the stream
    is truncated the last index is returned.
    """
    depth = 0
    for position in range(index, len(tokens)):
        token_type = tokens[position].type
        if token_type == 'blockquote_open':
            depth += 1
        elif token_type == 'blockquote_close':
            depth -= 1
            if depth == 0:
                return position
    return len(tokens) - 1


def callout_extract(tokens: List[Token], index: int) -> Optional[CalloutData]:
    """
    Detect the [!type] pattern at the start of a blockquote.

    Args:
        tokens: Token stream
        index: Index of a blockquote_open token

    Returns:
        CalloutData when the blockquote is a callout, None otherwise

    Example:
        For "> [!tip] Pro Tip\\n> Use the index" returns
        CalloutData(callout_type="tip", title="Pro Tip", ...)
    """
    paragraph_index = None
    for position in range(index + 1, len(tokens)):
        token_type = tokens[position].type
        if token_type == 'paragraph_open':
            paragraph_index = position
            break
        if token_type in ('blockquote_open', 'blockquote_close'):
            break

    if paragraph_index is None or paragraph_index + 1 >= len(tokens):
        return None

    inline = tokens[paragraph_index + 1]
    if inline.type != 'inline' or not inline.children:
        return None

    first = inline.children[0]
    if first.type != 'text' or not first.content.lstrip().startswith('[!'):
        return None

    match = CALLOUT_PATTERN.match(firstLine_text(inline.children).strip())
    if not match:
        return None

    callout_type = match.group(1).lower()
    if callout_type not in CALLOUT_TITLES:
        LOG(f"Blockquote marker [!{match.group(1)}] is not a callout type", level=2)
        return None

    custom_title = (match.group(2) or '').strip()

    return CalloutData(
        callout_type=callout_type,
        title=custom_title or CALLOUT_TITLES[callout_type],
        body_range=(index, blockquote_findClose(tokens, index)),
        paragraph_index=paragraph_index,
    )


def callout_render(callout_type: str, title: str, body_html: str) -> str:
    """Wrap rendered body HTML in the callout structure"""
    return (
        f'<aside class="callout callout-{callout_type}" role="note" aria-label="{callout_type}">\n'
        f'<div class="callout-title">\n'
        f'<div class="callout-icon"></div>\n'
        f'<h3 class="callout-title-text">{escapeHtml(title)}</h3>\n'
        f'</div>\n'
        f'<div class="callout-content">\n'
        f'{body_html}</div>\n'
        f'</aside>\n'
    )


def callout_transform(
    tokens: List[Token],
    data: CalloutData,
    md: MarkdownIt,
    env: Optional[MutableMapping[str, Any]] = None,
) -> int:
    """
    Replace a callout blockquote with a single html_block token.

    Steps:
    1. Drop the first line ([!type] and title, markup included) and the
       line break after it from the first inline run; drop the paragraph
       if nothing is left
    2. Render the remaining body tokens with the parser's own renderer
    3. Splice open..close (inclusive) into one html_block

    Args:
        tokens: Token stream, modified in place
        data: Result of callout_extract() for this blockquote
        md: Parser whose renderer renders the body
        env: Render environment passed through to the renderer

    Returns:
        Index just past the inserted token (where the caller's cursor resumes)
    """
    start, end = data.body_range
    inline = tokens[data.paragraph_index + 1]
    children = inline.children or []

    del children[:firstLine_end(children)]
    removed_break = bool(children) and children[0].type in LINE_BREAKS
    if removed_break:
        children.pop(0)

    if removed_break and '\n' in inline.content:
        inline.content = inline.content.split('\n', 1)[1]
    else:
        inline.content = ''.join(child.content for child in children)

    if not children:
        # paragraph_open, inline, paragraph_close
        del tokens[data.paragraph_index:data.paragraph_index + 3]
        end -= 3

    body = tokens[start + 1:end]
    body_html = md.renderer.render(body, md.options, env if env is not None else {}) if body else ''

    replacement = Token('html_block', '', 0)
    replacement.content = callout_render(data.callout_type, data.title, body_html)
    replacement.map = tokens[start].map
    replacement.level = tokens[start].level
    replacement.block = True
    replacement.meta = {'callout': data.callout_type}

    tokens[start:end + 1] = [replacement]
    LOG(f"Callout '{data.callout_type}' spliced at token {start}", level=3)

    return start + 1
