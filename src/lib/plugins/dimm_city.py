"""
Dimm City setting syntax

    #TechD                 district badge (also #EntD #CommD #MarketD #ArcD
                           #Dark #TheDark); must follow whitespace or start
                           of text and be followed by a non-word character
    ROLL A DIE!            roll prompt

plus the setting's ::: containers (specialty, learning-path, aug, aug-page,
ability-continued, ability, item).
"""

import re
from typing import Any, Callable, Sequence

from markdown_it import MarkdownIt
from markdown_it.common.utils import escapeHtml
from markdown_it.rules_inline import StateInline
from markdown_it.token import Token
from mdit_py_plugins.container import container_plugin

from ..log import LOG
from .text import textPattern_rule


DISTRICTS = {
    'TechD': 'Tech District',
    'EntD': 'Entertainment District',
    'CommD': 'Commercial District',
    'MarketD': 'Market District',
    'ArcD': 'Archive District',
    'Dark': 'The Dark',
    'TheDark': 'The Dark',
}

ROLL_PATTERN = re.compile(r'ROLL A DIE!|ROLL THE DIE|ROLL A DIE')

# name -> opening tag; None keeps mdit-py-plugins' default <div class="name">
CONTAINERS = {
    'specialty': None,
    'learning-path': None,
    'aug': '<div class="aug" data-augmented-ui>\n',
    'aug-page': '<div class="page aug" data-augmented-ui>\n',
    'ability-continued': '<div class="wrapper item ability continued">\n',
    'ability': '<div class="wrapper item ability">\n',
    'item': '<div class="wrapper item">\n',
}


def districtBadge_parse(state: StateInline, silent: bool) -> bool:
    """Parse a ``#District`` badge"""
    start = state.pos
    src = state.src
    if src[start] != '#':
        return False
    if start > 0 and not src[start - 1].isspace():
        return False

    for code, name in DISTRICTS.items():
        end = start + 1 + len(code)
        if src[start + 1:end] != code:
            continue
        if end < state.posMax and (src[end].isalnum() or src[end] == '_'):
            continue
        if not silent:
            token = state.push('district_badge', 'span', 0)
            token.content = code
            token.meta = {'name': name}
        state.pos = end
        return True

    return False


def districtBadge_render(self: Any, tokens: Sequence[Token], idx: int, options: Any, env: Any) -> str:
    code = tokens[idx].content
    return (
        f'<span class="district-badge district-{code.lower()}" '
        f'title="{escapeHtml(tokens[idx].meta["name"])}">{code}</span>'
    )


def rollPrompt_render(self: Any, tokens: Sequence[Token], idx: int, options: Any, env: Any) -> str:
    return (
        f'<span class="roll-prompt" title="Time to roll!"><span class="roll-icon">🎲</span>'
        f'<span class="roll-text">{escapeHtml(tokens[idx].content)}</span></span>'
    )


def container_renderer(opening: str) -> Callable[..., str]:
    """Render function emitting a fixed opening tag and a closing </div>"""

    def render(self: Any, tokens: Sequence[Token], idx: int, options: Any, env: Any) -> str:
        return opening if tokens[idx].nesting == 1 else '</div>\n'

    return render


def dimm_city_plugin(
    md: MarkdownIt,
    district_badges: bool = True,
    roll_prompts: bool = True,
    **unused: Any,
) -> None:
    """
    Register the Dimm City containers and inline syntax.

    Args:
        md: Parser to extend
        district_badges: ``#TechD`` style badges
        roll_prompts: ``ROLL A DIE!`` highlighting
    """
    if unused:
        LOG(f"dimmCity: ignoring unknown options {sorted(unused)}", level=2)

    for name, opening in CONTAINERS.items():
        if opening is None:
            md.use(container_plugin, name)
        else:
            md.use(container_plugin, name, render=container_renderer(opening))

    if district_badges:
        md.inline.ruler.before('emphasis', 'district_badge', districtBadge_parse)
        md.add_render_rule('district_badge', districtBadge_render)

    if roll_prompts:
        md.core.ruler.after('inline', 'roll_prompt', textPattern_rule(ROLL_PATTERN, 'roll_prompt'))
        md.add_render_rule('roll_prompt', rollPrompt_render)
