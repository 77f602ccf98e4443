"""
Tabletop RPG inline syntax

    {HP:12 DMG:3}          stat block
    2d6+3                  dice notation (word-bounded)
    @[NPC:investigator]    cross reference (@[id] uses type "ref")
    ::trait[Shadow Step]   trait / ability callout
    CR:4                   challenge rating

Each piece of syntax can be switched off through plugin options:

    md.use(ttrpg_plugin, dice_notation=False)
"""

import re
from typing import Any, Sequence

from markdown_it import MarkdownIt
from markdown_it.common.utils import escapeHtml
from markdown_it.rules_inline import StateInline
from markdown_it.token import Token

from ..log import LOG
from .text import textPattern_rule


DICE_PATTERN = re.compile(r'(?<!\w)(?P<count>\d+)d(?P<sides>\d+)(?P<modifier>[+-]\d+)?(?![\w+-])')
CHALLENGE_PATTERN = re.compile(r'(?<!\w)CR:(?P<rating>\d+)')
TRAIT_PATTERN = re.compile(r'::(trait|ability)\[([^\]]+)\]')

TRAIT_ICONS = {'trait': '⚡', 'ability': '💫'}


# ----------------------------------------------------------------------------
# Inline rules (triggered at terminator characters)
# ----------------------------------------------------------------------------

def statBlock_parse(state: StateInline, silent: bool) -> bool:
    """Parse ``{HP:...}`` up to the closing brace"""
    start = state.pos
    if not state.src.startswith('{HP:', start):
        return False

    end = state.src.find('}', start + 4, state.posMax)
    if end < 0:
        return False

    if not silent:
        token = state.push('stat_block', 'span', 0)
        token.markup = '{}'
        token.content = state.src[start + 1:end]

    state.pos = end + 1
    return True


def crossReference_parse(state: StateInline, silent: bool) -> bool:
    """Parse ``@[TYPE:identifier]`` or ``@[identifier]``"""
    start = state.pos
    if not state.src.startswith('@[', start):
        return False

    end = state.src.find(']', start + 2, state.posMax)
    if end < 0:
        return False

    content = state.src[start + 2:end]
    parts = content.split(':')
    ref_type, identifier = 'ref', content
    if len(parts) == 2:
        ref_type, identifier = parts[0].lower(), parts[1]

    if not silent:
        token = state.push('cross_reference', 'a', 0)
        token.attrSet('class', f'xref xref-{ref_type}')
        token.attrSet('data-ref-type', ref_type)
        token.attrSet('data-ref-id', identifier)
        token.content = identifier

    state.pos = end + 1
    return True


def traitCallout_parse(state: StateInline, silent: bool) -> bool:
    """Parse ``::trait[...]`` and ``::ability[...]``"""
    start = state.pos
    if not state.src.startswith('::', start):
        return False

    match = TRAIT_PATTERN.match(state.src, start, state.posMax)
    if not match:
        return False

    if not silent:
        token = state.push('trait_callout', 'span', 0)
        token.markup = f'::{match.group(1)}'
        token.meta = {'type': match.group(1)}
        token.content = match.group(2)

    state.pos = match.end()
    return True


# ----------------------------------------------------------------------------
# Renderers
# ----------------------------------------------------------------------------

def statBlock_render(self: Any, tokens: Sequence[Token], idx: int, options: Any, env: Any) -> str:
    items = []
    for part in tokens[idx].content.split():
        label, _, value = part.partition(':')
        if label and value:
            items.append(
                f'<span class="stat-item"><span class="stat-label">{escapeHtml(label)}</span>'
                f'<span class="stat-value">{escapeHtml(value)}</span></span>'
            )
    return f'<span class="stat-block">{"".join(items)}</span>'


def diceNotation_render(self: Any, tokens: Sequence[Token], idx: int, options: Any, env: Any) -> str:
    formula = escapeHtml(tokens[idx].content)
    return (
        f'<span class="dice-notation" data-dice="{formula}" title="Roll {formula}">'
        f'<span class="dice-icon">🎲</span><span class="dice-formula">{formula}</span></span>'
    )


def crossReference_render(self: Any, tokens: Sequence[Token], idx: int, options: Any, env: Any) -> str:
    token = tokens[idx]
    ref_type = str(token.attrGet('data-ref-type') or 'ref')
    identifier = str(token.attrGet('data-ref-id') or '')
    class_name = str(token.attrGet('class') or '')
    anchor = re.sub(r'\s+', '-', identifier.lower())
    return (
        f'<a href="#{escapeHtml(ref_type)}-{escapeHtml(anchor)}" class="{escapeHtml(class_name)}" '
        f'data-ref-type="{escapeHtml(ref_type)}" data-ref-id="{escapeHtml(identifier)}" '
        f'title="See {escapeHtml(ref_type)}: {escapeHtml(identifier)}">{escapeHtml(identifier)}</a>'
    )


def traitCallout_render(self: Any, tokens: Sequence[Token], idx: int, options: Any, env: Any) -> str:
    kind = tokens[idx].meta['type']
    return (
        f'<span class="callout callout-{kind}"><span class="callout-icon">{TRAIT_ICONS[kind]}</span>'
        f'<span class="callout-content">{escapeHtml(tokens[idx].content)}</span></span>'
    )


def difficulty_get(rating: int) -> str:
    """
    Difficulty band for a challenge rating.

    Example:
        >>> [difficulty_get(r) for r in (3, 4, 12, 13)]
        ['easy', 'medium', 'hard', 'deadly']
    """
    if rating <= 3:
        return 'easy'
    if rating <= 7:
        return 'medium'
    if rating <= 12:
        return 'hard'
    return 'deadly'


def challengeRating_render(self: Any, tokens: Sequence[Token], idx: int, options: Any, env: Any) -> str:
    rating = tokens[idx].meta.get('rating') or tokens[idx].content.split(':', 1)[-1]
    return (
        f'<span class="challenge-rating cr-{difficulty_get(int(rating))}" data-cr="{rating}">'
        f'<span class="cr-label">CR</span><span class="cr-value">{rating}</span></span>'
    )


def ttrpg_plugin(
    md: MarkdownIt,
    stat_blocks: bool = True,
    dice_notation: bool = True,
    cross_references: bool = True,
    trait_callouts: bool = True,
    challenge_ratings: bool = True,
    **unused: Any,
) -> None:
    """
    Register the tabletop RPG inline syntax.

    Args:
        md: Parser to extend
        stat_blocks: ``{HP:12 DMG:3}``
        dice_notation: ``2d6+3``
        cross_references: ``@[NPC:investigator]``
        trait_callouts: ``::trait[Shadow Step]``
        challenge_ratings: ``CR:4``
    """
    if unused:
        LOG(f"ttrpg: ignoring unknown options {sorted(unused)}", level=2)

    if stat_blocks:
        md.inline.ruler.before('emphasis', 'stat_block', statBlock_parse)
        md.add_render_rule('stat_block', statBlock_render)

    if dice_notation:
        md.core.ruler.after('inline', 'dice_notation', textPattern_rule(DICE_PATTERN, 'dice_notation'))
        md.add_render_rule('dice_notation', diceNotation_render)

    if cross_references:
        md.inline.ruler.before('emphasis', 'cross_reference', crossReference_parse)
        md.add_render_rule('cross_reference', crossReference_render)

    if trait_callouts:
        md.inline.ruler.before('emphasis', 'trait_callout', traitCallout_parse)
        md.add_render_rule('trait_callout', traitCallout_render)

    if challenge_ratings:
        md.core.ruler.after('inline', 'challenge_rating', textPattern_rule(CHALLENGE_PATTERN, 'challenge_rating'))
        md.add_render_rule('challenge_rating', challengeRating_render)
