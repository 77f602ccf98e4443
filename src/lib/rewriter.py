"""
Auto-rule token rewriter

A markdown-it core rule that turns a generic token stream into a
print-layout-aware one in a single forward pass:

    <!-- @page: art -->     -> zero-footprint directive marker
    # Chapter               -> <h1 class="auto-chapter-start">
    ---                     -> <div class="page-break"></div>
    ![](x.png){.full-bleed} -> class="full-bleed auto-art-page"
    > [!tip] Title          -> <aside class="callout callout-tip">

Explicit directives beat automatic rules: an H1 sitting next to an explicit
``@page`` or ``@break`` marker is not tagged as a chapter start. Rewriting is
idempotent; a second pass over its own output changes nothing.
"""

from typing import Any, Dict, List, MutableMapping, Optional

from markdown_it import MarkdownIt
from markdown_it.rules_core import StateCore
from markdown_it.token import Token

from ..models.directives import Directive, DirectiveKind
from ..models.state import EngineConfig
from .callouts import callout_extract, callout_transform
from .directives import DirectiveRegistry, DIRECTIVE_PATTERN, EXPLICIT_COMMENT_PATTERN, marker_make
from .errors import DirectiveValidationError
from .log import LOG, WARN, state_connectToLogger


CHAPTER_CLASS = 'auto-chapter-start'
ART_PAGE_CLASS = 'auto-art-page'
FULL_BLEED_CLASS = 'full-bleed'
PAGE_BREAK_HTML = '<div class="page-break"></div>\n'

# Containers registered by the engine for backward compatibility only
LEGACY_CONTAINERS = ('page', 'wrapper', 'container')


def class_add(token: Token, name: str) -> bool:
    """
    Append a class to a token's class attribute unless already present.

    Returns:
        True when the attribute changed
    """
    classes = str(token.attrGet('class') or '').split()
    if name in classes:
        return False
    classes.append(name)
    token.attrSet('class', ' '.join(classes))
    return True


def explicitMarker_is(token: Token) -> bool:
    """True for tokens that carry an explicit @page / @break request"""
    if token.type not in ('html_block', 'html_inline'):
        return False
    directives = (token.meta or {}).get('directives')
    if directives is not None:
        return any(d.kind in (DirectiveKind.PAGE, DirectiveKind.BREAK) for d in directives)
    content = token.content
    return (
        'data-directive="page"' in content
        or 'data-directive="break"' in content
        or EXPLICIT_COMMENT_PATTERN.search(content) is not None
    )


class AutoRuleRewriter:
    """
    Single-pass rewriter over a markdown-it token stream

    The stream is owned by the pass while it runs: tokens are mutated in
    place, and callouts are spliced with an explicit cursor so nothing is
    visited twice.
    """

    def __init__(self, config: EngineConfig, registry: Optional[DirectiveRegistry] = None) -> None:
        """
        Args:
            config: Engine configuration (windows, callout toggle)
            registry: Directive registry; a fresh one is created if omitted
        """
        self.config = config
        self.registry = registry or DirectiveRegistry()

    def tokens_rewrite(
        self,
        tokens: List[Token],
        md: MarkdownIt,
        env: Optional[MutableMapping[str, Any]] = None,
    ) -> List[Token]:
        """
        Apply directives and auto-rules to a token stream.

        Args:
            tokens: Token stream, modified in place
            md: Parser whose renderer renders callout bodies
            env: Render environment; ``env["source_path"]`` labels errors

        Returns:
            The same (mutated) list, for chaining

        Raises:
            DirectiveValidationError: a directive value is invalid; the
                error carries the source line and path
        """
        env = env if env is not None else {}
        LOG(f"Rewriting {len(tokens)} tokens", level=2)
        self.legacyContainers_report(tokens)

        index = 0
        while index < len(tokens):
            token = tokens[index]

            # Directives first, so the chapter check below sees markers
            if token.type == 'html_block':
                self.directive_rewrite(token, token, env)
            elif token.type == 'inline' and token.children:
                for child in token.children:
                    if child.type == 'html_inline':
                        self.directive_rewrite(child, token, env)
                self.fullBleed_tag(token)

            if token.type == 'heading_open' and token.tag == 'h1':
                self.chapterStart_mark(tokens, index)
            elif token.type == 'hr':
                self.pageBreak_convert(token)
            elif token.type == 'blockquote_open' and self.config.callouts:
                data = callout_extract(tokens, index)
                if data is not None:
                    index = callout_transform(tokens, data, md, env)
                    continue

            index += 1

        return tokens

    def directive_rewrite(self, token: Token, owner: Token, env: MutableMapping[str, Any]) -> bool:
        """
        Replace every directive comment in a token with its marker element.

        Only the comments themselves are replaced; surrounding HTML is kept.
        Each comment is validated in source order, so the first invalid one
        aborts the pass. Unknown directive names stay as comments.

        Args:
            token: html_block or html_inline token holding the comments
            owner: Block-level token whose map gives the source line
            env: Render environment

        Returns:
            True when the token was rewritten
        """
        content = token.content
        pieces: List[str] = []
        directives: List[Directive] = []
        last = 0

        for match in DIRECTIVE_PATTERN.finditer(content):
            try:
                directive = self.registry.directive_parse(match.group(0))
            except DirectiveValidationError as error:
                line = None
                if owner.map:
                    line = owner.map[0] + 1
                    if token is owner:
                        line += content.count('\n', 0, match.start())
                error.location_set(line, env.get('source_path'))
                raise

            if directive is None:
                continue
            pieces.append(content[last:match.start()])
            pieces.append(marker_make(directive).rstrip('\n'))
            directives.append(directive)
            last = match.end()

        if not directives:
            return False

        pieces.append(content[last:])
        token.content = ''.join(pieces)
        token.meta = {**(token.meta or {}), 'directives': directives}
        return True

    def explicitDirective_nearby(self, tokens: List[Token], index: int) -> bool:
        """
        Check the chapter window around tokens[index] for explicit markers.

        The window covers ``chapter_window_back`` tokens before and
        ``chapter_window_forward`` tokens after the heading; inline children
        of tokens in the window are inspected too.
        """
        start = max(0, index - self.config.chapter_window_back)
        end = min(len(tokens), index + self.config.chapter_window_forward + 1)

        for position in range(start, end):
            if position == index:
                continue
            token = tokens[position]
            if explicitMarker_is(token):
                return True
            if any(explicitMarker_is(child) for child in token.children or []):
                return True
        return False

    def chapterStart_mark(self, tokens: List[Token], index: int) -> None:
        """Tag a level-1 heading as a chapter start unless overridden"""
        heading = tokens[index]
        if self.explicitDirective_nearby(tokens, index):
            LOG(f"Explicit directive near H1 at token {index}; no auto chapter", level=3)
            return
        if class_add(heading, CHAPTER_CLASS):
            heading.meta = {**(heading.meta or {}), 'auto_chapter_start': True}

    def pageBreak_convert(self, token: Token) -> None:
        """Turn a thematic break into a page-break block"""
        token.type = 'html_block'
        token.tag = ''
        token.markup = ''
        token.block = True
        token.content = PAGE_BREAK_HTML
        token.meta = {**(token.meta or {}), 'auto_break': True}

    def fullBleed_tag(self, inline: Token) -> None:
        """Add the art-page class to full-bleed images"""
        for child in inline.children or []:
            if child.type != 'image':
                continue
            classes = str(child.attrGet('class') or '').split()
            if FULL_BLEED_CLASS in classes:
                class_add(child, ART_PAGE_CLASS)

    def legacyContainers_report(self, tokens: List[Token]) -> Dict[str, int]:
        """
        Count legacy ::: container blocks and warn once per pass.

        Returns:
            Mapping of container name to number of occurrences
        """
        counts: Dict[str, int] = {}
        for token in tokens:
            if not (token.type.startswith('container_') and token.type.endswith('_open')):
                continue
            name = token.type[len('container_'):-len('_open')]
            if name in LEGACY_CONTAINERS:
                counts[name] = counts.get(name, 0) + 1

        if counts:
            total = sum(counts.values())
            WARN(
                f"Deprecated container syntax used {total} time(s) "
                f"(::: {', ::: '.join(sorted(counts))}). "
                f"Use <!-- @page: ... --> directives instead."
            )
        return counts


def core_directives_plugin(
    md: MarkdownIt,
    config: Optional[EngineConfig] = None,
    registry: Optional[DirectiveRegistry] = None,
) -> None:
    """
    markdown-it plugin registering the ``core_auto_rules`` core rule.

    Usage:
        md = MarkdownIt("commonmark", {"html": True})
        md.use(core_directives_plugin, config=EngineConfig())
    """
    rewriter = AutoRuleRewriter(config or EngineConfig(), registry)

    def core_auto_rules(state: StateCore) -> None:
        state_connectToLogger(rewriter.config)
        rewriter.tokens_rewrite(state.tokens, state.md, state.env)

    md.core.ruler.push('core_auto_rules', core_auto_rules)
