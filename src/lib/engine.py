"""
Markdown engine factory

Builds configured MarkdownIt instances. There is no global parser whose
rules are toggled between renders: every distinct EngineConfig (plus
plugin set) gets its own instance, cached by fingerprint.

Registration order:
    1. anchors_plugin            heading ids
    2. core_directives_plugin    directives, auto-rules, callouts
    3. legacy ::: containers     page, wrapper, container
    4. bundled extensions        ttrpg, dimmCity (from manifest extensions)
    5. loaded plugins            by descending priority
    6. attrs_plugin              last, so {HP:12} is not read as attributes
"""

import json
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from markdown_it import MarkdownIt
from markdown_it.token import Token
from mdit_py_plugins.anchors import anchors_plugin
from mdit_py_plugins.attrs import attrs_plugin
from mdit_py_plugins.container import container_plugin
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexer import Lexer
from pygments.lexers import get_lexer_by_name, TextLexer
from pygments.util import ClassNotFound

from ..models.plugins import LoadedPlugin, PluginSourceKind
from ..models.state import EngineConfig
from .loader import Declaration, loader_create
from .log import LOG, state_connectToLogger
from .plugins import dimm_city_plugin, ttrpg_plugin
from .rewriter import LEGACY_CONTAINERS, core_directives_plugin


def code_highlight(code: str, lang: str, attrs: str, style: str = "default") -> str:
    """
    markdown-it ``highlight`` callback using Pygments.

    Returns inline-styled spans without a <pre> wrapper; markdown-it wraps
    them in ``<pre><code class="language-...">``. Unknown languages and
    styles fall back to plain text and the default style.
    """
    lexer: Lexer
    try:
        lexer = get_lexer_by_name(lang) if lang else TextLexer()
    except ClassNotFound:
        lexer = TextLexer()

    try:
        formatter = HtmlFormatter(style=style, noclasses=True, nowrap=True)
    except ClassNotFound:
        LOG(f"Unknown Pygments style '{style}', using default", level=2)
        formatter = HtmlFormatter(noclasses=True, nowrap=True)

    return highlight(code, lexer, formatter)


@dataclass
class Engine:
    """
    A configured parser together with the plugins registered into it

    Attributes:
        md: The MarkdownIt instance
        config: Configuration it was built from
        plugins: Loaded plugins, in registration order
    """
    md: MarkdownIt
    config: EngineConfig
    plugins: List[LoadedPlugin] = field(default_factory=list)

    @property
    def stylesheets(self) -> List[str]:
        """CSS shipped by the registered plugins, in registration order"""
        return [plugin.stylesheet for plugin in self.plugins if plugin.stylesheet]

    def env_make(self, source_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
        env: Dict[str, Any] = {}
        if source_path is not None:
            env['source_path'] = str(source_path)
        return env

    def parse(self, source: str, source_path: Optional[Union[str, Path]] = None) -> List[Token]:
        """Tokenize (and rewrite) source without rendering"""
        state_connectToLogger(self.config)
        return self.md.parse(source, self.env_make(source_path))

    def render(self, source: str, source_path: Optional[Union[str, Path]] = None) -> str:
        """
        Render markdown to HTML.

        Args:
            source: Markdown text
            source_path: File the text came from, used in error messages

        Raises:
            DirectiveValidationError: invalid directive value
        """
        state_connectToLogger(self.config)
        return self.md.render(source, self.env_make(source_path))


def engine_create(config: Optional[EngineConfig] = None, plugins: Sequence[LoadedPlugin] = ()) -> Engine:
    """
    Build a new engine.

    Args:
        config: Engine configuration (defaults from application settings)
        plugins: Loaded plugins, already sorted by priority

    Returns:
        Engine wrapping a freshly configured MarkdownIt instance
    """
    config = config or EngineConfig()
    state_connectToLogger(config)

    md = MarkdownIt("commonmark", {
        "html": config.html,
        "highlight": partial(code_highlight, style=config.pygments_style) if config.highlight else None,
    })
    md.use(anchors_plugin, max_level=6)

    if config.auto_rules:
        md.use(core_directives_plugin, config=config)

    if config.containers or config.ttrpg or config.dimm_city:
        for name in LEGACY_CONTAINERS:
            md.use(container_plugin, name)

    bundled = {"dimmCity": config.dimm_city, "ttrpg": config.ttrpg}
    if config.dimm_city:
        md.use(dimm_city_plugin)
    if config.ttrpg:
        md.use(ttrpg_plugin)

    registered: List[LoadedPlugin] = []
    for plugin in plugins:
        if plugin.source_kind is PluginSourceKind.BUILTIN and bundled.get(plugin.identity):
            LOG(f"Built-in plugin {plugin.identity} already enabled by extensions; skipping", level=2)
            continue
        plugin.register(md)
        registered.append(plugin)

    md.use(attrs_plugin)

    LOG(
        f"Engine created: ttrpg={config.ttrpg} dimm_city={config.dimm_city} "
        f"containers={config.containers} plugins={[p.metadata.name for p in registered]}",
        level=2,
    )
    return Engine(md=md, config=config, plugins=registered)


_engines: Dict[str, Engine] = {}
_built_engines: Dict[str, Engine] = {}


def engine_get(config: Optional[EngineConfig] = None) -> Engine:
    """
    Return the cached engine for a configuration, creating it on first use.

    Configurations with the same fingerprint share one engine.
    """
    config = config or EngineConfig()
    key = config.fingerprint()
    if key not in _engines:
        _engines[key] = engine_create(config)
    return _engines[key]


def engine_forManifest(manifest: Mapping[str, Any]) -> Engine:
    """
    Cached engine for a book manifest's settings (``extensions`` etc.).

    Example:
        engine_forManifest({"extensions": ["ttrpg", "dimm-city"]})
    """
    return engine_get(EngineConfig.config_createFromManifest(manifest))


def pluginsKey_make(plugins: Iterable[LoadedPlugin]) -> str:
    return json.dumps(
        [
            [plugin.source_kind.value, plugin.identity, plugin.priority, dict(plugin.options)]
            for plugin in plugins
        ],
        sort_keys=True,
        default=str,
    )


async def engine_build(
    config: Optional[EngineConfig] = None,
    declarations: Iterable[Declaration] = (),
    base_dir: Union[str, Path] = ".",
    strict: Optional[bool] = None,
) -> Engine:
    """
    Load plugins and return an engine with them registered.

    Engines are cached by configuration fingerprint plus the identities,
    priorities and options of the loaded plugins.

    Args:
        config: Engine configuration
        declarations: Plugin declarations (strings or mappings)
        base_dir: Project directory plugins are resolved against
        strict: Raise on plugin load failures (default from settings)
    """
    config = config or EngineConfig()
    state_connectToLogger(config)

    loader = loader_create(base_dir, strict=strict)
    plugins = await loader.plugins_load(declarations)

    key = f"{config.fingerprint()}|{Path(base_dir).resolve()}|{pluginsKey_make(plugins)}"
    if key not in _built_engines:
        _built_engines[key] = engine_create(config, plugins)
    return _built_engines[key]


def engines_clear() -> None:
    """Drop every cached engine"""
    _engines.clear()
    _built_engines.clear()
