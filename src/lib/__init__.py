"""
pagedmd - Print-layout aware markdown engine

Directive/auto-rule rewriting, callouts and pluggable syntax on top of
markdown-it-py.
"""

__version__ = "1.0.0"

from .directives import DirectiveRegistry
from .rewriter import AutoRuleRewriter, core_directives_plugin
from .callouts import callout_extract, callout_transform
from .loader import PluginLoader, loader_create
from .engine import Engine, engine_build, engine_create, engine_get
from .compiler import Compiler, RenderedDocument
from .log import LOG, WARN, state_connectToLogger

__all__ = [
    "DirectiveRegistry",
    "AutoRuleRewriter",
    "core_directives_plugin",
    "callout_extract",
    "callout_transform",
    "PluginLoader",
    "loader_create",
    "Engine",
    "engine_build",
    "engine_create",
    "engine_get",
    "Compiler",
    "RenderedDocument",
    "LOG",
    "WARN",
    "state_connectToLogger",
    "__version__",
]
