"""
Models package for pagedmd

Contains data structures and type definitions for directives, callouts,
plugins and engine configuration.
"""

from .directives import (
    Directive,
    DirectiveKind,
    DirectiveSpec,
    PAGE_TEMPLATES,
    SPREAD_VALUES,
    COLUMN_COUNTS,
)
from .parser import DirectiveMatch
from .callouts import CalloutData, CALLOUT_TITLES
from .plugins import (
    PluginConfig,
    PluginMetadata,
    PluginSourceKind,
    LoadedPlugin,
    SyntaxExtension,
)
from .state import EngineConfig

__all__ = [
    "Directive",
    "DirectiveKind",
    "DirectiveSpec",
    "PAGE_TEMPLATES",
    "SPREAD_VALUES",
    "COLUMN_COUNTS",
    "DirectiveMatch",
    "CalloutData",
    "CALLOUT_TITLES",
    "PluginConfig",
    "PluginMetadata",
    "PluginSourceKind",
    "LoadedPlugin",
    "SyntaxExtension",
    "EngineConfig",
]
