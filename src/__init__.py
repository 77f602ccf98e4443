"""
pagedmd - Print-layout aware markdown engine

Turns markdown into paged-media ready HTML: layout directives in comments,
automatic chapter starts and page breaks, callouts, and safely loaded
syntax plugins.
"""

__version__ = "1.0.0"

from .lib import (
    Compiler,
    DirectiveRegistry,
    Engine,
    PluginLoader,
    engine_build,
    engine_create,
    engine_get,
    loader_create,
    LOG,
    state_connectToLogger,
)
from .models import EngineConfig, PluginConfig

__all__ = [
    "Compiler",
    "DirectiveRegistry",
    "Engine",
    "EngineConfig",
    "PluginConfig",
    "PluginLoader",
    "engine_build",
    "engine_create",
    "engine_get",
    "loader_create",
    "LOG",
    "state_connectToLogger",
    "__version__",
]
