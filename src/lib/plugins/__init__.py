"""
Built-in syntax plugins shipped with pagedmd

Registry consulted by the plugin loader for ``type: builtin`` declarations
and by the engine factory for manifest ``extensions``.
"""

from typing import Callable, Dict

from .ttrpg import ttrpg_plugin
from .dimm_city import dimm_city_plugin

BUILTIN_PLUGINS: Dict[str, Callable[..., None]] = {
    "ttrpg": ttrpg_plugin,
    "dimmCity": dimm_city_plugin,
}

__all__ = ["BUILTIN_PLUGINS", "ttrpg_plugin", "dimm_city_plugin"]
