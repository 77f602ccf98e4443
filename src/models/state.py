"""
Engine configuration model

EngineConfig is the explicit parser-configuration struct handed to the
engine factory. One MarkdownIt instance is built per distinct configuration
(see lib/engine.py), so there is no shared parser whose rules get toggled
between renders.
"""

import json
import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Type, TypeVar

from ..config import appsettings


EC = TypeVar("EC", bound="EngineConfig")


def extensionOptions_parse(extensions: Optional[Iterable[str]]) -> Dict[str, bool]:
    """
    Convert a manifest ``extensions`` list into bundled-extension flags.

    Args:
        extensions: Names such as ["ttrpg", "dimm-city"] (case-insensitive)

    Returns:
        Dict with ``ttrpg`` and ``dimm_city`` flags; both False when the
        list is missing or empty

    Example:
        >>> extensionOptions_parse(["TTRPG"])
        {'ttrpg': True, 'dimm_city': False}
    """
    names = {name.lower() for name in (extensions or [])}
    return {
        "ttrpg": "ttrpg" in names,
        "dimm_city": "dimm-city" in names or "dimmcity" in names,
    }


@dataclass(frozen=True)
class EngineConfig:
    """
    Configuration of one markdown engine instance.

    Attributes:
        html: Allow raw HTML (required for directive comments)
        auto_rules: Register the directive/auto-rule core rule
        callouts: Turn [!type] blockquotes into callouts
        containers: Register legacy ::: page/wrapper/container blocks
        highlight: Highlight fenced code with Pygments
        ttrpg: Enable the bundled ttrpg inline syntax
        dimm_city: Enable the bundled dimmCity inline syntax
        chapter_window_back: Tokens scanned before an H1 for explicit markers
        chapter_window_forward: Tokens scanned after an H1 for explicit markers
        pygments_style: Pygments style for highlighted code
        verbosity: Logging verbosity (1-3); not part of the fingerprint
    """

    html: bool = True
    auto_rules: bool = True
    callouts: bool = True
    containers: bool = True
    highlight: bool = True
    ttrpg: bool = False
    dimm_city: bool = False
    chapter_window_back: int = field(default_factory=lambda: appsettings.chapter_window_back)
    chapter_window_forward: int = field(default_factory=lambda: appsettings.chapter_window_forward)
    pygments_style: str = field(default_factory=lambda: appsettings.pygments_style)
    verbosity: int = field(default_factory=appsettings.verbosity_default)

    @classmethod
    def config_createFromManifest(cls: Type[EC], manifest: Mapping[str, Any]) -> EC:
        """
        Build an EngineConfig from a (book) manifest mapping.

        The ``extensions`` list is translated into bundled-extension flags;
        any other key matching a field name overrides that field. Unknown
        keys (title, authors, styles, ...) are ignored.

        Args:
            manifest: Parsed manifest (e.g., from manifest.yaml)

        Returns:
            EngineConfig instance
        """
        valid_fields = {f.name for f in dataclasses.fields(cls)}
        overrides = {k: v for k, v in manifest.items() if k in valid_fields}
        if "extensions" in manifest:
            overrides.update(extensionOptions_parse(manifest["extensions"]))
        return cls(**overrides)

    def fingerprint(self) -> str:
        """Stable key identifying the parser this configuration produces"""
        values = dataclasses.asdict(self)
        values.pop("verbosity")
        return json.dumps(values, sort_keys=True)

    def copy(self: EC, **changes: Any) -> EC:
        """
        Create a copy with some fields changed.

        Returns:
            A new EngineConfig instance.
        """
        return dataclasses.replace(self, **changes)
