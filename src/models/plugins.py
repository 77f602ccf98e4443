"""
Plugin declaration and loaded-plugin models

PluginConfig validates what authors write in their configuration (a bare
string or a mapping). LoadedPlugin is what the loader hands back: an
immutable strategy that knows how to register itself into a MarkdownIt
instance.
"""

import json
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Union

from pydantic import BaseModel, Field, model_validator


DEFAULT_PRIORITY = 100


class PluginSourceKind(str, Enum):
    """Where a plugin is loaded from"""
    LOCAL = "local"        # ./plugins/callouts.py
    PACKAGE = "package"    # plugin_packages/<name>/plugin.yaml
    BUILTIN = "builtin"    # shipped with pagedmd
    REMOTE = "remote"      # https://... (not supported yet)


class PluginConfig(BaseModel):
    """
    A single plugin declaration

    Either a bare string locator or a mapping with at least one of
    ``path``, ``name`` or ``url``.
    Unknown keys (e.g. an ``integrity`` hash on a remote declaration) are
    ignored.

    Example:
        PluginConfig.declaration_parse("./plugins/dice.py")
        PluginConfig.declaration_parse({"name": "ttrpg", "priority": 200})
    """

    type: Optional[PluginSourceKind] = None
    path: Optional[str] = None
    name: Optional[str] = None
    version: Optional[str] = None
    url: Optional[str] = None
    enabled: bool = True
    options: Dict[str, Any] = Field(default_factory=dict)
    priority: int = DEFAULT_PRIORITY

    @model_validator(mode="after")
    def locator_check(self) -> "PluginConfig":
        if not (self.path or self.name or self.url):
            raise ValueError("plugin declaration needs one of 'path', 'name' or 'url'")
        return self

    @classmethod
    def declaration_parse(cls, declaration: Union[str, Mapping[str, Any], "PluginConfig"]) -> "PluginConfig":
        """
        Normalize a declaration from configuration into a PluginConfig.

        A bare string is used both as path and name, so type detection can
        decide later whether it is a file, a built-in or a package.
        """
        if isinstance(declaration, PluginConfig):
            return declaration
        if isinstance(declaration, str):
            return cls(path=declaration, name=declaration)
        return cls.model_validate(dict(declaration))

    @property
    def locator(self) -> str:
        """Human-readable identity used in messages"""
        return self.name or self.path or self.url or "unknown"

    @property
    def priority_declared(self) -> bool:
        """True when the author set priority explicitly"""
        return "priority" in self.model_fields_set

    def fingerprint(self) -> str:
        """
        Cache key for this declaration.

        Only the fields that identify *what* is loaded take part; options
        and priority do not.
        """
        return json.dumps(
            {
                "type": self.type.value if self.type else None,
                "path": self.path,
                "name": self.name,
                "version": self.version,
                "url": self.url,
            },
            sort_keys=True,
        )


@dataclass(frozen=True)
class PluginMetadata:
    """Descriptive metadata reported by a plugin"""
    name: str
    version: str = "0.0.0"
    description: str = ""
    author: Optional[str] = None
    homepage: Optional[str] = None
    keywords: List[str] = field(default_factory=list)


class SyntaxExtension(Protocol):
    """Anything that can register syntax into a MarkdownIt instance"""

    def register(self, md: Any, options: Optional[Mapping[str, Any]] = None) -> None:
        ...


@dataclass(frozen=True)
class LoadedPlugin:
    """
    A resolved plugin, ready to be registered into a parser

    Never mutated after creation; the loader derives a new instance when a
    cached plugin is requested with different options or priority.

    Attributes:
        identity: Path, package name or built-in name
        extension: markdown-it-py plugin function ``(md, **options) -> None``
        metadata: Descriptive metadata
        source_kind: Where it was loaded from
        priority: Registration order (higher registers first)
        stylesheet: CSS to inject alongside rendered output
        options: Options passed to ``extension`` on registration
    """
    identity: str
    extension: Callable[..., None]
    metadata: PluginMetadata
    source_kind: PluginSourceKind
    priority: int = DEFAULT_PRIORITY
    stylesheet: Optional[str] = None
    options: Mapping[str, Any] = field(default_factory=dict)

    def register(self, md: Any, options: Optional[Mapping[str, Any]] = None) -> None:
        """Install the extension into ``md`` (explicit options win over stored ones)"""
        effective = self.options if options is None else options
        md.use(self.extension, **dict(effective))
