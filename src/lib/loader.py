"""
Plugin resolution and loading

Turns plugin declarations from configuration into LoadedPlugin strategies:

    plugins:
      - ./plugins/dice.py                    # local file
      - ttrpg                                # built-in
      - name: monsters                       # packaged plugin
        version: ^1.2
        priority: 200
        options: {hp_color: red}
      - https://example.com/plugin.py        # remote (not supported yet)

Local and packaged plugins are Python modules exposing a callable ``default``
or ``plugin`` with the markdown-it plugin signature ``(md, **options)``.
They may also define a ``css`` string and a ``metadata`` mapping.

A packaged plugin lives in ``<base_dir>/<plugin_packages_dir>/<name>/`` and
is described by ``plugin.yaml``:

    version: 1.2.0
    description: Monster stat blocks
    author: Jane Doe
    keywords: [monsters]
    pagedmd:
      entry: __init__.py
      css: monsters.css
      priority: 150

Every file path is checked against the project directory before anything is
read or imported.
"""

import asyncio
import dataclasses
import hashlib
import importlib.util
from pathlib import Path
from types import ModuleType
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from ..config import appsettings
from ..models.plugins import (
    DEFAULT_PRIORITY,
    LoadedPlugin,
    PluginConfig,
    PluginMetadata,
    PluginSourceKind,
)
from .errors import PluginLoadError, PluginNotSupportedError, PluginSecurityError
from .log import LOG, WARN
from .plugins import BUILTIN_PLUGINS
from .security import path_validate


Declaration = Union[str, Mapping[str, Any], PluginConfig]


def version_satisfies(actual: str, expected: str) -> bool:
    """
    Loose version check: strip a leading ^ or ~ and compare by prefix.

    Example:
        >>> version_satisfies("1.2.3", "^1.2")
        True
        >>> version_satisfies("2.0.0", "~1.2")
        False
    """
    clean = expected.strip().lstrip('^~')
    return actual == clean or actual.startswith(clean)


def module_load(path: Path, plugin_name: str = "unknown") -> ModuleType:
    """
    Import a Python file as an anonymous module.

    Modules are named after a hash of their path so two plugins with the
    same file name never collide, and nothing is added to sys.modules.

    Raises:
        PluginLoadError: the file cannot be imported or raised while executing
    """
    digest = hashlib.sha1(str(path).encode('utf-8')).hexdigest()[:12]
    module_name = f"_pagedmd_plugin_{digest}"
    search = [str(path.parent)] if path.name == '__init__.py' else None
    spec = importlib.util.spec_from_file_location(module_name, path, submodule_search_locations=search)
    if spec is None or spec.loader is None:
        raise PluginLoadError(f"Cannot import plugin module at {path}", plugin_name=plugin_name)

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        raise PluginLoadError(
            f"Error while importing plugin module {path}: {exc}",
            plugin_name=plugin_name,
        ) from exc
    return module


def extension_get(module: ModuleType, hint: str, plugin_name: str, source_kind: PluginSourceKind) -> Callable[..., None]:
    """Return the module's ``default`` or ``plugin`` callable"""
    for attribute in ('default', 'plugin'):
        candidate = getattr(module, attribute, None)
        if callable(candidate):
            return candidate
    raise PluginLoadError(hint, plugin_name=plugin_name, source_kind=source_kind.value)


def metadata_build(raw: Any, name: str, version: str = "0.0.0", description: str = "") -> PluginMetadata:
    """Build PluginMetadata from an optional mapping, filling defaults"""
    values = dict(raw) if isinstance(raw, Mapping) else {}
    keywords = values.get('keywords') or []
    return PluginMetadata(
        name=str(values.get('name') or name),
        version=str(values.get('version') or version),
        description=str(values.get('description') or description),
        author=values.get('author'),
        homepage=values.get('homepage'),
        keywords=[str(k) for k in keywords],
    )


def text_readOptional(path: Path) -> Optional[str]:
    """Read a text file, or None when it does not exist"""
    if not path.is_file():
        return None
    return path.read_text(encoding='utf-8')


class PluginLoader:
    """
    Resolve plugin declarations into LoadedPlugin instances

    Loading is async: file checks, reads and module imports run in worker
    threads, and plugins_load() resolves a whole list concurrently.

    In strict mode any load failure raises PluginLoadError; otherwise the
    failure is logged and the plugin skipped. Security violations and
    unsupported remote plugins raise in both modes.
    """

    def __init__(
        self,
        base_dir: Union[str, Path],
        strict: Optional[bool] = None,
        verbose: bool = False,
        cache: Optional[bool] = None,
    ) -> None:
        """
        Args:
            base_dir: Project directory; plugin paths may not escape it
            strict: Raise on load failures (default: PAGEDMD_PLUGIN_STRICT)
            verbose: Report loaded plugins at normal verbosity
            cache: Cache plugins by declaration fingerprint
                (default: PAGEDMD_PLUGIN_CACHE)
        """
        self.base_dir = Path(base_dir).resolve()
        self.strict = appsettings.plugin_strict if strict is None else strict
        self.verbose = verbose
        self.cache_enabled = appsettings.plugin_cache if cache is None else cache
        self.cache: Dict[str, LoadedPlugin] = {}
        # Priority a plugin gets when its declaration does not set one
        self.priorities: Dict[str, int] = {}
        self.strategies: Dict[PluginSourceKind, Callable[[PluginConfig], Awaitable[LoadedPlugin]]] = {
            PluginSourceKind.LOCAL: self.local_load,
            PluginSourceKind.PACKAGE: self.package_load,
            PluginSourceKind.BUILTIN: self.builtin_load,
            PluginSourceKind.REMOTE: self.remote_load,
        }

    def report(self, message: str) -> None:
        LOG(message, level=1 if self.verbose else 2)

    def builtins_list(self) -> List[str]:
        """Names of the built-in plugins"""
        return list(BUILTIN_PLUGINS)

    def cache_clear(self) -> None:
        """Forget every cached plugin"""
        self.cache.clear()
        self.priorities.clear()

    def kind_detect(self, config: PluginConfig) -> PluginSourceKind:
        """
        Infer where a plugin comes from when ``type`` is not declared.

        Order: URL -> local file -> built-in name -> package.

        Example:
            >>> PluginLoader(".").kind_detect(PluginConfig(path="./x.py"))
            <PluginSourceKind.LOCAL: 'local'>
        """
        locator = config.path or config.name or ''
        if config.url or locator.startswith(('http://', 'https://')):
            return PluginSourceKind.REMOTE
        if config.path and (config.path.startswith(('./', '../')) or config.path.endswith('.py')):
            return PluginSourceKind.LOCAL
        if config.name and config.name in BUILTIN_PLUGINS:
            return PluginSourceKind.BUILTIN
        return PluginSourceKind.PACKAGE

    async def plugin_load(self, declaration: Declaration) -> Optional[LoadedPlugin]:
        """
        Load a single plugin.

        Args:
            declaration: Bare string, mapping or PluginConfig

        Returns:
            LoadedPlugin, or None when the plugin is disabled or was skipped
            in lenient mode

        Raises:
            PluginSecurityError: the plugin path escapes the project
            PluginNotSupportedError: remote plugin
            PluginLoadError: any other failure, in strict mode
        """
        try:
            config = PluginConfig.declaration_parse(declaration)
        except (ValidationError, TypeError) as error:
            return self.failure_handle(
                PluginLoadError(f"Invalid plugin declaration {declaration!r}: {error}"),
                str(declaration),
                None,
            )

        if not config.enabled:
            self.report(f"Plugin {config.locator} is disabled")
            return None

        key = config.fingerprint()
        if self.cache_enabled and key in self.cache:
            return self.cached_get(key, config)

        kind = config.type or self.kind_detect(config)
        try:
            loaded = await self.strategies[kind](config)
        except (PluginSecurityError, PluginNotSupportedError):
            raise
        except PluginLoadError as error:
            return self.failure_handle(error, config.locator, kind)

        # Strategies report the plugin's own priority; a declared one wins
        natural_priority = loaded.priority
        if config.priority_declared and config.priority != natural_priority:
            loaded = dataclasses.replace(loaded, priority=config.priority)

        if self.cache_enabled:
            self.cache[key] = loaded
            self.priorities[key] = natural_priority

        self.report(
            f"Loaded {kind.value} plugin: {loaded.metadata.name} v{loaded.metadata.version} "
            f"(priority {loaded.priority})"
        )
        return loaded

    async def plugins_load(self, declarations: Iterable[Declaration]) -> List[LoadedPlugin]:
        """
        Load several plugins concurrently.

        Returns:
            Loaded plugins (skipped ones dropped) by descending priority;
            plugins with equal priority keep their declaration order
        """
        results = await asyncio.gather(*(self.plugin_load(d) for d in declarations))
        loaded = [plugin for plugin in results if plugin is not None]
        return sorted(loaded, key=lambda plugin: -plugin.priority)

    def failure_handle(
        self,
        error: PluginLoadError,
        plugin_name: str,
        kind: Optional[PluginSourceKind],
    ) -> None:
        """Raise (strict) or log and skip (lenient) a load failure"""
        message = f"Failed to load plugin {plugin_name}: {error}"
        if self.strict:
            raise PluginLoadError(
                message,
                plugin_name=plugin_name,
                source_kind=kind.value if kind else None,
            ) from error
        WARN(message)
        return None

    def cached_get(self, key: str, config: PluginConfig) -> LoadedPlugin:
        """
        Serve a cached plugin, deriving a new one when options or priority
        differ from the cached instance. The derived plugin replaces the
        cache entry.
        """
        cached = self.cache[key]
        priority = config.priority if config.priority_declared else self.priorities.get(key, DEFAULT_PRIORITY)
        if dict(cached.options) == config.options and cached.priority == priority:
            self.report(f"Using cached plugin: {cached.metadata.name}")
            return cached

        derived = dataclasses.replace(cached, options=dict(config.options), priority=priority)
        self.cache[key] = derived
        self.report(f"Derived cached plugin {cached.metadata.name} (priority {priority})")
        return derived

    async def local_load(self, config: PluginConfig) -> LoadedPlugin:
        """Load a plugin from a Python file inside the project"""
        if not config.path:
            raise PluginLoadError("Local plugin requires 'path'", plugin_name=config.locator, source_kind="local")

        path = path_validate(config.path, self.base_dir, config.locator)
        if not await asyncio.to_thread(path.is_file):
            raise PluginLoadError(
                f"Plugin file not found: {config.path}\n"
                f"Resolved to: {path}\n"
                f"Make sure the file exists and the path is correct.",
                plugin_name=config.locator,
                source_kind="local",
            )

        module = await asyncio.to_thread(module_load, path, config.locator)
        extension = extension_get(
            module,
            f"Plugin {config.path} must define a callable named 'default' or 'plugin':\n"
            f"    def plugin(md, **options): ...",
            config.locator,
            PluginSourceKind.LOCAL,
        )

        css = getattr(module, 'css', None)
        if not isinstance(css, str):
            css = await asyncio.to_thread(text_readOptional, path.with_suffix('.css'))

        return LoadedPlugin(
            identity=config.path,
            extension=extension,
            metadata=metadata_build(getattr(module, 'metadata', None), path.stem, description="Local plugin"),
            source_kind=PluginSourceKind.LOCAL,
            priority=DEFAULT_PRIORITY,
            stylesheet=css,
            options=dict(config.options),
        )

    def manifest_read(self, path: Path, plugin_name: str) -> Dict[str, Any]:
        """Parse a plugin.yaml manifest"""
        try:
            with open(path, 'r', encoding='utf-8') as f:
                manifest = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise PluginLoadError(
                f"Cannot read plugin manifest {path}: {exc}",
                plugin_name=plugin_name,
                source_kind="package",
            ) from exc
        if not isinstance(manifest, dict):
            raise PluginLoadError(
                f"Plugin manifest {path} must be a mapping",
                plugin_name=plugin_name,
                source_kind="package",
            )
        return manifest

    async def package_load(self, config: PluginConfig) -> LoadedPlugin:
        """Load a packaged plugin described by plugin.yaml"""
        name = config.name or config.path
        if not name:
            raise PluginLoadError("Package plugin requires 'name'", source_kind="package")

        packages_root = self.base_dir / appsettings.plugin_packages_dir
        package_dir = path_validate(name, packages_root, name)
        manifest_path = package_dir / 'plugin.yaml'
        if not await asyncio.to_thread(manifest_path.is_file):
            raise PluginLoadError(
                f"Plugin package not found: {name}\n"
                f"Expected a plugin.yaml in {package_dir}",
                plugin_name=name,
                source_kind="package",
            )

        manifest = await asyncio.to_thread(self.manifest_read, manifest_path, name)
        version = str(manifest.get('version', '0.0.0'))
        if config.version and not version_satisfies(version, config.version):
            raise PluginLoadError(
                f"Plugin {name} version {version} does not satisfy {config.version}",
                plugin_name=name,
                source_kind="package",
            )

        settings = manifest.get('pagedmd') or {}
        entry = path_validate(str(settings.get('entry', '__init__.py')), package_dir, name)
        if not await asyncio.to_thread(entry.is_file):
            raise PluginLoadError(
                f"Entry point of plugin package {name} not found: {entry}",
                plugin_name=name,
                source_kind="package",
            )

        module = await asyncio.to_thread(module_load, entry, name)
        extension = extension_get(
            module,
            f"Package {name} does not define a callable 'default' or 'plugin'",
            name,
            PluginSourceKind.PACKAGE,
        )

        css = None
        if settings.get('css'):
            css_path = path_validate(str(settings['css']), package_dir, name)
            css = await asyncio.to_thread(text_readOptional, css_path)
            if css is None:
                WARN(f"Stylesheet {settings['css']} of plugin package {name} not found")

        try:
            priority = int(settings.get('priority', DEFAULT_PRIORITY))
        except (TypeError, ValueError) as exc:
            raise PluginLoadError(
                f"Invalid priority in plugin.yaml of {name}: {settings.get('priority')!r}",
                plugin_name=name,
                source_kind="package",
            ) from exc

        return LoadedPlugin(
            identity=name,
            extension=extension,
            metadata=metadata_build(manifest, name, version=version, description=f"Plugin package {name}"),
            source_kind=PluginSourceKind.PACKAGE,
            priority=priority,
            stylesheet=css,
            options=dict(config.options),
        )

    async def builtin_load(self, config: PluginConfig) -> LoadedPlugin:
        """Load a plugin shipped with pagedmd"""
        name = config.name or config.path or ''
        extension = BUILTIN_PLUGINS.get(name)
        if extension is None:
            raise PluginLoadError(
                f"Unknown built-in plugin: {name}\n"
                f"Available built-in plugins: {', '.join(self.builtins_list())}",
                plugin_name=name,
                source_kind="builtin",
            )

        css_path = self.base_dir / appsettings.builtin_styles_dir / f"{name.lower()}-components.css"
        css = await asyncio.to_thread(text_readOptional, css_path)

        return LoadedPlugin(
            identity=name,
            extension=extension,
            metadata=PluginMetadata(name=name, version="1.0.0", description=f"Built-in {name} plugin"),
            source_kind=PluginSourceKind.BUILTIN,
            priority=DEFAULT_PRIORITY,
            stylesheet=css,
            options=dict(config.options),
        )

    async def remote_load(self, config: PluginConfig) -> LoadedPlugin:
        """Remote plugins are recognized but never fetched"""
        raise PluginNotSupportedError(
            "Remote plugins are not yet supported.\n"
            "Use a local file or a plugin package instead.",
            plugin_name=config.locator,
            source_kind="remote",
        )


def loader_create(base_dir: Union[str, Path], **options: Any) -> PluginLoader:
    """
    Create a PluginLoader.

    Args:
        base_dir: Project directory
        **options: strict, verbose, cache (see PluginLoader)
    """
    return PluginLoader(base_dir, **options)
