"""
Plugin loader tests

Tests type detection, the local/package/builtin/remote strategies, path
containment, strict vs lenient failure handling, caching and priority
ordering. Plugin files are written to a temporary project directory.
"""

from pathlib import Path
from textwrap import dedent

import pytest

from pagedmd.lib.errors import PluginLoadError, PluginNotSupportedError, PluginSecurityError
from pagedmd.lib.loader import PluginLoader, loader_create, version_satisfies
from pagedmd.models import PluginConfig, PluginSourceKind


PLUGIN_SOURCE = dedent('''
    metadata = {"name": "shout", "version": "2.0.0", "description": "Shouting text"}
    css = ".shout { font-weight: bold; }"

    def plugin(md, **options):
        md.core.ruler.push("shout", lambda state: None)
''')


def plugin_write(root: Path, relative: str, source: str = PLUGIN_SOURCE) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(source, encoding="utf-8")
    return path


def package_write(root: Path, name: str, manifest: str, entry_source: str = PLUGIN_SOURCE) -> Path:
    package_dir = root / "plugin_packages" / name
    package_dir.mkdir(parents=True)
    (package_dir / "plugin.yaml").write_text(dedent(manifest), encoding="utf-8")
    (package_dir / "__init__.py").write_text(entry_source, encoding="utf-8")
    return package_dir


class TestKindDetect:
    """Test source kind inference"""

    @pytest.mark.parametrize("declaration,expected", [
        ("./plugins/dice.py", PluginSourceKind.LOCAL),
        ("../shared/dice.py", PluginSourceKind.LOCAL),
        ("plugins/dice.py", PluginSourceKind.LOCAL),
        ("ttrpg", PluginSourceKind.BUILTIN),
        ("dimmCity", PluginSourceKind.BUILTIN),
        ("monsters", PluginSourceKind.PACKAGE),
        ("https://example.com/plugin.py", PluginSourceKind.REMOTE),
        ({"url": "http://example.com/p"}, PluginSourceKind.REMOTE),
    ])
    def test_detection(self, tmp_path, declaration, expected):
        """Locators map to the expected strategy"""
        loader = PluginLoader(tmp_path)
        assert loader.kind_detect(PluginConfig.declaration_parse(declaration)) is expected


class TestLocalPlugins:
    """Test loading plugin files from the project"""

    @pytest.mark.asyncio
    async def test_load_local(self, tmp_path):
        """Extension, css and metadata come from the module"""
        plugin_write(tmp_path, "plugins/shout.py")
        loaded = await PluginLoader(tmp_path, strict=True).plugin_load("./plugins/shout.py")

        assert loaded.source_kind is PluginSourceKind.LOCAL
        assert loaded.identity == "./plugins/shout.py"
        assert loaded.metadata.name == "shout"
        assert loaded.metadata.version == "2.0.0"
        assert loaded.stylesheet == ".shout { font-weight: bold; }"
        assert loaded.priority == 100
        assert callable(loaded.extension)

    @pytest.mark.asyncio
    async def test_default_attribute_and_colocated_css(self, tmp_path):
        """'default' is accepted and <stem>.css is picked up"""
        plugin_write(tmp_path, "plugins/dice.py", "def default(md, **options):\n    pass\n")
        (tmp_path / "plugins" / "dice.css").write_text(".dice {}", encoding="utf-8")

        loaded = await PluginLoader(tmp_path, strict=True).plugin_load("./plugins/dice.py")

        assert loaded.stylesheet == ".dice {}"
        assert loaded.metadata.name == "dice"
        assert loaded.metadata.version == "0.0.0"
        assert loaded.metadata.description == "Local plugin"

    @pytest.mark.asyncio
    async def test_registers_into_parser(self, tmp_path):
        """register() hands the stored options to the extension"""
        plugin_write(tmp_path, "plugins/opts.py", dedent('''
            seen = {}

            def plugin(md, **options):
                seen.update(options)
        '''))
        loaded = await PluginLoader(tmp_path, strict=True).plugin_load(
            {"path": "./plugins/opts.py", "options": {"color": "red"}}
        )

        from markdown_it import MarkdownIt
        loaded.register(MarkdownIt())

        assert loaded.options == {"color": "red"}
        assert loaded.extension.__globals__["seen"] == {"color": "red"}

    @pytest.mark.asyncio
    async def test_missing_export_strict(self, tmp_path):
        """A module without default/plugin fails with a corrective message"""
        plugin_write(tmp_path, "plugins/empty.py", "VALUE = 1\n")
        with pytest.raises(PluginLoadError, match="must define a callable named 'default' or 'plugin'"):
            await PluginLoader(tmp_path, strict=True).plugin_load("./plugins/empty.py")

    @pytest.mark.asyncio
    async def test_missing_file_lenient(self, tmp_path, log_messages):
        """Lenient mode logs and skips"""
        loaded = await PluginLoader(tmp_path, strict=False).plugin_load("./plugins/nope.py")
        assert loaded is None
        assert any("Failed to load plugin ./plugins/nope.py" in m and "not found" in m for m in log_messages)

    @pytest.mark.asyncio
    async def test_import_error_chained(self, tmp_path):
        """Errors raised while importing are wrapped and chained"""
        plugin_write(tmp_path, "plugins/broken.py", "raise RuntimeError('boom')\n")
        with pytest.raises(PluginLoadError) as excinfo:
            await PluginLoader(tmp_path, strict=True).plugin_load("./plugins/broken.py")

        assert excinfo.value.plugin_name == "./plugins/broken.py"
        assert excinfo.value.source_kind == "local"
        inner = excinfo.value.__cause__
        assert isinstance(inner, PluginLoadError)
        assert isinstance(inner.__cause__, RuntimeError)


class TestPathContainment:
    """Test that plugin paths cannot escape the project"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("strict", [True, False])
    async def test_parent_traversal(self, tmp_path, strict):
        """../ escapes raise in both modes"""
        project = tmp_path / "book"
        project.mkdir()
        plugin_write(tmp_path, "outside.py")
        with pytest.raises(PluginSecurityError):
            await PluginLoader(project, strict=strict).plugin_load("../outside.py")

    @pytest.mark.asyncio
    async def test_absolute_path_outside(self, tmp_path):
        """Absolute paths outside the project are rejected"""
        project = tmp_path / "book"
        project.mkdir()
        target = plugin_write(tmp_path, "elsewhere/evil.py")
        with pytest.raises(PluginSecurityError):
            await PluginLoader(project, strict=False).plugin_load(str(target))

    @pytest.mark.asyncio
    async def test_symlink_outside(self, tmp_path):
        """A symlink inside the project pointing outside is rejected"""
        project = tmp_path / "book"
        (project / "plugins").mkdir(parents=True)
        target = plugin_write(tmp_path, "elsewhere/evil.py")
        (project / "plugins" / "link.py").symlink_to(target)
        with pytest.raises(PluginSecurityError):
            await PluginLoader(project, strict=False).plugin_load("./plugins/link.py")

    @pytest.mark.asyncio
    async def test_fullwidth_separator(self, tmp_path):
        """Lookalike Unicode separators are rejected"""
        with pytest.raises(PluginSecurityError):
            await PluginLoader(tmp_path).plugin_load("./plugins／evil.py")

    @pytest.mark.asyncio
    async def test_package_name_traversal(self, tmp_path):
        """Package names cannot leave the packages directory"""
        with pytest.raises(PluginSecurityError):
            await PluginLoader(tmp_path).plugin_load({"name": "../../evil", "type": "package"})


class TestPackagePlugins:
    """Test plugin.yaml packages"""

    MANIFEST = '''
        version: 1.2.3
        description: Monster stat blocks
        author: Jane Doe
        keywords: [monsters, bestiary]
        pagedmd:
          entry: __init__.py
          css: monsters.css
          priority: 150
    '''

    @pytest.mark.asyncio
    async def test_load_package(self, tmp_path):
        """Metadata, stylesheet and priority come from plugin.yaml"""
        package_dir = package_write(tmp_path, "monsters", self.MANIFEST)
        (package_dir / "monsters.css").write_text(".monster {}", encoding="utf-8")

        loaded = await PluginLoader(tmp_path, strict=True).plugin_load({"name": "monsters", "version": "^1.2"})

        assert loaded.source_kind is PluginSourceKind.PACKAGE
        assert loaded.identity == "monsters"
        assert loaded.metadata.version == "1.2.3"
        assert loaded.metadata.author == "Jane Doe"
        assert loaded.metadata.keywords == ["monsters", "bestiary"]
        assert loaded.stylesheet == ".monster {}"
        assert loaded.priority == 150

    @pytest.mark.asyncio
    async def test_declared_priority_wins(self, tmp_path):
        """An explicit priority overrides the manifest's"""
        package_write(tmp_path, "monsters", self.MANIFEST)
        loaded = await PluginLoader(tmp_path, strict=True).plugin_load({"name": "monsters", "priority": 10})
        assert loaded.priority == 10

    @pytest.mark.asyncio
    async def test_version_mismatch(self, tmp_path):
        """Unsatisfied version constraints fail"""
        package_write(tmp_path, "monsters", self.MANIFEST)
        with pytest.raises(PluginLoadError, match="does not satisfy"):
            await PluginLoader(tmp_path, strict=True).plugin_load({"name": "monsters", "version": "^2.0"})

    @pytest.mark.asyncio
    async def test_missing_package(self, tmp_path):
        """Unknown packages fail"""
        with pytest.raises(PluginLoadError, match="Plugin package not found: ghosts"):
            await PluginLoader(tmp_path, strict=True).plugin_load("ghosts")


class TestBuiltinAndRemote:
    """Test built-in registry and remote rejection"""

    @pytest.mark.asyncio
    async def test_builtin_with_stylesheet(self, tmp_path):
        """Built-ins pick up <name>-components.css"""
        styles = tmp_path / "assets" / "plugins"
        styles.mkdir(parents=True)
        (styles / "ttrpg-components.css").write_text(".stat-block {}", encoding="utf-8")

        loaded = await PluginLoader(tmp_path).plugin_load("ttrpg")

        assert loaded.source_kind is PluginSourceKind.BUILTIN
        assert loaded.metadata.version == "1.0.0"
        assert loaded.metadata.description == "Built-in ttrpg plugin"
        assert loaded.stylesheet == ".stat-block {}"

    @pytest.mark.asyncio
    async def test_unknown_builtin(self, tmp_path):
        """Unknown built-ins list the available names"""
        with pytest.raises(PluginLoadError, match="Available built-in plugins: ttrpg, dimmCity"):
            await PluginLoader(tmp_path, strict=True).plugin_load({"name": "nope", "type": "builtin"})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("strict", [True, False])
    async def test_remote_not_supported(self, tmp_path, strict):
        """Remote plugins raise in both modes"""
        with pytest.raises(PluginNotSupportedError, match="not yet supported"):
            await PluginLoader(tmp_path, strict=strict).plugin_load("https://example.com/plugin.py")

    def test_builtins_list(self, tmp_path):
        """The registry is reported"""
        assert PluginLoader(tmp_path).builtins_list() == ["ttrpg", "dimmCity"]


class TestDeclarations:
    """Test declaration handling"""

    @pytest.mark.asyncio
    async def test_disabled(self, tmp_path):
        """Disabled plugins are not loaded"""
        assert await PluginLoader(tmp_path, strict=True).plugin_load({"name": "ttrpg", "enabled": False}) is None

    @pytest.mark.asyncio
    async def test_invalid_declaration_lenient(self, tmp_path, log_messages):
        """A declaration without locator is skipped in lenient mode"""
        assert await PluginLoader(tmp_path, strict=False).plugin_load({"priority": 5}) is None
        assert any("Invalid plugin declaration" in m for m in log_messages)

    def test_unknown_keys_ignored(self):
        """Extra keys such as integrity are accepted and dropped"""
        config = PluginConfig.declaration_parse({"url": "https://example.com/p.py", "integrity": "sha384-abc"})
        assert config.url == "https://example.com/p.py"
        assert "integrity" not in config.model_dump()

    @pytest.mark.asyncio
    async def test_invalid_declaration_strict(self, tmp_path):
        """A declaration without locator fails in strict mode"""
        with pytest.raises(PluginLoadError):
            await PluginLoader(tmp_path, strict=True).plugin_load({"options": {}})


class TestCache:
    """Test fingerprint caching"""

    @pytest.mark.asyncio
    async def test_same_declaration_identical(self, tmp_path):
        """Loading twice returns the same object"""
        loader = PluginLoader(tmp_path, cache=True)
        first = await loader.plugin_load("ttrpg")
        second = await loader.plugin_load("ttrpg")
        assert first is second

    @pytest.mark.asyncio
    async def test_different_options_derive(self, tmp_path):
        """Changed options derive a new plugin that replaces the cache entry"""
        loader = PluginLoader(tmp_path, cache=True)
        plain = await loader.plugin_load({"name": "ttrpg"})
        tuned = await loader.plugin_load({"name": "ttrpg", "options": {"dice_notation": False}})
        again = await loader.plugin_load({"name": "ttrpg", "options": {"dice_notation": False}})

        assert tuned is not plain
        assert tuned.options == {"dice_notation": False}
        assert plain.options == {}
        assert again is tuned

    @pytest.mark.asyncio
    async def test_different_priority_derive(self, tmp_path):
        """Changed priority derives a new plugin"""
        loader = PluginLoader(tmp_path, cache=True)
        plain = await loader.plugin_load({"name": "ttrpg"})
        urgent = await loader.plugin_load({"name": "ttrpg", "priority": 900})
        assert urgent is not plain
        assert urgent.priority == 900
        assert plain.priority == 100

    @pytest.mark.asyncio
    async def test_cache_disabled(self, tmp_path):
        """Without cache every load builds a new plugin"""
        loader = PluginLoader(tmp_path, cache=False)
        assert await loader.plugin_load("ttrpg") is not await loader.plugin_load("ttrpg")

    @pytest.mark.asyncio
    async def test_cache_clear(self, tmp_path):
        """cache_clear() forgets loaded plugins"""
        loader = PluginLoader(tmp_path, cache=True)
        first = await loader.plugin_load("ttrpg")
        loader.cache_clear()
        assert await loader.plugin_load("ttrpg") is not first


class TestPluginsLoad:
    """Test bulk loading and ordering"""

    @pytest.mark.asyncio
    async def test_priority_order(self, tmp_path):
        """Plugins come back by descending priority"""
        for name in ("low", "high", "mid"):
            plugin_write(tmp_path, f"plugins/{name}.py")

        loader = loader_create(tmp_path, strict=True)
        plugins = await loader.plugins_load([
            {"path": "./plugins/low.py", "priority": 50},
            {"path": "./plugins/high.py", "priority": 500},
            {"path": "./plugins/mid.py", "priority": 100},
        ])

        assert [p.priority for p in plugins] == [500, 100, 50]
        assert [p.identity for p in plugins] == ["./plugins/high.py", "./plugins/mid.py", "./plugins/low.py"]

    @pytest.mark.asyncio
    async def test_ties_keep_declaration_order(self, tmp_path):
        """Equal priorities keep their relative order"""
        loader = loader_create(tmp_path, strict=True)
        plugins = await loader.plugins_load(["dimmCity", "ttrpg"])
        assert [p.identity for p in plugins] == ["dimmCity", "ttrpg"]

    @pytest.mark.asyncio
    async def test_failures_dropped_in_lenient_mode(self, tmp_path):
        """Skipped plugins are absent from the result"""
        loader = loader_create(tmp_path, strict=False)
        plugins = await loader.plugins_load(["ttrpg", "./plugins/missing.py", {"name": "x", "enabled": False}])
        assert [p.identity for p in plugins] == ["ttrpg"]


class TestVersionSatisfies:
    """Test the loose version check"""

    @pytest.mark.parametrize("actual,expected,result", [
        ("1.2.3", "1.2.3", True),
        ("1.2.3", "^1.2", True),
        ("1.2.3", "~1", True),
        ("2.0.0", "^1.2", False),
    ])
    def test_versions(self, actual, expected, result):
        """Prefix comparison after stripping ^ and ~"""
        assert version_satisfies(actual, expected) is result
