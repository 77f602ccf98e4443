"""
Path containment checks for plugin loading

Plugins are executable code, so every file the loader imports must live
inside the project directory. Traversal (``../``), absolute paths outside
the project, symlinks pointing elsewhere and lookalike Unicode separators
are all rejected with PluginSecurityError.
"""

import os
from pathlib import Path
from typing import Union

from .errors import PluginSecurityError


# Fullwidth full stop / solidus / reverse solidus: visually identical to
# '.', '/' and '\\' and sometimes normalized to them downstream
SUSPICIOUS_CHARACTERS = ('\x00', '．', '／', '＼')


def pathWithin_check(candidate: Path, base: Path) -> bool:
    """True when candidate equals base or is below it"""
    try:
        candidate.relative_to(base)
    except ValueError:
        return False
    return True


def path_validate(path: Union[str, Path], base_dir: Union[str, Path], plugin_name: str = "unknown") -> Path:
    """
    Resolve a plugin path and verify it stays inside base_dir.

    Args:
        path: Path as written by the author (relative to base_dir, or absolute)
        base_dir: Permitted root directory
        plugin_name: Identity reported in the error

    Returns:
        The resolved absolute path

    Raises:
        PluginSecurityError: the path escapes base_dir

    Example:
        >>> path_validate("./plugins/dice.py", "/book")
        PosixPath('/book/plugins/dice.py')
        >>> path_validate("../../etc/passwd", "/book")
        Traceback (most recent call last):
        ...
        pagedmd.lib.errors.PluginSecurityError: ...
    """
    text = str(path)
    for character in SUSPICIOUS_CHARACTERS:
        if character in text:
            raise PluginSecurityError(
                f"Plugin path contains a disallowed character ({character!r}): {text!r}",
                plugin_name=plugin_name,
                source_kind="local",
            )

    base = Path(os.path.realpath(base_dir))
    candidate = Path(os.path.abspath(os.path.join(base, text)))

    if not pathWithin_check(candidate, base):
        raise PluginSecurityError(
            f"Plugin path escapes the project directory: {text} "
            f"(resolved to {candidate}, allowed root {base})",
            plugin_name=plugin_name,
            source_kind="local",
        )

    # Symlinks (the file itself or any parent) must not point outside either
    real = Path(os.path.realpath(candidate))
    if not pathWithin_check(real, base):
        raise PluginSecurityError(
            f"Plugin path resolves through a symlink outside the project directory: "
            f"{text} -> {real}",
            plugin_name=plugin_name,
            source_kind="local",
        )

    return real
