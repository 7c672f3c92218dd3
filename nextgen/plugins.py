"""Discovery of file-format plugins kept as shared objects in a directory."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

log = logging.getLogger(__name__)

DEFAULT_PLUGIN_DIR = "src/plugins"
_PLUGIN_EXTENSION = ".so"


class PluginLoadError(OSError):
    """Raised when a plugin file is found but cannot be loaded."""


@dataclass(frozen=True)
class PluginContext:
    """A loaded plugin: its file name, its absolute path and the formats it declares."""

    plugin_name: str
    plugin_path: Path
    formats: tuple[str, ...] = ()


@dataclass(frozen=True)
class FeatureConstraints:
    """A file format feature described in a format-independent way."""

    feature_number: int = 0


def _is_plugin_file(name: str) -> bool:
    if name.startswith("."):
        return False
    extension = os.path.splitext(name)[1]
    if not extension:
        return False
    return extension.startswith(_PLUGIN_EXTENSION)


def _normalise_extension(extension: str) -> str:
    extension = extension.strip().lower()
    if extension and not extension.startswith("."):
        extension = "." + extension
    return extension


class PluginRegistry:
    """The plugins found in one directory."""

    def __init__(self, directory: str | os.PathLike[str] = DEFAULT_PLUGIN_DIR) -> None:
        self.directory = Path(directory)
        self.plugin_count = 0
        self.plugins: list[PluginContext] = []

    def _plugin_names(self) -> list[str]:
        with os.scandir(self.directory) as entries:
            return sorted(entry.name for entry in entries if _is_plugin_file(entry.name))

    def count_plugins(self) -> int:
        """Count the shared objects in the directory, skipping hidden files."""
        self.plugin_count = len(self._plugin_names())
        return self.plugin_count

    def load_all(self) -> list[PluginContext]:
        """Load every plugin in the directory and return their contexts."""
        names = self._plugin_names()
        self.plugin_count = len(names)
        if not names:
            log.info("No plugins to load")
            self.plugins = []
            return []

        log.info("Loading all plugins")
        base = self.directory.resolve()
        loaded: list[PluginContext] = []
        for name in names:
            path = base / name
            try:
                with path.open("rb"):
                    pass
            except OSError as exc:
                raise PluginLoadError(f"Can't load plugin: {name} because: {exc}") from exc
            loaded.append(PluginContext(plugin_name=path.name, plugin_path=path))
        self.plugins = loaded
        return list(loaded)

    def _check_offset(self, offset: int) -> None:
        if not 0 <= offset < len(self.plugins):
            raise IndexError(f"no plugin at offset {offset}")

    def supported_file(self, file_extension: str) -> int | None:
        """Return the offset of a plugin that declares the extension, or None.

        Plugins loaded from a directory declare no formats, so for them
        nothing is found.
        """
        wanted = _normalise_extension(file_extension)
        if not wanted:
            return None
        for offset, plugin in enumerate(self.plugins):
            if wanted in (_normalise_extension(fmt) for fmt in plugin.formats):
                return offset
        return None

    def features_supported(self, offset: int) -> int:
        """Return how many format features the plugin at ``offset`` describes."""
        self._check_offset(offset)
        return 0

    def feature_constraints(self, offset: int) -> FeatureConstraints:
        """Return the feature constraints of the plugin at ``offset``."""
        self._check_offset(offset)
        return FeatureConstraints()


def setup_plugin_module(directory: str | os.PathLike[str] = DEFAULT_PLUGIN_DIR) -> PluginRegistry:
    """Count and load every plugin in ``directory``."""
    registry = PluginRegistry(directory)
    registry.count_plugins()
    registry.load_all()
    return registry