# src/cadenza/plugins/manager.py
"""Plugin manager: load, register and unload plugins.

Uses pluggy for in-process plugins and reads binary plugins' embedded
schemas without instantiating them. Every contribution ends up in the two
registries the manager was given; unloading a plugin retracts both.

Extraction from many binaries runs in a thread pool, but registration is
funneled through one lock in input order, so which conflict is reported
never depends on which extraction finished first.
"""

import threading
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pluggy

from cadenza.contracts.commands import CommandSchema
from cadenza.contracts.errors import (
    CadenzaError,
    DuplicatePluginError,
    MalformedSchema,
    PluginNotFoundError,
)
from cadenza.contracts.schema import PluginSchema
from cadenza.core.config import CadenzaSettings
from cadenza.core.logging import get_logger
from cadenza.core.sections import CONFIG_SCHEMA_SECTION
from cadenza.plugins.commands import CommandRegistry
from cadenza.plugins.declarations import load_manifest
from cadenza.plugins.extractor import extract_plugin_schema
from cadenza.plugins.hookspecs import (
    PROJECT_NAME,
    CadenzaCommandSpec,
    CadenzaConfigSpec,
)
from cadenza.plugins.registry import SchemaRegistry

logger = get_logger(__name__)


@dataclass(frozen=True)
class LoadedPlugin:
    """Registration record for one loaded plugin."""

    plugin_id: str
    source: str
    schema: PluginSchema | None
    commands: tuple[str, ...] = ()


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of reading one binary's schema. Exactly one of schema/error
    is meaningful; schema may also be None when the binary embeds none."""

    source: str
    schema: PluginSchema | None = None
    error: CadenzaError | None = None


@dataclass(frozen=True)
class LoadReport:
    """What a batch load did. A failure is fatal to that plugin only."""

    loaded: tuple[LoadedPlugin, ...] = ()
    failed: tuple[tuple[str, Exception], ...] = field(default=())

    @property
    def ok(self) -> bool:
        return not self.failed


class PluginManager:
    """Manages plugin loading, registration, and unloading.

    Usage:
        manager = PluginManager()
        report = manager.load_modules({"heater.wasm": heater_bytes})
        manager.register(MyPlugin())

        merged = manager.schemas.merged_schema()
        snapshot = manager.commands.snapshot()
    """

    def __init__(
        self,
        schemas: SchemaRegistry | None = None,
        commands: CommandRegistry | None = None,
        *,
        max_workers: int = 4,
        section_name: str = CONFIG_SCHEMA_SECTION,
    ) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(CadenzaConfigSpec)
        self._pm.add_hookspecs(CadenzaCommandSpec)

        self.schemas = schemas if schemas is not None else SchemaRegistry()
        self.commands = commands if commands is not None else CommandRegistry()
        self._max_workers = max_workers
        self._section_name = section_name

        # Serializes install/uninstall so both registries change together
        self._install_lock = threading.Lock()
        self._loaded: dict[str, LoadedPlugin] = {}

    @classmethod
    def from_settings(cls, settings: CadenzaSettings) -> "PluginManager":
        return cls(
            SchemaRegistry(closed=settings.validation.closed),
            CommandRegistry(),
            max_workers=settings.extraction.max_workers,
            section_name=settings.extraction.section_name,
        )

    # === Lookup ===

    def loaded(self) -> tuple[LoadedPlugin, ...]:
        """Loaded plugins in load order."""
        with self._install_lock:
            return tuple(self._loaded.values())

    def get(self, plugin_id: str) -> LoadedPlugin | None:
        with self._install_lock:
            return self._loaded.get(plugin_id)

    # === Install / uninstall ===

    def _install(
        self,
        plugin_id: str,
        source: str,
        schema: PluginSchema | None,
        commands: Iterable[CommandSchema],
    ) -> LoadedPlugin:
        """Register a plugin's schema and commands, all or nothing."""
        commands = list(commands)
        with self._install_lock:
            if plugin_id in self._loaded:
                raise DuplicatePluginError(plugin_id)
            for command in commands:
                if command.owning_plugin_id != plugin_id:
                    raise MalformedSchema(
                        f"command {command.name!r} is owned by "
                        f"{command.owning_plugin_id!r}, not {plugin_id!r}"
                    )

            if schema is not None:
                self.schemas.register(schema)
            try:
                for command in commands:
                    self.commands.register(command)
            except CadenzaError:
                self.commands.unregister_plugin(plugin_id)
                if schema is not None:
                    self.schemas.unregister(plugin_id)
                raise

            record = LoadedPlugin(
                plugin_id=plugin_id,
                source=source,
                schema=schema,
                commands=tuple(c.name for c in commands),
            )
            self._loaded[plugin_id] = record

        logger.info(
            "Loaded plugin",
            plugin_id=plugin_id,
            source=source,
            has_schema=schema is not None,
            commands=len(record.commands),
        )
        return record

    def unload(self, plugin_id: str) -> LoadedPlugin:
        """Unload a plugin and retract its schema and commands.

        Jobs already compiled against its commands stay valid artifacts;
        they will fail at link time if nothing else provides the commands.

        Raises:
            PluginNotFoundError: If no plugin with this id is loaded
        """
        with self._install_lock:
            try:
                record = self._loaded.pop(plugin_id)
            except KeyError:
                raise PluginNotFoundError(plugin_id) from None
            dropped = self.commands.unregister_plugin(plugin_id)
            if record.schema is not None:
                self.schemas.unregister(plugin_id)
            if self._pm.get_plugin(plugin_id) is not None:
                self._pm.unregister(name=plugin_id)

        logger.info("Unloaded plugin", plugin_id=plugin_id, dropped_commands=list(dropped))
        return record

    # === In-process plugins (pluggy) ===

    def register(self, plugin: Any, plugin_id: str | None = None) -> LoadedPlugin:
        """Register a plugin object implementing cadenza hooks.

        Args:
            plugin: Object with @hookimpl methods
            plugin_id: Identity; defaults to the plugin's plugin_id attribute

        Raises:
            ValueError: If the plugin has no identity
            MalformedSchema: If its schema or commands name another plugin
            ConflictError: If its contributions clash with loaded plugins
        """
        if plugin_id is None:
            try:
                plugin_id = plugin.plugin_id
            except AttributeError:
                raise ValueError(
                    f"Plugin {type(plugin).__name__} must define 'plugin_id' attribute. "
                    f"Add: plugin_id = 'com.example.name' to the class."
                ) from None

        self._pm.register(plugin, name=plugin_id)
        try:
            others = [p for p in self._pm.get_plugins() if p is not plugin]
            schema = self._pm.subset_hook_caller(
                "cadenza_get_config_schema", remove_plugins=others
            )()
            batches = self._pm.subset_hook_caller(
                "cadenza_get_commands", remove_plugins=others
            )()
            commands = [command for batch in batches for command in batch]

            if schema is not None and schema.plugin_id != plugin_id:
                raise MalformedSchema(
                    f"plugin {plugin_id!r} returned a schema for {schema.plugin_id!r}"
                )
            return self._install(plugin_id, type(plugin).__name__, schema, commands)
        except Exception:
            self._pm.unregister(plugin)
            raise

    # === Binary plugins ===

    def load_module(
        self,
        source: str,
        module: bytes,
        commands: Sequence[CommandSchema] = (),
    ) -> LoadedPlugin:
        """Load one binary plugin from its bytes.

        The plugin id comes from the embedded schema, else from the command
        declarations, else from the source name.

        Raises:
            ParseError, MalformedSchema, UnsupportedSchemaShape, ConflictError
        """
        schema = extract_plugin_schema(module, self._section_name)
        return self._install(self._identify(source, schema, commands), source, schema, commands)

    @staticmethod
    def _identify(
        source: str, schema: PluginSchema | None, commands: Sequence[CommandSchema]
    ) -> str:
        if schema is not None:
            return schema.plugin_id
        if commands:
            return commands[0].owning_plugin_id
        return f"plugin-{source}"

    def extract_schemas(self, modules: Mapping[str, bytes]) -> list[ExtractionResult]:
        """Extract schemas from many binaries concurrently.

        Returns:
            One result per module, in the mapping's order
        """
        sources = list(modules)
        results: list[ExtractionResult | None] = [None] * len(sources)

        def extract(source: str) -> ExtractionResult:
            try:
                schema = extract_plugin_schema(modules[source], self._section_name)
            except CadenzaError as e:
                return ExtractionResult(source=source, error=e)
            return ExtractionResult(source=source, schema=schema)

        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            futures: dict[Future[ExtractionResult], int] = {
                pool.submit(extract, source): index for index, source in enumerate(sources)
            }
            for future in as_completed(futures):
                results[futures[future]] = future.result()

        return [r for r in results if r is not None]

    def load_modules(
        self,
        modules: Mapping[str, bytes],
        commands: Mapping[str, Sequence[CommandSchema]] | None = None,
    ) -> LoadReport:
        """Load many binary plugins.

        Args:
            modules: Source name -> module bytes, in load order
            commands: Plugin id -> declarations for plugins that ship them
                separately. Declarations with no matching module are loaded
                as command-only plugins.
        """
        pending = dict(commands or {})
        loaded: list[LoadedPlugin] = []
        failed: list[tuple[str, Exception]] = []

        for result in self.extract_schemas(modules):
            if result.error is not None:
                logger.warning("Rejected plugin", source=result.source, error=str(result.error))
                failed.append((result.source, result.error))
                continue
            declared = (
                pending.pop(result.schema.plugin_id, ()) if result.schema is not None else ()
            )
            plugin_id = self._identify(result.source, result.schema, declared)
            try:
                loaded.append(self._install(plugin_id, result.source, result.schema, declared))
            except CadenzaError as e:
                logger.warning("Rejected plugin", source=result.source, error=str(e))
                failed.append((result.source, e))

        for plugin_id, declared in pending.items():
            try:
                loaded.append(self._install(plugin_id, plugin_id, None, declared))
            except CadenzaError as e:
                logger.warning("Rejected plugin", source=plugin_id, error=str(e))
                failed.append((plugin_id, e))

        return LoadReport(loaded=tuple(loaded), failed=tuple(failed))

    def load_files(
        self,
        plugin_paths: Iterable[Path],
        manifest_paths: Iterable[Path] = (),
    ) -> LoadReport:
        """Read plugin binaries and command manifests from disk and load them."""
        failed: list[tuple[str, Exception]] = []

        declared: dict[str, list[CommandSchema]] = {}
        for path in manifest_paths:
            try:
                for command in load_manifest(path):
                    declared.setdefault(command.owning_plugin_id, []).append(command)
            except (CadenzaError, OSError) as e:
                logger.warning("Rejected command manifest", source=str(path), error=str(e))
                failed.append((str(path), e))

        modules: dict[str, bytes] = {}
        for path in plugin_paths:
            logger.debug("Reading plugin", source=str(path))
            try:
                modules[str(path)] = path.read_bytes()
            except OSError as e:
                logger.warning("Cannot read plugin", source=str(path), error=str(e))
                failed.append((str(path), e))

        report = self.load_modules(modules, declared)
        return LoadReport(loaded=report.loaded, failed=tuple(failed) + report.failed)
