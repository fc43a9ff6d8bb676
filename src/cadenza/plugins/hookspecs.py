# src/cadenza/plugins/hookspecs.py
"""pluggy hook specifications for Cadenza plugins.

In-process plugins (and host adapters wrapping loaded binaries) implement
these hooks to contribute configuration schemas and command declarations.

Usage (implementing a plugin):
    from cadenza.plugins.hookspecs import hookimpl

    class HeaterPlugin:
        plugin_id = "com.example.heater"

        @hookimpl  # NOT @hookspec - that's for defining specs
        def cadenza_get_commands(self):
            return [set_temp]

Note: @hookspec defines the hook interface (done here).
      @hookimpl marks plugin implementations of those hooks.
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from cadenza.contracts.commands import CommandSchema
    from cadenza.contracts.schema import PluginSchema

# Project name for pluggy
PROJECT_NAME = "cadenza"

# Hook specification marker
hookspec = pluggy.HookspecMarker(PROJECT_NAME)

# Hook implementation marker (for plugins to use)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class CadenzaConfigSpec:
    """Hook specifications for configuration contracts."""

    @hookspec(firstresult=True)
    def cadenza_get_config_schema(self) -> "PluginSchema | None":  # type: ignore[empty-body]
        """Return the plugin's configuration schema.

        Returns:
            PluginSchema, or None if the plugin takes no configuration
        """


class CadenzaCommandSpec:
    """Hook specifications for command handlers."""

    @hookspec
    def cadenza_get_commands(self) -> list["CommandSchema"]:  # type: ignore[empty-body]
        """Return the commands this plugin can handle.

        Returns:
            List of CommandSchema, each owned by this plugin
        """
