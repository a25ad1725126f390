# src/quarry/plugins/hookspecs.py
"""pluggy hook specifications for quarry trainer plugins.

A plugin is any object with a @hookimpl method named after a hook below.
PluginManager.register() calls the hooks to discover trainer classes.

Example third-party plugin:
    from quarry.plugins.hookspecs import hookimpl

    class GradientBoostingPlugin:
        @hookimpl
        def quarry_get_trainers(self):
            return [GradientBoostingTrainer]

    manager.register(GradientBoostingPlugin())
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from quarry.plugins.protocols import TrainerProtocol

PROJECT_NAME = "quarry"

# Marks the hook interface declared in this module
hookspec = pluggy.HookspecMarker(PROJECT_NAME)

# Marks a plugin's implementation of a hook
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class QuarryTrainerSpec:
    """Hooks through which plugins contribute model trainers."""

    @hookspec
    def quarry_get_trainers(self) -> list[type["TrainerProtocol"]]:  # type: ignore[empty-body]
        """Return trainer classes (not instances) provided by this plugin."""
