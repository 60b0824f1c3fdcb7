"""Module model: one independently buildable unit of a project."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Module:
    """A single module (or the root project in a single-module build).

    Identity is the module ``name``.  The plugin set only grows: plugins are
    added with :meth:`apply_plugin` and never removed.
    """

    name: str
    path: str = "."
    """Path relative to the project root (``"."`` for the root module)."""
    plugins: set[str] = field(default_factory=set)
    overrides: dict[str, Any] = field(default_factory=dict)
    """Explicit per-module settings (dotted keys); never overwritten by propagation."""
    settings: dict[str, Any] = field(default_factory=dict)
    """Effective settings after propagation."""
    dependencies: list[str] = field(default_factory=list)
    """Names of *internal* modules this module depends on."""
    _plugin_actions: dict[str, list[Callable[[Module], None]]] = field(
        default_factory=dict, init=False, repr=False
    )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Module):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    def has_plugin(self, plugin: str) -> bool:
        """Return True if *plugin* has been applied to this module."""
        return plugin in self.plugins

    def apply_plugin(self, plugin: str) -> None:
        """Apply *plugin* and fire the actions waiting for it.

        Applying a plugin that is already present is a no-op.
        """
        if plugin in self.plugins:
            return
        self.plugins.add(plugin)
        logger.debug("Applied plugin %s to module %s", plugin, self.name)
        for action in list(self._plugin_actions.get(plugin, [])):
            action(self)

    def with_plugin(self, plugin: str, action: Callable[[Module], None]) -> None:
        """Run *action* once *plugin* is applied to this module.

        Runs immediately when the plugin is already present, otherwise when
        :meth:`apply_plugin` adds it.
        """
        self._plugin_actions.setdefault(plugin, []).append(action)
        if plugin in self.plugins:
            action(self)

    def effective(self, key: str, default: Any = None) -> Any:
        """Return the effective value of a dotted setting *key*."""
        if key in self.overrides:
            return self.overrides[key]
        return self.settings.get(key, default)
