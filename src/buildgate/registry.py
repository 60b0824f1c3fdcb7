"""Module registry: enumerate modules and apply policy to each of them."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from buildgate.detectors.workspace import detect_workspace

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator
    from pathlib import Path

    from buildgate.config import BuildGateConfig
    from buildgate.models.module import Module

logger = logging.getLogger(__name__)

PUBLISHING_PLUGIN = "publishing"


class ModuleRegistry:
    """Ordered collection of the modules in a project graph.

    An empty registry is valid; every apply step then becomes a no-op.
    """

    def __init__(self, modules: Iterable[Module] = (), *, tool: str = "generic") -> None:
        self._modules: dict[str, Module] = {}
        self.tool = tool
        for module in modules:
            if module.name in self._modules:
                raise ValueError(f"Module '{module.name}' is registered twice")
            self._modules[module.name] = module

    @classmethod
    def discover(cls, root: str | Path, config: BuildGateConfig) -> ModuleRegistry:
        """Detect the modules under *root* and apply the configured base plugins."""
        profile = detect_workspace(root, config)
        registry = cls(profile.modules, tool=profile.tool)

        publishing = set(config.project.publishing)
        for module in registry:
            overrides = config.project.overrides.get(module.name)
            if overrides:
                module.overrides.update(overrides)
            for plugin in config.project.plugins:
                module.apply_plugin(plugin)
            if "*" in publishing or module.name in publishing:
                module.apply_plugin(PUBLISHING_PLUGIN)

        logger.info("Discovered %d module(s) (%s)", len(registry), profile.tool)
        return registry

    def all_modules(self) -> list[Module]:
        """Return every module in discovery order."""
        return list(self._modules.values())

    def get(self, name: str) -> Module:
        """Look up a module by name.

        Raises:
            KeyError: no module has that name.
        """
        try:
            return self._modules[name]
        except KeyError:
            available = ", ".join(self._modules) or "(none)"
            raise KeyError(f"Unknown module '{name}'. Available: {available}") from None

    def apply_to_all(self, policy: Callable[[Module], None]) -> None:
        """Apply *policy* once to every module, in order."""
        for module in self._modules.values():
            policy(module)

    def with_plugin(self, plugin: str, action: Callable[[Module], None]) -> None:
        """Run *action* on every module once it carries *plugin*."""
        self.apply_to_all(lambda module: module.with_plugin(plugin, action))

    def __iter__(self) -> Iterator[Module]:
        return iter(self._modules.values())

    def __len__(self) -> int:
        return len(self._modules)

    def __contains__(self, name: object) -> bool:
        return name in self._modules
