"""Feature toggles resolved from build properties, environment and defaults."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from buildgate.config import FlagConfig

logger = logging.getLogger(__name__)

_TRUE_VALUES = frozenset({"true", "yes", "on", "1"})
_FALSE_VALUES = frozenset({"false", "no", "off", "0"})

CI_FLAG = "ci"
SPOTBUGS_FLAG = "enableSpotBugs"


def parse_bool(value: str | None) -> bool | None:
    """Parse a boolean string; return None when *value* is unset or unparsable."""
    if value is None:
        return None
    text = value.strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    return None


@dataclass(frozen=True)
class FeatureFlag:
    """A named boolean gating optional build behaviour."""

    name: str
    aliases: tuple[str, ...] = ()
    """Other property names accepted for this flag."""
    env_vars: tuple[str, ...] = ()
    """Environment variables consulted, in order."""
    default: bool = False

    @property
    def property_names(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)


BUILTIN_FLAGS: tuple[FeatureFlag, ...] = (
    FeatureFlag(
        name=CI_FLAG,
        env_vars=("CI", "GITHUB_ACTIONS", "GITLAB_CI", "CIRCLECI"),
    ),
    FeatureFlag(
        name=SPOTBUGS_FLAG,
        aliases=("enableSpotbugs",),
        env_vars=("BUILDGATE_ENABLE_SPOTBUGS",),
    ),
)


@dataclass
class FeatureToggleResolver:
    """Resolve feature flags: explicit property, then environment, then default.

    ``resolve`` never raises.  An unparsable value is treated as absent so a
    typo in a toggle cannot abort an otherwise healthy build.  A property set
    with an empty value (``-PenableSpotBugs``) counts as ``true``.
    """

    properties: Mapping[str, str] = field(default_factory=dict)
    environ: Mapping[str, str] | None = None
    flags: dict[str, FeatureFlag] = field(default_factory=dict)
    _cache: dict[str, bool] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.environ is None:
            self.environ = dict(os.environ)
        for flag in BUILTIN_FLAGS:
            self.flags.setdefault(flag.name, flag)

    @classmethod
    def from_config(
        cls,
        features: Mapping[str, FlagConfig],
        properties: Mapping[str, str] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> FeatureToggleResolver:
        """Create a resolver with the flags declared in the ``features`` config section.

        A configured flag with the same name as a built-in one keeps the
        built-in aliases and environment variables and adds its own.
        """
        builtin = {flag.name: flag for flag in BUILTIN_FLAGS}
        flags: dict[str, FeatureFlag] = {}
        for name, cfg in features.items():
            base = builtin.get(name, FeatureFlag(name=name))
            flags[name] = FeatureFlag(
                name=name,
                aliases=tuple(dict.fromkeys((*base.aliases, *cfg.aliases))),
                env_vars=tuple(dict.fromkeys((*base.env_vars, *cfg.env))),
                default=cfg.default,
            )
        return cls(properties=dict(properties or {}), environ=environ, flags=flags)

    def resolve(self, flag_name: str) -> bool:
        """Return the value of *flag_name*; unknown flags default to ``False``."""
        if flag_name in self._cache:
            return self._cache[flag_name]
        flag = self.flags.get(flag_name, FeatureFlag(name=flag_name))
        value, source = self._resolve_flag(flag)
        logger.debug("Feature flag %s=%s (from %s)", flag_name, value, source)
        self._cache[flag_name] = value
        return value

    def explain(self, flag_name: str) -> tuple[bool, str]:
        """Return the value of *flag_name* together with where it came from."""
        flag = self.flags.get(flag_name, FeatureFlag(name=flag_name))
        return self._resolve_flag(flag)

    def reports_for_humans(self) -> bool:
        """Human-readable reports locally, machine-readable ones in CI."""
        return not self.resolve(CI_FLAG)

    def _resolve_flag(self, flag: FeatureFlag) -> tuple[bool, str]:
        for prop in flag.property_names:
            if prop not in self.properties:
                continue
            raw = self.properties[prop]
            if raw is None or not str(raw).strip():
                return True, f"property {prop}"
            parsed = parse_bool(str(raw))
            if parsed is not None:
                return parsed, f"property {prop}"
            logger.warning("Ignoring unparsable value %r for property %s", raw, prop)

        environ = self.environ or {}
        for var in flag.env_vars:
            if var not in environ:
                continue
            parsed = parse_bool(environ[var])
            if parsed is not None:
                return parsed, f"environment {var}"
            logger.warning("Ignoring unparsable value %r for environment variable %s", environ[var], var)

        return flag.default, "default"
