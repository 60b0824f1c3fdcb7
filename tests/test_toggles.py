"""Tests for toggles.py: feature flag resolution."""

from __future__ import annotations

import logging

import pytest

from buildgate.config import FlagConfig
from buildgate.toggles import (
    CI_FLAG,
    SPOTBUGS_FLAG,
    FeatureFlag,
    FeatureToggleResolver,
    parse_bool,
)


class TestParseBool:
    @pytest.mark.parametrize("value", ["true", "TRUE", " yes ", "on", "1"])
    def test_truthy(self, value: str) -> None:
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", ["false", "No", "off", "0"])
    def test_falsy(self, value: str) -> None:
        assert parse_bool(value) is False

    @pytest.mark.parametrize("value", [None, "", "maybe", "2"])
    def test_unparsable(self, value: str | None) -> None:
        assert parse_bool(value) is None


class TestResolutionOrder:
    def test_default_when_unset(self) -> None:
        resolver = FeatureToggleResolver(environ={})
        assert resolver.resolve(SPOTBUGS_FLAG) is False
        assert resolver.explain(SPOTBUGS_FLAG) == (False, "default")

    def test_property_beats_environment(self) -> None:
        resolver = FeatureToggleResolver(
            properties={SPOTBUGS_FLAG: "false"},
            environ={"BUILDGATE_ENABLE_SPOTBUGS": "true"},
        )
        assert resolver.resolve(SPOTBUGS_FLAG) is False

    def test_environment_beats_default(self) -> None:
        resolver = FeatureToggleResolver(environ={"BUILDGATE_ENABLE_SPOTBUGS": "yes"})
        assert resolver.explain(SPOTBUGS_FLAG) == (True, "environment BUILDGATE_ENABLE_SPOTBUGS")

    def test_alias_property(self) -> None:
        resolver = FeatureToggleResolver(properties={"enableSpotbugs": "true"}, environ={})
        assert resolver.explain(SPOTBUGS_FLAG) == (True, "property enableSpotbugs")

    def test_empty_property_means_enabled(self) -> None:
        resolver = FeatureToggleResolver(properties={SPOTBUGS_FLAG: ""}, environ={})
        assert resolver.resolve(SPOTBUGS_FLAG) is True

    def test_unparsable_property_falls_through(self, caplog: pytest.LogCaptureFixture) -> None:
        resolver = FeatureToggleResolver(
            properties={SPOTBUGS_FLAG: "perhaps"},
            environ={"BUILDGATE_ENABLE_SPOTBUGS": "1"},
        )
        with caplog.at_level(logging.WARNING, logger="buildgate.toggles"):
            assert resolver.resolve(SPOTBUGS_FLAG) is True
        assert "perhaps" in caplog.text

    def test_unparsable_everywhere_uses_default(self) -> None:
        resolver = FeatureToggleResolver(
            properties={SPOTBUGS_FLAG: "perhaps"},
            environ={"BUILDGATE_ENABLE_SPOTBUGS": "sometimes"},
        )
        assert resolver.resolve(SPOTBUGS_FLAG) is False

    def test_unknown_flag_is_false(self) -> None:
        assert FeatureToggleResolver(environ={}).resolve("noSuchFlag") is False

    def test_unknown_flag_still_reads_properties(self) -> None:
        resolver = FeatureToggleResolver(properties={"adHoc": "true"}, environ={})
        assert resolver.resolve("adHoc") is True

    def test_result_is_cached(self) -> None:
        environ = {"BUILDGATE_ENABLE_SPOTBUGS": "true"}
        resolver = FeatureToggleResolver(environ=environ)
        assert resolver.resolve(SPOTBUGS_FLAG) is True
        environ["BUILDGATE_ENABLE_SPOTBUGS"] = "false"
        assert resolver.resolve(SPOTBUGS_FLAG) is True


class TestCiFlag:
    @pytest.mark.parametrize("var", ["CI", "GITHUB_ACTIONS", "GITLAB_CI", "CIRCLECI"])
    def test_ci_environment_variables(self, var: str) -> None:
        resolver = FeatureToggleResolver(environ={var: "true"})
        assert resolver.resolve(CI_FLAG) is True
        assert resolver.reports_for_humans() is False

    def test_local_run_reports_for_humans(self) -> None:
        assert FeatureToggleResolver(environ={}).reports_for_humans() is True

    def test_ci_property(self) -> None:
        resolver = FeatureToggleResolver(properties={"ci": ""}, environ={})
        assert resolver.reports_for_humans() is False

    def test_defaults_to_process_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CI", "true")
        assert FeatureToggleResolver().resolve(CI_FLAG) is True


class TestFromConfig:
    def test_configured_flag(self) -> None:
        resolver = FeatureToggleResolver.from_config(
            {"strictJavadoc": FlagConfig(default=True, env=["STRICT_JAVADOC"])},
            environ={},
        )
        assert resolver.resolve("strictJavadoc") is True

    def test_configured_flag_env(self) -> None:
        resolver = FeatureToggleResolver.from_config(
            {"strictJavadoc": FlagConfig(env=["STRICT_JAVADOC"], aliases=["strictDocs"])},
            properties={},
            environ={"STRICT_JAVADOC": "on"},
        )
        assert resolver.explain("strictJavadoc") == (True, "environment STRICT_JAVADOC")

    def test_extends_builtin_flag(self) -> None:
        resolver = FeatureToggleResolver.from_config(
            {SPOTBUGS_FLAG: FlagConfig(default=True, aliases=["spotbugs"])},
            properties={"enableSpotbugs": "false"},
            environ={},
        )
        flag = resolver.flags[SPOTBUGS_FLAG]
        assert flag.aliases == ("enableSpotbugs", "spotbugs")
        assert "BUILDGATE_ENABLE_SPOTBUGS" in flag.env_vars
        assert resolver.resolve(SPOTBUGS_FLAG) is False

    def test_builtin_flags_always_present(self) -> None:
        resolver = FeatureToggleResolver.from_config({}, environ={})
        assert {CI_FLAG, SPOTBUGS_FLAG} <= set(resolver.flags)


class TestFeatureFlag:
    def test_property_names_include_aliases(self) -> None:
        flag = FeatureFlag(name="x", aliases=("y", "z"))
        assert flag.property_names == ("x", "y", "z")
