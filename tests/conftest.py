"""Shared fixtures: a small multi-module Gradle project on disk."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import yaml

from buildgate.config import CONFIG_FILE_NAME

if TYPE_CHECKING:
    from pathlib import Path

_CLASS_BYTES = b"\xca\xfe\xba\xbe"


def _write(root: Path, rel: str, content: bytes) -> None:
    p = root / rel
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(content)


@pytest.fixture
def gradle_project(tmp_path: Path) -> Path:
    """Three modules: ``core`` and ``api`` are tested and published, ``samples`` is neither."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "settings.gradle.kts").write_text(
        'rootProject.name = "example"\ninclude("core", "api", "samples")\n', encoding="utf-8"
    )
    _write(root, "api/build.gradle.kts", b'dependencies { implementation(project(":core")) }\n')

    for module in ("core", "api"):
        _write(root, f"{module}/build/jacoco/test.exec", b"exec")
        _write(root, f"{module}/build/classes/java/main/module-info.class", _CLASS_BYTES)
        _write(
            root,
            f"{module}/build/classes/java/main/org/example/{module}/Impl.class",
            _CLASS_BYTES,
        )
        (root / module / "src" / "main" / "java").mkdir(parents=True)
    _write(root, "samples/build/classes/java/main/org/example/samples/Demo.class", _CLASS_BYTES)

    _write(root, "LICENSE", b"Apache License 2.0\n")
    _write(root, "NOTICE", b"Example Project\nCopyright 2012-2024 Example Org\n")
    _write(root, "lib/jacococli.jar", b"jar")

    config = {
        "project": {
            "group": "org.example",
            "version": "1.4.0",
            "publishing": ["core", "api"],
        },
        "coverage": {"jacoco_cli": "lib/jacococli.jar"},
        "release": {"first_year": 2012, "copyright_holder": "Example Org"},
    }
    (root / CONFIG_FILE_NAME).write_text(yaml.dump(config), encoding="utf-8")
    return root
