"""Signing of published artifacts."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from buildgate.errors import SigningError
from buildgate.registry import PUBLISHING_PLUGIN
from buildgate.utils.subprocess_runner import SubprocessError, run_subprocess

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from buildgate.registry import ModuleRegistry
    from buildgate.utils.subprocess_runner import SubprocessResult

logger = logging.getLogger(__name__)

SIGNATURE_SUFFIX = ".asc"


@dataclass(frozen=True)
class SignedArtifact:
    """An artifact and its detached signature."""

    artifact: Path
    signature: Path


class Signer(ABC):
    """Opaque signing service."""

    @abstractmethod
    def sign(self, artifact: Path) -> SignedArtifact:
        """Sign *artifact* and return where the signature was written.

        Raises:
            SigningError: the artifact could not be signed.
        """


class GpgSigner(Signer):
    """Create armored detached signatures with ``gpg``."""

    def __init__(
        self,
        *,
        gpg: str = "gpg",
        key_id: str = "",
        timeout: float = 60.0,
        runner: Callable[..., SubprocessResult] | None = None,
    ) -> None:
        self.gpg = gpg
        self.key_id = key_id
        self.timeout = timeout
        self._runner = runner or run_subprocess

    def command(self, artifact: Path, signature: Path) -> list[str]:
        cmd = [self.gpg, "--batch", "--yes", "--armor", "--detach-sign"]
        if self.key_id:
            cmd.extend(["--local-user", self.key_id])
        cmd.extend(["--output", str(signature), str(artifact)])
        return cmd

    def sign(self, artifact: Path) -> SignedArtifact:
        if not artifact.is_file():
            raise SigningError(f"Artifact not found: {artifact}")
        signature = artifact.with_name(artifact.name + SIGNATURE_SUFFIX)
        try:
            result = self._runner(self.command(artifact, signature), timeout=self.timeout)
        except SubprocessError as exc:
            raise SigningError(f"Signing {artifact.name} failed: {exc}") from exc
        if not result.success:
            raise SigningError(f"Signing {artifact.name} failed: {result.stderr.strip()}")
        logger.info("Signed %s", artifact)
        return SignedArtifact(artifact=artifact, signature=signature)


def sign_published_artifacts(
    registry: ModuleRegistry,
    artifacts: Mapping[str, Sequence[Path]],
    signer: Signer,
) -> list[SignedArtifact]:
    """Sign the artifacts of every module that publishes.

    *artifacts* maps module names to the files they produced.  Modules
    without the ``publishing`` plugin are skipped.
    """
    signed: list[SignedArtifact] = []
    for name, files in artifacts.items():
        module = registry.get(name)
        if not module.has_plugin(PUBLISHING_PLUGIN):
            logger.debug("Module %s does not publish, not signing %d file(s)", name, len(files))
            continue
        signed.extend(signer.sign(Path(f)) for f in files)
    return signed
