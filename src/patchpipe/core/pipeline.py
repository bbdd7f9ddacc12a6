"""Build pipeline: write, align, sign, publish and install a set of patched APKs."""

import logging
from pathlib import Path

from patchpipe.core.aligner import ZipAligner
from patchpipe.core.cache import CacheDirectory
from patchpipe.core.publisher import publish
from patchpipe.core.session import DeviceSession
from patchpipe.core.signer import APKSigner
from patchpipe.core.writer import ArtifactWriter
from patchpipe.models.artifact import Artifact, ArtifactSet
from patchpipe.models.pipeline import (
    ArtifactRecord,
    BuildOptions,
    PipelineResult,
    SigningOptions,
)


class Pipeline:
    """Runs every stage over the whole artifact set before starting the next.

    A staging directory is only removed (in low-storage mode) once every
    artifact has been read out of it.
    """

    def __init__(self, options: BuildOptions, logger: logging.Logger):
        self.options = options
        self.logger = logger
        self.cache = CacheDirectory(
            options.cache_dir, logger, low_storage=options.low_storage
        )

    def resolve_signing(self, artifacts: ArtifactSet) -> SigningOptions | None:
        """Signing identity for the run, or None when mounting."""
        if self.options.mount:
            return None
        return self.options.signing.resolve(self.options.output_dir, artifacts.base.file)

    def write_all(self, artifacts: list[Artifact]) -> list[Path]:
        writer = ArtifactWriter(self.cache.raw, self.logger)
        return [writer.write(artifact) for artifact in artifacts]

    def align_all(self, raw_apks: list[Path]) -> list[Path]:
        aligner = ZipAligner(self.cache.aligned, self.logger)
        return [aligner.align(apk) for apk in raw_apks]

    def sign_all(self, aligned_apks: list[Path], signing: SigningOptions) -> list[Path]:
        signer = APKSigner(self.cache.signed, signing, self.logger)
        return [signer.sign(apk) for apk in aligned_apks]

    def publish_all(self, apks: list[Path]) -> list[Path]:
        return [publish(apk, self.options.output_dir, self.logger) for apk in apks]

    def install_all(
        self, session: DeviceSession, payloads: list[tuple[Artifact, Path]]
    ) -> dict[str, bool]:
        """Install every published APK, base first so splits have a package to join."""
        ordered = sorted(payloads, key=lambda pair: not pair[0].is_base)
        return {
            artifact.name: session.install(artifact, apk) for artifact, apk in ordered
        }

    def run(self, artifacts: ArtifactSet, session: DeviceSession | None = None) -> PipelineResult:
        """Run the full pipeline.

        Args:
            artifacts: Patched APKs for this run.
            session: Open device session when deploying.

        Returns:
            PipelineResult describing each APK's path through the stages.

        Raises:
            PatchPipeError: On the first failing stage. Already published
                files are left in place.
        """
        self.cache.prepare()

        ordered = artifacts.ordered()
        records = [ArtifactRecord(name=a.name, kind=a.kind.value) for a in ordered]
        signing = self.resolve_signing(artifacts)
        published: list[Path] = []
        completed = False

        try:
            raw = self.write_all(ordered)
            for record, path in zip(records, raw):
                record.raw = path

            aligned = self.align_all(raw)
            for record, path in zip(records, aligned):
                record.aligned = path
            self.cache.delete(self.cache.raw)

            if signing is None:
                self.logger.info("Skipping signing, mounted APKs need no signature")
                finished = aligned
            else:
                finished = self.sign_all(aligned, signing)
                for record, path in zip(records, finished):
                    record.signed = path
                self.cache.delete(self.cache.aligned)

            published = self.publish_all(finished)
            for record, path in zip(records, published):
                record.published = path
            if signing is None:
                self.cache.delete(self.cache.aligned)
            self.cache.delete(self.cache.signed)

            if session is not None:
                installed = self.install_all(session, list(zip(ordered, published)))
                for record in records:
                    record.installed = installed.get(record.name, False)
                if any(installed.values()):
                    session.start(artifacts.package_name)

            completed = True
        finally:
            cleaned = self.cache.finalize(
                self.options.clean,
                published if completed else (),
                deployed=completed and self.options.deploy is not None,
            )

        self.logger.info("Patching complete!")
        return PipelineResult(
            package_name=artifacts.package_name,
            artifacts=records,
            signed=signing is not None,
            keystore=signing.keystore if signing else None,
            deployed_to=self.options.deploy,
            cleaned=self.options.clean and cleaned,
        )
