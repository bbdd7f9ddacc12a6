"""Load the output of an external patcher into an artifact set.

Layout of a patched tree, one directory per input APK (named after its stem)::

    <patched>/<apk stem>/resources/            files overlaid onto the archive root
    <patched>/<apk stem>/dex/*.dex             replacement dex files (base only)
    <patched>/<apk stem>/do_not_compress.txt   archive paths to store, one per line

Every piece is optional; a missing directory means nothing was patched.
"""

import logging
from pathlib import Path

from patchpipe.exceptions import ArtifactError
from patchpipe.models.artifact import Artifact, ArtifactKind, ArtifactSet, DexFile
from patchpipe.utils.apk import get_package_name, validate_apk_path

RESOURCES_DIR = "resources"
DEX_DIR = "dex"
DO_NOT_COMPRESS_FILE = "do_not_compress.txt"


class PatchedTreeLoader:
    """Builds the artifact set for a run from input APKs and a patched tree."""

    def __init__(self, patched_dir: Path | None, logger: logging.Logger):
        self.patched_dir = patched_dir
        self.logger = logger

    def _patch_dir(self, apk: Path) -> Path | None:
        if self.patched_dir is None:
            return None
        candidate = self.patched_dir / apk.stem
        return candidate if candidate.is_dir() else None

    @staticmethod
    def _read_do_not_compress(patch_dir: Path) -> list[str]:
        listing = patch_dir / DO_NOT_COMPRESS_FILE
        if not listing.is_file():
            return []
        lines = listing.read_text(encoding="utf-8").splitlines()
        return [line.strip() for line in lines if line.strip() and not line.startswith("#")]

    @staticmethod
    def _read_dex_files(patch_dir: Path) -> list[DexFile]:
        dex_dir = patch_dir / DEX_DIR
        if not dex_dir.is_dir():
            return []
        return [
            DexFile(name=path.name, data=path.read_bytes())
            for path in sorted(dex_dir.glob("*.dex"))
        ]

    def load_artifact(self, apk: Path, kind: ArtifactKind, package_name: str) -> Artifact:
        """Describe one input APK together with its patched pieces."""
        resources = None
        do_not_compress: list[str] = []
        dex_files: list[DexFile] = []

        patch_dir = self._patch_dir(apk)
        if patch_dir is not None:
            if (patch_dir / RESOURCES_DIR).is_dir():
                resources = patch_dir / RESOURCES_DIR
                do_not_compress = self._read_do_not_compress(patch_dir)
            if kind == ArtifactKind.BASE:
                dex_files = self._read_dex_files(patch_dir)
            elif (patch_dir / DEX_DIR).is_dir():
                self.logger.warning("Ignoring dex files for split %s", apk.name)
        else:
            self.logger.debug("No patched files for %s", apk.name)

        return Artifact(
            file=apk.resolve(),
            package_name=package_name,
            kind=kind,
            resources=resources,
            do_not_compress=do_not_compress,
            dex_files=dex_files,
        )

    def load(self, base: Path, splits: dict[ArtifactKind, Path] | None = None) -> ArtifactSet:
        """Build the artifact set for a base APK and its optional splits.

        Splits take the package name of the base APK.
        """
        splits = {kind: path for kind, path in (splits or {}).items() if kind != ArtifactKind.BASE}
        for path in (base, *splits.values()):
            validate_apk_path(path, require_zip_header=True, error_cls=ArtifactError)

        package_name = get_package_name(base, error_cls=ArtifactError)
        self.logger.debug("Base APK %s is %s", base.name, package_name)

        base_artifact = self.load_artifact(base, ArtifactKind.BASE, package_name)
        split_artifacts = [
            self.load_artifact(path, kind, package_name)
            for kind, path in splits.items()
        ]
        return ArtifactSet(base=base_artifact, splits=split_artifacts)
