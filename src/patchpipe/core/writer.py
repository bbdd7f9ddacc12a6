"""Materialize patched resources and dex files into a copy of the original APK."""

import logging
import os
import shutil
import zipfile
from pathlib import Path

from patchpipe.exceptions import ArtifactWriteError
from patchpipe.models.artifact import Artifact


class ArtifactWriter:
    """Writes one patched APK into the raw staging directory."""

    def __init__(self, raw_dir: Path, logger: logging.Logger):
        self.raw_dir = raw_dir
        self.logger = logger

    def write(self, artifact: Artifact) -> Path:
        """Write the patched APK for ``artifact``.

        The original file is copied byte for byte, then patched resources are
        overlaid at the archive root and, for the base APK only, the dex
        files are added as top-level entries.

        Args:
            artifact: APK to write.

        Returns:
            Path of the unaligned, unsigned APK under the raw directory.

        Raises:
            ArtifactWriteError: If copying or rewriting the archive fails.
        """
        output = self.raw_dir / artifact.name

        try:
            self.raw_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(artifact.file, output)
        except OSError as e:
            raise ArtifactWriteError(f"Failed to copy {artifact.file}: {e}") from e

        replacements: dict[str, Path | bytes] = {}
        stored: set[str] = set()

        if artifact.resources is not None:
            self.logger.info("Writing resources for %s", artifact.package_name)
            replacements.update(self._collect_resources(artifact.resources))
            stored.update(artifact.do_not_compress)

        if artifact.is_base and artifact.dex_files:
            self.logger.info("Writing dex files for %s", artifact.package_name)
            for dex in artifact.dex_files:
                replacements[dex.name] = dex.data

        if replacements or stored:
            self._rewrite(output, replacements, stored)

        return output

    @staticmethod
    def _collect_resources(resources: Path) -> dict[str, Path]:
        if not resources.is_dir():
            raise ArtifactWriteError(f"Resource directory not found: {resources}")

        entries = {}
        for path in sorted(resources.rglob("*")):
            if path.is_file():
                entries[path.relative_to(resources).as_posix()] = path
        return entries

    def _rewrite(
        self,
        archive: Path,
        replacements: dict[str, Path | bytes],
        stored: set[str],
    ) -> None:
        """Rebuild ``archive`` with entries replaced and ``stored`` entries uncompressed."""
        tmp = archive.with_name(f"{archive.name}.tmp")

        try:
            with zipfile.ZipFile(archive) as zin, zipfile.ZipFile(tmp, "w") as zout:
                for info in zin.infolist():
                    if info.filename in replacements:
                        continue
                    data = zin.read(info)
                    if info.filename in stored:
                        info.compress_type = zipfile.ZIP_STORED
                    zout.writestr(info, data)

                for name, source in replacements.items():
                    data = source.read_bytes() if isinstance(source, Path) else source
                    compress = (
                        zipfile.ZIP_STORED if name in stored else zipfile.ZIP_DEFLATED
                    )
                    zout.writestr(name, data, compress_type=compress)

            os.replace(tmp, archive)
        except (OSError, zipfile.BadZipFile) as e:
            tmp.unlink(missing_ok=True)
            raise ArtifactWriteError(f"Failed to write {archive.name}: {e}") from e

        self.logger.debug(
            "Rewrote %s (%d entries replaced, %d stored)",
            archive.name,
            len(replacements),
            len(stored),
        )
