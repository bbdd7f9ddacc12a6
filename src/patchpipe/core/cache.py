"""Staging directories for the raw, aligned and signed APKs of a run."""

import logging
import shutil
from collections.abc import Iterable
from pathlib import Path

from patchpipe.exceptions import CacheError


class CacheDirectory:
    """Owns the cache root and its ``raw``, ``aligned`` and ``signed`` subdirectories."""

    def __init__(self, root: Path, logger: logging.Logger, low_storage: bool = False):
        """Initialize the cache manager.

        Args:
            root: Cache root directory. Wiped by ``prepare``.
            logger: Logger for cleanup reports.
            low_storage: Delete staging directories as soon as they are drained.
        """
        self.root = root.resolve()
        self.logger = logger
        self.low_storage = low_storage

    @property
    def raw(self) -> Path:
        return self.root / "raw"

    @property
    def aligned(self) -> Path:
        return self.root / "aligned"

    @property
    def signed(self) -> Path:
        return self.root / "signed"

    def prepare(self) -> None:
        """Delete any previous cache and create the staging directories.

        Raises:
            CacheError: If the old cache cannot be removed or the new one created.
        """
        if self.root.exists():
            self.logger.debug("Deleting previous cache %s", self.root)
            try:
                shutil.rmtree(self.root)
            except OSError as e:
                raise CacheError(f"Failed to delete cache directory {self.root}: {e}") from e

        # raw/ is created by the first write
        try:
            self.aligned.mkdir(parents=True)
            self.signed.mkdir(parents=True)
        except OSError as e:
            raise CacheError(f"Failed to create cache directory {self.root}: {e}") from e

    def delete(self, directory: Path, force: bool = False) -> bool:
        """Delete a directory under the low-storage policy.

        Args:
            directory: Directory to delete recursively.
            force: Delete even when low-storage mode is off.

        Returns:
            False if the deletion failed, True otherwise (including no-ops).
        """
        if not force and not self.low_storage:
            return True
        if not directory.exists():
            return True

        try:
            shutil.rmtree(directory)
        except OSError as e:
            self.logger.error("Failed to delete directory %s: %s", directory, e)
            return False

        self.logger.debug("Deleted %s", directory)
        return True

    def finalize(self, clean: bool, published: Iterable[Path] = (), deployed: bool = False) -> bool:
        """Apply the end-of-run cleanup policy.

        With ``clean`` the whole cache root goes, whatever the storage mode.
        Published outputs are also removed when they were deployed to a
        device, since the device keeps its own copy.

        Returns:
            True if everything that should have been deleted was deleted.
        """
        if not clean:
            return True

        ok = self.delete(self.root, force=True)

        if deployed:
            failed = []
            for output in published:
                try:
                    output.unlink(missing_ok=True)
                except OSError:
                    failed.append(output)
            if failed:
                self.logger.error(
                    "Failed to delete some output files: %s",
                    ", ".join(p.name for p in failed),
                )
                ok = False

        return ok
