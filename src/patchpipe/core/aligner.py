"""Zip alignment stage backed by the SDK's zipalign."""

import logging
from pathlib import Path

from patchpipe.exceptions import APKAlignError, PatchPipeError
from patchpipe.utils.android_sdk import get_zipalign
from patchpipe.utils.process import run_tool


class ZipAligner:
    """Aligns raw APKs into the aligned staging directory."""

    # 4-byte alignment for stored entries, 16 KiB pages for native libraries
    ALIGNMENT = "4"
    PAGE_SIZE_KB = "16"

    def __init__(self, aligned_dir: Path, logger: logging.Logger):
        self.aligned_dir = aligned_dir
        self.logger = logger

    def align(self, raw_apk: Path) -> Path:
        """Align ``raw_apk`` into ``aligned_dir`` under the same name.

        Aligning an already aligned APK yields an equivalent APK.

        Raises:
            APKAlignError: If zipalign fails or produces no file.
        """
        self.logger.info("Aligning %s", raw_apk.name)
        output = self.aligned_dir / raw_apk.name

        try:
            zipalign = get_zipalign()
            cmd = [
                str(zipalign),
                "-f",
                "-P",
                self.PAGE_SIZE_KB,
                self.ALIGNMENT,
                str(raw_apk),
                str(output),
            ]
            run_tool(cmd, check=True)
        except PatchPipeError as e:
            raise APKAlignError(f"Failed to align {raw_apk.name}: {e}") from e

        if not output.is_file():
            raise APKAlignError(f"Alignment completed but APK not found: {output}")

        return output
