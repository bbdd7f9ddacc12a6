"""Copy finished APKs to the user's output directory."""

import logging
import shutil
from pathlib import Path

from patchpipe.exceptions import PublishError


def publish(apk: Path, output_dir: Path, logger: logging.Logger) -> Path:
    """Copy ``apk`` into ``output_dir``, replacing a file of the same name.

    Raises:
        PublishError: If the copy fails.
    """
    logger.info("Copying %s to output directory", apk.name)
    target = output_dir / apk.name

    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(apk, target)
    except OSError as e:
        raise PublishError(f"Failed to copy {apk.name} to {output_dir}: {e}") from e

    return target
