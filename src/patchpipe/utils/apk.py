"""APK file validation and package-name lookup."""

import re
from pathlib import Path

from patchpipe.exceptions import PatchPipeError, ProcessError, ToolNotFoundError
from patchpipe.utils.android_sdk import get_build_tool
from patchpipe.utils.process import run_tool

# APKs are ZIP files
ZIP_FILE_HEADER = b"PK\x03\x04"

_BADGING_PACKAGE = re.compile(r"package: name='([^']+)'")


def validate_apk_path(
    apk_path: Path,
    *,
    require_zip_header: bool = False,
    error_cls: type[PatchPipeError] = PatchPipeError,
) -> None:
    """Validate that an APK file path is usable as pipeline input.

    Args:
        apk_path: Path to the APK file to validate.
        require_zip_header: If True, also verify the file starts with ZIP header.
        error_cls: Exception class to raise on validation failure.

    Raises:
        PatchPipeError (or subclass): If validation fails.
    """
    if not apk_path.exists():
        raise error_cls(f"APK not found: {apk_path}")

    if not apk_path.is_file():
        raise error_cls(f"Not a file: {apk_path}")

    if apk_path.suffix.lower() != ".apk":
        raise error_cls(f"Not an APK file (expected .apk extension): {apk_path}")

    if require_zip_header:
        try:
            with apk_path.open("rb") as f:
                header = f.read(len(ZIP_FILE_HEADER))
        except OSError as e:
            raise error_cls(f"Failed to read APK header: {e}") from e

        if header != ZIP_FILE_HEADER:
            raise error_cls(
                f"Header mismatch in {apk_path.name}. "
                f"Expected: {ZIP_FILE_HEADER!r}, got: {header!r}"
            )


def _package_from_aapt(apk_path: Path) -> str | None:
    try:
        aapt = get_build_tool("aapt")
        result = run_tool([str(aapt), "dump", "badging", str(apk_path)], check=False)
    except (ToolNotFoundError, ProcessError):
        return None

    if not result.success:
        return None
    match = _BADGING_PACKAGE.search(result.stdout)
    return match.group(1) if match else None


def _package_from_manifest(apk_path: Path) -> str | None:
    from pyaxmlparser import APK  # type: ignore[import-untyped]

    try:
        apk = APK(str(apk_path))
    except Exception:
        # pyaxmlparser raises assorted errors on unparsable manifests
        return None
    return str(apk.package) if apk.package else None


def get_package_name(
    apk_path: Path,
    *,
    error_cls: type[PatchPipeError] = PatchPipeError,
) -> str:
    """Extract the package name declared by an APK.

    Tries aapt from the Android SDK, then pyaxmlparser, then the file name.

    Args:
        apk_path: Path to the APK file.
        error_cls: Exception class to raise on failure.

    Returns:
        Package name (e.g., 'com.example.app').

    Raises:
        PatchPipeError (or subclass): If package name cannot be extracted.
    """
    for lookup in (_package_from_aapt, _package_from_manifest):
        if package := lookup(apk_path):
            return package

    # Filename heuristic: com_example_app-1.2.apk -> com.example.app
    stem = re.sub(r"-\d+\.\d+.*$", "", apk_path.stem)
    if "_" in stem and "." not in stem:
        stem = stem.replace("_", ".")

    if "." not in stem:
        raise error_cls(
            f"Could not extract package name from {apk_path.name}. "
            f"Filename heuristic gave: '{stem}'. "
            "Please ensure aapt or pyaxmlparser is available."
        )

    return stem
