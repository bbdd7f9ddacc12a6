"""Locate Android SDK build-tools binaries (zipalign, apksigner, aapt)."""

import os
import platform
import shutil
from pathlib import Path

from patchpipe.exceptions import ToolNotFoundError
from patchpipe.utils.deps import TOOL_INSTALL_HINTS

SDK_ENV_VARS = ("ANDROID_HOME", "ANDROID_SDK_ROOT")

# Per-OS install locations, relative to the home directory unless absolute
_COMMON_SDK_LOCATIONS: dict[str, list[str]] = {
    "Darwin": ["Library/Android/sdk", "/opt/android-sdk"],
    "Linux": ["Android/Sdk", "android-sdk", "/opt/android-sdk"],
    "Windows": ["AppData/Local/Android/Sdk", "C:/Android/sdk"],
}

# Windows ships some build tools as batch wrappers
_WINDOWS_SUFFIXES = {"zipalign": ".exe", "aapt": ".exe", "apksigner": ".bat"}


def get_android_home() -> Path | None:
    """Get Android SDK root directory.

    Checks environment variables first, then common installation locations.

    Returns:
        Path to Android SDK root, or None if not found.
    """
    for env_var in SDK_ENV_VARS:
        if value := os.environ.get(env_var):
            path = Path(value)
            if path.is_dir():
                return path

    home = Path.home()
    for location in _COMMON_SDK_LOCATIONS.get(platform.system(), []):
        candidate = Path(location)
        if not candidate.is_absolute():
            candidate = home / candidate
        if candidate.is_dir():
            return candidate

    return None


def _parse_version(name: str) -> tuple[int, ...] | None:
    try:
        return tuple(int(x) for x in name.split("."))
    except ValueError:
        return None


def get_build_tools_path(min_version: str = "30.0.0") -> Path:
    """Get the newest Android build-tools directory.

    Args:
        min_version: Minimum required version (e.g., "30.0.0").

    Returns:
        Path to build-tools directory (e.g., .../build-tools/35.0.0/).

    Raises:
        ToolNotFoundError: If Android SDK or suitable build-tools not found.
    """
    android_home = get_android_home()
    if not android_home:
        raise ToolNotFoundError(
            "Android SDK",
            "Set ANDROID_HOME environment variable or install Android SDK",
        )

    build_tools_dir = android_home / "build-tools"
    if not build_tools_dir.is_dir():
        raise ToolNotFoundError(
            "Android build-tools",
            f"Install build-tools via Android SDK Manager in {android_home}",
        )

    minimum = _parse_version(min_version) or ()
    versions: list[tuple[tuple[int, ...], Path]] = []
    for version_dir in build_tools_dir.iterdir():
        if not version_dir.is_dir():
            continue
        version = _parse_version(version_dir.name)
        if version is not None and version >= minimum:
            versions.append((version, version_dir))

    if not versions:
        raise ToolNotFoundError(
            f"Android build-tools >= {min_version}",
            f"Install build-tools via Android SDK Manager in {android_home}",
        )

    return max(versions)[1]


def get_build_tool(tool: str) -> Path:
    """Resolve a build-tools binary, falling back to PATH.

    Args:
        tool: Tool name, e.g. "zipalign" or "apksigner".

    Returns:
        Path to the executable.

    Raises:
        ToolNotFoundError: If the tool is neither in build-tools nor on PATH.
    """
    try:
        build_tools = get_build_tools_path()
    except ToolNotFoundError:
        on_path = shutil.which(tool)
        if on_path:
            return Path(on_path)
        raise

    binary = build_tools / tool
    if platform.system() == "Windows":
        binary = build_tools / f"{tool}{_WINDOWS_SUFFIXES.get(tool, '.exe')}"

    if not binary.is_file():
        raise ToolNotFoundError(
            tool,
            f"Expected at {binary}. {TOOL_INSTALL_HINTS.get(tool, '')}".strip(),
        )

    return binary


def get_zipalign() -> Path:
    """Get path to zipalign binary."""
    return get_build_tool("zipalign")


def get_apksigner() -> Path:
    """Get path to apksigner binary."""
    return get_build_tool("apksigner")
