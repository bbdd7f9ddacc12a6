"""Subprocess wrapper for all external tool invocations."""

import subprocess
from dataclasses import dataclass

from patchpipe.exceptions import ProcessError


@dataclass
class ProcessResult:
    """Result of a subprocess execution."""

    command: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        """Check if the command succeeded."""
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Get stdout, stripping trailing whitespace."""
        return self.stdout.strip()

    @property
    def lines(self) -> list[str]:
        """Get stdout as a list of non-empty lines."""
        return [line for line in self.stdout.strip().split("\n") if line]


def run_tool(command: list[str], *, check: bool = True) -> ProcessResult:
    """Run an external tool command and capture its output.

    Args:
        command: Command and arguments to run.
        check: If True, raise ProcessError on non-zero exit.

    Returns:
        ProcessResult with command output.

    Raises:
        ProcessError: If check=True and command returns non-zero.
    """
    try:
        result = subprocess.run(command, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise ProcessError(command, -1, f"Command not found: {command[0]}") from e

    proc_result = ProcessResult(
        command=command,
        returncode=result.returncode,
        stdout=result.stdout,
        stderr=result.stderr,
    )

    if check and not proc_result.success:
        raise ProcessError(command, result.returncode, result.stderr)

    return proc_result


def spawn_tool(command: list[str], *, inherit_output: bool = False) -> subprocess.Popen:
    """Start a long-running tool without waiting for it.

    Args:
        command: Command and arguments to run.
        inherit_output: If True, stdout/stderr go to this process's streams,
            otherwise they are discarded.

    Returns:
        The running process handle. The caller owns termination.

    Raises:
        ProcessError: If the executable cannot be found.
    """
    target = None if inherit_output else subprocess.DEVNULL
    try:
        return subprocess.Popen(command, stdout=target, stderr=target)
    except FileNotFoundError as e:
        raise ProcessError(command, -1, f"Command not found: {command[0]}") from e


def terminate(process: subprocess.Popen, grace: float = 5.0) -> None:
    """Terminate a spawned process, killing it if it does not exit in time."""
    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=grace)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()
