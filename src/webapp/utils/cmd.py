"""External command execution for docker, git, helm and kubectl."""

import shlex
import shutil
import subprocess
from typing import Any

from rich.console import Console

from webapp.model.validation import ValidationError

console = Console(stderr=True)

_show_commands = True


def set_show_commands(show: bool) -> None:
    """Echo commands before running them (turned off by ``--quiet``)."""
    global _show_commands
    _show_commands = show


def get_show_commands() -> bool:
    return _show_commands


def format_cmd(cmd: list[str]) -> str:
    """Render a command the way it would be typed in a shell."""
    return shlex.join(cmd)


def run_cmd(
    cmd: list[str],
    *,
    check: bool = True,
    timeout: int | None = None,
    show: bool | None = None,
    failure: str | None = None,
    failure_code: str = "COMMAND_FAILED",
    **kwargs: Any,
) -> subprocess.CompletedProcess[str]:
    """Run a command, capturing text output.

    Args:
        cmd: Command and arguments
        check: Raise CalledProcessError on non-zero exit (ignored with failure)
        timeout: Timeout in seconds
        show: Override the global echo setting
        failure: Message prefix; when given, errors are raised as
            ValidationError instead of subprocess exceptions
        failure_code: Error code for a timeout or non-zero exit
        **kwargs: Passed through to subprocess.run

    Returns:
        CompletedProcess result

    Raises:
        ValidationError: With failure set, PREREQUISITES_MISSING when the
            executable is not installed, failure_code otherwise
    """
    if show if show is not None else _show_commands:
        console.print(f"[dim]$ {format_cmd(cmd)}[/dim]", highlight=False)

    kwargs.setdefault("capture_output", True)
    kwargs.setdefault("text", True)

    if failure is None:
        return subprocess.run(cmd, check=check, timeout=timeout, **kwargs)

    try:
        result = subprocess.run(cmd, check=False, timeout=timeout, **kwargs)
    except FileNotFoundError as e:
        raise ValidationError("PREREQUISITES_MISSING", f"{cmd[0]} not found") from e
    except subprocess.TimeoutExpired as e:
        raise ValidationError(failure_code, f"{failure}: timed out after {timeout}s") from e

    if result.returncode != 0:
        output = (result.stderr or result.stdout or "").strip()
        raise ValidationError(failure_code, f"{failure}: {output}")
    return result


def missing_tools(*tools: str) -> list[str]:
    """Return the subset of executables not found on PATH."""
    return [tool for tool in tools if shutil.which(tool) is None]
