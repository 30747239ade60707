"""
Subprocess invocation for external build tools.

Output is not captured: configure/make output streams straight to the
terminal, as it does when a developer runs the commands by hand.
"""

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

from ndkforge.core.exceptions import CommandError

logger = logging.getLogger(__name__)


def format_command(command: Sequence[Union[str, Path]]) -> str:
    return " ".join(shlex.quote(str(arg)) for arg in command)


def run_command(
    command: Sequence[Union[str, Path]],
    cwd: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
    description: str = "",
) -> None:
    """
    Run an external command and raise if it fails.

    Args:
        command: Program and arguments
        cwd: Working directory
        env: Complete environment for the child (``None`` inherits ours)
        description: Short label for error messages (e.g. 'zlib: configure')

    Raises:
        CommandError: If the program is missing or exits nonzero
    """
    args = [str(arg) for arg in command]
    label = description or Path(args[0]).name

    logger.debug(f"Running ({cwd or '.'}): {format_command(args)}")

    try:
        result = subprocess.run(args, cwd=cwd, env=dict(env) if env is not None else None)
    except FileNotFoundError as e:
        raise CommandError(args, 127, f"{label} (program not found)") from e

    if result.returncode != 0:
        logger.error(f"{label} failed with exit code {result.returncode}")
        raise CommandError(args, result.returncode, label)
