"""
OS command execution boundary.
Runs native network utilities as argv lists (no shell) and captures
their output, exit status and timing for the platform adapters.
"""

import logging
import shlex
import shutil
import subprocess
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from wifictl.errors import CommandNotFoundError, OsCommandError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a single OS command."""
    command: str
    exit_code: Optional[int]
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0

    @property
    def combined_output(self) -> str:
        return self.stdout + self.stderr

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    def __str__(self) -> str:
        return self.combined_output


class CommandExecutor:
    """Executes OS commands for the platform adapters."""

    DEFAULT_TIMEOUT_SECONDS = 30

    def __init__(self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
        self.timeout_seconds = timeout_seconds

    def run(
            self,
            args: Sequence[str],
            tolerated_exit_codes: Iterable[int] = (),
            raise_on_error: bool = True,
            timeout_seconds: Optional[float] = None) -> CommandResult:
        """
        Run a command and capture its output.

        Args:
            args: Command and arguments
            tolerated_exit_codes: Non-zero exit codes the caller treats as benign
            raise_on_error: Raise OsCommandError on any other non-zero exit
            timeout_seconds: Override the executor's default timeout

        Returns:
            CommandResult with stdout, stderr, exit code and duration

        Raises:
            CommandNotFoundError: If the executable is not installed
            OsCommandError: On an unexpected non-zero exit or timeout
        """
        argv: List[str] = ['' if arg is None else str(arg) for arg in args]
        command_text = shlex.join(argv)
        timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        logger.debug(f"Running: {command_text}")

        start = time.monotonic()
        try:
            completed = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                stdin=subprocess.DEVNULL,
                timeout=timeout
            )
        except FileNotFoundError:
            raise CommandNotFoundError([argv[0]])
        except subprocess.TimeoutExpired as e:
            output = (e.stdout or "") if isinstance(e.stdout, str) else ""
            raise OsCommandError(None, command_text, output + f"timed out after {timeout}s")

        result = CommandResult(
            command=command_text,
            exit_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            duration=time.monotonic() - start
        )
        logger.debug(
            f"Exit code {result.exit_code} after {result.duration:.3f}s: {command_text}")

        if (not result.succeeded and raise_on_error
                and result.exit_code not in set(tolerated_exit_codes)):
            raise OsCommandError(result.exit_code, command_text, result.combined_output)
        return result

    @staticmethod
    def command_available(command: str) -> bool:
        """Check whether an executable is on PATH."""
        return shutil.which(command) is not None

    def missing_commands(self, required: dict) -> List[str]:
        """
        Return install hints for every required command not on PATH.

        Args:
            required: Mapping of command name to install hint
        """
        return [
            f"{command} ({hint})" if hint else command
            for command, hint in required.items()
            if not self.command_available(command)
        ]
