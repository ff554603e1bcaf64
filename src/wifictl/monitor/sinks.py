"""
Event sinks: console, append-only file and external hook process.
"""

import json
import logging
import os
import subprocess
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence, TextIO, Union

from wifictl.monitor.events import Event, EventKind

logger = logging.getLogger(__name__)

DEFAULT_HOOK_PATH = Path('~/.config/wifictl/hooks/on-event').expanduser()


class EventSink(ABC):
    """Receives every event emitted by the monitor."""

    @abstractmethod
    def handle(self, event: Event) -> None:
        """Deliver one event."""

    def close(self) -> None:
        """Release resources."""


class ConsoleSink(EventSink):
    """Writes `[timestamp] details` lines to a stream (stdout by default)."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout

    def handle(self, event: Event) -> None:
        self.stream.write(event.log_line() + "\n")
        self.stream.flush()


class FileSink(EventSink):
    """
    Appends event lines to a log file, flushing after each write.
    The parent directory must already exist.
    """

    DEFAULT_LOG_FILE = 'wifictl-events.log'

    def __init__(self, path: Union[str, Path] = DEFAULT_LOG_FILE):
        self.path = Path(path)
        self._fh = open(self.path, 'a', encoding='utf-8')
        logger.info(f"Logging events to {self.path}")

    def handle(self, event: Event) -> None:
        if self._fh is None:
            return
        self._fh.write(event.log_line() + "\n")
        self._fh.flush()

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None


class HookSink(EventSink):
    """
    Runs an external hook once per event with the event JSON on stdin.

    The call blocks until the hook exits, so a slow hook throttles the
    polling loop instead of piling up processes. A non-zero exit, a spawn
    failure or an expired timeout is logged as a warning and never raised.
    """

    # The synthetic start event is not part of the hook schema.
    SKIPPED_KINDS = (EventKind.MONITORING_STARTED,)

    def __init__(self, command: Union[str, Path, Sequence[str]],
                 timeout_seconds: Optional[float] = None):
        """
        Args:
            command: Hook executable, or argv list
            timeout_seconds: Kill the hook after this long (None: wait indefinitely)
        """
        if isinstance(command, (str, Path)):
            self.argv = [str(Path(command).expanduser())]
        else:
            self.argv = [str(arg) for arg in command]
        self.timeout_seconds = timeout_seconds

    def handle(self, event: Event) -> None:
        if event.kind in self.SKIPPED_KINDS:
            return
        payload = json.dumps(event.to_dict())
        try:
            completed = subprocess.run(
                self.argv,
                input=payload,
                text=True,
                capture_output=True,
                timeout=self.timeout_seconds
            )
        except subprocess.TimeoutExpired:
            logger.warning(
                f"Hook {self.argv[0]} timed out after {self.timeout_seconds}s and was killed")
            return
        except OSError as e:
            logger.warning(f"Hook execution error for {self.argv[0]}: {e}")
            return

        if completed.returncode != 0:
            logger.warning(
                f"Hook execution failed (exit code: {completed.returncode}) at {self.argv[0]}: "
                f"{completed.stderr.strip()}")
        else:
            logger.debug(f"Hook acknowledged {event.kind.value}")


def hook_is_executable(path: Union[str, Path]) -> bool:
    path = Path(path).expanduser()
    return path.is_file() and os.access(path, os.X_OK)


def build_sinks(monitor_config: dict, stream: Optional[TextIO] = None) -> List[EventSink]:
    """
    Assemble sinks from the 'monitor' config section.

    Keys: console (bool), log_file (path or None), hook (path or None),
    hook_timeout (seconds or None). Without an explicit hook, the default
    hook path is used when it exists and is executable.
    """
    sinks: List[EventSink] = []
    if monitor_config.get('console', True):
        sinks.append(ConsoleSink(stream))
    if monitor_config.get('log_file'):
        sinks.append(FileSink(Path(monitor_config['log_file']).expanduser()))

    hook = monitor_config.get('hook')
    if hook is None and hook_is_executable(DEFAULT_HOOK_PATH):
        hook = DEFAULT_HOOK_PATH
    if hook:
        if not hook_is_executable(hook):
            logger.warning(f"Hook {hook} is missing or not executable")
        sinks.append(HookSink(hook, monitor_config.get('hook_timeout')))
    return sinks
