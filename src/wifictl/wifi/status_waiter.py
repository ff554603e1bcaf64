"""
Bounded waits for a target WiFi state.
"""

import logging
import time
from typing import Callable, Dict, Optional

from wifictl.errors import WaitTimeoutError

logger = logging.getLogger(__name__)


class StatusWaiter:
    """
    Polls an adapter until a target state is reached or a timeout expires.

    Targets:
    - on / off: radio power state
    - associated: connected to any network (or to `ssid` when given)
    - conn / disc: internet reachable / unreachable (requires a prober)
    """

    DEFAULT_INTERVAL_SECONDS = 0.5
    DEFAULT_TIMEOUT_SECONDS = 5.0

    def __init__(self, adapter, prober=None, sleep: Callable[[float], None] = time.sleep):
        self.adapter = adapter
        self.prober = prober
        self._sleep = sleep

    def _predicates(self, ssid: Optional[str]) -> Dict[str, Callable[[], bool]]:
        def associated() -> bool:
            current = self.adapter.connected_network()
            return current == ssid if ssid else current is not None

        predicates = {
            'on': lambda: self.adapter.radio_on(),
            'off': lambda: not self.adapter.radio_on(),
            'associated': associated,
        }
        if self.prober is not None:
            predicates['conn'] = lambda: self.prober.internet_available()
            predicates['disc'] = lambda: not self.prober.internet_available()
        return predicates

    def wait_for(
            self,
            target: str,
            timeout_seconds: Optional[float] = DEFAULT_TIMEOUT_SECONDS,
            interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
            ssid: Optional[str] = None) -> None:
        """
        Wait for the target state.

        Args:
            target: One of on, off, associated, conn, disc
            timeout_seconds: Give up after this long (None waits forever)
            interval_seconds: Sleep between checks
            ssid: Network name for the 'associated' target

        Raises:
            ValueError: Unknown target
            WaitTimeoutError: Target not reached in time
        """
        predicates = self._predicates(ssid)
        predicate = predicates.get(target)
        if predicate is None:
            raise ValueError(
                f"Target must be one of {sorted(predicates)}. Was: {target!r}")

        start = time.monotonic()
        waited = 0.0
        while not predicate():
            # Counts slept time too, for injected sleeps.
            elapsed = max(time.monotonic() - start, waited)
            if timeout_seconds is not None and elapsed >= timeout_seconds:
                raise WaitTimeoutError(target, timeout_seconds)
            logger.debug(f"Waiting {interval_seconds}s for {target}")
            self._sleep(interval_seconds)
            waited += interval_seconds
        logger.debug(f"Reached {target} after {time.monotonic() - start:.2f}s")
