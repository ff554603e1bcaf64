"""
Connection orchestration on top of a platform adapter.
Implements the connect state machine: idempotence check, radio on,
saved-profile resolution, credential update, direct-connect fallback
chain, failure classification and post-connect verification.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from wifictl.connection.classification import classify_failure, ordered_signatures
from wifictl.errors import (
    ConnectionVerificationError,
    InvalidNetworkNameError,
    NetworkNotFoundError,
    OsCommandError,
    WaitTimeoutError,
    WifiError,
)
from wifictl.wifi.adapter import NetworkProfile, SecurityKind, WifiAdapter

logger = logging.getLogger(__name__)

ALREADY_CONNECTED = 'already-connected'


@dataclass
class ConnectionOutcome:
    """Result of one orchestration attempt."""
    ssid: str
    succeeded: bool
    mechanism: Optional[str] = None
    used_saved_password: bool = False
    error: Optional[WifiError] = None

    @classmethod
    def success(cls, ssid: str, mechanism: str,
                used_saved_password: bool = False) -> 'ConnectionOutcome':
        return cls(ssid, True, mechanism, used_saved_password)

    @classmethod
    def failure(cls, ssid: str, error: WifiError) -> 'ConnectionOutcome':
        return cls(ssid, False, error=error)


def select_best_profile(
        profiles: Iterable[NetworkProfile], ssid: str) -> Optional[NetworkProfile]:
    """
    Pick the saved profile to use for an SSID.

    Candidates are profiles named exactly like the SSID, recording it as
    their SSID, or whose name starts with it ("Cafe", "Cafe 1", "Cafe-1").
    The most recently used wins; ties prefer the exact name match.
    """
    candidates = [
        profile for profile in profiles
        if profile.name == ssid or profile.ssid == ssid or profile.name.startswith(ssid)
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda p: (p.last_used, p.name == ssid))


class ConnectionOrchestrator:
    """
    Connects and disconnects through a WifiAdapter.

    One attempt per call. The only retry is the ordered fallback across
    the adapter's direct-connect strategies.
    """

    VERIFY_TIMEOUT_SECONDS = 15.0
    VERIFY_INTERVAL_SECONDS = 0.5

    def __init__(self, adapter: WifiAdapter,
                 verify_timeout_seconds: float = VERIFY_TIMEOUT_SECONDS):
        """
        Args:
            adapter: Platform adapter
            verify_timeout_seconds: How long to wait for the association to show up
        """
        self.adapter = adapter
        self.verify_timeout_seconds = verify_timeout_seconds

    def connect(self, ssid: str, password: Optional[str] = None) -> ConnectionOutcome:
        """
        Connect to a network.

        Args:
            ssid: Network name
            password: Password; omit for open or already saved networks

        Returns:
            Successful ConnectionOutcome

        Raises:
            InvalidNetworkNameError: Empty SSID
            NetworkNotFoundError, NetworkAuthenticationError, WifiInterfaceError,
            NetworkConnectionError: Classified command failures
            ConnectionVerificationError: Command succeeded but SSID does not match
            OsCommandError: Unrecognized command failures, unchanged
        """
        if ssid is not None:
            ssid = str(ssid)
        if not ssid:
            raise InvalidNetworkNameError(ssid)
        password = str(password) if password else None

        if self.adapter.connected_network() == ssid:
            logger.info(f"Already connected to {ssid}")
            return ConnectionOutcome.success(ssid, ALREADY_CONNECTED)

        self.adapter.set_radio(True)

        try:
            mechanism, used_saved_password = self._join(ssid, password)
        except OsCommandError as e:
            classified = classify_failure(e, ssid, self._signatures())
            if classified is None:
                raise
            if isinstance(classified, NetworkNotFoundError) and not classified.available:
                classified = NetworkNotFoundError(ssid, self._visible_network_names())
            logger.warning(f"Connection to {ssid} failed: {classified}")
            raise classified from e

        self._verify(ssid)
        logger.info(f"Connected to {ssid} via {mechanism}")
        return ConnectionOutcome.success(ssid, mechanism, used_saved_password)

    def attempt(self, ssid: str, password: Optional[str] = None) -> ConnectionOutcome:
        """
        Like connect(), but typed failures become a failed outcome.
        Unrecognized command failures still propagate.
        """
        try:
            return self.connect(ssid, password)
        except OsCommandError:
            raise
        except WifiError as e:
            return ConnectionOutcome.failure(ssid, e)

    def disconnect(self) -> None:
        """Disconnect; already disconnected is success."""
        self.adapter.disconnect()

    def _signatures(self) -> list:
        return ordered_signatures(self.adapter.failure_signatures())

    def _join(self, ssid: str, password: Optional[str]) -> Tuple[str, bool]:
        profile = self._best_profile(ssid)
        if profile is not None:
            stored = self._stored_password(profile.name)
            if not password or password == stored:
                self.adapter.activate_profile(profile.name)
                return f"profile:{profile.name}", bool(not password and stored)

            security = profile.security
            if security == SecurityKind.UNKNOWN:
                security = self.adapter.security_of(ssid)
            if security.supports_password:
                logger.info(f"Updating stored {security.value} credential of {profile.name!r}")
                self.adapter.update_profile_credential(profile.name, security, password)
                self.adapter.activate_profile(profile.name)
                return f"profile:{profile.name}", False
            logger.info(
                f"Security of {ssid} is {security.value}; connecting directly instead of "
                f"updating profile {profile.name!r}")

        return self._connect_direct(ssid, password), False

    def _connect_direct(self, ssid: str, password: Optional[str]) -> str:
        strategies = self.adapter.connect_strategies()
        last_error: Optional[OsCommandError] = None
        for strategy in strategies:
            try:
                strategy.connect(ssid, password)
                return strategy.name
            except OsCommandError as e:
                logger.warning(f"{strategy.name} failed to connect to {ssid}: {e.output.strip()}")
                last_error = e
        if last_error is None:
            raise OsCommandError(None, 'connect', f"No connect mechanism available for {ssid}")
        raise last_error

    def _best_profile(self, ssid: str) -> Optional[NetworkProfile]:
        try:
            profiles = self.adapter.list_saved_profiles()
        except OsCommandError as e:
            logger.warning(f"Could not list saved profiles: {e}")
            return None
        return select_best_profile(profiles, ssid)

    def _visible_network_names(self) -> List[str]:
        try:
            return self.adapter.available_network_names()
        except WifiError as e:
            logger.warning(f"Could not scan for available networks: {e}")
            return []

    def _stored_password(self, profile_name: str) -> Optional[str]:
        try:
            return self.adapter.profile_password(profile_name)
        except WifiError as e:
            logger.warning(f"Could not read stored password of {profile_name!r}: {e}")
            return None

    def _verify(self, ssid: str) -> None:
        try:
            self.adapter.waiter.wait_for(
                'associated',
                timeout_seconds=self.verify_timeout_seconds,
                interval_seconds=self.VERIFY_INTERVAL_SECONDS,
                ssid=ssid)
        except WaitTimeoutError:
            raise ConnectionVerificationError(ssid, self.adapter.connected_network())
