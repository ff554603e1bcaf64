"""
Failure classification for connection attempts.
Maps raw OS command failures onto the typed error taxonomy by matching
known output signatures in priority order.
"""

import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from wifictl.errors import (
    NetworkAuthenticationError,
    NetworkConnectionError,
    NetworkNotFoundError,
    OsCommandError,
    WifiError,
    WifiInterfaceError,
)


@dataclass(frozen=True)
class FailureSignature:
    """A regex over command output and the error it classifies to."""
    pattern: str
    build: Callable[[str, str], WifiError]   # (ssid, raw reason) -> error
    name: str = ""

    def matches(self, output: str) -> bool:
        return re.search(self.pattern, output, re.IGNORECASE) is not None


def _reason_line(output: str, pattern: str) -> str:
    """Return the output line containing the match, or the whole output."""
    for line in output.splitlines():
        if re.search(pattern, line, re.IGNORECASE):
            return line.strip()
    return output.strip()


NOT_FOUND = FailureSignature(
    r"No network with SSID|Could not find network",
    lambda ssid, reason: NetworkNotFoundError(ssid),
    "not-found")

AUTHENTICATION = FailureSignature(
    r"Secrets were required|authentication (failed|rejected)|invalid password",
    lambda ssid, reason: NetworkAuthenticationError(ssid, reason),
    "authentication")

NO_DEVICE = FailureSignature(
    r"No suitable device",
    lambda ssid, reason: WifiInterfaceError(None, f". No suitable device for '{ssid}'"),
    "no-device")

ACTIVATION_FAILED = FailureSignature(
    r"Connection activation failed|Failed to join network",
    lambda ssid, reason: NetworkConnectionError(
        ssid, f"activation failed, network is likely out of range ({reason})"),
    "activation-failed")

DEFAULT_SIGNATURES: List[FailureSignature] = [
    NOT_FOUND,
    AUTHENTICATION,
    NO_DEVICE,
    ACTIVATION_FAILED,
]


def ordered_signatures(platform: Iterable[FailureSignature] = ()) -> List[FailureSignature]:
    """
    Defaults with platform signatures inserted before the generic
    activation-failed fallback, which would otherwise shadow them.
    """
    specific = [s for s in DEFAULT_SIGNATURES if s is not ACTIVATION_FAILED]
    return specific + list(platform) + [ACTIVATION_FAILED]


def classify_failure(
        error: OsCommandError,
        ssid: str,
        signatures: Iterable[FailureSignature] = DEFAULT_SIGNATURES) -> Optional[WifiError]:
    """
    Classify a command failure.

    Args:
        error: The raw command failure
        ssid: Network being connected to
        signatures: Ordered signatures; the first match wins

    Returns:
        Typed error, or None if the failure is not recognized
    """
    output = error.output or ""
    for signature in signatures:
        if signature.matches(output):
            return signature.build(ssid, _reason_line(output, signature.pattern))
    return None
