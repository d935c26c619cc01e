"""Failure kinds raised by the LAN layer.

Each fatal condition has its own type so callers can tell "no network" from
"bulb not found" from "bulb refused" and give targeted guidance.
"""

from __future__ import annotations


class WizError(Exception):
    """Base class for all wizlight LAN errors."""


class NoNetworkInterface(WizError):
    """No usable non-loopback IPv4 interface. Not retryable."""

    def __init__(self, message: str = "no network interface found"):
        super().__init__(message)


class DeviceNotConfigured(WizError):
    """No device identifier was supplied or configured."""

    def __init__(self, message: str = "no bulb configured"):
        super().__init__(message)


class TransportError(WizError):
    """A single exchange failed at the socket level."""


class TransportTimeout(TransportError):
    """No reply arrived within the per-call timeout."""

    def __init__(self, ip: str, timeout: float):
        self.ip = ip
        self.timeout = timeout
        super().__init__(f"no reply from {ip} within {timeout:.2f}s")


class MalformedResponse(TransportError):
    """A reply arrived but could not be parsed as a JSON object."""

    def __init__(self, data: bytes, reason: str = ""):
        self.data = data
        preview = data[:80].decode("utf-8", errors="replace")
        detail = f" ({reason})" if reason else ""
        super().__init__(f"malformed response{detail}: {preview}")


class EmptyResponse(TransportError):
    """A well-formed reply that carries an error or no device state."""

    def __init__(self, ip: str, reply: dict | None = None):
        self.ip = ip
        self.reply = reply or {}
        super().__init__(f"empty response from bulb at {ip}: {str(self.reply)[:60]}")


class MacMismatch(WizError):
    """A reply named a different device. Discarded by discovery, never surfaced."""

    def __init__(self, expected: str, actual: str | None):
        self.expected = expected
        self.actual = actual
        super().__init__(f"expected mac {expected}, got {actual or 'none'}")


class NotFoundOnNetwork(WizError):
    """Every discovery strategy was exhausted without a match."""

    def __init__(self, mac: str, detail: str = ""):
        self.mac = mac
        suffix = f": {detail}" if detail else ""
        super().__init__(f"bulb {mac} not found on network{suffix}")


class DeviceRejected(WizError):
    """The device acknowledged the command but reported failure. Not retried."""

    def __init__(self, ip: str, reply: dict | None = None):
        self.ip = ip
        self.reply = reply or {}
        super().__init__(f"bulb at {ip} rejected command: {str(self.reply)[:60]}")
