"""Wire-level protocol for WiZ bulbs.

Every message is a single UDP datagram carrying one JSON object, sent to the
bulb on port 38899.  There is no framing, no session and no authentication.

Request format
--------------
{
    "method": "setPilot",          # see Method
    "params": {"state": true, ...} # method-specific body
}

Reply format
------------
{
    "method": "setPilot",
    "env": "pro",
    "result": {"success": true}    # or {"mac": "...", "state": ..., ...}
}

Failed calls carry ``{"error": {"code": ..., "message": ...}}`` instead of a
``result`` object.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from wizlight.lan.errors import MalformedResponse

WIZ_PORT = 38899

# Synthetic caller identity for the broadcast probe; bulbs answer with their
# own MAC without actually registering anything.
REGISTRATION_PARAMS: dict[str, Any] = {
    "phoneMac": "AAAAAAAAAAAA",
    "register": False,
    "phoneIp": "0.0.0.0",
    "id": "1",
}

_MAC_RE = re.compile(r"^[0-9a-f]{12}$")


class Method(str, Enum):
    """Recognised bulb methods."""

    # Broadcast discovery probe
    REGISTRATION = "registration"
    # Read current state
    GET_PILOT = "getPilot"
    # Mutate power / brightness / colour / temperature
    SET_PILOT = "setPilot"
    # Read MAC, firmware and module metadata
    GET_SYSTEM_CONFIG = "getSystemConfig"


# ---------------------------------------------------------------------------
# Identifier helpers
# ---------------------------------------------------------------------------

def normalize_mac(mac: str) -> str:
    """Return *mac* as 12 lowercase hex digits without separators.

    Raises ``ValueError`` if the input does not contain exactly 12 hex digits.
    """
    clean = re.sub(r"[^0-9a-fA-F]", "", mac or "").lower()
    if not _MAC_RE.match(clean):
        raise ValueError(f"invalid mac address: {mac!r}")
    return clean


def format_mac(mac: str) -> str:
    """Render a MAC as colon-separated pairs for display."""
    clean = re.sub(r"[^0-9a-fA-F]", "", mac or "")
    if len(clean) % 2 or not clean:
        return mac
    return ":".join(clean[i:i + 2] for i in range(0, len(clean), 2))


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

@dataclass
class WizRequest:
    """One outbound request."""

    method: str
    params: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"method": Method(self.method).value, "params": self.params}

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict(), separators=(",", ":")).encode()

    @classmethod
    def registration(cls) -> WizRequest:
        return cls(Method.REGISTRATION.value, dict(REGISTRATION_PARAMS))

    @classmethod
    def get_pilot(cls) -> WizRequest:
        return cls(Method.GET_PILOT.value)

    @classmethod
    def get_system_config(cls) -> WizRequest:
        return cls(Method.GET_SYSTEM_CONFIG.value)

    @classmethod
    def set_pilot(cls, params: dict[str, Any]) -> WizRequest:
        return cls(Method.SET_PILOT.value, dict(params))


@dataclass
class WizResponse:
    """One parsed reply and the address it came from."""

    source: str
    method: str = ""
    result: dict[str, Any] = field(default_factory=dict)
    error: dict[str, Any] | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_bytes(cls, data: bytes, source: str = "") -> WizResponse:
        """Parse a datagram. Raises ``MalformedResponse`` on anything but a JSON object."""
        try:
            obj = json.loads(data.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise MalformedResponse(data, type(exc).__name__) from exc
        if not isinstance(obj, dict):
            raise MalformedResponse(data, "not an object")

        result = obj.get("result")
        error = obj.get("error")
        return cls(
            source=source,
            method=str(obj.get("method", "")),
            result=result if isinstance(result, dict) else {},
            error=error if isinstance(error, dict) else None,
            raw=obj,
        )

    @property
    def mac(self) -> str | None:
        """The replying device's identifier, if the reply carries one."""
        mac = self.result.get("mac")
        if not isinstance(mac, str) or not mac:
            return None
        return mac.lower()

    @property
    def success(self) -> bool:
        """``True`` only when a ``setPilot`` ack explicitly reports success."""
        return self.error is None and self.result.get("success") is True


# ---------------------------------------------------------------------------
# Device state
# ---------------------------------------------------------------------------

RGB = tuple[int, int, int]


@dataclass
class PilotState:
    """Snapshot of a bulb's operational state.

    When ``state`` is ``False`` the remaining fields are not authoritative.
    """

    state: bool
    dimming: int | None = None
    temp: int | None = None
    color: RGB | None = None
    mac: str | None = None

    @classmethod
    def from_result(cls, result: dict[str, Any]) -> PilotState:
        r, g, b = result.get("r"), result.get("g"), result.get("b")
        color = None
        if all(isinstance(v, int) for v in (r, g, b)):
            color = (r, g, b)
        temp = result.get("temp")
        dimming = result.get("dimming")
        mac = result.get("mac")
        return cls(
            state=bool(result.get("state", False)),
            dimming=dimming if isinstance(dimming, int) else None,
            temp=temp if isinstance(temp, int) and temp > 0 else None,
            color=color,
            mac=mac.lower() if isinstance(mac, str) and mac else None,
        )

    def describe(self) -> str:
        if not self.state:
            return "off"
        parts = ["on"]
        if self.dimming is not None:
            parts.append(f"{self.dimming}%")
        if self.temp:
            parts.append(f"{self.temp}K")
        elif self.color is not None:
            parts.append("rgb({},{},{})".format(*self.color))
        return " ".join(parts)


@dataclass
class SystemConfig:
    """Identity and firmware metadata reported by ``getSystemConfig``."""

    mac: str | None
    module_name: str = "unknown"
    fw_version: str = "?"

    @classmethod
    def from_result(cls, result: dict[str, Any]) -> SystemConfig:
        mac = result.get("mac")
        return cls(
            mac=mac.lower() if isinstance(mac, str) and mac else None,
            module_name=str(result.get("moduleName") or "unknown"),
            fw_version=str(result.get("fwVersion") or "?"),
        )
