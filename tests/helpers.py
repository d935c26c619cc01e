"""Shared fakes for the LAN layer tests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from wizlight.lan.errors import NoNetworkInterface, TransportTimeout
from wizlight.lan.interfaces import LocalInterface
from wizlight.lan.protocol import Method, WizRequest, WizResponse

LAN = LocalInterface(name="eth0", address="192.168.1.10", netmask="255.255.255.0")


def lan_interface() -> LocalInterface:
    return LAN


def no_interface() -> LocalInterface:
    raise NoNetworkInterface()


@dataclass
class FakeBulb:
    """A simulated bulb answering on one address."""

    mac: str
    pilot: dict[str, Any] = field(default_factory=lambda: {"state": True, "dimming": 100, "temp": 4000})
    accept: bool = True        # setPilot acks report success
    apply: bool = True         # setPilot actually changes the pilot
    module_name: str = "ESP01_SHRGB1C_31"
    fw_version: str = "1.25.0"


class FakeTransport:
    """In-memory stand-in for ``UDPTransport``.

    Addresses without a bulb time out.  Every exchange and broadcast is
    recorded so tests can assert on network activity.
    """

    def __init__(self, latency: float = 0.0, broadcast_delay: float = 0.0):
        self.bulbs: dict[str, FakeBulb] = {}
        self.latency = latency
        self.broadcast_delay = broadcast_delay
        self.broadcast_answers = True
        self.exchanges: list[tuple[str, str]] = []
        self.timeouts: list[float | None] = []
        self.broadcasts: list[tuple[str, tuple[float, ...]]] = []
        self.broadcast_closed = 0
        self.in_flight = 0
        self.max_in_flight = 0

    def add_bulb(self, ip: str, mac: str, **kwargs: Any) -> FakeBulb:
        bulb = FakeBulb(mac=mac, **kwargs)
        self.bulbs[ip] = bulb
        return bulb

    def methods_sent(self, method: Method) -> list[str]:
        return [ip for ip, m in self.exchanges if m == method.value]

    async def exchange(self, ip: str, request: WizRequest, timeout: float | None = None) -> WizResponse:
        method = Method(request.method)
        self.exchanges.append((ip, method.value))
        self.timeouts.append(timeout)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.latency)
            bulb = self.bulbs.get(ip)
            if bulb is None:
                raise TransportTimeout(ip, timeout or 0.0)
            if method == Method.GET_SYSTEM_CONFIG:
                return WizResponse(ip, method.value, {
                    "mac": bulb.mac, "moduleName": bulb.module_name, "fwVersion": bulb.fw_version,
                })
            if method == Method.GET_PILOT:
                return WizResponse(ip, method.value, {"mac": bulb.mac, **bulb.pilot})
            if method == Method.SET_PILOT:
                if bulb.apply:
                    params = dict(request.params)
                    if "temp" in params:
                        for key in ("r", "g", "b"):
                            bulb.pilot.pop(key, None)
                    if "r" in params:
                        bulb.pilot.pop("temp", None)
                    bulb.pilot.update({k: v for k, v in params.items() if k not in ("w", "c")})
                return WizResponse(ip, method.value, {"success": bulb.accept})
            return WizResponse(ip, method.value, {"mac": bulb.mac})
        finally:
            self.in_flight -= 1

    async def broadcast(self, request: WizRequest, address: str, window: float, resend_at=()):
        self.broadcasts.append((address, tuple(resend_at)))
        try:
            await asyncio.sleep(self.broadcast_delay)
            if self.broadcast_answers:
                for ip, bulb in list(self.bulbs.items()):
                    yield WizResponse(ip, Method.REGISTRATION.value, {"mac": bulb.mac, "success": True})
            await asyncio.sleep(window)
        finally:
            self.broadcast_closed += 1
