"""Local IPv4 interface lookup.

Discovery is confined to the local broadcast domain: the broadcast address and
the /24 host list are both derived from the first active, non-loopback IPv4
interface reported by ``psutil``.
"""

from __future__ import annotations

import ipaddress
import socket
from dataclasses import dataclass

import psutil
from loguru import logger

from wizlight.lan.errors import NoNetworkInterface


@dataclass(frozen=True)
class LocalInterface:
    """One usable IPv4 interface."""

    name: str
    address: str
    netmask: str

    @property
    def broadcast(self) -> str:
        """Directed broadcast address of the interface's subnet."""
        net = ipaddress.IPv4Network(f"{self.address}/{self.netmask}", strict=False)
        return str(net.broadcast_address)

    def subnet_hosts(self) -> list[str]:
        """All 254 host addresses of the interface's /24, in ascending order."""
        net = ipaddress.IPv4Network(f"{self.address}/24", strict=False)
        return [str(host) for host in net.hosts()]


def find_local_interface() -> LocalInterface:
    """Return the first active non-loopback IPv4 interface.

    Raises ``NoNetworkInterface`` when there is none.
    """
    stats = psutil.net_if_stats()
    for name, addrs in psutil.net_if_addrs().items():
        stat = stats.get(name)
        if stat is not None and not stat.isup:
            continue
        for addr in addrs:
            if addr.family != socket.AF_INET or not addr.netmask:
                continue
            if ipaddress.IPv4Address(addr.address).is_loopback:
                continue
            iface = LocalInterface(name=name, address=addr.address, netmask=addr.netmask)
            logger.debug(
                "[Wiz/Net] using {} {}/{} (broadcast {})",
                name, addr.address, addr.netmask, iface.broadcast,
            )
            return iface
    raise NoNetworkInterface()
