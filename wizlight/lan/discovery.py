"""Locating bulbs on the local network.

Two strategies
--------------
1. **Broadcast** — one ``registration`` probe to the subnet broadcast address;
   every bulb in the broadcast domain answers with its MAC.  Fast, but some
   access points and mesh routers silently drop broadcasts.
2. **Subnet scan** — a unicast ``getSystemConfig`` probe to every host of the
   local /24, in fixed-width concurrent batches.  Slower, but works wherever
   unicast does.  The batch width caps the number of sockets in flight so the
   scan does not flood the LAN.

Both expose ``find()`` (one bulb by MAC) and ``find_all()`` (enumeration
primitive, ``mac → ip``).
"""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from typing import Callable, Protocol

from loguru import logger

from wizlight.lan.errors import MacMismatch, NotFoundOnNetwork, TransportError
from wizlight.lan.interfaces import LocalInterface, find_local_interface
from wizlight.lan.protocol import WizRequest, WizResponse, normalize_mac

# Callback receiving (processed_hosts, total_hosts) after each scan batch.
ProgressCallback = Callable[[int, int], None]
InterfaceFinder = Callable[[], LocalInterface]

BROADCAST_WINDOW = 3.0
BROADCAST_RESEND_AFTER = 1.0
SCAN_PROBE_TIMEOUT = 0.2
SCAN_BATCH_SIZE = 50


class Transport(Protocol):
    """What discovery needs from the transport layer."""

    async def exchange(self, ip: str, request: WizRequest, timeout: float | None = None) -> WizResponse:
        ...

    def broadcast(self, request: WizRequest, address: str, window: float, resend_at=()):
        ...


class BroadcastDiscovery:
    """Find bulbs with a broadcast ``registration`` probe.

    Parameters
    ----------
    transport:
        Transport providing ``broadcast()``.
    window:
        Seconds to collect replies (default 3).
    resend_after:
        Offset in seconds at which the probe is sent a second time (default 1).
    interface_finder:
        Returns the local interface when no broadcast address is given.
    """

    def __init__(
        self,
        transport: Transport,
        window: float = BROADCAST_WINDOW,
        resend_after: float = BROADCAST_RESEND_AFTER,
        interface_finder: InterfaceFinder = find_local_interface,
    ):
        self.transport = transport
        self.window = window
        self.resend_after = resend_after
        self._find_interface = interface_finder

    async def find(self, mac: str, broadcast_address: str | None = None) -> str:
        """Return the IP of the bulb whose MAC is *mac*.

        Raises ``NoNetworkInterface`` when no address is given and none can be
        derived, ``NotFoundOnNetwork`` when nothing matches within the window.
        """
        mac = normalize_mac(mac)
        if broadcast_address is None:
            broadcast_address = self._find_interface().broadcast

        logger.debug("[Wiz/Discovery] broadcasting to {} for {}", broadcast_address, mac)
        replies = self.transport.broadcast(
            WizRequest.registration(),
            broadcast_address,
            self.window,
            resend_at=(self.resend_after,),
        )
        async with aclosing(replies):
            async for reply in replies:
                if reply.mac == mac:
                    logger.info("[Wiz/Discovery] {} answered broadcast from {}", mac, reply.source)
                    return reply.source
                logger.trace("[Wiz/Discovery] ignoring {}", MacMismatch(mac, reply.mac))

        raise NotFoundOnNetwork(mac, f"no broadcast reply within {self.window:.1f}s")

    async def find_all(self, broadcast_address: str | None = None) -> dict[str, str]:
        """Collect every bulb answering within the window as ``mac → ip``."""
        if broadcast_address is None:
            broadcast_address = self._find_interface().broadcast

        found: dict[str, str] = {}
        resend_at = (self.resend_after, self.resend_after * 2)
        replies = self.transport.broadcast(
            WizRequest.registration(), broadcast_address, self.window, resend_at=resend_at,
        )
        async with aclosing(replies):
            async for reply in replies:
                if reply.mac:
                    if reply.mac not in found:
                        logger.info("[Wiz/Discovery] found {} @ {}", reply.mac, reply.source)
                    found[reply.mac] = reply.source
        return found


class SubnetScanDiscovery:
    """Find bulbs by unicast-probing every host of the local /24.

    Parameters
    ----------
    transport:
        Transport providing ``exchange()``.
    probe_timeout:
        Per-probe reply timeout in seconds (default 0.2).
    batch_size:
        Number of probes in flight at once (default 50).
    interface_finder:
        Returns the local interface whose /24 is scanned.
    """

    def __init__(
        self,
        transport: Transport,
        probe_timeout: float = SCAN_PROBE_TIMEOUT,
        batch_size: int = SCAN_BATCH_SIZE,
        interface_finder: InterfaceFinder = find_local_interface,
    ):
        self.transport = transport
        self.probe_timeout = probe_timeout
        self.batch_size = batch_size
        self._find_interface = interface_finder

    def _batches(self) -> list[list[str]]:
        hosts = self._find_interface().subnet_hosts()
        return [hosts[i:i + self.batch_size] for i in range(0, len(hosts), self.batch_size)]

    async def _probe(self, ip: str) -> WizResponse | None:
        try:
            return await self.transport.exchange(
                ip, WizRequest.get_system_config(), timeout=self.probe_timeout,
            )
        except TransportError:
            return None

    async def _probe_for(self, ip: str, mac: str) -> str | None:
        reply = await self._probe(ip)
        if reply is None:
            return None
        if reply.mac != mac:
            logger.trace("[Wiz/Scan] {}: {}", ip, MacMismatch(mac, reply.mac))
            return None
        return ip

    async def find(self, mac: str, on_progress: ProgressCallback | None = None) -> str:
        """Return the IP of the bulb whose MAC is *mac*.

        Stops issuing batches as soon as one batch yields a match.  Raises
        ``NoNetworkInterface`` or ``NotFoundOnNetwork``.
        """
        mac = normalize_mac(mac)
        batches = self._batches()
        total = sum(len(b) for b in batches)
        processed = 0
        logger.debug("[Wiz/Scan] scanning {} hosts for {}", total, mac)

        for batch in batches:
            results = await asyncio.gather(*(self._probe_for(ip, mac) for ip in batch))
            processed += len(batch)
            if on_progress:
                on_progress(processed, total)
            for ip in results:
                if ip is not None:
                    logger.info("[Wiz/Scan] {} found at {}", mac, ip)
                    return ip

        raise NotFoundOnNetwork(mac, f"no match among {total} hosts")

    async def find_all(self, on_progress: ProgressCallback | None = None) -> dict[str, str]:
        """Probe every host and return all answering bulbs as ``mac → ip``."""
        batches = self._batches()
        total = sum(len(b) for b in batches)
        processed = 0
        found: dict[str, str] = {}

        async def probe_into(ip: str) -> None:
            reply = await self._probe(ip)
            if reply is not None and reply.mac:
                found[reply.mac] = ip

        for batch in batches:
            await asyncio.gather(*(probe_into(ip) for ip in batch))
            processed += len(batch)
            if on_progress:
                on_progress(processed, total)

        logger.info("[Wiz/Scan] {} bulb(s) found in {} hosts", len(found), total)
        return found
