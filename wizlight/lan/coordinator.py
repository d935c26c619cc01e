"""Race broadcast discovery against the subnet scan.

Broadcast starts immediately; the scan starts only after a short grace delay
so a responsive broadcast path wins without paying the scan's latency.  The
first strategy to return a match wins and the other task is cancelled, which
closes its sockets and stops its progress reports.  Overall failure is
declared only once both strategies have failed.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from wizlight.lan.discovery import (
    BroadcastDiscovery,
    InterfaceFinder,
    ProgressCallback,
    SubnetScanDiscovery,
)
from wizlight.lan.errors import NoNetworkInterface, NotFoundOnNetwork, WizError
from wizlight.lan.interfaces import find_local_interface
from wizlight.lan.protocol import normalize_mac

SCAN_DELAY = 0.5


class DiscoveryMethod(str, Enum):
    """How an address binding was obtained."""

    CACHE = "cache"
    BROADCAST = "broadcast"
    SUBNET_SCAN = "subnet-scan"


@dataclass(frozen=True)
class AddressBinding:
    """A device identifier bound to its current network address."""

    mac: str
    ip: str
    method: DiscoveryMethod

    @property
    def used_subnet_scan(self) -> bool:
        return self.method == DiscoveryMethod.SUBNET_SCAN


class DiscoveryCoordinator:
    """Resolve a MAC to an address using whichever strategy answers first.

    Parameters
    ----------
    broadcast:
        Broadcast strategy.
    scan:
        Subnet-scan strategy.
    scan_delay:
        Seconds to give broadcast before the scan starts (default 0.5).
    interface_finder:
        Returns the local interface; checked before either strategy starts.
    """

    def __init__(
        self,
        broadcast: BroadcastDiscovery,
        scan: SubnetScanDiscovery,
        scan_delay: float = SCAN_DELAY,
        interface_finder: InterfaceFinder = find_local_interface,
    ):
        self.broadcast = broadcast
        self.scan = scan
        self.scan_delay = scan_delay
        self._find_interface = interface_finder

    async def resolve(
        self,
        mac: str,
        on_progress: ProgressCallback | None = None,
        skip_broadcast: bool = False,
    ) -> AddressBinding:
        """Return the binding for *mac*.

        Raises ``NoNetworkInterface`` or ``NotFoundOnNetwork``.
        """
        mac = normalize_mac(mac)
        iface = self._find_interface()

        if skip_broadcast:
            logger.info("[Wiz/Coordinator] skipping broadcast, scanning subnet for {}", mac)
            ip = await self.scan.find(mac, on_progress)
            return AddressBinding(mac, ip, DiscoveryMethod.SUBNET_SCAN)

        tasks = {
            asyncio.create_task(
                self.broadcast.find(mac, iface.broadcast), name=f"broadcast-{mac}",
            ): DiscoveryMethod.BROADCAST,
            asyncio.create_task(
                self._delayed_scan(mac, on_progress), name=f"scan-{mac}",
            ): DiscoveryMethod.SUBNET_SCAN,
        }
        failures = 0
        pending = set(tasks)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    exc = task.exception()
                    if exc is None:
                        binding = AddressBinding(mac, task.result(), tasks[task])
                        logger.info(
                            "[Wiz/Coordinator] {} resolved to {} via {}",
                            mac, binding.ip, binding.method.value,
                        )
                        return binding
                    if isinstance(exc, NoNetworkInterface) or not isinstance(exc, WizError):
                        raise exc
                    failures += 1
                    logger.debug(
                        "[Wiz/Coordinator] {} failed ({}/2): {}",
                        tasks[task].value, failures, exc,
                    )
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        raise NotFoundOnNetwork(mac, "broadcast and subnet scan exhausted")

    async def _delayed_scan(self, mac: str, on_progress: ProgressCallback | None) -> str:
        await asyncio.sleep(self.scan_delay)
        logger.debug("[Wiz/Coordinator] no broadcast answer yet, scanning subnet")
        return await self.scan.find(mac, on_progress)
