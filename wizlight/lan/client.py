"""Client facade: the operations front-ends call.

Wires transport, discovery, coordinator, cache and executor from a
``WizConfig`` and exposes:

- ``resolve_address(mac)``          — cached-or-discovered IP of one bulb
- ``execute_verified(ip, command)`` — send, then verify within tolerance
- ``run(command, mac)``             — resolve + execute, tracking the phase
- ``enumerate_all()``               — every bulb on the LAN as ``mac → ip``
- ``describe_all()``                — enumeration plus module/firmware/state

Rendering, argument parsing and on-disk persistence belong to the caller; the
latter plugs in through a ``BindingStore``.
"""

from __future__ import annotations

import asyncio
import ipaddress
from dataclasses import dataclass

from loguru import logger

from wizlight.config.schema import WizConfig
from wizlight.lan.cache import AddressCache, BindingStore, MemoryBindingStore
from wizlight.lan.commands import Command
from wizlight.lan.coordinator import AddressBinding, DiscoveryCoordinator
from wizlight.lan.discovery import (
    BroadcastDiscovery,
    InterfaceFinder,
    ProgressCallback,
    SubnetScanDiscovery,
    Transport,
)
from wizlight.lan.errors import DeviceNotConfigured, TransportError, WizError
from wizlight.lan.executor import CommandExecutor, CommandOutcome, Phase
from wizlight.lan.interfaces import find_local_interface
from wizlight.lan.protocol import PilotState, SystemConfig, WizRequest, normalize_mac
from wizlight.lan.resilience import RetryPolicy
from wizlight.lan.transport import UDPTransport


@dataclass
class BulbInfo:
    """One row of a LAN enumeration."""

    ip: str
    mac: str
    module_name: str = "unknown"
    firmware: str = "?"
    state: PilotState | None = None


class WizClient:
    """Discovery and verified control of WiZ bulbs on the local network.

    Parameters
    ----------
    config:
        Settings; defaults to ``WizConfig()`` (reads ``WIZ_*`` env vars).
    store:
        Persistence collaborator for the learned address.  Defaults to an
        in-memory store seeded from ``config.ip`` / ``config.skip_broadcast``.
    transport:
        Override for the UDP transport (tests inject fakes here).
    interface_finder:
        Override for local interface lookup.
    """

    def __init__(
        self,
        config: WizConfig | None = None,
        store: BindingStore | None = None,
        transport: Transport | None = None,
        interface_finder: InterfaceFinder = find_local_interface,
    ):
        self.config = config or WizConfig()
        d = self.config.discovery
        c = self.config.command

        self.transport = transport or UDPTransport(port=self.config.port, timeout=c.timeout)
        self.store = store or MemoryBindingStore(self.config.ip, self.config.skip_broadcast)
        self.broadcast = BroadcastDiscovery(
            self.transport,
            window=d.broadcast_window,
            resend_after=d.broadcast_resend_after,
            interface_finder=interface_finder,
        )
        self.scan = SubnetScanDiscovery(
            self.transport,
            probe_timeout=d.scan_probe_timeout,
            batch_size=d.scan_batch_size,
            interface_finder=interface_finder,
        )
        self.coordinator = DiscoveryCoordinator(
            self.broadcast, self.scan, scan_delay=d.scan_delay, interface_finder=interface_finder,
        )
        self.cache = AddressCache(
            self.transport, self.coordinator, store=self.store, probe_timeout=d.cache_probe_timeout,
        )
        self.executor = CommandExecutor(
            self.transport, policy=RetryPolicy(attempts=c.retries, delay=c.retry_delay),
        )
        self.phase = Phase.IDLE

    # -- identity ------------------------------------------------------------

    def _require_mac(self, mac: str | None) -> str:
        mac = mac or self.config.mac
        if not mac:
            raise DeviceNotConfigured()
        return normalize_mac(mac)

    # -- core operations -----------------------------------------------------

    async def resolve(
        self, mac: str | None = None, on_progress: ProgressCallback | None = None,
    ) -> AddressBinding:
        """Return the current binding for *mac* (default: configured MAC)."""
        return await self.cache.resolve(self._require_mac(mac), on_progress=on_progress)

    async def resolve_address(
        self, mac: str | None = None, on_progress: ProgressCallback | None = None,
    ) -> str:
        return (await self.resolve(mac, on_progress)).ip

    async def execute_verified(self, ip: str, command: Command) -> CommandOutcome:
        return await self.executor.execute_verified(ip, command)

    async def run(
        self,
        command: Command,
        mac: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> CommandOutcome:
        """Resolve the bulb, snapshot its state, send *command* and verify it.

        ``phase`` ends in ``DONE`` (possibly degraded) or ``FAILED``; failures
        re-raise the typed error, or ``ValueError`` for a malformed MAC.
        """
        try:
            self._enter(Phase.RESOLVING)
            ip = await self.resolve_address(mac, on_progress)
            previous = await self.executor.read_previous(ip)
            self._enter(Phase.SENDING)
            await self.executor.send_command(ip, command)
            self._enter(Phase.VERIFYING)
            verified, current = await self.executor.verify(ip, command)
        except (WizError, ValueError):
            self._enter(Phase.FAILED)
            raise
        self._enter(Phase.DONE)
        if not verified:
            logger.warning("[Wiz/Client] {} sent to {} (unverified)", command.describe(), ip)
        return CommandOutcome(acked=True, verified=verified, previous=previous, current=current)

    def _enter(self, phase: Phase) -> None:
        logger.debug("[Wiz/Client] {} -> {}", self.phase.value, phase.value)
        self.phase = phase

    async def status(self, mac: str | None = None) -> PilotState:
        ip = await self.resolve_address(mac)
        return await self.executor.fetch_pilot(ip)

    # -- enumeration ---------------------------------------------------------

    async def enumerate_all(self, on_progress: ProgressCallback | None = None) -> dict[str, str]:
        """Every bulb on the LAN as ``mac → ip``; scans only if broadcast finds none."""
        found = await self.broadcast.find_all()
        if not found:
            logger.info("[Wiz/Client] broadcast found nothing, scanning subnet")
            found = await self.scan.find_all(on_progress)
        return found

    async def describe_all(self, on_progress: ProgressCallback | None = None) -> list[BulbInfo]:
        """Enumerate bulbs and fetch their system config and state, sorted by IP."""
        found = await self.enumerate_all(on_progress)
        bulbs = await asyncio.gather(*(self._describe(mac, ip) for mac, ip in found.items()))
        return sorted(bulbs, key=lambda b: ipaddress.IPv4Address(b.ip))

    async def _describe(self, mac: str, ip: str) -> BulbInfo:
        cfg_reply, pilot_reply = await asyncio.gather(
            self.transport.exchange(ip, WizRequest.get_system_config()),
            self.transport.exchange(ip, WizRequest.get_pilot()),
            return_exceptions=True,
        )
        info = BulbInfo(ip=ip, mac=mac)
        if not isinstance(cfg_reply, BaseException):
            cfg = SystemConfig.from_result(cfg_reply.result)
            info.module_name, info.firmware = cfg.module_name, cfg.fw_version
        elif not isinstance(cfg_reply, TransportError):
            raise cfg_reply
        if not isinstance(pilot_reply, BaseException):
            info.state = PilotState.from_result(pilot_reply.result)
        elif not isinstance(pilot_reply, TransportError):
            raise pilot_reply
        return info
