"""Reuse a previously learned address before running discovery.

The cached address is checked with one short ``getPilot``; a reply naming the
expected MAC means the bulb is still there.  Otherwise the coordinator runs and
the new binding is handed to the persistence collaborator.  This module only
decides *what* to persist; the collaborator decides *how*.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from loguru import logger

from wizlight.lan.coordinator import AddressBinding, DiscoveryCoordinator, DiscoveryMethod
from wizlight.lan.discovery import ProgressCallback, Transport
from wizlight.lan.errors import TransportError
from wizlight.lan.protocol import WizRequest, normalize_mac

CACHE_PROBE_TIMEOUT = 0.5


@dataclass(frozen=True)
class StoredBinding:
    """What the persistence collaborator remembers between runs."""

    ip: str | None = None
    skip_broadcast: bool = False


class BindingStore(Protocol):
    """Persistence collaborator for the last known address."""

    def load_binding(self) -> StoredBinding | None:
        ...

    def save_binding(self, ip: str, skip_broadcast: bool) -> None:
        ...


class MemoryBindingStore:
    """In-process ``BindingStore``; the default when nothing is injected."""

    def __init__(self, ip: str | None = None, skip_broadcast: bool = False):
        self._binding = StoredBinding(ip or None, skip_broadcast)

    def load_binding(self) -> StoredBinding:
        return self._binding

    def save_binding(self, ip: str, skip_broadcast: bool) -> None:
        self._binding = StoredBinding(ip, skip_broadcast)


class AddressCache:
    """Validate and reuse a cached address, falling back to discovery.

    Parameters
    ----------
    transport:
        Transport used for the validation probe.
    coordinator:
        Discovery coordinator run on a cache miss.
    store:
        Optional persistence collaborator.
    probe_timeout:
        Timeout of the validation probe (default 0.5 s).
    """

    def __init__(
        self,
        transport: Transport,
        coordinator: DiscoveryCoordinator,
        store: BindingStore | None = None,
        probe_timeout: float = CACHE_PROBE_TIMEOUT,
    ):
        self.transport = transport
        self.coordinator = coordinator
        self.store = store
        self.probe_timeout = probe_timeout

    async def is_valid(self, ip: str, mac: str) -> bool:
        """Return ``True`` when *ip* still answers as *mac*."""
        try:
            reply = await self.transport.exchange(ip, WizRequest.get_pilot(), timeout=self.probe_timeout)
        except TransportError as exc:
            logger.debug("[Wiz/Cache] cached {} did not answer: {}", ip, exc)
            return False
        if reply.mac != mac:
            logger.info("[Wiz/Cache] cached {} now answers as {}, rediscovering", ip, reply.mac)
            return False
        return True

    async def resolve(
        self,
        mac: str,
        cached: StoredBinding | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> AddressBinding:
        """Return a binding for *mac*, reusing *cached* when it still holds.

        *cached* defaults to what the store loads.  Raises whatever the
        coordinator raises.
        """
        mac = normalize_mac(mac)
        if cached is None and self.store is not None:
            cached = self.store.load_binding()
        cached = cached or StoredBinding()

        if cached.ip and await self.is_valid(cached.ip, mac):
            logger.debug("[Wiz/Cache] reusing {} for {}", cached.ip, mac)
            return AddressBinding(mac, cached.ip, DiscoveryMethod.CACHE)

        binding = await self.coordinator.resolve(
            mac, on_progress, skip_broadcast=cached.skip_broadcast,
        )
        self._write_back(cached, binding)
        return binding

    def _write_back(self, cached: StoredBinding, binding: AddressBinding) -> None:
        needs_hint = binding.used_subnet_scan and not cached.skip_broadcast
        if binding.ip == cached.ip and not needs_hint:
            return
        skip = cached.skip_broadcast or binding.used_subnet_scan
        if self.store is not None:
            self.store.save_binding(binding.ip, skip)
        logger.info(
            "[Wiz/Cache] saved {} for {}{}",
            binding.ip, binding.mac, " (skip broadcast next time)" if skip else "",
        )
