"""Tests for broadcast discovery and the /24 subnet scan."""

from __future__ import annotations

import pytest

from tests.helpers import FakeTransport, lan_interface, no_interface
from wizlight.lan.discovery import BroadcastDiscovery, SubnetScanDiscovery
from wizlight.lan.errors import NoNetworkInterface, NotFoundOnNetwork
from wizlight.lan.protocol import Method

MAC = "a8bb50aabbcc"


# ---------------------------------------------------------------------------
# Broadcast
# ---------------------------------------------------------------------------

class TestBroadcastFind:
    @pytest.mark.asyncio
    async def test_match(self, fake_transport):
        fake_transport.add_bulb("192.168.1.50", "a8bb50000001")
        fake_transport.add_bulb("192.168.1.51", MAC)
        discovery = BroadcastDiscovery(fake_transport, window=0.5, interface_finder=lan_interface)
        assert await discovery.find(MAC) == "192.168.1.51"

    @pytest.mark.asyncio
    async def test_accepts_formatted_mac(self, fake_transport):
        fake_transport.add_bulb("192.168.1.51", MAC)
        discovery = BroadcastDiscovery(fake_transport, window=0.5, interface_finder=lan_interface)
        assert await discovery.find("A8:BB:50:AA:BB:CC") == "192.168.1.51"

    @pytest.mark.asyncio
    async def test_uses_interface_broadcast_and_resend(self, fake_transport):
        fake_transport.add_bulb("192.168.1.51", MAC)
        discovery = BroadcastDiscovery(fake_transport, window=0.5, interface_finder=lan_interface)
        await discovery.find(MAC)
        assert fake_transport.broadcasts == [("192.168.1.255", (1.0,))]

    @pytest.mark.asyncio
    async def test_explicit_address(self, fake_transport):
        fake_transport.add_bulb("10.0.0.5", MAC)
        discovery = BroadcastDiscovery(fake_transport, window=0.5, interface_finder=no_interface)
        assert await discovery.find(MAC, "10.0.0.255") == "10.0.0.5"
        assert fake_transport.broadcasts[0][0] == "10.0.0.255"

    @pytest.mark.asyncio
    async def test_stops_listening_on_match(self, fake_transport):
        fake_transport.add_bulb("192.168.1.51", MAC)
        discovery = BroadcastDiscovery(fake_transport, window=5.0, interface_finder=lan_interface)
        assert await discovery.find(MAC) == "192.168.1.51"
        assert fake_transport.broadcast_closed == 1

    @pytest.mark.asyncio
    async def test_only_other_bulbs(self, fake_transport):
        fake_transport.add_bulb("192.168.1.50", "a8bb50000001")
        discovery = BroadcastDiscovery(fake_transport, window=0.05, interface_finder=lan_interface)
        with pytest.raises(NotFoundOnNetwork) as info:
            await discovery.find(MAC)
        assert info.value.mac == MAC

    @pytest.mark.asyncio
    async def test_silence(self, fake_transport):
        fake_transport.broadcast_answers = False
        discovery = BroadcastDiscovery(fake_transport, window=0.05, interface_finder=lan_interface)
        with pytest.raises(NotFoundOnNetwork):
            await discovery.find(MAC)

    @pytest.mark.asyncio
    async def test_no_interface(self, fake_transport):
        discovery = BroadcastDiscovery(fake_transport, window=0.05, interface_finder=no_interface)
        with pytest.raises(NoNetworkInterface):
            await discovery.find(MAC)
        assert fake_transport.broadcasts == []


class TestBroadcastFindAll:
    @pytest.mark.asyncio
    async def test_collects_every_bulb(self, fake_transport):
        fake_transport.add_bulb("192.168.1.50", "a8bb50000001")
        fake_transport.add_bulb("192.168.1.51", MAC)
        discovery = BroadcastDiscovery(fake_transport, window=0.05, interface_finder=lan_interface)
        assert await discovery.find_all() == {
            "a8bb50000001": "192.168.1.50",
            MAC: "192.168.1.51",
        }

    @pytest.mark.asyncio
    async def test_resends_twice(self, fake_transport):
        discovery = BroadcastDiscovery(
            fake_transport, window=0.05, resend_after=0.5, interface_finder=lan_interface,
        )
        await discovery.find_all()
        assert fake_transport.broadcasts == [("192.168.1.255", (0.5, 1.0))]

    @pytest.mark.asyncio
    async def test_empty(self, fake_transport):
        discovery = BroadcastDiscovery(fake_transport, window=0.05, interface_finder=lan_interface)
        assert await discovery.find_all() == {}


# ---------------------------------------------------------------------------
# Subnet scan
# ---------------------------------------------------------------------------

class TestSubnetScanFind:
    @pytest.mark.asyncio
    async def test_stops_after_matching_batch(self):
        transport = FakeTransport(latency=0.01)
        transport.add_bulb("192.168.1.77", MAC)
        progress = []
        scan = SubnetScanDiscovery(transport, interface_finder=lan_interface)

        ip = await scan.find(MAC, on_progress=lambda done, total: progress.append((done, total)))

        assert ip == "192.168.1.77"
        assert progress == [(50, 254), (100, 254)]
        probed = transport.methods_sent(Method.GET_SYSTEM_CONFIG)
        assert len(probed) == 100
        assert probed[0] == "192.168.1.1"
        assert "192.168.1.101" not in probed
        assert transport.max_in_flight <= 50

    @pytest.mark.asyncio
    async def test_probe_timeout_passed_through(self, fake_transport):
        fake_transport.add_bulb("192.168.1.2", MAC)
        scan = SubnetScanDiscovery(fake_transport, probe_timeout=0.2, interface_finder=lan_interface)
        await scan.find(MAC)
        assert set(fake_transport.timeouts) == {0.2}

    @pytest.mark.asyncio
    async def test_first_match_in_host_order(self, fake_transport):
        fake_transport.add_bulb("192.168.1.30", MAC)
        fake_transport.add_bulb("192.168.1.20", MAC)
        scan = SubnetScanDiscovery(fake_transport, interface_finder=lan_interface)
        assert await scan.find(MAC) == "192.168.1.20"

    @pytest.mark.asyncio
    async def test_ignores_other_bulbs(self, fake_transport):
        fake_transport.add_bulb("192.168.1.5", "a8bb50000001")
        fake_transport.add_bulb("192.168.1.200", MAC)
        scan = SubnetScanDiscovery(fake_transport, interface_finder=lan_interface)
        assert await scan.find(MAC) == "192.168.1.200"

    @pytest.mark.asyncio
    async def test_not_found_after_full_sweep(self, fake_transport):
        progress = []
        scan = SubnetScanDiscovery(fake_transport, interface_finder=lan_interface)
        with pytest.raises(NotFoundOnNetwork):
            await scan.find(MAC, on_progress=lambda done, total: progress.append(done))
        assert len(fake_transport.exchanges) == 254
        assert progress == [50, 100, 150, 200, 250, 254]

    @pytest.mark.asyncio
    async def test_custom_batch_size(self):
        transport = FakeTransport(latency=0.01)
        transport.add_bulb("192.168.1.40", MAC)
        scan = SubnetScanDiscovery(transport, batch_size=20, interface_finder=lan_interface)
        await scan.find(MAC)
        assert len(transport.exchanges) == 40
        assert transport.max_in_flight <= 20

    @pytest.mark.asyncio
    async def test_no_interface(self, fake_transport):
        scan = SubnetScanDiscovery(fake_transport, interface_finder=no_interface)
        with pytest.raises(NoNetworkInterface):
            await scan.find(MAC)


class TestSubnetScanFindAll:
    @pytest.mark.asyncio
    async def test_collects_every_bulb(self, fake_transport):
        fake_transport.add_bulb("192.168.1.5", "a8bb50000001")
        fake_transport.add_bulb("192.168.1.250", MAC)
        progress = []
        scan = SubnetScanDiscovery(fake_transport, interface_finder=lan_interface)
        found = await scan.find_all(on_progress=lambda done, total: progress.append(done))
        assert found == {"a8bb50000001": "192.168.1.5", MAC: "192.168.1.250"}
        assert progress[-1] == 254
        assert len(fake_transport.exchanges) == 254
