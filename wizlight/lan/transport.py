"""UDP transport for bulb request/response exchanges.

Each call binds its own ephemeral socket, sends one datagram and waits for the
first reply.  The socket lives only for the duration of the call and is closed
on every exit path (reply, timeout, socket error or cancellation).  There is
no retransmission here; retry policy belongs to the caller.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Sequence

from loguru import logger

from wizlight.lan.errors import MalformedResponse, TransportError, TransportTimeout
from wizlight.lan.protocol import WIZ_PORT, WizRequest, WizResponse

DEFAULT_TIMEOUT = 2.0


class _SingleReplyProtocol(asyncio.DatagramProtocol):
    """Resolves a future with the first datagram received."""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.reply: asyncio.Future[tuple[bytes, str]] = loop.create_future()

    def datagram_received(self, data: bytes, addr: tuple) -> None:
        if not self.reply.done():
            self.reply.set_result((data, addr[0]))

    def error_received(self, exc: Exception) -> None:
        if not self.reply.done():
            self.reply.set_exception(exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if not self.reply.done() and exc is not None:
            self.reply.set_exception(exc)


class _CollectingProtocol(asyncio.DatagramProtocol):
    """Queues every datagram received during a broadcast session."""

    def __init__(self) -> None:
        self.replies: asyncio.Queue[tuple[bytes, str]] = asyncio.Queue()

    def datagram_received(self, data: bytes, addr: tuple) -> None:
        self.replies.put_nowait((data, addr[0]))

    def error_received(self, exc: Exception) -> None:
        logger.debug("[Wiz/Transport] broadcast socket error: {}", exc)


class UDPTransport:
    """Single-shot UDP exchanges with WiZ bulbs.

    Parameters
    ----------
    port:
        Destination UDP port (default 38899).
    timeout:
        Default per-call reply timeout in seconds.
    """

    def __init__(self, port: int = WIZ_PORT, timeout: float = DEFAULT_TIMEOUT):
        self.port = port
        self.timeout = timeout

    async def exchange(
        self,
        ip: str,
        request: WizRequest,
        timeout: float | None = None,
    ) -> WizResponse:
        """Send *request* to *ip* and return the first reply.

        Raises ``TransportTimeout``, ``MalformedResponse`` or ``TransportError``.
        """
        timeout = self.timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        try:
            transport, protocol = await loop.create_datagram_endpoint(
                lambda: _SingleReplyProtocol(loop),
                local_addr=("0.0.0.0", 0),
            )
        except OSError as exc:
            raise TransportError(f"cannot open socket: {exc}") from exc

        try:
            transport.sendto(request.to_bytes(), (ip, self.port))
            data, source = await asyncio.wait_for(protocol.reply, timeout)
        except asyncio.TimeoutError:
            raise TransportTimeout(ip, timeout) from None
        except OSError as exc:
            raise TransportError(f"{ip}: {exc}") from exc
        finally:
            transport.close()

        logger.debug("[Wiz/Transport] {} {} -> {} bytes", request.method, ip, len(data))
        return WizResponse.from_bytes(data, source=source)

    async def broadcast(
        self,
        request: WizRequest,
        address: str,
        window: float,
        resend_at: Sequence[float] = (),
    ) -> AsyncIterator[WizResponse]:
        """Broadcast *request* and yield replies until *window* seconds elapse.

        The probe is sent again at each offset in *resend_at* to cover loss of
        the first packet.  Malformed replies are dropped.  Use with
        ``contextlib.aclosing`` when the consumer may stop early so the socket
        is released promptly.
        """
        loop = asyncio.get_running_loop()
        try:
            transport, protocol = await loop.create_datagram_endpoint(
                _CollectingProtocol,
                local_addr=("0.0.0.0", 0),
                allow_broadcast=True,
            )
        except OSError as exc:
            raise TransportError(f"cannot open broadcast socket: {exc}") from exc

        payload = request.to_bytes()
        target = (address, self.port)
        resends = [loop.call_later(delay, transport.sendto, payload, target) for delay in resend_at]
        deadline = loop.time() + window
        try:
            transport.sendto(payload, target)
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    return
                try:
                    data, source = await asyncio.wait_for(protocol.replies.get(), remaining)
                except asyncio.TimeoutError:
                    return
                try:
                    reply = WizResponse.from_bytes(data, source=source)
                except MalformedResponse as exc:
                    logger.debug("[Wiz/Transport] dropped reply from {}: {}", source, exc)
                    continue
                yield reply
        finally:
            for handle in resends:
                handle.cancel()
            transport.close()
