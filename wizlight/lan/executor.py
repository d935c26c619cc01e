"""Send commands with bounded retry, then verify the bulb converged.

Lifecycle of one operation
--------------------------
``IDLE → RESOLVING → SENDING (retry sub-loop) → VERIFYING → DONE | FAILED``

- Transport failures (timeouts, garbled replies) are retried with a flat delay;
  the last one surfaces unchanged once attempts run out.
- An ack that reports failure raises ``DeviceRejected`` at once; retrying a
  rejected command risks duplicate side effects and rarely helps.
- Verification is a separate re-query.  Missing the tolerance never fails the
  operation: the outcome is "acked, unverified" (``degraded``).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from wizlight.lan.commands import Command
from wizlight.lan.discovery import Transport
from wizlight.lan.errors import DeviceRejected, EmptyResponse, TransportError
from wizlight.lan.protocol import PilotState, WizRequest, WizResponse
from wizlight.lan.resilience import DEFAULT_RETRY, RetryPolicy, retry_exchange


class Phase(str, Enum):
    """Operation lifecycle phases."""
    IDLE = "idle"
    RESOLVING = "resolving"
    SENDING = "sending"
    VERIFYING = "verifying"
    DONE = "done"
    FAILED = "failed"


@dataclass
class CommandOutcome:
    """Result of a sent command.

    An acked but unverified command counts as success; ``degraded`` flags it.
    """
    acked: bool
    verified: bool
    previous: PilotState | None = None
    current: PilotState | None = None

    @property
    def degraded(self) -> bool:
        return self.acked and not self.verified


class CommandExecutor:
    """Retrying ``setPilot`` / ``getPilot`` client for one bulb address.

    Parameters
    ----------
    transport:
        Transport providing ``exchange()``.
    policy:
        Retry policy (default 3 attempts, 0.5 s apart).
    timeout:
        Per-attempt reply timeout; ``None`` uses the transport default.
    """

    def __init__(
        self,
        transport: Transport,
        policy: RetryPolicy = DEFAULT_RETRY,
        timeout: float | None = None,
    ):
        self.transport = transport
        self.policy = policy
        self.timeout = timeout

    async def send_with_retry(
        self,
        ip: str,
        request: WizRequest,
        policy: RetryPolicy | None = None,
    ) -> WizResponse:
        """Exchange *request* with *ip*, retrying transport failures."""
        return await retry_exchange(
            self.transport.exchange, ip, request, self.timeout,
            policy=policy or self.policy,
            label=f"{request.method}→{ip}",
        )

    async def send_command(self, ip: str, command: Command) -> WizResponse:
        """Send *command*; raises ``DeviceRejected`` if the ack reports failure."""
        reply = await self.send_with_retry(ip, command.to_request())
        if not reply.success:
            logger.warning("[Wiz/Executor] {} rejected {}: {}", ip, command.kind.value, reply.raw)
            raise DeviceRejected(ip, reply.raw)
        logger.debug("[Wiz/Executor] {} acked {}", ip, command.kind.value)
        return reply

    async def fetch_pilot(self, ip: str) -> PilotState:
        """Read the current state of *ip*.

        Raises ``EmptyResponse`` when the reply carries an error or no ``state``.
        """
        reply = await self.send_with_retry(ip, WizRequest.get_pilot())
        if reply.error is not None or "state" not in reply.result:
            raise EmptyResponse(ip, reply.raw)
        return PilotState.from_result(reply.result)

    async def read_previous(self, ip: str) -> PilotState | None:
        """Best-effort snapshot taken before a mutation; ``None`` if unreadable."""
        try:
            return await self.fetch_pilot(ip)
        except TransportError as exc:
            logger.debug("[Wiz/Executor] could not read current state of {}: {}", ip, exc)
            return None

    async def verify(self, ip: str, command: Command) -> tuple[bool, PilotState | None]:
        """Re-query *ip* and apply *command*'s tolerance.

        Returns ``(verified, snapshot)``; an unreadable bulb is unverified,
        never an error.
        """
        try:
            pilot = await self.fetch_pilot(ip)
        except TransportError as exc:
            logger.debug("[Wiz/Executor] could not re-read {}: {}", ip, exc)
            return False, None
        return command.verification.check(pilot), pilot

    async def execute_verified(self, ip: str, command: Command) -> CommandOutcome:
        """Read the previous state, send *command*, then verify it.

        Raises the final ``TransportError`` if every send attempt fails and
        ``DeviceRejected`` if the bulb refuses.
        """
        previous = await self.read_previous(ip)
        await self.send_command(ip, command)
        verified, current = await self.verify(ip, command)
        if verified:
            logger.info("[Wiz/Executor] {} now {}", ip, current.describe() if current else "?")
        else:
            logger.warning(
                "[Wiz/Executor] {} acked {} but reports {} (unverified)",
                ip, command.describe(), current.describe() if current else "nothing",
            )
        return CommandOutcome(acked=True, verified=verified, previous=previous, current=current)
