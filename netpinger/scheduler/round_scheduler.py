"""Round-based probe scheduler.

Every round sends one echo request to each host, waits until the round
deadline for replies, records a timeout for every host that stayed silent and
then sleeps before the next round.

Replies are read by a separate task that only pushes immutable ``ReplyEvent``s
onto a queue. The round loop is the sole owner of the host and group state, so
no locking is needed.
"""

import asyncio
import logging
from typing import Dict, Iterable, Optional

from netpinger.notifications.dispatcher import ActionDispatcher
from netpinger.observer import NullObserver
from netpinger.probe.group import GroupAggregator, GroupTransition, Verdict
from netpinger.probe.host_state import HostState, Outcome
from netpinger.probe.transport import (
    SEQUENCE_MODULUS,
    ReplyEvent,
    Transport,
    TransportClosedError,
    TransportError,
)

logger = logging.getLogger(__name__)


class PingEngine:
    """Probe a fixed set of hosts forever and track the group verdict."""

    def __init__(
        self,
        transport: Transport,
        addresses: Iterable[str],
        alive_threshold: int = 3,
        dead_threshold: int = 3,
        group_alive: Optional[int] = None,
        group_dead: int = 0,
        wait_timeout: float = 1.0,
        pause_duration: float = 5.0,
        dispatcher: Optional[ActionDispatcher] = None,
        observer: Optional[NullObserver] = None,
    ):
        self.hosts: Dict[str, HostState] = {}
        for address in addresses:
            self.hosts[address] = HostState(address, alive_threshold, dead_threshold)
        self.group = GroupAggregator(len(self.hosts), group_alive, group_dead)

        self.transport = transport
        self.identifier = transport.identifier
        self.wait_timeout = wait_timeout
        self.pause_duration = pause_duration
        self.dispatcher = dispatcher
        self.observer = observer or NullObserver()

        self.sequence = 0
        self.rounds_completed = 0
        self.running = False
        self._replies: "asyncio.Queue[ReplyEvent]" = asyncio.Queue()

    @classmethod
    def from_settings(
        cls,
        settings,
        transport: Transport,
        dispatcher: Optional[ActionDispatcher] = None,
        observer: Optional[NullObserver] = None,
    ) -> "PingEngine":
        return cls(
            transport,
            settings.target_list,
            alive_threshold=settings.alive_count,
            dead_threshold=settings.dead_count,
            group_alive=settings.group_alive,
            group_dead=settings.group_dead,
            wait_timeout=settings.wait_timeout,
            pause_duration=settings.pause_duration,
            dispatcher=dispatcher,
            observer=observer,
        )

    async def run(self) -> None:
        """Run rounds until cancelled.

        Raises:
            TransportClosedError: If the reply stream dies. This is the only
                error that leaves the engine.
        """
        receiver = asyncio.create_task(self._receive_loop(), name="netpinger-receiver")
        rounds = asyncio.create_task(self._round_loop(), name="netpinger-rounds")
        self.running = True

        try:
            done, _ = await asyncio.wait({receiver, rounds}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            self.running = False
            receiver.cancel()
            rounds.cancel()
            await asyncio.gather(receiver, rounds, return_exceptions=True)

        for task in done:
            task.result()

    def deliver(self, event: ReplyEvent) -> None:
        """Queue a reply for the round loop. Never blocks."""
        self._replies.put_nowait(event)

    async def _receive_loop(self) -> None:
        async for event in self.transport.replies():
            self.deliver(event)
        raise TransportClosedError("reply stream ended")

    async def _round_loop(self) -> None:
        while True:
            await self.run_round()
            await asyncio.sleep(self.pause_duration)

    async def run_round(self) -> None:
        """Send, wait for replies until the deadline, then record timeouts."""
        self.sequence = (self.sequence + 1) % SEQUENCE_MODULUS
        sequence = self.sequence
        self.observer.round_started(sequence)

        for host in self.hosts.values():
            host.replied_this_round = False
            try:
                self.transport.send(host.address, self.identifier, sequence)
            except TransportError as e:
                self.observer.send_failed(host.address, e)
                continue
            self.observer.probe_sent(host.address, sequence)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.wait_timeout
        replied = 0

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            try:
                event = await asyncio.wait_for(self._replies.get(), timeout=remaining)
            except asyncio.TimeoutError:
                break
            if await self._handle_reply(event, sequence):
                replied += 1

        timed_out = 0
        for host in self.hosts.values():
            if not host.replied_this_round:
                timed_out += 1
                await self._record(host, Outcome.TIMED_OUT)

        self.rounds_completed += 1
        self.observer.round_finished(sequence, replied, timed_out)

    async def _handle_reply(self, event: ReplyEvent, sequence: int) -> bool:
        host = self.hosts.get(event.address)

        if host is None:
            reason = "unknown_address"
        elif event.identifier != self.identifier:
            reason = "identifier_mismatch"
        elif event.sequence != sequence:
            reason = "sequence_mismatch"
        elif host.replied_this_round:
            reason = "duplicate"
        else:
            reason = None

        if reason is not None:
            self.observer.reply_discarded(event, reason)
            return False

        host.replied_this_round = True
        await self._record(host, Outcome.REPLIED)
        return True

    async def _record(self, host: HostState, outcome: Outcome) -> None:
        transition = host.record(outcome)
        streak = transition.streak if transition else host.streak

        if outcome is Outcome.REPLIED:
            self.observer.reply_received(host.address, streak)
        else:
            self.observer.probe_timed_out(host.address, streak)

        if transition is None:
            return

        self.observer.host_changed(transition)
        group_transition = self.group.apply(transition)
        if group_transition is not None:
            self.observer.group_changed(group_transition)
            await self._fire(group_transition)

    async def _fire(self, transition: GroupTransition) -> None:
        if self.dispatcher is None:
            return
        try:
            if transition.verdict is Verdict.ALIVE:
                await self.dispatcher.on_alive()
            else:
                await self.dispatcher.on_dead()
        except Exception as e:
            logger.error("Action for %s verdict failed: %s", transition.verdict.value, e)

    def snapshot(self) -> dict:
        """Current engine state for the status API."""
        return {
            "running": self.running,
            "identifier": self.identifier,
            "sequence": self.sequence,
            "rounds_completed": self.rounds_completed,
            **self.group.snapshot(),
            "hosts": [host.snapshot() for host in self.hosts.values()],
        }
