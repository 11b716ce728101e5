"""Engine observers.

The round loop reports everything it does to an observer passed in at
construction. ``NullObserver`` ignores it all; ``LoggingObserver`` writes log
records and keeps the Prometheus metrics current.
"""

import logging

from netpinger import metrics
from netpinger.probe.group import GroupTransition, Verdict
from netpinger.probe.host_state import HostTransition, LinkState
from netpinger.probe.transport import ReplyEvent, TransportError

logger = logging.getLogger(__name__)


class NullObserver:
    """Observer that does nothing."""

    def round_started(self, sequence: int) -> None:
        pass

    def round_finished(self, sequence: int, replied: int, timed_out: int) -> None:
        pass

    def probe_sent(self, address: str, sequence: int) -> None:
        pass

    def send_failed(self, address: str, error: TransportError) -> None:
        pass

    def reply_received(self, address: str, streak: int) -> None:
        pass

    def reply_discarded(self, event: ReplyEvent, reason: str) -> None:
        pass

    def probe_timed_out(self, address: str, streak: int) -> None:
        pass

    def host_changed(self, transition: HostTransition) -> None:
        pass

    def group_changed(self, transition: GroupTransition) -> None:
        pass


class LoggingObserver(NullObserver):
    """Observer that logs engine activity and updates metrics."""

    def __init__(self, addresses=()):
        for address in addresses:
            metrics.host_up.labels(address=address).set(0)
        metrics.hosts_up.set(0)
        metrics.group_alive.set(0)

    def round_started(self, sequence: int) -> None:
        logger.debug("Round %d started", sequence)

    def round_finished(self, sequence: int, replied: int, timed_out: int) -> None:
        metrics.rounds_total.inc()
        logger.debug(
            "Round %d finished: %d replied, %d timed out",
            sequence,
            replied,
            timed_out,
        )

    def probe_sent(self, address: str, sequence: int) -> None:
        metrics.probes_sent_total.inc()

    def send_failed(self, address: str, error: TransportError) -> None:
        metrics.send_failures_total.labels(address=address).inc()
        logger.warning("Failed to send ICMP message to %s: %s", address, error)

    def reply_received(self, address: str, streak: int) -> None:
        metrics.replies_matched_total.inc()
        logger.debug("Successful ping from %s (count %d)", address, streak)

    def reply_discarded(self, event: ReplyEvent, reason: str) -> None:
        metrics.replies_discarded_total.labels(reason=reason).inc()
        logger.debug(
            "Discarded reply from %s (id %d, seq %d): %s",
            event.address,
            event.identifier,
            event.sequence,
            reason,
        )

    def probe_timed_out(self, address: str, streak: int) -> None:
        metrics.probe_timeouts_total.inc()
        logger.debug("Ping to %s timed out (count %d)", address, streak)

    def host_changed(self, transition: HostTransition) -> None:
        is_up = transition.state is LinkState.UP
        metrics.host_up.labels(address=transition.address).set(1 if is_up else 0)
        metrics.host_transitions_total.labels(
            address=transition.address,
            state=transition.state.value,
        ).inc()
        if is_up:
            metrics.hosts_up.inc()
            logger.info("Remote host %s is alive", transition.address)
        else:
            metrics.hosts_up.dec()
            logger.info("Remote host %s is dead", transition.address)

    def group_changed(self, transition: GroupTransition) -> None:
        is_alive = transition.verdict is Verdict.ALIVE
        metrics.group_alive.set(1 if is_alive else 0)
        metrics.group_transitions_total.labels(verdict=transition.verdict.value).inc()
        level = logging.INFO if is_alive else logging.WARNING
        logger.log(
            level,
            "Transitioning to %s state (%d hosts up)",
            transition.verdict.value,
            transition.up_count,
        )
