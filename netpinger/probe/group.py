"""Group-level verdict built from host transitions."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from netpinger.probe.host_state import HostTransition, LinkState


class Verdict(str, Enum):
    ALIVE = "alive"
    DEAD = "dead"


@dataclass(frozen=True)
class GroupTransition:
    """Emitted when the group verdict flips."""

    verdict: Verdict
    up_count: int


class GroupAggregator:
    """Count of up hosts plus an alive/dead verdict with separate thresholds.

    The group becomes alive once ``up_count >= alive_threshold`` and dead once
    ``up_count <= dead_threshold``. Each host transition is evaluated on its
    own, so several transitions in one round can flip the verdict more than
    once.
    """

    def __init__(
        self,
        total_hosts: int,
        alive_threshold: Optional[int] = None,
        dead_threshold: int = 0,
    ):
        if total_hosts < 1:
            raise ValueError("at least one host is required")
        if alive_threshold is None:
            alive_threshold = total_hosts
        if not 1 <= alive_threshold <= total_hosts:
            raise ValueError(
                f"group alive threshold must be between 1 and {total_hosts}, got {alive_threshold}"
            )
        if dead_threshold < 0:
            raise ValueError(f"group dead threshold cannot be negative, got {dead_threshold}")

        self.total_hosts = total_hosts
        self.alive_threshold = alive_threshold
        self.dead_threshold = dead_threshold

        self.up_count = 0
        self.verdict = Verdict.DEAD

    @property
    def is_alive(self) -> bool:
        return self.verdict is Verdict.ALIVE

    def host_became_up(self) -> Optional[GroupTransition]:
        if self.up_count >= self.total_hosts:
            raise ValueError("more hosts up than are monitored")
        self.up_count += 1

        if self.verdict is Verdict.DEAD and self.up_count >= self.alive_threshold:
            self.verdict = Verdict.ALIVE
            return GroupTransition(Verdict.ALIVE, self.up_count)
        return None

    def host_became_down(self) -> Optional[GroupTransition]:
        if self.up_count <= 0:
            raise ValueError("no host is up")
        self.up_count -= 1

        if self.verdict is Verdict.ALIVE and self.up_count <= self.dead_threshold:
            self.verdict = Verdict.DEAD
            return GroupTransition(Verdict.DEAD, self.up_count)
        return None

    def apply(self, transition: HostTransition) -> Optional[GroupTransition]:
        """Route a host transition to the matching counter update."""
        if transition.state is LinkState.UP:
            return self.host_became_up()
        return self.host_became_down()

    def snapshot(self) -> dict:
        return {
            "verdict": self.verdict.value,
            "up_count": self.up_count,
            "total_hosts": self.total_hosts,
            "alive_threshold": self.alive_threshold,
            "dead_threshold": self.dead_threshold,
        }
