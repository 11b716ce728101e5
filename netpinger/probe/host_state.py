"""Per-host hysteresis state machine.

A host starts DOWN. It only flips to UP after ``alive_threshold`` consecutive
replied rounds, and back to DOWN after ``dead_threshold`` consecutive timed out
rounds, so isolated packet loss never changes the reported state.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Outcome(str, Enum):
    """Result of one round for one host."""

    REPLIED = "replied"
    TIMED_OUT = "timed_out"


class LinkState(str, Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class HostTransition:
    """Emitted when a host changes state."""

    address: str
    state: LinkState
    streak: int


class HostState:
    """Debounced up/down state of one monitored address."""

    def __init__(self, address: str, alive_threshold: int, dead_threshold: int):
        if alive_threshold < 1:
            raise ValueError(f"alive_threshold must be at least 1, got {alive_threshold}")
        if dead_threshold < 1:
            raise ValueError(f"dead_threshold must be at least 1, got {dead_threshold}")

        self.address = address
        self.alive_threshold = alive_threshold
        self.dead_threshold = dead_threshold

        self.state = LinkState.DOWN
        self.streak = 0
        self.last_outcome: Optional[Outcome] = None
        self.replied_this_round = False

    @property
    def is_up(self) -> bool:
        return self.state is LinkState.UP

    def record(self, outcome: Outcome) -> Optional[HostTransition]:
        """Feed one round outcome.

        Args:
            outcome: Whether the host answered this round.

        Returns:
            The transition if this outcome completed a streak in the opposite
            direction of the current state, None otherwise.
        """
        if outcome is self.last_outcome:
            self.streak += 1
        else:
            self.streak = 1
        self.last_outcome = outcome

        if outcome is Outcome.REPLIED:
            target, threshold = LinkState.UP, self.alive_threshold
        else:
            target, threshold = LinkState.DOWN, self.dead_threshold

        if self.state is target or self.streak != threshold:
            return None

        self.state = target
        transition = HostTransition(address=self.address, state=target, streak=self.streak)
        # Start counting afresh in the new state
        self.streak = 1
        return transition

    def snapshot(self) -> dict:
        return {
            "address": self.address,
            "state": self.state.value,
            "streak": self.streak,
            "last_outcome": self.last_outcome.value if self.last_outcome else None,
        }

    def __repr__(self) -> str:
        return f"HostState({self.address!r}, {self.state.value}, streak={self.streak})"
