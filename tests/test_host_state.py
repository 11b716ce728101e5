"""Tests for the per-host hysteresis state machine."""

import pytest

from netpinger.probe.host_state import HostState, LinkState, Outcome

R = Outcome.REPLIED
T = Outcome.TIMED_OUT


def feed(host, outcomes):
    return [host.record(o) for o in outcomes]


def test_starts_down_with_no_streak():
    host = HostState("10.0.0.1", alive_threshold=3, dead_threshold=3)
    assert host.state is LinkState.DOWN
    assert host.streak == 0
    assert host.last_outcome is None
    assert host.replied_this_round is False


def test_comes_up_only_after_three_consecutive_replies():
    host = HostState("10.0.0.1", alive_threshold=3, dead_threshold=3)

    results = feed(host, [T, R, R, R])

    assert results[:3] == [None, None, None]
    assert results[3] is not None
    assert results[3].state is LinkState.UP
    assert results[3].address == "10.0.0.1"
    assert results[3].streak == 3
    assert host.is_up


def test_streak_bookkeeping_before_transition():
    host = HostState("10.0.0.1", alive_threshold=3, dead_threshold=3)

    host.record(T)
    assert host.streak == 1
    host.record(T)
    assert host.streak == 2
    host.record(R)
    assert host.streak == 1
    host.record(R)
    assert host.streak == 2
    assert host.state is LinkState.DOWN


def test_streak_resets_to_one_on_transition():
    host = HostState("10.0.0.1", alive_threshold=2, dead_threshold=2)
    feed(host, [R, R])
    assert host.is_up
    assert host.streak == 1


def test_up_is_not_re_emitted():
    host = HostState("10.0.0.1", alive_threshold=2, dead_threshold=2)

    results = feed(host, [R] * 10)

    transitions = [r for r in results if r is not None]
    assert len(transitions) == 1
    assert results[1] is not None


def test_goes_down_after_dead_threshold_timeouts():
    host = HostState("10.0.0.1", alive_threshold=1, dead_threshold=3)
    host.record(R)
    assert host.is_up

    results = feed(host, [T, T, T])

    assert results[:2] == [None, None]
    assert results[2].state is LinkState.DOWN
    assert host.state is LinkState.DOWN


def test_down_is_not_emitted_when_already_down():
    host = HostState("10.0.0.1", alive_threshold=3, dead_threshold=2)
    assert feed(host, [T] * 6) == [None] * 6
    assert host.streak == 6


def test_flapping_host_never_transitions():
    host = HostState("10.0.0.1", alive_threshold=2, dead_threshold=2)
    host.record(R)
    host.record(R)
    assert host.is_up

    results = feed(host, [T, R, T, R, T, R])

    assert results == [None] * 6
    assert host.is_up


def test_threshold_of_one_flips_every_direction_change():
    host = HostState("10.0.0.1", alive_threshold=1, dead_threshold=1)

    up = host.record(R)
    down = host.record(T)
    up_again = host.record(R)

    assert up.state is LinkState.UP
    assert down.state is LinkState.DOWN
    assert up_again.state is LinkState.UP


@pytest.mark.parametrize("alive,dead", [(0, 3), (3, 0), (-1, 1)])
def test_rejects_thresholds_below_one(alive, dead):
    with pytest.raises(ValueError):
        HostState("10.0.0.1", alive_threshold=alive, dead_threshold=dead)


def test_snapshot():
    host = HostState("10.0.0.1", alive_threshold=3, dead_threshold=3)
    host.record(T)

    assert host.snapshot() == {
        "address": "10.0.0.1",
        "state": "down",
        "streak": 1,
        "last_outcome": "timed_out",
    }
