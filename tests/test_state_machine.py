"""
State Machine Tests
===================

Transition table, escalation timer, zero-count smoothing and lifecycle of
SecurityStateMachine, all on a manual clock.
"""

import pytest

from screenguard_agent.agent.scheduler import ManualScheduler
from screenguard_agent.agent.state_machine import (
    MonitoringStateError,
    SecurityStateMachine,
    StateMachineTiming,
)
from screenguard_agent.models.reason_codes import ReasonCode
from screenguard_agent.models.state import SecurityState


SAFE = SecurityState.SAFE
WARNING = SecurityState.WARNING
ALERT = SecurityState.ALERT
ERROR = SecurityState.ERROR


def feed(machine, scheduler, counts, interval=0.1):
    """Feed counts spaced by interval; return the state after each update."""
    states = []
    for index, count in enumerate(counts):
        if index > 0:
            scheduler.advance(interval)
        machine.update(count)
        states.append(machine.current_state)
    return states


def transitions(events):
    return [(e.previous_state, e.new_state) for e in events]


class UncancellableScheduler(ManualScheduler):
    """Scheduler whose timers ignore cancel(), to force late fires."""

    def call_later(self, delay, callback, name="task"):
        task = super().call_later(delay, callback, name)
        task.cancel = lambda: None
        return task


class TestScenarios:
    """End-to-end sequences with T=2.0s, K=10, 100ms between updates."""

    def test_zeros_smoothed_with_last_nonzero(self, machine, scheduler):
        """[1,1,2,2,2,0,0,0] stays in WARNING, escalation not yet due."""
        states = feed(machine, scheduler, [1, 1, 2, 2, 2, 0, 0, 0])

        assert states == [SAFE, SAFE, WARNING, WARNING, WARNING, WARNING, WARNING, WARNING]

    def test_sustained_multiple_faces_escalate_then_recover(
        self, machine, scheduler, recorded_events
    ):
        """Feeding 2 for 2.1s then 1 goes SAFE -> WARNING -> ALERT -> SAFE."""
        feed(machine, scheduler, [2] * 22)
        assert machine.current_state == ALERT

        scheduler.advance(0.1)
        machine.update(1)

        assert transitions(recorded_events) == [
            (SAFE, WARNING),
            (WARNING, ALERT),
            (ALERT, SAFE),
        ]
        assert recorded_events[1].reason == ReasonCode.ESCALATION_TIMER

    def test_error_on_tenth_consecutive_zero(self, machine, scheduler):
        """Eleven zeros from SAFE: ERROR on the 10th, still ERROR on the 11th."""
        states = feed(machine, scheduler, [0] * 11)

        assert states[:9] == [SAFE] * 9
        assert states[9] == ERROR
        assert states[10] == ERROR


class TestTransitionTable:
    """Single-step rules."""

    def test_initial_state_is_safe(self, machine):
        assert machine.current_state == SAFE
        assert not machine.has_pending_escalation

    def test_one_face_in_safe_is_noop(self, machine, recorded_events):
        assert machine.update(1) is None
        assert recorded_events == []

    def test_multiple_faces_arm_escalation(self, machine):
        event = machine.update(3)

        assert event is not None
        assert (event.previous_state, event.new_state) == (SAFE, WARNING)
        assert event.reason == ReasonCode.MULTIPLE_FACES
        assert event.face_count == 3
        assert machine.has_pending_escalation

    def test_multiple_faces_in_warning_keep_single_timer(self, machine, scheduler):
        machine.update(2)
        machine.update(2)
        machine.update(4)

        assert machine.current_state == WARNING
        assert len(scheduler.pending) == 1

    def test_one_face_in_warning_returns_to_safe(self, machine, scheduler):
        machine.update(2)
        event = machine.update(1)

        assert event.new_state == SAFE
        assert event.reason == ReasonCode.SINGLE_FACE
        assert not machine.has_pending_escalation
        assert scheduler.pending == []

    def test_alert_stays_alert_on_multiple_faces(self, machine, scheduler, recorded_events):
        machine.update(2)
        scheduler.advance(2.0)
        assert machine.current_state == ALERT

        assert machine.update(2) is None
        assert machine.update(5) is None
        assert machine.current_state == ALERT
        assert len(recorded_events) == 2

    def test_one_face_in_alert_returns_to_safe(self, machine, scheduler):
        machine.update(2)
        scheduler.advance(2.0)

        event = machine.update(1)

        assert (event.previous_state, event.new_state) == (ALERT, SAFE)

    def test_zeros_in_alert_smoothed_until_tolerance(self, machine, scheduler, recorded_events):
        machine.update(2)
        scheduler.advance(2.0)

        for _ in range(9):
            machine.update(0)
        assert machine.current_state == ALERT

        event = machine.update(0)
        assert (event.previous_state, event.new_state) == (ALERT, ERROR)
        assert event.reason == ReasonCode.SENSOR_SILENCE

    def test_error_recovers_to_safe_on_one_face(self, machine):
        for _ in range(10):
            machine.update(0)

        event = machine.update(1)

        assert (event.previous_state, event.new_state) == (ERROR, SAFE)

    def test_error_to_warning_rearms_escalation(self, machine, scheduler, recorded_events):
        for _ in range(10):
            machine.update(0)
        assert machine.current_state == ERROR

        machine.update(2)
        assert machine.current_state == WARNING
        assert machine.has_pending_escalation

        scheduler.advance(2.0)
        assert machine.current_state == ALERT
        assert transitions(recorded_events)[-2:] == [(ERROR, WARNING), (WARNING, ALERT)]

    def test_nonzero_resets_zero_streak(self, machine):
        for _ in range(9):
            machine.update(0)
        machine.update(1)
        for _ in range(9):
            machine.update(0)

        assert machine.current_state == SAFE
        assert machine.snapshot().zero_streak == 9

    def test_zero_in_warning_entering_error_cancels_escalation(self, machine, scheduler):
        machine.update(2)
        for _ in range(10):
            machine.update(0)

        assert machine.current_state == ERROR
        assert not machine.has_pending_escalation
        scheduler.advance(5.0)
        assert machine.current_state == ERROR


class TestInputValidation:
    """update() never raises; bad input counts as zero."""

    @pytest.mark.parametrize("bad", [-1, -50, None, "abc", 2.5j, object()])
    def test_invalid_counts_are_zero(self, machine, bad):
        assert machine.update(bad) is None
        assert machine.snapshot().zero_streak == 1
        assert machine.current_state == SAFE

    def test_numeric_strings_are_accepted(self, machine):
        machine.update("3")
        assert machine.current_state == WARNING

    def test_decimal_string_matches_number(self, machine):
        """"2.5" and 2.5 both mean two faces."""
        machine.update("2.5")
        assert machine.current_state == WARNING

        machine.update(1)
        machine.update(2.5)
        assert machine.current_state == WARNING

    @pytest.mark.parametrize("bad", ["nan", "inf", "-2.5", ""])
    def test_non_finite_or_negative_strings_are_zero(self, machine, bad):
        machine.update(bad)
        assert machine.snapshot().zero_streak == 1


class TestEscalationTiming:
    """Escalation fires exactly T after entering WARNING."""

    def test_alert_exactly_after_delay(self, machine, scheduler, recorded_events):
        scheduler.advance(0.5)
        machine.update(2)

        scheduler.advance(1.75)
        machine.update(2)
        assert machine.current_state == WARNING

        scheduler.advance(0.25)
        assert machine.current_state == ALERT
        assert recorded_events[-1].timestamp == pytest.approx(2.5)

    def test_custom_delay(self, scheduler):
        machine = SecurityStateMachine(
            scheduler, StateMachineTiming(escalation_delay_sec=0.5, zero_tolerance=3)
        )
        machine.start()
        machine.update(2)

        scheduler.advance(0.25)
        assert machine.current_state == WARNING
        scheduler.advance(0.25)
        assert machine.current_state == ALERT

    def test_drop_to_one_face_cancels_episode(self, machine, scheduler):
        machine.update(2)
        scheduler.advance(1.5)
        machine.update(1)

        scheduler.advance(10.0)

        assert machine.current_state == SAFE
        assert machine.get_metrics()["stale_escalations"] == 0

    def test_new_warning_episode_gets_fresh_timer(self, machine, scheduler):
        machine.update(2)
        scheduler.advance(1.0)
        machine.update(1)
        scheduler.advance(0.5)
        machine.update(2)

        scheduler.run_until(3.0)
        assert machine.current_state == WARNING
        scheduler.run_until(3.5)
        assert machine.current_state == ALERT

    def test_late_fire_after_leaving_warning_is_noop(self):
        scheduler = UncancellableScheduler()
        machine = SecurityStateMachine(scheduler)
        machine.start()

        machine.update(2)
        machine.update(1)
        scheduler.advance(2.0)

        assert machine.current_state == SAFE
        assert machine.get_metrics()["stale_escalations"] == 1

    def test_late_fire_from_superseded_episode_is_noop(self):
        scheduler = UncancellableScheduler()
        machine = SecurityStateMachine(scheduler)
        machine.start()

        machine.update(2)
        scheduler.advance(0.5)
        machine.update(1)
        scheduler.advance(0.5)
        machine.update(2)

        scheduler.run_until(2.0)
        assert machine.current_state == WARNING

        scheduler.run_until(3.0)
        assert machine.current_state == ALERT
        assert machine.get_metrics()["stale_escalations"] == 1

    def test_time_until_alert_and_progress(self, machine, scheduler):
        assert machine.time_until_alert() == 0.0
        assert machine.alert_progress() == 0.0

        machine.update(2)
        scheduler.advance(0.5)

        assert machine.time_until_alert() == pytest.approx(1.5)
        assert machine.alert_progress() == pytest.approx(0.25)

        scheduler.advance(1.5)
        assert machine.time_until_alert() == 0.0
        assert machine.alert_progress() == 0.0


class TestNoiseTolerance:
    """Zero runs shorter than K behave like the last nonzero count."""

    @pytest.mark.parametrize(
        "counts",
        [
            [1, 0, 0, 1, 2, 0, 2, 2, 0, 0, 0, 1],
            [2, 0, 0, 0, 0, 0, 0, 0, 0, 0, 2, 1, 0, 2],
            [1, 2, 0, 1, 0, 0, 3, 0, 0, 0, 0, 1],
        ],
    )
    def test_short_zero_runs_are_transparent(self, counts):
        filled = []
        last = 1
        for count in counts:
            if count:
                last = count
            filled.append(last)

        results = []
        for sequence in (counts, filled):
            scheduler = ManualScheduler()
            machine = SecurityStateMachine(scheduler)
            machine.start()
            results.append(feed(machine, scheduler, sequence, interval=0.25))

        assert results[0] == results[1]


class TestLifecycle:
    """start(), stop() and snapshots."""

    def test_double_start_raises(self, machine):
        with pytest.raises(MonitoringStateError):
            machine.start()

    def test_updates_ignored_when_stopped(self, scheduler):
        machine = SecurityStateMachine(scheduler)

        assert machine.update(2) is None
        assert machine.current_state == SAFE

    def test_stop_cancels_escalation_and_resets(self, machine, scheduler, recorded_events):
        machine.update(2)
        machine.stop()

        assert machine.current_state == SAFE
        assert not machine.has_pending_escalation
        assert scheduler.pending == []
        assert recorded_events[-1].reason == ReasonCode.MONITORING_STOPPED
        assert not machine.snapshot().monitoring

        scheduler.advance(5.0)
        assert machine.current_state == SAFE

    def test_stop_is_idempotent(self, machine, recorded_events):
        machine.update(2)
        machine.stop()
        machine.stop()

        assert len(recorded_events) == 2

    def test_restart_resets_counters(self, machine):
        for _ in range(9):
            machine.update(0)
        machine.stop()
        machine.start()

        machine.update(0)
        assert machine.current_state == SAFE
        assert machine.snapshot().zero_streak == 1

    def test_snapshot_is_immutable_copy(self, machine):
        before = machine.snapshot()
        machine.update(2)

        assert before.state == SAFE
        assert machine.snapshot().state == WARNING
        with pytest.raises(AttributeError):
            before.state = ALERT

    def test_listener_failure_is_isolated(self, machine, recorded_events):
        def broken(event):
            raise RuntimeError("listener bug")

        machine.remove_listener(recorded_events.append)
        machine.add_listener(broken)
        machine.add_listener(recorded_events.append)

        event = machine.update(2)

        assert event is not None
        assert recorded_events == [event]

    def test_invalid_timing_rejected(self, scheduler):
        with pytest.raises(ValueError):
            SecurityStateMachine(scheduler, StateMachineTiming(zero_tolerance=0))
