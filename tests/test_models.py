"""
Model Tests
===========

State enums, snapshots and the input/output schemas.
"""

import pytest
from pydantic import ValidationError

from screenguard_agent.models import (
    AlertLevel,
    MonitoringStatus,
    ObservationMessage,
    SecurityState,
    StateSnapshot,
)
from screenguard_agent.models.input import coerce_face_count


class TestSecurityState:
    """Enum helpers."""

    @pytest.mark.parametrize(
        "state,level",
        [
            (SecurityState.SAFE, AlertLevel.NONE),
            (SecurityState.WARNING, AlertLevel.LOW),
            (SecurityState.ALERT, AlertLevel.HIGH),
            (SecurityState.ERROR, AlertLevel.NONE),
        ],
    )
    def test_alert_level(self, state, level):
        assert AlertLevel.for_state(state) == level

    def test_status_messages(self):
        assert SecurityState.SAFE.description == "Safe - You're alone"
        assert SecurityState.ALERT.description == "ALERT - Shoulder surfer detected!"
        assert SecurityState.ERROR.description == "Error - Camera issue"

    def test_severity_rank(self):
        assert SecurityState.ALERT.severity_rank > SecurityState.WARNING.severity_rank
        assert SecurityState.WARNING.severity_rank > SecurityState.SAFE.severity_rank
        assert SecurityState.ERROR.severity_rank == SecurityState.SAFE.severity_rank


class TestStateSnapshot:
    """Derived fields of the snapshot."""

    def test_defaults(self):
        snap = StateSnapshot()

        assert snap.state == SecurityState.SAFE
        assert snap.last_face_count == 1
        assert snap.alert_level == AlertLevel.NONE
        assert not snap.monitoring

    def test_time_in_state(self):
        snap = StateSnapshot(state=SecurityState.WARNING, entered_at=10.0)

        assert snap.time_in_state(12.5) == 2.5
        assert snap.time_in_state(5.0) == 0.0
        assert snap.status_message == "Warning - Multiple faces detected"


class TestObservationMessage:
    """Untrusted input is coerced, not rejected."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            (3, 3), ("2", 2), ("2.5", 2), (" 4 ", 4), (-1, 0), ("-1.5", 0),
            (None, 0), ("x", 0), ("nan", 0), ("inf", 0), (True, 0), (2.9, 2),
        ],
    )
    def test_coerce_face_count(self, raw, expected):
        assert coerce_face_count(raw) == expected

    def test_json_payload(self):
        message = ObservationMessage.model_validate_json('{"face_count": 2, "timestamp": 1.5}')

        assert message.face_count == 2
        assert message.timestamp == 1.5

    def test_missing_count_is_zero(self):
        assert ObservationMessage().face_count == 0
        assert ObservationMessage(face_count=-3).face_count == 0


class TestMonitoringStatus:
    """Status payload validation."""

    def test_progress_bounded(self):
        with pytest.raises(ValidationError):
            MonitoringStatus(
                state=SecurityState.WARNING,
                alert_level=AlertLevel.LOW,
                status_message="",
                time_in_state=0.0,
                time_until_alert=0.0,
                alert_progress=1.5,
                persistent_threat=False,
                monitoring=True,
                notifications_enabled=True,
            )

    def test_json_dump(self):
        status = MonitoringStatus(
            state=SecurityState.ALERT,
            alert_level=AlertLevel.HIGH,
            status_message=SecurityState.ALERT.description,
            time_in_state=1.0,
            time_until_alert=0.0,
            alert_progress=0.0,
            persistent_threat=False,
            monitoring=True,
            notifications_enabled=True,
        )

        payload = status.model_dump(mode="json")

        assert payload["state"] == "ALERT"
        assert payload["alert_level"] == "HIGH"
