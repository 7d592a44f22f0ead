"""DrowsinessDetector 单元测试"""

import pytest

from conftest import CLOSED, OPEN, feed
from evaluators.drowsiness_detector import (
    DECAY,
    FACE_LOST_ICON_THRESHOLD,
    HIGH_WATERMARK,
    INCREMENT,
    MAX,
    THRESHOLD_OPEN,
    DrowsinessDetector,
)
from models.data_models import (
    AlertState,
    DetectorConfig,
    Directive,
    EyesVisible,
    FaceAbsent,
)


def _count(decisions, directive):
    return sum(d.directives.count(directive) for d in decisions)


class TestConstants:
    def test_policy_values(self):
        assert THRESHOLD_OPEN == 0.50
        assert MAX == 28
        assert HIGH_WATERMARK == 20
        assert FACE_LOST_ICON_THRESHOLD == 5
        assert DECAY == 3
        assert INCREMENT == 1


class TestInitialState:
    def test_fresh_detector(self, detector):
        assert detector.counter == 0
        assert detector.sound_active is False
        assert detector.state is AlertState.IDLE


# --- Eyes visible ---

class TestEyesClosed:
    def test_single_closed_frame(self, detector):
        decision = detector.observe(CLOSED, True)
        assert decision.counter == 1
        assert decision.directives == []

    def test_one_eye_closed_counts_as_closed(self, detector):
        detector.observe(EyesVisible(left_open=0.9, right_open=0.3), True)
        detector.observe(EyesVisible(left_open=0.1, right_open=0.95), True)
        assert detector.counter == 2

    def test_threshold_is_inclusive_for_closed(self, detector):
        detector.observe(EyesVisible(left_open=0.5, right_open=0.9), True)
        assert detector.counter == 1

    def test_notify_starts_above_watermark(self, detector):
        """连续 21 帧闭眼：计数 21，第 21 帧起发出 NOTIFY"""
        decisions = feed(detector, CLOSED, 21)
        assert detector.counter == 21
        assert Directive.NOTIFY not in decisions[19]
        assert Directive.NOTIFY in decisions[20]
        assert Directive.SHOW_CLOSED_ICON in decisions[20]
        assert _count(decisions[:20], Directive.SHOW_CLOSED_ICON) == 0

    def test_notify_repeats_every_frame(self, detector):
        decisions = feed(detector, CLOSED, 27)
        assert all(Directive.NOTIFY in d for d in decisions[20:])
        assert _count(decisions, Directive.NOTIFY) == 7

    def test_reaching_max_starts_alert_once(self, detector):
        decisions = feed(detector, CLOSED, MAX)
        assert detector.counter == MAX
        assert _count(decisions, Directive.START_ALERT) == 1
        assert Directive.START_ALERT in decisions[-1]
        assert detector.sound_active is True
        assert decisions[-1].state is AlertState.SOS

    def test_counter_clamped_at_max(self, detector):
        feed(detector, CLOSED, MAX)
        more = feed(detector, CLOSED, 10)
        assert detector.counter == MAX
        assert _count(more, Directive.START_ALERT) == 0
        assert _count(more, Directive.NOTIFY) == 10

    def test_drowsy_state_below_max(self, detector):
        decisions = feed(detector, CLOSED, 21)
        assert decisions[-1].state is AlertState.DROWSY
        assert decisions[19].state is AlertState.IDLE


class TestEyesOpen:
    def test_open_at_zero(self, detector):
        decision = detector.observe(OPEN, True)
        assert decision.directives == [Directive.SHOW_OPEN_ICON]
        assert decision.counter == 0

    def test_decay_by_three(self, detector):
        feed(detector, CLOSED, 21)
        decision = detector.observe(OPEN, True)
        assert decision.counter == 18
        assert decision.directives == [Directive.SHOW_OPEN_ICON]

    def test_decay_floors_at_zero(self, detector):
        feed(detector, CLOSED, 2)
        detector.observe(OPEN, True)
        assert detector.counter == 0

    def test_single_open_frame_keeps_alert(self, detector):
        feed(detector, CLOSED, MAX)
        decision = detector.observe(OPEN, True)
        assert decision.counter == 25
        assert decision.sound_active is True
        assert Directive.STOP_ALERT not in decision
        assert decision.state is AlertState.SOS

    def test_alert_stops_when_counter_returns_to_zero(self, detector):
        feed(detector, CLOSED, MAX)
        decisions = feed(detector, OPEN, 10)
        assert [d.counter for d in decisions] == [25, 22, 19, 16, 13, 10, 7, 4, 1, 0]
        assert _count(decisions, Directive.STOP_ALERT) == 1
        assert Directive.STOP_ALERT in decisions[-1]
        assert detector.sound_active is False
        assert decisions[-1].state is AlertState.IDLE

    def test_blink_does_not_reset_progress(self, detector):
        feed(detector, CLOSED, 24)
        detector.observe(OPEN, True)
        decisions = feed(detector, CLOSED, 7)
        assert detector.counter == MAX
        assert _count(decisions, Directive.START_ALERT) == 1


# --- Enable switch ---

class TestDisabled:
    def test_disabled_emits_open_icon_only(self, detector):
        decision = detector.observe(CLOSED, False)
        assert decision.directives == [Directive.SHOW_OPEN_ICON]
        assert decision.counter == 0
        assert decision.state is AlertState.IDLE

    def test_disable_stops_active_alert(self, detector):
        feed(detector, CLOSED, MAX)
        decision = detector.observe(CLOSED, False)
        assert decision.directives == [Directive.STOP_ALERT, Directive.SHOW_OPEN_ICON]
        assert detector.sound_active is False
        assert detector.counter == MAX

    def test_stop_alert_only_once_while_disabled(self, detector):
        feed(detector, CLOSED, MAX)
        decisions = feed(detector, CLOSED, 5, enabled=False)
        assert _count(decisions, Directive.STOP_ALERT) == 1

    def test_counter_frozen_while_disabled(self, detector):
        feed(detector, CLOSED, 10)
        feed(detector, CLOSED, 5, enabled=False)
        feed(detector, OPEN, 5, enabled=False)
        feed(detector, FaceAbsent(), 5, enabled=False)
        assert detector.counter == 10

    def test_resume_counts_from_frozen_value(self, detector):
        feed(detector, CLOSED, 10)
        detector.observe(CLOSED, False)
        detector.observe(CLOSED, True)
        assert detector.counter == 11

    def test_reenable_at_max_restarts_alert(self, detector):
        feed(detector, CLOSED, MAX)
        detector.observe(CLOSED, False)
        decision = detector.observe(CLOSED, True)
        assert decision.directives == [
            Directive.START_ALERT,
            Directive.NOTIFY,
            Directive.SHOW_CLOSED_ICON,
        ]

    def test_reenable_at_max_with_eyes_open(self, detector):
        feed(detector, CLOSED, MAX)
        detector.observe(OPEN, False)
        decision = detector.observe(OPEN, True)
        assert decision.directives == [Directive.START_ALERT, Directive.SHOW_OPEN_ICON]
        assert decision.counter == 25


# --- Face absent ---

class TestFaceAbsent:
    def test_face_lost_starts_alert(self, detector):
        decision = detector.observe(FaceAbsent(), True)
        assert decision.directives == [
            Directive.NOTIFY,
            Directive.START_ALERT,
            Directive.REMOVE_FACE_GRAPHIC,
        ]
        assert decision.counter == 0
        assert decision.state is AlertState.SOS

    def test_repeated_face_lost_only_removes_graphic(self, detector):
        detector.observe(FaceAbsent(), True)
        decision = detector.observe(FaceAbsent(), True)
        assert decision.directives == [Directive.REMOVE_FACE_GRAPHIC]

    def test_closed_icon_above_threshold(self, detector):
        feed(detector, CLOSED, 6)
        decision = detector.observe(FaceAbsent(), True)
        assert decision.directives[0] is Directive.SHOW_CLOSED_ICON

    def test_no_closed_icon_at_threshold(self, detector):
        feed(detector, CLOSED, 5)
        decision = detector.observe(FaceAbsent(), True)
        assert Directive.SHOW_CLOSED_ICON not in decision

    def test_face_lost_while_drowsy(self, detector):
        feed(detector, CLOSED, 21)
        decision = detector.observe(FaceAbsent(), True)
        assert Directive.NOTIFY in decision
        assert Directive.START_ALERT in decision
        assert decision.counter == 21

    def test_counter_unchanged(self, detector):
        feed(detector, CLOSED, 12)
        feed(detector, FaceAbsent(), 30)
        assert detector.counter == 12

    def test_eyes_open_after_face_lost_at_zero_stops_alert(self, detector):
        detector.observe(FaceAbsent(), True)
        decision = detector.observe(OPEN, True)
        assert decision.directives == [Directive.SHOW_OPEN_ICON, Directive.STOP_ALERT]
        assert detector.sound_active is False


class TestTeardown:
    def test_teardown_fresh(self, detector):
        decision = detector.teardown()
        assert decision.directives == [Directive.STOP_ALERT, Directive.REMOVE_FACE_GRAPHIC]

    def test_teardown_clears_alert(self, detector):
        feed(detector, CLOSED, MAX)
        decision = detector.teardown()
        assert decision.directives == [Directive.STOP_ALERT, Directive.REMOVE_FACE_GRAPHIC]
        assert detector.sound_active is False


class TestObserveRaw:
    def test_face_absent(self, detector):
        decision = detector.observe_raw(False, None, None, True)
        assert Directive.REMOVE_FACE_GRAPHIC in decision

    def test_missing_probabilities_are_closed(self, detector):
        detector.observe_raw(True, None, 0.9, True)
        assert detector.counter == 1

    def test_out_of_range_clamped(self, detector):
        feed(detector, CLOSED, 6)
        detector.observe_raw(True, 1.7, 3.0, True)
        assert detector.counter == 3
        detector.observe_raw(True, -1.0, 0.9, True)
        assert detector.counter == 4


class TestConfig:
    def test_custom_open_threshold(self):
        detector = DrowsinessDetector(DetectorConfig(open_threshold=0.75))
        detector.observe(EyesVisible(left_open=0.6, right_open=0.6), True)
        assert detector.counter == 1
        detector.observe(EyesVisible(left_open=0.8, right_open=0.8), True)
        assert detector.counter == 0

    def test_unknown_observation_type(self, detector):
        with pytest.raises(TypeError):
            detector.observe(object(), True)
