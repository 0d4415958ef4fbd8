from datetime import date, datetime, timedelta

import pytest

from studyflow.alerts import Alerter
from studyflow.models import Reminding, Session, StudyTopic, Studying
from studyflow.scheduler import (
    NothingToExtend, SessionAlreadyActive, StudyScheduler, TopicCompleted,
    is_due, recompute_remaining,
)

DAY = date(2026, 3, 2)
AT_TEN = datetime(2026, 3, 2, 10, 0, 15)


@pytest.fixture
def subject(planner):
    return planner.add_subject("Math", "#ff0000")


@pytest.fixture
def topic(planner, subject):
    return planner.add_topic(subject.id, "Algebra", scheduled_date=DAY,
                             scheduled_time="10:00", duration_minutes=30)


@pytest.fixture
def scheduler(planner, alerter, topic):
    return StudyScheduler(planner, alerter, clock=lambda: AT_TEN)


class BrokenAlerter(Alerter):
    def __init__(self):
        self.messages = 0

    def play_alarm(self):
        raise RuntimeError("no audio device")

    def show_message(self, title, body, persistent=False):
        self.messages += 1

    def notify(self, title, body, tag):
        raise PermissionError("notifications denied")


# --- Reminder matching ---


def test_is_due_exact_minute():
    t = StudyTopic(id="t1", subject_id="s1", title="A", scheduled_date=DAY, scheduled_time="10:00")
    assert is_due(t, datetime(2026, 3, 2, 10, 0, 0))
    assert is_due(t, datetime(2026, 3, 2, 10, 0, 59))
    assert not is_due(t, datetime(2026, 3, 2, 10, 1, 0))
    assert not is_due(t, datetime(2026, 3, 2, 9, 59, 59))
    assert not is_due(t, datetime(2026, 3, 3, 10, 0, 0))


def test_unscheduled_topic_never_due():
    t = StudyTopic(id="t1", subject_id="s1", title="A", scheduled_time="10:00")
    assert not is_due(t, datetime(2026, 3, 2, 10, 0))


def test_tick_raises_reminder_once(scheduler, topic, alerter):
    result = scheduler.tick()
    assert result.raised == [topic.id]
    assert scheduler.reminders == [topic.id]
    again = scheduler.tick(AT_TEN + timedelta(seconds=30))
    assert again.raised == []
    assert scheduler.reminders == [topic.id]
    assert alerter.count("alarm") == 1
    assert alerter.count("message") == 1
    assert alerter.count("notify") == 1


def test_reminder_alert_contents(scheduler, topic, alerter):
    scheduler.tick()
    assert ("message", "📚 Study Time!", "Time to study: Algebra (Math)", True) in alerter.calls
    assert ("notify", "Study Time: Algebra", "Math - 30 minutes", topic.id) in alerter.calls


def test_no_reminder_outside_the_minute(scheduler):
    assert scheduler.tick(datetime(2026, 3, 2, 9, 59, 45)).raised == []
    assert scheduler.tick(datetime(2026, 3, 2, 10, 1, 5)).raised == []
    assert scheduler.tick(datetime(2026, 3, 3, 10, 0, 5)).raised == []
    assert scheduler.reminders == []


def test_completed_topic_not_reminded(planner, scheduler, topic):
    planner.set_completed(topic.id)
    assert scheduler.tick().raised == []


def test_topic_without_subject_not_reminded(planner, alerter):
    planner.replace_all([], [StudyTopic(id="orphan", subject_id="gone", title="A",
                                        scheduled_date=DAY, scheduled_time="10:00")])
    scheduler = StudyScheduler(planner, alerter)
    assert scheduler.tick(AT_TEN).raised == []


def test_dismissed_reminder_does_not_fire_again_same_minute(scheduler, topic):
    scheduler.tick()
    scheduler.dismiss_reminder(topic.id)
    assert scheduler.tick(AT_TEN + timedelta(seconds=20)).raised == []
    assert scheduler.reminders == []


def test_rescheduled_topic_fires_again(planner, scheduler, topic):
    scheduler.tick()
    scheduler.dismiss_reminder(topic.id)
    planner.update_topic(topic.id, scheduled_time="10:05")
    assert scheduler.tick(datetime(2026, 3, 2, 10, 5, 10)).raised == [topic.id]


def test_unrelated_edit_keeps_reminder_disarmed(planner, scheduler, topic):
    scheduler.tick()
    scheduler.dismiss_reminder(topic.id)
    planner.update_topic(topic.id, notes="bring calculator")
    assert scheduler.tick(AT_TEN + timedelta(seconds=20)).raised == []


def test_fired_history_dropped_for_finished_topics(planner, subject, scheduler, topic):
    other = planner.add_topic(subject.id, "Geometry", scheduled_date=DAY,
                              scheduled_time="10:00", duration_minutes=30)
    scheduler.tick()
    assert len(scheduler._notified) == 2
    planner.set_completed(topic.id)
    planner.delete_topic(other.id)
    assert scheduler._notified == set()


def test_fired_history_drops_old_slot(planner, scheduler, topic):
    scheduler.tick()
    planner.update_topic(topic.id, scheduled_time="11:00")
    assert scheduler._notified == set()


def test_alert_failure_does_not_block_reminder(planner, topic):
    alerter = BrokenAlerter()
    scheduler = StudyScheduler(planner, alerter)
    result = scheduler.tick(AT_TEN)
    assert result.raised == [topic.id]
    assert scheduler.reminders == [topic.id]
    assert alerter.messages == 1


def test_tick_uses_clock_when_no_time_given(scheduler):
    assert scheduler.tick().now == AT_TEN


# --- Sessions ---


def test_start_session_replaces_reminder(scheduler, topic):
    scheduler.tick()
    session = scheduler.start_session(topic.id, now=AT_TEN)
    assert scheduler.reminders == []
    assert scheduler.sessions == {topic.id: session}
    assert isinstance(scheduler.state_of(topic.id), Studying)
    assert session.total_seconds == 1800
    assert session.remaining_seconds == 1800
    assert session.start_time == AT_TEN


def test_start_session_custom_duration(scheduler, topic):
    session = scheduler.start_session(topic.id, 10)
    assert session.total_seconds == 600


def test_start_session_twice_fails(scheduler, topic):
    scheduler.start_session(topic.id)
    with pytest.raises(SessionAlreadyActive):
        scheduler.start_session(topic.id)


def test_start_session_for_completed_topic_fails(planner, scheduler, topic):
    planner.set_completed(topic.id)
    with pytest.raises(TopicCompleted):
        scheduler.start_session(topic.id)


def test_start_session_unknown_topic(scheduler):
    with pytest.raises(KeyError):
        scheduler.start_session("missing")


def test_start_session_rejects_bad_duration(scheduler, topic):
    with pytest.raises(ValueError):
        scheduler.start_session(topic.id, 0)


def test_remaining_derived_from_elapsed(scheduler, topic):
    scheduler.start_session(topic.id, now=AT_TEN)
    scheduler.tick(AT_TEN + timedelta(minutes=10, seconds=30, milliseconds=700))
    assert scheduler.sessions[topic.id].remaining_seconds == 1800 - 630


def test_remaining_clamps_at_zero_after_long_gap(scheduler, topic, alerter):
    scheduler.start_session(topic.id, now=AT_TEN)
    result = scheduler.tick(AT_TEN + timedelta(hours=5))
    session = scheduler.sessions[topic.id]
    assert session.remaining_seconds == 0
    assert result.completed == [topic.id]
    assert "⏰ Study Session Complete!" in alerter.titles()


def test_completion_signal_fires_once(scheduler, topic, alerter):
    scheduler.start_session(topic.id, now=AT_TEN)
    scheduler.tick(AT_TEN + timedelta(minutes=31))
    later = scheduler.tick(AT_TEN + timedelta(minutes=45))
    assert later.completed == []
    assert alerter.titles().count("⏰ Study Session Complete!") == 1
    # the session stays until finished or extended
    assert topic.id in scheduler.sessions


def test_recompute_remaining():
    start = datetime(2026, 3, 2, 10, 0)
    s = Session(topic_id="t1", start_time=start, total_seconds=300, remaining_seconds=300)
    assert recompute_remaining(s, start + timedelta(seconds=100)) == 200
    assert recompute_remaining(s, start + timedelta(days=2)) == 0


# --- Extend ---


def test_extend_then_recompute_keeps_remaining(scheduler, topic):
    scheduler.start_session(topic.id, now=AT_TEN)
    now = AT_TEN + timedelta(minutes=10)
    scheduler.tick(now)
    before = scheduler.sessions[topic.id]
    scheduler.extend_session(topic.id, 15)
    scheduler.tick(now)
    after = scheduler.sessions[topic.id]
    assert after.total_seconds == before.total_seconds + 900
    assert after.remaining_seconds == before.remaining_seconds + 900
    assert after.remaining_seconds == 2100


def test_extend_default_is_fifteen_minutes(scheduler, topic):
    scheduler.start_session(topic.id, now=AT_TEN)
    scheduler.extend_session(topic.id)
    assert scheduler.sessions[topic.id].total_seconds == 1800 + 900


def test_extend_after_completion_rearms_signal(scheduler, topic, alerter):
    scheduler.start_session(topic.id, now=AT_TEN)
    scheduler.tick(AT_TEN + timedelta(minutes=30))
    scheduler.extend_session(topic.id, 5)
    assert scheduler.sessions[topic.id].remaining_seconds == 300
    result = scheduler.tick(AT_TEN + timedelta(minutes=36))
    assert result.completed == [topic.id]
    assert alerter.titles().count("⏰ Study Session Complete!") == 2


def test_extend_without_session_is_reported(scheduler, topic):
    with pytest.raises(NothingToExtend):
        scheduler.extend_session(topic.id, 15)


@pytest.mark.parametrize("minutes", [0, -15, 2.5, True])
def test_extend_rejects_non_positive_minutes(scheduler, topic, minutes):
    scheduler.start_session(topic.id)
    with pytest.raises(ValueError):
        scheduler.extend_session(topic.id, minutes)


def test_extend_returns_pending_proposal(scheduler, topic):
    scheduler.start_session(topic.id)
    proposal = scheduler.extend_session(topic.id, 30)
    assert proposal.topic_id == topic.id
    assert proposal.original_start == datetime(2026, 3, 2, 10, 0)
    assert proposal.delta_minutes == 30
    assert "30 minutes" in proposal.prompt


def test_extend_unscheduled_topic_has_no_proposal(planner, subject, alerter):
    topic = planner.add_topic(subject.id, "Loose")
    scheduler = StudyScheduler(planner, alerter)
    scheduler.start_session(topic.id)
    assert scheduler.extend_session(topic.id, 5) is None


def test_cascade_only_after_confirmation(planner, subject, scheduler, topic):
    b = planner.add_topic(subject.id, "B", scheduled_date=DAY, scheduled_time="10:15")
    c = planner.add_topic(subject.id, "C", scheduled_date=DAY, scheduled_time="09:00")
    scheduler.start_session(topic.id)
    proposal = scheduler.extend_session(topic.id, 30)
    assert planner.get_topic(b.id).scheduled_time == "10:15"

    assert scheduler.confirm_cascade(proposal) == 1
    assert planner.get_topic(b.id).scheduled_time == "10:45"
    assert planner.get_topic(c.id).scheduled_time == "09:00"
    assert planner.get_topic(topic.id).scheduled_time == "10:00"
    # the running session is untouched by the reschedule
    assert topic.id in scheduler.sessions


# --- Finish / dismiss ---


def test_finish_session(planner, subject, scheduler, topic):
    scheduler.start_session(topic.id)
    finished = scheduler.finish_session(topic.id)
    assert finished.completed is True
    assert scheduler.sessions == {}
    assert planner.get_topic(topic.id).completed is True
    assert planner.get_subject(subject.id).completed_topics == 1


def test_finish_twice_counts_once(planner, subject, scheduler, topic):
    scheduler.start_session(topic.id)
    scheduler.finish_session(topic.id)
    scheduler.finish_session(topic.id)
    assert planner.get_subject(subject.id).completed_topics == 1


def test_finish_clears_leftover_reminder(scheduler, topic):
    scheduler.tick()
    scheduler.finish_session(topic.id)
    assert scheduler.reminders == []
    assert scheduler.state_of(topic.id) is None


def test_finish_unknown_topic_is_noop(scheduler):
    assert scheduler.finish_session("missing") is None


def test_dismiss_is_idempotent(scheduler, topic):
    scheduler.tick()
    scheduler.dismiss_reminder(topic.id)
    scheduler.dismiss_reminder(topic.id)
    assert scheduler.reminders == []


def test_dismiss_does_not_end_session(scheduler, topic):
    scheduler.start_session(topic.id)
    scheduler.dismiss_reminder(topic.id)
    assert topic.id in scheduler.sessions


def test_completing_topic_elsewhere_clears_reminder(planner, scheduler, topic):
    scheduler.tick()
    assert isinstance(scheduler.state_of(topic.id), Reminding)
    planner.set_completed(topic.id)
    assert scheduler.reminders == []


def test_deleting_topic_clears_session(planner, scheduler, topic):
    scheduler.start_session(topic.id)
    planner.delete_topic(topic.id)
    assert scheduler.sessions == {}
