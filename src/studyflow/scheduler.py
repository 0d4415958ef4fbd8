"""Reminder matching and timed study sessions.

Every poll tick samples the clock once and uses that single timestamp to
(1) raise reminders for topics whose scheduled minute has arrived and
(2) recompute the remaining time of every active session from its start
time. Remaining time is always derived from absolute elapsed time, never
decremented per tick, so a stalled or suspended poller catches up on the
next tick.

Per topic, the scheduler holds at most one state: ``Reminding`` or
``Studying``. A topic with no entry is idle.
"""
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Optional

from studyflow.alerts import Alerter, safe_alert
from studyflow.cascade import CascadeProposal, plan_cascade
from studyflow.models import Reminding, Session, StudyTopic, Studying, TopicState, format_hhmm
from studyflow.planner import StudyPlanner

logger = logging.getLogger(__name__)

DEFAULT_EXTEND_MINUTES = 15
QUICK_EXTEND_MINUTES = 5


class SchedulerError(Exception):
    pass


class SessionAlreadyActive(SchedulerError):
    pass


class NothingToExtend(SchedulerError):
    pass


class TopicCompleted(SchedulerError):
    pass


@dataclass
class TickResult:
    now: datetime
    raised: list[str] = field(default_factory=list)
    completed: list[str] = field(default_factory=list)


def is_due(topic: StudyTopic, now: datetime) -> bool:
    """True when the topic is scheduled for exactly the calendar minute of ``now``."""
    if topic.scheduled_date is None:
        return False
    return topic.scheduled_date == now.date() and topic.scheduled_time == format_hhmm(now)


def recompute_remaining(session: Session, now: datetime) -> int:
    return max(0, session.total_seconds - session.elapsed_seconds(now))


def _positive_minutes(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{name} must be a positive whole number of minutes, got {value!r}")
    return value


class StudyScheduler:
    def __init__(
        self,
        planner: StudyPlanner,
        alerter: Optional[Alerter] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.planner = planner
        self.alerter = alerter or Alerter()
        self.clock = clock
        self._lock = threading.RLock()
        self._states: dict[str, TopicState] = {}
        # (topic id, scheduled instant) pairs that already raised a reminder
        self._notified: set[tuple[str, datetime]] = set()
        planner.subscribe(self._on_planner_change)

    # -- Views ------------------------------------------------------------

    @property
    def reminders(self) -> list[str]:
        return [tid for tid, state in self._states.items() if isinstance(state, Reminding)]

    @property
    def sessions(self) -> dict[str, Session]:
        return {
            tid: state.session
            for tid, state in self._states.items()
            if isinstance(state, Studying)
        }

    def state_of(self, topic_id: str) -> Optional[TopicState]:
        return self._states.get(topic_id)

    # -- Poll tick --------------------------------------------------------

    def tick(self, now: Optional[datetime] = None) -> TickResult:
        with self._lock:
            now = now or self.clock()
            result = TickResult(now=now)
            raised = self._match_reminders(now)
            result.raised = [t.id for t in raised]
            result.completed = self._update_sessions(now)
        # Alerts run after the state change is recorded.
        for topic in raised:
            self._alert_reminder(topic)
        for topic_id in result.completed:
            self._alert_complete(topic_id)
        return result

    def _match_reminders(self, now: datetime) -> list[StudyTopic]:
        states = dict(self._states)
        raised = []
        for topic in self.planner.topics:
            if topic.completed or topic.scheduled_date is None or topic.id in states:
                continue
            if not is_due(topic, now):
                continue
            key = (topic.id, topic.scheduled_at)
            if key in self._notified:
                continue
            if self.planner.find_subject(topic.subject_id) is None:
                logger.debug(f"Topic {topic.id} has no subject, not reminding")
                continue
            states[topic.id] = Reminding(topic.id)
            self._notified.add(key)
            raised.append(topic)
            logger.info(f"Reminder raised for {topic.title!r}")
        if raised:
            self._states = states
        return raised

    def _update_sessions(self, now: datetime) -> list[str]:
        states = dict(self._states)
        completed = []
        for topic_id, state in self._states.items():
            if not isinstance(state, Studying):
                continue
            session = state.session
            remaining = recompute_remaining(session, now)
            if remaining == session.remaining_seconds:
                continue
            updated = replace(session, remaining_seconds=remaining)
            states[topic_id] = Studying(updated)
            if updated.remaining_seconds == 0 and session.remaining_seconds > 0:
                completed.append(topic_id)
                logger.info(f"Session for {topic_id} reached 00:00")
        if states != self._states:
            self._states = states
        return completed

    def _alert_reminder(self, topic: StudyTopic) -> None:
        subject = self.planner.find_subject(topic.subject_id)
        subject_name = subject.name if subject else ""
        safe_alert(self.alerter.play_alarm)
        safe_alert(
            self.alerter.show_message,
            "📚 Study Time!", f"Time to study: {topic.title} ({subject_name})", persistent=True,
        )
        safe_alert(
            self.alerter.notify,
            f"Study Time: {topic.title}",
            f"{subject_name} - {topic.duration_minutes} minutes",
            tag=topic.id,
        )

    def _alert_complete(self, topic_id: str) -> None:
        topic = self.planner.find_topic(topic_id)
        if topic is None:
            return
        safe_alert(self.alerter.play_alarm)
        safe_alert(
            self.alerter.show_message,
            "⏰ Study Session Complete!", f"Finished studying: {topic.title}", persistent=True,
        )

    # -- Lifecycle --------------------------------------------------------

    def start_session(
        self, topic_id: str, duration_minutes: Optional[int] = None, now: Optional[datetime] = None,
    ) -> Session:
        """Start a countdown for ``topic_id``. Any reminder for it is dismissed."""
        with self._lock:
            topic = self.planner.get_topic(topic_id)
            if topic.completed:
                raise TopicCompleted(f"{topic.title!r} is already completed")
            if isinstance(self._states.get(topic_id), Studying):
                raise SessionAlreadyActive(f"A session for {topic.title!r} is already running")
            minutes = _positive_minutes(
                topic.duration_minutes if duration_minutes is None else duration_minutes, "Duration",
            )
            seconds = minutes * 60
            session = Session(
                topic_id=topic_id,
                start_time=now or self.clock(),
                total_seconds=seconds,
                remaining_seconds=seconds,
            )
            self._states = {**self._states, topic_id: Studying(session)}
        logger.info(f"Started {minutes} min session for {topic.title!r}")
        return session

    def extend_session(
        self, topic_id: str, additional_minutes: int = DEFAULT_EXTEND_MINUTES,
    ) -> Optional[CascadeProposal]:
        """Add time to a running session.

        Returns a ``CascadeProposal`` for scheduled topics; later topics only
        move if the caller passes it to ``confirm_cascade``.
        """
        minutes = _positive_minutes(additional_minutes, "Extension")
        with self._lock:
            state = self._states.get(topic_id)
            if not isinstance(state, Studying):
                logger.warning(f"Nothing to extend for topic {topic_id}")
                raise NothingToExtend(f"No active session for topic {topic_id}")
            session = state.session
            extended = replace(
                session,
                total_seconds=session.total_seconds + minutes * 60,
                remaining_seconds=session.remaining_seconds + minutes * 60,
            )
            self._states = {**self._states, topic_id: Studying(extended)}
            topic = self.planner.find_topic(topic_id)
        logger.info(f"Extended session for {topic_id} by {minutes} min")
        if topic is None or topic.scheduled_at is None:
            return None
        return CascadeProposal(topic_id=topic_id, original_start=topic.scheduled_at, delta_minutes=minutes)

    def confirm_cascade(self, proposal: CascadeProposal) -> int:
        """Shift every later incomplete topic by the proposal's delta. Returns how many moved."""
        with self._lock:
            changes = plan_cascade(self.planner.topics, proposal)
            count = self.planner.reschedule(changes)
        logger.info(f"Shifted {count} upcoming topics by {proposal.delta_minutes} min")
        return count

    def finish_session(self, topic_id: str) -> Optional[StudyTopic]:
        """Close the session (if any) and mark the topic completed. Safe to call twice."""
        with self._lock:
            if topic_id in self._states:
                self._states = {k: v for k, v in self._states.items() if k != topic_id}
            topic = self.planner.find_topic(topic_id)
            if topic is None:
                return None
            if not topic.completed:
                topic = self.planner.set_completed(topic_id, True)
        logger.info(f"Finished session for {topic.title!r}")
        return topic

    def dismiss_reminder(self, topic_id: str) -> None:
        with self._lock:
            if isinstance(self._states.get(topic_id), Reminding):
                self._states = {k: v for k, v in self._states.items() if k != topic_id}

    def _on_planner_change(self, planner: StudyPlanner) -> None:
        with self._lock:
            open_ids = {t.id for t in planner.topics if not t.completed}
            # only the current slot of an open topic can ever match again
            armed = {(t.id, t.scheduled_at) for t in planner.topics if t.id in open_ids}
            self._notified &= armed
            if all(tid in open_ids for tid in self._states):
                return
            self._states = {k: v for k, v in self._states.items() if k in open_ids}
