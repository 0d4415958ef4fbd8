"""Shift later topics forward after a session is extended."""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable

from studyflow.models import StudyTopic, format_hhmm


@dataclass(frozen=True)
class CascadeProposal:
    """A reschedule waiting for the user's confirmation.

    Nothing moves until the proposal is handed back to
    ``StudyScheduler.confirm_cascade``.
    """
    topic_id: str
    original_start: datetime
    delta_minutes: int

    @property
    def prompt(self) -> str:
        return (
            f"You've extended this session by {self.delta_minutes} minutes. "
            f"Shift all upcoming sessions by {self.delta_minutes} minutes to avoid conflicts?"
        )


def select_later_topics(
    topics: Iterable[StudyTopic], topic_id: str, original_start: datetime,
) -> list[StudyTopic]:
    """Incomplete scheduled topics, other than ``topic_id``, starting strictly after ``original_start``."""
    return [
        t for t in topics
        if t.id != topic_id
        and not t.completed
        and t.scheduled_at is not None
        and t.scheduled_at > original_start
    ]


def shift_topic(topic: StudyTopic, delta_minutes: int) -> tuple[date, str]:
    moved = topic.scheduled_at + timedelta(minutes=delta_minutes)
    return moved.date(), format_hhmm(moved)


def plan_cascade(topics: Iterable[StudyTopic], proposal: CascadeProposal) -> dict[str, tuple[date, str]]:
    """Map each affected topic id to its new (date, "HH:MM")."""
    later = select_later_topics(topics, proposal.topic_id, proposal.original_start)
    return {t.id: shift_topic(t, proposal.delta_minutes) for t in later}
