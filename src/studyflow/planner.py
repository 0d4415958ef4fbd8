"""Application state: subjects, topics and their cached progress counters."""
import logging
from dataclasses import fields, replace
from datetime import date, datetime
from typing import Callable, Iterable, Optional

from studyflow.models import Priority, StudyTopic, Subject, new_id, parse_time
from studyflow.store import load_subjects, load_topics, save_subjects, save_topics

logger = logging.getLogger(__name__)

UPCOMING_LIMIT = 5

_TOPIC_FIELDS = {f.name for f in fields(StudyTopic)} - {"id"}

Listener = Callable[["StudyPlanner"], None]


def recount(subjects: Iterable[Subject], topics: Iterable[StudyTopic]) -> tuple[Subject, ...]:
    """Return subjects with total/completed counts recomputed from ``topics``."""
    topics = list(topics)
    result = []
    for subject in subjects:
        own = [t for t in topics if t.subject_id == subject.id]
        total = len(own)
        done = sum(1 for t in own if t.completed)
        if subject.total_topics != total or subject.completed_topics != done:
            subject = replace(subject, total_topics=total, completed_topics=done)
        result.append(subject)
    return tuple(result)


def _validate_topic(topic: StudyTopic) -> StudyTopic:
    if not topic.title.strip():
        raise ValueError("Topic title is required")
    if isinstance(topic.duration_minutes, bool) or not isinstance(topic.duration_minutes, int) \
            or topic.duration_minutes <= 0:
        raise ValueError(f"Duration must be a positive number of minutes, got {topic.duration_minutes!r}")
    return replace(
        topic,
        priority=Priority(topic.priority),
        scheduled_time=parse_time(topic.scheduled_time),
    )


class StudyPlanner:
    """Owns the subject and topic collections.

    Collections are tuples replaced as a whole on every change; each change
    notifies subscribers once, after the new state is in place.
    """

    def __init__(self, subjects: Iterable[Subject] = (), topics: Iterable[StudyTopic] = ()):
        self._topics: tuple[StudyTopic, ...] = tuple(topics)
        self._subjects: tuple[Subject, ...] = recount(subjects, self._topics)
        self._listeners: list[Listener] = []

    @classmethod
    def load(cls, db_path: str) -> "StudyPlanner":
        planner = cls(load_subjects(db_path), load_topics(db_path))
        planner.attach_store(db_path)
        return planner

    @property
    def subjects(self) -> tuple[Subject, ...]:
        return self._subjects

    @property
    def topics(self) -> tuple[StudyTopic, ...]:
        return self._topics

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def attach_store(self, db_path: str) -> None:
        """Persist both collections after every change."""
        def persist(planner: "StudyPlanner") -> None:
            save_subjects(db_path, planner.subjects)
            save_topics(db_path, planner.topics)
        self.subscribe(persist)

    def _commit(self, subjects: Iterable[Subject], topics: Iterable[StudyTopic]) -> None:
        topics = tuple(topics)
        self._subjects, self._topics = recount(subjects, topics), topics
        for listener in list(self._listeners):
            listener(self)

    # -- Lookups ----------------------------------------------------------

    def get_subject(self, subject_id: str) -> Subject:
        for subject in self._subjects:
            if subject.id == subject_id:
                return subject
        raise KeyError(f"Unknown subject: {subject_id}")

    def find_subject(self, subject_id: str) -> Optional[Subject]:
        return next((s for s in self._subjects if s.id == subject_id), None)

    def get_topic(self, topic_id: str) -> StudyTopic:
        for topic in self._topics:
            if topic.id == topic_id:
                return topic
        raise KeyError(f"Unknown topic: {topic_id}")

    def find_topic(self, topic_id: str) -> Optional[StudyTopic]:
        return next((t for t in self._topics if t.id == topic_id), None)

    def topics_for_subject(self, subject_id: str) -> list[StudyTopic]:
        return [t for t in self._topics if t.subject_id == subject_id]

    # -- Subjects ---------------------------------------------------------

    def add_subject(self, name: str, color: str = "#3b82f6") -> Subject:
        if not name.strip():
            raise ValueError("Subject name is required")
        subject = Subject(id=new_id(), name=name.strip(), color=color)
        self._commit(self._subjects + (subject,), self._topics)
        logger.info(f"Added subject {subject.name!r}")
        return subject

    def delete_subject(self, subject_id: str) -> int:
        """Delete a subject and every topic that references it. Returns the topic count removed."""
        self.get_subject(subject_id)
        remaining = tuple(t for t in self._topics if t.subject_id != subject_id)
        removed = len(self._topics) - len(remaining)
        self._commit(
            tuple(s for s in self._subjects if s.id != subject_id),
            remaining,
        )
        logger.info(f"Deleted subject {subject_id} and {removed} topics")
        return removed

    # -- Topics -----------------------------------------------------------

    def add_topic(self, subject_id: str, title: str, **details) -> StudyTopic:
        self.get_subject(subject_id)
        unknown = set(details) - _TOPIC_FIELDS
        if unknown:
            raise TypeError(f"Unknown topic fields: {', '.join(sorted(unknown))}")
        topic = _validate_topic(StudyTopic(id=new_id(), subject_id=subject_id, title=title, **details))
        self._commit(self._subjects, self._topics + (topic,))
        logger.info(f"Added topic {topic.title!r}")
        return topic

    def update_topic(self, topic_id: str, **changes) -> StudyTopic:
        unknown = set(changes) - _TOPIC_FIELDS
        if unknown:
            raise TypeError(f"Unknown topic fields: {', '.join(sorted(unknown))}")
        if "subject_id" in changes:
            self.get_subject(changes["subject_id"])
        updated = _validate_topic(replace(self.get_topic(topic_id), **changes))
        self._commit(
            self._subjects,
            tuple(updated if t.id == topic_id else t for t in self._topics),
        )
        return updated

    def set_completed(self, topic_id: str, completed: bool = True) -> StudyTopic:
        return self.update_topic(topic_id, completed=completed)

    def reschedule(self, changes: dict[str, tuple[date, str]]) -> int:
        """Move several topics in a single transition. ``changes`` maps id -> (date, "HH:MM")."""
        if not changes:
            return 0
        topics = []
        for topic in self._topics:
            if topic.id in changes:
                new_date, new_time = changes[topic.id]
                topic = replace(topic, scheduled_date=new_date, scheduled_time=parse_time(new_time))
            topics.append(topic)
        self._commit(self._subjects, topics)
        return len(changes)

    def delete_topic(self, topic_id: str) -> StudyTopic:
        topic = self.get_topic(topic_id)
        self._commit(self._subjects, tuple(t for t in self._topics if t.id != topic_id))
        logger.info(f"Deleted topic {topic.title!r}")
        return topic

    def replace_all(self, subjects: Iterable[Subject], topics: Iterable[StudyTopic]) -> None:
        self._commit(tuple(subjects), tuple(topics))

    # -- Queries ----------------------------------------------------------

    def search(self, query: str) -> list[StudyTopic]:
        needle = query.strip().lower()
        if not needle:
            return list(self._topics)
        names = {s.id: s.name.lower() for s in self._subjects}
        return [
            t for t in self._topics
            if needle in t.title.lower()
            or needle in t.description.lower()
            or needle in names.get(t.subject_id, "")
        ]

    def upcoming(self, limit: int = UPCOMING_LIMIT) -> list[StudyTopic]:
        pending = [t for t in self._topics if t.scheduled_date and not t.completed]
        pending.sort(key=lambda t: t.scheduled_at)
        return pending[:limit]


def is_overdue(topic: StudyTopic, now: datetime) -> bool:
    start = topic.scheduled_at
    return start is not None and not topic.completed and start < now
