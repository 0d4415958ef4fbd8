"""Whole-collection persistence of subjects and topics."""
import json
import logging
from datetime import date, datetime

from studyflow.db import SUBJECTS_KEY, TOPICS_KEY, get_value, set_value
from studyflow.models import Priority, StudyTopic, Subject, parse_time

logger = logging.getLogger(__name__)

REQUIRED_SUBJECT_FIELDS = ("id", "name")
REQUIRED_TOPIC_FIELDS = ("id", "subjectId", "title", "scheduledTime", "duration")


def subject_to_dict(subject: Subject) -> dict:
    return {
        "id": subject.id,
        "name": subject.name,
        "color": subject.color,
        "totalTopics": subject.total_topics,
        "completedTopics": subject.completed_topics,
    }


def subject_from_dict(data: dict) -> Subject:
    missing = [f for f in REQUIRED_SUBJECT_FIELDS if f not in data]
    if missing:
        raise ValueError(f"subject record missing {', '.join(missing)}")
    return Subject(
        id=str(data["id"]),
        name=str(data["name"]),
        color=str(data.get("color", "#3b82f6")),
        total_topics=int(data.get("totalTopics", 0)),
        completed_topics=int(data.get("completedTopics", 0)),
    )


def parse_scheduled_date(value) -> date | None:
    """Parse a stored date. Accepts ``YYYY-MM-DD`` or a full ISO timestamp.

    Timestamps are read back on the local calendar, so a local midnight
    saved as UTC lands on the day it was scheduled for.
    """
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"invalid scheduledDate {value!r}")
    if "T" not in value:
        return date.fromisoformat(value)
    moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return moment.astimezone().date()


def topic_to_dict(topic: StudyTopic) -> dict:
    return {
        "id": topic.id,
        "subjectId": topic.subject_id,
        "title": topic.title,
        "description": topic.description,
        "subtopics": list(topic.subtopics),
        "priority": topic.priority.value,
        "scheduledDate": topic.scheduled_date.isoformat() if topic.scheduled_date else None,
        "scheduledTime": topic.scheduled_time,
        "duration": topic.duration_minutes,
        "completed": topic.completed,
        "notes": topic.notes,
        "resources": list(topic.resources),
    }


def topic_from_dict(data: dict) -> StudyTopic:
    missing = [f for f in REQUIRED_TOPIC_FIELDS if f not in data]
    if missing:
        raise ValueError(f"topic record missing {', '.join(missing)}")
    duration = int(data["duration"])
    if duration <= 0:
        raise ValueError(f"invalid duration {duration}")
    return StudyTopic(
        id=str(data["id"]),
        subject_id=str(data["subjectId"]),
        title=str(data["title"]),
        description=str(data.get("description") or ""),
        subtopics=[str(s) for s in data.get("subtopics") or []],
        priority=Priority(data.get("priority", "medium")),
        scheduled_date=parse_scheduled_date(data.get("scheduledDate")),
        scheduled_time=parse_time(data["scheduledTime"]),
        duration_minutes=duration,
        completed=bool(data.get("completed", False)),
        notes=str(data.get("notes") or ""),
        resources=[str(r) for r in data.get("resources") or []],
    )


def parse_records(records, parse, kind: str) -> list:
    """Parse a list of raw records, dropping the ones that fail to parse."""
    parsed = []
    for index, record in enumerate(records or []):
        if not isinstance(record, dict):
            logger.warning(f"Skipping {kind} #{index}: not an object")
            continue
        try:
            parsed.append(parse(record))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed {kind} #{index}: {e}")
    return parsed


def _load(db_path: str, key: str) -> list:
    raw = get_value(db_path, key)
    if raw is None:
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error(f"Stored collection {key!r} is unreadable: {e}")
        return []
    if not isinstance(data, list):
        logger.error(f"Stored collection {key!r} is not a list")
        return []
    return data


def load_subjects(db_path: str) -> list[Subject]:
    return parse_records(_load(db_path, SUBJECTS_KEY), subject_from_dict, "subject")


def load_topics(db_path: str) -> list[StudyTopic]:
    return parse_records(_load(db_path, TOPICS_KEY), topic_from_dict, "topic")


def save_subjects(db_path: str, subjects) -> None:
    set_value(db_path, SUBJECTS_KEY, json.dumps([subject_to_dict(s) for s in subjects]))


def save_topics(db_path: str, topics) -> None:
    set_value(db_path, TOPICS_KEY, json.dumps([topic_to_dict(t) for t in topics]))
