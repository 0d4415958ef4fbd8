"""Data classes for the study planner domain model."""
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Optional, Union

from ulid import ULID

TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def new_id() -> str:
    """Generate a sortable unique id for subjects and topics."""
    return str(ULID())


def parse_time(value: str) -> str:
    """Validate an "H:MM"/"HH:MM" string and return it zero-padded."""
    match = TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    return f"{hours:02d}:{minutes:02d}"


def format_hhmm(moment: Union[datetime, time]) -> str:
    return f"{moment.hour:02d}:{moment.minute:02d}"


def format_countdown(seconds: int) -> str:
    """Render a remaining-seconds value as MM:SS."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


@dataclass
class Subject:
    id: str
    name: str
    color: str = "#3b82f6"
    total_topics: int = 0
    completed_topics: int = 0

    @property
    def progress(self) -> float:
        if self.total_topics == 0:
            return 0.0
        return self.completed_topics / self.total_topics * 100


@dataclass
class StudyTopic:
    id: str
    subject_id: str
    title: str
    description: str = ""
    subtopics: list[str] = field(default_factory=list)
    priority: Priority = Priority.MEDIUM
    scheduled_date: Optional[date] = None
    scheduled_time: str = "09:00"
    duration_minutes: int = 60
    completed: bool = False
    notes: str = ""
    resources: list[str] = field(default_factory=list)

    @property
    def scheduled_at(self) -> Optional[datetime]:
        """The local wall-clock instant this topic is scheduled for, or None."""
        if self.scheduled_date is None:
            return None
        hours, minutes = (int(part) for part in self.scheduled_time.split(":"))
        return datetime.combine(self.scheduled_date, time(hours, minutes))


@dataclass(frozen=True)
class Session:
    """An active countdown for one topic.

    ``remaining_seconds`` is derived from ``start_time`` and ``total_seconds``
    on every recompute, so a gap between polls never leaves it stale.
    """
    topic_id: str
    start_time: datetime
    total_seconds: int
    remaining_seconds: int

    def elapsed_seconds(self, now: datetime) -> int:
        return max(0, math.floor((now - self.start_time).total_seconds()))

    @property
    def is_over(self) -> bool:
        return self.remaining_seconds == 0

    @property
    def countdown(self) -> str:
        return format_countdown(self.remaining_seconds)


@dataclass(frozen=True)
class Reminding:
    topic_id: str


@dataclass(frozen=True)
class Studying:
    session: Session

    @property
    def topic_id(self) -> str:
        return self.session.topic_id


# A topic with no entry in the scheduler's state map is idle.
TopicState = Union[Reminding, Studying]
