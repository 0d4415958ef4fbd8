"""iCalendar and Google Calendar export of scheduled topics."""
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import urlencode

from studyflow.models import StudyTopic, Subject

GOOGLE_CALENDAR_URL = "https://calendar.google.com/calendar/render"
UID_DOMAIN = "studyplanner.com"
PRODID = "-//Study Planner//Study Planner Calendar//EN"
# iCalendar text values escape line breaks as a literal backslash-n
ICAL_NEWLINE = "\\n"


def format_utc(moment: datetime) -> str:
    """Local wall-clock (or aware) datetime -> ``YYYYMMDDTHHMMSSZ``."""
    return moment.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _details(topic: StudyTopic, newline: str) -> str:
    text = topic.description
    if topic.notes:
        text += f"{newline}{newline}Notes: {topic.notes}"
    if topic.resources:
        text += f"{newline}{newline}Resources:{newline}" + newline.join(topic.resources)
    return text


def _summary(topic: StudyTopic, subject: Optional[Subject]) -> str:
    return f"{topic.title} - {subject.name}" if subject else topic.title


def create_event(topic: StudyTopic, subject: Optional[Subject], stamp: datetime) -> str:
    start = topic.scheduled_at
    if start is None:
        return ""
    end = start + timedelta(minutes=topic.duration_minutes)
    return "\r\n".join([
        "BEGIN:VEVENT",
        f"UID:study-{topic.id}@{UID_DOMAIN}",
        f"DTSTAMP:{format_utc(stamp)}",
        f"DTSTART:{format_utc(start)}",
        f"DTEND:{format_utc(end)}",
        f"SUMMARY:{_summary(topic, subject)}",
        f"DESCRIPTION:{_details(topic, ICAL_NEWLINE)}",
        f"CATEGORIES:STUDY,{topic.priority.value.upper()}",
        f"STATUS:{'COMPLETED' if topic.completed else 'CONFIRMED'}",
        "END:VEVENT",
    ])


def generate_icalendar(
    topics: Iterable[StudyTopic], subjects: Iterable[Subject], now: Optional[datetime] = None,
) -> str:
    stamp = now or datetime.now(timezone.utc)
    by_id = {s.id: s for s in subjects}
    events = [
        create_event(t, by_id.get(t.subject_id), stamp)
        for t in topics if t.scheduled_date is not None
    ]
    return "\r\n".join([
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        *events,
        "END:VCALENDAR",
    ])


def write_icalendar(path: str, topics, subjects) -> int:
    """Write an .ics file and return the number of events in it."""
    topics = list(topics)
    Path(path).write_text(generate_icalendar(topics, subjects), encoding="utf-8", newline="")
    return sum(1 for t in topics if t.scheduled_date is not None)


def google_calendar_url(topic: StudyTopic, subject: Optional[Subject] = None) -> str:
    start = topic.scheduled_at
    if start is None:
        return ""
    end = start + timedelta(minutes=topic.duration_minutes)
    params = {
        "action": "TEMPLATE",
        "text": _summary(topic, subject),
        "dates": f"{format_utc(start)}/{format_utc(end)}",
        "details": _details(topic, "\n"),
        "location": subject.name if subject else "",
    }
    return f"{GOOGLE_CALENDAR_URL}?{urlencode(params)}"
