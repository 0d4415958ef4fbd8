"""Progress overview statistics."""
from datetime import datetime

from studyflow.models import Priority
from studyflow.planner import StudyPlanner


def get_progress_color(percent: float) -> str:
    if percent >= 80:
        return "green"
    elif percent >= 50:
        return "yellow"
    elif percent >= 25:
        return "dark_orange"
    return "red"


def _percent(done: int, total: int) -> float:
    if total == 0:
        return 0.0
    return round(done / total * 100, 1)


def get_progress_overview(planner: StudyPlanner, now: datetime) -> dict:
    topics = planner.topics
    today = now.date()
    completed = sum(1 for t in topics if t.completed)
    todays = [t for t in topics if t.scheduled_date == today]
    upcoming = [t for t in topics if t.scheduled_date and t.scheduled_date > today and not t.completed]
    return {
        "total_topics": len(topics),
        "completed_topics": completed,
        "overall_progress": _percent(completed, len(topics)),
        "today_topics": len(todays),
        "today_completed": sum(1 for t in todays if t.completed),
        "upcoming_topics": len(upcoming),
        "high_priority_open": sum(1 for t in topics if t.priority == Priority.HIGH and not t.completed),
    }


def get_subject_progress(planner: StudyPlanner) -> list[dict]:
    return [
        {
            "subject_id": s.id,
            "name": s.name,
            "color": s.color,
            "completed": s.completed_topics,
            "total": s.total_topics,
            "percent": _percent(s.completed_topics, s.total_topics),
        }
        for s in planner.subjects
    ]
