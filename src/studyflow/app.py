"""Interactive CLI application."""
import logging
import os
import sys
from datetime import date, datetime
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.prompt import Prompt, IntPrompt, Confirm

from studyflow.alerts import ConsoleAlerter
from studyflow.checklist import add_todo, join_notes, remove_todo, split_notes, toggle_todo
from studyflow.calendar_export import google_calendar_url, write_icalendar
from studyflow.dashboard import get_progress_color, get_progress_overview, get_subject_progress
from studyflow.db import DEFAULT_DB_PATH, init_db
from studyflow.interchange import default_export_name, export_data, import_data
from studyflow.models import Priority, StudyTopic, format_countdown, parse_time
from studyflow.planner import StudyPlanner, is_overdue
from studyflow.poller import ClockPoller
from studyflow.scheduler import DEFAULT_EXTEND_MINUTES, QUICK_EXTEND_MINUTES, StudyScheduler

console = Console()
logger = logging.getLogger(__name__)

PRIORITY_COLORS = {"high": "red", "medium": "yellow", "low": "green"}


def show_welcome():
    console.print(Panel(
        "[bold]Study Flow[/bold]\n[dim]Organize your academic schedule effectively[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("subjects", "List subjects and progress"),
        ("add-subject", "Add a subject"),
        ("delete-subject", "Delete a subject and its topics"),
        ("topics", "List or search topics"),
        ("add-topic", "Schedule a study topic"),
        ("edit-topic", "Change a topic"),
        ("complete", "Toggle a topic's completion"),
        ("delete-topic", "Delete a topic"),
        ("summary", "Topic details, notes and to-do list"),
        ("upcoming", "Next scheduled sessions"),
        ("dashboard", "Progress overview"),
        ("reminders", "Handle raised reminders"),
        ("start", "Start a study session"),
        ("sessions", "Active study sessions"),
        ("extend", "Add time to a session"),
        ("finish", "Finish a session"),
        ("dismiss", "Dismiss a reminder"),
        ("export", "Export data"),
        ("import", "Import data"),
        ("ical", "Export an iCalendar file"),
        ("gcal", "Google Calendar link for a topic"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<16}[/cyan] {desc}")


def format_when(topic: StudyTopic) -> str:
    if topic.scheduled_date is None:
        return "[dim]unscheduled[/dim]"
    return f"{topic.scheduled_date:%a %d %b %Y} {topic.scheduled_time}"


def choose(items: list, label, title: str, default=None):
    """Print a numbered list and return the picked item, or None when empty."""
    if not items:
        console.print(f"[yellow]No {title} available.[/yellow]")
        return None
    for i, item in enumerate(items, 1):
        console.print(f"  [cyan]{i}[/cyan]) {label(item)}")
    extra = {"default": items.index(default) + 1} if default in items else {}
    index = IntPrompt.ask(f"Select {title[:-1] if title.endswith('s') else title}",
                          choices=[str(i) for i in range(1, len(items) + 1)], **extra)
    return items[index - 1]


def ask_date(prompt: str, default: date | None = None) -> date | None:
    while True:
        raw = Prompt.ask(f"{prompt} [dim](YYYY-MM-DD, blank for none)[/dim]",
                         default=default.isoformat() if default else "").strip()
        if not raw:
            return None
        try:
            return date.fromisoformat(raw)
        except ValueError:
            console.print("[red]Invalid date.[/red]")


def ask_time(prompt: str, default: str = "09:00") -> str:
    while True:
        try:
            return parse_time(Prompt.ask(f"{prompt} [dim](HH:MM)[/dim]", default=default))
        except ValueError as e:
            console.print(f"[red]{e}[/red]")


def ask_positive_int(prompt: str, default: int) -> int:
    while True:
        value = IntPrompt.ask(prompt, default=default)
        if value > 0:
            return value
        console.print("[red]Enter a number greater than 0.[/red]")


def split_list(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def topic_label(scheduler: StudyScheduler):
    def label(topic: StudyTopic) -> str:
        subject = scheduler.planner.find_subject(topic.subject_id)
        name = subject.name if subject else "?"
        return f"{topic.title} [dim]({name}, {format_when(topic)})[/dim]"
    return label


def cmd_subjects(scheduler: StudyScheduler):
    rows = get_subject_progress(scheduler.planner)
    if not rows:
        console.print("[yellow]No subjects added yet. Use 'add-subject'.[/yellow]")
        return
    table = Table(title="Your Subjects")
    table.add_column("Subject", style="cyan")
    table.add_column("Progress", justify="right")
    table.add_column("%", justify="right")
    for row in rows:
        color = get_progress_color(row["percent"])
        table.add_row(
            f"[{row['color']}]●[/{row['color']}] {row['name']}",
            f"{row['completed']}/{row['total']}",
            f"[{color}]{row['percent']}%[/{color}]",
        )
    console.print(table)


def cmd_add_subject(scheduler: StudyScheduler):
    name = Prompt.ask("Subject name")
    color = Prompt.ask("Color", default="#3b82f6")
    subject = scheduler.planner.add_subject(name, color)
    console.print(f"[green]Added subject {subject.name}.[/green]")


def cmd_delete_subject(scheduler: StudyScheduler):
    planner = scheduler.planner
    subject = choose(list(planner.subjects), lambda s: f"{s.name} ({s.total_topics} topics)", "subjects")
    if subject is None:
        return
    if not Confirm.ask(f"Delete {subject.name} and all {subject.total_topics} topics?", default=False):
        return
    removed = planner.delete_subject(subject.id)
    console.print(f"[green]Subject deleted with {removed} topics.[/green]")


def cmd_topics(scheduler: StudyScheduler):
    query = Prompt.ask("Search [dim](blank for all)[/dim]", default="")
    topics = scheduler.planner.search(query)
    if not topics:
        console.print("[yellow]No matching topics.[/yellow]")
        return
    table = Table(title="Study Topics")
    table.add_column("Topic", style="cyan")
    table.add_column("Subject")
    table.add_column("When")
    table.add_column("Min", justify="right")
    table.add_column("Priority")
    table.add_column("Status")
    for t in topics:
        subject = scheduler.planner.find_subject(t.subject_id)
        prio = PRIORITY_COLORS[t.priority.value]
        table.add_row(
            t.title,
            subject.name if subject else "?",
            format_when(t),
            str(t.duration_minutes),
            f"[{prio}]{t.priority.value}[/{prio}]",
            "[green]Done[/green]" if t.completed else "",
        )
    console.print(table)


def cmd_add_topic(scheduler: StudyScheduler):
    planner = scheduler.planner
    subject = choose(list(planner.subjects), lambda s: s.name, "subjects")
    if subject is None:
        return
    title = Prompt.ask("Title")
    description = Prompt.ask("Description", default="")
    priority = Prompt.ask("Priority", choices=[p.value for p in Priority], default="medium")
    scheduled_date = ask_date("Date", default=date.today())
    scheduled_time = ask_time("Time")
    duration = ask_positive_int("Duration (minutes)", default=60)
    subtopics = split_list(Prompt.ask("Subtopics [dim](comma separated)[/dim]", default=""))
    resources = split_list(Prompt.ask("Resources [dim](comma separated)[/dim]", default=""))
    notes = Prompt.ask("Notes", default="")
    topic = planner.add_topic(
        subject.id, title,
        description=description, priority=Priority(priority),
        scheduled_date=scheduled_date, scheduled_time=scheduled_time,
        duration_minutes=duration, subtopics=subtopics, resources=resources, notes=notes,
    )
    console.print(f"[green]Added {topic.title} ({format_when(topic)}).[/green]")


def cmd_edit_topic(scheduler: StudyScheduler):
    planner = scheduler.planner
    topic = choose(list(planner.topics), topic_label(scheduler), "topics")
    if topic is None:
        return
    subject = choose(list(planner.subjects), lambda s: s.name, "subjects",
                     default=planner.find_subject(topic.subject_id))
    moved = {"subject_id": subject.id} if subject else {}
    updated = planner.update_topic(
        topic.id,
        **moved,
        title=Prompt.ask("Title", default=topic.title),
        description=Prompt.ask("Description", default=topic.description),
        priority=Priority(Prompt.ask("Priority", choices=[p.value for p in Priority],
                                     default=topic.priority.value)),
        scheduled_date=ask_date("Date", default=topic.scheduled_date),
        scheduled_time=ask_time("Time", default=topic.scheduled_time),
        duration_minutes=ask_positive_int("Duration (minutes)", default=topic.duration_minutes),
        subtopics=split_list(Prompt.ask("Subtopics [dim](comma separated)[/dim]",
                                        default=", ".join(topic.subtopics))),
        resources=split_list(Prompt.ask("Resources [dim](comma separated)[/dim]",
                                        default=", ".join(topic.resources))),
        notes=Prompt.ask("Notes", default=topic.notes),
    )
    console.print(f"[green]Saved {updated.title}.[/green]")


def cmd_complete(scheduler: StudyScheduler):
    topic = choose(list(scheduler.planner.topics), topic_label(scheduler), "topics")
    if topic is None:
        return
    updated = scheduler.planner.set_completed(topic.id, not topic.completed)
    state = "completed" if updated.completed else "not completed"
    console.print(f"[green]{updated.title} marked {state}.[/green]")


def cmd_delete_topic(scheduler: StudyScheduler):
    topic = choose(list(scheduler.planner.topics), topic_label(scheduler), "topics")
    if topic is None:
        return
    if Confirm.ask(f"Delete {topic.title}?", default=False):
        scheduler.planner.delete_topic(topic.id)
        console.print("[green]Topic deleted.[/green]")


def cmd_summary(scheduler: StudyScheduler):
    planner = scheduler.planner
    topic = choose(list(planner.topics), topic_label(scheduler), "topics")
    if topic is None:
        return
    subject = planner.find_subject(topic.subject_id)
    text, todos = split_notes(topic.notes)
    prio = PRIORITY_COLORS[topic.priority.value]
    lines = [
        f"[bold]{topic.title}[/bold] [dim]({subject.name if subject else '?'})[/dim]",
        f"{format_when(topic)} · {topic.duration_minutes} minutes · [{prio}]{topic.priority.value}[/{prio}]",
    ]
    if topic.description:
        lines += ["", topic.description]
    if topic.subtopics:
        lines += ["", "[bold]Subtopics[/bold]", *(f"  • {s}" for s in topic.subtopics)]
    if topic.resources:
        lines += ["", "[bold]Resources[/bold]", *(f"  • {r}" for r in topic.resources)]
    console.print(Panel("\n".join(lines), title="Session Summary", border_style="blue"))

    while True:
        console.print(f"\n[bold]Notes:[/bold] {text or '[dim]none[/dim]'}")
        console.print("[bold]To-do:[/bold]" if todos else "[bold]To-do:[/bold] [dim]none[/dim]")
        for i, todo in enumerate(todos, 1):
            label = f"[dim strike]{todo.text}[/dim strike]" if todo.completed else todo.text
            console.print(f"  [cyan]{i}[/cyan]) {'✓' if todo.completed else '○'} {label}")
        action = Prompt.ask("Action", choices=["add", "toggle", "remove", "notes", "save", "cancel"],
                            default="save")
        if action == "add":
            try:
                todos = add_todo(todos, Prompt.ask("New to-do"))
            except ValueError as e:
                console.print(f"[red]{e}[/red]")
        elif action in ("toggle", "remove") and todos:
            index = choose(list(range(len(todos))), lambda i: todos[i].text, "to-dos")
            todos = toggle_todo(todos, index) if action == "toggle" else remove_todo(todos, index)
        elif action == "notes":
            text = Prompt.ask("Notes", default=text)
        elif action == "save":
            notes = join_notes(text, todos)
            if notes != topic.notes:
                planner.update_topic(topic.id, notes=notes)
                console.print("[green]Notes saved.[/green]")
            return
        elif action == "cancel":
            return


def cmd_upcoming(scheduler: StudyScheduler):
    now = datetime.now()
    sessions = scheduler.sessions
    topics = scheduler.planner.upcoming()
    if not topics:
        console.print("[yellow]No upcoming sessions.[/yellow]")
        return
    table = Table(title="Upcoming Sessions")
    table.add_column("Topic", style="cyan")
    table.add_column("When")
    table.add_column("Min", justify="right")
    table.add_column("Status")
    for t in topics:
        if t.id in sessions:
            status = f"[blue]In progress {sessions[t.id].countdown}[/blue]"
        elif is_overdue(t, now):
            status = "[red]Overdue[/red]"
        else:
            status = ""
        table.add_row(t.title, format_when(t), str(t.duration_minutes), status)
    console.print(table)


def cmd_dashboard(scheduler: StudyScheduler):
    stats = get_progress_overview(scheduler.planner, datetime.now())
    score = stats["overall_progress"]
    color = get_progress_color(score)
    bar_filled = int(score / 5)
    bar = f"[{color}]{'█' * bar_filled}{'░' * (20 - bar_filled)}[/{color}]"
    console.print(Panel(
        f"Overall Progress: [bold]{score}%[/bold] {bar}",
        title="Progress Overview", border_style="blue",
    ))
    console.print(f"\n  Topics: [bold]{stats['completed_topics']}/{stats['total_topics']}[/bold]  |  "
                  f"Today: [bold]{stats['today_topics']}[/bold] ({stats['today_completed']} completed)  |  "
                  f"Upcoming: [bold]{stats['upcoming_topics']}[/bold]  |  "
                  f"High priority open: [bold]{stats['high_priority_open']}[/bold]")
    cmd_subjects(scheduler)


def cmd_reminders(scheduler: StudyScheduler):
    reminder_ids = scheduler.reminders
    if not reminder_ids:
        console.print("[dim]No reminders right now.[/dim]")
        return
    for topic_id in reminder_ids:
        topic = scheduler.planner.find_topic(topic_id)
        if topic is None:
            continue
        console.print(Panel(
            f"{topic.title}\n[dim]{format_when(topic)} · {topic.duration_minutes} minutes[/dim]",
            title="📚 Study Time!", border_style="yellow",
        ))
        action = Prompt.ask("Action", choices=["start", "dismiss", "skip"], default="start")
        if action == "start":
            scheduler.start_session(topic_id)
            console.print(f"[green]Studying {topic.title} for {topic.duration_minutes} minutes.[/green]")
        elif action == "dismiss":
            scheduler.dismiss_reminder(topic_id)


def cmd_start(scheduler: StudyScheduler):
    candidates = [t for t in scheduler.planner.topics
                  if not t.completed and t.id not in scheduler.sessions]
    topic = choose(candidates, topic_label(scheduler), "topics")
    if topic is None:
        return
    duration = ask_positive_int("Duration (minutes)", default=topic.duration_minutes)
    scheduler.start_session(topic.id, duration)
    console.print(f"[green]Session started: {topic.title} ({duration} min).[/green]")


def cmd_sessions(scheduler: StudyScheduler):
    scheduler.tick()
    sessions = scheduler.sessions
    if not sessions:
        console.print("[dim]No active sessions.[/dim]")
        return
    table = Table(title="Active Study Sessions")
    table.add_column("Topic", style="cyan")
    table.add_column("Remaining", justify="right")
    table.add_column("Progress", justify="right")
    for topic_id, session in sessions.items():
        topic = scheduler.planner.find_topic(topic_id)
        done = session.total_seconds - session.remaining_seconds
        percent = round(done / session.total_seconds * 100) if session.total_seconds else 100
        remaining = "[red]00:00 - extend or finish[/red]" if session.is_over else session.countdown
        table.add_row(topic.title if topic else topic_id, remaining, f"{percent}%")
    console.print(table)


def _pick_session(scheduler: StudyScheduler):
    sessions = scheduler.sessions
    topics = [scheduler.planner.find_topic(tid) for tid in sessions]
    topics = [t for t in topics if t is not None]
    return choose(
        topics,
        lambda t: f"{t.title} [dim]({format_countdown(sessions[t.id].remaining_seconds)} left)[/dim]",
        "sessions",
    )


def cmd_extend(scheduler: StudyScheduler):
    topic = _pick_session(scheduler)
    if topic is None:
        return
    raw = Prompt.ask(f"Extra minutes [dim](or '+5' for a quick {QUICK_EXTEND_MINUTES} min)[/dim]",
                     default=str(DEFAULT_EXTEND_MINUTES)).strip()
    minutes = QUICK_EXTEND_MINUTES if raw == "+5" else int(raw)
    proposal = scheduler.extend_session(topic.id, minutes)
    console.print(f"[green]Extended {topic.title} by {minutes} minutes.[/green]")
    if proposal is not None and Confirm.ask(proposal.prompt, default=False):
        count = scheduler.confirm_cascade(proposal)
        console.print(f"[green]{count} upcoming sessions have been shifted by {minutes} minutes.[/green]")


def cmd_finish(scheduler: StudyScheduler):
    topic = _pick_session(scheduler)
    if topic is None:
        return
    scheduler.finish_session(topic.id)
    console.print(f"[green]🎉 Great job completing: {topic.title}[/green]")


def cmd_dismiss(scheduler: StudyScheduler):
    topics = [scheduler.planner.find_topic(tid) for tid in scheduler.reminders]
    topic = choose([t for t in topics if t is not None], topic_label(scheduler), "reminders")
    if topic is not None:
        scheduler.dismiss_reminder(topic.id)
        console.print("[dim]Reminder dismissed.[/dim]")


def cmd_export(scheduler: StudyScheduler):
    file_path = Prompt.ask("Export to", default=default_export_name())
    result = export_data(file_path, scheduler.planner.subjects, scheduler.planner.topics)
    console.print(f"[green]Exported {result['subjects']} subjects and {result['topics']} topics "
                  f"to {result['filename']}.[/green]")


def cmd_import(scheduler: StudyScheduler):
    file_path = Prompt.ask("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    subjects, topics = import_data(file_path)
    if not Confirm.ask(f"Replace current data with {len(subjects)} subjects and {len(topics)} topics?",
                       default=False):
        return
    scheduler.planner.replace_all(subjects, topics)
    console.print("[green]Data imported.[/green]")


def cmd_ical(scheduler: StudyScheduler):
    file_path = Prompt.ask("Write calendar to", default="study-planner-calendar.ics")
    count = write_icalendar(file_path, scheduler.planner.topics, scheduler.planner.subjects)
    console.print(f"[green]Wrote {count} events to {file_path}.[/green]")


def cmd_gcal(scheduler: StudyScheduler):
    scheduled = [t for t in scheduler.planner.topics if t.scheduled_date is not None]
    topic = choose(scheduled, topic_label(scheduler), "topics")
    if topic is not None:
        console.print(google_calendar_url(topic, scheduler.planner.find_subject(topic.subject_id)))


COMMANDS = {
    "subjects": cmd_subjects,
    "add-subject": cmd_add_subject,
    "delete-subject": cmd_delete_subject,
    "topics": cmd_topics,
    "add-topic": cmd_add_topic,
    "edit-topic": cmd_edit_topic,
    "complete": cmd_complete,
    "delete-topic": cmd_delete_topic,
    "summary": cmd_summary,
    "upcoming": cmd_upcoming,
    "dashboard": cmd_dashboard,
    "reminders": cmd_reminders,
    "start": cmd_start,
    "sessions": cmd_sessions,
    "extend": cmd_extend,
    "finish": cmd_finish,
    "dismiss": cmd_dismiss,
    "export": cmd_export,
    "import": cmd_import,
    "ical": cmd_ical,
    "gcal": cmd_gcal,
}


def configure_logging():
    logging.basicConfig(
        level=os.environ.get("STUDYFLOW_LOG_LEVEL", "WARNING").upper(),
        format="%(levelname)s:%(name)s:%(message)s",
        stream=sys.stderr,
    )


def main():
    configure_logging()
    db_path = os.environ.get("STUDYFLOW_DB", DEFAULT_DB_PATH)
    init_db(db_path)
    planner = StudyPlanner.load(db_path)
    scheduler = StudyScheduler(planner, ConsoleAlerter(console))
    poller = ClockPoller(scheduler.tick)

    show_welcome()
    poller.start()
    try:
        while True:
            show_menu()
            choice = Prompt.ask("\n[bold]>[/bold]", default="upcoming").strip().lower()
            try:
                if choice in ("quit", "exit", "q"):
                    console.print("[dim]Happy studying![/dim]")
                    break
                command = COMMANDS.get(choice)
                if command is None:
                    console.print("[red]Unknown command. Try again.[/red]")
                    continue
                command(scheduler)
            except KeyboardInterrupt:
                console.print("\n[dim]Use 'quit' to exit.[/dim]")
            except Exception as e:
                logger.debug("Command failed", exc_info=True)
                console.print(f"[red]Error: {e}[/red]")
    finally:
        poller.stop()


if __name__ == "__main__":
    main()
