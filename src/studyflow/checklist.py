"""To-do checklist kept inside a topic's notes as ``[ ] item`` / ``[x] item`` lines."""
import re
from dataclasses import dataclass, replace

TODO_PATTERN = re.compile(r"^\[([x ])\] (.+)$")


@dataclass(frozen=True)
class Todo:
    text: str
    completed: bool = False

    def render(self) -> str:
        return f"[{'x' if self.completed else ' '}] {self.text}"


def split_notes(notes: str) -> tuple[str, list[Todo]]:
    """Separate free-text notes from checklist lines."""
    text_lines, todos = [], []
    for line in notes.splitlines():
        match = TODO_PATTERN.match(line.strip())
        if match:
            todos.append(Todo(match.group(2).strip(), match.group(1) == "x"))
        else:
            text_lines.append(line)
    return "\n".join(text_lines).strip(), todos


def join_notes(text: str, todos: list[Todo]) -> str:
    """Inverse of ``split_notes``: free text first, then one line per to-do."""
    return "\n".join(part for part in [text.strip(), *(t.render() for t in todos)] if part)


def add_todo(todos: list[Todo], text: str) -> list[Todo]:
    text = text.strip()
    if not text:
        raise ValueError("To-do text is required")
    return [*todos, Todo(text)]


def toggle_todo(todos: list[Todo], index: int) -> list[Todo]:
    return [replace(t, completed=not t.completed) if i == index else t for i, t in enumerate(todos)]


def remove_todo(todos: list[Todo], index: int) -> list[Todo]:
    return [t for i, t in enumerate(todos) if i != index]
