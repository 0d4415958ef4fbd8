import pytest

from studyflow.alerts import Alerter
from studyflow.planner import StudyPlanner


class RecordingAlerter(Alerter):
    """Alerter that records every call instead of making noise."""

    def __init__(self):
        self.calls = []

    def play_alarm(self):
        self.calls.append(("alarm",))

    def show_message(self, title, body, persistent=False):
        self.calls.append(("message", title, body, persistent))

    def notify(self, title, body, tag):
        self.calls.append(("notify", title, body, tag))

    def count(self, kind):
        return sum(1 for call in self.calls if call[0] == kind)

    def titles(self):
        return [call[1] for call in self.calls if call[0] == "message"]


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_studyflow.db")
    return db_path


@pytest.fixture
def alerter():
    return RecordingAlerter()


@pytest.fixture
def planner():
    return StudyPlanner()
