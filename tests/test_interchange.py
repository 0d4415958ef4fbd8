import json
from datetime import date

import pytest

from studyflow.interchange import (
    InterchangeError, default_export_name, export_data, import_data,
)
from studyflow.planner import StudyPlanner


def build_planner():
    planner = StudyPlanner()
    math = planner.add_subject("Math", "#ff0000")
    physics = planner.add_subject("Physics", "#00ff00")
    planner.add_topic(math.id, "Limits", description="eps", subtopics=["one-sided"],
                      priority="high", scheduled_date=date(2026, 3, 2), scheduled_time="10:00",
                      duration_minutes=45, notes="n", resources=["book"])
    done = planner.add_topic(physics.id, "Optics")
    planner.set_completed(done.id)
    return planner


@pytest.mark.parametrize("name", ["data.json", "data.yaml", "data.yml"])
def test_round_trip_preserves_everything(tmp_path, name):
    planner = build_planner()
    path = tmp_path / name
    result = export_data(str(path), planner.subjects, planner.topics)
    assert result == {"filename": name, "subjects": 2, "topics": 2}
    subjects, topics = import_data(str(path))
    assert subjects == list(planner.subjects)
    assert topics == list(planner.topics)


def test_export_document_shape(tmp_path):
    planner = build_planner()
    path = tmp_path / "data.json"
    export_data(str(path), planner.subjects, planner.topics)
    data = json.loads(path.read_text())
    assert data["version"] == "1.0"
    assert "exportDate" in data
    assert data["topics"][0]["scheduledDate"] == "2026-03-02"
    assert data["topics"][1]["scheduledDate"] is None


def test_import_replaces_planner_state(tmp_path):
    source = build_planner()
    path = tmp_path / "data.json"
    export_data(str(path), source.subjects, source.topics)
    target = StudyPlanner()
    target.add_subject("Old")
    target.replace_all(*import_data(str(path)))
    assert [s.name for s in target.subjects] == ["Math", "Physics"]
    assert target.subjects[1].completed_topics == 1


def test_import_yaml_with_bare_dates(tmp_path):
    path = tmp_path / "data.yaml"
    path.write_text(
        "subjects:\n"
        "  - {id: s1, name: Math}\n"
        "topics:\n"
        "  - {id: t1, subjectId: s1, title: Limits, scheduledDate: 2026-03-02,\n"
        "     scheduledTime: '10:00', duration: 30}\n"
    )
    subjects, topics = import_data(str(path))
    assert topics[0].scheduled_date == date(2026, 3, 2)


def test_import_rejects_missing_collections(tmp_path):
    path = tmp_path / "data.json"
    path.write_text(json.dumps({"subjects": []}))
    with pytest.raises(InterchangeError):
        import_data(str(path))


def test_import_rejects_unparseable_file(tmp_path):
    path = tmp_path / "data.json"
    path.write_text("{oops")
    with pytest.raises(InterchangeError):
        import_data(str(path))


def test_import_skips_bad_records(tmp_path):
    path = tmp_path / "data.json"
    path.write_text(json.dumps({
        "subjects": [{"id": "s1", "name": "Math"}],
        "topics": [
            {"id": "t1", "subjectId": "s1", "title": "A", "scheduledTime": "10:00", "duration": 30},
            {"id": "t2", "subjectId": "s1", "title": "B", "scheduledTime": "10:00", "duration": -1},
        ],
    }))
    _, topics = import_data(str(path))
    assert [t.id for t in topics] == ["t1"]


def test_default_export_name():
    assert default_export_name(date(2026, 3, 2)) == "study-flow-data-2026-03-02.json"
