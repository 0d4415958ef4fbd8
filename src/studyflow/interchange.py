"""Export and import of the whole planner (subjects + topics)."""
import json
import logging
from datetime import date, datetime
from pathlib import Path

import yaml

from studyflow.models import StudyTopic, Subject
from studyflow.store import (
    parse_records, subject_from_dict, subject_to_dict, topic_from_dict, topic_to_dict,
)

logger = logging.getLogger(__name__)

FORMAT_VERSION = "1.0"
YAML_SUFFIXES = (".yaml", ".yml")


class InterchangeError(Exception):
    pass


def default_export_name(today: date | None = None) -> str:
    return f"study-flow-data-{(today or date.today()).isoformat()}.json"


def build_document(subjects, topics) -> dict:
    return {
        "subjects": [subject_to_dict(s) for s in subjects],
        "topics": [topic_to_dict(t) for t in topics],
        "exportDate": datetime.now().isoformat(),
        "version": FORMAT_VERSION,
    }


def export_data(file_path: str, subjects, topics) -> dict:
    """Write subjects and topics to ``file_path`` (JSON, or YAML by suffix)."""
    path = Path(file_path)
    document = build_document(subjects, topics)
    if path.suffix.lower() in YAML_SUFFIXES:
        path.write_text(yaml.safe_dump(document, sort_keys=False, allow_unicode=True))
    else:
        path.write_text(json.dumps(document, indent=2))
    logger.info(f"Exported {len(document['subjects'])} subjects and {len(document['topics'])} topics to {path}")
    return {"filename": path.name, "subjects": len(document["subjects"]), "topics": len(document["topics"])}


def read_document(file_path: str) -> dict:
    path = Path(file_path)
    text = path.read_text()
    try:
        if path.suffix.lower() in YAML_SUFFIXES:
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (ValueError, yaml.YAMLError) as e:
        raise InterchangeError(f"Could not parse {path.name}: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("subjects"), list) \
            or not isinstance(data.get("topics"), list):
        raise InterchangeError("Invalid data format: expected 'subjects' and 'topics' lists")
    return data


def import_data(file_path: str) -> tuple[list[Subject], list[StudyTopic]]:
    """Read an exported file. Ids are preserved; malformed records are dropped."""
    data = read_document(file_path)
    subjects = parse_records(data["subjects"], subject_from_dict, "subject")
    topics = parse_records(data["topics"], _topic_from_export, "topic")
    return subjects, topics


def _topic_from_export(record: dict) -> StudyTopic:
    # YAML loads bare ISO dates as date objects
    if isinstance(record.get("scheduledDate"), date):
        record = {**record, "scheduledDate": record["scheduledDate"].isoformat()}
    return topic_from_dict(record)
