import json
from datetime import datetime

import pytest
from pydantic import ValidationError

from ortu.database.history_manager import HistoryManager


def _snapshot(store):
    items = store.export_all()
    data = json.loads(items)
    return (
        sorted(
            (
                item["raw_content"],
                item["category"],
                tuple(sorted(item["groups"])),
                item["is_permanent"],
                item["created_at"],
            )
            for item in data["history"]
        ),
        sorted((group["name"], group["is_system"]) for group in data["groups"]),
    )


@pytest.fixture
def populated(manager, clock):
    docker = manager.insert_item("docker ps -a", "Docker")
    clock.advance(minutes=3)
    note = manager.insert_item("remember the milk")
    manager.add_to_group(note, "Personal")
    manager.add_to_group(note, "Errands")
    manager.toggle_permanent(note)
    manager.create_group("Empty", is_system=True)
    clock.advance(minutes=3)
    manager.insert_item("plain text")
    return {"docker": docker, "note": note}


def test_backup_document_shape(manager, populated):
    data = json.loads(manager.export_all())

    assert set(data) == {"history", "groups", "exported_at"}
    assert datetime.fromisoformat(data["exported_at"]).tzinfo is not None
    assert {group["name"] for group in data["groups"]} == {
        "Docker", "Personal", "Errands", "Empty"}
    note = next(item for item in data["history"]
                if item["raw_content"] == "remember the milk")
    assert sorted(note["groups"]) == ["Errands", "Personal"]
    assert note["is_permanent"] is True


def test_backup_is_pretty_printed(manager, populated):
    assert "\n  " in manager.export_all()


def test_replace_round_trip(manager, populated):
    before = _snapshot(manager)
    document = manager.export_all()

    manager.delete_item(populated["docker"])
    manager.insert_item("noise", "Noise")
    manager.rename_group("Personal", "Private")

    manager.restore(document, "replace")

    assert _snapshot(manager) == before


def test_replace_into_fresh_database(manager, populated, tmp_path, clock):
    document = manager.export_all()

    with HistoryManager(tmp_path / "other.db", clock=clock) as other:
        other.insert_item("will be wiped")
        assert other.restore(document, "replace") == 3
        assert _snapshot(other) == _snapshot(manager)


def test_restore_never_reuses_backup_ids(manager, populated):
    document = manager.export_all()
    highest = max(item.id for item in manager.get_history())

    manager.restore(document, "replace")

    assert min(item.id for item in manager.get_history()) > highest


def test_merge_reuses_identical_content(manager, clock):
    existing = manager.insert_item("alpha", "First")
    backup = json.dumps({
        "history": [
            {
                "id": 77,
                "content_type": "text",
                "raw_content": "alpha",
                "category": "Second",
                "groups": ["Second"],
                "is_permanent": False,
                "created_at": "2025-05-01T10:00:00",
            },
            {
                "id": 78,
                "content_type": "text",
                "raw_content": "beta",
                "category": None,
                "groups": [],
                "is_permanent": True,
                "created_at": "2025-05-01T10:05:00+02:00",
            },
        ],
        "groups": [{"id": 5, "name": "Second", "is_system": False}],
        "exported_at": "2025-05-01T12:00:00+00:00",
    })

    assert manager.restore(backup, "merge") == 1

    items = {item.raw_content: item for item in manager.get_history()}
    assert len(items) == 2
    alpha = items["alpha"]
    assert alpha.id == existing
    assert alpha.groups == ["First", "Second"]
    assert alpha.category == "First"

    beta = items["beta"]
    assert beta.is_permanent is True
    assert beta.created_at == datetime(2025, 5, 1, 8, 5, 0)


def test_merge_keeps_existing_groups(manager, populated):
    document = manager.export_all()
    manager.create_group("Local")

    manager.restore(document, "merge")

    assert "Local" in manager.get_categories()
    assert len(manager.get_history()) == 3


def test_selected_groups_export(manager, populated):
    data = json.loads(manager.export_all(["Personal"]))

    assert [item["raw_content"] for item in data["history"]] == ["remember the milk"]
    assert [group["name"] for group in data["groups"]] == ["Personal"]


def test_empty_selection_means_everything(manager, populated):
    assert len(json.loads(manager.export_all([]))["history"]) == 3


def test_unknown_mode(manager, populated):
    with pytest.raises(ValueError):
        manager.restore(manager.export_all(), "overwrite")


def test_invalid_document_changes_nothing(manager, populated):
    before = _snapshot(manager)
    with pytest.raises(ValidationError):
        manager.restore('{"history": [{"raw_content": 1}]}', "replace")
    assert _snapshot(manager) == before
