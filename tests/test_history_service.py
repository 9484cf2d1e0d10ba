import json

import pytest

from conftest import contents
from ortu.errors import CommandError
from ortu.services.history_service import HistoryService


@pytest.fixture
def service(manager):
    return HistoryService(manager)


def test_search_grammar_is_parsed(service, manager, clock):
    manager.insert_item("docker ps", "Docker")
    clock.advance(seconds=1)
    manager.insert_item("git log", "Version Control")
    clock.advance(seconds=1)
    manager.insert_item("docker images")

    assert contents(service.get_history("category:Docker")) == ["docker ps"]
    assert contents(service.get_history("group:Code")) == ["git log"]
    assert contents(service.get_history("docker")) == ["docker images", "docker ps"]
    assert len(service.get_history()) == 3


def test_missing_item_becomes_command_error(service):
    with pytest.raises(CommandError) as excinfo:
        service.add_to_group(404, "Work")
    assert "404" in str(excinfo.value)


def test_rename_collision_is_reported(service, manager):
    manager.create_group("A")
    manager.create_group("B")

    with pytest.raises(CommandError):
        service.rename_group("A", "B")
    assert manager.get_categories() == ["A", "B"]


def test_group_commands(service, manager):
    item = manager.insert_item("note")

    service.create_group("Work")
    service.add_to_group(item, "Work")
    assert manager.get_item(item).groups == ["Work"]

    service.rename_group("Work", "Job")
    assert manager.get_item(item).groups == ["Job"]

    service.remove_from_group(item, "Job")
    assert manager.get_item(item).groups == []

    service.delete_group("Job")
    assert service.get_categories() == []


def test_set_category_and_delete(service, manager):
    item = manager.insert_item("ls -la")

    service.set_category(item, "Shell / OS")
    assert manager.get_item(item).category == "Shell / OS"

    service.delete_entry(item)
    assert manager.get_item(item) is None


def test_backup_and_restore_files(service, manager, tmp_path):
    manager.insert_item("kept", "Keep")
    path = tmp_path / "backup.json"

    service.backup_data(path)
    assert json.loads(path.read_text(encoding="utf-8"))["history"][0]["raw_content"] == "kept"

    manager.insert_item("extra")
    service.restore_data(path, "replace")
    assert contents(manager.get_history()) == ["kept"]


def test_backup_selected_groups(service, manager, tmp_path):
    manager.insert_item("one", "A")
    manager.insert_item("two", "B")
    path = tmp_path / "backup.json"

    service.backup_data(path, ["B"])

    data = json.loads(path.read_text(encoding="utf-8"))
    assert [item["raw_content"] for item in data["history"]] == ["two"]


def test_restore_missing_file(service, tmp_path):
    with pytest.raises(CommandError):
        service.restore_data(tmp_path / "nope.json")


def test_restore_bad_mode(service, manager, tmp_path):
    path = tmp_path / "backup.json"
    service.backup_data(path)

    with pytest.raises(CommandError):
        service.restore_data(path, "clobber")


def test_restore_garbage(service, tmp_path):
    path = tmp_path / "backup.json"
    path.write_text("not json", encoding="utf-8")

    with pytest.raises(CommandError):
        service.restore_data(path)


def test_text_export_and_import(service, manager, tmp_path):
    manager.insert_item("first", "Snippets")
    path = tmp_path / "snippets.txt"

    service.export_group("Snippets", path)
    service.import_group("Copied", path)

    copied = [item for item in manager.get_history() if "Copied" in item.groups]
    assert contents(copied) == ["first"]


def test_export_all_txt(service, manager, tmp_path):
    manager.insert_item("a")
    path = tmp_path / "all.txt"

    service.export_all_txt(path)

    assert path.read_text(encoding="utf-8") == "a"


def test_manual_cleanup(service, manager, clock):
    old = manager.insert_item("old")
    pinned = manager.insert_item("pinned")
    manager.toggle_permanent(pinned)
    clock.advance(hours=30)

    service.manual_cleanup()

    assert manager.get_item(old) is None
    assert manager.get_item(pinned) is not None
