import json
import os

import pytest

from blog_api.core.errors import NotFound
from blog_api.core import scheduler
from blog_api.storage.backup_storage import BackupStorage
from conftest import seed_blog


def test_save_writes_pretty_json(tmp_path):
    storage = BackupStorage(str(tmp_path / "backups"))
    filename = storage.save({"version": "1.0.0", "data": {"tags": []}})

    assert filename.startswith("backup_") and filename.endswith(".json")
    text = (tmp_path / "backups" / filename).read_text(encoding="utf-8")
    assert json.loads(text) == {"version": "1.0.0", "data": {"tags": []}}
    assert "\n  " in text


def test_save_never_overwrites(tmp_path):
    storage = BackupStorage(str(tmp_path))
    names = {storage.save({"n": i}) for i in range(3)}
    assert len(names) == 3


def test_list_is_newest_first(tmp_path):
    storage = BackupStorage(str(tmp_path))
    for index, name in enumerate(["old.json", "mid.json", "new.json"]):
        path = tmp_path / name
        path.write_text("{}")
        os.utime(path, (1_000_000 + index, 1_000_000 + index))
    (tmp_path / "ignored.txt").write_text("x")

    assert [entry["filename"] for entry in storage.list_backups()] == ["new.json", "mid.json", "old.json"]


def test_prune_keeps_newest(tmp_path):
    storage = BackupStorage(str(tmp_path))
    for index in range(5):
        path = tmp_path / f"b{index}.json"
        path.write_text("{}")
        os.utime(path, (1_000_000 + index, 1_000_000 + index))

    removed = storage.prune(2)

    assert sorted(removed) == ["b0.json", "b1.json", "b2.json"]
    assert sorted(p.name for p in tmp_path.glob("*.json")) == ["b3.json", "b4.json"]
    assert storage.prune(0) == []


@pytest.mark.parametrize("filename", ["../secret.json", "a/b.json", "backup.txt", "", "..json"])
def test_unsafe_names_are_not_found(tmp_path, filename):
    storage = BackupStorage(str(tmp_path))
    with pytest.raises(NotFound):
        storage.read(filename)


def test_automatic_backup_job(session_factory, backup_dir, monkeypatch):
    session = session_factory()
    seed_blog(session)
    session.close()
    monkeypatch.setattr(scheduler, "SessionLocal", session_factory)
    monkeypatch.setattr(scheduler.settings, "BACKUP_RETENTION", 1)

    scheduler.automatic_backup_job()
    scheduler.automatic_backup_job()

    files = list(backup_dir.glob("*.json"))
    assert len(files) == 1
    snapshot = json.loads(files[0].read_text(encoding="utf-8"))
    assert len(snapshot["data"]["articles"]) == 3


def test_scheduler_stays_off_by_default():
    scheduler.start_scheduler()
    assert not scheduler.scheduler.running
