import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from blog_api.core.config import settings
from blog_api.core.errors import NotFound

# Only plain "*.json" names inside the backup directory are served
_SAFE_FILENAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*\.json$")


def _isoformat(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


class BackupStorage:
    def __init__(self, backup_dir: Optional[str] = None):
        self.backup_dir = Path(backup_dir or settings.BACKUP_DIR)

    def _ensure_dir(self) -> Path:
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        return self.backup_dir

    def get_file_path(self, filename: str) -> Path:
        """Resolve a backup filename, rejecting anything that isn't a plain json name"""
        if not _SAFE_FILENAME.match(filename or "") or ".." in filename:
            raise NotFound("Backup file not found")
        return self.backup_dir / filename

    def save(self, snapshot: Dict[str, Any]) -> str:
        """Write a snapshot to a new timestamped file and return its filename"""
        backup_dir = self._ensure_dir()
        now = datetime.now(timezone.utc)
        stem = f"backup_{now:%Y-%m-%dT%H-%M-%S}-{now.microsecond // 1000:03d}Z"

        filename = f"{stem}.json"
        counter = 1
        while (backup_dir / filename).exists():
            filename = f"{stem}_{counter}.json"
            counter += 1

        with open(backup_dir / filename, "w", encoding="utf-8") as f:
            json.dump(snapshot, f, indent=2, ensure_ascii=False)
        return filename

    def list_backups(self) -> List[Dict[str, Any]]:
        """Backup files, newest first"""
        if not self.backup_dir.exists():
            return []

        backups = []
        for path in self.backup_dir.glob("*.json"):
            stats = path.stat()
            backups.append({
                "filename": path.name,
                "size": stats.st_size,
                "created_at": _isoformat(stats.st_ctime),
                "modified_at": _isoformat(stats.st_mtime),
                "_sort": stats.st_mtime,
            })
        backups.sort(key=lambda b: (b["_sort"], b["filename"]), reverse=True)
        for backup in backups:
            del backup["_sort"]
        return backups

    def read(self, filename: str) -> str:
        file_path = self.get_file_path(filename)
        if not file_path.is_file():
            raise NotFound("Backup file not found")
        return file_path.read_text(encoding="utf-8")

    def delete(self, filename: str) -> None:
        file_path = self.get_file_path(filename)
        if not file_path.is_file():
            raise NotFound("Backup file not found")
        file_path.unlink()

    def prune(self, keep: int) -> List[str]:
        """Delete all but the ``keep`` newest backups; returns deleted names"""
        if keep <= 0:
            return []
        removed = []
        for backup in self.list_backups()[keep:]:
            (self.backup_dir / backup["filename"]).unlink()
            removed.append(backup["filename"])
        return removed


backup_storage = BackupStorage()
