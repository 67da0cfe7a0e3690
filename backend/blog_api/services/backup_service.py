"""
Full-database snapshots.

A snapshot is a single JSON document::

    {
        "version": "1.0.0",
        "timestamp": "<ISO-8601 UTC>",
        "data": {
            "articles": [...], "categories": [...], "tags": [...],
            "article_tags": [...], "settings": [...], "images": [...]
        }
    }

``images`` is only present when requested at export time. Each collection
holds every column of every row, ordered by primary key.

Restore replays a snapshot inside one transaction. Parents are written
before children so foreign keys always resolve, and rows are upserted by
primary key, which makes restoring the same snapshot twice a no-op.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Union
from sqlalchemy import DateTime, Table, and_, delete, insert, select, update
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from blog_api.core.errors import MalformedSnapshot, StorageFailure
from blog_api.models.article import Article, ArticleTag
from blog_api.models.category import Category
from blog_api.models.image import Image
from blog_api.models.setting import Setting
from blog_api.models.tag import Tag

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1.0.0"

# Snapshot collection name -> table
SNAPSHOT_TABLES: Dict[str, Table] = {
    "articles": Article.__table__,
    "categories": Category.__table__,
    "tags": Tag.__table__,
    "article_tags": ArticleTag.__table__,
    "settings": Setting.__table__,
    "images": Image.__table__,
}

# Children before parents. Settings are never cleared, only overwritten.
CLEAR_ORDER = ["article_tags", "articles", "categories", "tags"]

# Parents before children
RESTORE_ORDER = ["categories", "tags", "articles", "article_tags", "images", "settings"]


def _serialize_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _parse_datetime(value: str) -> datetime:
    # fromisoformat rejects a trailing "Z" on older interpreters
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text.replace(" ", "T", 1))


class BackupService:
    @staticmethod
    def export_table(db: Session, name: str) -> List[Dict[str, Any]]:
        """All rows of one snapshot table, ordered by primary key"""
        table = SNAPSHOT_TABLES[name]
        query = select(table).order_by(*table.primary_key.columns)
        return [
            {key: _serialize_value(value) for key, value in row.items()}
            for row in db.execute(query).mappings()
        ]

    @staticmethod
    def export_all(db: Session, include_images: bool = False) -> Dict[str, Any]:
        """
        Serialize the whole blog into a snapshot document.

        Read-only. Tables are read one after another without a shared
        snapshot isolation, so a concurrent writer can make the collections
        disagree slightly; restore tolerates that as long as foreign keys hold.
        """
        data: Dict[str, Any] = {
            name: BackupService.export_table(db, name)
            for name in ("articles", "categories", "tags", "article_tags", "settings")
        }
        if include_images:
            data["images"] = BackupService.export_table(db, "images")

        logger.info(
            "Exported snapshot: "
            + ", ".join(f"{len(rows)} {name}" for name, rows in data.items())
        )
        return {
            "version": SNAPSHOT_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": data,
        }

    @staticmethod
    def parse_snapshot(raw: Union[bytes, str]) -> Dict[str, Any]:
        """Parse uploaded snapshot text; raises MalformedSnapshot"""
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            snapshot = json.loads(raw)
        except (UnicodeDecodeError, ValueError):
            raise MalformedSnapshot("Backup file is not valid JSON")

        if not isinstance(snapshot, dict) or not isinstance(snapshot.get("data"), dict):
            raise MalformedSnapshot("Backup file has no data section")
        return snapshot

    @staticmethod
    def prepare_rows(name: str, rows: Any) -> List[Dict[str, Any]]:
        """
        Check one snapshot collection and convert it to insertable rows.

        Only the table's own columns are kept. Primary-key columns must be
        present and non-null; datetime strings are parsed back into datetimes.
        """
        if not isinstance(rows, list):
            raise MalformedSnapshot(f"'{name}' must be a list")

        table = SNAPSHOT_TABLES[name]
        pk_names = [column.name for column in table.primary_key.columns]
        prepared = []
        for index, row in enumerate(rows):
            if not isinstance(row, dict):
                raise MalformedSnapshot(f"{name}[{index}] must be an object")
            missing = [pk for pk in pk_names if row.get(pk) is None]
            if missing:
                raise MalformedSnapshot(f"{name}[{index}] is missing {', '.join(missing)}")

            values = {}
            for column in table.columns:
                if column.name not in row:
                    continue
                value = row[column.name]
                if isinstance(value, str) and isinstance(column.type, DateTime):
                    try:
                        value = _parse_datetime(value)
                    except ValueError:
                        raise MalformedSnapshot(
                            f"{name}[{index}].{column.name} is not a valid date")
                values[column.name] = value
            prepared.append(values)
        return prepared

    @staticmethod
    def upsert_row(db: Session, table: Table, values: Dict[str, Any]) -> None:
        """Replace the row with the same primary key, or insert it"""
        pk_filter = and_(*(column == values[column.name]
                           for column in table.primary_key.columns))
        result = db.execute(update(table).where(pk_filter).values(**values))
        if result.rowcount == 0:
            db.execute(insert(table).values(**values))

    @staticmethod
    def restore(db: Session, snapshot: Dict[str, Any], clear_existing: bool = True) -> Dict[str, int]:
        """
        Replay a snapshot into the database.

        Everything happens in the session's transaction: on any storage error
        the transaction is rolled back and the database is left as it was.
        Returns the number of rows written per table.

        The caller is responsible for checking that the user is an admin.
        """
        data = snapshot.get("data") if isinstance(snapshot, dict) else None
        if not isinstance(data, dict):
            raise MalformedSnapshot("Backup file has no data section")

        # Validate everything before touching the database
        prepared: Dict[str, List[Dict[str, Any]]] = {}
        for name in RESTORE_ORDER:
            if data.get(name) is not None:
                prepared[name] = BackupService.prepare_rows(name, data[name])

        counts: Dict[str, int] = {}
        try:
            if clear_existing:
                clear = CLEAR_ORDER + (["images"] if "images" in prepared else [])
                for name in clear:
                    db.execute(delete(SNAPSHOT_TABLES[name]))
                logger.info(f"Cleared tables before restore: {', '.join(clear)}")

            for name in RESTORE_ORDER:
                rows = prepared.get(name)
                if rows is None:
                    continue
                table = SNAPSHOT_TABLES[name]
                for values in rows:
                    BackupService.upsert_row(db, table, values)
                counts[name] = len(rows)

            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Restore failed, transaction rolled back")
            raise StorageFailure("Restore failed")

        logger.info(
            "Restored snapshot "
            f"(version={snapshot.get('version')}, timestamp={snapshot.get('timestamp')}): "
            + ", ".join(f"{count} {name}" for name, count in counts.items())
        )
        return counts


backup_service = BackupService()
