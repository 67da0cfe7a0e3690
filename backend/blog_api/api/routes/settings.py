import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, File as FastAPIFile, Form, Response, UploadFile
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from pydantic import BaseModel
from blog_api.core.config import settings as app_settings
from blog_api.core.database import get_db
from blog_api.core.errors import MalformedInput, NotFound, StorageFailure, envelope
from blog_api.core.security import TokenPayload
from blog_api.models.setting import Setting
from blog_api.services.backup_service import backup_service
from blog_api.services.setting_values import SettingValue, decode_setting
from blog_api.storage.backup_storage import backup_storage
from blog_api.api.dependencies import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])


class SettingUpdate(BaseModel):
    value: Any = None
    description: Optional[str] = None


class BatchUpdateRequest(BaseModel):
    settings: Dict[str, SettingUpdate]


class BackupRequest(BaseModel):
    include_images: bool = False


def setting_data(setting: Setting) -> dict:
    return {
        "value": decode_setting(setting),
        "type": setting.type,
        "description": setting.description,
        "updated_at": setting.updated_at,
    }


def apply_update(setting: Setting, update: SettingUpdate) -> None:
    """Store a new value using the setting's own type; description is kept when omitted"""
    setting.value = SettingValue.encode(setting.type or "string", update.value).raw
    if update.description is not None:
        setting.description = update.description


def download_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("")
@router.get("/", include_in_schema=False)
async def list_settings(db: Session = Depends(get_db)):
    """All settings as ``key -> {value, type, description, updated_at}``"""
    rows = db.query(Setting).order_by(Setting.key).all()
    return envelope({row.key: setting_data(row) for row in rows})


# Backup management. These are declared before "/{key}" so the fixed paths win.

@router.post("/backup")
async def create_backup(
    options: Optional[BackupRequest] = None,
    admin: TokenPayload = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Export a snapshot, keep a copy in the backup directory and send it as a download"""
    include_images = options.include_images if options else False
    try:
        snapshot = backup_service.export_all(db, include_images=include_images)
    except SQLAlchemyError:
        logger.exception("Could not export snapshot")
        raise StorageFailure()

    try:
        filename = backup_storage.save(snapshot)
    except OSError:
        logger.exception("Could not write backup file")
        raise StorageFailure("Could not write backup file")

    logger.info(f"Backup {filename} created by {admin.username}")
    return download_response(json.dumps(snapshot, indent=2, ensure_ascii=False), filename)


@router.post("/restore")
async def restore_backup(
    backup: Optional[UploadFile] = FastAPIFile(None),
    clear_existing: bool = Form(True),
    admin: TokenPayload = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Restore a snapshot uploaded as the ``backup`` multipart field.

    With ``clear_existing`` (the default) articles, categories, tags and
    their links are wiped first; settings are only ever overwritten.
    """
    if backup is None or not backup.filename:
        raise MalformedInput("Please choose a backup file")

    if backup.content_type != "application/json" and Path(backup.filename).suffix.lower() != ".json":
        raise MalformedInput("Only JSON backup files are accepted")

    # Multipart uploads are spooled to disk; reject before pulling one into memory
    if backup.size is not None and backup.size > app_settings.MAX_BACKUP_SIZE:
        raise MalformedInput("Backup file is too large")

    content = await backup.read(app_settings.MAX_BACKUP_SIZE + 1)
    if len(content) > app_settings.MAX_BACKUP_SIZE:
        raise MalformedInput("Backup file is too large")

    snapshot = backup_service.parse_snapshot(content)
    counts = backup_service.restore(db, snapshot, clear_existing=clear_existing)

    logger.info(f"Backup {backup.filename} restored by {admin.username} (clear_existing={clear_existing})")
    return envelope(counts, "Data restored successfully")


@router.get("/backups/list")
async def list_backups(admin: TokenPayload = Depends(require_admin)):
    return envelope(backup_storage.list_backups())


@router.get("/backups/download/{filename}")
async def download_backup(filename: str, admin: TokenPayload = Depends(require_admin)):
    return download_response(backup_storage.read(filename), filename)


@router.delete("/backups/{filename}")
async def delete_backup(filename: str, admin: TokenPayload = Depends(require_admin)):
    backup_storage.delete(filename)
    logger.info(f"Backup {filename} deleted by {admin.username}")
    return envelope(message="Backup file deleted")


@router.post("/batch-update")
async def batch_update_settings(
    request: BatchUpdateRequest,
    admin: TokenPayload = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Update several settings in one transaction; unknown keys are skipped"""
    updated = []
    try:
        for key, update in request.settings.items():
            setting = db.get(Setting, key)
            if setting is None:
                continue
            apply_update(setting, update)
            updated.append(key)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Batch settings update failed")
        raise StorageFailure()
    except MalformedInput:
        db.rollback()
        raise

    return envelope({"updated": updated}, "Settings updated")


@router.get("/{key}")
async def get_setting(key: str, db: Session = Depends(get_db)):
    setting = db.get(Setting, key)
    if setting is None:
        raise NotFound("Setting does not exist")
    return envelope({"key": setting.key, **setting_data(setting)})


@router.put("/{key}")
async def update_setting(
    key: str,
    update: SettingUpdate,
    admin: TokenPayload = Depends(require_admin),
    db: Session = Depends(get_db),
):
    setting = db.get(Setting, key)
    if setting is None:
        raise NotFound("Setting does not exist")

    apply_update(setting, update)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Updating setting {key} failed")
        raise StorageFailure()

    return envelope(message="Setting updated")
