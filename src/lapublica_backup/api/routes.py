"""Granular backup endpoints: preview, export and import."""

import logging
from collections.abc import Mapping
from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from lapublica_backup.api import create_error_response
from lapublica_backup.api.auth import require_admin
from lapublica_backup.config import ApiToken, Settings
from lapublica_backup.exceptions import InvalidBackupError
from lapublica_backup.models.backup import ImportOptions, SelectionPolicy
from lapublica_backup.services import BackupService
from lapublica_backup.services.validation import INVALID_BACKUP_MESSAGE

logger = logging.getLogger(__name__)

router = APIRouter(tags=["granular-backup"])

INVALID_SELECTION_MESSAGE = "Paràmetres de selecció invàlids"
INVALID_OPTIONS_MESSAGE = "Opcions d'importació invàlides"
IMPORT_SUCCESS_MESSAGE = "Dades importades exitosament"


def get_backup_service(request: Request) -> BackupService:
    return request.app.state.backup_service


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def build_selection_policy(values: Mapping[str, Any], settings: Settings) -> SelectionPolicy:
    """Parse a wire selection, applying the configured record cap.

    A missing or zero ``maxRecords`` takes the configured default; larger
    values than the configured limit are clamped.

    Args:
        values: Flat wire selection
        settings: Application settings

    Returns:
        Selection policy

    Raises:
        pydantic.ValidationError: If a value cannot be parsed
    """
    values = dict(values)
    max_records = values.get("maxRecords")
    if max_records is None or str(max_records).strip() in ("", "0"):
        values["maxRecords"] = settings.max_records_default
    policy = SelectionPolicy.model_validate(values)
    if policy.max_records > settings.max_records_limit:
        policy = policy.model_copy(update={"max_records": settings.max_records_limit})
    return policy


@router.get("/preview")
async def preview_backup(
    request: Request,
    principal: ApiToken = Depends(require_admin),
    service: BackupService = Depends(get_backup_service),
    settings: Settings = Depends(get_app_settings),
):
    """Count the records an export with the given filters would contain."""
    values: dict[str, Any] = dict(request.query_params)
    categories = request.query_params.getlist("categoryFilter")
    if len(categories) > 1:
        values["categoryFilter"] = categories

    try:
        policy = build_selection_policy(values, settings)
    except PydanticValidationError as e:
        return JSONResponse(
            status_code=400, content=create_error_response(INVALID_SELECTION_MESSAGE, str(e))
        )

    try:
        result = await service.preview(policy)
    except Exception as e:
        logger.exception("Error generating backup preview")
        return JSONResponse(
            status_code=500,
            content=create_error_response("Error al obtenir vista prèvia del backup", str(e)),
        )

    return {"success": True, "data": result.model_dump(mode="json", by_alias=True)}


@router.post("/export")
async def export_backup(
    payload: dict[str, Any] | None = Body(default=None),
    principal: ApiToken = Depends(require_admin),
    service: BackupService = Depends(get_backup_service),
    settings: Settings = Depends(get_app_settings),
):
    """Export the selected collections as a downloadable backup document."""
    try:
        policy = build_selection_policy(payload or {}, settings)
    except PydanticValidationError as e:
        return JSONResponse(
            status_code=400, content=create_error_response(INVALID_SELECTION_MESSAGE, str(e))
        )

    try:
        document = await service.export(policy)
    except Exception as e:
        logger.exception("Error exporting backup")
        return JSONResponse(
            status_code=500, content=create_error_response("Error al exportar les dades", str(e))
        )

    return JSONResponse(
        content={"success": True, "data": document.to_wire()},
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )


@router.post("/import")
async def import_backup(
    payload: dict[str, Any] | None = Body(default=None),
    principal: ApiToken = Depends(require_admin),
    service: BackupService = Depends(get_backup_service),
):
    """Import a backup document into the platform store."""
    payload = payload or {}
    backup_data = payload.get("backupData")
    if backup_data is None:
        return JSONResponse(status_code=400, content=create_error_response(INVALID_BACKUP_MESSAGE))

    try:
        options = ImportOptions.model_validate(payload.get("options") or {})
    except PydanticValidationError as e:
        return JSONResponse(
            status_code=400, content=create_error_response(INVALID_OPTIONS_MESSAGE, str(e))
        )

    try:
        result = await service.import_backup(backup_data, options, caller_email=principal.email)
    except InvalidBackupError as e:
        return JSONResponse(status_code=400, content=create_error_response(str(e)))
    except Exception as e:
        logger.exception("Error importing backup")
        return JSONResponse(
            status_code=500, content=create_error_response("Error al importar les dades", str(e))
        )

    return {
        "success": True,
        "message": IMPORT_SUCCESS_MESSAGE,
        "data": {
            "importedAt": result.imported_at.isoformat(),
            "results": result.results_to_wire(),
            "options": options.to_wire(),
        },
    }
