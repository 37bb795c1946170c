"""
Spreadsheet import routes (CSV and XLSX).
"""
from fastapi import APIRouter, Depends, File, Response, UploadFile
from sqlalchemy.orm import Session
from haulbook.core.config import settings
from haulbook.core.exceptions import ValidationFailed
from haulbook.db.session import get_db
from haulbook.models.user import User
from haulbook.schemas.common import ApiResponse
from haulbook.schemas.imports import ImportResult
from haulbook.api.dependencies import get_current_user
from haulbook.core.utils import attachment_headers, format_response
from haulbook.services.export_service import build_template
from haulbook.services.import_service import run_import

router = APIRouter(prefix="/imports", tags=["imports"])


@router.get("/templates/{entity}")
async def download_template(
    entity: str,
    current_user: User = Depends(get_current_user),
):
    """Empty xlsx with the expected header row and one sample row."""
    content, media_type, filename = build_template(entity)
    return Response(content=content, media_type=media_type, headers=attachment_headers(filename))


@router.post("/{entity}", response_model=ApiResponse[ImportResult])
async def import_file(
    entity: str,
    file: UploadFile = File(...),
    dry_run: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Import drivers, vehicles, loading-points, center-fares or fixed-contracts.

    Rows that fail validation are reported with their row number and the
    rest are saved. With ?dry_run=true nothing is written.
    """
    content = await file.read()
    if not content:
        raise ValidationFailed("Uploaded file is empty")
    if len(content) > settings.MAX_UPLOAD_SIZE:
        raise ValidationFailed(
            f"File exceeds the {settings.MAX_UPLOAD_SIZE // (1024 * 1024)}MB upload limit",
            code="FILE_TOO_LARGE",
        )
    result = run_import(db, entity, file.filename, content, current_user, dry_run)
    return format_response(result)
