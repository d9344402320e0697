"""Folder ownership: a referenced folder must exist and belong to the uploader."""
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from upload_admission.core.errors import AdmissionError, ErrorKind
from upload_admission.db.models import Folder


async def check_folder_ownership(db: AsyncSession, folder_id: str, user_id: UUID) -> None:
    """Raise FOLDER_NOT_FOUND if missing or owned by someone else, DB_QUERY_FAILED on lookup errors. Empty id is a no-op."""
    if not folder_id:
        return
    try:
        result = await db.execute(
            select(Folder.id).where(Folder.id == folder_id, Folder.user_id == user_id)
        )
        row = result.scalar_one_or_none()
    except SQLAlchemyError as e:
        raise AdmissionError(ErrorKind.DB_QUERY_FAILED, "Failed to look up folder", cause=e) from e
    if row is None:
        raise AdmissionError(ErrorKind.FOLDER_NOT_FOUND, "Folder not found")
