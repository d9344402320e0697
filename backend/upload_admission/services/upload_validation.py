"""Upload validation: per-file size, extension allowlist, folder ownership, storage duration; batch size totals."""
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from upload_admission.core.errors import AdmissionError, ErrorKind, StorageConfigError, StorageDurationError
from upload_admission.services.folders import check_folder_ownership
from upload_admission.services.policy import MB, PolicyResolver, UploadPolicy
from upload_admission.services.settings_store import SettingsSource
from upload_admission.services.storage_duration import (
    StorageConfig,
    create_storage_config,
    default_storage_config,
)

logger = logging.getLogger(__name__)

NO_FOLDER_SENTINEL = "null"


@dataclass
class UploadCandidate:
    """One incoming upload. extension and folder_id are normalized in place by validate_upload."""

    filename: str
    size_bytes: int
    user_id: UUID
    folder_id: str = ""
    is_guest_upload: bool = False
    storage_duration: str = ""
    extension: str = ""


class SizedFile(Protocol):
    filename: str
    size_bytes: int


def file_extension(filename: str) -> str:
    """Final suffix of the last path element, lowercase, with the dot ("a/B.JPG" -> ".jpg"; no dot -> "")."""
    base = filename.strip().replace("\\", "/").rsplit("/", 1)[-1]
    i = base.rfind(".")
    return base[i:].lower() if i >= 0 else ""


def format_mb(size_bytes: int) -> str:
    return f"{size_bytes / MB:g}"


def check_file_size(size_bytes: int, policy: UploadPolicy) -> None:
    if policy.max_file_size_bytes > 0 and size_bytes > policy.max_file_size_bytes:
        raise AdmissionError(
            ErrorKind.FILE_TOO_LARGE,
            f"File size cannot exceed {format_mb(policy.max_file_size_bytes)}MB",
        )


def check_file_type(extension: str, policy: UploadPolicy) -> None:
    if not policy.allows_extension(extension):
        raise AdmissionError(
            ErrorKind.FILE_TYPE_NOT_SUPPORTED,
            "This file format is not supported; contact an administrator to allow it",
        )


async def _storage_config(source: SettingsSource | None) -> StorageConfig:
    if source is None:
        return default_storage_config()
    try:
        return await create_storage_config(source)
    except StorageConfigError as e:
        logger.warning("Failed to load storage configuration, using defaults: %s", e)
        return default_storage_config()


async def validate_upload(
    db: AsyncSession,
    candidate: UploadCandidate,
    policy: UploadPolicy,
    *,
    settings_source: SettingsSource | None = None,
    storage_config: StorageConfig | None = None,
) -> None:
    """Raise AdmissionError on the first failing check: size, type, folder, storage duration.

    Side effects: candidate.extension is populated and a "null" folder_id is
    normalized to "". Both are read by the storage step that follows.
    """
    check_file_size(candidate.size_bytes, policy)

    candidate.extension = file_extension(candidate.filename)
    check_file_type(candidate.extension, policy)

    if candidate.folder_id == NO_FOLDER_SENTINEL:
        candidate.folder_id = ""
    if candidate.folder_id:
        await check_folder_ownership(db, candidate.folder_id, candidate.user_id)

    if candidate.storage_duration:
        config = storage_config or await _storage_config(settings_source)
        try:
            config.validate_duration(candidate.storage_duration, candidate.is_guest_upload)
        except StorageDurationError as e:
            raise AdmissionError(ErrorKind.INVALID_PARAMETER, str(e), cause=e) from e


def validate_batch(candidates: Sequence[SizedFile], policy: UploadPolicy) -> None:
    """Size-only batch check. The first oversized file fails immediately, before any total is compared."""
    total = 0
    for f in candidates:
        if policy.max_file_size_bytes > 0 and f.size_bytes > policy.max_file_size_bytes:
            raise AdmissionError(
                ErrorKind.FILE_TOO_LARGE,
                f"File {f.filename} exceeds the per-file limit of {format_mb(policy.max_file_size_bytes)}MB",
            )
        total += f.size_bytes
    if policy.max_batch_size_bytes > 0 and total > policy.max_batch_size_bytes:
        raise AdmissionError(
            ErrorKind.FILE_TOO_LARGE,
            f"Total batch size cannot exceed {format_mb(policy.max_batch_size_bytes)}MB",
        )


async def validate_batch_upload(candidates: Sequence[SizedFile], resolver: PolicyResolver) -> UploadPolicy:
    """Resolve policy once for the whole batch, then validate. Returns the policy used."""
    policy = await resolver.resolve()
    validate_batch(candidates, policy)
    return policy
