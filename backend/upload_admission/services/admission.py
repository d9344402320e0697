"""Admission facade for upload handlers: one DB session, one settings source, fresh policy per call."""
from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from upload_admission.core.decision_logging import log_decision
from upload_admission.core.errors import AdmissionError
from upload_admission.db.session import get_db
from upload_admission.services.policy import PolicyDefaults, PolicyResolver
from upload_admission.services.quota import ensure_within_daily_limit, would_exceed_daily_limit
from upload_admission.services.settings_store import DatabaseSettingsSource, SettingsSource
from upload_admission.services.upload_validation import (
    SizedFile,
    UploadCandidate,
    validate_batch_upload,
    validate_upload,
)


class UploadAdmission:
    def __init__(
        self,
        db: AsyncSession,
        source: SettingsSource | None = None,
        defaults: PolicyDefaults | None = None,
    ) -> None:
        self.db = db
        self.source = source or DatabaseSettingsSource(db)
        self.resolver = PolicyResolver(self.source, defaults=defaults)

    async def validate_upload(self, candidate: UploadCandidate) -> None:
        policy = await self.resolver.resolve()
        try:
            await validate_upload(self.db, candidate, policy, settings_source=self.source)
        except AdmissionError as e:
            log_decision("upload", candidate.user_id, e, folder_id=candidate.folder_id or None)
            raise
        log_decision("upload", candidate.user_id, extension=candidate.extension)

    async def validate_batch(self, candidates: Sequence[SizedFile], user_id: UUID | None = None) -> None:
        try:
            await validate_batch_upload(candidates, self.resolver)
        except AdmissionError as e:
            log_decision("batch", user_id, e, file_count=len(candidates))
            raise
        log_decision("batch", user_id, file_count=len(candidates))

    async def would_exceed_daily_limit(
        self, user_id: UUID, pending_upload_count: int, now: datetime | None = None
    ) -> bool:
        return await would_exceed_daily_limit(
            self.db, user_id, pending_upload_count, resolver=self.resolver, now=now
        )

    async def ensure_within_daily_limit(
        self, user_id: UUID, pending_upload_count: int, now: datetime | None = None
    ) -> None:
        try:
            await ensure_within_daily_limit(
                self.db, user_id, pending_upload_count, resolver=self.resolver, now=now
            )
        except AdmissionError as e:
            log_decision("daily_quota", user_id, e, pending=pending_upload_count)
            raise
        log_decision("daily_quota", user_id, pending=pending_upload_count)


async def get_upload_admission(db: AsyncSession = Depends(get_db)) -> UploadAdmission:
    """FastAPI dependency for upload routes."""
    return UploadAdmission(db)
