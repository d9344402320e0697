"""Daily upload quota per user, counted from stored files in the current calendar day.

The check is read-then-act: two concurrent requests near the limit can both
see a count below it and both proceed. Callers that need a hard limit must
serialize check-and-insert per user (advisory lock or a counter row updated in
the same transaction as the file insert).
"""
import logging
from datetime import datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from upload_admission.core.config import get_settings
from upload_admission.core.errors import AdmissionError, ErrorKind
from upload_admission.core.metrics import record_quota_check
from upload_admission.db.models import File
from upload_admission.services.policy import UNLIMITED_DAILY, PolicyResolver

logger = logging.getLogger(__name__)


def quota_timezone() -> tzinfo | None:
    """Configured IANA zone, or None for the server's local time."""
    name = get_settings().quota_timezone
    if name:
        return ZoneInfo(name)
    return None


def quota_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    """[start of today, start of tomorrow) in the quota timezone, returned in UTC.

    A naive now is interpreted in the quota timezone. Without QUOTA_TIMEZONE the
    day is computed on naive local wall time and each bound gets its own UTC
    offset, so a DST change between now and midnight is honoured.
    """
    tz = quota_timezone()
    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None:
        if tz is not None:
            now = now.replace(tzinfo=tz)
    else:
        # astimezone(None) converts to system local time and drops to naive below
        now = now.astimezone(tz)
        if tz is None:
            now = now.replace(tzinfo=None)
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    # Wall-clock arithmetic: the next local midnight even across DST changes
    end = (start.replace(tzinfo=None) + timedelta(days=1)).replace(tzinfo=start.tzinfo)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


async def count_uploads_in_window(db: AsyncSession, user_id: UUID, start: datetime, end: datetime) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(File)
        .where(File.user_id == user_id, File.created_at >= start, File.created_at < end)
    )
    return int(result.scalar_one())


async def would_exceed_daily_limit(
    db: AsyncSession,
    user_id: UUID,
    pending_upload_count: int,
    *,
    resolver: PolicyResolver,
    now: datetime | None = None,
) -> bool:
    """True if today's stored uploads plus pending_upload_count exceed the daily limit.

    Settings and DB errors propagate: an unknown count must not be treated as zero.
    """
    policy = await resolver.resolve(strict=True)
    limit = policy.daily_upload_limit
    if limit == UNLIMITED_DAILY:
        record_quota_check("unlimited")
        return False
    start, end = quota_window(now)
    count = await count_uploads_in_window(db, user_id, start, end)
    exceeded = count + pending_upload_count > limit
    record_quota_check("exceeded" if exceeded else "within")
    if exceeded:
        logger.info("Daily upload limit reached for user %s: %d stored + %d pending > %d", user_id, count, pending_upload_count, limit)
    return exceeded


async def ensure_within_daily_limit(
    db: AsyncSession,
    user_id: UUID,
    pending_upload_count: int,
    *,
    resolver: PolicyResolver,
    now: datetime | None = None,
) -> None:
    if await would_exceed_daily_limit(db, user_id, pending_upload_count, resolver=resolver, now=now):
        raise AdmissionError(ErrorKind.UPLOAD_LIMIT_EXCEEDED, "Daily upload limit reached; try again tomorrow")
