"""Upload policy: decode the "upload" settings group into typed, defaulted limits.

Each field has one decode function that either returns a typed value or a
fallback marker; loosely typed settings values never leave this module.
Resolution is per call (no caching) so policy edits apply to the next upload.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any

from upload_admission.core.config import Settings, get_settings, split_csv
from upload_admission.core.errors import SettingsSourceError
from upload_admission.core.metrics import record_policy_fallback
from upload_admission.services.settings_store import SettingsSource

logger = logging.getLogger(__name__)

MB = 1024 * 1024
UNLIMITED_DAILY = -1

MAX_FILE_SIZE_KEY = "max_file_size"
MAX_BATCH_SIZE_KEY = "max_batch_size"
ALLOWED_FORMATS_KEY = "allowed_file_formats"
DAILY_LIMIT_KEY = "daily_upload_limit"

_MALFORMED = object()


@dataclass(frozen=True)
class UploadPolicy:
    max_file_size_bytes: int  # 0 = unlimited
    max_batch_size_bytes: int  # 0 = unlimited
    allowed_extensions: frozenset[str]  # lowercase, with leading dot
    daily_upload_limit: int  # -1 = unlimited

    def allows_extension(self, extension: str) -> bool:
        return extension.lower() in self.allowed_extensions


@dataclass(frozen=True)
class PolicyDefaults:
    max_file_size_bytes: int
    max_batch_size_bytes: int
    allowed_extensions: frozenset[str]
    daily_upload_limit: int

    @classmethod
    def from_settings(cls, settings: Settings) -> "PolicyDefaults":
        return cls(
            max_file_size_bytes=int(settings.default_max_file_size_mb * MB),
            max_batch_size_bytes=int(settings.default_max_batch_size_mb * MB),
            allowed_extensions=normalize_extensions(split_csv(settings.default_allowed_file_formats)),
            daily_upload_limit=settings.default_daily_upload_limit,
        )

    def as_policy(self) -> UploadPolicy:
        return UploadPolicy(
            max_file_size_bytes=self.max_file_size_bytes,
            max_batch_size_bytes=self.max_batch_size_bytes,
            allowed_extensions=self.allowed_extensions,
            daily_upload_limit=self.daily_upload_limit,
        )


def normalize_extensions(formats: list[str]) -> frozenset[str]:
    """Bare formats ("jpg", ".PNG ") -> {".jpg", ".png"}."""
    out = set()
    for f in formats:
        bare = f.strip().lower().lstrip(".")
        if bare:
            out.add("." + bare)
    return frozenset(out)


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a valid limit
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def decode_size_mb(value: Any) -> Any:
    """Megabytes (int or float) -> bytes. Returns _MALFORMED for any other type."""
    if not _is_number(value):
        return _MALFORMED
    if isinstance(value, int):
        return value * MB
    size = value * MB
    # 1e303 MB is finite but overflows to inf once scaled
    if not math.isfinite(size):
        return _MALFORMED
    return int(size)


def decode_daily_limit(value: Any) -> Any:
    if not _is_number(value):
        return _MALFORMED
    limit = int(value)
    if limit < UNLIMITED_DAILY:
        return _MALFORMED
    return limit


def decode_extensions(value: Any) -> frozenset[str]:
    """A configured list is authoritative: non-list values allow nothing, non-string entries are skipped."""
    if not isinstance(value, (list, tuple)):
        return frozenset()
    return normalize_extensions([v for v in value if isinstance(v, str)])


class PolicyResolver:
    """Resolve UploadPolicy from a settings source. Never fails on bad values; see resolve() for transport errors."""

    def __init__(
        self,
        source: SettingsSource,
        defaults: PolicyDefaults | None = None,
        group_name: str | None = None,
    ) -> None:
        settings = get_settings()
        self._source = source
        self._defaults = defaults or PolicyDefaults.from_settings(settings)
        self._group_name = group_name or settings.upload_settings_group

    @property
    def defaults(self) -> PolicyDefaults:
        return self._defaults

    async def resolve(self, group_name: str | None = None, *, strict: bool = False) -> UploadPolicy:
        """Read the group once and decode every field.

        If the settings source itself fails, strict=False logs a warning and
        returns the default policy; strict=True re-raises SettingsSourceError
        (used where a wrong answer is worse than no answer, e.g. quota).
        """
        name = group_name or self._group_name
        try:
            values = await self._source.get_settings_group(name)
        except SettingsSourceError as e:
            if strict:
                raise
            logger.warning("Settings group %r unavailable, using default upload policy: %s", name, e)
            record_policy_fallback("*", "unavailable")
            return self._defaults.as_policy()
        return self.decode(values)

    def decode(self, values: dict[str, Any]) -> UploadPolicy:
        d = self._defaults
        return UploadPolicy(
            max_file_size_bytes=self._field(values, MAX_FILE_SIZE_KEY, decode_size_mb, d.max_file_size_bytes),
            max_batch_size_bytes=self._field(values, MAX_BATCH_SIZE_KEY, decode_size_mb, d.max_batch_size_bytes),
            allowed_extensions=self._extensions(values),
            daily_upload_limit=self._field(values, DAILY_LIMIT_KEY, decode_daily_limit, d.daily_upload_limit),
        )

    def _field(self, values: dict[str, Any], key: str, decode, default: int) -> int:
        if key not in values or values[key] is None:
            record_policy_fallback(key, "absent")
            return default
        decoded = decode(values[key])
        if decoded is _MALFORMED:
            logger.warning("Setting %r has unusable value %r, using default %r", key, values[key], default)
            record_policy_fallback(key, "malformed")
            return default
        return decoded

    def _extensions(self, values: dict[str, Any]) -> frozenset[str]:
        if ALLOWED_FORMATS_KEY not in values or values[ALLOWED_FORMATS_KEY] is None:
            record_policy_fallback(ALLOWED_FORMATS_KEY, "absent")
            return self._defaults.allowed_extensions
        raw = values[ALLOWED_FORMATS_KEY]
        if not isinstance(raw, (list, tuple)):
            logger.warning("Setting %r is not a list (%r); no file types are allowed", ALLOWED_FORMATS_KEY, raw)
        return decode_extensions(raw)
