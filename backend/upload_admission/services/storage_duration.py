"""Storage duration policy: which retention tokens (1h, 3d, 30d, permanent) an uploader may request.

Expiry itself is enforced by the storage side; this module only validates the
requested token against the "storage" settings group.
"""
import logging
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from upload_admission.core.config import get_settings, split_csv
from upload_admission.core.errors import SettingsSourceError, StorageConfigError, StorageDurationError
from upload_admission.services.settings_store import SettingsSource

logger = logging.getLogger(__name__)

PERMANENT = "permanent"
USER_DURATIONS_KEY = "user_storage_durations"
GUEST_DURATIONS_KEY = "guest_storage_durations"

_TOKEN_RE = re.compile(r"^(\d+)([mhdw])$")
_UNITS = {"m": "minutes", "h": "hours", "d": "days", "w": "weeks"}


def parse_duration(token: str) -> timedelta | None:
    """Token to timedelta ("3d" -> 3 days); "permanent" -> None. Raise StorageDurationError if malformed."""
    t = token.strip().lower()
    if t == PERMANENT:
        return None
    m = _TOKEN_RE.match(t)
    if not m or int(m.group(1)) <= 0:
        raise StorageDurationError(f"Invalid storage duration: {token}")
    return timedelta(**{_UNITS[m.group(2)]: int(m.group(1))})


@dataclass(frozen=True)
class StorageConfig:
    user_durations: frozenset[str]
    guest_durations: frozenset[str]

    def validate_duration(self, token: str, is_guest: bool) -> None:
        parse_duration(token)
        t = token.strip().lower()
        allowed = self.guest_durations if is_guest else self.user_durations
        if t not in allowed:
            who = "guest uploads" if is_guest else "this account"
            raise StorageDurationError(
                f"Storage duration {token} is not allowed for {who}; choose one of: {', '.join(sorted(allowed))}"
            )


def _tokens(values: list[str]) -> frozenset[str]:
    out = set()
    for v in values:
        parse_duration(v)
        out.add(v.strip().lower())
    return frozenset(out)


def _env_tokens(name: str, raw: str) -> frozenset[str]:
    out = set()
    for v in split_csv(raw):
        try:
            parse_duration(v)
        except StorageDurationError:
            logger.warning("Ignoring invalid storage duration %r in %s", v, name.upper())
            continue
        out.add(v.strip().lower())
    return frozenset(out)


def default_storage_config() -> StorageConfig:
    """Allow lists from the environment. Never raises: unparsable tokens are skipped with a warning."""
    settings = get_settings()
    return StorageConfig(
        user_durations=_env_tokens("default_user_storage_durations", settings.default_user_storage_durations),
        guest_durations=_env_tokens("default_guest_storage_durations", settings.default_guest_storage_durations),
    )


def _durations_from(values: dict[str, Any], key: str, fallback: frozenset[str]) -> frozenset[str]:
    if key not in values or values[key] is None:
        return fallback
    raw = values[key]
    if not isinstance(raw, (list, tuple)) or not all(isinstance(v, str) for v in raw):
        raise StorageConfigError(f"Setting {key!r} must be a list of duration strings")
    try:
        return _tokens(list(raw))
    except StorageDurationError as e:
        raise StorageConfigError(f"Setting {key!r}: {e}") from e


async def create_storage_config(source: SettingsSource, group_name: str | None = None) -> StorageConfig:
    """Build from the storage settings group. Raise StorageConfigError if it cannot be read or parsed."""
    name = group_name or get_settings().storage_settings_group
    try:
        values = await source.get_settings_group(name)
    except SettingsSourceError as e:
        raise StorageConfigError(f"Storage settings unavailable: {e}") from e
    fallback = default_storage_config()
    return StorageConfig(
        user_durations=_durations_from(values, USER_DURATIONS_KEY, fallback.user_durations),
        guest_durations=_durations_from(values, GUEST_DURATIONS_KEY, fallback.guest_durations),
    )
