"""Read side of the dynamic settings store: a group name maps to a loosely typed key/value dict."""
from collections.abc import Mapping
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from upload_admission.core.errors import SettingsSourceError
from upload_admission.db.models import Setting


class SettingsSource(Protocol):
    async def get_settings_group(self, name: str) -> dict[str, Any]:
        """Return the group's settings (empty dict if the group does not exist). Raise SettingsSourceError if unreadable."""
        ...


class DatabaseSettingsSource:
    """Settings rows in the `settings` table.

    The read runs in a SAVEPOINT so a failed query (missing table, bad JSON)
    does not leave a shared session in an aborted transaction on PostgreSQL.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_settings_group(self, name: str) -> dict[str, Any]:
        try:
            async with self._db.begin_nested():
                result = await self._db.execute(
                    select(Setting.key, Setting.value).where(Setting.group_name == name)
                )
                rows = result.all()
        except SQLAlchemyError as e:
            raise SettingsSourceError(f"Failed to read settings group {name!r}") from e
        return {key: value for key, value in rows}


class StaticSettingsSource:
    """In-memory groups, e.g. for local overrides. A group set to None behaves as unreachable."""

    def __init__(self, groups: Mapping[str, Mapping[str, Any] | None] | None = None) -> None:
        self._groups = dict(groups or {})

    async def get_settings_group(self, name: str) -> dict[str, Any]:
        if name in self._groups and self._groups[name] is None:
            raise SettingsSourceError(f"Settings group {name!r} unavailable")
        return dict(self._groups.get(name) or {})
