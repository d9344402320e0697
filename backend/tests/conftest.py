"""Pytest fixtures: in-memory DB, users, settings sources, policy resolver."""
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from upload_admission.core.config import get_settings
from upload_admission.db.models import Folder
from upload_admission.db.session import init_db, make_engine, make_session_factory
from upload_admission.services.policy import PolicyResolver
from upload_admission.services.settings_store import StaticSettingsSource

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
async def db():
    engine = make_engine(TEST_DATABASE_URL, echo=False)
    await init_db(engine)
    async with make_session_factory(engine)() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
async def user_folder(db: AsyncSession, user_id):
    folder = Folder(id="f-1", user_id=user_id, name="Holiday")
    db.add(folder)
    await db.commit()
    return folder


class CountingSource(StaticSettingsSource):
    """StaticSettingsSource that records how often each group is read."""

    def __init__(self, groups=None):
        super().__init__(groups)
        self.reads: list[str] = []

    async def get_settings_group(self, name):
        self.reads.append(name)
        return await super().get_settings_group(name)


@pytest.fixture
def upload_group():
    return {
        "max_file_size": 10,
        "max_batch_size": 25.0,
        "allowed_file_formats": ["jpg", "png", "webp"],
        "daily_upload_limit": 50,
    }


@pytest.fixture
def source(upload_group):
    return CountingSource({"upload": upload_group})


@pytest.fixture
def resolver(source):
    return PolicyResolver(source)


