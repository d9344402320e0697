from .models import (
    Setting,
    Folder,
    File,
)
from .session import get_db, get_engine, get_session_factory, init_db, make_engine, make_session_factory

__all__ = [
    "Setting",
    "Folder",
    "File",
    "get_db",
    "get_engine",
    "get_session_factory",
    "init_db",
    "make_engine",
    "make_session_factory",
]
