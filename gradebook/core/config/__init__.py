__all__ = [
    "LoggingSettings",
    "PersistentSettings",
    "PostgresqlSettings",
    "Settings",
    "SqliteSettings",
    "StorageSettings",
]


from .logging import LoggingSettings
from .settings import Settings
from .storage import PersistentSettings, PostgresqlSettings, SqliteSettings, StorageSettings
