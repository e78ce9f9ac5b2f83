__all__ = [
    "BootConfiguration",
    "di",
    "GradebookContainer",
    "LoggingProvider",
    "Settings",
    "TimestampProvider",
]


from . import di
from .config import Settings
from .container import BootConfiguration, GradebookContainer
from .provider import LoggingProvider, TimestampProvider
