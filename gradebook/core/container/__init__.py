__all__ = [
    "BootConfiguration",
    "GradebookContainer",
    "PersistentContainer",
    "StorageContainer",
]

from .gradebook import BootConfiguration, GradebookContainer
from .storage import PersistentContainer, StorageContainer
