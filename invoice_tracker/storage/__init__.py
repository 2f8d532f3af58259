# Storage package
import logging
from typing import Optional

from invoice_tracker.config import Settings
from .base import Storage, Clock
from .memory import MemoryStorage
from .sql import SqlStorage
from .seed import seed_sample_data

logger = logging.getLogger(__name__)


def build_storage(settings: Settings, clock: Optional[Clock] = None) -> Storage:
    """Instantiate the backend selected by STORAGE_BACKEND"""
    if settings.uses_memory_storage:
        logger.info("Using in-memory storage")
        storage = MemoryStorage(clock)
    else:
        logger.info(f"Using SQL storage at {settings.database_url}")
        storage = SqlStorage.from_url(settings.database_url, clock)

    if settings.seed_sample_data:
        seed_sample_data(storage)
    return storage
