"""
Sample reference data for local development and demos
"""
import logging
from datetime import timedelta

from invoice_tracker.models.state import VinSource
from .base import Storage

logger = logging.getLogger(__name__)

# (source, vin, age in days)
SAMPLE_VIN_REFERENCES = [
    (VinSource.WHOLESALE_INVENTORY, "12345678", 0),
    (VinSource.WHOLESALE_INVENTORY, "11223344", 0),
    (VinSource.RETAIL_INVENTORY, "87654321", 0),
    (VinSource.RETAIL_INVENTORY, "44556677", 0),
    (VinSource.SOLD, "99887766", 45),
    (VinSource.CURRENT_ACCOUNT, "55443322", 0),
]


def seed_sample_data(storage: Storage) -> None:
    """Load the sample VIN references and the default admin user (idempotent for the user)"""
    now = storage.clock()
    for source, vin, age_days in SAMPLE_VIN_REFERENCES:
        if storage.find_vin_reference(source, vin) is None:
            storage.add_vin_reference(source, vin, now - timedelta(days=age_days))

    if storage.get_user_by_username("admin") is None:
        # Placeholder credentials, there is no real authentication
        storage.create_user({"username": "admin", "password": "admin123", "role": "admin"})

    logger.info(f"Seeded {len(SAMPLE_VIN_REFERENCES)} VIN references and admin user")
