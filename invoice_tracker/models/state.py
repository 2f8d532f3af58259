"""
Invoice workflow states and VIN reference sources
"""
from enum import Enum


class InvoiceStatus(str, Enum):
    PENDING_ENTRY = "pending_entry"
    PENDING_REVIEW = "pending_review"
    ADMIN_REVIEW = "admin_review"
    APPROVED = "approved"
    FINALIZED = "finalized"
    PAID = "paid"


class InvoiceType(str, Enum):
    CHARGE = "Charge"
    CREDIT_MEMO = "Credit Memo"


class VinSource(str, Enum):
    WHOLESALE_INVENTORY = "wholesale_inventory"
    RETAIL_INVENTORY = "retail_inventory"
    SOLD = "sold"
    CURRENT_ACCOUNT = "current_account"


# First match wins, in this order
VIN_SOURCE_PRIORITY = (
    VinSource.WHOLESALE_INVENTORY,
    VinSource.RETAIL_INVENTORY,
    VinSource.SOLD,
    VinSource.CURRENT_ACCOUNT,
)

# Vehicles the business currently owns
INVENTORY_SOURCES = frozenset({VinSource.WHOLESALE_INVENTORY, VinSource.RETAIL_INVENTORY})
