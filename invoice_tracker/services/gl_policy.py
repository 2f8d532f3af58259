"""
GL-code assignment policy applied to VIN lookup results
"""
from dataclasses import dataclass
from typing import Optional

from invoice_tracker.config import DEFAULT_INVENTORY_GL_CODE
from invoice_tracker.models.schemas import VinLookupResult
from invoice_tracker.models.state import INVENTORY_SOURCES


@dataclass(frozen=True)
class GlAssignment:
    gl_code: Optional[str]
    needs_admin_review: bool


def assign_gl_code(
    result: VinLookupResult,
    inventory_gl_code: str = DEFAULT_INVENTORY_GL_CODE
) -> GlAssignment:
    """
    Vehicles in wholesale or retail inventory always book to the inventory
    GL code. Sold, current-account and unknown vehicles need a human to
    pick the code.
    """
    if result.found and result.database in INVENTORY_SOURCES:
        return GlAssignment(gl_code=inventory_gl_code, needs_admin_review=False)
    return GlAssignment(gl_code=None, needs_admin_review=True)


def lookup_key(vin: str) -> str:
    """Reference tables are keyed on the last 8 characters"""
    return vin.strip()[-8:]
