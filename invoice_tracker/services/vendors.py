"""
Vendor directory - the payees invoices are keyed against
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from invoice_tracker.exceptions import NotFound, ValidationFailed
from invoice_tracker.models.schemas import (
    Vendor, VendorCreate, VendorFilters, VendorImportResult, VendorUpdate
)
from invoice_tracker.storage import Storage
from .invoice_store import validation_message

logger = logging.getLogger(__name__)


class VendorService:

    def __init__(self, storage: Storage):
        self.storage = storage

    def list(self, search: Optional[str] = None, active: Optional[bool] = None) -> List[Vendor]:
        return self.storage.list_vendors(VendorFilters(search=search or None, active=active))

    def get(self, vendor_id: int) -> Vendor:
        vendor = self.storage.get_vendor(vendor_id)
        if vendor is None:
            raise NotFound(f"Vendor {vendor_id} not found")
        return vendor

    def create(self, payload: Union[VendorCreate, Dict[str, Any]]) -> Vendor:
        if not isinstance(payload, VendorCreate):
            try:
                payload = VendorCreate.model_validate(payload)
            except ValidationError as e:
                raise ValidationFailed(f"Invalid vendor: {validation_message(e)}") from e

        if self.storage.get_vendor_by_number(payload.vendor_number) is not None:
            raise ValidationFailed(f"Vendor number {payload.vendor_number!r} already exists")

        vendor = self.storage.create_vendor(payload.model_dump())
        logger.info(f"Created vendor {vendor.vendor_number} ({vendor.vendor_name})")
        return vendor

    def update(self, vendor_id: int, payload: Union[VendorUpdate, Dict[str, Any]]) -> Vendor:
        if not isinstance(payload, VendorUpdate):
            try:
                payload = VendorUpdate.model_validate(payload)
            except ValidationError as e:
                raise ValidationFailed(f"Invalid vendor: {validation_message(e)}") from e

        vendor = self.get(vendor_id)
        changes = {name: getattr(payload, name) for name in payload.model_fields_set}

        cleared = [
            name for name in ("vendor_number", "vendor_name", "is_active")
            if name in changes and changes[name] is None
        ]
        if cleared:
            raise ValidationFailed(f"Vendor fields cannot be cleared: {', '.join(cleared)}")

        number = changes.get("vendor_number")
        if number is not None and number != vendor.vendor_number:
            if self.storage.get_vendor_by_number(number) is not None:
                raise ValidationFailed(f"Vendor number {number!r} already exists")

        return self.storage.update_vendor(vendor_id, changes)

    def import_vendors(self, rows: Iterable[Dict[str, Any]]) -> VendorImportResult:
        """
        Bulk-load vendor rows, e.g. from the accounting system's vendor list.

        Rows whose vendor number already exists (in storage or earlier in
        the batch) are skipped; invalid rows are reported and do not stop
        the rest.
        """
        imported = 0
        skipped: List[str] = []
        failed: Dict[str, str] = {}

        for index, row in enumerate(rows):
            try:
                payload = VendorCreate.model_validate(row)
            except ValidationError as e:
                key = str(row.get("vendorNumber") or row.get("vendor_number") or f"row {index + 1}")
                failed[key] = validation_message(e)
                continue

            if self.storage.get_vendor_by_number(payload.vendor_number) is not None:
                skipped.append(payload.vendor_number)
                continue

            self.storage.create_vendor(payload.model_dump())
            imported += 1

        logger.info(f"Vendor import: {imported} imported, {len(skipped)} skipped, {len(failed)} failed")
        return VendorImportResult(
            message=f"Imported {imported} vendors",
            imported=imported,
            skipped=skipped,
            failed=failed,
        )
