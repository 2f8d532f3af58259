"""
In-memory storage backend for tests and local development
"""
import itertools
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel

from invoice_tracker.exceptions import NotFound
from invoice_tracker.models.schemas import (
    Invoice, InvoiceFilters, AuditLogCreate, AuditLogEntry, CsvExportBatch,
    BillingLine, UploadedFile, User, Vendor, VendorFilters
)
from invoice_tracker.models.state import VinSource
from .base import Storage, Clock, invoice_matches, vendor_matches

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


def _merge(model: Type[RecordT], record: RecordT, updates: Dict[str, Any]) -> RecordT:
    return model.model_validate({**record.model_dump(), **updates})


def _newest_first(records):
    return sorted(records, key=lambda r: (r.created_at, r.id), reverse=True)


class MemoryStorage(Storage):
    """All state lives on the instance; two instances never share data"""

    def __init__(self, clock: Optional[Clock] = None):
        super().__init__(clock)
        self._users: Dict[int, User] = {}
        self._vendors: Dict[int, Vendor] = {}
        self._invoices: Dict[int, Invoice] = {}
        self._billing_lines: Dict[int, BillingLine] = {}
        self._files: Dict[int, UploadedFile] = {}
        self._audit_logs: Dict[int, AuditLogEntry] = {}
        self._csv_exports: Dict[int, CsvExportBatch] = {}
        self._vin_references: Dict[VinSource, Dict[str, datetime]] = {
            source: {} for source in VinSource
        }
        self._ids = {
            name: itertools.count(1)
            for name in ("user", "vendor", "invoice", "line", "file", "audit", "export")
        }

    def _next_id(self, name: str) -> int:
        return next(self._ids[name])

    # Users

    def get_user(self, user_id: int) -> Optional[User]:
        return self._users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self._users.values() if u.username == username), None)

    def create_user(self, fields: Dict[str, Any]) -> User:
        user = User.model_validate({
            **fields,
            "id": self._next_id("user"),
            "created_at": self.clock(),
        })
        self._users[user.id] = user
        return user

    # Vendors

    def create_vendor(self, fields: Dict[str, Any]) -> Vendor:
        now = self.clock()
        vendor = Vendor.model_validate({
            **fields,
            "id": self._next_id("vendor"),
            "created_at": now,
            "updated_at": now,
        })
        self._vendors[vendor.id] = vendor
        return vendor

    def get_vendor(self, vendor_id: int) -> Optional[Vendor]:
        return self._vendors.get(vendor_id)

    def get_vendor_by_number(self, vendor_number: str) -> Optional[Vendor]:
        return next((v for v in self._vendors.values() if v.vendor_number == vendor_number), None)

    def list_vendors(self, filters: Optional[VendorFilters] = None) -> List[Vendor]:
        vendors = list(self._vendors.values())
        if filters is not None:
            vendors = [v for v in vendors if vendor_matches(v, filters)]
        return sorted(vendors, key=lambda v: (v.vendor_name, v.id))

    def update_vendor(self, vendor_id: int, updates: Dict[str, Any]) -> Vendor:
        vendor = self._vendors.get(vendor_id)
        if vendor is None:
            raise NotFound(f"Vendor {vendor_id} not found")
        updated = _merge(Vendor, vendor, {**updates, "updated_at": self.clock()})
        self._vendors[vendor_id] = updated
        return updated

    # Invoices

    def create_invoice(self, fields: Dict[str, Any]) -> Invoice:
        now = self.clock()
        invoice = Invoice.model_validate({
            **fields,
            "id": self._next_id("invoice"),
            "created_at": now,
            "updated_at": now,
        })
        self._invoices[invoice.id] = invoice
        return invoice

    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        return self._invoices.get(invoice_id)

    def list_invoices(self, filters: Optional[InvoiceFilters] = None) -> List[Invoice]:
        invoices = list(self._invoices.values())
        if filters is not None:
            invoices = [inv for inv in invoices if invoice_matches(inv, filters)]
        return _newest_first(invoices)

    def update_invoice(
        self,
        invoice_id: int,
        updates: Dict[str, Any],
        audit: Optional[AuditLogCreate] = None
    ) -> Invoice:
        invoice = self._invoices.get(invoice_id)
        if invoice is None:
            raise NotFound(f"Invoice {invoice_id} not found")

        updated = _merge(Invoice, invoice, {**updates, "updated_at": self.clock()})
        self._invoices[invoice_id] = updated
        if audit is not None:
            self.create_audit_log(audit)
        return updated

    def delete_invoice(self, invoice_id: int) -> None:
        if self._invoices.pop(invoice_id, None) is None:
            raise NotFound(f"Invoice {invoice_id} not found")
        for line_id in [l.id for l in self._billing_lines.values() if l.invoice_id == invoice_id]:
            del self._billing_lines[line_id]

    # Billing lines

    def create_billing_line(self, fields: Dict[str, Any]) -> BillingLine:
        now = self.clock()
        line = BillingLine.model_validate({
            **fields,
            "id": self._next_id("line"),
            "created_at": now,
            "updated_at": now,
        })
        self._billing_lines[line.id] = line
        return line

    def get_billing_line(self, line_id: int) -> Optional[BillingLine]:
        return self._billing_lines.get(line_id)

    def list_billing_lines(self, invoice_id: int) -> List[BillingLine]:
        lines = [l for l in self._billing_lines.values() if l.invoice_id == invoice_id]
        return sorted(lines, key=lambda l: (l.line_number, l.id))

    def update_billing_line(self, line_id: int, updates: Dict[str, Any]) -> BillingLine:
        line = self._billing_lines.get(line_id)
        if line is None:
            raise NotFound(f"Billing line {line_id} not found")
        updated = _merge(BillingLine, line, {**updates, "updated_at": self.clock()})
        self._billing_lines[line_id] = updated
        return updated

    def delete_billing_line(self, line_id: int) -> None:
        if self._billing_lines.pop(line_id, None) is None:
            raise NotFound(f"Billing line {line_id} not found")

    # Uploaded files

    def create_uploaded_file(self, fields: Dict[str, Any]) -> UploadedFile:
        uploaded = UploadedFile.model_validate({
            **fields,
            "id": self._next_id("file"),
            "created_at": self.clock(),
        })
        self._files[uploaded.id] = uploaded
        return uploaded

    def get_uploaded_file(self, file_id: int) -> Optional[UploadedFile]:
        return self._files.get(file_id)

    def list_uploaded_files(self, invoice_id: int) -> List[UploadedFile]:
        return [f for f in self._files.values() if f.invoice_id == invoice_id]

    def update_uploaded_file(self, file_id: int, updates: Dict[str, Any]) -> UploadedFile:
        uploaded = self._files.get(file_id)
        if uploaded is None:
            raise NotFound(f"File {file_id} not found")
        updated = _merge(UploadedFile, uploaded, updates)
        self._files[file_id] = updated
        return updated

    # Audit log

    def create_audit_log(self, entry: AuditLogCreate) -> AuditLogEntry:
        log = AuditLogEntry.model_validate({
            **entry.model_dump(),
            "id": self._next_id("audit"),
            "created_at": self.clock(),
        })
        self._audit_logs[log.id] = log
        return log

    def list_audit_logs(self, invoice_id: int) -> List[AuditLogEntry]:
        return _newest_first(l for l in self._audit_logs.values() if l.invoice_id == invoice_id)

    # CSV exports

    def create_csv_export(self, fields: Dict[str, Any]) -> CsvExportBatch:
        batch = CsvExportBatch.model_validate({
            **fields,
            "id": self._next_id("export"),
            "created_at": self.clock(),
        })
        self._csv_exports[batch.id] = batch
        return batch

    def list_csv_exports(self) -> List[CsvExportBatch]:
        return _newest_first(self._csv_exports.values())

    # VIN reference tables

    def find_vin_reference(self, source: VinSource, vin: str) -> Optional[datetime]:
        return self._vin_references[source].get(vin)

    def add_vin_reference(self, source: VinSource, vin: str, reference_date: datetime) -> None:
        self._vin_references[source][vin] = reference_date
