"""
Persistence interface shared by the in-memory and relational backends
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from invoice_tracker.models.schemas import (
    Invoice, InvoiceFilters, AuditLogCreate, AuditLogEntry, CsvExportBatch,
    BillingLine, UploadedFile, User, Vendor, VendorFilters
)
from invoice_tracker.models.state import VinSource

Clock = Callable[[], datetime]


class Storage(ABC):
    """
    Persistence collaborator for the invoice workflow.

    Every method returns pydantic domain objects, never ORM rows, so the
    services behave the same against either backend. Update methods raise
    NotFound for an unknown id; getters return None instead.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock: Clock = clock or datetime.utcnow

    # Users

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    def create_user(self, fields: Dict[str, Any]) -> User: ...

    # Vendors

    @abstractmethod
    def create_vendor(self, fields: Dict[str, Any]) -> Vendor: ...

    @abstractmethod
    def get_vendor(self, vendor_id: int) -> Optional[Vendor]: ...

    @abstractmethod
    def get_vendor_by_number(self, vendor_number: str) -> Optional[Vendor]: ...

    @abstractmethod
    def list_vendors(self, filters: Optional[VendorFilters] = None) -> List[Vendor]:
        """Ordered by vendor name"""

    @abstractmethod
    def update_vendor(self, vendor_id: int, updates: Dict[str, Any]) -> Vendor: ...

    # Invoices

    @abstractmethod
    def create_invoice(self, fields: Dict[str, Any]) -> Invoice: ...

    @abstractmethod
    def get_invoice(self, invoice_id: int) -> Optional[Invoice]: ...

    @abstractmethod
    def list_invoices(self, filters: Optional[InvoiceFilters] = None) -> List[Invoice]:
        """AND-combined filters, newest first"""

    @abstractmethod
    def update_invoice(
        self,
        invoice_id: int,
        updates: Dict[str, Any],
        audit: Optional[AuditLogCreate] = None
    ) -> Invoice:
        """Merge `updates`, refresh updated_at and append `audit` in the same unit of work"""

    @abstractmethod
    def delete_invoice(self, invoice_id: int) -> None:
        """Delete the invoice and its billing lines"""

    # Billing lines

    @abstractmethod
    def create_billing_line(self, fields: Dict[str, Any]) -> BillingLine: ...

    @abstractmethod
    def get_billing_line(self, line_id: int) -> Optional[BillingLine]: ...

    @abstractmethod
    def list_billing_lines(self, invoice_id: int) -> List[BillingLine]: ...

    @abstractmethod
    def update_billing_line(self, line_id: int, updates: Dict[str, Any]) -> BillingLine: ...

    @abstractmethod
    def delete_billing_line(self, line_id: int) -> None: ...

    # Uploaded files

    @abstractmethod
    def create_uploaded_file(self, fields: Dict[str, Any]) -> UploadedFile: ...

    @abstractmethod
    def get_uploaded_file(self, file_id: int) -> Optional[UploadedFile]: ...

    @abstractmethod
    def list_uploaded_files(self, invoice_id: int) -> List[UploadedFile]: ...

    @abstractmethod
    def update_uploaded_file(self, file_id: int, updates: Dict[str, Any]) -> UploadedFile: ...

    # Audit log (append-only)

    @abstractmethod
    def create_audit_log(self, entry: AuditLogCreate) -> AuditLogEntry: ...

    @abstractmethod
    def list_audit_logs(self, invoice_id: int) -> List[AuditLogEntry]:
        """Newest first"""

    # CSV export batches (append-only)

    @abstractmethod
    def create_csv_export(self, fields: Dict[str, Any]) -> CsvExportBatch: ...

    @abstractmethod
    def list_csv_exports(self) -> List[CsvExportBatch]:
        """Newest first"""

    # VIN reference tables

    @abstractmethod
    def find_vin_reference(self, source: VinSource, vin: str) -> Optional[datetime]:
        """
        Reference timestamp for `vin` in `source`, or None when absent.

        The timestamp is `sold_date` for the sold table and `last_updated`
        everywhere else. Raises LookupUnavailable when the source cannot
        be queried.
        """

    @abstractmethod
    def add_vin_reference(self, source: VinSource, vin: str, reference_date: datetime) -> None: ...

    def close(self) -> None:
        """Release backend resources"""


def invoice_matches(invoice: Invoice, filters: InvoiceFilters) -> bool:
    """Python-side evaluation of InvoiceFilters"""
    if filters.status is not None and invoice.status not in filters.status:
        return False
    if filters.user_id is not None and filters.user_id not in (
        invoice.uploaded_by, invoice.entered_by, invoice.approved_by
    ):
        return False
    if filters.vendor_name and filters.vendor_name.lower() not in invoice.vendor_name.lower():
        return False
    if filters.invoice_number and filters.invoice_number.lower() not in invoice.invoice_number.lower():
        return False
    if filters.vin and filters.vin.lower() not in invoice.vin.lower():
        return False
    if filters.start_date is not None and invoice.created_at < filters.start_date:
        return False
    if filters.end_date is not None and invoice.created_at > filters.end_date:
        return False
    return True


def vendor_matches(vendor: Vendor, filters: VendorFilters) -> bool:
    """`search` is a case-insensitive substring of the name or the vendor number"""
    if filters.active is not None and vendor.is_active != filters.active:
        return False
    if filters.search:
        needle = filters.search.lower()
        if needle not in vendor.vendor_name.lower() and needle not in vendor.vendor_number.lower():
            return False
    return True
