"""
Invoice Record Store - create, read, filter and edit invoices
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from invoice_tracker.config import DEFAULT_INVENTORY_GL_CODE
from invoice_tracker.exceptions import NotFound, ValidationFailed
from invoice_tracker.models.schemas import (
    AuditLogCreate, AuditLogEntry, DashboardStats, Invoice, InvoiceCreate,
    InvoiceFilters, InvoiceUpdate, VinLookupApplied, VinLookupResult
)
from invoice_tracker.models.state import InvoiceStatus
from invoice_tracker.storage import Storage
from .gl_policy import assign_gl_code, lookup_key
from .status_machine import InvoiceStatusMachine, parse_status
from .vin_lookup import VinLookupResolver

logger = logging.getLogger(__name__)

# Placeholder values written by the upload flow before data entry
PENDING_VIN = "PENDING"
PENDING_VENDOR = "Pending Entry"


def validation_message(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}" if location else item.get("msg", ""))
    return "; ".join(parts)


def parse_filters(
    status: Optional[str] = None,
    user_id: Optional[int] = None,
    vendor_name: Optional[str] = None,
    invoice_number: Optional[str] = None,
    vin: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None
) -> InvoiceFilters:
    """Build filters from query-string values; `status` is comma-separated"""
    statuses = None
    if status:
        statuses = [parse_status(s.strip()) for s in status.split(",") if s.strip()]
    return InvoiceFilters(
        status=statuses,
        user_id=user_id,
        vendor_name=vendor_name or None,
        invoice_number=invoice_number or None,
        vin=vin or None,
        start_date=start_date,
        end_date=end_date,
    )


class InvoiceService:
    """
    CRUD and filtered querying over invoice records.

    Status changes are delegated to InvoiceStatusMachine; field edits
    never touch status or attribution fields.
    """

    def __init__(
        self,
        storage: Storage,
        status_machine: InvoiceStatusMachine,
        resolver: VinLookupResolver,
        inventory_gl_code: str = DEFAULT_INVENTORY_GL_CODE
    ):
        self.storage = storage
        self.status_machine = status_machine
        self.resolver = resolver
        self.inventory_gl_code = inventory_gl_code

    def create(self, payload: Union[InvoiceCreate, Dict[str, Any]]) -> Invoice:
        if not isinstance(payload, InvoiceCreate):
            try:
                payload = InvoiceCreate.model_validate(payload)
            except ValidationError as e:
                raise ValidationFailed(f"Invalid invoice: {validation_message(e)}") from e

        fields = payload.model_dump(exclude={"status", "vin_lookup_result"})
        status = payload.status or InvoiceStatus.PENDING_REVIEW
        vin_lookup = payload.vin_lookup_result or VinLookupResult(found=False)

        if payload.vin == PENDING_VIN or payload.vendor_name == PENDING_VENDOR:
            # Uploaded document still waiting for data entry
            status = InvoiceStatus.PENDING_ENTRY
            vin_lookup = VinLookupResult(found=False)

        invoice = self.storage.create_invoice({
            **fields,
            "status": status,
            "vin_lookup_result": vin_lookup,
        })
        self.storage.create_audit_log(AuditLogCreate(
            invoice_id=invoice.id,
            user_id=payload.uploaded_by,
            action="created",
            new_values=invoice.snapshot(),
        ))

        logger.info(
            f"Created invoice {invoice.id} ({invoice.invoice_number}, {invoice.vendor_name}) "
            f"status={invoice.status.value}"
        )
        return invoice

    def get(self, invoice_id: int) -> Invoice:
        invoice = self.storage.get_invoice(invoice_id)
        if invoice is None:
            raise NotFound(f"Invoice {invoice_id} not found")
        return invoice

    def list(self, filters: Optional[InvoiceFilters] = None) -> List[Invoice]:
        return self.storage.list_invoices(filters)

    def update(self, invoice_id: int, payload: Union[InvoiceUpdate, Dict[str, Any]]) -> Invoice:
        """
        Merge the provided fields into the record.

        Cross-field invariants (amount positivity and so on) are not
        re-checked here.
        """
        if not isinstance(payload, InvoiceUpdate):
            try:
                payload = InvoiceUpdate.model_validate(payload)
            except ValidationError as e:
                raise ValidationFailed(f"Invalid update: {validation_message(e)}") from e

        old = self.get(invoice_id)
        changes = payload.changes()
        try:
            merged = Invoice.model_validate({**old.model_dump(), **changes})
        except ValidationError as e:
            raise ValidationFailed(f"Invalid update: {validation_message(e)}") from e

        audit = AuditLogCreate(
            invoice_id=invoice_id,
            user_id=payload.user_id if payload.user_id is not None else old.uploaded_by,
            action="updated",
            old_values=old.snapshot(),
            new_values=merged.snapshot(),
        )
        updated = self.storage.update_invoice(invoice_id, changes, audit=audit)
        logger.info(f"Updated invoice {invoice_id}: {sorted(changes)}")
        return updated

    def update_status(self, invoice_id: int, status: Union[str, InvoiceStatus], user_id: int) -> Invoice:
        return self.status_machine.transition(invoice_id, status, user_id)

    def return_to_approved(self, invoice_id: int, user_id: int, correction_notes: str = "") -> Invoice:
        """Correction path for a finalized invoice the accounting import rejected"""
        invoice = self.get(invoice_id)
        if invoice.status != InvoiceStatus.FINALIZED:
            raise ValidationFailed(
                f"Invoice {invoice_id} is {invoice.status.value}; only finalized invoices can be returned"
            )
        return self.status_machine.transition(
            invoice_id,
            InvoiceStatus.APPROVED,
            user_id,
            action="returned_to_approved",
            extra_new_values={"correctionNotes": correction_notes},
        )

    def delete(self, invoice_id: int) -> None:
        self.storage.delete_invoice(invoice_id)
        logger.info(f"Deleted invoice {invoice_id} and its billing lines")

    def apply_vin_lookup(self, invoice_id: int, user_id: int) -> VinLookupApplied:
        """
        Resolve the invoice VIN, store the lookup snapshot and assign the
        GL code the policy yields. An inconclusive match on an invoice in
        pending_review routes it to admin_review.
        """
        invoice = self.get(invoice_id)
        result = self.resolver.lookup(lookup_key(invoice.vin))
        assignment = assign_gl_code(result, self.inventory_gl_code)

        changes: Dict[str, Any] = {"vin_lookup_result": result}
        if assignment.gl_code is not None:
            changes["gl_code"] = assignment.gl_code

        audit = AuditLogCreate(
            invoice_id=invoice_id,
            user_id=user_id,
            action="vin_lookup_applied",
            old_values={"glCode": invoice.gl_code, "vinLookupResult": (
                invoice.vin_lookup_result.to_json() if invoice.vin_lookup_result else None
            )},
            new_values={"glCode": changes.get("gl_code", invoice.gl_code), "vinLookupResult": result.to_json()},
        )
        updated = self.storage.update_invoice(invoice_id, changes, audit=audit)

        if assignment.needs_admin_review and updated.status == InvoiceStatus.PENDING_REVIEW:
            updated = self.status_machine.transition(invoice_id, InvoiceStatus.ADMIN_REVIEW, user_id)

        return VinLookupApplied(
            invoice=updated,
            result=result,
            gl_code=assignment.gl_code,
            needs_admin_review=assignment.needs_admin_review,
        )

    def audit_history(self, invoice_id: int) -> List[AuditLogEntry]:
        return self.storage.list_audit_logs(invoice_id)

    def dashboard_stats(self) -> DashboardStats:
        invoices = self.storage.list_invoices()
        today = self.storage.clock().date()

        todays_total = sum(
            (inv.invoice_amount for inv in invoices if inv.created_at.date() == today),
            Decimal("0")
        )
        return DashboardStats(
            total_pending=sum(
                1 for inv in invoices
                if inv.status in (InvoiceStatus.PENDING_ENTRY, InvoiceStatus.PENDING_REVIEW)
            ),
            ready_to_export=sum(1 for inv in invoices if inv.status == InvoiceStatus.APPROVED),
            todays_total=float(todays_total),
            need_review=sum(1 for inv in invoices if inv.status == InvoiceStatus.ADMIN_REVIEW),
        )
