"""
Export Batch Builder - daily CSV of approved invoices for the accounting import
"""
import csv
import io
import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from invoice_tracker.exceptions import NothingToExport, ValidationFailed
from invoice_tracker.models.schemas import CsvExportBatch, Invoice, InvoiceFilters
from invoice_tracker.models.state import InvoiceStatus
from invoice_tracker.storage import Storage
from .status_machine import InvoiceStatusMachine

logger = logging.getLogger(__name__)

CSV_HEADER = "Vendor Name,Vendor #,Invoice #,Invoice Date,Invoice Amount,Due Date,G/L#,Invoice Type,Description"

QUOTING_LEGACY = "legacy"
QUOTING_RFC4180 = "rfc4180"


def csv_fields(invoice: Invoice) -> List[str]:
    """Fixed column order expected by the accounting import"""
    return [
        invoice.vendor_name,
        invoice.vendor_number,
        invoice.invoice_number,
        invoice.invoice_date.isoformat(),
        str(invoice.invoice_amount),
        invoice.due_date.isoformat(),
        invoice.gl_code or "",
        invoice.invoice_type.value,
        invoice.description or "",
    ]


def format_row(values: List[str], quoting: str = QUOTING_LEGACY) -> str:
    if quoting == QUOTING_LEGACY:
        # Wrapped in quotes, embedded quotes left as-is
        return ",".join(f'"{value}"' for value in values)
    if quoting == QUOTING_RFC4180:
        buffer = io.StringIO()
        csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n").writerow(values)
        return buffer.getvalue()[:-1]
    raise ValidationFailed(f"Unknown CSV quoting mode {quoting!r}")


def render_csv(invoices: List[Invoice], quoting: str = QUOTING_LEGACY) -> str:
    rows = [format_row(csv_fields(inv), quoting) for inv in invoices]
    return "\n".join([CSV_HEADER] + rows)


@dataclass
class ExportResult:
    filename: str
    content: bytes
    batch: CsvExportBatch
    invoice_ids: List[int] = field(default_factory=list)
    failed: dict = field(default_factory=dict)

    @property
    def media_type(self) -> str:
        return "text/csv"


class ExportBatchBuilder:
    """
    Builds the daily export and flips the exported invoices to finalized.

    Exports are serialized within one process by a lock, so two requests
    to the same app cannot read the same approved set. Separate processes
    sharing a database are not coordinated. Finalizing is sequential and
    not atomic: a failure part way leaves earlier invoices finalized and
    is reported in `ExportResult.failed`.
    """

    def __init__(
        self,
        storage: Storage,
        status_machine: InvoiceStatusMachine,
        quoting: str = QUOTING_LEGACY
    ):
        self.storage = storage
        self.status_machine = status_machine
        self.quoting = quoting
        self._lock = threading.Lock()

    def filename_for_today(self) -> str:
        return f"daily_upload_{self.storage.clock().date().isoformat()}.csv"

    def approved_invoices(self) -> List[Invoice]:
        return self.storage.list_invoices(InvoiceFilters(status=[InvoiceStatus.APPROVED]))

    def preview(self) -> Optional[str]:
        """CSV text the next export would produce, without side effects"""
        invoices = self.approved_invoices()
        if not invoices:
            return None
        return render_csv(invoices, self.quoting)

    def export_approved(self, acting_user_id: int) -> ExportResult:
        with self._lock:
            invoices = self.approved_invoices()
            if not invoices:
                logger.info("Export requested with no approved invoices")
                raise NothingToExport("No approved invoices to export")

            content = render_csv(invoices, self.quoting)
            filename = self.filename_for_today()
            invoice_ids = [inv.id for inv in invoices]

            batch = self.storage.create_csv_export({
                "filename": filename,
                "export_date": self.storage.clock(),
                "invoice_ids": invoice_ids,
                "exported_by": acting_user_id,
            })
            logger.info(f"Export batch {batch.id}: {filename} with {len(invoice_ids)} invoices")

            finalized = self.status_machine.bulk_transition(
                invoice_ids, InvoiceStatus.FINALIZED, acting_user_id
            )
            if finalized.failed:
                logger.error(f"Export batch {batch.id}: {len(finalized.failed)} invoices not finalized")

            return ExportResult(
                filename=filename,
                content=content.encode("utf-8"),
                batch=batch,
                invoice_ids=invoice_ids,
                failed=dict(finalized.failed),
            )

    def history(self) -> List[CsvExportBatch]:
        return self.storage.list_csv_exports()
