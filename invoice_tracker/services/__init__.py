# Services package
from dataclasses import dataclass

from invoice_tracker.config import Settings
from invoice_tracker.storage import Storage
from .vin_lookup import VinLookupResolver
from .gl_policy import GlAssignment, assign_gl_code
from .status_machine import InvoiceStatusMachine, ALLOWED_TRANSITIONS, ATTRIBUTION_FIELDS
from .invoice_store import InvoiceService, parse_filters
from .export_builder import ExportBatchBuilder, ExportResult, render_csv
from .billing_lines import BillingLineService
from .files import FileService
from .users import UserService
from .vendors import VendorService


@dataclass
class Services:
    """Everything the HTTP layer needs, bound to one storage backend"""

    storage: Storage
    resolver: VinLookupResolver
    status_machine: InvoiceStatusMachine
    invoices: InvoiceService
    exports: ExportBatchBuilder
    billing_lines: BillingLineService
    files: FileService
    users: UserService
    vendors: VendorService


def build_services(storage: Storage, settings: Settings) -> Services:
    resolver = VinLookupResolver(storage)
    status_machine = InvoiceStatusMachine(storage, strict=settings.strict_transitions)
    return Services(
        storage=storage,
        resolver=resolver,
        status_machine=status_machine,
        invoices=InvoiceService(storage, status_machine, resolver, settings.inventory_gl_code),
        exports=ExportBatchBuilder(storage, status_machine, settings.csv_quoting),
        billing_lines=BillingLineService(storage, resolver, settings.inventory_gl_code),
        files=FileService(storage),
        users=UserService(storage),
        vendors=VendorService(storage),
    )
