# Models package
from .state import (
    InvoiceStatus, InvoiceType, VinSource,
    VIN_SOURCE_PRIORITY, INVENTORY_SOURCES
)
from .schemas import (
    Invoice, InvoiceCreate, InvoiceUpdate, InvoiceFilters,
    VinLookupResult, VinLookupReport, SourceOutcome,
    AuditLogCreate, AuditLogEntry, CsvExportBatch,
    BillingLine, BillingLineCreate, BillingLineUpdate,
    UploadedFile, UploadedFileCreate, User,
    Vendor, VendorCreate, VendorUpdate, VendorFilters
)
