"""
Pydantic schemas for domain records and API requests/responses
"""
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Annotated, Optional, List, Dict, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .state import InvoiceStatus, InvoiceType, VinSource

CENTS = Decimal("0.01")


def _to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS)


# Fixed-point amount, always two decimal places
Money = Annotated[Decimal, AfterValidator(_to_cents)]


class CamelModel(BaseModel):
    """snake_case attributes, camelCase on the wire"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ============================================================================
# VIN LOOKUP
# ============================================================================

class VinLookupResult(CamelModel):
    found: bool
    database: Optional[VinSource] = None
    days_since_update: Optional[int] = None

    def to_json(self) -> Dict[str, Any]:
        """Wire shape: a miss carries only `found`"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SourceOutcome(CamelModel):
    source: VinSource
    available: bool
    matched: bool = False
    reference_date: Optional[datetime] = None
    error: Optional[str] = None


class VinLookupReport(CamelModel):
    vin: str
    result: VinLookupResult
    sources: List[SourceOutcome]

    @property
    def failed_sources(self) -> List[VinSource]:
        return [s.source for s in self.sources if not s.available]

    @property
    def conclusive(self) -> bool:
        """Every source consulted up to the decision answered"""
        return not self.failed_sources


# ============================================================================
# USERS
# ============================================================================

class User(CamelModel):
    id: int
    username: str
    password: str = Field(exclude=True, repr=False)
    role: str = "user"
    created_at: datetime


class LoginRequest(CamelModel):
    username: str
    password: str


# ============================================================================
# INVOICES
# ============================================================================

class Invoice(CamelModel):
    id: int
    invoice_number: str
    vendor_name: str
    vendor_number: str
    invoice_date: date
    invoice_amount: Decimal
    due_date: date
    vin: str
    invoice_type: InvoiceType
    description: Optional[str] = None
    gl_code: Optional[str] = None
    status: InvoiceStatus
    uploaded_by: int
    entered_by: Optional[int] = None
    approved_by: Optional[int] = None
    finalized_by: Optional[int] = None
    vin_lookup_result: Optional[VinLookupResult] = None
    created_at: datetime
    updated_at: datetime

    def snapshot(self) -> Dict[str, Any]:
        """JSON-safe copy used for audit old/new values"""
        return self.model_dump(mode="json", by_alias=True)


class InvoiceCreate(CamelModel):
    invoice_number: str = Field(min_length=1)
    vendor_name: str = Field(min_length=1)
    vendor_number: str = Field(min_length=1)
    invoice_date: date
    invoice_amount: Money = Field(gt=0, max_digits=10, decimal_places=2)
    due_date: date
    vin: str = Field(min_length=1)
    invoice_type: InvoiceType
    description: Optional[str] = None
    gl_code: Optional[str] = None
    status: Optional[InvoiceStatus] = None
    uploaded_by: int
    vin_lookup_result: Optional[VinLookupResult] = None


class InvoiceUpdate(CamelModel):
    """Partial field edit; status and attribution fields are not editable here"""

    invoice_number: Optional[str] = None
    vendor_name: Optional[str] = None
    vendor_number: Optional[str] = None
    invoice_date: Optional[date] = None
    invoice_amount: Optional[Money] = None
    due_date: Optional[date] = None
    vin: Optional[str] = None
    invoice_type: Optional[InvoiceType] = None
    description: Optional[str] = None
    gl_code: Optional[str] = None
    vin_lookup_result: Optional[VinLookupResult] = None
    user_id: Optional[int] = None

    def changes(self) -> Dict[str, Any]:
        """Explicitly provided fields, keeping nested models intact"""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name != "user_id"
        }


class InvoiceFilters(BaseModel):
    status: Optional[List[InvoiceStatus]] = None
    user_id: Optional[int] = None
    vendor_name: Optional[str] = None
    invoice_number: Optional[str] = None
    vin: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def _naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Stored timestamps are naive UTC"""
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


class StatusChange(CamelModel):
    status: InvoiceStatus
    user_id: int


class BulkStatusChange(CamelModel):
    invoice_ids: List[int] = Field(min_length=1)
    status: InvoiceStatus
    user_id: int


class BulkTransitionResult(CamelModel):
    status: InvoiceStatus
    succeeded: List[int] = []
    failed: Dict[int, str] = {}


class ReturnToApproved(CamelModel):
    user_id: int
    correction_notes: str = ""


class VinLookupApplied(CamelModel):
    invoice: Invoice
    result: VinLookupResult
    gl_code: Optional[str] = None
    needs_admin_review: bool


class DashboardStats(CamelModel):
    total_pending: int
    ready_to_export: int
    todays_total: float
    need_review: int


# ============================================================================
# AUDIT / EXPORTS
# ============================================================================

class AuditLogCreate(CamelModel):
    invoice_id: int
    user_id: int
    action: str
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None


class AuditLogEntry(AuditLogCreate):
    id: int
    created_at: datetime


class CsvExportBatch(CamelModel):
    id: int
    filename: str
    export_date: datetime
    invoice_ids: List[int]
    exported_by: int
    created_at: datetime


class ActingUser(CamelModel):
    user_id: int


# ============================================================================
# BILLING LINES
# ============================================================================

class BillingLine(CamelModel):
    id: int
    invoice_id: int
    line_number: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    total_amount: Decimal
    vin: Optional[str] = None
    gl_code: Optional[str] = None
    vin_lookup_result: Optional[VinLookupResult] = None
    created_at: datetime
    updated_at: datetime


class BillingLineCreate(CamelModel):
    invoice_id: int
    line_number: Optional[int] = Field(default=None, ge=1)
    description: str = Field(min_length=1)
    quantity: Decimal = Field(gt=0)
    unit_price: Money = Field(gt=0)
    vin: Optional[str] = None
    gl_code: Optional[str] = None


class BillingLineUpdate(CamelModel):
    line_number: Optional[int] = Field(default=None, ge=1)
    description: Optional[str] = Field(default=None, min_length=1)
    quantity: Optional[Decimal] = Field(default=None, gt=0)
    unit_price: Optional[Money] = Field(default=None, gt=0)
    vin: Optional[str] = None
    gl_code: Optional[str] = None


# ============================================================================
# UPLOADED FILES
# ============================================================================

class UploadedFile(CamelModel):
    id: int
    filename: str
    original_name: str
    mime_type: str
    file_size: int
    file_path: str
    invoice_id: Optional[int] = None
    uploaded_by: int
    created_at: datetime


class UploadedFileCreate(CamelModel):
    filename: str = Field(min_length=1)
    original_name: str = Field(min_length=1)
    mime_type: str
    file_size: int = Field(ge=0)
    file_path: str = Field(min_length=1)
    uploaded_by: int
    invoice_id: Optional[int] = None


class AttachFile(CamelModel):
    invoice_id: int


# ============================================================================
# VENDORS
# ============================================================================

class Vendor(CamelModel):
    id: int
    vendor_number: str
    vendor_name: str
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    phone: Optional[str] = None
    gl_account_nbr: Optional[str] = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class VendorCreate(CamelModel):
    vendor_number: str = Field(min_length=1)
    vendor_name: str = Field(min_length=1)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    phone: Optional[str] = None
    gl_account_nbr: Optional[str] = None
    is_active: bool = True


class VendorUpdate(CamelModel):
    vendor_number: Optional[str] = Field(default=None, min_length=1)
    vendor_name: Optional[str] = Field(default=None, min_length=1)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    phone: Optional[str] = None
    gl_account_nbr: Optional[str] = None
    is_active: Optional[bool] = None


class VendorFilters(BaseModel):
    search: Optional[str] = None
    active: Optional[bool] = None


class VendorImport(CamelModel):
    """Rows are validated one at a time so a bad row does not sink the batch"""

    vendors: List[Dict[str, Any]]


class VendorImportResult(CamelModel):
    message: str
    imported: int
    skipped: List[str] = []
    failed: Dict[str, str] = {}
