"""
Relational storage backend built on SQLAlchemy
"""
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from invoice_tracker.database import Database
from invoice_tracker.database.models import (
    UserModel, VendorModel, InvoiceModel, BillingLineModel, UploadedFileModel, AuditLogModel,
    CsvExportModel, WholesaleInventoryModel, RetailInventoryModel,
    SoldInventoryModel, CurrentAccountModel
)
from invoice_tracker.exceptions import NotFound, LookupUnavailable
from invoice_tracker.models.schemas import (
    Invoice, InvoiceFilters, AuditLogCreate, AuditLogEntry, CsvExportBatch,
    BillingLine, UploadedFile, User, Vendor, VendorFilters
)
from invoice_tracker.models.state import VinSource
from .base import Storage, Clock

logger = logging.getLogger(__name__)

# source -> (table, reference timestamp column)
VIN_REFERENCE_TABLES = {
    VinSource.WHOLESALE_INVENTORY: (WholesaleInventoryModel, "last_updated"),
    VinSource.RETAIL_INVENTORY: (RetailInventoryModel, "last_updated"),
    VinSource.SOLD: (SoldInventoryModel, "sold_date"),
    VinSource.CURRENT_ACCOUNT: (CurrentAccountModel, "last_updated"),
}


def _column_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude_none=True)
    return value


def _columns(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {key: _column_value(value) for key, value in fields.items()}


def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _apply(row, updates: Dict[str, Any]) -> None:
    for key, value in _columns(updates).items():
        if hasattr(row, key) and key != "id":
            setattr(row, key, value)


class SqlStorage(Storage):

    def __init__(self, database: Database, clock: Optional[Clock] = None):
        super().__init__(clock)
        self.db = database

    @classmethod
    def from_url(cls, db_url: str, clock: Optional[Clock] = None) -> "SqlStorage":
        database = Database(db_url)
        database.create_tables()
        return cls(database, clock)

    def _audit_row(self, entry: AuditLogCreate) -> AuditLogModel:
        return AuditLogModel(**entry.model_dump(), created_at=self.clock())

    # Users

    def get_user(self, user_id: int) -> Optional[User]:
        with self.db.get_session() as session:
            row = session.get(UserModel, user_id)
            return User.model_validate(row) if row else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self.db.get_session() as session:
            row = session.query(UserModel).filter(UserModel.username == username).first()
            return User.model_validate(row) if row else None

    def create_user(self, fields: Dict[str, Any]) -> User:
        with self.db.get_session() as session:
            row = UserModel(**_columns(fields), created_at=self.clock())
            session.add(row)
            session.flush()
            return User.model_validate(row)

    # Vendors

    def create_vendor(self, fields: Dict[str, Any]) -> Vendor:
        now = self.clock()
        with self.db.get_session() as session:
            row = VendorModel(**_columns(fields), created_at=now, updated_at=now)
            session.add(row)
            session.flush()
            return Vendor.model_validate(row)

    def get_vendor(self, vendor_id: int) -> Optional[Vendor]:
        with self.db.get_session() as session:
            row = session.get(VendorModel, vendor_id)
            return Vendor.model_validate(row) if row else None

    def get_vendor_by_number(self, vendor_number: str) -> Optional[Vendor]:
        with self.db.get_session() as session:
            row = session.query(VendorModel).filter(VendorModel.vendor_number == vendor_number).first()
            return Vendor.model_validate(row) if row else None

    def list_vendors(self, filters: Optional[VendorFilters] = None) -> List[Vendor]:
        with self.db.get_session() as session:
            query = session.query(VendorModel)

            if filters is not None:
                if filters.active is not None:
                    query = query.filter(VendorModel.is_active == filters.active)
                if filters.search:
                    pattern = _like_pattern(filters.search)
                    query = query.filter(or_(
                        VendorModel.vendor_name.ilike(pattern, escape="\\"),
                        VendorModel.vendor_number.ilike(pattern, escape="\\"),
                    ))

            rows = query.order_by(VendorModel.vendor_name, VendorModel.id).all()
            return [Vendor.model_validate(row) for row in rows]

    def update_vendor(self, vendor_id: int, updates: Dict[str, Any]) -> Vendor:
        with self.db.get_session() as session:
            row = session.get(VendorModel, vendor_id)
            if row is None:
                raise NotFound(f"Vendor {vendor_id} not found")
            _apply(row, updates)
            row.updated_at = self.clock()
            session.flush()
            return Vendor.model_validate(row)

    # Invoices

    def create_invoice(self, fields: Dict[str, Any]) -> Invoice:
        now = self.clock()
        with self.db.get_session() as session:
            row = InvoiceModel(**_columns(fields), created_at=now, updated_at=now)
            session.add(row)
            session.flush()
            return Invoice.model_validate(row)

    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        with self.db.get_session() as session:
            row = session.get(InvoiceModel, invoice_id)
            return Invoice.model_validate(row) if row else None

    def list_invoices(self, filters: Optional[InvoiceFilters] = None) -> List[Invoice]:
        with self.db.get_session() as session:
            query = session.query(InvoiceModel)

            if filters is not None:
                if filters.status is not None:
                    query = query.filter(InvoiceModel.status.in_([s.value for s in filters.status]))
                if filters.user_id is not None:
                    query = query.filter(or_(
                        InvoiceModel.uploaded_by == filters.user_id,
                        InvoiceModel.entered_by == filters.user_id,
                        InvoiceModel.approved_by == filters.user_id,
                    ))
                if filters.vendor_name:
                    query = query.filter(
                        InvoiceModel.vendor_name.ilike(_like_pattern(filters.vendor_name), escape="\\")
                    )
                if filters.invoice_number:
                    query = query.filter(
                        InvoiceModel.invoice_number.ilike(_like_pattern(filters.invoice_number), escape="\\")
                    )
                if filters.vin:
                    query = query.filter(
                        InvoiceModel.vin.ilike(_like_pattern(filters.vin), escape="\\")
                    )
                if filters.start_date is not None:
                    query = query.filter(InvoiceModel.created_at >= filters.start_date)
                if filters.end_date is not None:
                    query = query.filter(InvoiceModel.created_at <= filters.end_date)

            rows = query.order_by(InvoiceModel.created_at.desc(), InvoiceModel.id.desc()).all()
            return [Invoice.model_validate(row) for row in rows]

    def update_invoice(
        self,
        invoice_id: int,
        updates: Dict[str, Any],
        audit: Optional[AuditLogCreate] = None
    ) -> Invoice:
        with self.db.get_session() as session:
            row = session.get(InvoiceModel, invoice_id)
            if row is None:
                raise NotFound(f"Invoice {invoice_id} not found")

            _apply(row, updates)
            row.updated_at = self.clock()
            if audit is not None:
                session.add(self._audit_row(audit))
            session.flush()
            return Invoice.model_validate(row)

    def delete_invoice(self, invoice_id: int) -> None:
        with self.db.get_session() as session:
            row = session.get(InvoiceModel, invoice_id)
            if row is None:
                raise NotFound(f"Invoice {invoice_id} not found")
            session.query(BillingLineModel).filter(
                BillingLineModel.invoice_id == invoice_id
            ).delete()
            session.delete(row)

    # Billing lines

    def create_billing_line(self, fields: Dict[str, Any]) -> BillingLine:
        now = self.clock()
        with self.db.get_session() as session:
            row = BillingLineModel(**_columns(fields), created_at=now, updated_at=now)
            session.add(row)
            session.flush()
            return BillingLine.model_validate(row)

    def get_billing_line(self, line_id: int) -> Optional[BillingLine]:
        with self.db.get_session() as session:
            row = session.get(BillingLineModel, line_id)
            return BillingLine.model_validate(row) if row else None

    def list_billing_lines(self, invoice_id: int) -> List[BillingLine]:
        with self.db.get_session() as session:
            rows = session.query(BillingLineModel).filter(
                BillingLineModel.invoice_id == invoice_id
            ).order_by(BillingLineModel.line_number, BillingLineModel.id).all()
            return [BillingLine.model_validate(row) for row in rows]

    def update_billing_line(self, line_id: int, updates: Dict[str, Any]) -> BillingLine:
        with self.db.get_session() as session:
            row = session.get(BillingLineModel, line_id)
            if row is None:
                raise NotFound(f"Billing line {line_id} not found")
            _apply(row, updates)
            row.updated_at = self.clock()
            session.flush()
            return BillingLine.model_validate(row)

    def delete_billing_line(self, line_id: int) -> None:
        with self.db.get_session() as session:
            row = session.get(BillingLineModel, line_id)
            if row is None:
                raise NotFound(f"Billing line {line_id} not found")
            session.delete(row)

    # Uploaded files

    def create_uploaded_file(self, fields: Dict[str, Any]) -> UploadedFile:
        with self.db.get_session() as session:
            row = UploadedFileModel(**_columns(fields), created_at=self.clock())
            session.add(row)
            session.flush()
            return UploadedFile.model_validate(row)

    def get_uploaded_file(self, file_id: int) -> Optional[UploadedFile]:
        with self.db.get_session() as session:
            row = session.get(UploadedFileModel, file_id)
            return UploadedFile.model_validate(row) if row else None

    def list_uploaded_files(self, invoice_id: int) -> List[UploadedFile]:
        with self.db.get_session() as session:
            rows = session.query(UploadedFileModel).filter(
                UploadedFileModel.invoice_id == invoice_id
            ).order_by(UploadedFileModel.id).all()
            return [UploadedFile.model_validate(row) for row in rows]

    def update_uploaded_file(self, file_id: int, updates: Dict[str, Any]) -> UploadedFile:
        with self.db.get_session() as session:
            row = session.get(UploadedFileModel, file_id)
            if row is None:
                raise NotFound(f"File {file_id} not found")
            _apply(row, updates)
            session.flush()
            return UploadedFile.model_validate(row)

    # Audit log

    def create_audit_log(self, entry: AuditLogCreate) -> AuditLogEntry:
        with self.db.get_session() as session:
            row = self._audit_row(entry)
            session.add(row)
            session.flush()
            return AuditLogEntry.model_validate(row)

    def list_audit_logs(self, invoice_id: int) -> List[AuditLogEntry]:
        with self.db.get_session() as session:
            rows = session.query(AuditLogModel).filter(
                AuditLogModel.invoice_id == invoice_id
            ).order_by(AuditLogModel.created_at.desc(), AuditLogModel.id.desc()).all()
            return [AuditLogEntry.model_validate(row) for row in rows]

    # CSV exports

    def create_csv_export(self, fields: Dict[str, Any]) -> CsvExportBatch:
        with self.db.get_session() as session:
            row = CsvExportModel(**_columns(fields), created_at=self.clock())
            session.add(row)
            session.flush()
            return CsvExportBatch.model_validate(row)

    def list_csv_exports(self) -> List[CsvExportBatch]:
        with self.db.get_session() as session:
            rows = session.query(CsvExportModel).order_by(
                CsvExportModel.created_at.desc(), CsvExportModel.id.desc()
            ).all()
            return [CsvExportBatch.model_validate(row) for row in rows]

    # VIN reference tables

    def find_vin_reference(self, source: VinSource, vin: str) -> Optional[datetime]:
        model, date_column = VIN_REFERENCE_TABLES[source]
        column = getattr(model, date_column)
        try:
            with self.db.get_session() as session:
                row = session.query(column).filter(model.vin == vin).order_by(column.desc()).first()
        except SQLAlchemyError as e:
            logger.warning(f"VIN reference source {source.value} unavailable: {e}")
            raise LookupUnavailable(f"VIN source {source.value} could not be queried") from e
        return row[0] if row else None

    def add_vin_reference(self, source: VinSource, vin: str, reference_date: datetime) -> None:
        model, date_column = VIN_REFERENCE_TABLES[source]
        with self.db.get_session() as session:
            session.add(model(vin=vin, **{date_column: reference_date}))

    def close(self) -> None:
        self.db.dispose()
