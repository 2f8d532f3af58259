"""
SQLAlchemy ORM Models for persistence
"""
from datetime import datetime

from sqlalchemy import Boolean, Column, Integer, String, Numeric, Date, DateTime, Text, JSON, ForeignKey
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String, unique=True, nullable=False)
    password = Column(String, nullable=False)
    role = Column(String, nullable=False, default="user")  # user, admin
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class VendorModel(Base):
    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vendor_number = Column(String, unique=True, nullable=False, index=True)
    vendor_name = Column(String, nullable=False, index=True)
    address = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    zip_code = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    gl_account_nbr = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class InvoiceModel(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    invoice_number = Column(String, nullable=False, index=True)
    vendor_name = Column(String, nullable=False, index=True)
    vendor_number = Column(String, nullable=False)
    invoice_date = Column(Date, nullable=False)
    invoice_amount = Column(Numeric(10, 2), nullable=False)
    due_date = Column(Date, nullable=False)
    vin = Column(String, nullable=False, index=True)  # last 6-8 digits
    invoice_type = Column(String, nullable=False)  # Charge, Credit Memo
    description = Column(Text, nullable=True)
    gl_code = Column(String, nullable=True)
    status = Column(String, nullable=False, default="pending_entry", index=True)
    uploaded_by = Column(Integer, nullable=False)
    entered_by = Column(Integer, nullable=True)
    approved_by = Column(Integer, nullable=True)
    finalized_by = Column(Integer, nullable=True)
    vin_lookup_result = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class BillingLineModel(Base):
    __tablename__ = "billing_lines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    line_number = Column(Integer, nullable=False)
    description = Column(Text, nullable=False)
    quantity = Column(Numeric(10, 2), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    vin = Column(String, nullable=True)
    gl_code = Column(String, nullable=True)
    vin_lookup_result = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class UploadedFileModel(Base):
    __tablename__ = "uploaded_files"

    id = Column(Integer, primary_key=True, autoincrement=True)
    filename = Column(String, nullable=False)
    original_name = Column(String, nullable=False)
    mime_type = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    file_path = Column(String, nullable=False)
    invoice_id = Column(Integer, nullable=True, index=True)
    uploaded_by = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class AuditLogModel(Base):
    __tablename__ = "audit_log"

    # Outlives the invoice it describes, so no foreign key
    id = Column(Integer, primary_key=True, autoincrement=True)
    invoice_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, nullable=False)
    action = Column(String, nullable=False)  # created, updated, status_changed_to_*, ...
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class CsvExportModel(Base):
    __tablename__ = "csv_exports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    filename = Column(String, nullable=False)
    export_date = Column(DateTime, nullable=False)
    invoice_ids = Column(JSON, nullable=False)
    exported_by = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


# VIN reference tables

class WholesaleInventoryModel(Base):
    __tablename__ = "wholesale_inventory"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vin = Column(String, nullable=False, index=True)
    last_updated = Column(DateTime, nullable=False)


class RetailInventoryModel(Base):
    __tablename__ = "retail_inventory"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vin = Column(String, nullable=False, index=True)
    last_updated = Column(DateTime, nullable=False)


class SoldInventoryModel(Base):
    __tablename__ = "sold_inventory"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vin = Column(String, nullable=False, index=True)
    sold_date = Column(DateTime, nullable=False)


class CurrentAccountModel(Base):
    __tablename__ = "current_account"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vin = Column(String, nullable=False, index=True)
    last_updated = Column(DateTime, nullable=False)
