"""
Uploaded document metadata (the file bytes live with the storage provider)
"""
import logging
from typing import Any, Dict, List, Union

from pydantic import ValidationError

from invoice_tracker.exceptions import NotFound, ValidationFailed
from invoice_tracker.models.schemas import UploadedFile, UploadedFileCreate
from invoice_tracker.storage import Storage
from .invoice_store import validation_message

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = ("image/jpeg", "image/jpg", "image/png", "application/pdf")
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB


class FileService:

    def __init__(self, storage: Storage):
        self.storage = storage

    def register(self, payload: Union[UploadedFileCreate, Dict[str, Any]]) -> UploadedFile:
        if not isinstance(payload, UploadedFileCreate):
            try:
                payload = UploadedFileCreate.model_validate(payload)
            except ValidationError as e:
                raise ValidationFailed(f"Invalid file: {validation_message(e)}") from e

        if payload.mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationFailed("Invalid file type. Only JPEG, PNG, and PDF files are allowed.")
        if payload.file_size > MAX_FILE_SIZE:
            raise ValidationFailed(f"File too large: {payload.file_size} bytes (limit {MAX_FILE_SIZE})")

        uploaded = self.storage.create_uploaded_file(payload.model_dump())
        logger.info(f"Registered file {uploaded.id} ({uploaded.original_name}, {uploaded.mime_type})")
        return uploaded

    def get(self, file_id: int) -> UploadedFile:
        uploaded = self.storage.get_uploaded_file(file_id)
        if uploaded is None:
            raise NotFound(f"File {file_id} not found")
        return uploaded

    def list_for_invoice(self, invoice_id: int) -> List[UploadedFile]:
        return self.storage.list_uploaded_files(invoice_id)

    def attach(self, file_id: int, invoice_id: int) -> UploadedFile:
        self.get(file_id)
        if self.storage.get_invoice(invoice_id) is None:
            raise NotFound(f"Invoice {invoice_id} not found")
        return self.storage.update_uploaded_file(file_id, {"invoice_id": invoice_id})
