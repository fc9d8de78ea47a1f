from __future__ import annotations

import logging
import os
from typing import Any, Callable, Optional

from services.file_store import LocalFileStore
from services.identity_hash import is_aadhaar_document, masked_filename
from storage.base import Storage
from storage.records import Document, DocumentCategory, Employee
from utils import ApiError, sanitize_filename


_log = logging.getLogger("documents")

# (source_path, target_path) -> None; writes a redacted copy of an identity scan.
Redactor = Callable[[str, str], None]

DEFAULT_CATEGORIES = [
    {"name": "Identity", "description": "Identity documents like Aadhaar, PAN, Passport"},
    {"name": "Education", "description": "Educational certificates and marksheets"},
    {"name": "Employment", "description": "Previous employment documents"},
    {"name": "Payment", "description": "Bank details and payment-related documents"},
]


def ensure_default_categories(storage: Storage) -> list[DocumentCategory]:
    existing = storage.list_document_categories()
    if existing:
        return existing
    created = [storage.create_document_category(c) for c in DEFAULT_CATEGORIES]
    _log.info("created %s default document categories", len(created))
    return created


def _require_user(storage: Storage, user_id: int) -> Employee:
    user = storage.get_user(user_id)
    if not user:
        raise ApiError("NOT_FOUND", "User not found")
    return user


def can_view(user: Employee, doc: Document) -> bool:
    return user.is_admin or doc.uploaded_by == user.id or bool(doc.is_public)


def can_delete(user: Employee, doc: Document) -> bool:
    return user.is_admin or doc.uploaded_by == user.id


def visible_documents(storage: Storage, *, user_id: int) -> list[Document]:
    user = _require_user(storage, user_id)
    if user.is_admin:
        return storage.list_documents()
    return storage.list_documents_for_user(user.id)


def documents_in_category(storage: Storage, *, user_id: int, category_id: int) -> list[Document]:
    user = _require_user(storage, user_id)
    docs = storage.list_documents_by_category(category_id)
    if user.is_admin:
        return docs
    return [d for d in docs if can_view(user, d)]


def get_visible_document(storage: Storage, *, user_id: int, document_id: int) -> Document:
    user = _require_user(storage, user_id)
    doc = storage.get_document(document_id)
    if not doc:
        raise ApiError("NOT_FOUND", "Document not found")
    if not can_view(user, doc):
        raise ApiError("FORBIDDEN", "Not allowed to view this document")
    return doc


def upload_document(
    storage: Storage,
    files: LocalFileStore,
    *,
    cfg: Any,
    uploader_id: int,
    name: str,
    file_name: str,
    data: bytes,
    mime_type: str = "",
    category_id: Optional[int] = None,
    is_public: bool = False,
    metadata: Optional[dict[str, Any]] = None,
    redactor: Optional[Redactor] = None,
) -> Document:
    _require_user(storage, uploader_id)

    display_name = str(name or "").strip() or sanitize_filename(file_name)
    size = int(len(data or b""))
    if size <= 0:
        raise ApiError("BAD_REQUEST", "Empty file")
    max_mb = int(getattr(cfg, "MAX_DOC_UPLOAD_MB", 20) or 20)
    if size > max_mb * 1024 * 1024:
        raise ApiError("BAD_REQUEST", f"File too large (max {max_mb} MB)")
    if category_id is not None and storage.get_document_category(category_id) is None:
        raise ApiError("BAD_REQUEST", "Unknown document category")

    stored = files.save(file_name, data)
    meta = dict(metadata or {})

    if redactor is not None and is_aadhaar_document(display_name):
        masked = masked_filename(stored)
        try:
            redactor(files.path(stored), files.path(masked))
        except Exception:
            files.delete(stored)
            if files.exists(masked):
                files.delete(masked)
            _log.exception("redaction failed for %s", stored)
            raise
        meta["maskedVersion"] = masked

    try:
        doc = storage.create_document(
            {
                "name": display_name,
                "filename": stored,
                "filesize": size,
                "mime_type": str(mime_type or "").strip() or "application/octet-stream",
                "category_id": category_id,
                "uploaded_by": uploader_id,
                "is_public": bool(is_public),
                "metadata": meta,
            }
        )
    except Exception:
        # Metadata insert failed; drop the orphaned bytes.
        files.delete(stored)
        if "maskedVersion" in meta:
            files.delete(meta["maskedVersion"])
        raise

    _log.info("document=%s stored by user=%s size=%s masked=%s", doc.id, uploader_id, size, "maskedVersion" in meta)
    return doc


def delete_document(storage: Storage, files: LocalFileStore, *, user_id: int, document_id: int) -> None:
    user = _require_user(storage, user_id)
    doc = storage.get_document(document_id)
    if not doc:
        raise ApiError("NOT_FOUND", "Document not found")
    if not can_delete(user, doc):
        raise ApiError("FORBIDDEN", "Not allowed to delete this document")

    storage.delete_document(doc.id)
    for stored in (doc.filename, (doc.metadata or {}).get("maskedVersion")):
        if stored and os.path.isfile(files.path(stored)):
            files.delete(stored)
    _log.info("document=%s deleted by user=%s", doc.id, user.id)
