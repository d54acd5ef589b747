"""
Invoice Scan Core - Source Package.

Turns OCR text from scanned invoices into confidence-scored fields, and
protects stored records with content hashes and an audit trail.

Modules:
    - ocr_engine: Text recognizer lifecycle and Tesseract backend
    - extraction: Rule cascades, confidence tiers and line items
    - integrity: Canonical hashing and tamper verification
    - audit: Bounded, append-only audit trail
    - storage: JSON key-value storage (memory, SQLite)
    - record_store: Sealed CRUD with audit entries
    - processor: Image → text → fields pipeline

Architecture:
    Image → TextRecognizer → FieldExtractor → ExtractionResult

    Record → seal → storage
               ↓
           AuditLog
"""

__version__ = "1.0.0"

__all__ = [
    'ocr_engine',
    'extraction',
    'integrity',
    'audit',
    'storage',
    'record_store',
    'processor',
    'utils',
]
