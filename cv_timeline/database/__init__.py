"""
Database Package.

- mongodb_manager: MongoDB client ownership
- document_validator: Storage-safety validation of documents
- timeline_storage: Tiered timeline persistence on job documents
"""

from cv_timeline.database.document_validator import DocumentValidationResult, DocumentValidator
from cv_timeline.database.mongodb_manager import MongoDBManager
from cv_timeline.database.timeline_storage import TimelineStorage, TimelineStorageError

__all__ = [
    "DocumentValidationResult",
    "DocumentValidator",
    "MongoDBManager",
    "TimelineStorage",
    "TimelineStorageError",
]
