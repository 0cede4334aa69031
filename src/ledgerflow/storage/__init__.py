"""Blob storage and summary persistence."""
from .blob import BlobReference, BlobStorage, DeleteResult, LocalBlobStorage
from .summary_store import DocumentRecord, SummaryStore

__all__ = [
    "BlobReference",
    "BlobStorage",
    "DeleteResult",
    "LocalBlobStorage",
    "DocumentRecord",
    "SummaryStore",
]
