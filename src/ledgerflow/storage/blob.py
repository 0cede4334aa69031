"""Document blob storage."""
import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from ledgerflow.utils.exceptions import StorageError
from ledgerflow.utils.logger import get_logger

logger = get_logger()


@dataclass
class BlobReference:
    document_id: str
    encryption_key_id: Optional[str] = None


@dataclass
class DeleteResult:
    deleted_at_source: bool


class BlobStorage(Protocol):
    """Where uploaded statement bytes live."""

    def upload(self, content: bytes, name: str) -> BlobReference:
        ...

    def download(self, document_id: str, encryption_key_id: Optional[str] = None) -> bytes:
        ...

    def delete(self, document_id: str, encryption_key_id: Optional[str] = None) -> DeleteResult:
        ...


class LocalBlobStorage:
    """Stores statement bytes on disk, addressed by their SHA256 hash."""

    def __init__(self, root: Path):
        self.root = Path(root)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create blob directory {self.root}: {e}")

    @staticmethod
    def calculate_hash(content: bytes) -> str:
        """Calculate SHA256 hash of content."""
        return hashlib.sha256(content).hexdigest()

    def _blob_path(self, document_id: str) -> Path:
        return self.root / f"{document_id}.bin"

    def _meta_path(self, document_id: str) -> Path:
        return self.root / f"{document_id}.json"

    def upload(self, content: bytes, name: str) -> BlobReference:
        document_id = self.calculate_hash(content)
        try:
            self._blob_path(document_id).write_bytes(content)
            self._meta_path(document_id).write_text(
                json.dumps({"name": name, "size": len(content)}), encoding="utf-8"
            )
        except OSError as e:
            raise StorageError(f"Failed to store {name}: {e}")

        logger.info(f"Stored {name} as {document_id[:12]} ({len(content)} bytes)")
        return BlobReference(document_id=document_id)

    def download(self, document_id: str, encryption_key_id: Optional[str] = None) -> bytes:
        """
        Raises:
            StorageError: If the blob is missing or unreadable
        """
        try:
            return self._blob_path(document_id).read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to download document {document_id}: {e}")

    def delete(self, document_id: str, encryption_key_id: Optional[str] = None) -> DeleteResult:
        blob = self._blob_path(document_id)
        if not blob.exists():
            return DeleteResult(deleted_at_source=False)
        try:
            blob.unlink()
            self._meta_path(document_id).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete document {document_id}: {e}")
        return DeleteResult(deleted_at_source=True)
