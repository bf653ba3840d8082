"""
Document store for encrypted records backed by SQLAlchemy
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import StorageIOError
from ..models.encrypted_value import EncryptedValue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncryptedRecord:
    """Opaque ciphertext buffer with its store-assigned identifier"""
    id: str
    ciphertext: bytes


def _parse_id(record_id: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(record_id))
    except ValueError:
        return None


class EncryptedRecordStore:
    """
    insert / find_by_id / list_all over the ``encrypted_values`` table

    Every call uses its own session so the store can be shared across
    request threads. A write is committed before ``insert`` returns.
    """

    def __init__(self, session_factory: Callable[[], Session], batch_size: int = 500):
        self.session_factory = session_factory
        self.batch_size = batch_size

    def insert(self, ciphertext: bytes) -> str:
        row = EncryptedValue(encrypted_value=ciphertext, value_size_bytes=len(ciphertext))
        try:
            with self.session_factory() as db:
                db.add(row)
                db.commit()
                record_id = str(row.id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert encrypted value: {e}")
            raise StorageIOError(f"Failed to insert encrypted value: {e}") from e
        logger.debug(f"Stored encrypted value {record_id} ({len(ciphertext)} bytes)")
        return record_id

    def find_by_id(self, record_id: str) -> Optional[EncryptedRecord]:
        key = _parse_id(record_id)
        if key is None:
            return None
        try:
            with self.session_factory() as db:
                row = db.get(EncryptedValue, key)
                if row is None:
                    return None
                return EncryptedRecord(id=str(row.id), ciphertext=bytes(row.encrypted_value))
        except SQLAlchemyError as e:
            raise StorageIOError(f"Failed to read encrypted value {record_id}: {e}") from e

    def list_all(self) -> List[EncryptedRecord]:
        return list(self.iter_all())

    def iter_all(self) -> Iterator[EncryptedRecord]:
        """Stream every record in insertion order from one session snapshot"""
        statement = (
            select(EncryptedValue.id, EncryptedValue.encrypted_value)
            .order_by(EncryptedValue.created_at, EncryptedValue.id)
            .execution_options(yield_per=self.batch_size)
        )
        try:
            with self.session_factory() as db:
                for row_id, ciphertext in db.execute(statement):
                    yield EncryptedRecord(id=str(row_id), ciphertext=bytes(ciphertext))
        except SQLAlchemyError as e:
            raise StorageIOError(f"Failed to scan encrypted values: {e}") from e

    def count(self) -> int:
        try:
            with self.session_factory() as db:
                return db.scalar(select(func.count()).select_from(EncryptedValue)) or 0
        except SQLAlchemyError as e:
            raise StorageIOError(f"Failed to count encrypted values: {e}") from e
