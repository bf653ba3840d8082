"""
Encrypted value model
"""
from sqlalchemy import Column, Integer, LargeBinary

from ..core.database import Base
from .base import CreatedAtMixin, UUIDMixin


class EncryptedValue(UUIDMixin, CreatedAtMixin, Base):
    """One stored ciphertext; the plaintext is never persisted"""
    __tablename__ = "encrypted_values"

    # Ciphertext envelope produced by the value codec
    encrypted_value = Column(LargeBinary, nullable=False)
    value_size_bytes = Column(Integer, nullable=False)
