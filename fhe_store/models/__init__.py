"""
Database models for the encrypted value store
"""
from .encrypted_value import EncryptedValue

# Import all models to ensure they're registered with SQLAlchemy
__all__ = [
    "EncryptedValue",
]
