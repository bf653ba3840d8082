"""
Cryptographic and storage services for the encrypted value store
"""
from dataclasses import dataclass

from .context_lifecycle import ContextLifecycleManager, LifecycleState
from .context_persistence import ContextPersistence, PersistedContextRecord
from .document_store import EncryptedRecord, EncryptedRecordStore
from .encrypted_search_service import (
    CancellationToken, EncryptedSearchService, SearchOutcome, SkippedRecord
)
from .equality import EqualityEngine
from .homomorphic_encryption import CryptoContext, SchemeParameters
from .value_codec import ValueCodec


@dataclass
class StoreServices:
    """Everything the request layer needs, built once the context is ready"""
    lifecycle: ContextLifecycleManager
    store: EncryptedRecordStore
    codec: ValueCodec
    equality: EqualityEngine
    search: EncryptedSearchService
    search_timeout: float

    @classmethod
    def build(cls,
              lifecycle: ContextLifecycleManager,
              store: EncryptedRecordStore,
              search_timeout: float) -> "StoreServices":
        codec = ValueCodec(lifecycle.acquire())
        equality = EqualityEngine(codec)
        return cls(
            lifecycle=lifecycle,
            store=store,
            codec=codec,
            equality=equality,
            search=EncryptedSearchService(equality),
            search_timeout=search_timeout,
        )


__all__ = [
    "CancellationToken",
    "ContextLifecycleManager",
    "ContextPersistence",
    "CryptoContext",
    "EncryptedRecord",
    "EncryptedRecordStore",
    "EncryptedSearchService",
    "EqualityEngine",
    "LifecycleState",
    "PersistedContextRecord",
    "SchemeParameters",
    "SearchOutcome",
    "SkippedRecord",
    "StoreServices",
    "ValueCodec",
]
