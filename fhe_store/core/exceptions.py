"""
Error taxonomy for the encrypted value store

Every error carries a short machine-readable ``kind`` so the request layer
can translate it without inspecting messages.
"""


class EncryptedStoreError(Exception):
    """Base class for all store errors"""

    kind = "internal_error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__doc__ or self.kind


class ParameterInvalid(EncryptedStoreError):
    """Scheme parameters are inconsistent"""

    kind = "parameter_invalid"


class PersistenceCorrupt(EncryptedStoreError):
    """Persisted key material is unreadable or partial"""

    kind = "persistence_corrupt"


class KeyMismatch(EncryptedStoreError):
    """Ciphertext was produced under different parameters or keys"""

    kind = "key_mismatch"


CiphertextIncompatible = KeyMismatch


class EncodeRangeError(EncryptedStoreError):
    """Integer is outside the representable plaintext range"""

    kind = "encode_range_error"


class DecodeFailure(EncryptedStoreError):
    """Ciphertext bytes are malformed"""

    kind = "decode_failure"


class StorageIOError(EncryptedStoreError):
    """Underlying persistence or document-store I/O failed"""

    kind = "storage_io"


class SearchCancelled(EncryptedStoreError):
    """Search was aborted by the caller or a timeout"""

    kind = "search_cancelled"


class ContextNotReady(EncryptedStoreError):
    """Crypto context has not been acquired yet"""

    kind = "context_not_ready"


class RecordNotFound(EncryptedStoreError):
    """No stored record has the requested identifier"""

    kind = "not_found"
