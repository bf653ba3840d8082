"""
Conversion between domain integers and stored ciphertext buffers
"""
import logging

import tenseal as ts

from ..core.exceptions import DecodeFailure, EncodeRangeError, KeyMismatch
from .homomorphic_encryption import FINGERPRINT_SIZE, CryptoContext

logger = logging.getLogger(__name__)

ENVELOPE_MAGIC = b"FHE1"
HEADER_SIZE = len(ENVELOPE_MAGIC) + FINGERPRINT_SIZE

# values travel through a signed 32-bit batch container
INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1


class ValueCodec:
    """
    Encrypts integers into opaque buffers and back

    A buffer is ``magic | key fingerprint | serialized BFV vector``; the
    fingerprint ties every ciphertext to the key pair that produced it.
    """

    def __init__(self, context: CryptoContext):
        self.context = context
        bound = context.parameters.max_plain_value
        self.min_value = max(INT32_MIN, -bound)
        self.max_value = min(INT32_MAX, bound)

    def check_range(self, value: int) -> int:
        """Reject values that would wrap around the plaintext modulus"""
        if isinstance(value, bool) or not isinstance(value, int):
            raise EncodeRangeError(f"Expected an integer, got {type(value).__name__}")
        if value < self.min_value or value > self.max_value:
            raise EncodeRangeError(
                f"Value {value} outside representable range [{self.min_value}, {self.max_value}]"
            )
        return value

    def encrypt_vector(self, value: int) -> ts.BFVVector:
        """Encrypt one in-range integer into slot 0"""
        return self.context.encrypt([self.check_range(value)])

    def encode(self, value: int) -> bytes:
        """Encrypt ``value`` and serialize it for storage"""
        payload = self.encrypt_vector(value).serialize()
        return ENVELOPE_MAGIC + self.context.fingerprint + payload

    def load(self, data: bytes) -> ts.BFVVector:
        """Unwrap a stored buffer into a ciphertext bound to the active context"""
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise DecodeFailure(f"Ciphertext must be bytes, got {type(data).__name__}")
        data = bytes(data)
        if len(data) <= HEADER_SIZE or not data.startswith(ENVELOPE_MAGIC):
            raise DecodeFailure("Buffer is not an encrypted value envelope")
        fingerprint = data[len(ENVELOPE_MAGIC):HEADER_SIZE]
        if fingerprint != self.context.fingerprint:
            raise KeyMismatch(
                f"Ciphertext was produced under key {fingerprint.hex()}, "
                f"active key is {self.context.fingerprint.hex()}"
            )
        return self.context.load_vector(data[HEADER_SIZE:])

    def decode(self, data: bytes) -> int:
        """Decrypt a stored buffer back into its integer"""
        slots = self.context.decrypt(self.load(data))
        if not slots:
            raise DecodeFailure("Ciphertext decrypted to an empty vector")
        return slots[0]
