"""
Homomorphic equality test between a stored ciphertext and a plaintext query
"""
import logging

from .value_codec import ValueCodec

logger = logging.getLogger(__name__)


class EqualityEngine:
    """
    Decides ``stored == query`` by decrypting only their encrypted difference

    The query is encrypted under the same public key, subtracted from the
    stored ciphertext and the difference is decrypted: the values are equal
    iff every slot of the difference is zero. Confidentiality holds against
    observers of ciphertext traffic, not against this process, which holds
    the secret key.
    """

    def __init__(self, codec: ValueCodec):
        self.codec = codec
        self.context = codec.context

    def equals(self, stored_ciphertext: bytes, query_value: int) -> bool:
        query = self.codec.encrypt_vector(query_value)
        stored = self.codec.load(stored_ciphertext)
        difference = self.context.subtract(stored, query)
        return all(slot == 0 for slot in self.context.decrypt(difference))
