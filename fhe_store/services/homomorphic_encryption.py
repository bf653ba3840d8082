"""
Homomorphic Encryption primitives using TenSEAL
Scheme parameters and the process-wide BFV crypto context
"""
import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import sympy
import tenseal as ts

from ..core.exceptions import DecodeFailure, ParameterInvalid

logger = logging.getLogger(__name__)

SCHEME_BFV = "bfv"

# Maximum total coefficient modulus bits per (security level, degree),
# from the homomorphic encryption security standard
MAX_COEFF_MODULUS_BITS: Dict[int, Dict[int, int]] = {
    128: {1024: 27, 2048: 54, 4096: 109, 8192: 218, 16384: 438, 32768: 881},
    192: {1024: 19, 2048: 37, 4096: 75, 8192: 152, 16384: 305, 32768: 611},
    256: {1024: 14, 2048: 29, 4096: 58, 8192: 118, 16384: 237, 32768: 476},
}

FINGERPRINT_SIZE = 16
DEFAULT_PLAIN_MODULUS_BITS = 20

# exception types the scheme bindings raise for malformed or mismatched input
SCHEME_ERRORS = (ValueError, RuntimeError, TypeError, IndexError)


def batching_plain_modulus(poly_modulus_degree: int, bit_size: int) -> int:
    """
    Find the largest prime of exactly ``bit_size`` bits that supports batching,
    i.e. p = 1 (mod 2 * poly_modulus_degree)

    Args:
        poly_modulus_degree: Polynomial modulus degree (power of 2)
        bit_size: Bit length of the plaintext modulus

    Returns:
        Batching-compatible prime plaintext modulus
    """
    if bit_size < 2 or bit_size > 60:
        raise ParameterInvalid(f"Plain modulus bit size must be in [2, 60], got {bit_size}")
    step = 2 * poly_modulus_degree
    lower = 1 << (bit_size - 1)
    # largest candidate below 2**bit_size congruent to 1 mod step
    candidate = ((1 << bit_size) - 1) // step * step + 1
    while candidate >= lower:
        if sympy.isprime(candidate):
            return candidate
        candidate -= step
    raise ParameterInvalid(
        f"No {bit_size}-bit batching prime exists for degree {poly_modulus_degree}"
    )


@dataclass(frozen=True)
class SchemeParameters:
    """Immutable, validated BFV parameter set"""
    poly_modulus_degree: int = 4096
    coeff_mod_bit_sizes: Tuple[int, ...] = (36, 36, 37)
    plain_modulus: Optional[int] = None
    security_level: int = 128
    scheme: str = SCHEME_BFV

    def __post_init__(self):
        # normalise lists coming from JSON/config into a hashable tuple
        object.__setattr__(self, "coeff_mod_bit_sizes", tuple(self.coeff_mod_bit_sizes))
        if self.plain_modulus is None:
            if self.poly_modulus_degree not in MAX_COEFF_MODULUS_BITS[128]:
                raise ParameterInvalid(f"Unsupported poly modulus degree {self.poly_modulus_degree}")
            object.__setattr__(
                self, "plain_modulus",
                batching_plain_modulus(self.poly_modulus_degree, DEFAULT_PLAIN_MODULUS_BITS),
            )
        self.validate()

    @classmethod
    def with_batching(cls,
                      poly_modulus_degree: int = 4096,
                      coeff_mod_bit_sizes: Sequence[int] = (36, 36, 37),
                      plain_modulus_bits: int = 20,
                      security_level: int = 128) -> "SchemeParameters":
        """Build parameters whose plaintext modulus is derived for batching"""
        if poly_modulus_degree not in MAX_COEFF_MODULUS_BITS[128]:
            raise ParameterInvalid(f"Unsupported poly modulus degree {poly_modulus_degree}")
        return cls(
            poly_modulus_degree=poly_modulus_degree,
            coeff_mod_bit_sizes=tuple(coeff_mod_bit_sizes),
            plain_modulus=batching_plain_modulus(poly_modulus_degree, plain_modulus_bits),
            security_level=security_level,
        )

    def validate(self):
        """Raise ParameterInvalid unless the set is mutually consistent"""
        if self.scheme != SCHEME_BFV:
            raise ParameterInvalid(f"Unsupported scheme {self.scheme!r}")
        limits = MAX_COEFF_MODULUS_BITS.get(self.security_level)
        if limits is None:
            raise ParameterInvalid(f"Unsupported security level {self.security_level}")
        if self.poly_modulus_degree not in limits:
            raise ParameterInvalid(
                f"Poly modulus degree must be a power of two in {sorted(limits)}, "
                f"got {self.poly_modulus_degree}"
            )
        if not self.coeff_mod_bit_sizes:
            raise ParameterInvalid("Coefficient modulus chain is empty")
        for bits in self.coeff_mod_bit_sizes:
            if not isinstance(bits, int) or bits < 2 or bits > 60:
                raise ParameterInvalid(f"Coefficient modulus bit size {bits!r} outside [2, 60]")
        total_bits = sum(self.coeff_mod_bit_sizes)
        if total_bits > limits[self.poly_modulus_degree]:
            raise ParameterInvalid(
                f"Coefficient modulus of {total_bits} bits exceeds the "
                f"{limits[self.poly_modulus_degree]}-bit maximum for degree "
                f"{self.poly_modulus_degree} at {self.security_level}-bit security"
            )
        t = self.plain_modulus
        if not sympy.isprime(t) or t % (2 * self.poly_modulus_degree) != 1:
            raise ParameterInvalid(
                f"Plain modulus {t} is not a batching prime for degree {self.poly_modulus_degree}"
            )
        if t.bit_length() >= min(self.coeff_mod_bit_sizes):
            raise ParameterInvalid("Plain modulus must be smaller than every coefficient modulus")

    @property
    def max_plain_value(self) -> int:
        """Largest signed value a slot can hold"""
        return (self.plain_modulus - 1) // 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scheme": self.scheme,
            "poly_modulus_degree": self.poly_modulus_degree,
            "coeff_mod_bit_sizes": list(self.coeff_mod_bit_sizes),
            "plain_modulus": self.plain_modulus,
            "security_level": self.security_level,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchemeParameters":
        try:
            return cls(
                scheme=data["scheme"],
                poly_modulus_degree=int(data["poly_modulus_degree"]),
                coeff_mod_bit_sizes=tuple(int(b) for b in data["coeff_mod_bit_sizes"]),
                plain_modulus=int(data["plain_modulus"]),
                security_level=int(data["security_level"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ParameterInvalid(f"Malformed scheme parameters: {e}") from e


@dataclass(frozen=True)
class CryptoContext:
    """
    Process-wide BFV capability handle

    Holds the private TenSEAL context (public + secret key) and a public-only
    copy used for encryption. Read-only once built; consumers only call its
    encrypt/load/decrypt/subtract operations.
    """
    parameters: SchemeParameters
    _private: ts.Context = field(repr=False)
    _public: ts.Context = field(repr=False)
    _public_bytes: bytes = field(repr=False)
    fingerprint: bytes = field(default=b"")

    @classmethod
    def generate(cls, parameters: SchemeParameters) -> "CryptoContext":
        """Create a context and a fresh key pair for the given parameters"""
        try:
            context = _new_context(parameters)
        except SCHEME_ERRORS as e:
            raise ParameterInvalid(f"Scheme rejected parameters: {e}") from e

        logger.info(
            f"Generated BFV context with poly_degree={parameters.poly_modulus_degree}, "
            f"coeff_mod_bits={list(parameters.coeff_mod_bit_sizes)}, "
            f"plain_modulus={parameters.plain_modulus}"
        )
        return cls._from_private(parameters, context)

    @classmethod
    def from_serialized(cls,
                        parameters: SchemeParameters,
                        params_bytes: bytes,
                        public_key_bytes: bytes,
                        secret_key_bytes: bytes) -> "CryptoContext":
        """
        Rebuild a context from its native serialized parts

        The params blob must be exactly what ``parameters`` produce, and both
        key blobs must carry those same parameters.

        Raises:
            ParameterInvalid: the blobs and ``parameters`` disagree
            ValueError/RuntimeError: a blob is corrupt (raised by the scheme)
        """
        ts.context_from(params_bytes)
        if _serialize(_new_context(parameters)) != params_bytes:
            raise ParameterInvalid(
                f"Serialized parameters do not match the declared set {parameters.to_dict()}"
            )

        public = ts.context_from(public_key_bytes)
        private = ts.context_from(secret_key_bytes)
        if not private.has_secret_key():
            raise ValueError("secret key blob carries no secret key")
        if not public.has_public_key():
            raise ValueError("public key blob carries no public key")
        for name, context in (("public key", public), ("secret key", private)):
            if _serialize(context) != params_bytes:
                raise ParameterInvalid(f"The {name} was generated under different parameters")

        return cls(
            parameters=parameters,
            _private=private,
            _public=public,
            _public_bytes=public_key_bytes,
            fingerprint=public_fingerprint(public_key_bytes),
        )

    @classmethod
    def _from_private(cls, parameters: SchemeParameters, context: ts.Context) -> "CryptoContext":
        public_bytes = _serialize(context, public_key=True)
        return cls(
            parameters=parameters,
            _private=context,
            _public=ts.context_from(public_bytes),
            _public_bytes=public_bytes,
            fingerprint=public_fingerprint(public_bytes),
        )

    # ---- serialization -------------------------------------------------

    def serialize_params(self) -> bytes:
        """Encryption parameters only, no keys"""
        return _serialize(self._private)

    def serialize_public_key(self) -> bytes:
        # the exact bytes the fingerprint was computed from
        return self._public_bytes

    def serialize_secret_key(self) -> bytes:
        return _serialize(self._private, public_key=True, secret_key=True)

    # ---- operations ----------------------------------------------------

    def encrypt(self, values: List[int]) -> ts.BFVVector:
        """Batch-encode and encrypt under the public key"""
        return ts.bfv_vector(self._public, values)

    def load_vector(self, data: bytes) -> ts.BFVVector:
        """Deserialize ciphertext bytes and bind them to the private context"""
        try:
            return ts.bfv_vector_from(self._private, data)
        except SCHEME_ERRORS as e:
            raise DecodeFailure(f"Ciphertext cannot be parsed for the active parameters: {e}") from e

    def decrypt(self, vector: ts.BFVVector) -> List[int]:
        """Decrypt with the secret key and decode to signed integers"""
        vector.link_context(self._private)
        return [int(v) for v in vector.decrypt()]

    def subtract(self, left: ts.BFVVector, right: ts.BFVVector) -> ts.BFVVector:
        """Homomorphic left - right"""
        right.link_context(self._private)
        left.link_context(self._private)
        return left - right

    def round_trip_check(self, value: int = 1) -> bool:
        """Encrypt with the public key and check the secret key recovers it"""
        data = self.encrypt([value]).serialize()
        return self.decrypt(self.load_vector(data))[:1] == [value]


def _serialize(context: ts.Context, public_key: bool = False, secret_key: bool = False) -> bytes:
    return context.serialize(
        save_public_key=public_key,
        save_secret_key=secret_key,
        save_galois_keys=False,
        save_relin_keys=False,
    )


def public_fingerprint(public_key_bytes: bytes) -> bytes:
    """Short identifier of a key pair, derived from its public key"""
    return hashlib.sha256(public_key_bytes).digest()[:FINGERPRINT_SIZE]


def _new_context(parameters: SchemeParameters) -> ts.Context:
    return ts.context(
        ts.SCHEME_TYPE.BFV,
        poly_modulus_degree=parameters.poly_modulus_degree,
        plain_modulus=parameters.plain_modulus,
        coeff_mod_bit_sizes=list(parameters.coeff_mod_bit_sizes),
    )
