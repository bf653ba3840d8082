"""
Durable storage of the crypto context's parameters and keys

The record is a single JSON document holding base64 blobs of the native
TenSEAL serializations plus version and provenance metadata. It is written
atomically and only ever read in full.
"""
import base64
import binascii
import hashlib
import hmac
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from ..core.exceptions import ParameterInvalid, PersistenceCorrupt, StorageIOError
from .homomorphic_encryption import CryptoContext, SchemeParameters

logger = logging.getLogger(__name__)

RECORD_VERSION = "1.0"

PROTECTION_NONE = "none"
PROTECTION_AES_GCM = "scrypt-aes-256-gcm"

REQUIRED_FIELDS = (
    "publicKey", "secretKey", "params", "timestamp", "version", "scheme", "checksum",
)
CHECKSUM_FIELDS = (
    "publicKey", "secretKey", "params", "timestamp", "version", "scheme", "secretKeyProtection",
)
CHECKSUM_PREFIX = "sha256:"

# scrypt work factor (16 MiB per derivation)
SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1
SALT_SIZE = 16
NONCE_SIZE = 12
TAG_SIZE = 16
AES_KEY_SIZE = 32


@dataclass(frozen=True)
class PersistedContextRecord:
    """Decoded key-material record"""
    params: bytes
    public_key: bytes
    secret_key: bytes
    scheme: SchemeParameters
    timestamp: datetime
    version: str = RECORD_VERSION
    secret_key_protection: str = PROTECTION_NONE

    def __repr__(self) -> str:
        return (f"PersistedContextRecord(version={self.version!r}, "
                f"timestamp={self.timestamp.isoformat()!r}, scheme={self.scheme!r})")


class ContextPersistence:
    """
    Save and load the process-wide key material

    Args:
        path: Location of the JSON key-material file
        passphrase: When set, the secret key blob is sealed with AES-256-GCM
            under a key derived from this passphrase
    """

    def __init__(self, path: Union[str, Path], passphrase: Optional[str] = None):
        self.path = Path(path)
        self.passphrase = passphrase

    def exists(self) -> bool:
        return self.path.is_file()

    def ensure_directory(self):
        """Create the parent directory if absent; concurrent creation is fine"""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(f"Cannot create key directory {self.path.parent}: {e}") from e

    def save(self, context: CryptoContext) -> PersistedContextRecord:
        """
        Serialize parameters and keys and write them atomically

        Returns:
            The record that was written
        """
        secret_key = context.serialize_secret_key()
        protection = PROTECTION_NONE
        stored_secret = secret_key
        if self.passphrase:
            stored_secret = _seal(secret_key, self.passphrase)
            protection = PROTECTION_AES_GCM

        record = PersistedContextRecord(
            params=context.serialize_params(),
            public_key=context.serialize_public_key(),
            secret_key=secret_key,
            scheme=context.parameters,
            timestamp=datetime.now(timezone.utc),
            secret_key_protection=protection,
        )
        document = {
            "publicKey": _b64(record.public_key),
            "secretKey": _b64(stored_secret),
            "params": _b64(record.params),
            "timestamp": record.timestamp.isoformat(),
            "version": record.version,
            "scheme": record.scheme.to_dict(),
            "secretKeyProtection": protection,
        }
        document["checksum"] = record_checksum(document)

        self.ensure_directory()
        self._write_atomic(json.dumps(document, indent=2))
        logger.info(f"FHE parameters saved to {self.path}")
        return record

    def _write_atomic(self, content: str):
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.path)
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise StorageIOError(f"Failed to write key material to {self.path}: {e}") from e

    def load(self) -> Optional[PersistedContextRecord]:
        """
        Read and validate the persisted record

        Returns:
            The record, or None when no file exists at the configured path

        Raises:
            PersistenceCorrupt: the file exists but any field is unusable
            StorageIOError: the file exists but cannot be read
        """
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info(f"No existing key file at {self.path}, new parameters will be created")
            return None
        except UnicodeDecodeError as e:
            raise PersistenceCorrupt(f"Key file {self.path} is not UTF-8 text") from e
        except OSError as e:
            raise StorageIOError(f"Cannot read key file {self.path}: {e}") from e

        try:
            document = json.loads(content)
        except json.JSONDecodeError as e:
            raise PersistenceCorrupt(f"Key file {self.path} is not valid JSON: {e}") from e

        record = self._parse(document)
        logger.info(
            f"FHE parameters loaded from {self.path} "
            f"(saved on {record.timestamp.isoformat()})"
        )
        return record

    def _parse(self, document: Any) -> PersistedContextRecord:
        if not isinstance(document, dict):
            raise PersistenceCorrupt("Key file must contain a JSON object")

        missing = [name for name in REQUIRED_FIELDS if name not in document]
        if missing:
            raise PersistenceCorrupt(f"Key file is missing fields: {', '.join(missing)}")

        expected = record_checksum(document)
        if not isinstance(document["checksum"], str) or not hmac.compare_digest(
            document["checksum"].encode("utf-8"), expected.encode("utf-8")
        ):
            raise PersistenceCorrupt("Key file checksum mismatch: record is truncated or tampered")

        version = document["version"]
        if version != RECORD_VERSION:
            raise PersistenceCorrupt(
                f"Unsupported key file version {version!r}, expected {RECORD_VERSION!r}"
            )

        try:
            timestamp = datetime.fromisoformat(_require_str(document, "timestamp"))
        except ValueError as e:
            raise PersistenceCorrupt(f"Invalid timestamp in key file: {e}") from e

        if not isinstance(document["scheme"], dict):
            raise PersistenceCorrupt("Field 'scheme' must be an object")
        try:
            scheme = SchemeParameters.from_dict(document["scheme"])
        except ParameterInvalid as e:
            raise PersistenceCorrupt(f"Invalid scheme parameters in key file: {e.message}") from e

        protection = document.get("secretKeyProtection", PROTECTION_NONE)
        secret_key = _b64decode(document, "secretKey")
        if protection == PROTECTION_AES_GCM:
            if not self.passphrase:
                raise PersistenceCorrupt("Secret key is sealed but no passphrase is configured")
            secret_key = _unseal(secret_key, self.passphrase)
        elif protection != PROTECTION_NONE:
            raise PersistenceCorrupt(f"Unknown secret key protection {protection!r}")

        return PersistedContextRecord(
            params=_b64decode(document, "params"),
            public_key=_b64decode(document, "publicKey"),
            secret_key=secret_key,
            scheme=scheme,
            timestamp=timestamp,
            version=version,
            secret_key_protection=protection,
        )


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("utf-8")


def _require_str(document: Dict[str, Any], name: str) -> str:
    value = document[name]
    if not isinstance(value, str) or not value:
        raise PersistenceCorrupt(f"Field {name!r} must be a non-empty string")
    return value


def _b64decode(document: Dict[str, Any], name: str) -> bytes:
    value = _require_str(document, name)
    try:
        data = base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise PersistenceCorrupt(f"Field {name!r} is not valid base64: {e}") from e
    if not data:
        raise PersistenceCorrupt(f"Field {name!r} is empty")
    return data


def _derive_key(passphrase: str, salt: bytes) -> bytes:
    """Memory-hard key derivation from a human passphrase"""
    kdf = Scrypt(salt=salt, length=AES_KEY_SIZE, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(passphrase.encode("utf-8"))


def _seal(plaintext: bytes, passphrase: str) -> bytes:
    """AES-256-GCM seal; output is salt | nonce | tag | ciphertext"""
    salt = os.urandom(SALT_SIZE)
    nonce = os.urandom(NONCE_SIZE)
    encryptor = Cipher(algorithms.AES(_derive_key(passphrase, salt)), modes.GCM(nonce)).encryptor()
    ciphertext = encryptor.update(plaintext) + encryptor.finalize()
    return salt + nonce + encryptor.tag + ciphertext


def _unseal(sealed: bytes, passphrase: str) -> bytes:
    header = SALT_SIZE + NONCE_SIZE + TAG_SIZE
    if len(sealed) <= header:
        raise PersistenceCorrupt("Sealed secret key is truncated")
    salt = sealed[:SALT_SIZE]
    nonce = sealed[SALT_SIZE:SALT_SIZE + NONCE_SIZE]
    tag = sealed[SALT_SIZE + NONCE_SIZE:header]
    decryptor = Cipher(
        algorithms.AES(_derive_key(passphrase, salt)), modes.GCM(nonce, tag)
    ).decryptor()
    try:
        return decryptor.update(sealed[header:]) + decryptor.finalize()
    except InvalidTag as e:
        raise PersistenceCorrupt("Secret key cannot be unsealed: wrong passphrase or tampered data") from e


def record_checksum(document: Dict[str, Any]) -> str:
    """SHA-256 over the canonical JSON of every checksummed field"""
    covered = {name: document.get(name) for name in CHECKSUM_FIELDS}
    canonical = json.dumps(covered, sort_keys=True, separators=(",", ":"))
    return CHECKSUM_PREFIX + hashlib.sha256(canonical.encode("utf-8")).hexdigest()
