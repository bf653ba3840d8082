"""
Crypto context lifecycle: restore from persisted key material or create it once
"""
import enum
import logging
import threading
from typing import Any, Dict, Optional

from ..core.exceptions import (
    ContextNotReady, DecodeFailure, KeyMismatch, ParameterInvalid, PersistenceCorrupt
)
from .context_persistence import ContextPersistence, PersistedContextRecord
from .homomorphic_encryption import SCHEME_ERRORS, CryptoContext, SchemeParameters

logger = logging.getLogger(__name__)

ROUND_TRIP_VALUE = 7


class LifecycleState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


class ContextLifecycleManager:
    """
    Owns the process-wide CryptoContext

    ``acquire()`` is the only transition from UNINITIALIZED to READY. It is
    idempotent and serialized by a lock so concurrent startup paths run a
    single restore or generation attempt.
    """

    def __init__(self,
                 persistence: ContextPersistence,
                 default_parameters: Optional[SchemeParameters] = None):
        self.persistence = persistence
        self.default_parameters = default_parameters or SchemeParameters()
        self._lock = threading.Lock()
        self._context: Optional[CryptoContext] = None
        self._restored: Optional[bool] = None

    @property
    def state(self) -> LifecycleState:
        return LifecycleState.READY if self._context is not None else LifecycleState.UNINITIALIZED

    @property
    def context(self) -> CryptoContext:
        if self._context is None:
            raise ContextNotReady("Crypto context has not been acquired")
        return self._context

    def acquire(self) -> CryptoContext:
        """Return the process-wide context, restoring or generating it on first call"""
        if self._context is not None:
            return self._context

        with self._lock:
            if self._context is not None:
                return self._context

            record = self.persistence.load()
            if record is not None:
                context = self._restore(record)
                self._restored = True
            else:
                context = self._generate()
                self._restored = False

            self._context = context
            return context

    def _restore(self, record: PersistedContextRecord) -> CryptoContext:
        # an existing but unusable record is fatal: regenerating would orphan
        # every ciphertext stored under the old keys
        try:
            context = CryptoContext.from_serialized(
                record.scheme, record.params, record.public_key, record.secret_key
            )
        except ParameterInvalid as e:
            raise PersistenceCorrupt(f"Persisted parameters and keys disagree: {e.message}") from e
        except SCHEME_ERRORS as e:
            raise PersistenceCorrupt(f"Persisted key material cannot be reconstructed: {e}") from e

        try:
            consistent = context.round_trip_check(ROUND_TRIP_VALUE)
        except (DecodeFailure,) + SCHEME_ERRORS as e:
            raise KeyMismatch(f"Persisted keys do not match their parameters: {e}") from e
        if not consistent:
            raise KeyMismatch("Persisted public and secret keys do not belong together")

        if record.scheme != self.default_parameters:
            logger.warning(
                f"Configured scheme parameters {self.default_parameters.to_dict()} differ from "
                f"persisted ones {record.scheme.to_dict()}; keeping the persisted parameters"
            )

        logger.info(
            f"Restored crypto context (version {record.version}, created {record.timestamp.isoformat()})"
        )
        return context

    def _generate(self) -> CryptoContext:
        context = CryptoContext.generate(self.default_parameters)
        # persist before anyone can encrypt under the new keys
        self.persistence.save(context)
        logger.info("Generated and persisted a new crypto context")
        return context

    def describe(self) -> Dict[str, Any]:
        """Non-secret status for health checks"""
        info: Dict[str, Any] = {"state": self.state.value}
        if self._context is not None:
            info["restored"] = self._restored
            info["fingerprint"] = self._context.fingerprint.hex()
            info["parameters"] = self._context.parameters.to_dict()
        return info
