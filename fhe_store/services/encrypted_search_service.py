"""
Encrypted Search Service
Linear equality scan over stored ciphertexts with per-record failure isolation
"""
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from ..core.exceptions import DecodeFailure, KeyMismatch, SearchCancelled
from .document_store import EncryptedRecord, EncryptedRecordStore
from .equality import EqualityEngine

logger = logging.getLogger(__name__)

PROGRESS_LOG_INTERVAL = 100


@dataclass
class SkippedRecord:
    """A record the scan could not evaluate"""
    record_id: str
    reason: str
    kind: str


@dataclass
class SearchOutcome:
    """Result of a completed scan"""
    matches: List[str] = field(default_factory=list)
    skipped: List[SkippedRecord] = field(default_factory=list)
    scanned: int = 0
    elapsed_ms: float = 0.0


class CancellationToken:
    """
    Cooperative cancellation for a running scan

    Cancelled explicitly via ``cancel()`` or implicitly once ``timeout``
    seconds have passed since creation.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self.deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def raise_if_cancelled(self):
        if self.cancelled:
            reason = "timed out" if not self._event.is_set() else "cancelled"
            raise SearchCancelled(f"Search {reason}")


class EncryptedSearchService:
    """
    Runs the equality engine over every stored record

    O(n) homomorphic subtractions per query: BFV ciphertexts carry no order
    structure an index could use. A record whose ciphertext cannot be
    evaluated is skipped and reported; it never aborts the scan. A failure
    of the record source itself (a broken cursor) does abort it, since the
    remaining records can no longer be read.
    """

    def __init__(self, equality: EqualityEngine):
        self.equality = equality

    def search(self,
               query_value: int,
               records: Iterable[EncryptedRecord],
               cancel_token: Optional[CancellationToken] = None) -> SearchOutcome:
        """
        Return identifiers of every record equal to ``query_value``

        Raises:
            EncodeRangeError: the query itself is not representable
            SearchCancelled: the token fired; partial results are discarded
            StorageIOError: the record source failed; no single record is to blame
        """
        start_time = time.time()
        self.equality.codec.check_range(query_value)

        outcome = SearchOutcome()
        iterator = iter(records)
        try:
            for record in iterator:
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()

                try:
                    if self.equality.equals(record.ciphertext, query_value):
                        outcome.matches.append(record.id)
                except (KeyMismatch, DecodeFailure) as e:
                    logger.warning(f"Skipping record {record.id} during search: {e.message}")
                    outcome.skipped.append(SkippedRecord(record.id, e.message, e.kind))

                outcome.scanned += 1
                if outcome.scanned % PROGRESS_LOG_INTERVAL == 0:
                    logger.debug(f"Scanned {outcome.scanned} records, {len(outcome.matches)} matches so far")
        finally:
            # release the store's cursor and session when the scan stops early
            close = getattr(iterator, "close", None)
            if close is not None:
                close()

        outcome.elapsed_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Search completed: {len(outcome.matches)} matches, {len(outcome.skipped)} skipped, "
            f"{outcome.scanned} scanned in {outcome.elapsed_ms:.2f}ms"
        )
        return outcome

    def search_store(self,
                     query_value: int,
                     store: EncryptedRecordStore,
                     cancel_token: Optional[CancellationToken] = None) -> SearchOutcome:
        """Scan a snapshot of the document store"""
        return self.search(query_value, store.iter_all(), cancel_token)
