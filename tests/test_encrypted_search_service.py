import time

import pytest

from fhe_store.core.exceptions import EncodeRangeError, SearchCancelled, StorageIOError
from fhe_store.services import (
    CancellationToken, EncryptedRecord, EncryptedSearchService
)


@pytest.fixture(scope="module")
def search_service(equality):
    return EncryptedSearchService(equality)


@pytest.fixture(scope="module")
def records(codec):
    values = [5, 42, -3, 42, 0]
    return [EncryptedRecord(f"record-{i}", codec.encode(v)) for i, v in enumerate(values)]


def test_search_returns_every_matching_id(search_service, records):
    outcome = search_service.search(42, records)

    assert outcome.matches == ["record-1", "record-3"]
    assert outcome.skipped == []
    assert outcome.scanned == 5
    assert outcome.elapsed_ms >= 0


def test_search_without_match_is_empty(search_service, records):
    outcome = search_service.search(43, records)

    assert outcome.matches == []
    assert outcome.scanned == 5


def test_search_over_empty_input(search_service):
    outcome = search_service.search(1, [])
    assert outcome.matches == [] and outcome.scanned == 0


def test_bad_records_are_skipped_not_fatal(search_service, records, foreign_codec):
    poisoned = [
        EncryptedRecord("garbage", b"definitely not a ciphertext"),
        *records,
        EncryptedRecord("foreign", foreign_codec.encode(42)),
    ]

    outcome = search_service.search(42, poisoned)

    assert outcome.matches == ["record-1", "record-3"]
    assert outcome.scanned == 7
    assert {s.record_id: s.kind for s in outcome.skipped} == {
        "garbage": "decode_failure",
        "foreign": "key_mismatch",
    }


def test_out_of_range_query_is_rejected_before_scanning(search_service, codec):
    def never_iterated():
        raise AssertionError("records should not be read")
        yield

    with pytest.raises(EncodeRangeError):
        search_service.search(codec.max_value + 1, never_iterated())


def test_cancelled_token_stops_the_scan(search_service, records):
    token = CancellationToken()
    token.cancel()

    with pytest.raises(SearchCancelled, match="cancelled"):
        search_service.search(42, records, token)


def test_cancellation_mid_scan(search_service, records):
    token = CancellationToken()
    seen = []

    def cancelling_after_two():
        for record in records:
            seen.append(record.id)
            if len(seen) == 2:
                token.cancel()
            yield record

    with pytest.raises(SearchCancelled):
        search_service.search(42, cancelling_after_two(), token)
    assert len(seen) == 2


def test_expired_deadline_times_out(search_service, records):
    token = CancellationToken(timeout=0.0)
    time.sleep(0.001)

    assert token.cancelled
    with pytest.raises(SearchCancelled, match="timed out"):
        search_service.search(42, records, token)


def test_search_store_scans_persisted_records(search_service, record_store, codec):
    matching = record_store.insert(codec.encode(7))
    record_store.insert(codec.encode(8))

    outcome = search_service.search_store(7, record_store, CancellationToken(timeout=30))

    assert outcome.matches == [matching]
    assert outcome.scanned == 2


def test_cancelled_scan_releases_the_record_source(search_service, records):
    token = CancellationToken()
    closed = []

    def source():
        try:
            for record in records:
                token.cancel()
                yield record
        finally:
            closed.append(True)

    with pytest.raises(SearchCancelled):
        search_service.search(42, source(), token)
    assert closed == [True]


def test_failing_record_source_aborts_the_scan(search_service, records):
    def broken_cursor():
        yield records[1]
        raise StorageIOError("connection lost")

    with pytest.raises(StorageIOError):
        search_service.search(42, broken_cursor())
