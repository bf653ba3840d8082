import json
import tracemalloc
from io import StringIO

import requests
from rich.console import Console

from fhe_store.benchmark import (
    OperationResult, RouteTiming, batch_report, main, measure, measure_operation, operation_stats,
    render, render_batch, run_batch, run_benchmark, write_report
)
from fhe_store.client import EncryptedStoreClient


def test_client_wraps_the_api(api_client):
    client = EncryptedStoreClient("", session=api_client)

    record_id = client.store(11)

    assert client.retrieve(record_id) == 11
    assert client.search_ids(11) == [record_id]
    assert client.health()["status"] == "healthy"


def test_run_benchmark_times_every_route(api_client):
    client = EncryptedStoreClient("", session=api_client)

    timings = run_benchmark(client, value=9, num_requests=2, verify=True)

    assert [t.route.split()[0] for t in timings] == ["POST", "GET", "GET"]
    for timing in timings:
        assert len(timing.samples_ms) == 2
        assert timing.errors == 0
        assert timing.failed_checks == 0
        assert timing.min_ms <= timing.average_ms <= timing.max_ms


def test_measure_counts_request_errors():
    def flaky():
        raise requests.ConnectionError("refused")

    timing = measure("GET /nowhere", flaky, 3)

    assert timing.errors == 3
    assert timing.samples_ms == []
    assert timing.average_ms == 0.0


def test_measure_counts_failed_checks():
    timing = measure("GET /value", lambda: 1, 4, check=lambda result: result == 2)
    assert timing.failed_checks == 4


def test_render_prints_a_row_per_route():
    output = StringIO()
    timings = [RouteTiming("POST /store", [1.0, 3.0]), RouteTiming("GET /search/1", [], errors=2)]

    render(timings, Console(file=output, width=200))

    text = output.getvalue()
    assert "POST /store" in text
    assert "GET /search/1" in text
    assert "2.000" in text


def test_main_fails_when_server_is_unreachable():
    assert main(["--url", "http://127.0.0.1:9", "--requests", "1"]) == 1


def test_measure_records_client_resource_usage():
    started = not tracemalloc.is_tracing()
    if started:
        tracemalloc.start()
    try:
        timing = measure("GET /grow", lambda: bytearray(256 * 1024), 4)
    finally:
        if started:
            tracemalloc.stop()

    assert isinstance(timing.memory_increase_kb, float)
    assert timing.cpu_user_ms >= 0.0
    assert timing.cpu_system_ms >= 0.0
    assert set(timing.to_dict()) >= {"route", "average_ms", "memory_increase_kb", "cpu_user_ms"}


def test_run_batch_stores_then_checks_a_sample(api_client):
    client = EncryptedStoreClient("", session=api_client)

    results = run_batch(client, size=6, seed=7)
    report = batch_report(results)

    summary = report["summary"]
    assert summary["total_operations"] == 6 + 6 + 5
    assert summary["store"]["count"] == 6
    assert summary["retrieve"]["count"] == 6
    assert summary["search"]["count"] == 5
    for operation in ("store", "retrieve", "search"):
        assert summary[operation]["success_rate"] == 100.0
        stats = summary[operation]["time_ms"]
        assert stats["min"] <= stats["avg"] <= stats["max"]
    assert len(report["detailed_results"]) == 17


def test_operation_stats_only_average_successful_calls():
    results = [
        OperationResult("store", "a", True, time_ms=2.0, memory_kb=1.0),
        OperationResult("store", "b", True, time_ms=4.0, memory_kb=3.0),
        OperationResult("store", "c", False, time_ms=100.0, error="boom"),
        OperationResult("store", "d", False, error="boom"),
    ]

    stats = operation_stats(results)

    assert stats["count"] == 4
    assert stats["success_rate"] == 50.0
    assert stats["time_ms"] == {"avg": 3.0, "min": 2.0, "max": 4.0}
    assert stats["memory_kb"]["avg"] == 2.0
    assert operation_stats([])["success_rate"] == 0.0


def test_measure_operation_records_failures():
    def refused():
        raise requests.ConnectionError("refused")

    failed = measure_operation("retrieve", "Retrieve x", refused)
    wrong = measure_operation("retrieve", "Retrieve y", lambda: 3, check=lambda r: r == 4)

    assert not failed.success
    assert "refused" in failed.error
    assert not wrong.success
    assert wrong.error == "unexpected result 3"


def test_report_is_written_to_a_file_or_directory(tmp_path):
    report = batch_report([OperationResult("store", "a", True, time_ms=1.5, result="id-1")])

    explicit = write_report(report, str(tmp_path / "out" / "report.json"))
    generated = write_report(report, str(tmp_path))

    assert explicit == tmp_path / "out" / "report.json"
    assert generated.parent == tmp_path
    assert generated.name.startswith("performance-report-")
    assert generated.suffix == ".json"
    for path in (explicit, generated):
        document = json.loads(path.read_text())
        assert set(document) == {"timestamp", "mode", "summary", "detailed_results"}
        assert document["summary"]["store"]["success_rate"] == 100.0
        assert document["detailed_results"][0]["result"] == "id-1"


def test_render_batch_shows_success_rates():
    output = StringIO()
    report = batch_report([
        OperationResult("store", "a", True, time_ms=1.0),
        OperationResult("store", "b", False, error="boom"),
    ])

    render_batch(report, Console(file=output, width=200))

    assert "50.00%" in output.getvalue()


def test_batch_main_fails_and_still_reports_when_server_is_unreachable(tmp_path):
    destination = tmp_path / "batch.json"

    assert main(["--url", "http://127.0.0.1:9", "--batch", "2", "--report", str(destination)]) == 1

    document = json.loads(destination.read_text())
    assert document["summary"]["store"]["count"] == 2
    assert document["summary"]["store"]["success_rate"] == 0.0
