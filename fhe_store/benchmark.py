#!/usr/bin/env python3
"""
Latency benchmark for a running encrypted value store

Route mode (default) stores a test value, then times repeated /store,
/retrieve and /search requests and reports latency, client memory growth and
client CPU time per route. Batch mode (--batch N) stores N random values,
retrieves and searches a sample of them, and reports success rate plus time
and memory statistics per operation. Either mode can write a JSON report.
"""
import argparse
import json
import os
import random
import statistics
import sys
import time
import tracemalloc
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import requests
from rich.console import Console
from rich.table import Table

from .client import EncryptedStoreClient

BATCH_VALUE_RANGE = 1000
BATCH_RETRIEVE_SAMPLE = 10
BATCH_SEARCH_SAMPLE = 5
OPERATIONS = ("store", "retrieve", "search")


def _traced_bytes() -> int:
    return tracemalloc.get_traced_memory()[0] if tracemalloc.is_tracing() else 0


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


# ============= ROUTE MODE =============

@dataclass
class RouteTiming:
    """Latency samples and client resource usage for one route"""
    route: str
    samples_ms: List[float] = field(default_factory=list)
    errors: int = 0
    failed_checks: int = 0
    memory_increase_kb: float = 0.0
    cpu_user_ms: float = 0.0
    cpu_system_ms: float = 0.0

    @property
    def average_ms(self) -> float:
        return statistics.fmean(self.samples_ms) if self.samples_ms else 0.0

    @property
    def min_ms(self) -> float:
        return min(self.samples_ms) if self.samples_ms else 0.0

    @property
    def max_ms(self) -> float:
        return max(self.samples_ms) if self.samples_ms else 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.update(average_ms=self.average_ms, min_ms=self.min_ms, max_ms=self.max_ms)
        return data


def measure(route: str,
            call: Callable[[], object],
            num_requests: int,
            check: Optional[Callable[[object], bool]] = None) -> RouteTiming:
    """Call ``call`` num_requests times and record latency per call"""
    timing = RouteTiming(route=route)
    memory_before = _traced_bytes()
    cpu_before = os.times()

    for _ in range(num_requests):
        start = time.perf_counter()
        try:
            result = call()
        except requests.RequestException:
            timing.errors += 1
            continue
        timing.samples_ms.append((time.perf_counter() - start) * 1000)
        if check is not None and not check(result):
            timing.failed_checks += 1

    cpu_after = os.times()
    timing.memory_increase_kb = (_traced_bytes() - memory_before) / 1024
    timing.cpu_user_ms = (cpu_after.user - cpu_before.user) * 1000
    timing.cpu_system_ms = (cpu_after.system - cpu_before.system) * 1000
    return timing


def run_benchmark(client: EncryptedStoreClient,
                  value: int = 42,
                  num_requests: int = 10,
                  verify: bool = False) -> List[RouteTiming]:
    """Benchmark the three value routes against ``client``"""
    record_id = client.store(value)

    return [
        measure("POST /store", lambda: client.store(value), num_requests,
                check=(lambda r: bool(r)) if verify else None),
        measure(f"GET /retrieve/{record_id}", lambda: client.retrieve(record_id), num_requests,
                check=(lambda r: r == value) if verify else None),
        measure(f"GET /search/{value}", lambda: client.search_ids(value), num_requests,
                check=(lambda r: record_id in r) if verify else None),
    ]


def render(timings: List[RouteTiming], console: Console):
    table = Table(title="Encrypted Value Store Latency")
    table.add_column("Route", style="cyan")
    table.add_column("Requests", justify="right")
    table.add_column("Avg (ms)", justify="right")
    table.add_column("Min (ms)", justify="right")
    table.add_column("Max (ms)", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Failed checks", justify="right")
    table.add_column("Memory (KB)", justify="right")
    table.add_column("CPU user (ms)", justify="right")
    table.add_column("CPU sys (ms)", justify="right")
    for t in timings:
        table.add_row(
            t.route, str(len(t.samples_ms)), f"{t.average_ms:.3f}", f"{t.min_ms:.3f}",
            f"{t.max_ms:.3f}", str(t.errors), str(t.failed_checks),
            f"{t.memory_increase_kb:.3f}", f"{t.cpu_user_ms:.1f}", f"{t.cpu_system_ms:.1f}",
        )
    console.print(table)


# ============= BATCH MODE =============

@dataclass
class OperationResult:
    """Outcome of one measured request"""
    operation: str
    name: str
    success: bool
    time_ms: float = 0.0
    memory_kb: float = 0.0
    result: Any = None
    error: Optional[str] = None
    timestamp: str = field(default_factory=_timestamp)


def measure_operation(operation: str,
                      name: str,
                      call: Callable[[], object],
                      check: Optional[Callable[[object], bool]] = None) -> OperationResult:
    """Time one request and record the Python heap growth around it"""
    memory_before = _traced_bytes()
    start = time.perf_counter()
    try:
        result = call()
    except requests.RequestException as e:
        return OperationResult(operation, name, success=False, error=str(e))
    elapsed_ms = (time.perf_counter() - start) * 1000
    memory_kb = (_traced_bytes() - memory_before) / 1024

    if check is not None and not check(result):
        return OperationResult(operation, name, False, elapsed_ms, memory_kb, result,
                               error=f"unexpected result {result!r}")
    return OperationResult(operation, name, True, elapsed_ms, memory_kb, result)


def operation_stats(results: List[OperationResult]) -> Dict[str, Any]:
    """Count, success rate (percent) and time/memory statistics of successful calls"""
    succeeded = [r for r in results if r.success]

    def summary(values: List[float]) -> Dict[str, float]:
        if not values:
            return {"avg": 0.0, "min": 0.0, "max": 0.0}
        return {"avg": statistics.fmean(values), "min": min(values), "max": max(values)}

    return {
        "count": len(results),
        "success_rate": 100.0 * len(succeeded) / len(results) if results else 0.0,
        "time_ms": summary([r.time_ms for r in succeeded]),
        "memory_kb": summary([r.memory_kb for r in succeeded]),
    }


def run_batch(client: EncryptedStoreClient,
              size: int = 50,
              seed: Optional[int] = None) -> List[OperationResult]:
    """
    Store ``size`` random values, then retrieve and search a sample of them

    Retrieve and search responses are checked against the stored values.
    """
    rng = random.Random(seed)
    results: List[OperationResult] = []
    stored = []

    for _ in range(size):
        value = rng.randrange(BATCH_VALUE_RANGE)
        result = measure_operation("store", f"Store value {value}", lambda: client.store(value))
        results.append(result)
        if result.success:
            stored.append((result.result, value))

    for record_id, value in stored[:BATCH_RETRIEVE_SAMPLE]:
        results.append(measure_operation(
            "retrieve", f"Retrieve {record_id}",
            lambda: client.retrieve(record_id), check=lambda r: r == value,
        ))

    for record_id, value in stored[:BATCH_SEARCH_SAMPLE]:
        results.append(measure_operation(
            "search", f"Search value {value}",
            lambda: client.search_ids(value), check=lambda r: record_id in r,
        ))
    return results


def batch_report(results: List[OperationResult]) -> Dict[str, Any]:
    summary: Dict[str, Any] = {"total_operations": len(results)}
    for operation in OPERATIONS:
        summary[operation] = operation_stats([r for r in results if r.operation == operation])
    return {
        "timestamp": _timestamp(),
        "mode": "batch",
        "summary": summary,
        "detailed_results": [asdict(r) for r in results],
    }


def render_batch(report: Dict[str, Any], console: Console):
    table = Table(title=f"Batch Test ({report['summary']['total_operations']} operations)")
    table.add_column("Operation", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Success rate", justify="right")
    table.add_column("Avg (ms)", justify="right")
    table.add_column("Min (ms)", justify="right")
    table.add_column("Max (ms)", justify="right")
    table.add_column("Avg memory (KB)", justify="right")
    for operation in OPERATIONS:
        stats = report["summary"][operation]
        table.add_row(
            operation, str(stats["count"]), f"{stats['success_rate']:.2f}%",
            f"{stats['time_ms']['avg']:.2f}", f"{stats['time_ms']['min']:.2f}",
            f"{stats['time_ms']['max']:.2f}", f"{stats['memory_kb']['avg']:.2f}",
        )
    console.print(table)


# ============= REPORT =============

def write_report(report: Dict[str, Any], destination: str) -> Path:
    """
    Write ``report`` as JSON

    A directory destination gets a timestamped ``performance-report-*.json``.
    """
    path = Path(destination)
    if path.is_dir():
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
        path = path / f"performance-report-{stamp}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report, indent=2, default=str), encoding="utf-8")
    return path


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--url", default="http://localhost:3000", help="Server base URL")
    parser.add_argument("--value", type=int, default=42, help="Value to store and search for")
    parser.add_argument("--requests", type=int, default=10, help="Requests per route")
    parser.add_argument("--verify", action="store_true", help="Check every response")
    parser.add_argument("--batch", type=int, metavar="N", help="Run a batch test over N random values")
    parser.add_argument("--seed", type=int, help="Random seed for batch values")
    parser.add_argument("--report", metavar="PATH", help="Write a JSON report (file or directory)")
    args = parser.parse_args(argv)

    console = Console()
    console.print(f"[bold blue]Benchmarking {args.url}[/bold blue]")
    client = EncryptedStoreClient(args.url)

    started_tracing = not tracemalloc.is_tracing()
    if started_tracing:
        tracemalloc.start()
    try:
        if args.batch is not None:
            report = batch_report(run_batch(client, args.batch, args.seed))
            render_batch(report, console)
            failed = any(report["summary"][op]["success_rate"] < 100.0
                         for op in OPERATIONS if report["summary"][op]["count"])
        else:
            timings = run_benchmark(client, args.value, args.requests, args.verify)
            report = {
                "timestamp": _timestamp(),
                "mode": "routes",
                "routes": [t.to_dict() for t in timings],
            }
            render(timings, console)
            failed = any(t.errors or t.failed_checks for t in timings)
    except requests.RequestException as e:
        console.print(f"[red]Benchmark aborted: {e}[/red]")
        return 1
    finally:
        if started_tracing:
            tracemalloc.stop()

    if args.report:
        console.print(f"Report saved to {write_report(report, args.report)}")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
