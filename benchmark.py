#!/usr/bin/env python3

import json
import os
import tempfile
import time
import tracemalloc
from statistics import mean, stdev

from fluentlog import ContextMetadata, FluentLogger, LoggerConfig, MetadataHandler, MetadataKey, MetadataProcessor
from fluentlog import MutableMetadata, ScopedLoggingContext, Tags

REQUEST_ID = MetadataKey.single("request_id", str)
ITERATION = MetadataKey.single("iteration", int)
ITEM = MetadataKey.repeated("item", int)


class _CountingHandler(MetadataHandler):
    def handle(self, key, value, context):
        context[0] += 1


def _new_logger(format="text", encoder="msgspec"):
    with tempfile.NamedTemporaryFile(delete=False, suffix=".log") as f:
        temp_path = f.name
    config = LoggerConfig(output=temp_path, format=format, encoder=encoder)
    return FluentLogger("benchmark", config=config), temp_path


def _close(logger, temp_path):
    logger.close()
    os.unlink(temp_path)


def _measure(fn, iterations):
    tracemalloc.start()
    start_time = time.perf_counter()

    fn(iterations)

    end_time = time.perf_counter()
    current, peak = tracemalloc.get_traced_memory()
    tracemalloc.stop()

    total_time = end_time - start_time
    return {
        "total_time": total_time,
        "ops_per_second": iterations / total_time,
        "time_per_op_us": (total_time / iterations) * 1_000_000,
        "peak_memory_mb": peak / 1024 / 1024,
        "current_memory_mb": current / 1024 / 1024,
    }


def benchmark_logging(format="text", encoder="msgspec", iterations=10000):
    """Benchmark enabled statements with metadata and scoped context."""
    logger, temp_path = _new_logger(format, encoder)
    context = ScopedLoggingContext.new_context().with_tags(Tags.of("env", "bench")).with_metadata(REQUEST_ID, "r1")

    def run(n):
        with context.install():
            for i in range(n):
                logger.at_info().with_(ITERATION, i).log("processed %s", "item")

    try:
        return _measure(run, iterations)
    finally:
        _close(logger, temp_path)


def benchmark_disabled(iterations=10000):
    """Benchmark statements at a disabled level."""
    logger, temp_path = _new_logger()

    def run(n):
        for i in range(n):
            logger.at_fine().with_(ITERATION, i).log("never shown %d", i)

    try:
        return _measure(run, iterations)
    finally:
        _close(logger, temp_path)


def benchmark_rate_limited(iterations=10000):
    """Benchmark statements rate limited with every(100)."""
    logger, temp_path = _new_logger()

    def run(n):
        for i in range(n):
            logger.at_info().every(100).log("tick %d", i)

    try:
        return _measure(run, iterations)
    finally:
        _close(logger, temp_path)


def benchmark_processor(size, iterations=10000):
    """Benchmark merging scope and log-site metadata of the given total size."""
    scope = ContextMetadata.builder()
    for i in range(size // 2):
        scope.add(ITEM, i)
    scope = scope.build()
    logged = MutableMetadata()
    for i in range(size - size // 2):
        logged.add_value(ITEM if i % 2 else ITERATION, i)
    handler = _CountingHandler()

    def run(n):
        counter = [0]
        for _ in range(n):
            MetadataProcessor.for_scope_and_log_site(scope, logged).process(handler, counter)

    return _measure(run, iterations)


def run_multiple_benchmarks(benchmark_func, *args, iterations=10000, runs=5):
    """Run multiple benchmark iterations and calculate statistics."""
    results = [benchmark_func(*args, iterations=iterations) for _ in range(runs)]

    stats = {}
    for key in results[0].keys():
        values = [r[key] for r in results]
        stats[key] = {
            "mean": mean(values),
            "stdev": stdev(values) if len(values) > 1 else 0,
            "min": min(values),
            "max": max(values),
        }

    return stats


def _print_stats(title, stats):
    print(title)
    print(f"   Ops/sec: {stats['ops_per_second']['mean']:.0f} ± {stats['ops_per_second']['stdev']:.0f}")
    print(f"   Time/op: {stats['time_per_op_us']['mean']:.2f} ± {stats['time_per_op_us']['stdev']:.2f} μs")
    print(f"   Peak Memory: {stats['peak_memory_mb']['mean']:.2f} ± {stats['peak_memory_mb']['stdev']:.2f} MB")


def main():
    """Run fluentlog performance benchmarks."""
    print("=== fluentlog Performance Benchmarks ===\n")

    iterations = 50000
    runs = 5

    print(f"Running {runs} benchmark runs with {iterations} operations each...\n")

    results = {
        "text": run_multiple_benchmarks(benchmark_logging, "text", "msgspec", iterations=iterations, runs=runs),
        "json_msgspec": run_multiple_benchmarks(benchmark_logging, "json", "msgspec", iterations=iterations, runs=runs),
        "json_stdlib": run_multiple_benchmarks(benchmark_logging, "json", "json", iterations=iterations, runs=runs),
        "disabled": run_multiple_benchmarks(benchmark_disabled, iterations=iterations, runs=runs),
        "rate_limited": run_multiple_benchmarks(benchmark_rate_limited, iterations=iterations, runs=runs),
        "processor_lightweight": run_multiple_benchmarks(benchmark_processor, 8, iterations=iterations, runs=runs),
        "processor_simple": run_multiple_benchmarks(benchmark_processor, 40, iterations=iterations, runs=runs),
    }

    _print_stats("1. Text backend", results["text"])
    _print_stats("\n2. JSON backend (msgspec)", results["json_msgspec"])
    _print_stats("\n3. JSON backend (json)", results["json_stdlib"])
    _print_stats("\n4. Disabled level", results["disabled"])
    _print_stats("\n5. Rate limited, every(100)", results["rate_limited"])
    _print_stats("\n6. Metadata processor, 8 entries", results["processor_lightweight"])
    _print_stats("\n7. Metadata processor, 40 entries", results["processor_simple"])

    print("\n=== Encoder Comparison ===")
    msgspec_gain = (results["json_msgspec"]["ops_per_second"]["mean"] / results["json_stdlib"]["ops_per_second"]["mean"]) - 1
    print(f"msgspec vs json: {msgspec_gain:.1%}")

    output = {
        "benchmark_date": time.strftime("%Y-%m-%d %H:%M:%S"),
        "iterations": iterations,
        "runs": runs,
        "results": results,
    }

    with open("performance.json", "w") as f:
        json.dump(output, f, indent=2)

    print("\nResults saved to performance.json")


if __name__ == "__main__":
    main()
