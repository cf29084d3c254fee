#!/usr/bin/env python3
"""
Stack VM benchmark runner.

Generates arithmetic and branching scripts of increasing length, runs each one
through the interpreter several times and records wall time and resident
memory growth.
"""

import io
import json
import os
import statistics
import sys
import time
from pathlib import Path
from typing import Dict, List, Tuple

import psutil

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stackvm.runtime import run_source  # noqa: E402
from stackvm.vm_errors import ExecutionError  # noqa: E402


def arithmetic_script(size: int) -> str:
    lines = ["SET acc 0"]
    for i in range(size):
        lines.append(f"PUSH {i}")
        lines.append("GET acc")
        lines.append("ADD")
        lines.append("PUSH 2")
        lines.append("MUL")
        lines.append("PUSH 3")
        lines.append("DIV")
        lines.append("SET acc")
    lines.append("GET acc")
    lines.append("PRINT")
    return "\n".join(lines) + "\n"


def branch_script(size: int) -> str:
    lines = []
    for i in range(size):
        lines.append(f"PUSH {i % 2}")
        lines.append("IF")
        lines.append(f"ADD {i} 1")
        lines.append("ELSE")
        lines.append(f"SUB {i} 1")
        lines.append("ENDIF")
    lines.append("PRINT")
    return "\n".join(lines) + "\n"


SCRIPT_BUILDERS = {
    "arithmetic": arithmetic_script,
    "branch": branch_script,
}


class StackVMBenchmarkRunner:
    def __init__(self, benchmark_dir: str = "benchmark"):
        self.benchmark_dir = Path(benchmark_dir)
        self.results_dir = self.benchmark_dir / "results"
        self.results_dir.mkdir(parents=True, exist_ok=True)
        self.process = psutil.Process(os.getpid())

    def run_script(self, source: str) -> Tuple[float, int, Dict]:
        """Run one script; return (seconds, rss delta in bytes, stats)."""
        rss_before = self.process.memory_info().rss
        start_time = time.perf_counter()
        try:
            output = run_source(source, output_stream=io.StringIO(), source_name="<benchmark>")
        except ExecutionError as e:
            execution_time = time.perf_counter() - start_time
            return execution_time, 0, {"error": str(e), "return_code": 1}
        execution_time = time.perf_counter() - start_time
        rss_delta = self.process.memory_info().rss - rss_before
        return execution_time, rss_delta, {"return_code": 0, "printed": len(output)}

    def run_benchmark_suite(self, sizes: List[int], iterations: int = 3) -> Dict:
        results = {
            "test_info": {
                "timestamp": time.strftime("%Y-%m-%d %H:%M:%S"),
                "iterations": iterations,
                "python_version": sys.version,
                "system_info": {
                    "platform": sys.platform,
                    "cpu_count": psutil.cpu_count(logical=True),
                    "total_memory": psutil.virtual_memory().total,
                },
            },
            "tests": {},
        }

        for name, builder in SCRIPT_BUILDERS.items():
            for size in sizes:
                source = builder(size)
                key = f"{name}_{size}"
                print(f"\nRunning {key} ({len(source.splitlines())} lines)...")
                times: List[float] = []
                memory: List[int] = []
                errors: List[str] = []
                for i in range(iterations):
                    print(f"  Iteration {i + 1}/{iterations}")
                    exec_time, rss_delta, stats = self.run_script(source)
                    if stats.get("return_code") == 0:
                        times.append(exec_time)
                        memory.append(rss_delta)
                    else:
                        errors.append(stats.get("error", "unknown error"))

                test_result: Dict = {
                    "script": name,
                    "size": size,
                    "lines": len(source.splitlines()),
                    "iterations_completed": len(times),
                }
                if times:
                    test_result["timing"] = {
                        "times": times,
                        "avg_time": statistics.mean(times),
                        "min_time": min(times),
                        "max_time": max(times),
                        "std_dev": statistics.stdev(times) if len(times) > 1 else 0,
                        "lines_per_second": test_result["lines"] / statistics.mean(times)
                        if statistics.mean(times) > 0
                        else 0,
                    }
                    test_result["memory"] = {
                        "max_rss_delta": max(memory),
                        "avg_rss_delta": statistics.mean(memory),
                    }
                if errors:
                    test_result["errors"] = errors
                results["tests"][key] = test_result
        return results

    def save_results(self, results: Dict, filename: str = None) -> Path:
        if filename is None:
            timestamp = time.strftime("%Y%m%d_%H%M%S")
            filename = f"benchmark_results_{timestamp}.json"

        result_path = self.results_dir / filename
        with open(result_path, "w", encoding="utf-8") as f:
            json.dump(results, f, indent=2, ensure_ascii=False)

        print(f"\nResults saved to: {result_path}")
        return result_path

    def print_summary(self, results: Dict) -> None:
        print("\n" + "=" * 60)
        print("STACK VM BENCHMARK SUMMARY")
        print("=" * 60)

        test_info = results.get("test_info", {})
        print(f"Test Time: {test_info.get('timestamp')}")
        print(f"Iterations: {test_info.get('iterations')}")
        print()

        print(f"{'Test':<20} {'Avg (s)':<12} {'Lines/s':<14} {'RSS delta':<12}")
        print("-" * 60)
        for test_name, test_data in results.get("tests", {}).items():
            timing = test_data.get("timing", {})
            avg_time = timing.get("avg_time", 0)
            rate = timing.get("lines_per_second", 0)
            rss = test_data.get("memory", {}).get("max_rss_delta")
            avg_str = f"{avg_time:.4f}" if avg_time > 0 else "N/A"
            rate_str = f"{rate:,.0f}" if rate > 0 else "N/A"
            rss_str = f"{rss / 1024:.0f} KiB" if rss is not None else "N/A"
            print(f"{test_name:<20} {avg_str:<12} {rate_str:<14} {rss_str:<12}")


def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(description="Stack VM performance benchmark")
    parser.add_argument("-i", "--iterations", type=int, default=3, help="Iterations per script (default: 3)")
    parser.add_argument(
        "-s",
        "--sizes",
        type=int,
        nargs="+",
        default=[100, 1000, 10000],
        help="Script sizes to generate (default: 100 1000 10000)",
    )
    parser.add_argument("-o", "--output", type=str, help="Result file name")
    parser.add_argument("--benchmark-dir", type=str, default="benchmark", help="Benchmark directory (default: benchmark)")
    args = parser.parse_args(argv)

    runner = StackVMBenchmarkRunner(args.benchmark_dir)
    print("Starting stack VM benchmark...")
    print(f"Iterations per script: {args.iterations}")

    results = runner.run_benchmark_suite(args.sizes, iterations=args.iterations)
    result_path = runner.save_results(results, args.output)
    runner.print_summary(results)
    print(f"\nDetailed results saved to: {result_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
