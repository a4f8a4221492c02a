"""
HTTP benchmark for the blog API.

Compares the cached article listing with the ``performance_test`` bypass
and reports latency percentiles plus the ``X-Query-Count`` header.
"""
import argparse
import asyncio
import statistics
import time

import httpx

DEFAULT_BASE_URL = "http://localhost:8000"

ENDPOINTS = [
    ("GET /api/v1/articles (cached)", "/api/v1/articles"),
    ("GET /api/v1/articles (bypass cache)", "/api/v1/articles?performance_test=1"),
    ("GET /api/v1/articles/search?q=cafe", "/api/v1/articles/search?q=cafe"),
    ("GET /api/v1/articles/1", "/api/v1/articles/1"),
    ("GET /api/v1/articles/1/comments", "/api/v1/articles/1/comments"),
    ("GET /api/v1/stats", "/api/v1/stats"),
    ("GET /health", "/health"),
]


def _percentile(sorted_times: list[float], fraction: float) -> float:
    return round(sorted_times[min(len(sorted_times) - 1, int(len(sorted_times) * fraction))], 2)


async def benchmark_endpoint(client: httpx.AsyncClient, name: str, path: str, iterations: int = 50) -> dict:
    times: list[float] = []
    query_counts: list[int] = []
    errors = 0

    # Warmup (also primes the listing cache)
    for _ in range(3):
        try:
            await client.get(path)
        except httpx.HTTPError:
            pass

    for _ in range(iterations):
        start = time.perf_counter()
        try:
            resp = await client.get(path)
        except httpx.HTTPError:
            errors += 1
            continue
        elapsed = (time.perf_counter() - start) * 1000
        if resp.status_code != 200:
            errors += 1
            continue
        times.append(elapsed)
        if "x-query-count" in resp.headers:
            query_counts.append(int(resp.headers["x-query-count"]))

    if not times:
        return {"name": name, "error": f"All {iterations} requests failed"}

    times.sort()
    return {
        "name": name,
        "avg_ms": round(statistics.mean(times), 2),
        "p50_ms": _percentile(times, 0.50),
        "p95_ms": _percentile(times, 0.95),
        "p99_ms": _percentile(times, 0.99),
        "queries": round(statistics.mean(query_counts), 1) if query_counts else "N/A",
        "errors": errors,
    }


async def run_benchmark(base_url: str, iterations: int = 50) -> None:
    print("=" * 80)
    print(f"Blog API Benchmark: {iterations} iterations per endpoint")
    print(f"Target: {base_url}")
    print("=" * 80)

    async with httpx.AsyncClient(base_url=base_url) as client:
        try:
            resp = await client.get("/health")
        except httpx.HTTPError as e:
            print(f"ERROR: Cannot connect to {base_url}: {e}")
            return
        if resp.status_code != 200:
            print(f"ERROR: Health check failed ({resp.status_code})")
            return

        print(f"{'Endpoint':<45} {'Avg':>8} {'P50':>8} {'P95':>8} {'P99':>8} {'Queries':>8} {'Err':>4}")
        print("-" * 80)
        for name, path in ENDPOINTS:
            result = await benchmark_endpoint(client, name, path, iterations)
            if "error" in result:
                print(f"{result['name']:<45} {'ERROR':>8}")
                continue
            print(
                f"{result['name']:<45} "
                f"{result['avg_ms']:>7.1f}ms "
                f"{result['p50_ms']:>7.1f}ms "
                f"{result['p95_ms']:>7.1f}ms "
                f"{result['p99_ms']:>7.1f}ms "
                f"{str(result['queries']):>8} "
                f"{result['errors']:>4}"
            )
        print("-" * 80)


def main():
    parser = argparse.ArgumentParser(description="Benchmark blog API")
    parser.add_argument("-n", "--iterations", type=int, default=50, help="Iterations per endpoint")
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL, help="API base URL")
    args = parser.parse_args()
    asyncio.run(run_benchmark(args.base_url, args.iterations))


if __name__ == "__main__":
    main()
