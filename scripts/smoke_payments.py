"""Async smoke run against a development deployment.

Creates PIX payments, approves them through the simulate route and polls each
one until it reaches a terminal status. Prints a latency summary.
"""

import argparse
import asyncio
import random
import statistics
import time
from uuid import uuid4

import httpx

TERMINAL = {"approved", "declined", "expired"}


async def run_one(client: httpx.AsyncClient, base_url: str, idx: int, poll_attempts: int):
    """Create, simulate and poll one payment; return (final_status, latency_ms)."""

    started = time.perf_counter()
    headers = {"x-correlation-id": str(uuid4())}
    try:
        created = await client.post(
            f"{base_url}/api/payment/pix/create",
            json={
                "amount": random.randint(100, 250000),
                "description": f"smoke payment {idx}",
                "customerId": f"cust-{idx % 50}",
            },
            headers=headers,
        )
        created.raise_for_status()
        payment_id = created.json()["id"]
        await client.post(f"{base_url}/api/payment/pix/simulate", json={"id": payment_id}, headers=headers)

        status = "pending"
        for _ in range(poll_attempts):
            resp = await client.get(
                f"{base_url}/api/payment/pix/status",
                params={"id": payment_id, "method": "pix"},
                headers=headers,
            )
            if resp.status_code == 200:
                status = resp.json()["status"]
                if status in TERMINAL:
                    break
            await asyncio.sleep(1.0)
        return status, (time.perf_counter() - started) * 1000
    except httpx.HTTPError:
        return "request_failed", (time.perf_counter() - started) * 1000


async def run(total: int, concurrency: int, base_url: str, poll_attempts: int):
    sem = asyncio.Semaphore(concurrency)
    results = []

    async with httpx.AsyncClient(timeout=35.0) as client:
        health = await client.get(f"{base_url}/api/payment/health")
        print(f"health={health.json().get('overallHealth')} status={health.json().get('status')}")

        async def worker(i: int):
            async with sem:
                return await run_one(client, base_url, i, poll_attempts)

        tasks = [asyncio.create_task(worker(i)) for i in range(total)]
        for task in asyncio.as_completed(tasks):
            results.append(await task)

    statuses = [s for s, _ in results]
    lats = [latency for _, latency in results]

    def pct(values, p):
        if not values:
            return 0.0
        idx = min(len(values) - 1, max(0, int((p / 100.0) * len(values)) - 1))
        return sorted(values)[idx]

    print(f"total={total}")
    for status in sorted(set(statuses)):
        print(f"{status}={statuses.count(status)}")
    print(f"p50_ms={pct(lats, 50):.2f}")
    print(f"p95_ms={pct(lats, 95):.2f}")
    print(f"avg_ms={statistics.mean(lats):.2f}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--total", type=int, default=20)
    parser.add_argument("--concurrency", type=int, default=5)
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--poll-attempts", type=int, default=10)
    args = parser.parse_args()
    asyncio.run(run(args.total, args.concurrency, args.base_url, args.poll_attempts))
