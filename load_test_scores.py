"""
Load test for the judge scoring API.
Simulates many judges hammering boulder actions and speed lane entries at once.

The default ids match a fresh database seeded in this order:

    python seed_climbers.py 16 boulder   # competition 1, climbers 1-16
    python seed_climbers.py 16 speed     # competition 2, climbers 17-32

Any other layout: set BOULDER_COMP_ID / SPEED_COMP_ID and the first climber id
of each competition (BOULDER_FIRST_CLIMBER_ID / SPEED_FIRST_CLIMBER_ID).
"""

import asyncio
import os
import random
import time
import aiohttp

# -----------------------------
# CONFIG — ADJUST IF NEEDED
# -----------------------------
BASE_URL = os.getenv("BASE_URL", "http://127.0.0.1:5000")

CLIMBERS_PER_COMP = int(os.getenv("CLIMBERS_PER_COMP", "16"))

# Seeded competitions (see seed_climbers.py)
BOULDER_COMP_ID = int(os.getenv("BOULDER_COMP_ID", "1"))
SPEED_COMP_ID = int(os.getenv("SPEED_COMP_ID", "2"))

# Climber ids are contiguous inside each seeded competition
_boulder_first = int(os.getenv("BOULDER_FIRST_CLIMBER_ID", "1"))
_speed_first = int(os.getenv("SPEED_FIRST_CLIMBER_ID", str(_boulder_first + CLIMBERS_PER_COMP)))
BOULDER_CLIMBER_IDS = range(_boulder_first, _boulder_first + CLIMBERS_PER_COMP)
SPEED_CLIMBER_IDS = range(_speed_first, _speed_first + CLIMBERS_PER_COMP)

TOTAL_BOULDERS = 4

# Total requests to send
TOTAL_REQUESTS = 2000

# How many run simultaneously
MAX_CONCURRENT = 150

LANE_STATUSES = ["VALID"] * 8 + ["FALL", "FALSE_START", "DNS"]


# -----------------------------
# Load test functions
# -----------------------------
async def submit_boulder_action(session, climber_id, boulder_number):
    action = random.choices(
        ["attempt", "zone", "top", "finalize"],
        weights=[6, 2, 1, 1],
    )[0]
    url = (
        f"{BASE_URL}/api/competitions/{BOULDER_COMP_ID}"
        f"/climbers/{climber_id}/boulders/{boulder_number}"
    )
    return await _send(session, "POST", url, {"action": action})


async def submit_speed_lanes(session, climber_id):
    payload = {
        "lane_a_time": round(random.uniform(5.0, 12.0), 3),
        "lane_b_time": round(random.uniform(5.0, 12.0), 3),
        "lane_a_status": random.choice(LANE_STATUSES),
        "lane_b_status": random.choice(LANE_STATUSES),
    }
    url = f"{BASE_URL}/api/speed-competitions/{SPEED_COMP_ID}/qualification/{climber_id}"
    return await _send(session, "PUT", url, payload)


async def _send(session, method, url, payload):
    try:
        async with session.request(method, url, json=payload) as resp:
            text = await resp.text()
            # 400/403 are expected once cards get locked
            if resp.status >= 500:
                print(f"[ERROR {resp.status}] {url} {payload} :: {text[:200]}")
            return resp.status
    except Exception as e:
        print(f"[EXCEPTION] {e} :: {url} {payload}")
        return None


async def worker(name, session, task_queue, results):
    while True:
        item = await task_queue.get()
        if item is None:
            task_queue.task_done()
            break

        kind, args = item
        if kind == "boulder":
            status = await submit_boulder_action(session, *args)
        else:
            status = await submit_speed_lanes(session, *args)
        results.append(status)
        task_queue.task_done()


async def main():
    task_queue = asyncio.Queue()
    results = []

    # Generate all simulated requests
    for _ in range(TOTAL_REQUESTS):
        if random.random() < 0.5:
            cid = random.choice(BOULDER_CLIMBER_IDS)
            boulder = random.randint(1, TOTAL_BOULDERS)
            await task_queue.put(("boulder", (cid, boulder)))
        else:
            cid = random.choice(SPEED_CLIMBER_IDS)
            await task_queue.put(("speed", (cid,)))

    # Add sentinel None tasks to close workers
    for _ in range(MAX_CONCURRENT):
        await task_queue.put(None)

    async with aiohttp.ClientSession() as session:
        workers = [
            asyncio.create_task(worker(f"worker-{i}", session, task_queue, results))
            for i in range(MAX_CONCURRENT)
        ]

        print(f"Sending {TOTAL_REQUESTS} requests with concurrency {MAX_CONCURRENT}...")
        start = time.time()

        await task_queue.join()
        end = time.time()

        for w in workers:
            await w

        ok = sum(1 for s in results if s == 200)
        print(f"Completed in {end - start:.2f} seconds ({ok}/{len(results)} accepted)")


if __name__ == "__main__":
    asyncio.run(main())
