"""
Service Simulation Script

Simulates a busy dinner rush against a running Tableside instance:
many waiters fire orders concurrently, then the kitchen advances every
item and pickup serves every order that becomes ready. Two kitchen
screens race on every item, so roughly half of the status writes are
expected to be rejected with 409.

Run from project root: python scripts/simulate.py
"""

import argparse
import asyncio
import os
import random
import sys
import time
from datetime import datetime
from typing import Any

import httpx

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8001"
TOTAL_ORDERS = 30

SPECIAL_REQUESTS = [None, None, None, "No scallions", "Extra spicy", "Sauce on the side"]


async def load_reference_data(client: httpx.AsyncClient) -> dict[str, list[dict]]:
    """Fetch tables, menu items and modifiers the waiters pick from."""
    tables, items, modifiers = await asyncio.gather(
        client.get(f"{API_BASE_URL}/api/tables"),
        client.get(f"{API_BASE_URL}/api/menu/items"),
        client.get(f"{API_BASE_URL}/api/menu/modifiers"),
    )
    for response in (tables, items, modifiers):
        response.raise_for_status()
    return {
        "tables": tables.json(),
        "items": items.json(),
        "modifiers": modifiers.json(),
    }


def generate_cart(reference: dict[str, list[dict]]) -> list[dict[str, Any]]:
    """Generate a random cart of one to four lines."""
    cart = []
    for _ in range(random.randint(1, 4)):
        modifiers = random.sample(reference["modifiers"], k=random.randint(0, 2))
        cart.append({
            "menu_item_id": random.choice(reference["items"])["id"],
            "quantity": random.randint(1, 3),
            "modifier_ids": [m["id"] for m in modifiers],
            "special_requests": random.choice(SPECIAL_REQUESTS),
        })
    return cart


# =============================================================================
# WAITERS
# =============================================================================

async def fire_order(
    client: httpx.AsyncClient,
    reference: dict[str, list[dict]],
    order_num: int,
) -> dict[str, Any]:
    """Fire one random order."""
    payload = {
        "table_id": random.choice(reference["tables"])["id"],
        "items": generate_cart(reference),
    }
    start_time = time.time()

    try:
        response = await client.post(f"{API_BASE_URL}/api/orders", json=payload, timeout=30.0)
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 201:
            data = response.json()
            return {
                "order_num": order_num,
                "success": True,
                "order_id": data["id"],
                "items": len(data["items"]),
                "total": data["total"],
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        elapsed = round(time.time() - start_time, 3)
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": elapsed,
        }


# =============================================================================
# KITCHEN & PICKUP
# =============================================================================

async def advance_item(client: httpx.AsyncClient, item_id: int, action: str) -> int:
    response = await client.post(f"{API_BASE_URL}/api/kitchen/items/{item_id}/{action}")
    return response.status_code


async def run_kitchen(client: httpx.AsyncClient) -> dict[str, int]:
    """
    Drain the pending and cooking buckets with two racing screens.

    Returns counts of accepted and rejected writes.
    """
    stats = {"accepted": 0, "rejected": 0}
    for bucket, action in (("pending", "start"), ("cooking", "ready")):
        response = await client.get(f"{API_BASE_URL}/api/kitchen", params={"status": bucket})
        response.raise_for_status()
        item_ids = [item["id"] for ticket in response.json() for item in ticket["items"]]

        # Two screens fire the same action on every item
        codes = await asyncio.gather(*[
            advance_item(client, item_id, action)
            for item_id in item_ids
            for _ in range(2)
        ])
        stats["accepted"] += sum(1 for c in codes if c == 200)
        stats["rejected"] += sum(1 for c in codes if c == 409)
    return stats


async def run_pickup(client: httpx.AsyncClient) -> int:
    """Serve every order that is ready. Returns the number served."""
    response = await client.get(f"{API_BASE_URL}/api/pickup")
    response.raise_for_status()
    ready = [order["id"] for order in response.json() if order["ready_for_serving"]]

    served = 0
    for order_id in ready:
        result = await client.post(f"{API_BASE_URL}/api/pickup/orders/{order_id}/serve")
        if result.status_code == 200:
            served += 1
    return served


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(num_orders: int = TOTAL_ORDERS) -> dict[str, Any]:
    """
    Run the dinner rush simulation.

    Args:
        num_orders: Number of orders the waiters fire
    """
    print("=" * 70)
    print("🍜 DINNER RUSH SIMULATION")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        reference = await load_reference_data(client)

        print("\n🚀 Waiters firing orders...\n")
        results = await asyncio.gather(*[
            fire_order(client, reference, i + 1) for i in range(num_orders)
        ])

        print("👨‍🍳 Kitchen working the tickets...\n")
        kitchen = await run_kitchen(client)

        print("🛎️  Pickup serving ready orders...\n")
        served = await run_pickup(client)

    total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print("=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Orders fired: {len(successful)}/{num_orders}")
    print(f"❌ Orders failed: {len(failed)}/{num_orders}")
    print(f"🔥 Kitchen writes accepted: {kitchen['accepted']}")
    print(f"🚫 Kitchen writes rejected (raced): {kitchen['rejected']}")
    print(f"🛎️  Orders served: {served}")
    print(f"⏱️  Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        print(f"\n📈 Average fire latency: {avg_time}s")
        print(f"   💰 Total billed: ${sum(r['total'] for r in successful):.2f}")

    if failed:
        print("\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    print("\n" + "=" * 70)
    print("🔍 Next: python scripts/verify.py")
    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "kitchen": kitchen,
        "served": served,
        "total_time": total_time,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Dinner Rush Simulation")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--url", default=API_BASE_URL, help="Service base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url
    asyncio.run(run_simulation(args.orders))
