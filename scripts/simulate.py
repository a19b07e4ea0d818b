"""
Dining Room Simulation Script

Simulates many diners scanning the demo shop's QR code at once, then a
staff member working through the kitchen queue. Exercises the browse and
order geofences, guest sessions, and status polling against a running API.

Run from project root (API running in development mode):
    python scripts/simulate.py --diners 30

Author: Khalil_Bannouri
Version: 1.0.0
"""

import asyncio
import sys
import os
import random
import time
import argparse
from datetime import datetime
from typing import Any

import httpx
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from qrmenu.core.config import get_settings
from qrmenu.core.exceptions import OrderingError
from qrmenu.models import OrderStatus
from qrmenu.schemas import OrderFilter
from qrmenu.services.geo import Coordinate, MockLocationProvider
from qrmenu.services.orders.http import HttpOrderRepository, HttpShopDirectory
from qrmenu.services.session import MemoryKeyValueStore, SessionStore
from qrmenu.services.workflow import OrderingWorkflow, WorkflowStage

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

settings = get_settings()

# Configuration
API_BASE_URL = settings.api_base_url
SHOP_ID = settings.demo_shop_id
TOTAL_DINERS = 30

# Sample data for random diners
DINER_NAMES = ["Asha", "Ravi", "Meera", "Karan", "Priya", "Table 4", "Table 7", "Window seat", "Arjun", "Nisha"]
MENU_ITEMS = [
    {"product_id": "prod-masala-dosa", "price": 120.0},
    {"product_id": "prod-idli", "price": 60.0},
    {"product_id": "prod-filter-coffee", "price": 40.0},
    {"product_id": "prod-paneer-tikka", "price": 220.0},
    {"product_id": "prod-gulab-jamun", "price": 80.0},
]

# Where diners stand relative to the shop (meters north), with weights
POSITIONS = [
    ("at_table", 20.0, 6),
    ("down_the_road", 2_000.0, 2),
    ("other_city", 50_000.0, 1),
    ("denied", None, 1),
]
METERS_PER_DEGREE_LAT = 111_320.0


def offset_north(origin: Coordinate, meters: float) -> Coordinate:
    """Point the given distance due north of origin."""
    return Coordinate(origin.latitude + meters / METERS_PER_DEGREE_LAT, origin.longitude)


def pick_position() -> tuple[str, Any]:
    labels = [(label, meters) for label, meters, _ in POSITIONS]
    weights = [weight for _, _, weight in POSITIONS]
    return random.choices(labels, weights=weights, k=1)[0]


# =============================================================================
# DINER SIMULATION
# =============================================================================

async def simulate_diner(client: httpx.AsyncClient, diner_num: int) -> dict[str, Any]:
    """One diner: scan, identify, order."""
    shops = HttpShopDirectory(client=client)
    orders = HttpOrderRepository(client=client)
    shop = await shops.get_shop(SHOP_ID)

    label, meters = pick_position()
    location = MockLocationProvider(jitter_meters=5.0, min_latency=0.05, max_latency=0.3)
    if meters is None:
        location.deny()
    else:
        location.move_to(offset_north(shop.coordinates, meters))

    workflow = OrderingWorkflow(
        SHOP_ID,
        shops=shops,
        orders=orders,
        location=location,
        sessions=SessionStore(MemoryKeyValueStore()),
    )
    start_time = time.time()
    result: dict[str, Any] = {"diner_num": diner_num, "position": label, "success": False}

    async with workflow:
        stage = await workflow.open()
        if stage != WorkflowStage.IDENTITY_REQUIRED:
            result.update(stage=stage.value, error=workflow.error.message if workflow.error else None)
            result["time"] = round(time.time() - start_time, 3)
            return result

        await workflow.start_session(random.choice(DINER_NAMES), f"555-{random.randint(1000, 9999)}")
        for item in random.sample(MENU_ITEMS, k=random.randint(1, 3)):
            workflow.add_item(item["product_id"], item["price"], random.randint(1, 3))

        try:
            order = await workflow.submit()
        except OrderingError as e:
            result.update(stage="rejected", error=e.message)
        else:
            result.update(
                success=True,
                stage="ordered",
                order_id=order.id,
                session_id=workflow.session.session_id,
                total=order.total_amount,
            )

    result["time"] = round(time.time() - start_time, 3)
    return result


# =============================================================================
# STAFF SIMULATION
# =============================================================================

async def simulate_staff(client: httpx.AsyncClient) -> dict[str, int]:
    """Move every pending order to preparing, then to ready."""
    orders = HttpOrderRepository(client=client)
    moved = {"preparing": 0, "ready": 0, "rejected": 0}

    for current, target in ((OrderStatus.PENDING, OrderStatus.PREPARING),
                            (OrderStatus.PREPARING, OrderStatus.READY)):
        queue = await orders.find_orders(OrderFilter(shop_id=SHOP_ID, status=current))
        for order in queue:
            try:
                await orders.update_order_status(order.id, target)
                moved[target.value] += 1
            except OrderingError as e:
                print(f"   Order {order.id}: {e.message}")
                moved["rejected"] += 1

    return moved


async def verify_guest_views(client: httpx.AsyncClient, results: list[dict[str, Any]]) -> int:
    """Count diners whose session poll shows their order as ready."""
    orders = HttpOrderRepository(client=client)
    ready = 0
    for r in results:
        if not r["success"]:
            continue
        seen = await orders.find_orders(OrderFilter(shop_id=SHOP_ID, session_id=r["session_id"]))
        if any(o.id == r["order_id"] and o.status == OrderStatus.READY for o in seen):
            ready += 1
    return ready


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(num_diners: int = TOTAL_DINERS) -> dict[str, Any]:
    print("=" * 70)
    print("DINING ROOM SIMULATION")
    print("=" * 70)
    print(f"Diners: {num_diners}")
    print(f"Target: {API_BASE_URL} (shop {SHOP_ID})")
    print(f"Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient(base_url=API_BASE_URL, timeout=30.0) as client:
        results = await asyncio.gather(
            *(simulate_diner(client, i + 1) for i in range(num_diners))
        )
        moved = await simulate_staff(client)
        ready = await verify_guest_views(client, results)

    total_time = round(time.time() - start_time, 2)
    successful = [r for r in results if r["success"]]
    halted = [r for r in results if not r["success"]]

    print("\n" + "=" * 70)
    print("SIMULATION RESULTS")
    print("=" * 70)
    print(f"\nOrders placed: {len(successful)}/{num_diners}")
    print(f"Visits halted: {len(halted)}/{num_diners}")
    print(f"Total Time: {total_time}s")

    for label, _, _ in POSITIONS:
        group = [r for r in results if r["position"] == label]
        if group:
            placed = len([r for r in group if r["success"]])
            print(f"   {label:<14} {placed}/{len(group)} ordered")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        total_revenue = sum(r.get("total", 0) for r in successful)
        print(f"\nAverage visit: {avg_time}s")
        print(f"Total Revenue: {total_revenue:.2f}")

    print(f"\nStaff moved {moved['preparing']} to preparing, {moved['ready']} to ready")
    print(f"Guest views showing ready: {ready}/{len(successful)}")

    if halted:
        print("\nHalted visits (showing first 5):")
        for r in halted[:5]:
            print(f"   Diner #{r['diner_num']} [{r['position']}] {r.get('stage')}: {r.get('error')}")

    print("=" * 70)

    return {
        "total": num_diners,
        "successful": len(successful),
        "halted": len(halted),
        "ready": ready,
        "total_time": total_time,
        "results": results,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Dining Room Simulation Script")
    parser.add_argument("--diners", type=int, default=TOTAL_DINERS, help="Number of diners")
    args = parser.parse_args()

    asyncio.run(run_simulation(args.diners))
