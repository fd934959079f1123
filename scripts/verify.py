"""
Order Board Verification Script

Checks the integrity of the active order board of a running instance:
every order has items, every status is one of the four known states,
ready-for-serving flags agree with item statuses, and two consecutive
reads return the same list.

Run from project root: python scripts/verify.py
"""

import os
import sys
from datetime import datetime

import httpx
import pandas as pd

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

API_BASE_URL = os.getenv("TABLESIDE_URL", "http://localhost:8001")
KNOWN_STATUSES = {"pending", "cooking", "ready", "served"}


def load_board(client: httpx.Client) -> pd.DataFrame:
    """Flatten the pickup board into one row per order item."""
    response = client.get(f"{API_BASE_URL}/api/pickup")
    response.raise_for_status()

    rows = []
    for order in response.json():
        for item in order["items"] or [None]:
            rows.append({
                "order_id": order["id"],
                "table_number": order["table"]["table_number"],
                "order_status": order["status"],
                "ready_for_serving": order["ready_for_serving"],
                "item_id": item["id"] if item else None,
                "item_status": item["status"] if item else None,
                "menu_item": item["menu_item_name"] if item else None,
                "line_total": item["line_total"] if item else 0.0,
            })
    return pd.DataFrame(
        rows,
        columns=[
            "order_id", "table_number", "order_status", "ready_for_serving",
            "item_id", "item_status", "menu_item", "line_total",
        ],
    )


def verify_board() -> bool:
    """Verify active order board integrity."""

    print("=" * 60)
    print("🔍 ORDER BOARD VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"🎯 Target: {API_BASE_URL}")
    print("=" * 60)

    try:
        with httpx.Client(timeout=10.0) as client:
            df = load_board(client)
            first = client.get(f"{API_BASE_URL}/api/orders/active").json()
            second = client.get(f"{API_BASE_URL}/api/orders/active").json()
    except httpx.HTTPError as e:
        print(f"\n❌ Could not reach service: {e}")
        return False

    ok = True

    print("\n📊 STATISTICS:")
    print(f"   Active Orders: {df['order_id'].nunique()}")
    print(f"   Active Items: {df['item_id'].notna().sum()}")

    empty = df[df["item_id"].isna()]["order_id"].unique()
    if len(empty):
        ok = False
        print(f"\n⚠️ Orders without items: {list(empty)}")
    else:
        print("\n✅ Every order has items")

    statuses = set(df["order_status"].dropna()) | set(df["item_status"].dropna())
    unknown = statuses - KNOWN_STATUSES
    if unknown:
        ok = False
        print(f"⚠️ Unknown statuses: {sorted(unknown)}")
    else:
        print("✅ All statuses known")

    items = df[df["item_id"].notna()]
    expected = items.groupby("order_id")["item_status"].agg(lambda s: (s == "ready").all())
    flagged = items.groupby("order_id")["ready_for_serving"].first()
    mismatched = expected[expected != flagged].index.tolist()
    if mismatched:
        ok = False
        print(f"⚠️ Serve eligibility mismatch: {mismatched}")
    else:
        print("✅ Serve eligibility consistent")

    if second != first:
        print("⚠️ Consecutive reads differ (writes in flight?)")
    else:
        print("✅ Aggregation stable across reads")

    if len(items):
        print("\n📋 ITEMS BY STATUS:")
        print(items["item_status"].value_counts().to_string())
        print(f"\n💰 Open bill total: ${items['line_total'].sum():.2f}")

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE" if ok else "❌ VERIFICATION FOUND PROBLEMS")
    print("=" * 60)

    return ok


if __name__ == "__main__":
    sys.exit(0 if verify_board() else 1)
