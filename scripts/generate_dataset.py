"""
Demo Store Generator
Writes a SYNTHETIC users/products/orders JSON store for local development.

Usage:
    python scripts/generate_dataset.py
    python scripts/generate_dataset.py --users 500 --orders 5000 --output data/store
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from marketplace.config import get_settings  # noqa: E402
from marketplace.config.logging import configure_logging  # noqa: E402
from marketplace.data.generators import generate_dataset  # noqa: E402
from marketplace.data.stores import JsonFileStore  # noqa: E402


def main():
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Generate a synthetic marketplace JSON store")
    parser.add_argument("--users", type=int, default=200, help="Number of users (default: 200)")
    parser.add_argument("--products", type=int, default=100, help="Number of products (default: 100)")
    parser.add_argument("--orders", type=int, default=1000, help="Number of orders (default: 1000)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument(
        "--output",
        default=settings.store.json_path,
        help=f"Store directory (default: {settings.store.json_path})",
    )
    args = parser.parse_args()

    configure_logging(settings.monitoring.log_level, "console")

    print("=" * 60)
    print("🛒 Synthetic Marketplace Store Generator")
    print("=" * 60 + "\n")

    users, products, orders = generate_dataset(
        n_users=args.users,
        n_products=args.products,
        n_orders=args.orders,
        seed=args.seed,
    )
    JsonFileStore(args.output).write(users=users, products=products, orders=orders)

    print("\n" + "=" * 60)
    print("✅ Store Generation Complete!")
    print("=" * 60)
    print(f"\n📁 Output: {Path(args.output).resolve()}\n")
    for f in sorted(Path(args.output).glob("*.json")):
        size = f.stat().st_size / 1024
        print(f"   📄 {f.name}: {size:.1f} KB")


if __name__ == "__main__":
    main()
