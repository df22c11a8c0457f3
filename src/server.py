"""Protean Engine runner for the stock ledger.

Starts the Engine that processes events asynchronously (outbox publishing,
stream subscriptions feeding the projectors) and, optionally, a reservation
expiry sweeper that runs on a fixed interval.

Usage:
    python src/server.py                       # Engine only
    python src/server.py --sweep-interval 60   # Engine plus expiry sweep every 60s
"""

import argparse
import asyncio

import structlog
from protean.server.engine import Engine

logger = structlog.get_logger(__name__)


def _get_domain():
    from inventory.domain import inventory

    inventory.init()
    return inventory


def sweep_once(domain) -> int:
    from inventory.stock.control import InventoryControl

    with domain.domain_context():
        return InventoryControl().expire_due()


async def sweep_forever(domain, interval: float):
    """Expire lapsed reservations every ``interval`` seconds until cancelled."""
    while True:
        try:
            expired = await asyncio.to_thread(sweep_once, domain)
            if expired:
                logger.info("Expiry sweep finished", expired=expired)
        except Exception:
            logger.exception("Expiry sweep failed")
        await asyncio.sleep(interval)


async def run(sweep_interval: float | None):
    domain = _get_domain()
    tasks = [Engine(domain).run()]
    if sweep_interval:
        tasks.append(sweep_forever(domain, sweep_interval))
    await asyncio.gather(*tasks)


def main():
    parser = argparse.ArgumentParser(description="Stock ledger Engine runner")
    parser.add_argument(
        "--sweep-interval",
        type=float,
        default=None,
        help="Seconds between reservation expiry sweeps (default: no sweeper)",
    )
    args = parser.parse_args()

    asyncio.run(run(args.sweep_interval))


if __name__ == "__main__":
    main()
