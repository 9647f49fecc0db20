"""Protean Engine runner for Jamaa Market domains.

Starts Engine workers that process events asynchronously:
- Ordering: order placement, cart clearing, driver status, notifications
- Settlement: store settlement and transfers for confirmed orders

Usage:
    python src/server.py                     # Run both domain engines
    python src/server.py --domain ordering   # Run only the ordering engine
    python src/server.py --domain settlement # Run only the settlement engine
"""

import argparse
import asyncio

from protean.server.engine import Engine

DOMAIN_NAMES = ["ordering", "settlement"]


def _get_domain(name):
    """Import and initialize a domain by name."""
    if name == "ordering":
        from ordering.domain import ordering

        ordering.init()
        return ordering
    elif name == "settlement":
        from settlement.domain import settlement

        settlement.init()
        return settlement
    else:
        raise ValueError(f"Unknown domain: {name}")


async def run(domain_names):
    engines = []
    for name in domain_names:
        domain = _get_domain(name)
        engines.append(Engine(domain))

    await asyncio.gather(*(engine.run() for engine in engines))


def main():
    from ordering.utils.logging import configure_logging

    configure_logging()

    parser = argparse.ArgumentParser(description="Jamaa Market Engine runner")
    parser.add_argument(
        "--domain",
        choices=DOMAIN_NAMES,
        help="Run a single domain engine (default: run all)",
    )
    args = parser.parse_args()

    domain_names = [args.domain] if args.domain else DOMAIN_NAMES

    asyncio.run(run(domain_names))


if __name__ == "__main__":
    main()
