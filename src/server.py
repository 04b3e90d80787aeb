"""Background worker for the delivery service.

Runs two periodic jobs against the delivery domain:
- Courier poll: refreshes every active courier-linked delivery, covering
  webhooks that never arrived
- Reconciliation retry: re-applies deferred courier updates until they
  resolve or exhaust their attempts

Usage:
    python src/server.py                  # Run both jobs forever
    python src/server.py --job poll       # Run only the courier poll
    python src/server.py --once           # Run one cycle and exit
"""

import argparse
import asyncio

import structlog

logger = structlog.get_logger(__name__)

JOBS = ("poll", "retry")


def _get_domain():
    """Import and initialize the delivery domain."""
    from delivery.domain import delivery

    delivery.init()
    return delivery


def run_cycle(domain, jobs) -> dict:
    from delivery.reconciliation.service import poll_active_deliveries, retry_pending_reconciliations

    results = {}
    with domain.domain_context():
        if "poll" in jobs:
            results["poll"] = poll_active_deliveries()
        if "retry" in jobs:
            results["retry"] = retry_pending_reconciliations()
    logger.info("Worker cycle complete", **results)
    return results


async def run(jobs, interval: float, once: bool = False):
    domain = _get_domain()
    while True:
        try:
            await asyncio.to_thread(run_cycle, domain, jobs)
        except Exception:
            logger.exception("Worker cycle failed")
            if once:
                raise
        if once:
            return
        await asyncio.sleep(interval)


def main():
    from delivery.config import get_settings

    parser = argparse.ArgumentParser(description="DeliveryStream background worker")
    parser.add_argument(
        "--job",
        choices=JOBS,
        help="Run a single job (default: run all)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=get_settings().worker_poll_interval_seconds,
        help="Seconds between cycles",
    )
    parser.add_argument("--once", action="store_true", help="Run one cycle and exit")
    args = parser.parse_args()

    jobs = [args.job] if args.job else list(JOBS)

    asyncio.run(run(jobs, args.interval, args.once))


if __name__ == "__main__":
    main()
