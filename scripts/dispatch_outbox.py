#!/usr/bin/env python3
"""
Deliver pending outbox events.

Usage:
    python scripts/dispatch_outbox.py
    python scripts/dispatch_outbox.py --limit 100 --loop --interval 10
"""

import argparse
import asyncio

import structlog

from clinicflow.config import settings
from clinicflow.core.clock import SystemClock, get_clinic_timezone
from clinicflow.database import AsyncSessionLocal, engine
from clinicflow.middleware.logging import configure_logging
from clinicflow.repositories.contact_repository import SqlContactDirectory
from clinicflow.repositories.outbox_repository import SqlOutboxRepository
from clinicflow.repositories.unit_of_work import SqlUnitOfWork
from clinicflow.services.notification_service import build_email_sender
from clinicflow.services.outbox_dispatcher import DEFAULT_MAX_ATTEMPTS, OutboxDispatcher

logger = structlog.get_logger("dispatch_outbox")


async def dispatch_once(limit: int, max_attempts: int) -> None:
    """Run one dispatch pass in its own session."""
    async with AsyncSessionLocal() as session:
        dispatcher = OutboxDispatcher(
            outbox=SqlOutboxRepository(session),
            sender=build_email_sender(settings),
            contacts=SqlContactDirectory(session),
            uow=SqlUnitOfWork(session),
            clock=SystemClock(get_clinic_timezone(settings.clinic_timezone)),
            max_attempts=max_attempts,
        )
        summary = await dispatcher.process_pending(limit)
        logger.info(
            "outbox_pass_finished",
            processed=summary.processed,
            retried=summary.retried,
            failed=summary.failed,
        )


async def run(limit: int, max_attempts: int, loop: bool, interval: float) -> None:
    try:
        while True:
            await dispatch_once(limit, max_attempts)
            if not loop:
                break
            await asyncio.sleep(interval)
    finally:
        await engine.dispose()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Deliver pending outbox events")
    parser.add_argument("--limit", type=int, default=settings.outbox_batch_size)
    parser.add_argument("--max-attempts", type=int, default=DEFAULT_MAX_ATTEMPTS)
    parser.add_argument("--loop", action="store_true", help="Keep polling for new events")
    parser.add_argument("--interval", type=float, default=5.0, help="Seconds between passes")
    args = parser.parse_args()

    configure_logging()
    asyncio.run(run(args.limit, args.max_attempts, args.loop, args.interval))


if __name__ == "__main__":
    main()
