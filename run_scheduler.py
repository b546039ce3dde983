#!/usr/bin/env python3
"""
Background runner for the transfer sync automation scheduler.

Runs the scheduler as a standalone service (without the HTTP API). It can
be run via systemd, supervisor, or directly.

Usage:
    python run_scheduler.py                          # Run in foreground
    python run_scheduler.py --list-jobs              # List jobs and exit
    python run_scheduler.py --trigger transfer_sync  # Run one job now and exit
"""
import argparse
import asyncio
import signal
import sys

from app.core.config import settings
from app.core.database import SessionLocal, init_db
from app.core.logging import configure_logging, get_logger
from app.core.scheduler import AutomationScheduler
from app.services.registry import build_registry

configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger(__name__)


class SchedulerRunner:
    """Runner for the automation scheduler."""

    def __init__(self):
        self.services = build_registry(settings, SessionLocal)
        self.scheduler = AutomationScheduler(self.services, session_factory=SessionLocal)
        self.shutdown = asyncio.Event()

    async def start(self):
        """Start the scheduler and run until shutdown."""
        logger.info("Starting scheduler runner...")
        init_db()
        await self.scheduler.start()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._set_shutdown)

        logger.info("Scheduler is now running. Press Ctrl+C to stop")
        await self.shutdown.wait()

        await self.scheduler.stop()
        await self.services.close()
        logger.info("Scheduler runner stopped")

    def _set_shutdown(self):
        logger.info("Shutdown signal received")
        self.shutdown.set()

    async def list_jobs(self) -> None:
        await self.scheduler.start()
        try:
            jobs = self.scheduler.scheduler.get_jobs()

            print("=" * 60)
            print("SCHEDULED AUTOMATION JOBS")
            print("=" * 60)
            print()
            for job in jobs:
                next_run = job.next_run_time
                next_run_str = next_run.strftime("%Y-%m-%d %H:%M UTC") if next_run else "Pending"
                print(f"{job.name}")
                print(f"   ID: {job.id}")
                print(f"   Schedule: {job.trigger}")
                print(f"   Next run: {next_run_str}")
                print()
            print("=" * 60)
            print(f"Total jobs: {len(jobs)}")
        finally:
            await self.scheduler.stop()

    async def trigger(self, job_id: str) -> bool:
        """Run one job immediately, outside the schedule."""
        job = self.scheduler.job_functions().get(job_id)
        if job is None:
            print(f"Job '{job_id}' not found. Available: {', '.join(self.scheduler.job_functions())}")
            return False

        init_db()
        try:
            print(f"Triggering job: {job_id}")
            result = await job()
            print(f"Job '{job_id}' finished: {result}")
            return True
        finally:
            await self.services.close()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Run the transfer sync automation scheduler"
    )
    parser.add_argument(
        "--trigger",
        type=str,
        metavar="JOB_ID",
        help="Run a specific job by ID and exit",
    )
    parser.add_argument(
        "--list-jobs",
        action="store_true",
        help="List all scheduled jobs and exit",
    )
    args = parser.parse_args()

    runner = SchedulerRunner()

    if args.list_jobs:
        asyncio.run(runner.list_jobs())
        return 0

    if args.trigger:
        return 0 if asyncio.run(runner.trigger(args.trigger)) else 1

    try:
        asyncio.run(runner.start())
    except KeyboardInterrupt:
        logger.info("Received interrupt, shutting down...")
        return 0
    except Exception as e:
        logger.error(f"Scheduler error: {e}", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
