"""
Taskminder - reminder engine entry point.

Runs the due-check, recovery and retention jobs until SIGINT/SIGTERM.
"""

import asyncio
import logging
import signal
import sys
from dataclasses import dataclass
from typing import Optional

from prometheus_client import start_http_server

from config import settings
from . import __version__
from .database import close_database, get_database, init_database
from .database.exceptions import DatabaseConnectionError
from .database.repositories import InMemoryRepository, ReminderRepository, get_sql_repository
from .models import EventHandler
from .monitoring.prometheus import app_info
from .notifications import Notifier, build_notifier
from .scheduler import (
    DispatchPool,
    DueReminderScanner,
    RECOVERY_JOB_ID,
    RecoveryScanner,
    ReminderDispatcher,
    ReminderJobs,
    RetentionJob,
)
from .services import WorkItemService
from .utils.datetime_utils import Clock, utc_now
from .utils.retry import with_retry

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)


@dataclass
class Application:
    """Wired engine components."""

    repository: ReminderRepository
    dispatcher: ReminderDispatcher
    pool: DispatchPool
    service: WorkItemService
    jobs: ReminderJobs


def build_application(
    repository: ReminderRepository,
    notifier: Optional[Notifier] = None,
    clock: Clock = utc_now,
    event_handler: Optional[EventHandler] = None,
    with_database_health: bool = False,
) -> Application:
    """Wire every component around one repository."""
    dispatcher = ReminderDispatcher(
        repository,
        notifier or build_notifier(),
        clock=clock,
        event_handler=event_handler,
    )
    pool = DispatchPool(dispatcher)
    jobs = ReminderJobs(
        due_check=DueReminderScanner(repository, pool, clock=clock),
        recovery=RecoveryScanner(repository, pool, clock=clock),
        retention=RetentionJob(repository, clock=clock),
        pool=pool,
        database=get_database() if with_database_health else None,
    )
    service = WorkItemService(repository, dispatcher, clock=clock, event_handler=event_handler)
    return Application(repository=repository, dispatcher=dispatcher, pool=pool, service=service, jobs=jobs)


@with_retry(delays=(2.0, 5.0, 15.0), retry_on=(DatabaseConnectionError,))
async def connect_database() -> bool:
    return await init_database()


async def create_repository() -> ReminderRepository:
    """
    PostgreSQL repository when DATABASE_URL is set, in-memory otherwise.

    A configured but unreachable database is fatal: reminders must not
    silently land in process memory.
    """
    if await connect_database():
        logger.info("PostgreSQL database initialized")
        return get_sql_repository()

    logger.warning("No database configured, reminders are kept in memory only")
    return InMemoryRepository()


async def run() -> None:
    logger.info(f"Starting {settings.app_name} {__version__} ({settings.environment})...")
    app_info.info({'name': 'taskminder', 'version': __version__, 'environment': settings.environment})

    if settings.metrics_port:
        start_http_server(settings.metrics_port)
        logger.info(f"Prometheus metrics on port {settings.metrics_port}")

    repository = await create_repository()
    app = build_application(repository, with_database_health=not isinstance(repository, InMemoryRepository))

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    app.jobs.start()
    # Catch up on anything missed while the process was down
    app.jobs.trigger_job(RECOVERY_JOB_ID)

    try:
        await stop_event.wait()
        logger.info("Shutdown requested")
    finally:
        await app.jobs.shutdown(timeout=settings.shutdown_timeout_seconds)
        await close_database()
        logger.info(f"{settings.app_name} stopped")


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
