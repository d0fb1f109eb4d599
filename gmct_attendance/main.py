import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from gmct_attendance.container import Container, build_container
from gmct_attendance.core.config import Settings, settings as default_settings
from gmct_attendance.core.logging_config import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def application_lifespan(
    settings: Optional[Settings] = None,
    container: Optional[Container] = None,
    initially_online: bool = False,
) -> AsyncIterator[Container]:
    """
    In-process lifecycle hooks for the sync subsystem.

    Start: create the local tables, open the HTTP session, wire the
    connectivity trigger, drain leftovers and start the timer.
    Shutdown: stop timers, let an in-flight drain finish, release resources.
    The queue is not flushed; pending items survive in the local store.
    """
    settings = settings or default_settings
    configure_logging(settings)
    container = container or build_container(settings, initially_online=initially_online)

    await container.database.init_db()
    await container.remote.open()
    container.orchestrator.attach()

    try:
        await container.orchestrator.on_startup()
        async with container.task_manager.running():
            logger.info(f"{settings.APP_NAME} sync service started")
            yield container
    finally:
        container.orchestrator.detach()
        await container.orchestrator.wait_idle()
        await container.connectivity.wait_for_handlers()
        await container.remote.close()
        await container.database.dispose()
        logger.info(f"{settings.APP_NAME} sync service stopped")
