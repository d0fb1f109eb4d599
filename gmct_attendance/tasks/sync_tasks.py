"""
Background tasks for offline sync.

Runs the periodic sync timer and, on hosts without a native connectivity
signal, a reachability probe that feeds the connectivity observer.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

import aiohttp

from gmct_attendance.services.sync.connectivity import ConnectivityObserver, HttpReachabilityProbe
from gmct_attendance.services.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


class ReachabilityMonitor:
    """Polls an HTTP endpoint and reports the result to the observer."""

    def __init__(self, observer: ConnectivityObserver, probe: HttpReachabilityProbe,
                 session: Optional[aiohttp.ClientSession] = None):
        self.observer = observer
        self.probe = probe
        self._session = session
        self._owns_session = session is None

    async def check_once(self) -> bool:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        online = await self.probe.check(self._session)
        self.observer.set_online(online)
        return online

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None


class SyncTaskManager:
    """
    Manages the sync timer and probe loops.

    ``start``/``stop`` acquire and release the timers; ``running()`` scopes
    them to an ``async with`` block so nothing leaks past shutdown.
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        interval_seconds: float = 30.0,
        monitor: Optional[ReachabilityMonitor] = None,
        probe_interval_seconds: float = 10.0
    ):
        self.orchestrator = orchestrator
        self.interval_seconds = interval_seconds
        self.monitor = monitor
        self.probe_interval_seconds = probe_interval_seconds
        self._running_tasks: Dict[str, asyncio.Task] = {}
        self._shutdown_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._running_tasks.values())

    async def start(self) -> None:
        """Start the timer and, when configured, the reachability probe."""
        if self.is_running:
            return

        logger.info("Starting sync task manager")
        self._shutdown_event.clear()

        self._running_tasks['sync_timer'] = asyncio.create_task(self._timer_loop())
        if self.monitor is not None:
            self._running_tasks['reachability'] = asyncio.create_task(self._reachability_loop())

        logger.info("Sync task manager started")

    async def stop(self) -> None:
        """
        Stop all loops. Pending queue items stay in the local store.

        The timer is not cancelled: once the shutdown event is set its loop
        exits by itself, after any drain pass it started has run to
        completion. The reachability probe holds no queue state and is
        cancelled.
        """
        logger.info("Stopping sync task manager")

        self._shutdown_event.set()

        for task_name, task in self._running_tasks.items():
            if task.done():
                continue
            if task_name == 'sync_timer':
                logger.info(f"Waiting for task: {task_name}")
                await asyncio.shield(task)
            else:
                logger.info(f"Cancelling task: {task_name}")
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        self._running_tasks.clear()

        if self.monitor is not None:
            await self.monitor.close()

        logger.info("Sync task manager stopped")

    @asynccontextmanager
    async def running(self) -> AsyncIterator["SyncTaskManager"]:
        await self.start()
        try:
            yield self
        finally:
            await self.stop()

    async def _timer_loop(self) -> None:
        """Periodic sync timer; ticks are no-ops while offline."""
        logger.info(f"Started sync timer ({self.interval_seconds}s)")

        while not self._shutdown_event.is_set():
            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self.interval_seconds
                )
                break  # Shutdown event was set
            except asyncio.TimeoutError:
                pass

            try:
                await self.orchestrator.on_timer_tick()
            except Exception as e:
                logger.error(f"Error in sync timer: {e}")

        logger.info("Sync timer stopped")

    async def _reachability_loop(self) -> None:
        logger.info("Started reachability probe loop")

        while not self._shutdown_event.is_set():
            try:
                await self.monitor.check_once()
            except Exception as e:
                logger.error(f"Error in reachability probe: {e}")

            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self.probe_interval_seconds
                )
                break
            except asyncio.TimeoutError:
                pass

        logger.info("Reachability probe loop stopped")
