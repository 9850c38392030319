"""Sync Scheduler - periodic and event-driven reconciliation with offline fallback"""
import asyncio
import contextlib
import logging
from typing import Optional

from application.engine import ReservationEngine
from domain.exceptions import HotelError

logger = logging.getLogger(__name__)

DEFAULT_SYNC_INTERVAL = 10.0


class SyncScheduler:
    """Drives ReservationEngine.refresh.

    The periodic timer runs only while the engine is error-free: it is armed
    when that state is (re)entered and torn down as soon as an error begins.
    Timer, focus and visibility ticks are skipped while a resync is in flight;
    write-through and manual syncs wait for it and then run their own.
    """

    def __init__(self, engine: ReservationEngine, interval: float = DEFAULT_SYNC_INTERVAL):
        self.engine = engine
        self.interval = interval
        self._lock = asyncio.Lock()
        self._timer: Optional[asyncio.Task] = None
        self._started = False
        self._stopped = False
        self._visible = True

        engine.set_resync_hook(self._forced_resync)
        engine.add_error_listener(self._on_error_change)

    @property
    def is_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    # ==================== LIFECYCLE ====================
    async def start(self) -> bool:
        """Initial load; falls back to the cached snapshot when the store is unreachable"""
        self._stopped = False
        restored = self.engine.restore_history()
        if restored:
            logger.debug("Restored %d history entries from cache", restored)

        async with self._lock:
            loaded = await self.engine.refresh()
        if not loaded:
            if self.engine.load_cached_snapshot():
                logger.warning("Initial load failed, running from cached snapshot")
            else:
                logger.warning("Initial load failed and no cached snapshot is available")
        else:
            await self._promote()

        self._started = True
        self._arm_if_healthy()
        return loaded

    async def stop(self) -> None:
        self._stopped = True
        task = self._timer
        self._disarm()
        if task is not None and task is not asyncio.current_task():
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self.engine.set_resync_hook(None)

    # ==================== TRIGGERS ====================
    async def resync(self) -> bool:
        """Background resync; returns False when skipped or failed"""
        if self._lock.locked():
            logger.debug("Resync already in flight, skipping tick")
            return False
        async with self._lock:
            synced = await self.engine.refresh()
        self._arm_if_healthy()
        return synced

    async def sync_now(self) -> bool:
        """Manual sync: waits for any in-flight resync, then promotes due reservations"""
        synced = await self._forced_resync()
        if synced:
            await self._promote()
        return synced

    async def on_focus(self) -> bool:
        if self._stopped:
            return False
        return await self.resync()

    async def on_visibility_change(self, visible: bool) -> bool:
        became_visible = visible and not self._visible
        self._visible = visible
        if became_visible and not self._stopped:
            return await self.resync()
        return False

    async def _forced_resync(self) -> bool:
        async with self._lock:
            synced = await self.engine.refresh()
        self._arm_if_healthy()
        return synced

    async def _promote(self) -> None:
        try:
            await self.engine.check_and_activate_future_reservations()
        except HotelError as e:
            logger.error("Promotion of future reservations failed: %s", e)

    # ==================== TIMER ====================
    async def _run(self) -> None:
        while not self._stopped:
            await asyncio.sleep(self.interval)
            if self._stopped:
                break
            if await self.resync():
                await self._promote()

    def _arm_if_healthy(self) -> None:
        if self.engine.error is None:
            self._arm()

    def _arm(self) -> None:
        if self._stopped or not self._started or self.is_running:
            return
        self._timer = asyncio.create_task(self._run())
        logger.debug("Sync timer armed (every %ss)", self.interval)

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            logger.debug("Sync timer disarmed")

    def _on_error_change(self, error: Optional[str]) -> None:
        if error is None:
            self._arm()
        else:
            self._disarm()
