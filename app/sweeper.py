import asyncio
from typing import Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from app.config import Settings
from app.sessions import sweep_expired_sessions


class SessionSweeper:
    """
    Background task that deactivates stale sessions on a fixed interval.

    A failed sweep is logged and retried on the next tick. The sweep runs in
    a worker thread so a slow store never blocks request handling.
    """

    def __init__(self, session_factory: sessionmaker, settings: Settings) -> None:
        self._session_factory = session_factory
        self._settings = settings
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> int:
        db = self._session_factory()
        try:
            swept = sweep_expired_sessions(db, self._settings)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Session sweep failed")
            return 0
        finally:
            db.close()

        if swept:
            logger.info(f"Deactivated {swept} expired session(s)")
        return swept

    async def _loop(self) -> None:
        interval = self._settings.session_sweep_interval_seconds
        while True:
            await asyncio.sleep(interval)
            try:
                await asyncio.to_thread(self.run_once)
            except Exception:
                logger.exception("Session sweep tick failed, retrying next interval")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="session-sweeper")
        logger.info(
            f"Session sweeper started (every {self._settings.session_sweep_interval_seconds}s)"
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Session sweeper stopped")
