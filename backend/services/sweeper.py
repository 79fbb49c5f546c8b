"""Background expiration of availability slots nobody booked in time."""

import logging
from datetime import datetime
from threading import Event, Lock, Thread
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.database import SessionLocal
from backend.services import slot_store

logger = logging.getLogger(__name__)


class ExpirationSweeper:
    """Periodically marks past, unclaimed slots as unavailable.

    The clock and session factory are injectable so a pass can be run for
    any ``now`` without waiting on the timer.
    """

    def __init__(
        self,
        session_factory=SessionLocal,
        interval_seconds: float = config.SLOT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._session_factory = session_factory
        self._interval_seconds = interval_seconds
        self._clock = clock
        self._stop_event = Event()
        self._run_lock = Lock()
        self._thread: Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self, now: datetime | None = None) -> int:
        now = now or self._clock()

        with self._run_lock:
            db = self._session_factory()
            try:
                expired = slot_store.expire_stale_unclaimed(db, now)
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                raise
            finally:
                db.close()

        logger.info('%d availabilities marked as expired', expired)
        return expired

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except SQLAlchemyError:
                logger.exception('Availability expiration pass failed; retrying next interval.')

            self._stop_event.wait(self._interval_seconds)

    def start(self) -> None:
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = Thread(target=self._run, name='slot-expiration-sweeper', daemon=True)
        self._thread.start()
        logger.info('Slot expiration sweeper started (every %s seconds)', self._interval_seconds)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info('Slot expiration sweeper stopped')
