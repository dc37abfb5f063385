"""Per-showing inventory state and its locking discipline.

The committed-seat rows of a showing are the only source of truth for
"is this seat sold". ``Showing.available_seats`` is a display cache that
every write recomputes from that set.

Writers serialize per showing twice over:
- in-process, through ``ShowingLocks`` (one lock per showing id);
- across processes, through a conditional update on ``Showing.version``
  (``StaleInventory`` when another writer got there first).
"""

import logging
import threading
from contextlib import contextmanager
from typing import Hashable, Iterator

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from boxoffice.core.config import settings
from boxoffice.core.errors import InventoryBusyError, InventoryInconsistentError
from boxoffice.models.reservation import Reservation, ReservationStatus
from boxoffice.models.showing import CommittedSeat, Showing

logger = logging.getLogger(__name__)


class StaleInventory(Exception):
    """The showing's inventory version moved underneath us; retry the attempt."""


class ShowingLocks:
    """Registry of one mutex per showing. Different showings never contend."""

    def __init__(self, timeout: float = 10.0) -> None:
        self._timeout = timeout
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}

    def _lock_for(self, showing_id: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(showing_id)
            if lock is None:
                lock = self._locks[showing_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, showing_id: Hashable) -> Iterator[None]:
        lock = self._lock_for(showing_id)
        if not lock.acquire(timeout=self._timeout):
            logger.warning("Timed out waiting for inventory lock of showing %s", showing_id)
            raise InventoryBusyError()
        try:
            yield
        finally:
            lock.release()


def committed_seat_ids(db: Session, showing_id) -> set[str]:
    return set(
        db.scalars(
            select(CommittedSeat.seat_id).where(CommittedSeat.showing_id == showing_id)
        ).all()
    )


def committed_count(db: Session, showing: Showing) -> int:
    """Seats held by live reservations, re-derived from the authoritative records."""
    if showing.has_seat_map:
        return db.scalar(
            select(func.count(CommittedSeat.id)).where(CommittedSeat.showing_id == showing.id)
        ) or 0
    # Bare-count showings have no seat rows; live reservations carry the count
    return db.scalar(
        select(func.coalesce(func.sum(Reservation.seat_count), 0)).where(
            Reservation.showing_id == showing.id,
            Reservation.status != ReservationStatus.cancelled.value,
        )
    ) or 0


def derive_available(db: Session, showing: Showing) -> int:
    return showing.total_seats - committed_count(db, showing)


def reconcile_available(db: Session, showing: Showing, delta: int) -> int:
    """Work out the new available_seats after a write of ``delta`` seats.

    The arithmetic result is clamped to [0, total_seats] and cross-checked
    against the value re-derived from committed seats, which wins. With
    STRICT_INVENTORY_CHECKS a clamp or a disagreement raises instead.
    """
    raw = showing.available_seats + delta
    clamped = min(showing.total_seats, max(0, raw))
    derived = derive_available(db, showing)

    if raw != clamped or clamped != derived:
        if settings.STRICT_INVENTORY_CHECKS:
            raise InventoryInconsistentError(showing.id, cached=raw, derived=derived)
        logger.warning(
            "Inventory drift on showing %s: cached %d%+d=%d, derived %d",
            showing.id, showing.available_seats, delta, raw, derived,
        )
    return min(showing.total_seats, max(0, derived))


def write_inventory(db: Session, showing: Showing, **values) -> None:
    """Apply ``values`` to the showing iff nobody else bumped its version.

    Raises:
        StaleInventory: If the version read by this transaction is no longer current.
    """
    result = db.execute(
        update(Showing)
        .where(Showing.id == showing.id, Showing.version == showing.version)
        .values(version=Showing.version + 1, **values)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        raise StaleInventory(str(showing.id))
