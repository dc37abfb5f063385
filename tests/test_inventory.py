"""Tests for the per-showing lock registry and inventory writes."""

import threading

import pytest

from boxoffice.core.errors import InventoryBusyError
from boxoffice.models.showing import Showing
from boxoffice.services.inventory import (
    ShowingLocks,
    StaleInventory,
    derive_available,
    write_inventory,
)


class TestShowingLocks:
    """Tests for ShowingLocks."""

    def test_same_showing_times_out(self):
        """A second holder of the same showing gives up with InventoryBusy."""
        locks = ShowingLocks(timeout=0.05)
        with locks.hold("s1"):
            errors = []

            def contend():
                try:
                    with locks.hold("s1"):
                        pass
                except InventoryBusyError as e:
                    errors.append(e)

            t = threading.Thread(target=contend)
            t.start()
            t.join()
        assert len(errors) == 1

    def test_other_showings_do_not_contend(self):
        """Holding one showing never blocks another."""
        locks = ShowingLocks(timeout=0.05)
        acquired = []

        def take_other():
            with locks.hold("s2"):
                acquired.append(True)

        with locks.hold("s1"):
            t = threading.Thread(target=take_other)
            t.start()
            t.join()
        assert acquired == [True]

    def test_released_after_error(self):
        """An exception inside the block releases the lock."""
        locks = ShowingLocks(timeout=0.05)
        with pytest.raises(RuntimeError):
            with locks.hold("s1"):
                raise RuntimeError("boom")
        with locks.hold("s1"):
            pass


class TestWriteInventory:
    """Tests for the version-conditional inventory write."""

    def test_bumps_version(self, session_factory, make_showing):
        """Each write advances the version by one."""
        showing_id = make_showing(capacity=8)
        with session_factory() as db:
            showing = db.get(Showing, showing_id)
            write_inventory(db, showing, available_seats=7)
            db.commit()
            db.refresh(showing)
            assert (showing.version, showing.available_seats) == (1, 7)

    def test_stale_version_rejected(self, session_factory, make_showing):
        """A writer holding an outdated version loses."""
        showing_id = make_showing(capacity=8)
        with session_factory() as first, session_factory() as second:
            stale = second.get(Showing, showing_id)

            fresh = first.get(Showing, showing_id)
            write_inventory(first, fresh, available_seats=7)
            first.commit()

            with pytest.raises(StaleInventory):
                write_inventory(second, stale, available_seats=6)

    def test_derive_available_on_fresh_showing(self, session_factory, make_showing):
        """Nothing sold means everything is available."""
        showing_id = make_showing(capacity=8)
        with session_factory() as db:
            assert derive_available(db, db.get(Showing, showing_id)) == 8
