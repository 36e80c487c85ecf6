"""
Tests for frontdesk/services/sweep_scheduler.py
"""
from datetime import datetime
from unittest.mock import MagicMock

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import sessionmaker

from frontdesk.models.ontology import Booking, BookingStatus
from frontdesk.services.sweep_scheduler import AUTO_CANCEL_JOB_ID, NO_SHOW_JOB_ID, SweepScheduler


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


class TestJobRegistration:

    def test_register_jobs_on_unstarted_scheduler(self, session_factory, clock):
        sweeper = SweepScheduler(session_factory, scheduler=BackgroundScheduler(), clock=clock)

        sweeper.register_jobs()
        sweeper.register_jobs()

        assert sorted(job["id"] for job in sweeper.get_jobs()) == sorted([NO_SHOW_JOB_ID, AUTO_CANCEL_JOB_ID])

    def test_start_and_shutdown(self, session_factory, clock):
        scheduler = MagicMock()
        scheduler.running = False
        sweeper = SweepScheduler(session_factory, scheduler=scheduler, clock=clock)

        sweeper.start()
        assert scheduler.add_job.call_count == 2
        scheduler.start.assert_called_once()

        scheduler.running = True
        sweeper.shutdown()
        scheduler.shutdown.assert_called_once_with(wait=False)


class TestSweepRuns:

    def test_no_show_run(self, db_session, session_factory, clock, rooms, make_booking):
        detail = make_booking([rooms[0].id])
        clock.current = datetime(2025, 1, 10, 23, 0)

        summary = SweepScheduler(session_factory, scheduler=MagicMock(), clock=clock).run_no_show_sweep()

        assert summary == {"cancelled_rooms": 1, "affected_bookings": 1}
        db_session.expire_all()
        assert db_session.get(Booking, detail.id).status == BookingStatus.CANCELLED

    def test_auto_cancel_run_covers_active_hotels(self, db_session, session_factory, clock, hotel, rooms, make_booking):
        detail = make_booking([rooms[0].id])
        clock.current = datetime(2025, 1, 11, 6, 0)

        marked = SweepScheduler(session_factory, scheduler=MagicMock(), clock=clock).run_auto_cancel_sweep()

        assert marked == [detail.id]
        db_session.expire_all()
        assert db_session.get(Booking, detail.id).status == BookingStatus.MISSING

    def test_inactive_hotel_skipped(self, db_session, session_factory, clock, hotel, rooms, make_booking):
        make_booking([rooms[0].id])
        hotel.is_active = False
        db_session.commit()
        clock.current = datetime(2025, 1, 11, 6, 0)

        assert SweepScheduler(session_factory, scheduler=MagicMock(), clock=clock).run_auto_cancel_sweep() == []
