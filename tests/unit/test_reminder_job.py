"""
Unit tests for the WhatsApp reminder jobs
"""
import threading
from datetime import date, datetime, timedelta

from heritage_lanka.config.settings import ReminderSettings
from heritage_lanka.core.clock import FixedClock
from heritage_lanka.core.db import SessionLocal
from heritage_lanka.models import TripStatus
from heritage_lanka.services.reminder_job import (
    ReminderScheduler,
    format_day_itinerary,
    local_day_window,
    local_today,
    send_daily_itinerary_reminders,
    send_trip_start_reminders,
    trip_day_number,
)
from tests.factories import NOW, FakeMessenger, make_guide, make_traveler, make_trip

TZ = "Asia/Colombo"
TOMORROW = datetime(2026, 3, 11, 9, 0)


def test_local_today_uses_reminder_timezone():
    # 20:00 UTC is already the next day in Colombo (UTC+5:30)
    clock = FixedClock(datetime(2026, 3, 10, 20, 0))
    assert local_today(clock, TZ) == date(2026, 3, 11)
    assert local_today(clock, "UTC") == date(2026, 3, 10)


def test_trip_day_number():
    assert trip_day_number(date(2026, 3, 10), datetime(2026, 3, 10, 8, 0), TZ) == 1
    # 23:00 UTC on the 10th is the morning of the 11th in Colombo
    assert trip_day_number(date(2026, 3, 12), datetime(2026, 3, 10, 23, 0), TZ) == 2
    assert trip_day_number(date(2026, 3, 12), datetime(2026, 3, 10, 23, 0), "UTC") == 3


def test_local_day_window_is_in_utc():
    assert local_day_window(date(2026, 3, 11), TZ) == (
        datetime(2026, 3, 10, 18, 30), datetime(2026, 3, 11, 18, 30),
    )
    assert local_day_window(date(2026, 3, 11), "UTC") == (
        datetime(2026, 3, 11), datetime(2026, 3, 12),
    )


def test_late_evening_run_targets_the_next_local_day(db, messenger):
    # 20:00 UTC on the 10th is 01:30 on the 11th in Colombo, so tomorrow is the 12th
    clock = FixedClock(datetime(2026, 3, 10, 20, 0))
    make_trip(db, make_traveler(db, phone="+94770000041"), from_date=datetime(2026, 3, 12, 3, 0))
    make_trip(db, make_traveler(db, phone="+94770000042"), from_date=datetime(2026, 3, 13, 3, 0))
    # 19:00 UTC on the 12th is already the 13th locally
    make_trip(db, make_traveler(db, phone="+94770000043"), from_date=datetime(2026, 3, 12, 19, 0))

    stats = send_trip_start_reminders(db, messenger, clock, TZ)

    assert stats["scanned"] == 1
    assert [recipient for recipient, _ in messenger.sent] == ["+94770000041"]
    assert "Thursday, 12 March 2026" in messenger.sent[0][1]


def test_format_day_itinerary_without_stops():
    text = format_day_itinerary(4, [], "Nimal")
    assert "day 4" in text
    assert "free day" in text


def test_trip_start_reminders_pick_tomorrows_trips(db, clock, messenger):
    traveler = make_traveler(db, phone="+94770000001")
    guide = make_guide(db, phone="+94770000002")
    make_trip(db, traveler, status=TripStatus.CONFIRMED, guide=guide, from_date=TOMORROW)
    make_trip(db, make_traveler(db, phone="+94770000003"), from_date=TOMORROW)
    make_trip(db, make_traveler(db, phone="+94770000004"), status=TripStatus.COMPLETED, from_date=TOMORROW)
    make_trip(db, make_traveler(db, phone="+94770000005"), status=TripStatus.CONFIRMED,
              from_date=TOMORROW + timedelta(days=1))

    stats = send_trip_start_reminders(db, messenger, clock, TZ)

    recipients = sorted(phone for phone, _ in messenger.sent)
    assert recipients == ["+94770000001", "+94770000002", "+94770000003"]
    assert stats["scanned"] == 2
    assert stats["sent"] == 3
    guide_text = dict(messenger.sent)["+94770000002"]
    assert "you are guiding" in guide_text


def test_one_failed_delivery_does_not_stop_the_run(db, clock):
    make_trip(db, make_traveler(db, phone="+94770000011"), from_date=TOMORROW)
    make_trip(db, make_traveler(db, phone="+94770000012"), from_date=TOMORROW)
    make_trip(db, make_traveler(db, phone=None), from_date=TOMORROW)
    messenger = FakeMessenger(failing={"+94770000011"})

    stats = send_trip_start_reminders(db, messenger, clock, TZ)

    assert [phone for phone, _ in messenger.sent] == ["+94770000012"]
    assert (stats["sent"], stats["failed"], stats["skipped"]) == (1, 1, 1)
    assert stats["status"] == "success"


def test_daily_itinerary_sends_todays_stops(db, clock, messenger):
    traveler = make_traveler(db, phone="+94770000021")
    make_trip(
        db, traveler, status=TripStatus.IN_PROGRESS, from_date=NOW - timedelta(days=1),
        locations=[("Sigiriya", 1), ("Dambulla Cave Temple", 2), ("Polonnaruwa", 2)],
    )
    make_trip(db, make_traveler(db, phone="+94770000022"), status=TripStatus.CONFIRMED,
              from_date=NOW - timedelta(days=1))

    stats = send_daily_itinerary_reminders(db, messenger, clock, TZ)

    assert stats["sent"] == 1
    phone, text = messenger.sent[0]
    assert phone == "+94770000021"
    assert "day 2" in text
    assert "Dambulla Cave Temple" in text
    assert "Sigiriya" not in text


def test_scheduler_run_reports_stats(db, clock):
    messenger = FakeMessenger()
    make_trip(db, make_traveler(db, phone="+94770000031"), from_date=TOMORROW)
    scheduler = ReminderScheduler(
        session_factory=SessionLocal,
        messenger_factory=lambda: messenger,
        clock=clock,
        reminder_settings=ReminderSettings(timezone=TZ),
    )
    result = scheduler.run_trip_start_reminders()

    assert result["status"] == "success"
    assert result["sent"] == 1
    assert "duration_seconds" in result
    assert not scheduler.is_running("trip_start_reminders")


def test_scheduler_skips_overlapping_run(clock):
    entered = threading.Event()
    release = threading.Event()

    class SlowSession:
        def close(self):
            pass

    def slow_job(session, messenger, clock, tz):
        entered.set()
        release.wait(5)
        return {"status": "success"}

    scheduler = ReminderScheduler(
        session_factory=SlowSession,
        messenger_factory=FakeMessenger,
        clock=clock,
        reminder_settings=ReminderSettings(timezone=TZ),
    )
    results = []
    worker = threading.Thread(target=lambda: results.append(scheduler._run("job", slow_job)))
    worker.start()
    entered.wait(5)

    skipped = scheduler._run("job", slow_job)
    release.set()
    worker.join(5)

    assert skipped == {"status": "skipped", "reason": "already_running"}
    assert results[0]["status"] == "success"


def test_scheduler_reports_job_errors(clock):
    class BrokenSession:
        def close(self):
            pass

    def broken_job(session, messenger, clock, tz):
        raise RuntimeError("database went away")

    scheduler = ReminderScheduler(
        session_factory=BrokenSession,
        messenger_factory=FakeMessenger,
        clock=clock,
        reminder_settings=ReminderSettings(timezone=TZ),
    )

    result = scheduler._run("job", broken_job)

    assert result["status"] == "error"
    assert "database went away" in result["error"]
