"""
Reminder jobs - WhatsApp nudges before and during trips

Two daily jobs: a heads-up the day before a trip starts, and each morning
of an in-progress trip, that day's stops. Delivery failures for one trip
never stop the run.
"""
import logging
import threading
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from heritage_lanka.config.settings import ReminderSettings, get_settings
from heritage_lanka.core.clock import Clock, system_clock
from heritage_lanka.core.db import SessionLocal
from heritage_lanka.core.exceptions import UpstreamFailureError, ValidationFailedError
from heritage_lanka.models.trip import Trip, TripLocation, TripStatus
from heritage_lanka.models.user import Guide, Traveler
from heritage_lanka.services.messaging_client import Messenger, WhatsAppClient

logger = logging.getLogger(__name__)


def _zone(timezone_name: Optional[str]) -> ZoneInfo:
    return ZoneInfo(timezone_name or get_settings().reminders.timezone)


def local_date(instant: datetime, timezone_name: Optional[str] = None) -> date:
    """Calendar date in the reminder timezone for a naive UTC instant"""
    return instant.replace(tzinfo=timezone.utc).astimezone(_zone(timezone_name)).date()


def local_today(clock: Clock, timezone_name: Optional[str] = None) -> date:
    return local_date(clock.now(), timezone_name)


def local_day_window(day: date, timezone_name: Optional[str] = None) -> Tuple[datetime, datetime]:
    """Naive UTC bounds [start, end) of a calendar day in the reminder timezone"""
    tz = _zone(timezone_name)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return (
        start.astimezone(timezone.utc).replace(tzinfo=None),
        end.astimezone(timezone.utc).replace(tzinfo=None),
    )


def trip_day_number(today: date, from_date: datetime, timezone_name: Optional[str] = None) -> int:
    return (today - local_date(from_date, timezone_name)).days + 1


def format_trip_start_message(
    trip: Trip, recipient_name: str, for_guide: bool = False, start_day: Optional[date] = None
) -> str:
    start = (start_day or trip.from_date).strftime("%A, %d %B %Y")
    if for_guide:
        return (
            f"Hello {recipient_name}, reminder: you are guiding "
            f"{trip.traveler.user.name}'s trip starting tomorrow ({start}) "
            f"for {trip.number_of_people} traveler(s)."
        )
    stops = len(trip.locations)
    return (
        f"Hello {recipient_name}! Your Heritage Lanka trip starts tomorrow ({start}). "
        f"{stops} stop(s) are planned. Have a great journey!"
    )


def format_day_itinerary(day_number: int, stops: List[TripLocation], recipient_name: str) -> str:
    lines = [f"Good morning {recipient_name}! Here is day {day_number} of your trip:"]
    if not stops:
        lines.append("No planned stops today. Enjoy your free day!")
    for stop in stops:
        line = f"{stop.visit_order}. {stop.title}"
        if stop.estimated_duration:
            line += f" ({stop.estimated_duration})"
        lines.append(line)
    return "\n".join(lines)


def _deliver(messenger: Messenger, phone: Optional[str], text: str, trip_id: int, stats: Dict) -> None:
    if not phone:
        logger.warning(f"No phone number for reminder on trip {trip_id}", extra={"trip_id": trip_id})
        stats["skipped"] += 1
        return
    try:
        messenger.send_message(phone, text)
    except (UpstreamFailureError, ValidationFailedError) as exc:
        logger.warning(
            f"Reminder for trip {trip_id} not delivered: {exc.message}",
            extra={"trip_id": trip_id, "error_code": exc.error_code.value},
        )
        stats["failed"] += 1
        return
    stats["sent"] += 1


def _new_stats() -> Dict:
    return {"status": "success", "sent": 0, "failed": 0, "skipped": 0, "scanned": 0}


def send_trip_start_reminders(
    db: Session,
    messenger: Messenger,
    clock: Clock = system_clock,
    timezone_name: Optional[str] = None,
) -> Dict:
    """
    Message travelers (and assigned guides) whose trip starts tomorrow.

    Args:
        db: Database session
        messenger: Message transport
        clock: Time source
        timezone_name: IANA zone the calendar day is taken in

    Returns:
        Run statistics
    """
    tomorrow = local_today(clock, timezone_name) + timedelta(days=1)
    window_start, window_end = local_day_window(tomorrow, timezone_name)

    trips = db.execute(
        select(Trip)
        .where(
            Trip.status.in_([TripStatus.PLANNING, TripStatus.CONFIRMED]),
            Trip.from_date >= window_start,
            Trip.from_date < window_end,
        )
        .options(
            selectinload(Trip.locations),
            selectinload(Trip.traveler).selectinload(Traveler.user),
            selectinload(Trip.guide).selectinload(Guide.user),
        )
        .order_by(Trip.id)
    ).scalars().all()

    stats = _new_stats()
    for trip in trips:
        stats["scanned"] += 1
        traveler_user = trip.traveler.user
        _deliver(
            messenger,
            traveler_user.phone,
            format_trip_start_message(trip, traveler_user.name, start_day=tomorrow),
            trip.id,
            stats,
        )
        if trip.guide is not None:
            guide_user = trip.guide.user
            _deliver(
                messenger,
                guide_user.phone,
                format_trip_start_message(trip, guide_user.name, for_guide=True, start_day=tomorrow),
                trip.id,
                stats,
            )

    logger.info(
        f"Trip start reminders: {stats['sent']} sent, {stats['failed']} failed "
        f"across {stats['scanned']} trips",
        extra=stats,
    )
    return stats


def send_daily_itinerary_reminders(
    db: Session,
    messenger: Messenger,
    clock: Clock = system_clock,
    timezone_name: Optional[str] = None,
) -> Dict:
    """Message each traveler on an in-progress trip with today's stops"""
    today = local_today(clock, timezone_name)

    trips = db.execute(
        select(Trip)
        .where(Trip.status == TripStatus.IN_PROGRESS)
        .options(
            selectinload(Trip.locations),
            selectinload(Trip.traveler).selectinload(Traveler.user),
        )
        .order_by(Trip.id)
    ).scalars().all()

    stats = _new_stats()
    for trip in trips:
        stats["scanned"] += 1
        day_number = trip_day_number(today, trip.from_date, timezone_name)
        stops = [loc for loc in trip.locations if loc.day_number == day_number]
        traveler_user = trip.traveler.user
        _deliver(
            messenger,
            traveler_user.phone,
            format_day_itinerary(day_number, stops, traveler_user.name),
            trip.id,
            stats,
        )

    logger.info(
        f"Daily itinerary reminders: {stats['sent']} sent, {stats['failed']} failed "
        f"across {stats['scanned']} trips",
        extra=stats,
    )
    return stats


class ReminderScheduler:
    """
    Runs the reminder jobs on APScheduler cron triggers.

    Each run opens its own session. A job that is still running when its
    next trigger fires is skipped rather than run twice.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        messenger_factory: Callable[[], Messenger] = WhatsAppClient,
        clock: Clock = system_clock,
        reminder_settings: Optional[ReminderSettings] = None,
    ):
        self.settings = reminder_settings or get_settings().reminders
        self.session_factory = session_factory
        self.messenger_factory = messenger_factory
        self.clock = clock
        self.scheduler = BackgroundScheduler(timezone=self.settings.timezone)
        self._running = set()
        self._lock = threading.Lock()

    def start(self) -> None:
        tz = self.settings.timezone
        self.scheduler.add_job(
            self.run_trip_start_reminders,
            CronTrigger(hour=self.settings.trip_start_hour, minute=0, timezone=tz),
            id="trip_start_reminders",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.run_daily_itinerary_reminders,
            CronTrigger(hour=self.settings.daily_itinerary_hour, minute=0, timezone=tz),
            id="daily_itinerary_reminders",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info(
            f"Reminder scheduler started ({tz}): trip start at {self.settings.trip_start_hour:02d}:00, "
            f"itinerary at {self.settings.daily_itinerary_hour:02d}:00"
        )

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Reminder scheduler stopped")

    def is_running(self, job_name: str) -> bool:
        return job_name in self._running

    def run_trip_start_reminders(self) -> Dict:
        return self._run("trip_start_reminders", send_trip_start_reminders)

    def run_daily_itinerary_reminders(self) -> Dict:
        return self._run("daily_itinerary_reminders", send_daily_itinerary_reminders)

    def _run(self, job_name: str, job: Callable[..., Dict]) -> Dict:
        with self._lock:
            if job_name in self._running:
                logger.warning(f"{job_name} already running, skipping")
                return {"status": "skipped", "reason": "already_running"}
            self._running.add(job_name)

        started = datetime.now(timezone.utc)
        session = self.session_factory()
        try:
            result = job(session, self.messenger_factory(), self.clock, self.settings.timezone)
            result["duration_seconds"] = (datetime.now(timezone.utc) - started).total_seconds()
            return result
        except Exception as e:
            logger.error(f"{job_name} failed: {e}", exc_info=True)
            return {"status": "error", "error": str(e), "timestamp": started.isoformat()}
        finally:
            session.close()
            with self._lock:
                self._running.discard(job_name)
