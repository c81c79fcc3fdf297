"""
Plan ingestion - turns manual selections and accepted AI plans into trips

AI output is untrusted: attractions without usable coordinates or a name are
dropped before any row is written. Manual plans are held to the island's
bounding box and a daily driving limit.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from geopy.distance import geodesic
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from heritage_lanka.core.exceptions import NotFoundError, ValidationFailedError
from heritage_lanka.models.trip import PlanningMode, Trip, TripLocation, TripStatus, BookingStatus
from heritage_lanka.models.user import Traveler
from heritage_lanka.schemas.plan import AcceptPlanRequest, ManualPlanRequest, TripRequestBase

logger = logging.getLogger(__name__)

# Sri Lanka bounding box
SRI_LANKA_LAT_RANGE = (5.85, 9.9)
SRI_LANKA_LNG_RANGE = (79.5, 81.95)
MAX_AVERAGE_KM_PER_DAY = 200
DEFAULT_FEASIBILITY_SCORE = 80


@dataclass
class Attraction:
    """A validated AI attraction"""
    title: str
    latitude: float
    longitude: float
    attraction_id: Optional[str] = None
    address: Optional[str] = None
    estimated_duration: Optional[str] = None


@dataclass
class IngestionResult:
    trip: Trip
    kept: int
    dropped: int


def _coerce_coordinate(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def coerce_feasibility_score(value: Any) -> int:
    """Whole-number score in 0..100; missing, zero or unparseable gets the default"""
    number = _coerce_coordinate(value)
    if not number:
        return DEFAULT_FEASIBILITY_SCORE
    return max(0, min(100, int(round(number))))


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def validate_attractions(candidates: Iterable[Mapping[str, Any]]) -> List[Attraction]:
    """
    Keep only attractions that can be placed on a map.

    An entry survives when it has a title (``name`` or ``title``), a numeric
    latitude in [-90, 90] and a numeric longitude in [-180, 180]. Coordinates
    may be keyed ``latitude``/``longitude`` or ``lat``/``lng``.

    Args:
        candidates: Raw attraction objects from the model output

    Returns:
        Valid attractions, in input order
    """
    kept: List[Attraction] = []
    dropped = 0
    for raw in candidates or []:
        if not isinstance(raw, Mapping):
            dropped += 1
            continue
        title = raw.get("name") or raw.get("title")
        lat = _coerce_coordinate(raw.get("latitude", raw.get("lat")))
        lng = _coerce_coordinate(raw.get("longitude", raw.get("lng")))
        if (
            not isinstance(title, str)
            or not title.strip()
            or lat is None
            or lng is None
            or not -90 <= lat <= 90
            or not -180 <= lng <= 180
        ):
            dropped += 1
            continue
        kept.append(
            Attraction(
                title=title.strip(),
                latitude=lat,
                longitude=lng,
                attraction_id=str(raw["id"]) if raw.get("id") is not None else None,
                address=raw.get("address") or raw.get("location"),
                estimated_duration=raw.get("estimatedDuration") or raw.get("estimated_duration"),
            )
        )

    log = logger.warning if dropped else logger.info
    log(
        f"Attraction validation kept {len(kept)}, dropped {dropped}",
        extra={"kept": len(kept), "dropped": dropped},
    )
    return kept


def route_distance_km(points: Sequence[Tuple[float, float]]) -> float:
    """Geodesic length of the path through ``points`` in order"""
    total = 0.0
    for start, end in zip(points, points[1:]):
        total += geodesic(start, end).kilometers
    return total


def trip_length_days(from_date, to_date) -> int:
    days = (to_date.date() - from_date.date()).days + 1
    if days < 1:
        raise ValidationFailedError(
            "Trip end date must not be before its start date",
            details={"from_date": str(from_date), "to_date": str(to_date)},
        )
    return days


def _coordinate_key(lat: Any, lng: Any) -> Optional[str]:
    lat, lng = _coerce_coordinate(lat), _coerce_coordinate(lng)
    if lat is None or lng is None:
        return None
    return f"{lat:.6f},{lng:.6f}"


def order_attractions(
    attractions: List[Attraction], daily_itinerary: Any
) -> List[Tuple[Attraction, int, int]]:
    """
    Assign (day_number, visit_order) to each attraction.

    Activities reference attractions by ``attractionId`` or by coordinates.
    An attraction is placed at its first reference; attractions the
    itinerary never mentions go after the rest on the last day used.
    """
    by_id = {a.attraction_id: a for a in attractions if a.attraction_id}
    by_coords = {_coordinate_key(a.latitude, a.longitude): a for a in attractions}

    placed: List[Tuple[Attraction, int, int]] = []
    seen = set()
    next_order: Dict[int, int] = {}

    days = [d for d in daily_itinerary or [] if isinstance(d, Mapping)]
    days.sort(key=lambda d: d["day"] if isinstance(d.get("day"), int) else 0)
    for position, day in enumerate(days, start=1):
        day_number = day.get("day")
        if not isinstance(day_number, int) or day_number < 1:
            day_number = position
        for activity in day.get("activities") or []:
            if not isinstance(activity, Mapping):
                continue
            attraction = by_id.get(str(activity.get("attractionId")))
            if attraction is None:
                attraction = by_coords.get(_coordinate_key(activity.get("lat"), activity.get("lng")))
            if attraction is None or id(attraction) in seen:
                continue
            seen.add(id(attraction))
            order = next_order.get(day_number, 0) + 1
            next_order[day_number] = order
            placed.append((attraction, day_number, order))

    last_day = max(next_order) if next_order else 1
    for attraction in attractions:
        if id(attraction) in seen:
            continue
        order = next_order.get(last_day, 0) + 1
        next_order[last_day] = order
        placed.append((attraction, last_day, order))

    return placed


def _load_traveler(db: Session, traveler_id: int) -> Traveler:
    traveler = db.execute(
        select(Traveler).where(Traveler.id == traveler_id).options(selectinload(Traveler.user))
    ).scalar_one_or_none()
    if traveler is None:
        raise NotFoundError("Traveler", traveler_id)
    return traveler


def _new_trip(traveler: Traveler, request: TripRequestBase, mode: PlanningMode) -> Trip:
    return Trip(
        traveler_id=traveler.id,
        from_date=request.from_date,
        to_date=request.to_date,
        number_of_people=request.number_of_people,
        country=traveler.user.country,
        preferences=list(request.preferences),
        plan_description=request.description,
        planning_mode=mode,
        needs_guide=request.needs_guide,
        status=TripStatus.PLANNING,
        booking_status=BookingStatus.PENDING,
    )


def ingest_ai_plan(db: Session, traveler_id: int, request: AcceptPlanRequest) -> IngestionResult:
    """
    Persist an accepted AI plan as a PLANNING trip.

    Args:
        db: Database session
        traveler_id: Owner's traveler profile ID
        request: Trip fields plus the model's plan JSON

    Returns:
        The new trip and how many attractions were kept or dropped
    """
    trip_length_days(request.from_date, request.to_date)
    plan = request.ai_plan or {}
    raw_attractions = plan.get("selectedAttractions") or []
    if not isinstance(raw_attractions, list):
        raise ValidationFailedError("AI plan has no attraction list")

    attractions = validate_attractions(raw_attractions)
    if not attractions:
        raise ValidationFailedError(
            "AI plan has no attractions with valid coordinates",
            details={"dropped": len(raw_attractions)},
        )

    traveler = _load_traveler(db, traveler_id)
    daily_itinerary = plan.get("dailyItinerary") if isinstance(plan.get("dailyItinerary"), list) else []
    placements = order_attractions(attractions, daily_itinerary)
    distance = route_distance_km([(a.latitude, a.longitude) for a, _, _ in placements])

    trip = _new_trip(traveler, request, PlanningMode.AI_GENERATED)
    summary = plan.get("summary")
    trip.ai_summary = summary if isinstance(summary, str) else ""
    trip.ai_recommendations = _string_list(plan.get("recommendations"))
    trip.feasibility_score = coerce_feasibility_score(plan.get("feasibilityScore"))
    trip.daily_itinerary = daily_itinerary
    trip.total_distance = round(distance, 1)

    reasons = _activity_notes(daily_itinerary)
    for attraction, day_number, visit_order in placements:
        trip.locations.append(
            TripLocation(
                title=attraction.title,
                address=attraction.address or attraction.title,
                latitude=attraction.latitude,
                longitude=attraction.longitude,
                category="ATTRACTION",
                estimated_duration=attraction.estimated_duration,
                reason_for_selection=reasons.get(attraction.attraction_id),
                day_number=day_number,
                visit_order=visit_order,
            )
        )

    db.add(trip)
    db.commit()
    db.refresh(trip)
    dropped = len(raw_attractions) - len(attractions)
    logger.info(
        f"Created AI trip {trip.id} with {len(placements)} locations",
        extra={"trip_id": trip.id, "traveler_id": traveler.id, "dropped": dropped},
    )
    return IngestionResult(trip=trip, kept=len(attractions), dropped=dropped)


def _activity_notes(daily_itinerary: List[Any]) -> Dict[str, str]:
    notes = {}
    for day in daily_itinerary:
        if not isinstance(day, Mapping):
            continue
        for activity in day.get("activities") or []:
            if isinstance(activity, Mapping) and activity.get("attractionId") and activity.get("notes"):
                notes.setdefault(str(activity["attractionId"]), str(activity["notes"]))
    return notes


def create_manual_plan(db: Session, traveler_id: int, request: ManualPlanRequest) -> Trip:
    """
    Persist a traveler-built plan.

    Every stop must lie inside Sri Lanka. Stops without a day are spread
    evenly over the trip in the order given. Plans averaging more than
    200 km a day are refused.
    """
    if not request.locations:
        raise ValidationFailedError("At least one location is required")

    total_days = trip_length_days(request.from_date, request.to_date)
    for index, location in enumerate(request.locations):
        if not (
            SRI_LANKA_LAT_RANGE[0] <= location.latitude <= SRI_LANKA_LAT_RANGE[1]
            and SRI_LANKA_LNG_RANGE[0] <= location.longitude <= SRI_LANKA_LNG_RANGE[1]
        ):
            raise ValidationFailedError(
                f"Location '{location.title}' is outside Sri Lanka",
                details={"index": index, "latitude": location.latitude, "longitude": location.longitude},
            )
        if location.day_number is not None and location.day_number > total_days:
            raise ValidationFailedError(
                f"Location '{location.title}' is scheduled after the trip ends",
                details={"index": index, "day_number": location.day_number, "total_days": total_days},
            )

    distance = route_distance_km([(loc.latitude, loc.longitude) for loc in request.locations])
    average = distance / total_days
    if average > MAX_AVERAGE_KM_PER_DAY:
        raise ValidationFailedError(
            f"This route covers {distance:.0f}km, averaging {average:.0f}km per day. "
            "Reduce the number of locations or extend the trip.",
            details={"total_distance": round(distance, 1), "average_per_day": round(average, 1)},
        )

    traveler = _load_traveler(db, traveler_id)
    trip = _new_trip(traveler, request, PlanningMode.MANUAL)
    trip.total_distance = round(distance, 1)

    per_day = math.ceil(len(request.locations) / total_days)
    next_order: Dict[int, int] = {}
    itinerary: Dict[int, List[str]] = {}
    for index, location in enumerate(request.locations):
        day_number = location.day_number or min(total_days, index // per_day + 1)
        order = next_order.get(day_number, 0) + 1
        next_order[day_number] = order
        itinerary.setdefault(day_number, []).append(location.title)
        trip.locations.append(
            TripLocation(
                title=location.title,
                address=location.address,
                district=location.district,
                latitude=location.latitude,
                longitude=location.longitude,
                category=location.category,
                rating=location.rating,
                estimated_duration=location.estimated_duration,
                reason_for_selection="Manually selected by traveler",
                day_number=day_number,
                visit_order=order,
            )
        )
    trip.daily_itinerary = [{"day": day, "places": itinerary[day]} for day in sorted(itinerary)]

    db.add(trip)
    db.commit()
    db.refresh(trip)
    logger.info(
        f"Created manual trip {trip.id} with {len(request.locations)} locations",
        extra={"trip_id": trip.id, "traveler_id": traveler.id, "total_distance": trip.total_distance},
    )
    return trip
