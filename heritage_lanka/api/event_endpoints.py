"""
Public event listing
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from heritage_lanka.core.clock import Clock, get_clock
from heritage_lanka.core.db import get_db
from heritage_lanka.schemas.base import Envelope
from heritage_lanka.schemas.event import EventRead
from heritage_lanka.services.event_service import EventService

router = APIRouter(prefix="/events", tags=["events"])


@router.get("", response_model=Envelope[list[EventRead]])
def list_upcoming_events(
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    events = EventService(db, clock=clock).list_upcoming_events(limit)
    return Envelope(status="ok", data=[EventRead.model_validate(e) for e in events])


@router.get("/{event_id}", response_model=Envelope[EventRead])
def get_event(event_id: int, db: Session = Depends(get_db)):
    return Envelope(status="ok", data=EventRead.model_validate(EventService(db).get_event(event_id)))
