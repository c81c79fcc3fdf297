from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    venue: str = Field(..., min_length=1, max_length=255)
    event_date: datetime
    ticket_price: float = Field(..., ge=0)
    ticket_count: int = Field(..., ge=0)


class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    venue: Optional[str] = Field(None, min_length=1, max_length=255)
    event_date: Optional[datetime] = None
    ticket_price: Optional[float] = Field(None, ge=0)
    ticket_count: Optional[int] = Field(None, ge=0)


class EventRead(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    venue: str
    event_date: datetime
    ticket_price: float
    ticket_count: int

    class Config:
        from_attributes = True


class TicketPurchase(BaseModel):
    quantity: int = Field(1, ge=1, le=20)
